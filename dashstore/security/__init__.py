"""dashstore security — permission filters shared by search and folder checks."""
