"""dashstore engine — config, errors, identity, logging and metrics."""
