"""dashstore database layer — SQLAlchemy base, models and sessions."""
