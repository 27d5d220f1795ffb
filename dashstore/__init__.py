"""
dashstore — Dashboard & folder persistence and query layer.

Permission-aware search over dashboards and folders, cascading deletes,
folder permission checks and lookups, on SQLAlchemy.

    from dashstore.db.session import init_store_db
    from dashstore.dashboards.store import DashboardStore

    store = DashboardStore(init_store_db(config.database), config=config)
"""

__version__ = "1.0.0"
__all__ = ["engine", "db", "search", "security", "dashboards"]
