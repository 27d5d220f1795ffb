"""
dashstore Database Session Management.

Single entry point for store DB initialisation plus the two session scopes
the store uses:

- session_scope():          read path, always rolled back / closed
- transactional_session():  write path, commit on success, rollback on error
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.orm import Session, sessionmaker

from dashstore.db.base import Base, engine_registry
from dashstore.engine.config import DatabaseConfig

logger = logging.getLogger("dashstore.db.session")

ENGINE_NAME = "dashstore"


def init_store_db(
    config: Optional[DatabaseConfig] = None,
    create_tables: bool = False,
) -> sessionmaker:
    """
    Register the store engine and return its session factory.

    Args:
        config:        Database section of dashstore.yaml (defaults if None).
        create_tables: Run Base.metadata.create_all() — dev / tests only.
                       Production schemas are managed by migrations.
    """
    # Import models so every table is attached to Base.metadata
    import dashstore.db.models  # noqa: F401

    config = config or DatabaseConfig()
    engine = engine_registry.register(
        ENGINE_NAME,
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=config.pool_pre_ping,
        echo=config.echo,
    )

    if create_tables:
        Base.metadata.create_all(engine)
        logger.info("Created dashstore tables")

    return engine_registry.get_session_factory(ENGINE_NAME)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Read-only session. Nothing is committed.

    Usage:
        with session_scope(factory) as session:
            rows = session.execute(text("SELECT ...")).all()
    """
    session = factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@contextmanager
def transactional_session(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Session wrapped in one transaction: commit on success, rollback on any error.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_all_sessions() -> None:
    """Dispose the store engine. Used during shutdown."""
    engine_registry.dispose(ENGINE_NAME)
