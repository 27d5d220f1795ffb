"""
dashstore Database Base — SQLAlchemy declarative base, mixins, and engine registry.

Provides:
- Base: SQLAlchemy declarative base for all store tables
- TimestampMixin: created, updated columns
- EngineRegistry: Named engines + session factories
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all dashstore models."""
    pass


class TimestampMixin:
    """Adds created, updated columns."""
    created = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class EngineRegistry:
    """
    Registry of named SQLAlchemy engines.

    Usage:
        registry = EngineRegistry()
        registry.register("dashstore", "postgresql://...")
        session = registry.get_session("dashstore")
    """

    def __init__(self):
        self._engines: Dict[str, Engine] = {}
        self._session_factories: Dict[str, sessionmaker] = {}

    def register(
        self,
        name: str,
        url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        pool_pre_ping: bool = True,
        **kwargs: Any,
    ) -> Engine:
        """Register a new database engine. SQLite URLs keep the driver's default pool."""
        if make_url(url).get_backend_name() == "sqlite":
            engine = create_engine(url, **kwargs)
        else:
            engine = create_engine(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=pool_pre_ping,
                **kwargs,
            )
        self.add(name, engine)
        return engine

    def add(self, name: str, engine: Engine) -> None:
        """Register an already-built engine (tests, embedded callers)."""
        self._engines[name] = engine
        self._session_factories[name] = sessionmaker(bind=engine)

    def get(self, name: str) -> Engine:
        if name not in self._engines:
            raise KeyError(f"Engine '{name}' not registered. Available: {list(self._engines.keys())}")
        return self._engines[name]

    def get_session_factory(self, name: str = "dashstore") -> sessionmaker:
        if name not in self._session_factories:
            raise KeyError(f"Session factory '{name}' not found. Available: {list(self._session_factories.keys())}")
        return self._session_factories[name]

    def get_session(self, name: str = "dashstore") -> Session:
        return self.get_session_factory(name)()

    def dispose(self, name: Optional[str] = None) -> None:
        """Dispose one or all engines and forget them."""
        names = [name] if name else list(self._engines.keys())
        for n in names:
            engine = self._engines.pop(n, None)
            self._session_factories.pop(n, None)
            if engine is not None:
                engine.dispose()

    @property
    def registered_names(self) -> list:
        return list(self._engines.keys())


# Global engine registry singleton
engine_registry = EngineRegistry()
