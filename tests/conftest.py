"""
dashstore Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v

Integration-style tests run against an in-memory SQLite database shared
through a StaticPool, so every session sees the same data.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable, List, Optional

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import dashstore.db.models as m
from dashstore.dashboards.store import DashboardStore
from dashstore.db.base import Base
from dashstore.engine.config import StoreConfig
from dashstore.engine.context import OrgRole, SignedInUser


@pytest.fixture(autouse=True)
def _isolate_config():
    """Reset the global config singleton between tests."""
    import dashstore.engine.config as cfg_mod

    cfg_mod._store_config = None


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory with the built-in default ACL entries seeded."""
    factory = sessionmaker(bind=engine)
    with factory() as session:
        session.add_all([
            m.DashboardAcl(org_id=-1, dashboard_id=-1, role="Viewer", permission=1),
            m.DashboardAcl(org_id=-1, dashboard_id=-1, role="Editor", permission=2),
        ])
        session.commit()
    return factory


class StatementRecorder:
    """Collects every SQL statement sent to the engine."""

    def __init__(self, engine):
        self.statements: List[str] = []
        event.listen(engine, "before_cursor_execute", self._record)

    def _record(self, conn, cursor, statement, parameters, context, executemany):
        self.statements.append(statement)

    def matching(self, fragment: str) -> List[str]:
        return [s for s in self.statements if fragment in s]

    def clear(self) -> None:
        self.statements.clear()


@pytest.fixture
def recorder(engine):
    return StatementRecorder(engine)


class Seeder:
    """Inserts rows through short committed sessions."""

    def __init__(self, factory):
        self._factory = factory

    def _add(self, obj: Any) -> Any:
        with self._factory() as session:
            session.add(obj)
            session.commit()
            session.refresh(obj)
            return obj

    def dashboard(
        self,
        title: str,
        org_id: int = 1,
        folder_id: int = 0,
        is_folder: bool = False,
        has_acl: bool = False,
        uid: Optional[str] = None,
        tags: Iterable[str] = (),
        version: int = 1,
        plugin_id: Optional[str] = None,
    ) -> int:
        row = self._add(m.DashboardRow(
            uid=uid or uuid.uuid4().hex[:9],
            slug=title.lower().replace(" ", "-"),
            title=title,
            org_id=org_id,
            folder_id=folder_id,
            is_folder=is_folder,
            has_acl=has_acl,
            version=version,
            plugin_id=plugin_id,
        ))
        for term in tags:
            self._add(m.DashboardTag(dashboard_id=row.id, term=term))
        return row.id

    def folder(self, title: str, org_id: int = 1, has_acl: bool = False, uid: Optional[str] = None) -> int:
        return self.dashboard(title, org_id=org_id, is_folder=True, has_acl=has_acl, uid=uid)

    def acl(
        self,
        dashboard_id: int,
        permission: int,
        org_id: int = 1,
        user_id: Optional[int] = None,
        team_id: Optional[int] = None,
        role: Optional[str] = None,
    ) -> None:
        self._add(m.DashboardAcl(
            org_id=org_id,
            dashboard_id=dashboard_id,
            user_id=user_id,
            team_id=team_id,
            role=role,
            permission=permission,
        ))

    def team_member(self, team_id: int, user_id: int, org_id: int = 1) -> None:
        self._add(m.TeamMember(org_id=org_id, team_id=team_id, user_id=user_id))

    def org_user(self, user_id: int, role: str, org_id: int = 1) -> None:
        self._add(m.OrgUser(org_id=org_id, user_id=user_id, role=role))

    def star(self, user_id: int, dashboard_id: int) -> None:
        self._add(m.Star(user_id=user_id, dashboard_id=dashboard_id))

    def permission(self, scope: str, action: str = "dashboards:read", role_id: int = 1) -> None:
        self._add(m.Permission(role_id=role_id, action=action, scope=scope))

    def alert_rule(self, namespace_uid: str, org_id: int = 1) -> None:
        rule_uid = uuid.uuid4().hex[:9]
        self._add(m.AlertRule(
            org_id=org_id,
            uid=rule_uid,
            title=f"rule {rule_uid}",
            namespace_uid=namespace_uid,
            rule_group="default",
        ))
        self._add(m.AlertRuleVersion(
            rule_org_id=org_id,
            rule_uid=rule_uid,
            rule_namespace_uid=namespace_uid,
            rule_group="default",
        ))

    def dependents(self, dashboard_id: int, org_id: int = 1) -> None:
        """One row in every table a dashboard delete must clean up."""
        self._add(m.DashboardTag(dashboard_id=dashboard_id, term=f"t{dashboard_id}"))
        self._add(m.Star(user_id=99, dashboard_id=dashboard_id))
        self._add(m.DashboardVersion(dashboard_id=dashboard_id, version=1))
        self._add(m.Annotation(org_id=org_id, dashboard_id=dashboard_id, text="note"))
        self._add(m.DashboardProvisioning(dashboard_id=dashboard_id, name="default", external_id="/x.json"))
        self._add(m.DashboardAcl(org_id=org_id, dashboard_id=dashboard_id, user_id=99, permission=1))
        self._add(m.PlaylistItem(playlist_id=1, type="dashboard_by_id", value=str(dashboard_id)))
        self._add(m.Permission(role_id=1, action="dashboards:read", scope=f"dashboards:id:{dashboard_id}"))
        alert = self._add(m.Alert(org_id=org_id, dashboard_id=dashboard_id, name=f"alert {dashboard_id}"))
        self._add(m.Annotation(org_id=org_id, alert_id=alert.id, text="alert fired"))
        self._add(m.AlertNotificationState(org_id=org_id, alert_id=alert.id, notifier_id=1, state="ok"))
        self._add(m.AlertRuleTag(alert_id=alert.id, tag_id=1))

    def count(self, sql: str, **params: Any) -> int:
        with self._factory() as session:
            return session.execute(text(sql), params).scalar()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


# ---------------------------------------------------------------------------
# Store and users
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    return StoreConfig()


@pytest.fixture
def store(session_factory, config):
    return DashboardStore(session_factory, config=config)


@pytest.fixture
def viewer():
    return SignedInUser(user_id=10, org_id=1, org_role=OrgRole.VIEWER, login="viewer")


@pytest.fixture
def editor():
    return SignedInUser(user_id=11, org_id=1, org_role=OrgRole.EDITOR, login="editor")


@pytest.fixture
def admin():
    return SignedInUser(user_id=12, org_id=1, org_role=OrgRole.ADMIN, login="admin")
