"""
dashstore Models — SQLAlchemy tables for dashboards, folders and their dependents.

Tables defined here:
1.  dashboard               — Dashboards and folders (is_folder)
2.  dashboard_tag           — Dashboard ↔ tag term
3.  star                    — User stars
4.  dashboard_version       — Version history
5.  annotation              — Annotations (dashboard or legacy alert owned)
6.  dashboard_provisioning  — Provisioning records
7.  dashboard_acl           — Legacy ACL entries (org_id = -1 rows are defaults)
8.  permission              — Fine-grained action/scope grants
9.  playlist_item           — Playlist entries referencing dashboards
10. team_member             — Team membership
11. org_user                — Org membership and role
12. alert                   — Legacy alert definitions (owned by a dashboard)
13. alert_notification_state
14. alert_rule_tag
15. alert_rule              — Unified alert rules (namespace_uid = folder uid)
16. alert_rule_version

No foreign keys are declared: referential cleanup is the job of the cascade
delete in dashstore.dashboards.delete.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from dashstore.db.base import Base, TimestampMixin


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# 1. Dashboards and folders
# ---------------------------------------------------------------------------

class DashboardRow(Base, TimestampMixin):
    __tablename__ = "dashboard"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uid = Column(String(40), nullable=False)
    slug = Column(String(189), nullable=False)
    title = Column(String(189), nullable=False)
    org_id = Column(Integer, nullable=False)
    folder_id = Column(Integer, nullable=False, default=0)
    is_folder = Column(Boolean, nullable=False, default=False)
    has_acl = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    plugin_id = Column(String(189), nullable=True)
    data = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("org_id", "uid", name="uq_dashboard_org_id_uid"),
        UniqueConstraint("org_id", "folder_id", "title", name="uq_dashboard_org_id_folder_id_title"),
        Index("idx_dashboard_org_id", "org_id"),
        Index("idx_dashboard_folder_id", "folder_id"),
        Index("idx_dashboard_is_folder", "is_folder"),
    )

    def __repr__(self) -> str:
        kind = "Folder" if self.is_folder else "Dashboard"
        return f"<{kind}(id={self.id}, uid='{self.uid}', title='{self.title}')>"


class DashboardTag(Base):
    __tablename__ = "dashboard_tag"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dashboard_id = Column(Integer, nullable=False)
    term = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_dashboard_tag_dashboard_id", "dashboard_id"),
        Index("idx_dashboard_tag_term", "term"),
    )


class Star(Base):
    __tablename__ = "star"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    dashboard_id = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "dashboard_id", name="uq_star_user_id_dashboard_id"),
    )


class DashboardVersion(Base):
    __tablename__ = "dashboard_version"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dashboard_id = Column(Integer, nullable=False, index=True)
    parent_version = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)
    created = Column(DateTime(timezone=True), default=_now, nullable=False)
    created_by = Column(Integer, nullable=True)
    message = Column(Text, nullable=True)
    data = Column(Text, nullable=True)


class Annotation(Base):
    __tablename__ = "annotation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(Integer, nullable=False)
    dashboard_id = Column(Integer, nullable=True, index=True)
    panel_id = Column(Integer, nullable=True)
    alert_id = Column(Integer, nullable=True, index=True)
    text = Column(Text, nullable=False, default="")
    epoch = Column(BigInteger, nullable=False, default=0)


class DashboardProvisioning(Base):
    __tablename__ = "dashboard_provisioning"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dashboard_id = Column(Integer, nullable=False, index=True)
    name = Column(String(150), nullable=False)
    external_id = Column(Text, nullable=False)
    check_sum = Column(String(32), nullable=True)
    updated = Column(Integer, nullable=False, default=0)


# ---------------------------------------------------------------------------
# 7-8. Permission grants
# ---------------------------------------------------------------------------

class DashboardAcl(Base, TimestampMixin):
    __tablename__ = "dashboard_acl"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(Integer, nullable=False)
    dashboard_id = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=True)
    team_id = Column(Integer, nullable=True)
    role = Column(String(20), nullable=True)
    permission = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_dashboard_acl_dashboard_id", "dashboard_id"),
        Index("idx_dashboard_acl_user_id", "user_id"),
        Index("idx_dashboard_acl_team_id", "team_id"),
    )


class Permission(Base, TimestampMixin):
    __tablename__ = "permission"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, nullable=False)
    action = Column(String(190), nullable=False)
    scope = Column(String(190), nullable=False)

    __table_args__ = (
        Index("idx_permission_scope", "scope"),
    )


class PlaylistItem(Base):
    __tablename__ = "playlist_item"

    id = Column(Integer, primary_key=True, autoincrement=True)
    playlist_id = Column(Integer, nullable=False)
    type = Column(String(255), nullable=False)
    value = Column(Text, nullable=False)
    title = Column(Text, nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)


class TeamMember(Base):
    __tablename__ = "team_member"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(Integer, nullable=False)
    team_id = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("org_id", "team_id", "user_id", name="uq_team_member"),
    )


class OrgUser(Base):
    __tablename__ = "org_user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=False)
    role = Column(String(20), nullable=False)

    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_user"),
    )


# ---------------------------------------------------------------------------
# 12-16. Alerting (read and deleted by name only)
# ---------------------------------------------------------------------------

class Alert(Base):
    __tablename__ = "alert"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(Integer, nullable=False)
    dashboard_id = Column(Integer, nullable=False, index=True)
    panel_id = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)


class AlertNotificationState(Base):
    __tablename__ = "alert_notification_state"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(Integer, nullable=False)
    alert_id = Column(Integer, nullable=False, index=True)
    notifier_id = Column(Integer, nullable=False)
    state = Column(String(50), nullable=False)


class AlertRuleTag(Base):
    __tablename__ = "alert_rule_tag"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_id = Column(Integer, nullable=False, index=True)
    tag_id = Column(Integer, nullable=False)


class AlertRule(Base):
    __tablename__ = "alert_rule"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(Integer, nullable=False)
    uid = Column(String(40), nullable=False)
    title = Column(String(190), nullable=False)
    namespace_uid = Column(String(40), nullable=False, index=True)
    rule_group = Column(String(190), nullable=False)


class AlertRuleVersion(Base):
    __tablename__ = "alert_rule_version"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rule_org_id = Column(Integer, nullable=False)
    rule_uid = Column(String(40), nullable=False)
    rule_namespace_uid = Column(String(40), nullable=False, index=True)
    rule_group = Column(String(190), nullable=False)
    version = Column(Integer, nullable=False, default=1)
