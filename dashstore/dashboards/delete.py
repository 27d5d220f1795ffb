"""
dashstore Cascade Delete — Removes a dashboard or folder and everything hanging off it.

The delete is an explicit, ordered list of steps. Each step takes the open
transaction's Session and the DeleteTarget and either returns or raises;
CascadeDeleter runs them in order and lets the first error escape so the
enclosing transactional_session() rolls everything back.

Folder:
    collect children → children's legacy alerts → folder permission grants
    → children's permission grants → children's dependents (subquery-scoped)
    → alert-rule check (FolderContainsAlertRules unless forced)
Dashboard:
    own permission grants
Both, afterwards:
    own legacy alerts → own dependents and the dashboard row
Folder, last:
    child dashboard rows

Child rows go last because the subquery-scoped deletes select children
through ``dashboard.folder_id``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session

from dashstore.dashboards.models import Dashboard, DeleteDashboardCommand
from dashstore.db.models import DashboardRow
from dashstore.engine.errors import DashboardNotFound, FolderContainsAlertRules
from dashstore.search.builder import SQLBuilder
from dashstore.security.permissions import dashboard_scope, folder_scope

logger = logging.getLogger("dashstore.dashboards.delete")

# Dependents of one dashboard, in foreign-key friendly order
DASHBOARD_DEPENDENT_DELETES = (
    "DELETE FROM dashboard_tag WHERE dashboard_id = ?",
    "DELETE FROM star WHERE dashboard_id = ?",
    "DELETE FROM dashboard WHERE id = ?",
    "DELETE FROM playlist_item WHERE type = 'dashboard_by_id' AND value = ?",
    "DELETE FROM dashboard_version WHERE dashboard_id = ?",
    "DELETE FROM annotation WHERE dashboard_id = ?",
    "DELETE FROM dashboard_provisioning WHERE dashboard_id = ?",
    "DELETE FROM dashboard_acl WHERE dashboard_id = ?",
)

# Dependents of every dashboard in a folder, keyed by (org_id, folder_id)
_CHILDREN = "(SELECT id FROM dashboard WHERE org_id = ? AND folder_id = ?)"
FOLDER_CHILDREN_DEPENDENT_DELETES = (
    f"DELETE FROM dashboard_tag WHERE dashboard_id IN {_CHILDREN}",
    f"DELETE FROM star WHERE dashboard_id IN {_CHILDREN}",
    f"DELETE FROM dashboard_version WHERE dashboard_id IN {_CHILDREN}",
    f"DELETE FROM annotation WHERE dashboard_id IN {_CHILDREN}",
    f"DELETE FROM dashboard_provisioning WHERE dashboard_id IN {_CHILDREN}",
    f"DELETE FROM dashboard_acl WHERE dashboard_id IN {_CHILDREN}",
)

# Alert rule namespaces are folder uids, which are only unique within an org.
FOLDER_ALERT_RULE_DELETES = (
    "DELETE FROM alert_rule WHERE org_id = ? AND namespace_uid = ?",
    "DELETE FROM alert_rule_version WHERE rule_org_id = ? AND rule_namespace_uid = ?",
)


@dataclass
class DeleteTarget:
    """The loaded dashboard plus what the steps learn about it."""
    dashboard: Dashboard
    force_delete_folder_rules: bool = False
    child_ids: List[int] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.dashboard.is_folder


DeleteStep = Callable[[Session, DeleteTarget], None]


def execute(session: Session, sql: str, *params: Any):
    """Run one ``?``-placeholder statement in the session's transaction."""
    return session.execute(SQLBuilder().write(sql, *params).to_text())


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------

def load_target(session: Session, command: DeleteDashboardCommand) -> DeleteTarget:
    row: Optional[DashboardRow] = (
        session.query(DashboardRow)
        .filter(DashboardRow.id == command.id, DashboardRow.org_id == command.org_id)
        .one_or_none()
    )
    if row is None:
        raise DashboardNotFound(dashboard_id=command.id, org_id=command.org_id)
    return DeleteTarget(
        dashboard=Dashboard.model_validate(row),
        force_delete_folder_rules=command.force_delete_folder_rules,
    )


# ---------------------------------------------------------------------------
# Legacy alert definitions
# ---------------------------------------------------------------------------

def delete_alert_definitions(session: Session, dashboard_id: int) -> None:
    """Delete legacy alerts owned by ``dashboard_id`` and their state rows."""
    alert_ids = [r[0] for r in execute(session, "SELECT id FROM alert WHERE dashboard_id = ?", dashboard_id)]
    for alert_id in alert_ids:
        logger.debug(f"Deleting alert {alert_id}: dashboard {dashboard_id} deleted")
        execute(session, "DELETE FROM alert WHERE id = ?", alert_id)
        execute(session, "DELETE FROM annotation WHERE alert_id = ?", alert_id)
        execute(session, "DELETE FROM alert_notification_state WHERE alert_id = ?", alert_id)
        execute(session, "DELETE FROM alert_rule_tag WHERE alert_id = ?", alert_id)


# ---------------------------------------------------------------------------
# Folder steps
# ---------------------------------------------------------------------------

def collect_children(session: Session, target: DeleteTarget) -> None:
    rows = execute(session, "SELECT id FROM dashboard WHERE folder_id = ?", target.dashboard.id)
    target.child_ids = [r[0] for r in rows]


def delete_children_alert_definitions(session: Session, target: DeleteTarget) -> None:
    for child_id in target.child_ids:
        delete_alert_definitions(session, child_id)


def delete_folder_permissions(session: Session, target: DeleteTarget) -> None:
    execute(session, "DELETE FROM permission WHERE scope = ?", folder_scope(target.dashboard.id))


def delete_children_permissions(session: Session, target: DeleteTarget) -> None:
    for child_id in target.child_ids:
        execute(session, "DELETE FROM permission WHERE scope = ?", dashboard_scope(child_id))


def delete_children_dependents(session: Session, target: DeleteTarget) -> None:
    if not target.child_ids:
        return
    for sql in FOLDER_CHILDREN_DEPENDENT_DELETES:
        execute(session, sql, target.dashboard.org_id, target.dashboard.id)


def folder_has_alert_rules(session: Session, org_id: int, folder_uid: str) -> bool:
    row = execute(
        session,
        "SELECT id FROM alert_rule WHERE org_id = ? AND namespace_uid = ? LIMIT 1",
        org_id,
        folder_uid,
    ).first()
    return row is not None


def check_folder_alert_rules(session: Session, target: DeleteTarget) -> None:
    """Refuse to orphan alert rules unless forced; when forced, delete them."""
    folder = target.dashboard
    if not folder_has_alert_rules(session, folder.org_id, folder.uid):
        return
    if not target.force_delete_folder_rules:
        raise FolderContainsAlertRules(
            dashboard_id=folder.id,
            org_id=folder.org_id,
            folder_uid=folder.uid,
        )
    logger.info(f"Force-deleting alert rules of folder {folder.uid} (id={folder.id})")
    for sql in FOLDER_ALERT_RULE_DELETES:
        execute(session, sql, folder.org_id, folder.uid)


def delete_children(session: Session, target: DeleteTarget) -> None:
    execute(session, "DELETE FROM dashboard WHERE folder_id = ?", target.dashboard.id)


# ---------------------------------------------------------------------------
# Dashboard steps
# ---------------------------------------------------------------------------

def delete_dashboard_permissions(session: Session, target: DeleteTarget) -> None:
    execute(session, "DELETE FROM permission WHERE scope = ?", dashboard_scope(target.dashboard.id))


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------

def delete_own_alert_definitions(session: Session, target: DeleteTarget) -> None:
    delete_alert_definitions(session, target.dashboard.id)


def delete_dependents(session: Session, target: DeleteTarget) -> None:
    dashboard_id = target.dashboard.id
    for sql in DASHBOARD_DEPENDENT_DELETES:
        # playlist_item.value is text
        value = str(dashboard_id) if "playlist_item" in sql else dashboard_id
        execute(session, sql, value)


FOLDER_STEPS: List[DeleteStep] = [
    collect_children,
    delete_children_alert_definitions,
    delete_folder_permissions,
    delete_children_permissions,
    delete_children_dependents,
    check_folder_alert_rules,
    delete_own_alert_definitions,
    delete_dependents,
    delete_children,
]

DASHBOARD_STEPS: List[DeleteStep] = [
    delete_dashboard_permissions,
    delete_own_alert_definitions,
    delete_dependents,
]


class CascadeDeleter:
    """
    Runs the delete steps for one command inside the caller's transaction.

    The caller owns the transaction (see DashboardStore.delete_dashboard);
    CascadeDeleter never commits or rolls back.
    """

    def __init__(
        self,
        folder_steps: Optional[List[DeleteStep]] = None,
        dashboard_steps: Optional[List[DeleteStep]] = None,
    ):
        self.folder_steps = list(folder_steps if folder_steps is not None else FOLDER_STEPS)
        self.dashboard_steps = list(dashboard_steps if dashboard_steps is not None else DASHBOARD_STEPS)

    def steps_for(self, target: DeleteTarget) -> List[DeleteStep]:
        return self.folder_steps if target.is_folder else self.dashboard_steps

    def run(self, session: Session, command: DeleteDashboardCommand) -> DeleteTarget:
        target = load_target(session, command)
        for step in self.steps_for(target):
            logger.debug(f"Delete step {step.__name__} for dashboard {target.dashboard.id}")
            step(session, target)
        return target
