"""
dashstore Permission Filters — Row-level visibility predicates for dashboards.

Two strategies, one active per call (selected by the ``accesscontrol``
feature toggle):

Legacy (DashboardPermissionFilter):
    Org admins see everything. Other users see a dashboard when an ACL entry
    on the dashboard or its folder grants at least the requested level to
    the user, to one of the user's teams, or to an allowed role (Editors
    also count as Viewers). Dashboards whose folder (or, at the root, the
    dashboard itself) has no explicit ACL fall back to the built-in default
    entries stored with org_id = -1.

Fine-grained (AccessControlDashboardPermissionFilter):
    The user's precomputed action → scopes map decides. Scopes look like
    ``dashboards:id:7`` / ``folders:id:42``; ``*``, ``<kind>:*`` and
    ``<kind>:id:*`` are wildcards.

Search (dashstore.search.builder) and the folder permission checks in
DashboardStore both obtain their predicate from build_permission_filter(),
so the two can never disagree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from dashstore.engine.context import OrgRole, PermissionType, SignedInUser
from dashstore.search.filters import Filter, Fragment, placeholders

logger = logging.getLogger("dashstore.security.permissions")

ACTION_DASHBOARDS_READ = "dashboards:read"
ACTION_DASHBOARDS_WRITE = "dashboards:write"
ACTION_DASHBOARDS_CREATE = "dashboards:create"
ACTION_DASHBOARDS_PERMISSIONS_WRITE = "dashboards.permissions:write"
ACTION_FOLDERS_READ = "folders:read"
ACTION_FOLDERS_PERMISSIONS_WRITE = "folders.permissions:write"

# level → (action checked on dashboard/folder-of-dashboard scopes, action checked on folder scopes)
LEVEL_ACTIONS: Dict[PermissionType, Tuple[str, str]] = {
    PermissionType.VIEW: (ACTION_DASHBOARDS_READ, ACTION_FOLDERS_READ),
    PermissionType.EDIT: (ACTION_DASHBOARDS_WRITE, ACTION_DASHBOARDS_CREATE),
    PermissionType.ADMIN: (ACTION_DASHBOARDS_PERMISSIONS_WRITE, ACTION_FOLDERS_PERMISSIONS_WRITE),
}


def scope(kind: str, attribute: str, value: Any) -> str:
    """``scope("folders", "id", 42)`` → ``folders:id:42``."""
    return f"{kind}:{attribute}:{value}"


def dashboard_scope(dashboard_id: int) -> str:
    return scope("dashboards", "id", dashboard_id)


def folder_scope(folder_id: int) -> str:
    return scope("folders", "id", folder_id)


# ---------------------------------------------------------------------------
# Legacy role / ACL filter
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DashboardPermissionFilter(Filter):
    org_role: OrgRole
    org_id: int
    user_id: int
    permission_level: PermissionType = PermissionType.VIEW

    def allowed_roles(self) -> List[str]:
        roles = [self.org_role.value]
        if self.org_role is OrgRole.EDITOR:
            roles.append(OrgRole.VIEWER.value)
        return roles

    def where(self) -> Fragment:
        if self.org_role is OrgRole.ADMIN:
            return "", []

        roles = self.allowed_roles()
        role_list = placeholders(len(roles))

        sql = f"""(
		dashboard.id IN (
			SELECT DISTINCT dashboard_id FROM (
				SELECT d.id AS dashboard_id
					FROM dashboard AS d
					LEFT JOIN dashboard AS folder ON folder.id = d.folder_id
					LEFT JOIN dashboard_acl AS da ON
						da.dashboard_id = d.id OR
						da.dashboard_id = d.folder_id
					LEFT JOIN team_member AS ugm ON ugm.team_id = da.team_id
					WHERE
						d.org_id = ? AND
						da.permission >= ? AND
						(
							da.user_id = ? OR
							ugm.user_id = ? OR
							da.role IN ({role_list})
						)
				UNION
				SELECT d.id AS dashboard_id
					FROM dashboard AS d
					LEFT JOIN dashboard AS folder ON folder.id = d.folder_id
					LEFT JOIN dashboard_acl AS da ON
						(
							da.org_id = -1 AND (
								(folder.id IS NOT NULL AND folder.has_acl = ?) OR
								(folder.id IS NULL AND d.has_acl = ?)
							)
						)
					WHERE
						d.org_id = ? AND
						da.permission >= ? AND
						(
							da.user_id = ? OR
							da.role IN ({role_list})
						)
			) AS a
		)
	)"""

        level = int(self.permission_level)
        params: List[Any] = [self.org_id, level, self.user_id, self.user_id]
        params.extend(roles)
        params.extend([False, False])
        params.extend([self.org_id, level, self.user_id])
        params.extend(roles)
        return sql, params


# ---------------------------------------------------------------------------
# Fine-grained scope filter
# ---------------------------------------------------------------------------

def _scope_ids(scopes: List[str], kind: str) -> Optional[List[int]]:
    """Ids granted by ``scopes`` for ``kind``; None when a wildcard grants all."""
    wildcards = {"*", f"{kind}:*", f"{kind}:id:*"}
    prefix = f"{kind}:id:"
    ids: List[int] = []
    for s in scopes:
        if s in wildcards:
            return None
        if s.startswith(prefix):
            try:
                ids.append(int(s[len(prefix):]))
            except ValueError:
                logger.debug(f"Ignoring non-numeric scope {s!r}")
    return ids


def scope_filter(column: str, kind: str, action: str, user: SignedInUser) -> Fragment:
    """Predicate restricting ``column`` to the ids ``user`` holds ``action`` on."""
    ids = _scope_ids(user.scopes_for(action), kind)
    if ids is None:
        return "1 = 1", []
    if not ids:
        return "1 = 0", []
    return f"{column} IN ({placeholders(len(ids))})", ids


@dataclass(frozen=True)
class AccessControlDashboardPermissionFilter(Filter):
    user: SignedInUser
    permission_level: PermissionType = PermissionType.VIEW

    def where(self) -> Fragment:
        dashboard_action, folder_action = LEVEL_ACTIONS[self.permission_level]

        dash_sql, dash_params = scope_filter("dashboard.id", "dashboards", dashboard_action, self.user)
        in_folder_sql, in_folder_params = scope_filter("dashboard.folder_id", "folders", dashboard_action, self.user)
        folder_sql, folder_params = scope_filter("dashboard.id", "folders", folder_action, self.user)

        sql = (
            f"((({dash_sql} OR {in_folder_sql}) AND NOT dashboard.is_folder)"
            f" OR ({folder_sql} AND dashboard.is_folder))"
        )
        return sql, dash_params + in_folder_params + folder_params


def build_permission_filter(
    user: SignedInUser,
    permission_level: PermissionType,
    use_access_control: bool,
) -> Filter:
    """The single place the active permission strategy is chosen."""
    if use_access_control:
        return AccessControlDashboardPermissionFilter(user=user, permission_level=permission_level)
    return DashboardPermissionFilter(
        org_role=user.org_role,
        org_id=user.org_id,
        user_id=user.user_id,
        permission_level=permission_level,
    )
