"""
dashstore Dashboard Store — Search, cascade delete, permission checks and lookups.

Handles:
- Permission-aware dashboard search (filters → builder → folded hits)
- Optional shadow comparison of the two permission strategies
- Cascading delete of dashboards and folders in one transaction
- Folder permission checks that reuse the search permission filter
- Single-row and batch lookups, tag cloud, per-user permissions

Every public method opens its own session: reads through session_scope(),
the delete through transactional_session().
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from sqlalchemy.orm import Session, sessionmaker

from dashstore.dashboards.delete import CascadeDeleter
from dashstore.dashboards.models import (
    Dashboard,
    DashboardPermissionForUser,
    DashboardRef,
    DeleteDashboardCommand,
    GetDashboardPermissionsForUserQuery,
    GetDashboardQuery,
    TagCloudItem,
)
from dashstore.db.models import DashboardRow
from dashstore.db.session import init_store_db, session_scope, transactional_session
from dashstore.engine.config import FEATURE_ACCESS_CONTROL, StoreConfig, get_store_config
from dashstore.engine.context import OrgRole, PermissionType, SignedInUser
from dashstore.engine.errors import (
    DashboardIdentifierNotSet,
    DashboardNotFound,
    FolderContainsAlertRules,
    StoreNotInitialized,
    ValidationFailed,
)
from dashstore.engine.logging import (
    FileLogger,
    configure_logging,
    log_dashboard_delete,
    log_delete_refused,
    log_search_shadow,
)
from dashstore.engine.metrics import MetricsRegistry
from dashstore.search.builder import SearchQueryBuilder, SQLBuilder
from dashstore.search.filters import (
    DashboardFilter,
    Filter,
    FolderFilter,
    OrgFilter,
    StarredFilter,
    TagsFilter,
    TitleFilter,
    TypeFilter,
)
from dashstore.search.models import FindDashboardsQuery, Hit, SearchProjection, make_query_result
from dashstore.security.permissions import build_permission_filter

logger = logging.getLogger("dashstore.dashboards.store")


class DashboardStore:
    """
    Persistence and query layer for dashboards and folders.

    Args:
        session_factory: sessionmaker bound to the store database.
        config:          StoreConfig (feature toggles, search defaults, sub URL).
        metrics:         Registry receiving the ``search_shadow`` counter.
        audit_logger:    Optional FileLogger for delete / shadow audit entries.
        deleter:         CascadeDeleter running the delete steps.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker],
        config: Optional[StoreConfig] = None,
        metrics: Optional[MetricsRegistry] = None,
        audit_logger: Optional[FileLogger] = None,
        deleter: Optional[CascadeDeleter] = None,
    ):
        if session_factory is None:
            raise StoreNotInitialized("DashboardStore needs a session factory. Call init_store_db() first.")
        self._session_factory = session_factory
        self.config = config or StoreConfig()
        self.metrics = metrics or MetricsRegistry()
        if audit_logger is None and self.config.logging.audit:
            audit_logger = FileLogger(self.config.logging.directory)
        self._audit = audit_logger
        self._deleter = deleter or CascadeDeleter()
        self._shadow_counter = self.metrics.counter(
            "search_shadow", label_names=("equal", "error"), subsystem="db_dashboard"
        )

    @classmethod
    def from_config(cls, config: Optional[StoreConfig] = None, create_tables: bool = False) -> DashboardStore:
        """
        Build a store from dashstore.yaml: logging level, database engine and
        audit log all come from ``config`` (the loaded file if None).
        """
        config = config or get_store_config()
        configure_logging(config.logging.level)
        factory = init_store_db(config.database, create_tables=create_tables)
        logger.info(f"Store {config.name} ({config.environment}) ready")
        return cls(factory, config=config)

    @property
    def audit_logger(self) -> Optional[FileLogger]:
        return self._audit

    @property
    def use_access_control(self) -> bool:
        return self.config.is_feature_enabled(FEATURE_ACCESS_CONTROL)

    @staticmethod
    def _dialect(session: Session) -> str:
        return session.get_bind().dialect.name

    # -------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------

    def build_search_filters(
        self,
        query: FindDashboardsQuery,
        use_access_control: bool,
        dialect: str = "sqlite",
    ) -> List[Filter]:
        """Translate a search request into the ordered filter list."""
        user = query.signed_in_user
        filters: List[Filter] = [
            build_permission_filter(user, query.permission, use_access_control),
        ]

        if query.sort is not None:
            filters.extend(query.sort.filters)

        if query.org_id != 0:
            filters.append(OrgFilter(org_id=query.org_id))
        elif user.org_id != 0:
            filters.append(OrgFilter(org_id=user.org_id))

        if query.tags:
            filters.append(TagsFilter(tags=tuple(query.tags)))

        if query.dashboard_ids:
            filters.append(DashboardFilter(ids=tuple(query.dashboard_ids)))

        if query.is_starred:
            filters.append(StarredFilter(user_id=user.user_id))

        if query.title:
            filters.append(TitleFilter(title=query.title, dialect=dialect))

        if query.type:
            filters.append(TypeFilter(type=query.type))

        if query.folder_ids:
            filters.append(FolderFilter(ids=tuple(query.folder_ids)))

        return filters

    def find_dashboards(
        self,
        query: FindDashboardsQuery,
        use_access_control: Optional[bool] = None,
    ) -> List[SearchProjection]:
        """Run the search statement and return its flat rows."""
        if use_access_control is None:
            use_access_control = self.use_access_control

        with session_scope(self._session_factory) as session:
            filters = self.build_search_filters(query, use_access_control, self._dialect(session))
            builder = SearchQueryBuilder(filters, default_limit=self.config.search.default_limit)
            statement = builder.to_text(query.limit, query.page)
            rows = session.execute(statement).mappings().all()

        return [SearchProjection.from_row(r) for r in rows]

    def search_dashboards(self, query: FindDashboardsQuery) -> List[Hit]:
        """Search and fold rows into one Hit per dashboard, in statement order."""
        rows = self.find_dashboards(query)
        hits = make_query_result(
            rows,
            sort_meta_name=query.sort_meta_name,
            sub_url=self.config.server.app_sub_url,
        )
        if self.config.search.shadow_compare:
            self._shadow_compare(query, hits)
        return hits

    def _shadow_compare(self, query: FindDashboardsQuery, primary: List[Hit]) -> None:
        """Run the other permission strategy and count whether both agree."""
        primary_ids = [h.id for h in primary]
        user = query.signed_in_user
        try:
            shadow_rows = self.find_dashboards(query, use_access_control=not self.use_access_control)
        except Exception as e:
            logger.warning(f"Shadow search failed for user {user.user_id}: {e}")
            self._shadow_counter.inc(equal="false", error="true")
            if self._audit:
                self._audit.write(log_search_shadow(user.org_id, user.user_id, False, primary_ids, error=str(e)))
            return

        shadow_ids = [h.id for h in make_query_result(shadow_rows)]
        equal = shadow_ids == primary_ids
        self._shadow_counter.inc(equal=str(equal).lower(), error="false")
        if not equal:
            logger.info(
                f"Shadow search mismatch for user {user.user_id}: "
                f"{len(primary_ids)} primary vs {len(shadow_ids)} shadow hits"
            )
        if self._audit:
            self._audit.write(log_search_shadow(user.org_id, user.user_id, equal, primary_ids, shadow_ids))

    # -------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------

    def delete_dashboard(self, command: DeleteDashboardCommand) -> None:
        """
        Delete a dashboard, or a folder with all of its dashboards, atomically.

        Raises:
            DashboardNotFound:        no dashboard with (id, org_id).
            FolderContainsAlertRules: folder owns alert rules and
                                      force_delete_folder_rules is False.
        Nothing is persisted when any step fails.
        """
        start = time.perf_counter()
        try:
            with transactional_session(self._session_factory) as session:
                target = self._deleter.run(session, command)
        except FolderContainsAlertRules as e:
            logger.info(f"Refused to delete folder {command.id}: {e.message}")
            if self._audit:
                self._audit.write(log_delete_refused(command.id, e.folder_uid or "", command.org_id, e.message))
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        dashboard = target.dashboard
        logger.info(
            f"Deleted {'folder' if dashboard.is_folder else 'dashboard'} {dashboard.uid} "
            f"(id={dashboard.id}, children={len(target.child_ids)}) in {duration_ms:.1f}ms"
        )
        if self._audit:
            self._audit.write(log_dashboard_delete(
                dashboard.id,
                dashboard.uid,
                dashboard.org_id,
                dashboard.is_folder,
                child_ids=target.child_ids,
                forced=command.force_delete_folder_rules,
                duration_ms=duration_ms,
            ))

    # -------------------------------------------------------------------
    # Folder permission checks
    # -------------------------------------------------------------------

    def has_edit_permission_in_folders(self, user: SignedInUser) -> bool:
        """True if the user can edit at least one folder."""
        return self._has_permission_in_folders(user, OrgRole.EDITOR, PermissionType.EDIT)

    def has_admin_permission_in_folders(self, user: SignedInUser) -> bool:
        """True if the user administers at least one folder."""
        return self._has_permission_in_folders(user, OrgRole.ADMIN, PermissionType.ADMIN)

    def _has_permission_in_folders(
        self,
        user: SignedInUser,
        role: OrgRole,
        level: PermissionType,
    ) -> bool:
        if user.has_role(role):
            return True

        builder = SQLBuilder()
        builder.write(
            "SELECT COUNT(dashboard.id) AS count FROM dashboard"
            " WHERE dashboard.org_id = ? AND dashboard.is_folder = ?",
            user.org_id,
            True,
        )
        builder.write_permission_filter(build_permission_filter(user, level, self.use_access_control))

        with session_scope(self._session_factory) as session:
            count = session.execute(builder.to_text()).scalar()
        return bool(count)

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------

    def get_dashboard(self, query: GetDashboardQuery) -> Dashboard:
        if query.id == 0 and not query.slug and not query.uid:
            raise DashboardIdentifierNotSet(org_id=query.org_id)

        with session_scope(self._session_factory) as session:
            q = session.query(DashboardRow).filter(DashboardRow.org_id == query.org_id)
            if query.id:
                q = q.filter(DashboardRow.id == query.id)
            if query.slug:
                q = q.filter(DashboardRow.slug == query.slug)
            if query.uid:
                q = q.filter(DashboardRow.uid == query.uid)
            row = q.first()
            if row is None:
                raise DashboardNotFound(
                    dashboard_id=query.id or None,
                    org_id=query.org_id,
                    uid=query.uid or None,
                    slug=query.slug or None,
                )
            return Dashboard.model_validate(row)

    def get_dashboards(self, dashboard_ids: List[int]) -> List[Dashboard]:
        """Batch fetch by id. An empty id list is rejected before any query."""
        if not dashboard_ids:
            raise ValidationFailed(field="dashboard_ids")

        with session_scope(self._session_factory) as session:
            rows = session.query(DashboardRow).filter(DashboardRow.id.in_(list(dashboard_ids))).all()
            return [Dashboard.model_validate(r) for r in rows]

    def get_dashboard_uid_by_id(self, dashboard_id: int) -> DashboardRef:
        with session_scope(self._session_factory) as session:
            row = session.execute(
                SQLBuilder().write("SELECT uid, slug FROM dashboard WHERE id = ?", dashboard_id).to_text()
            ).first()
        if row is None:
            raise DashboardNotFound(dashboard_id=dashboard_id)
        return DashboardRef(uid=row.uid, slug=row.slug)

    def get_dashboard_slug_by_id(self, dashboard_id: int) -> str:
        with session_scope(self._session_factory) as session:
            slug = session.execute(
                SQLBuilder().write("SELECT slug FROM dashboard WHERE id = ?", dashboard_id).to_text()
            ).scalar()
        if slug is None:
            raise DashboardNotFound(dashboard_id=dashboard_id)
        return slug

    def get_dashboard_tags(self, org_id: int) -> List[TagCloudItem]:
        sql = (
            "SELECT COUNT(*) AS count, term FROM dashboard"
            " INNER JOIN dashboard_tag ON dashboard_tag.dashboard_id = dashboard.id"
            " WHERE dashboard.org_id = ?"
            " GROUP BY term ORDER BY term"
        )
        with session_scope(self._session_factory) as session:
            rows = session.execute(SQLBuilder().write(sql, org_id).to_text()).mappings().all()
        return [TagCloudItem(term=r["term"], count=r["count"]) for r in rows]

    def get_dashboards_by_plugin_id(self, org_id: int, plugin_id: str) -> List[Dashboard]:
        with session_scope(self._session_factory) as session:
            rows = (
                session.query(DashboardRow)
                .filter(
                    DashboardRow.org_id == org_id,
                    DashboardRow.plugin_id == plugin_id,
                    DashboardRow.is_folder.is_(False),
                )
                .all()
            )
            return [Dashboard.model_validate(r) for r in rows]

    def get_dashboard_permissions_for_user(
        self,
        query: GetDashboardPermissionsForUserQuery,
    ) -> List[DashboardPermissionForUser]:
        """
        Highest permission the user holds on each of ``dashboard_ids``.

        Org admins get Admin on every id without a query. Otherwise a
        dashboard with its own ACL (has_acl) is judged by its (or its
        folder's) ACL entries for the user, their teams or their role; a
        dashboard without one falls back to the user's org role.
        """
        if not query.dashboard_ids:
            raise ValidationFailed(field="dashboard_ids")

        if query.org_role is OrgRole.ADMIN:
            return [
                DashboardPermissionForUser(dashboard_id=d, permission=PermissionType.ADMIN)
                for d in query.dashboard_ids
            ]

        builder = SQLBuilder()
        builder.write(
            "SELECT d.id AS dashboard_id, MAX(COALESCE(da.permission, pt.permission)) AS permission"
            " FROM dashboard AS d"
            " LEFT JOIN dashboard_acl AS da ON d.folder_id = da.dashboard_id OR d.id = da.dashboard_id"
            " LEFT JOIN team_member AS ugm ON ugm.team_id = da.team_id"
            " LEFT JOIN org_user AS ou ON ou.role = da.role AND ou.user_id = ?",
            query.user_id,
        )
        builder.write(
            " LEFT JOIN org_user AS ou_role ON ou_role.user_id = ? AND ou_role.org_id = ?",
            query.user_id,
            query.org_id,
        )
        builder.write(
            " LEFT JOIN (SELECT 1 AS permission, 'Viewer' AS role"
            " UNION SELECT 2 AS permission, 'Editor' AS role"
            " UNION SELECT 4 AS permission, 'Admin' AS role) pt ON ou_role.role = pt.role"
            f" WHERE d.id IN ({','.join('?' * len(query.dashboard_ids))})",
            *query.dashboard_ids,
        )
        builder.write(
            " AND d.org_id = ? AND ("
            "(d.has_acl = ? AND (da.user_id = ? OR ugm.user_id = ? OR ou.id IS NOT NULL))"
            " OR (d.has_acl = ? AND ou_role.id IS NOT NULL)"
            ") GROUP BY d.id ORDER BY d.id ASC",
            query.org_id,
            True,
            query.user_id,
            query.user_id,
            False,
        )

        with session_scope(self._session_factory) as session:
            rows = session.execute(builder.to_text()).mappings().all()
        return [
            DashboardPermissionForUser(
                dashboard_id=r["dashboard_id"],
                permission=PermissionType(int(r["permission"])),
            )
            for r in rows
        ]
