"""
dashstore Error Hierarchy — Structured exceptions for the dashboard store.

Every error carries its identifying context (org_id, dashboard_id, uid …)
so callers and audit logs can serialise it without string parsing.

Hierarchy:
    DashStoreError
    ├── DashboardNotFound          — Dashboard / folder absent
    ├── ValidationFailed           — Missing identifying fields, empty id sets
    │   └── DashboardIdentifierNotSet
    ├── FolderContainsAlertRules   — Folder delete refused, needs force flag
    └── StoreNotInitialized        — No session factory configured

Storage-layer errors (sqlalchemy.exc.SQLAlchemyError) are never wrapped.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class DashStoreError(Exception):
    """Base error for all dashboard store failures."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.org_id: Optional[int] = context.get("org_id")
        self.dashboard_id: Optional[int] = context.get("dashboard_id")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "org_id": self.org_id,
            "dashboard_id": self.dashboard_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("org_id", "dashboard_id")
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.dashboard_id is not None:
            parts.append(f"dashboard_id={self.dashboard_id}")
        if self.org_id is not None:
            parts.append(f"org_id={self.org_id}")
        return " | ".join(parts)


class DashboardNotFound(DashStoreError):
    """Dashboard or folder does not exist in the given organization."""

    def __init__(self, message: str = "Dashboard not found", **context: Any):
        self.uid: Optional[str] = context.get("uid")
        self.slug: Optional[str] = context.get("slug")
        super().__init__(message, **context)


class ValidationFailed(DashStoreError):
    """Command or query is missing required identifying fields."""

    def __init__(self, message: str = "Command missing required fields", **context: Any):
        self.field: Optional[str] = context.get("field")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["field"] = self.field
        return d


class DashboardIdentifierNotSet(ValidationFailed):
    """Lookup without id, slug or uid."""

    def __init__(self, message: str = "Unique identifier needed to find dashboard", **context: Any):
        super().__init__(message, **context)


class FolderContainsAlertRules(DashStoreError):
    """
    Folder still owns alert rules and the delete was not forced.

    Callers surface this distinctly so a UI can offer "delete anyway",
    which re-issues the delete with force_delete_folder_rules=True.
    """

    def __init__(
        self,
        message: str = "folder cannot be deleted: folder contains alert rules",
        **context: Any,
    ):
        self.folder_uid: Optional[str] = context.get("folder_uid")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["folder_uid"] = self.folder_uid
        return d


class StoreNotInitialized(DashStoreError):
    """The store database has not been initialised."""
    pass
