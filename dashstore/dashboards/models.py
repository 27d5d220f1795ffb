"""
dashstore Dashboard DTOs — Pydantic models returned by and passed to the store.

The SQLAlchemy rows in dashstore.db.models never leave the store; callers
get these models instead.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dashstore.engine.context import OrgRole, PermissionType


def dashboard_url(uid: str, slug: str, sub_url: str = "") -> str:
    return f"{sub_url}/d/{uid}/{slug}"


def folder_url(uid: str, slug: str, sub_url: str = "") -> str:
    return f"{sub_url}/dashboards/f/{uid}/{slug}"


def dashboard_folder_url(is_folder: bool, uid: str, slug: str, sub_url: str = "") -> str:
    if is_folder:
        return folder_url(uid, slug, sub_url)
    return dashboard_url(uid, slug, sub_url)


class Dashboard(BaseModel):
    """A dashboard or folder. ``folder_id`` 0 means the root."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    uid: str
    slug: str
    title: str
    org_id: int
    folder_id: int = 0
    is_folder: bool = False
    has_acl: bool = False
    version: int = 1
    plugin_id: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @model_validator(mode="after")
    def _not_own_folder(self) -> "Dashboard":
        if self.folder_id and self.folder_id == self.id:
            raise ValueError(f"dashboard {self.id} cannot be its own folder")
        return self

    def url(self, sub_url: str = "") -> str:
        return dashboard_folder_url(self.is_folder, self.uid, self.slug, sub_url)


class DashboardRef(BaseModel):
    uid: str
    slug: str


class TagCloudItem(BaseModel):
    term: str
    count: int


class DashboardPermissionForUser(BaseModel):
    dashboard_id: int
    permission: PermissionType
    permission_name: str = ""

    @model_validator(mode="after")
    def _fill_name(self) -> "DashboardPermissionForUser":
        if not self.permission_name:
            self.permission_name = self.permission.label
        return self


# ---------------------------------------------------------------------------
# Queries and commands
# ---------------------------------------------------------------------------

class GetDashboardQuery(BaseModel):
    org_id: int
    id: int = 0
    slug: str = ""
    uid: str = ""


class DeleteDashboardCommand(BaseModel):
    id: int
    org_id: int
    force_delete_folder_rules: bool = False


class GetDashboardPermissionsForUserQuery(BaseModel):
    dashboard_ids: List[int] = Field(default_factory=list)
    org_id: int
    user_id: int
    org_role: OrgRole = OrgRole.VIEWER
