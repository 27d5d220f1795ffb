"""
dashstore Identity — The signed-in user as seen by the store.

The authorization collaborator supplies either an org role (legacy model)
or a per-org map of action → scopes (fine-grained model). The store only
reads it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List


class OrgRole(str, Enum):
    VIEWER = "Viewer"
    EDITOR = "Editor"
    ADMIN = "Admin"

    def includes(self, other: "OrgRole") -> bool:
        """Admin ⊇ Editor ⊇ Viewer."""
        if self is OrgRole.ADMIN:
            return True
        if self is OrgRole.EDITOR:
            return other in (OrgRole.EDITOR, OrgRole.VIEWER)
        return other is OrgRole.VIEWER


class PermissionType(IntEnum):
    VIEW = 1
    EDIT = 2
    ADMIN = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass
class SignedInUser:
    """Per-request identity. ``permissions`` maps org_id → action → scopes."""

    user_id: int
    org_id: int
    org_role: OrgRole = OrgRole.VIEWER
    login: str = ""
    is_server_admin: bool = False
    permissions: Dict[int, Dict[str, List[str]]] = field(default_factory=dict)

    def has_role(self, role: OrgRole) -> bool:
        if self.is_server_admin:
            return True
        return self.org_role.includes(role)

    def scopes_for(self, action: str) -> List[str]:
        return list(self.permissions.get(self.org_id, {}).get(action, []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "org_id": self.org_id,
            "org_role": self.org_role.value,
            "login": self.login,
        }
