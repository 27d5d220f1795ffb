"""
dashstore Search Models — Query input, flat projection rows and folded hits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from dashstore.dashboards.models import dashboard_folder_url, folder_url
from dashstore.engine.context import PermissionType, SignedInUser
from dashstore.search.filters import HIT_TYPE_DASHBOARD, HIT_TYPE_FOLDER
from dashstore.search.sorting import SortOption


class HitType(str, Enum):
    DASHBOARD = HIT_TYPE_DASHBOARD
    FOLDER = HIT_TYPE_FOLDER


@dataclass
class FindDashboardsQuery:
    """Caller-facing search request. org_id 0 means the user's own org."""

    signed_in_user: SignedInUser
    org_id: int = 0
    title: str = ""
    tags: List[str] = field(default_factory=list)
    type: str = ""
    folder_ids: List[int] = field(default_factory=list)
    dashboard_ids: List[int] = field(default_factory=list)
    is_starred: bool = False
    sort: Optional[SortOption] = None
    permission: PermissionType = PermissionType.VIEW
    limit: int = 0
    page: int = 0

    @property
    def sort_meta_name(self) -> str:
        return self.sort.meta_name if self.sort else ""


class SearchProjection(BaseModel):
    """One row of the search statement: a dashboard paired with one tag term."""

    id: int
    uid: str
    title: str
    slug: str
    term: Optional[str] = None
    is_folder: bool = False
    folder_id: Optional[int] = 0
    folder_uid: Optional[str] = None
    folder_slug: Optional[str] = None
    folder_title: Optional[str] = None
    sort_meta: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SearchProjection":
        return cls(**{k: row[k] for k in row.keys() if k in cls.model_fields})


class Hit(BaseModel):
    id: int
    uid: str
    title: str
    uri: str
    url: str
    type: HitType
    tags: List[str] = Field(default_factory=list)
    folder_id: int = 0
    folder_uid: str = ""
    folder_title: str = ""
    folder_url: str = ""
    sort_meta: int = 0
    sort_meta_name: str = ""


def hit_type(item: SearchProjection) -> HitType:
    return HitType.FOLDER if item.is_folder else HitType.DASHBOARD


def make_query_result(
    rows: Iterable[SearchProjection],
    sort_meta_name: str = "",
    sub_url: str = "",
) -> List[Hit]:
    """
    Fold (dashboard, term) rows into one Hit per dashboard id.

    Hits keep first-seen order, which is the statement's ORDER BY. Every
    non-empty term row appends to the hit's tags, so duplicate terms coming
    from the join are kept as-is.
    """
    hits: Dict[int, Hit] = {}

    for item in rows:
        hit = hits.get(item.id)
        if hit is None:
            folder_id = item.folder_id or 0
            hit = Hit(
                id=item.id,
                uid=item.uid,
                title=item.title,
                uri=f"db/{item.slug}",
                url=dashboard_folder_url(item.is_folder, item.uid, item.slug, sub_url),
                type=hit_type(item),
                folder_id=folder_id,
                folder_uid=item.folder_uid or "",
                folder_title=item.folder_title or "",
            )
            if folder_id > 0:
                hit.folder_url = folder_url(item.folder_uid or "", item.folder_slug or "", sub_url)
            if sort_meta_name:
                hit.sort_meta = item.sort_meta or 0
                hit.sort_meta_name = sort_meta_name
            hits[item.id] = hit
        if item.term:
            hit.tags.append(item.term)

    return list(hits.values())
