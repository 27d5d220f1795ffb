"""
dashstore Search Filters — Predicate contributions for the search query builder.

Every filter is a small frozen dataclass. A filter may contribute any of:

    join()      a LEFT OUTER JOIN, de-duplicated by its target
    where()     one predicate fragment (ANDed) and its parameters
    group_by()  a GROUP BY key, emitted once however many filters share it
    having()    a HAVING predicate (ANDed) and its parameters
    order_by()  an ORDER BY column (sorters only)
    select()    an extra projected column (sort meta)

Fragments use ``?`` placeholders; parameters are returned in textual order.
The variant set is closed: organization, tags, title, type, folder,
dashboard ids, starred, sorters and the two permission filters in
dashstore.security.permissions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

HIT_TYPE_FOLDER = "dash-folder"
HIT_TYPE_DASHBOARD = "dash-db"

Fragment = Tuple[str, List[Any]]


def placeholders(count: int) -> str:
    """``?,?,?`` for an IN list of ``count`` values."""
    return ",".join("?" * count)


def dialect_like_operator(dialect: str) -> str:
    """Case-insensitive LIKE for the given SQLAlchemy dialect name."""
    return "ILIKE" if dialect == "postgresql" else "LIKE"


@dataclass(frozen=True)
class Join:
    target: str
    condition: str

    def render(self) -> str:
        return f" LEFT OUTER JOIN {self.target} ON {self.condition} "


@dataclass(frozen=True)
class Contribution:
    """Everything one filter adds to the statement."""
    join: Optional[Join] = None
    where: str = ""
    where_params: List[Any] = field(default_factory=list)
    group_by: str = ""
    having: str = ""
    having_params: List[Any] = field(default_factory=list)
    order_by: str = ""
    select: str = ""


class Filter:
    """Base filter — contributes nothing unless a hook is overridden."""

    def join(self) -> Optional[Join]:
        return None

    def where(self) -> Fragment:
        return "", []

    def group_by(self) -> str:
        return ""

    def having(self) -> Fragment:
        return "", []

    def order_by(self) -> str:
        return ""

    def select(self) -> str:
        return ""

    @property
    def is_sorter(self) -> bool:
        return bool(self.order_by())

    def contribution(self) -> Contribution:
        where_sql, where_params = self.where()
        having_sql, having_params = self.having()
        return Contribution(
            join=self.join(),
            where=where_sql,
            where_params=list(where_params),
            group_by=self.group_by(),
            having=having_sql,
            having_params=list(having_params),
            order_by=self.order_by(),
            select=self.select(),
        )


# ---------------------------------------------------------------------------
# Predicate filters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OrgFilter(Filter):
    org_id: int

    def where(self) -> Fragment:
        return "dashboard.org_id = ?", [self.org_id]


@dataclass(frozen=True)
class TagsFilter(Filter):
    """Dashboards carrying every one of ``tags``."""
    tags: Tuple[str, ...]

    def join(self) -> Optional[Join]:
        return Join("dashboard_tag", "dashboard_tag.dashboard_id = dashboard.id")

    def where(self) -> Fragment:
        return f"dashboard_tag.term IN ({placeholders(len(self.tags))})", list(self.tags)

    def group_by(self) -> str:
        return "dashboard.id"

    def having(self) -> Fragment:
        return "COUNT(dashboard.id) >= ?", [len(self.tags)]


def merge_tag_filters(filters: Sequence[Filter]) -> List[Filter]:
    """
    Collapse every TagsFilter into one over the union of their tags.

    The merged filter takes the place of the first TagsFilter. Separate
    ``term IN`` predicates would each see only one joined tag row, so two
    tag filters could never match the same dashboard.
    """
    tag_filters = [f for f in filters if isinstance(f, TagsFilter)]
    if len(tag_filters) < 2:
        return list(filters)

    tags: List[str] = []
    for f in tag_filters:
        tags.extend(t for t in f.tags if t not in tags)
    merged = TagsFilter(tags=tuple(tags))

    result: List[Filter] = []
    for f in filters:
        if f is tag_filters[0]:
            result.append(merged)
        elif not isinstance(f, TagsFilter):
            result.append(f)
    return result


@dataclass(frozen=True)
class TitleFilter(Filter):
    title: str
    dialect: str = "sqlite"

    def where(self) -> Fragment:
        op = dialect_like_operator(self.dialect)
        return f"dashboard.title {op} ?", [f"%{self.title}%"]


@dataclass(frozen=True)
class TypeFilter(Filter):
    """``dash-folder`` or ``dash-db``; any other value filters nothing."""
    type: str

    def where(self) -> Fragment:
        if self.type == HIT_TYPE_FOLDER:
            return "dashboard.is_folder = ?", [True]
        if self.type == HIT_TYPE_DASHBOARD:
            return "dashboard.is_folder = ?", [False]
        return "", []


@dataclass(frozen=True)
class FolderFilter(Filter):
    ids: Tuple[int, ...]

    def where(self) -> Fragment:
        return f"dashboard.folder_id IN ({placeholders(len(self.ids))})", list(self.ids)


@dataclass(frozen=True)
class DashboardFilter(Filter):
    ids: Tuple[int, ...]

    def where(self) -> Fragment:
        return f"dashboard.id IN ({placeholders(len(self.ids))})", list(self.ids)


@dataclass(frozen=True)
class StarredFilter(Filter):
    user_id: int

    def where(self) -> Fragment:
        return (
            "(SELECT COUNT(*) FROM star WHERE star.dashboard_id = dashboard.id AND star.user_id = ?) > 0",
            [self.user_id],
        )


# ---------------------------------------------------------------------------
# Sorters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TitleSorter(Filter):
    descending: bool = False

    def order_by(self) -> str:
        return "dashboard.title DESC" if self.descending else "dashboard.title ASC"


@dataclass(frozen=True)
class VersionSorter(Filter):
    """Orders by saved version count; exposes it as the hit's sort meta."""
    descending: bool = True

    def order_by(self) -> str:
        return "dashboard.version DESC" if self.descending else "dashboard.version ASC"

    def select(self) -> str:
        return "dashboard.version AS sort_meta"
