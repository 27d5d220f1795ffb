"""
dashstore Sort Options — Named orderings selectable by search callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dashstore.engine.errors import ValidationFailed
from dashstore.search.filters import Filter, TitleSorter, VersionSorter


@dataclass(frozen=True)
class SortOption:
    name: str
    display_name: str
    description: str = ""
    index: int = 0
    meta_name: str = ""
    filters: List[Filter] = field(default_factory=list)


SORT_ALPHA_ASC = SortOption(
    name="alpha-asc",
    display_name="Alphabetically (A–Z)",
    description="Sort results in an alphabetically ascending order",
    index=0,
    filters=[TitleSorter()],
)

SORT_ALPHA_DESC = SortOption(
    name="alpha-desc",
    display_name="Alphabetically (Z–A)",
    description="Sort results in an alphabetically descending order",
    index=1,
    filters=[TitleSorter(descending=True)],
)

SORT_VERSION_DESC = SortOption(
    name="version-desc",
    display_name="Most versions",
    description="Sort results by number of saved versions, highest first",
    index=2,
    meta_name="version",
    filters=[VersionSorter(descending=True)],
)

SORT_VERSION_ASC = SortOption(
    name="version-asc",
    display_name="Fewest versions",
    description="Sort results by number of saved versions, lowest first",
    index=3,
    meta_name="version",
    filters=[VersionSorter(descending=False)],
)

SORT_OPTIONS: Dict[str, SortOption] = {
    o.name: o for o in (SORT_ALPHA_ASC, SORT_ALPHA_DESC, SORT_VERSION_DESC, SORT_VERSION_ASC)
}


def get_sort_option(name: Optional[str]) -> Optional[SortOption]:
    """Resolve a sort name; empty means the builder's default ordering."""
    if not name:
        return None
    try:
        return SORT_OPTIONS[name]
    except KeyError:
        raise ValidationFailed(
            f"Unknown sort option '{name}'",
            field="sort",
            available=sorted(SORT_OPTIONS),
        ) from None


def sort_options() -> List[SortOption]:
    return sorted(SORT_OPTIONS.values(), key=lambda o: o.index)
