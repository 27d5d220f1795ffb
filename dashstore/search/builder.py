"""
dashstore Search Query Builder — Composes filters into one paginated statement.

The statement has two layers:

    SELECT <hit columns> [, sort meta]
    FROM (
        SELECT dashboard.id FROM dashboard <joins>
        WHERE <filter predicates ANDed>
        [GROUP BY ... HAVING ...] ORDER BY ... LIMIT n OFFSET m
    ) AS ids
    INNER JOIN dashboard ON ids.id = dashboard.id
    LEFT OUTER JOIN dashboard AS folder ...
    LEFT OUTER JOIN dashboard_tag ...
    ORDER BY ...

The inner query pages over dashboard ids; the outer query fans each id out
into one row per tag term.

SQL is assembled with ``?`` placeholders and rendered to a SQLAlchemy
``text()`` clause with positional bind names (``:p0``, ``:p1`` …) so the
same builder output runs on every supported dialect.
"""

from __future__ import annotations

import itertools
import logging
import re
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

from dashstore.search.filters import Filter, Join, TitleSorter, merge_tag_filters

logger = logging.getLogger("dashstore.search.builder")

DEFAULT_LIMIT = 1000

_PLACEHOLDER = re.compile(r"\?")


def normalize_pagination(limit: int, page: int, default_limit: int = DEFAULT_LIMIT) -> Tuple[int, int, int]:
    """Return (limit, page, offset) with out-of-range values defaulted."""
    if limit < 1:
        limit = default_limit
    if page < 1:
        page = 1
    return limit, page, (page - 1) * limit


def render_params(sql: str, params: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """Replace each ``?`` with ``:pN`` and return the matching bind dict."""
    counter = itertools.count()
    rendered = _PLACEHOLDER.sub(lambda _m: f":p{next(counter)}", sql)
    used = next(counter)
    if used != len(params):
        raise ValueError(f"Statement has {used} placeholders but {len(params)} parameters")
    return rendered, {f"p{i}": value for i, value in enumerate(params)}


class SQLBuilder:
    """Accumulates SQL text and parameters in order."""

    def __init__(self):
        self._parts: List[str] = []
        self.params: List[Any] = []

    def write(self, sql: str, *params: Any) -> "SQLBuilder":
        self._parts.append(sql)
        self.params.extend(params)
        return self

    def write_permission_filter(self, permission_filter: Filter) -> "SQLBuilder":
        """Append `` AND <predicate>`` unless the filter grants everything."""
        sql, params = permission_filter.where()
        if sql:
            self.write(" AND " + sql, *params)
        return self

    def get_sql_string(self) -> str:
        return "".join(self._parts)

    def to_text(self) -> TextClause:
        sql, binds = render_params(self.get_sql_string(), self.params)
        return text(sql).bindparams(**binds)


class SearchQueryBuilder:
    """Builds the dashboard search statement from an ordered filter list."""

    HIT_COLUMNS = (
        "dashboard.id",
        "dashboard.uid",
        "dashboard.title",
        "dashboard.slug",
        "dashboard_tag.term",
        "dashboard.is_folder",
        "dashboard.folder_id",
        "folder.uid AS folder_uid",
        "folder.slug AS folder_slug",
        "folder.title AS folder_title",
    )

    def __init__(self, filters: Sequence[Filter], default_limit: int = DEFAULT_LIMIT):
        self.filters = merge_tag_filters(filters)
        self.default_limit = default_limit

    def to_sql(self, limit: int, page: int) -> Tuple[str, List[Any]]:
        limit, page, offset = normalize_pagination(limit, page, self.default_limit)

        joins: Dict[str, Join] = {}
        order_joins: Dict[str, Join] = {}
        wheres: List[str] = []
        where_params: List[Any] = []
        groups: List[str] = []
        havings: List[str] = []
        having_params: List[Any] = []
        orders: List[str] = []
        selects: List[str] = []

        for f in self.filters:
            c = f.contribution()
            if c.join is not None:
                joins.setdefault(c.join.target, c.join)
                if f.is_sorter:
                    order_joins.setdefault(c.join.target, c.join)
            if c.where:
                wheres.append(c.where)
                where_params.extend(c.where_params)
            if c.group_by and c.group_by not in groups:
                groups.append(c.group_by)
            if c.having:
                havings.append(c.having)
                having_params.extend(c.having_params)
            if c.order_by:
                orders.append(c.order_by)
            if c.select:
                selects.append(c.select)

        if not orders:
            orders.append(TitleSorter().order_by())
        order_by = " ORDER BY " + ", ".join(orders)

        params: List[Any] = []
        columns = list(self.HIT_COLUMNS) + selects
        sql = "SELECT " + ", ".join(columns) + " FROM ( "

        sql += "SELECT dashboard.id FROM dashboard"
        sql += "".join(j.render() for j in joins.values())
        if wheres:
            sql += " WHERE " + " AND ".join(wheres)
            params.extend(where_params)
        if groups:
            sql += " GROUP BY " + ", ".join(groups)
        if havings:
            sql += " HAVING " + " AND ".join(havings)
            params.extend(having_params)
        sql += order_by
        sql += f" LIMIT {limit} OFFSET {offset}"

        sql += (
            " ) AS ids"
            " INNER JOIN dashboard ON ids.id = dashboard.id"
            " LEFT OUTER JOIN dashboard AS folder ON folder.id = dashboard.folder_id"
            " LEFT OUTER JOIN dashboard_tag ON dashboard.id = dashboard_tag.dashboard_id"
        )
        sql += "".join(j.render() for j in order_joins.values())
        sql += order_by

        logger.debug(f"Built search query with {len(self.filters)} filters, limit={limit} offset={offset}")
        return sql, params

    def to_text(self, limit: int, page: int) -> TextClause:
        sql, params = self.to_sql(limit, page)
        rendered, binds = render_params(sql, params)
        return text(rendered).bindparams(**binds)
