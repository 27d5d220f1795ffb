"""Unit tests for dashstore.search.filters and dashstore.search.sorting."""

import pytest

from dashstore.engine.errors import ValidationFailed
from dashstore.search.filters import (
    DashboardFilter,
    Filter,
    FolderFilter,
    Join,
    OrgFilter,
    StarredFilter,
    TagsFilter,
    TitleFilter,
    TitleSorter,
    TypeFilter,
    VersionSorter,
    dialect_like_operator,
    merge_tag_filters,
    placeholders,
)
from dashstore.search.sorting import (
    SORT_ALPHA_ASC,
    SORT_VERSION_DESC,
    get_sort_option,
    sort_options,
)


class TestHelpers:
    def test_placeholders(self):
        assert placeholders(3) == "?,?,?"
        assert placeholders(1) == "?"

    def test_like_operator(self):
        assert dialect_like_operator("postgresql") == "ILIKE"
        assert dialect_like_operator("sqlite") == "LIKE"
        assert dialect_like_operator("mysql") == "LIKE"

    def test_join_render(self):
        j = Join("dashboard_tag", "dashboard_tag.dashboard_id = dashboard.id")
        assert j.render() == " LEFT OUTER JOIN dashboard_tag ON dashboard_tag.dashboard_id = dashboard.id "


class TestPredicateFilters:
    def test_base_filter_contributes_nothing(self):
        c = Filter().contribution()
        assert c.join is None
        assert c.where == ""
        assert c.group_by == ""
        assert c.order_by == ""
        assert Filter().is_sorter is False

    def test_org(self):
        assert OrgFilter(org_id=3).where() == ("dashboard.org_id = ?", [3])

    def test_tags(self):
        f = TagsFilter(tags=("a", "b"))
        assert f.join().target == "dashboard_tag"
        assert f.where() == ("dashboard_tag.term IN (?,?)", ["a", "b"])
        assert f.group_by() == "dashboard.id"
        assert f.having() == ("COUNT(dashboard.id) >= ?", [2])

    def test_title_dialects(self):
        assert TitleFilter(title="cpu").where() == ("dashboard.title LIKE ?", ["%cpu%"])
        assert TitleFilter(title="cpu", dialect="postgresql").where()[0] == "dashboard.title ILIKE ?"

    def test_type(self):
        assert TypeFilter(type="dash-folder").where() == ("dashboard.is_folder = ?", [True])
        assert TypeFilter(type="dash-db").where() == ("dashboard.is_folder = ?", [False])
        assert TypeFilter(type="something").where() == ("", [])

    def test_folder_and_dashboard_ids(self):
        assert FolderFilter(ids=(1, 2)).where() == ("dashboard.folder_id IN (?,?)", [1, 2])
        assert DashboardFilter(ids=(5,)).where() == ("dashboard.id IN (?)", [5])

    def test_starred(self):
        sql, params = StarredFilter(user_id=10).where()
        assert "star.user_id = ?" in sql
        assert sql.endswith("> 0")
        assert params == [10]

    def test_filters_are_immutable(self):
        f = OrgFilter(org_id=1)
        with pytest.raises(Exception):
            f.org_id = 2


class TestMergeTagFilters:
    def test_single_filter_untouched(self):
        filters = [OrgFilter(org_id=1), TagsFilter(tags=("a",))]
        assert merge_tag_filters(filters) == filters

    def test_union_replaces_first_position(self):
        filters = [
            OrgFilter(org_id=1),
            TagsFilter(tags=("a", "b")),
            TitleFilter(title="x"),
            TagsFilter(tags=("b", "c")),
        ]
        merged = merge_tag_filters(filters)
        assert merged == [OrgFilter(org_id=1), TagsFilter(tags=("a", "b", "c")), TitleFilter(title="x")]
        assert merged[1].having() == ("COUNT(dashboard.id) >= ?", [3])


class TestSorters:
    def test_title_sorter(self):
        assert TitleSorter().order_by() == "dashboard.title ASC"
        assert TitleSorter(descending=True).order_by() == "dashboard.title DESC"
        assert TitleSorter().is_sorter

    def test_version_sorter_selects_meta(self):
        s = VersionSorter()
        assert s.order_by() == "dashboard.version DESC"
        assert s.select() == "dashboard.version AS sort_meta"
        assert VersionSorter(descending=False).order_by() == "dashboard.version ASC"


class TestSortOptions:
    def test_lookup(self):
        assert get_sort_option("alpha-asc") is SORT_ALPHA_ASC
        assert get_sort_option("version-desc") is SORT_VERSION_DESC

    def test_empty_means_default(self):
        assert get_sort_option("") is None
        assert get_sort_option(None) is None

    def test_unknown_raises(self):
        with pytest.raises(ValidationFailed) as exc:
            get_sort_option("random")
        assert exc.value.field == "sort"

    def test_sorted_by_index(self):
        assert [o.index for o in sort_options()] == [0, 1, 2, 3]

    def test_meta_name(self):
        assert SORT_ALPHA_ASC.meta_name == ""
        assert SORT_VERSION_DESC.meta_name == "version"
