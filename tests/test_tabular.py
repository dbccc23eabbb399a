import copy
import itertools

import pytest

from league_history.browser.export import ExportColumn
from league_history.browser.fields import FINISH_SENTINEL, UnknownFieldError, number, text
from league_history.browser.tabular import ALL, TabularBrowser


DRAFT_FIELDS = (
    number("pick", searchable=True),
    number("round", searchable=True, tie_breakers=("pick",)),
    number("season", searchable=True, tie_breakers=("pick",)),
    text("manager", searchable=True, tie_breakers=("pick",)),
    text("player", searchable=True, tie_breakers=("pick",)),
    text("position", searchable=True, tie_breakers=("pick",)),
    number("points_scored", descending=True, tie_breakers=("pick",)),
)


@pytest.fixture()
def picks():
    return [
        {"season": 2021, "pick": 3, "round": 1, "manager": "Bob", "player": "Derrick Henry", "position": "RB", "points_scored": 210.5},
        {"season": 2021, "pick": 1, "round": 1, "manager": "Alice", "player": "Christian McCaffrey", "position": "RB", "points_scored": 250.0},
        {"season": 2021, "pick": 12, "round": 1, "manager": "Carol", "player": "Davante Adams", "position": "WR", "points_scored": 180.0},
        {"season": 2021, "pick": 13, "round": 2, "manager": "Carol", "player": "Travis Kelce", "position": "TE", "points_scored": None},
        {"season": 2021, "pick": 2, "round": 1, "manager": "alice", "player": "Dalvin Cook", "position": None, "points_scored": 150.0},
        {"season": 2021, "pick": 24, "round": 2, "manager": "Alice", "player": "Smith, Jr.", "position": "WR", "points_scored": 99.0},
    ]


@pytest.fixture()
def browser(picks):
    b = TabularBrowser(DRAFT_FIELDS, default_sort="pick", page_size=100)
    b.load(picks)
    return b


def picks_of(rows):
    return [r["pick"] for r in rows]


def test_filter_by_manager_keeps_matching_records():
    records = [
        {"season": 2021, "pick": 1, "manager": "A"},
        {"season": 2021, "pick": 2, "manager": "B"},
    ]
    b = TabularBrowser(DRAFT_FIELDS, default_sort="pick")
    b.load(records)
    b.set_filter("manager", "A")
    v = b.view()
    assert v.rows == [{"season": 2021, "pick": 1, "manager": "A"}]
    assert v.total_count == 1


def test_set_page_clamps_to_last_page():
    b = TabularBrowser(DRAFT_FIELDS, default_sort="pick")
    b.load([{"pick": 1}, {"pick": 2}])
    b.set_page_size(1)
    b.set_page(5)
    v = b.view()
    assert v.page_count == 2
    assert v.current_page == 2
    assert picks_of(v.rows) == [2]


def test_null_finish_sorts_after_real_finishes():
    fields = (number("finish", null_sentinel=FINISH_SENTINEL),)
    b = TabularBrowser(fields, default_sort="finish")
    b.load([{"finish": None}, {"finish": 1}, {"finish": 3}])
    assert [r["finish"] for r in b.view().rows] == [1, 3, None]


def test_null_number_defaults_to_zero():
    assert number("wins").null_sentinel == 0
    b = TabularBrowser((number("wins"), number("id")), default_sort="wins", identity="id")
    b.load([{"id": 1, "wins": 1}, {"id": 2, "wins": None}, {"id": 3, "wins": 0}, {"id": 4, "wins": -1}])
    assert [r["id"] for r in b.view().rows] == [4, 2, 3, 1]


def test_empty_record_set_view():
    b = TabularBrowser(DRAFT_FIELDS, default_sort="pick")
    b.load([])
    v = b.view()
    assert v.rows == []
    assert v.total_count == 0
    assert v.page_count == 1
    assert v.current_page == 1


def test_view_is_deterministic(browser):
    browser.set_sort("manager")
    browser.set_search("a")
    first = browser.view()
    second = browser.view()
    assert first == second
    assert picks_of(first.rows) == picks_of(second.rows)


def test_filter_is_idempotent(browser):
    browser.set_filter("position", "RB")
    once = browser.view()
    browser.set_filter("position", "RB")
    twice = browser.view()
    assert once == twice
    assert picks_of(once.rows) == [1, 3]


def test_filter_all_clears(browser):
    browser.set_filter("position", "WR")
    assert browser.view().total_count == 2
    browser.set_filter("position", ALL)
    assert browser.view().total_count == 6
    assert "position" not in browser.state.active_filters


def test_filter_value_matching_nothing_is_empty(browser):
    browser.set_filter("position", "K")
    browser.set_filter("manager", "Alice")
    v = browser.view()
    assert v.rows == []
    assert v.total_count == 0
    assert v.current_page == 1


def test_filter_matches_numbers_given_as_text(browser):
    browser.set_filter("season", "2021")
    assert browser.view().total_count == 6
    browser.set_filter("season", 2020)
    assert browser.view().total_count == 0


def test_filter_on_null_field_uses_empty_selection(browser):
    browser.set_filter("position", "")
    assert picks_of(browser.view().rows) == [2]


def test_filter_resets_page(browser):
    browser.set_page_size(2)
    browser.set_page(3)
    assert browser.state.page == 3
    browser.set_filter("manager", "Carol")
    assert browser.state.page == 1


def test_pagination_invariant_holds_for_all_states(browser):
    for size in (1, 2, 4, 5, 6, 7, 100):
        for n in range(1, 9):
            browser.set_page_size(size)
            browser.set_page(n)
            v = browser.view()
            assert 1 <= v.current_page <= v.page_count
            assert len(v.rows) <= size


def test_page_size_change_only_reslices(browser):
    browser.set_sort("manager")
    full = picks_of(browser.filtered_sorted())
    browser.set_page_size(4)
    pages = []
    for n in (1, 2):
        browser.set_page(n)
        pages.extend(picks_of(browser.view().rows))
    assert pages == full


def test_sort_ties_follow_declared_tie_break(picks):
    round_one = [p for p in picks if p["round"] == 1]
    seen = set()
    for perm in itertools.permutations(round_one):
        b = TabularBrowser(DRAFT_FIELDS, default_sort="round")
        b.load(perm)
        seen.add(tuple(picks_of(b.view().rows)))
    assert seen == {(1, 2, 3, 12)}


def test_text_sort_is_case_insensitive_with_stable_ties(browser):
    browser.set_sort("manager")
    rows = browser.view().rows
    assert [(r["manager"], r["pick"]) for r in rows] == [
        ("Alice", 1),
        ("Alice", 24),
        ("alice", 2),
        ("Bob", 3),
        ("Carol", 12),
        ("Carol", 13),
    ]


def test_descending_field_puts_missing_values_last(browser):
    browser.set_sort("points_scored")
    assert picks_of(browser.view().rows) == [1, 3, 12, 2, 24, 13]


def test_search_is_trimmed_and_lower_cased(browser):
    browser.set_search("  DAVANTE ")
    assert browser.state.search_query == "davante"
    assert picks_of(browser.view().rows) == [12]


def test_search_matches_stringified_numbers(browser):
    browser.set_search("12")
    assert picks_of(browser.view().rows) == [12]
    browser.set_search("2")
    # every season is 2021
    assert browser.view().total_count == 6


def test_search_never_widens_filtered_set(browser):
    browser.set_filter("manager", "Carol")
    pre = browser.view().total_count
    for q in ("", "d", "travis", "x", "13"):
        browser.set_search(q)
        assert browser.view().total_count <= pre


def test_search_resets_page(browser):
    browser.set_page_size(1)
    browser.set_page(4)
    browser.set_search("rb")
    assert browser.state.page == 1


def test_unknown_field_names_raise():
    b = TabularBrowser(DRAFT_FIELDS, default_sort="pick")
    with pytest.raises(UnknownFieldError):
        b.set_sort("bogus")
    with pytest.raises(KeyError):
        b.set_filter("bogus", "x")
    with pytest.raises(UnknownFieldError):
        TabularBrowser(DRAFT_FIELDS, default_sort="bogus")
    with pytest.raises(UnknownFieldError):
        TabularBrowser((number("a", tie_breakers=("b",)),), default_sort="a")


def test_non_positive_page_size_raises(browser):
    with pytest.raises(ValueError):
        browser.set_page_size(0)


@pytest.mark.parametrize("n", [0, -3])
def test_set_page_below_one_clamps_to_first_page(n):
    b = TabularBrowser([number("pick")], default_sort="pick", page_size=1, identity="pick")
    b.load([{"pick": 1}, {"pick": 2}])
    b.set_page(2)
    b.set_page(n)
    assert b.state.page == 1
    assert b.view().current_page == 1
    assert b.view().rows == [{"pick": 1}]


def test_malformed_records_do_not_raise():
    b = TabularBrowser(DRAFT_FIELDS, default_sort="pick")
    b.load([{}, {"pick": "not a number", "manager": None}, {"pick": 1, "manager": 7}])
    for name in ("pick", "round", "manager", "player", "points_scored"):
        b.set_sort(name)
        assert b.view().total_count == 3
    b.set_search("7")
    assert b.view().total_count == 1


def test_load_resets_view_state(browser, picks):
    browser.set_sort("manager")
    browser.set_search("alice")
    browser.set_filter("position", "RB")
    browser.set_page_size(1)
    browser.load(picks[:2])
    st = browser.state
    assert st.sort_key == "pick"
    assert st.search_query == ""
    assert dict(st.active_filters) == {}
    assert st.page == 1
    assert st.page_size == 100
    assert browser.view().total_count == 2


def test_records_are_not_mutated(picks):
    before = copy.deepcopy(picks)
    b = TabularBrowser(DRAFT_FIELDS, default_sort="pick")
    b.load(picks)
    b.set_sort("points_scored")
    b.set_filter("manager", "Alice")
    b.view()
    b.export_delimited([ExportColumn("Pick", "pick")])
    assert picks == before


def test_identity_breaks_remaining_ties():
    fields = (number("round"), number("draft_pick_id"))
    rows = [{"round": 1, "draft_pick_id": 9}, {"round": 1, "draft_pick_id": 4}, {"round": 1, "draft_pick_id": 7}]
    b = TabularBrowser(fields, default_sort="round", identity="draft_pick_id")
    b.load(rows)
    assert [r["draft_pick_id"] for r in b.view().rows] == [4, 7, 9]


def test_options_are_distinct_sorted_and_skip_nulls(browser):
    assert browser.options("position") == ["RB", "TE", "WR"]
    assert browser.options("manager") == ["Alice", "alice", "Bob", "Carol"]


def test_export_ignores_pagination(browser):
    browser.set_filter("manager", "Alice")
    browser.set_page_size(1)
    browser.set_page(2)
    v = browser.view()
    blob = browser.export_delimited([ExportColumn("Pick", "pick"), ExportColumn("Player", "player")])
    lines = blob.split("\n")
    assert len(lines) - 1 == v.total_count == 2
    assert lines == ["Pick,Player", "1,Christian McCaffrey", '24,"Smith, Jr."']
