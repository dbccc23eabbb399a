"""Per-page browser configuration and derived stats.

Each list page of the site is a FieldSpec table plus a default sort, an
identity field for the final tie-break, the filters it offers and the
columns it exports. The server builds a fresh TabularBrowser from one of
these per request.

Null handling is declared per field: finishes and average finishes sort
with FINISH_SENTINEL (after every real placement), counts and points with 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from league_history.browser.export import ExportColumn
from league_history.browser.fields import FINISH_SENTINEL, FieldSpec, Record, get_field, number, safe_float, text
from league_history.browser.tabular import TabularBrowser
from league_history.web.queries import LeagueScope


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


def _num(record: Record, name: str) -> float:
    v = safe_float(get_field(record, name))
    return 0.0 if v is None else v


def games_played(record: Record) -> int:
    g = int(_num(record, "wins") + _num(record, "losses"))
    return g if g > 0 else 0


def avg_points_scored(record: Record) -> float:
    g = games_played(record)
    return _num(record, "points_scored") / g if g else 0.0


def avg_points_against(record: Record) -> float:
    g = games_played(record)
    return _num(record, "points_against") / g if g else 0.0


def round2(x: Optional[float]) -> Optional[float]:
    if x is None:
        return None
    return round(float(x), 2)


def season_finish(record: Record) -> Any:
    return get_field(record, "season_finish")


def ordinal(n: Optional[int]) -> str:
    if n is None:
        return "—"
    n = int(n)
    if n % 10 == 1 and n % 100 != 11:
        suffix = "st"
    elif n % 10 == 2 and n % 100 != 12:
        suffix = "nd"
    elif n % 10 == 3 and n % 100 != 13:
        suffix = "rd"
    else:
        suffix = "th"
    return f"{n}{suffix}"


def _record(record: Record, wins: str, losses: str) -> str:
    return f"{int(_num(record, wins))}-{int(_num(record, losses))}"


def podium(sorted_rows: Sequence[Record]) -> dict[str, Optional[Record]]:
    """First, second and third place from standings already sorted by finish."""

    def first_with(place: int) -> Optional[Record]:
        for r in sorted_rows:
            if safe_float(season_finish(r)) == place:
                return r
        return None

    return {"champion": first_with(1), "runner_up": first_with(2), "third": first_with(3)}


def team_season_detail(record: Record) -> dict[str, Any]:
    return {
        "games_played": games_played(record),
        "avg_points_scored": round2(avg_points_scored(record)),
        "avg_points_against": round2(avg_points_against(record)),
        "record": _record(record, "wins", "losses"),
        "playoffs": _record(record, "playoff_wins", "playoff_losses"),
        "consolation": _record(record, "consolation_wins", "consolation_losses"),
        "postseason": _record(record, "post_season_wins", "post_season_losses"),
    }


def career_summary(rows: Sequence[Record]) -> dict[str, Any]:
    """Career totals for one manager from their team-season rows.

    Seasons without a recorded finish are left out of the average finish
    instead of counting as 0.
    """
    finishes = [f for f in (safe_float(season_finish(r)) for r in rows) if f is not None]
    avg_finish = round2(sum(finishes) / len(finishes)) if finishes else None

    series = []
    for r in sorted(rows, key=lambda r: _num(r, "year")):
        f = safe_float(season_finish(r))
        place = int(f) if f is not None else None
        series.append({"year": get_field(r, "year"), "finish": place, "label": ordinal(place)})

    return {
        "seasons": len(rows),
        "championships": sum(1 for f in finishes if f == 1),
        "wins": int(sum(_num(r, "wins") for r in rows)),
        "losses": int(sum(_num(r, "losses") for r in rows)),
        "points_scored": round2(sum(_num(r, "points_scored") for r in rows)),
        "points_against": round2(sum(_num(r, "points_against") for r in rows)),
        "avg_finish": avg_finish,
        "finish_by_year": series,
    }


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Page:
    name: str
    fields: Sequence[FieldSpec]
    default_sort: str
    identity: Optional[str] = None
    page_size: int = 500
    page_sizes: Sequence[int] = field(default_factory=tuple)
    filters: Sequence[str] = field(default_factory=tuple)
    columns: Sequence[ExportColumn] = field(default_factory=tuple)
    sheet_name: str = "Sheet1"
    filename: Callable[[LeagueScope], str] = lambda scope: f"export_{scope.league}"

    @property
    def sorts(self) -> list[str]:
        return [f.name for f in self.fields if f.label is not None]

    def browser(self, rows: Optional[Iterable[Record]] = None) -> TabularBrowser:
        b = TabularBrowser(self.fields, default_sort=self.default_sort, page_size=self.page_size, identity=self.identity)
        if rows is not None:
            b.load(rows)
        return b


# Season standings -----------------------------------------------------------

STANDINGS_FIELDS = (
    number(
        "finish",
        accessor=season_finish,
        null_sentinel=FINISH_SENTINEL,
        tie_breakers=("points_scored",),
        label="Finish",
    ),
    number("points_scored", descending=True, label="Points Scored"),
    number("points_against", descending=True, label="Points Against"),
    number("wins", descending=True, tie_breakers=("finish",), label="Wins"),
    number("regular_season_finish", null_sentinel=FINISH_SENTINEL, tie_breakers=("finish",)),
    text("manager", searchable=True),
    text("team_name", searchable=True),
    number("team_season_id"),
)

SEASON_STANDINGS_PAGE = Page(
    name="standings",
    fields=STANDINGS_FIELDS,
    default_sort="finish",
    identity="team_season_id",
    columns=(
        ExportColumn("Finish", value=lambda r: season_finish(r)),
        ExportColumn("Manager", "manager"),
        ExportColumn("Team", "team_name"),
        ExportColumn("Wins", "wins"),
        ExportColumn("Losses", "losses"),
        ExportColumn("Points Scored", "points_scored"),
        ExportColumn("Points Against", "points_against"),
        ExportColumn("Regular Season Finish", "regular_season_finish"),
    ),
    sheet_name="Standings",
    filename=lambda scope: f"standings_{scope.league}_{scope.season}",
)


# Teams ----------------------------------------------------------------------

TEAM_FIELDS = (
    number("year", descending=True, searchable=True, tie_breakers=("finish",), label="Year"),
    number(
        "finish",
        accessor=season_finish,
        null_sentinel=FINISH_SENTINEL,
        tie_breakers=("points_scored",),
        label="Finish",
    ),
    number("points_scored", descending=True, label="Points Scored"),
    number("points_against", descending=True, label="Points Against"),
    number("avg_points_scored", accessor=avg_points_scored, descending=True, label="Avg Points Scored"),
    number("avg_points_against", accessor=avg_points_against, descending=True, label="Avg Points Against"),
    number("wins", descending=True, tie_breakers=("points_scored",), label="Wins"),
    text("team_name", searchable=True),
    text("manager", searchable=True),
    number("team_season_id"),
)

TEAMS_PAGE = Page(
    name="teams",
    fields=TEAM_FIELDS,
    default_sort="year",
    identity="team_season_id",
    filters=("manager", "year"),
    columns=(
        ExportColumn("Year", "year"),
        ExportColumn("Manager", "manager"),
        ExportColumn("Team", "team_name"),
        ExportColumn("Finish", value=lambda r: season_finish(r)),
        ExportColumn("Wins", "wins"),
        ExportColumn("Losses", "losses"),
        ExportColumn("Points Scored", "points_scored"),
        ExportColumn("Points Against", "points_against"),
        ExportColumn("Avg Points Scored", value=lambda r: round2(avg_points_scored(r))),
        ExportColumn("Avg Points Against", value=lambda r: round2(avg_points_against(r))),
        ExportColumn("Team Season ID", "team_season_id"),
    ),
    sheet_name="Teams",
    filename=lambda scope: f"teams_{scope.league}",
)


# Managers -------------------------------------------------------------------

MANAGER_FIELDS = (
    number("championships", descending=True, tie_breakers=("avg_finish",), label="Championships"),
    number("avg_finish", null_sentinel=FINISH_SENTINEL, tie_breakers=("championships",), label="Avg Finish"),
    number("wins", descending=True, label="Wins"),
    number("points_scored", descending=True, label="Points Scored"),
    number("playoff_appearances", descending=True, label="Playoff Appearances"),
    text("manager", searchable=True),
)

MANAGERS_PAGE = Page(
    name="managers",
    fields=MANAGER_FIELDS,
    default_sort="championships",
    identity="manager",
    columns=(
        ExportColumn("Manager", "manager"),
        ExportColumn("Seasons", "seasons"),
        ExportColumn("Championships", "championships"),
        ExportColumn("Playoff Appearances", "playoff_appearances"),
        ExportColumn("Consolation Appearances", "consolation_appearances"),
        ExportColumn("Wins", "wins"),
        ExportColumn("Losses", "losses"),
        ExportColumn("Points Scored", "points_scored"),
        ExportColumn("Points Against", "points_against"),
        ExportColumn("Avg Finish", "avg_finish"),
    ),
    sheet_name="Managers",
    filename=lambda scope: f"managers_{scope.league}",
)


# Drafts ---------------------------------------------------------------------

DRAFT_COLUMNS = (
    ExportColumn("Season", "season"),
    ExportColumn("Overall Pick", "pick"),
    ExportColumn("Round", "round"),
    ExportColumn("Pick In Round", "pick_in_round"),
    ExportColumn("Manager", "manager"),
    ExportColumn("Team", "team"),
    ExportColumn("Player", "player"),
    ExportColumn("Position", "position"),
    ExportColumn("Player ID", "player_id"),
)

DRAFT_SEASON_FIELDS = (
    number("pick", searchable=True, label="Overall Pick"),
    number("round", searchable=True, tie_breakers=("pick",), label="Round"),
    text("manager", searchable=True, tie_breakers=("pick",), label="Manager"),
    text("team", searchable=True, tie_breakers=("pick",), label="Team"),
    text("position", searchable=True, tie_breakers=("pick",), label="Position"),
    text("player", searchable=True, tie_breakers=("pick",), label="Player"),
    number("season"),
    number("draft_pick_id"),
)

DRAFT_SEASON_PAGE = Page(
    name="draft",
    fields=DRAFT_SEASON_FIELDS,
    default_sort="pick",
    identity="draft_pick_id",
    filters=("position", "manager"),
    columns=DRAFT_COLUMNS,
    sheet_name="Draft",
    filename=lambda scope: f"draft_{scope.league}_{scope.season}",
)

DRAFT_ALL_FIELDS = (
    number("season", searchable=True, tie_breakers=("pick",), label="Season"),
    number("pick", searchable=True, tie_breakers=("season",), label="Overall Pick"),
    number("round", searchable=True, tie_breakers=("season", "pick"), label="Round"),
    text("manager", searchable=True, tie_breakers=("season", "pick"), label="Manager"),
    text("team", searchable=True, tie_breakers=("season", "pick"), label="Team"),
    text("position", searchable=True, tie_breakers=("season", "pick"), label="Position"),
    text("player", searchable=True, tie_breakers=("season", "pick"), label="Player"),
    number("draft_pick_id"),
)

DRAFT_ALL_PAGE = Page(
    name="draft_all",
    fields=DRAFT_ALL_FIELDS,
    default_sort="season",
    identity="draft_pick_id",
    page_size=100,
    page_sizes=(50, 100, 200, 500),
    filters=("position", "manager"),
    columns=DRAFT_COLUMNS,
    sheet_name="Drafts",
    filename=lambda scope: f"draft_all_{scope.league}",
)
