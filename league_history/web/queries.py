from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from league_history.database.supabase_client import SupabaseClient, eq
from league_history.utils.env import getenv_str


logger = logging.getLogger(__name__)

DEFAULT_LEAGUE = "Congadanga"

SEASON_STANDINGS = "v_season_standings"
TEAMS = "v_teams"
TEAM_SEASONS = "v_team_seasons"
MANAGER_SUMMARY = "v_manager_career_summary"
DRAFT_PICKS = "v_draft_picks"
DRAFT_SEASONS = "v_draft_seasons"

TEAMS_SELECT = (
    "team_season_id,league,year,manager,team_name,wins,losses,points_scored,points_against,season_finish"
)


def default_league() -> str:
    return getenv_str("LEAGUE_DEFAULT", DEFAULT_LEAGUE) or DEFAULT_LEAGUE


@dataclass(frozen=True)
class LeagueScope:
    """Which slice of league history a page is looking at.

    Passed explicitly to every fetch; nothing reads a "current league" from
    shared state.
    """

    league: str
    season: Optional[int] = None
    manager_slug: Optional[str] = None
    team_season_id: Optional[int] = None

    @classmethod
    def for_league(cls, league: Optional[str] = None) -> "LeagueScope":
        return cls(league=(league or "").strip() or default_league())

    def filters(self, *, season_field: Optional[str] = None) -> dict[str, str]:
        f = {"league": eq(self.league)}
        if season_field and self.season is not None:
            f[season_field] = eq(int(self.season))
        return f


_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_DROP_RE = re.compile(r"[^\w-]")


def slugify(name: Optional[str]) -> str:
    s = (name or "").lower().strip()
    s = _SLUG_SPACE_RE.sub("-", s)
    return _SLUG_DROP_RE.sub("", s)


def _uniq_sorted_int(vals: list[Any], *, desc: bool = False) -> list[int]:
    out: list[int] = []
    seen = set()
    for v in vals:
        i = _safe_int(v)
        if i is None or i in seen:
            continue
        seen.add(i)
        out.append(i)
    return sorted(out, reverse=desc)


def _safe_int(x: Any) -> Optional[int]:
    if x is None or x == "" or isinstance(x, bool):
        return None
    try:
        return int(x)
    except (TypeError, ValueError):
        try:
            f = float(x)
        except (TypeError, ValueError):
            return None
        return int(f) if f.is_integer() else None


# ---------------------------------------------------------------------------
# Seasons
# ---------------------------------------------------------------------------


def season_years(sb: SupabaseClient, scope: LeagueScope) -> list[int]:
    rows = sb.select_all(SEASON_STANDINGS, select="year", filters=scope.filters())
    return _uniq_sorted_int([r.get("year") for r in rows], desc=True)


def season_standings(sb: SupabaseClient, scope: LeagueScope) -> list[dict[str, Any]]:
    if scope.season is None:
        raise ValueError("season_standings needs a season in scope")
    return sb.select_all(SEASON_STANDINGS, filters=scope.filters(season_field="year"))


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


def teams(sb: SupabaseClient, scope: LeagueScope) -> list[dict[str, Any]]:
    return sb.select_all(TEAMS, select=TEAMS_SELECT, filters=scope.filters())


def team_season(sb: SupabaseClient, scope: LeagueScope) -> Optional[dict[str, Any]]:
    if scope.team_season_id is None:
        raise ValueError("team_season needs a team_season_id in scope")
    filters = scope.filters()
    filters["team_season_id"] = eq(int(scope.team_season_id))
    return sb.maybe_single(TEAMS, filters=filters)


# ---------------------------------------------------------------------------
# Managers
# ---------------------------------------------------------------------------


def manager_summaries(sb: SupabaseClient, scope: LeagueScope) -> list[dict[str, Any]]:
    return sb.select_all(MANAGER_SUMMARY, filters=scope.filters())


def manager_seasons(sb: SupabaseClient, scope: LeagueScope) -> tuple[Optional[str], list[dict[str, Any]]]:
    """Resolve a manager slug to the manager's name and their team-seasons by year.

    Returns (None, []) when no manager in the league has that slug.
    """
    if not scope.manager_slug:
        raise ValueError("manager_seasons needs a manager_slug in scope")
    all_rows = sb.select_all(TEAM_SEASONS, filters=scope.filters(), order="year.asc")
    name: Optional[str] = None
    for r in all_rows:
        m = r.get("manager")
        if m and slugify(m) == scope.manager_slug:
            name = m
            break
    if name is None:
        logger.info("No manager matches slug %r in %s", scope.manager_slug, scope.league)
        return None, []
    return name, [r for r in all_rows if r.get("manager") == name]


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


def draft_seasons(sb: SupabaseClient, scope: LeagueScope) -> list[int]:
    rows = sb.select_all(DRAFT_SEASONS, select="season", filters=scope.filters())
    return _uniq_sorted_int([r.get("season") for r in rows], desc=True)


def draft_picks(sb: SupabaseClient, scope: LeagueScope) -> list[dict[str, Any]]:
    """Picks for one season when the scope has one, otherwise every season."""
    return sb.select_all(
        DRAFT_PICKS,
        filters=scope.filters(season_field="season"),
        order="season.asc,pick.asc",
    )
