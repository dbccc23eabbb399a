import pytest

from league_history.database.supabase_client import SupabaseError


class FakeSupabase:
    """In-memory stand-in for SupabaseClient that understands eq. filters."""

    def __init__(self, tables=None, error=None):
        self.tables = tables or {}
        self.error = error
        self.calls = []

    def _rows(self, table, filters):
        if self.error:
            raise SupabaseError(self.error)
        out = []
        for r in self.tables.get(table, []):
            ok = True
            for k, v in (filters or {}).items():
                assert v.startswith("eq."), v
                if str(r.get(k)) != v[3:]:
                    ok = False
                    break
            if ok:
                out.append(dict(r))
        return out

    def select_all(self, table, *, select="*", filters=None, order=None, page_size=None):
        self.calls.append({"table": table, "select": select, "filters": dict(filters or {}), "order": order})
        rows = self._rows(table, filters)
        if select != "*":
            cols = select.split(",")
            rows = [{c: r.get(c) for c in cols} for r in rows]
        return rows

    def maybe_single(self, table, *, select="*", filters=None):
        self.calls.append({"table": table, "select": select, "filters": dict(filters or {}), "order": None})
        rows = self._rows(table, filters)
        if len(rows) > 1:
            raise SupabaseError("several rows")
        return rows[0] if rows else None


LEAGUE = "Congadanga"


def _team(tsid, year, manager, team, wins, losses, pf, pa, finish, league=LEAGUE, **extra):
    row = {
        "team_season_id": tsid,
        "league": league,
        "year": year,
        "manager": manager,
        "team_name": team,
        "wins": wins,
        "losses": losses,
        "points_scored": pf,
        "points_against": pa,
        "season_finish": finish,
        "regular_season_finish": finish,
    }
    row.update(extra)
    return row


@pytest.fixture()
def team_seasons():
    return [
        _team(1, 2021, "Alice Smith", "Gronk Squad", 10, 4, 1800.5, 1500.0, 1, playoff_wins=2, playoff_losses=0, post_season_wins=2, post_season_losses=0),
        _team(2, 2021, "Bob Jones", "Smith, Jr. Fan Club", 8, 6, 1700.0, 1600.0, 2),
        _team(3, 2021, "Carol O'Neil", "Tua Tonight", 4, 10, 1400.0, 1750.0, None),
        _team(4, 2022, "Alice Smith", "Gronk Squad", 6, 8, 1600.0, 1650.0, 3),
        _team(5, 2022, "Bob Jones", "Bijan Mustard", 11, 3, 1900.0, 1450.0, 1),
        _team(6, 2022, "Carol O'Neil", "Tua Tonight", 7, 7, 1600.0, 1600.0, 2),
        _team(7, 2022, "Zed", "Elsewhere", 14, 0, 2500.0, 1000.0, 1, league="Other"),
    ]


@pytest.fixture()
def draft_picks():
    rows = []
    pid = 100
    for season in (2021, 2022):
        for pick, (rnd, mgr, team, player, pos) in enumerate(
            [
                (1, "Alice Smith", "Gronk Squad", "Christian McCaffrey", "RB"),
                (1, "Bob Jones", "Smith, Jr. Fan Club", "Justin Jefferson", "WR"),
                (1, "Carol O'Neil", "Tua Tonight", "Travis Kelce", "TE"),
                (2, "Carol O'Neil", "Tua Tonight", "Ja'Marr Chase", "WR"),
                (2, "Bob Jones", "Smith, Jr. Fan Club", "Saquon Barkley", "RB"),
                (2, "Alice Smith", "Gronk Squad", "Team D/ST", None),
            ],
            start=1,
        ):
            pid += 1
            rows.append(
                {
                    "draft_pick_id": pid,
                    "league": LEAGUE,
                    "season": season,
                    "pick": pick,
                    "round": rnd,
                    "pick_in_round": (pick - 1) % 3 + 1,
                    "manager": mgr,
                    "team": team,
                    "player": player,
                    "position": pos,
                    "player_id": f"p{pick}",
                }
            )
    return rows


@pytest.fixture()
def manager_summaries():
    return [
        {"league": LEAGUE, "manager": "Alice Smith", "seasons": 2, "championships": 1, "playoff_appearances": 2, "wins": 16, "losses": 12, "points_scored": 3400.5, "points_against": 3150.0, "avg_finish": 2.0},
        {"league": LEAGUE, "manager": "Bob Jones", "seasons": 2, "championships": 1, "playoff_appearances": 2, "wins": 19, "losses": 9, "points_scored": 3600.0, "points_against": 3050.0, "avg_finish": 1.5},
        {"league": LEAGUE, "manager": "Carol O'Neil", "seasons": 2, "championships": 0, "playoff_appearances": 1, "wins": 11, "losses": 17, "points_scored": 3000.0, "points_against": 3350.0, "avg_finish": None},
    ]


@pytest.fixture()
def sb(team_seasons, draft_picks, manager_summaries):
    standings = [dict(r) for r in team_seasons]
    return FakeSupabase(
        {
            "v_season_standings": standings,
            "v_teams": team_seasons,
            "v_team_seasons": team_seasons,
            "v_manager_career_summary": manager_summaries,
            "v_draft_picks": draft_picks,
            "v_draft_seasons": [{"league": LEAGUE, "season": 2021}, {"league": LEAGUE, "season": 2022}],
        }
    )


@pytest.fixture()
def failing_sb():
    return FakeSupabase(error='relation "v_teams" does not exist')
