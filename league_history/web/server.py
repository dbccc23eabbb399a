from __future__ import annotations

import argparse
import json
import logging
import re
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Mapping, Optional
from urllib.parse import parse_qs, quote, urlparse

from league_history.browser.export import CSV_CONTENT_TYPE, XLSX_CONTENT_TYPE, to_xlsx_bytes
from league_history.browser.fields import UnknownFieldError
from league_history.browser.tabular import ALL, TabularBrowser
from league_history.database.supabase_client import SupabaseClient, SupabaseConfig, SupabaseError
from league_history.utils.env import getenv_int, getenv_str
from league_history.web import pages, queries
from league_history.web.queries import LeagueScope


logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
FILTER_PREFIX = "filter."


class BadRequest(ValueError):
    pass


@dataclass
class Response:
    code: int
    body: bytes
    content_type: str = JSON_CONTENT_TYPE
    headers: dict[str, str] = field(default_factory=dict)


def json_response(obj: Any, code: int = 200) -> Response:
    return Response(code, json.dumps(obj, default=str).encode("utf-8"))


def error_response(message: str, code: int) -> Response:
    return json_response({"error": message}, code=code)


def _first(qs: Mapping[str, list[str]], name: str) -> Optional[str]:
    raw = qs.get(name, [None])[0]
    if raw is None or raw == "":
        return None
    return str(raw)


def _q_int(qs: Mapping[str, list[str]], name: str) -> Optional[int]:
    raw = _first(qs, name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"{name} must be an integer") from None


def apply_query(browser: TabularBrowser, page: pages.Page, qs: Mapping[str, list[str]]) -> None:
    """Drive a loaded browser from request parameters.

    Filters and search go first so that the requested page is clamped
    against the filtered count.
    """
    for key, values in qs.items():
        if not key.startswith(FILTER_PREFIX):
            continue
        name = key[len(FILTER_PREFIX):]
        if name not in page.filters:
            raise UnknownFieldError(name)
        browser.set_filter(name, values[0] if values else ALL)

    browser.set_search(_first(qs, "q"))

    sort = _first(qs, "sort")
    if sort is not None:
        if sort not in page.sorts:
            raise UnknownFieldError(sort)
        browser.set_sort(sort)

    size = _q_int(qs, "page_size")
    if size is not None:
        browser.set_page_size(size)

    n = _q_int(qs, "page")
    if n is not None:
        browser.set_page(n)


def browse(
    page: pages.Page,
    rows: list[dict[str, Any]],
    scope: LeagueScope,
    qs: Mapping[str, list[str]],
    **extra: Any,
) -> Response:
    """One list page: load, apply the query, then render JSON or an export."""
    browser = page.browser(rows)
    apply_query(browser, page, qs)

    fmt = (_first(qs, "format") or "json").lower()
    if fmt == "csv":
        body = browser.export_delimited(page.columns).encode("utf-8")
        return _attachment(body, CSV_CONTENT_TYPE, f"{page.filename(scope)}.csv")
    if fmt == "xlsx":
        sheet = browser.spreadsheet_rows(page.columns)
        body = to_xlsx_bytes(sheet, sheet_name=page.sheet_name, columns=[c.label for c in page.columns])
        return _attachment(body, XLSX_CONTENT_TYPE, f"{page.filename(scope)}.xlsx")
    if fmt != "json":
        raise BadRequest(f"unsupported format: {fmt}")

    out = browser.view().to_dict()
    out.update(
        {
            "league": scope.league,
            "loadedCount": len(browser.records),
            "sort": browser.state.sort_key,
            "sorts": page.sorts,
            "sortLabels": {name: browser.field(name).title for name in page.sorts},
            "search": browser.state.search_query,
            "filters": {name: browser.options(name) for name in page.filters},
            "activeFilters": dict(browser.state.active_filters),
        }
    )
    if page.page_sizes:
        out["pageSizes"] = list(page.page_sizes)
    out.update(extra)
    return json_response(out)


def _attachment(body: bytes, content_type: str, filename: str) -> Response:
    disposition = f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename)}"
    return Response(200, body, content_type, {"Content-Disposition": disposition})


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

RouteFn = Callable[[SupabaseClient, LeagueScope, Mapping[str, list[str]], re.Match], Response]


def _seasons(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    return json_response({"league": scope.league, "years": queries.season_years(sb, scope)})


def _season(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    scope = LeagueScope(scope.league, season=int(m.group(1)))
    rows = queries.season_standings(sb, scope)
    by_finish = pages.SEASON_STANDINGS_PAGE.browser(rows).filtered_sorted()
    return browse(pages.SEASON_STANDINGS_PAGE, rows, scope, qs, year=scope.season, podium=pages.podium(by_finish))


def _teams(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    return browse(pages.TEAMS_PAGE, queries.teams(sb, scope), scope, qs)


def _team(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    scope = LeagueScope(scope.league, team_season_id=int(m.group(1)))
    row = queries.team_season(sb, scope)
    if row is None:
        return error_response("team season not found", 404)
    return json_response({"league": scope.league, "team": row, "detail": pages.team_season_detail(row)})


def _managers(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    rows = [dict(r, slug=queries.slugify(r.get("manager"))) for r in queries.manager_summaries(sb, scope)]
    return browse(pages.MANAGERS_PAGE, rows, scope, qs)


def _manager(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    scope = LeagueScope(scope.league, manager_slug=m.group(1))
    name, rows = queries.manager_seasons(sb, scope)
    if name is None or not rows:
        return error_response("manager not found", 404)
    return json_response(
        {
            "league": scope.league,
            "manager": name,
            "slug": scope.manager_slug,
            "rows": rows,
            "career": pages.career_summary(rows),
        }
    )


def _drafts(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    return json_response({"league": scope.league, "seasons": queries.draft_seasons(sb, scope)})


def _drafts_all(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    return browse(pages.DRAFT_ALL_PAGE, queries.draft_picks(sb, scope), scope, qs)


def _draft(sb: SupabaseClient, scope: LeagueScope, qs, m) -> Response:
    scope = LeagueScope(scope.league, season=int(m.group(1)))
    return browse(pages.DRAFT_SEASON_PAGE, queries.draft_picks(sb, scope), scope, qs, season=scope.season)


ROUTES: list[tuple[re.Pattern, RouteFn]] = [
    (re.compile(r"^/api/seasons/?$"), _seasons),
    (re.compile(r"^/api/seasons/(\d+)/?$"), _season),
    (re.compile(r"^/api/teams/?$"), _teams),
    (re.compile(r"^/api/teams/(\d+)/?$"), _team),
    (re.compile(r"^/api/managers/?$"), _managers),
    (re.compile(r"^/api/managers/([\w-]+)/?$"), _manager),
    (re.compile(r"^/api/drafts/?$"), _drafts),
    (re.compile(r"^/api/drafts/all/?$"), _drafts_all),
    (re.compile(r"^/api/drafts/(\d+)/?$"), _draft),
]


def route(sb: Optional[SupabaseClient], raw_path: str) -> Response:
    parsed = urlparse(raw_path)
    path = parsed.path
    qs = parse_qs(parsed.query, keep_blank_values=True)

    if path == "/healthz":
        return json_response({"ok": True, "data_source": sb is not None})

    for pattern, fn in ROUTES:
        m = pattern.match(path)
        if m is None:
            continue
        if sb is None:
            return error_response("data source is not configured", 503)
        scope = LeagueScope.for_league(_first(qs, "league"))
        try:
            return fn(sb, scope, qs, m)
        except UnknownFieldError as exc:
            return error_response(f"unknown field: {exc.args[0]}", 400)
        except ValueError as exc:
            return error_response(str(exc), 400)
        except SupabaseError as exc:
            logger.error("GET %s failed: %s", path, exc)
            return error_response(str(exc), 502)

    return json_response({"error": "not found", "path": path}, code=404)


class Handler(BaseHTTPRequestHandler):
    client: Optional[SupabaseClient] = None

    def _send(self, resp: Response) -> None:
        self.send_response(resp.code)
        self.send_header("Content-Type", resp.content_type)
        self.send_header("Content-Length", str(len(resp.body)))
        for k, v in resp.headers.items():
            self.send_header(k, v)
        self.end_headers()
        self.wfile.write(resp.body)

    def do_GET(self) -> None:  # noqa: N802
        self._send(route(Handler.client, self.path))

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.info("%s - %s", self.address_string(), format % args)


def run(client: Optional[SupabaseClient], host: str, port: int) -> None:
    Handler.client = client
    server = ThreadingHTTPServer((host, port), Handler)
    logger.info("Serving league history at http://%s:%d/ (league=%s)", host, port, queries.default_league())
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Read-only fantasy league history API")
    p.add_argument("--host", default=getenv_str("HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=getenv_int("PORT", 8000))
    args = p.parse_args(argv)

    try:
        client = SupabaseClient(SupabaseConfig.from_env())
    except SupabaseError as exc:
        logger.error("%s", exc)
        return 1

    run(client, args.host, args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
