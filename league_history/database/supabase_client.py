from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import requests

from league_history.utils.env import getenv_int, getenv_str


logger = logging.getLogger(__name__)


class SupabaseError(RuntimeError):
    pass


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


@dataclass(frozen=True)
class SupabaseConfig:
    url: str
    service_role_key: str
    schema: str = "public"
    timeout_seconds: int = 30
    max_retries: int = 3
    page_size: int = 1000

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        url = getenv_str("SUPABASE_URL") or ""
        key = getenv_str("SUPABASE_SERVICE_ROLE_KEY") or getenv_str("SUPABASE_ANON_KEY") or ""
        if not url or not key:
            raise SupabaseError("SUPABASE_URL and SUPABASE_ANON_KEY (or SUPABASE_SERVICE_ROLE_KEY) must be set")
        return cls(
            url=url,
            service_role_key=key,
            timeout_seconds=getenv_int("SUPABASE_TIMEOUT_SECONDS", 30),
            max_retries=getenv_int("SUPABASE_MAX_RETRIES", 3),
            page_size=getenv_int("SUPABASE_PAGE_SIZE", 1000),
        )


class SupabaseClient:
    """
    Minimal read-only PostgREST client for the league's precomputed views.

    Filters use PostgREST operator syntax as values, e.g. {"league": "eq.Congadanga"}.
    """

    def __init__(
        self,
        config: SupabaseConfig,
        *,
        session: Optional[requests.Session] = None,
        sleep_fn: Callable[[float], None] = _sleep,
    ) -> None:
        self._url = (config.url or "").strip().rstrip("/")
        self._key = (config.service_role_key or "").strip()
        if not self._url or not self._key:
            raise SupabaseError("Supabase url and key are required")
        self._config = config
        self._rest = f"{self._url}/rest/v1"
        self._session = session or requests.Session()
        self._sleep = sleep_fn

    @property
    def page_size(self) -> int:
        return self._config.page_size

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Accept": "application/json",
            "Accept-Profile": self._config.schema,
        }

    def _request(self, path: str, *, params: Mapping[str, Any]) -> requests.Response:
        url = f"{self._rest}/{path.lstrip('/')}"
        backoff = 0.5
        max_retries = self._config.max_retries

        for attempt in range(max_retries + 1):
            try:
                resp = self._session.get(
                    url,
                    headers=self._headers(),
                    params=dict(params),
                    timeout=self._config.timeout_seconds,
                )
            except requests.RequestException as exc:
                if attempt >= max_retries:
                    raise SupabaseError(f"Request failed: GET {url}: {exc}") from exc
                logger.warning("GET %s failed (%s); retry %d/%d", path, exc, attempt + 1, max_retries)
                self._sleep(backoff)
                backoff *= 2
                continue

            if resp.status_code == 429 or resp.status_code >= 500:
                if attempt >= max_retries:
                    raise SupabaseError(f"HTTP {resp.status_code} for GET {url}: {_error_message(resp)}")
                wait = float(resp.headers.get("Retry-After", backoff))
                logger.warning("GET %s -> HTTP %d; retry %d/%d in %.1fs", path, resp.status_code, attempt + 1, max_retries, wait)
                self._sleep(wait)
                backoff *= 2
                continue

            if not resp.ok:
                raise SupabaseError(_error_message(resp))

            return resp

        raise SupabaseError(f"Request failed: GET {url}")

    def select(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Optional[Mapping[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"select": select}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = int(limit)
        if offset:
            params["offset"] = int(offset)
        data = self._request(table, params=params).json()
        if not isinstance(data, list):
            raise SupabaseError(f"Unexpected payload from {table}: expected a list of rows")
        return data

    def select_all(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Optional[Mapping[str, str]] = None,
        order: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Page through a view until a short page comes back."""
        size = max(int(page_size or self.page_size), 1)
        out: list[dict[str, Any]] = []
        offset = 0
        while True:
            chunk = self.select(table, select=select, filters=filters, order=order, limit=size, offset=offset)
            out.extend(chunk)
            if len(chunk) < size:
                break
            offset += size
        logger.debug("select_all %s -> %d rows", table, len(out))
        return out

    def maybe_single(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Optional[Mapping[str, str]] = None,
    ) -> Optional[dict[str, Any]]:
        rows = self.select(table, select=select, filters=filters, limit=2)
        if len(rows) > 1:
            raise SupabaseError(f"Expected at most one row from {table}, got several")
        return rows[0] if rows else None


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    text = (resp.text or "").strip()
    return text or f"HTTP {resp.status_code}"


def eq(value: Any) -> str:
    return f"eq.{value}"
