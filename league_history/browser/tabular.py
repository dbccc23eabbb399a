"""Filter / search / sort / paginate over an in-memory record list.

One TabularBrowser backs every list page of the site. A page hands it its
FieldSpec table once, loads the records fetched for the current scope, and
then drives it from the request's query parameters:

    browser = TabularBrowser(DRAFT_FIELDS, default_sort="pick", identity="draft_pick_id")
    browser.load(rows)
    browser.set_filter("position", "RB")
    browser.set_search("smith")
    page = browser.view()

The loaded records are never mutated; every view is a pure function of
(records, ViewState). The pipeline order is fixed: per-field filters, then
free-text search, then sort, then slice.
"""

from __future__ import annotations

import functools
import logging
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence

from league_history.browser.export import ExportColumn, spreadsheet_rows, to_delimited
from league_history.browser.fields import FieldSpec, Record, UnknownFieldError, filter_token


logger = logging.getLogger(__name__)

ALL = "ALL"
DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class ViewState:
    sort_key: str
    page_size: int = DEFAULT_PAGE_SIZE
    search_query: str = ""
    active_filters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    page: int = 1


@dataclass(frozen=True)
class View:
    rows: list[Record]
    total_count: int
    page_count: int
    current_page: int
    page_size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": list(self.rows),
            "totalCount": self.total_count,
            "pageCount": self.page_count,
            "currentPage": self.current_page,
            "pageSize": self.page_size,
        }


def page_count(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


class TabularBrowser:
    def __init__(
        self,
        fields: Iterable[FieldSpec],
        *,
        default_sort: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        identity: Optional[str] = None,
    ) -> None:
        self._fields: dict[str, FieldSpec] = {}
        for spec in fields:
            self._fields[spec.name] = spec
        for spec in self._fields.values():
            for tb in spec.tie_breakers:
                if tb not in self._fields:
                    raise UnknownFieldError(f"{spec.name}: tie-break field {tb!r} is not declared")
        if default_sort not in self._fields:
            raise UnknownFieldError(default_sort)
        if identity is not None and identity not in self._fields:
            raise UnknownFieldError(identity)
        if page_size < 1:
            raise ValueError("page_size must be a positive integer")

        self._default_sort = default_sort
        self._default_page_size = page_size
        self._identity = identity
        self._records: tuple[Record, ...] = ()
        self._state = ViewState(sort_key=default_sort, page_size=page_size)
        self._cache_key: Optional[tuple] = None
        self._cache: list[Record] = []

    # -- inputs ---------------------------------------------------------

    @property
    def fields(self) -> Mapping[str, FieldSpec]:
        return MappingProxyType(self._fields)

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def records(self) -> Sequence[Record]:
        return self._records

    def field(self, name: str) -> FieldSpec:
        try:
            return self._fields[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def load(self, records: Iterable[Record]) -> None:
        """Replace the record set and reset the view state to defaults."""
        self._records = tuple(r for r in records if r is not None)
        self._state = ViewState(sort_key=self._default_sort, page_size=self._default_page_size)
        self._cache_key = None
        logger.debug("Loaded %d records", len(self._records))

    def set_search(self, query: Optional[str]) -> None:
        q = (query or "").strip().lower()
        self._state = replace(self._state, search_query=q, page=1)

    def set_filter(self, name: str, value: Any) -> None:
        self.field(name)
        filters = dict(self._state.active_filters)
        if value is None or value == ALL:
            filters.pop(name, None)
        else:
            filters[name] = filter_token(value)
        self._state = replace(self._state, active_filters=MappingProxyType(filters), page=1)

    def set_sort(self, name: str) -> None:
        self.field(name)
        self._state = replace(self._state, sort_key=name)

    def set_page_size(self, n: int) -> None:
        if int(n) < 1:
            raise ValueError("page_size must be a positive integer")
        self._state = replace(self._state, page_size=int(n), page=1)

    def set_page(self, n: int) -> None:
        last = page_count(len(self.filtered_sorted()), self._state.page_size)
        self._state = replace(self._state, page=max(1, min(int(n), last)))

    # -- derived views --------------------------------------------------

    def options(self, name: str) -> list[Any]:
        """Distinct non-null values of a field in sort order, for filter choices."""
        spec = self.field(name)
        seen: dict[str, Record] = {}
        for r in self._records:
            v = spec.raw(r)
            if v is None or v == "":
                continue
            seen.setdefault(filter_token(v), r)
        ordered = sorted(seen.values(), key=functools.cmp_to_key(lambda a, b: _asc(spec, a, b)))
        return [spec.raw(r) for r in ordered]

    def filtered_sorted(self) -> list[Record]:
        """Filter, search and sort the full set; pagination is not applied."""
        st = self._state
        key = (st.search_query, tuple(sorted(st.active_filters.items())), st.sort_key)
        if key == self._cache_key:
            return list(self._cache)

        out: Iterable[Record] = self._records
        for name, wanted in st.active_filters.items():
            spec = self._fields[name]
            out = [r for r in out if spec.filter_token(r) == wanted]
            if not out:
                break

        if st.search_query and out:
            searchable = [s for s in self._fields.values() if s.searchable]
            q = st.search_query
            out = [r for r in out if any(q in s.search_text(r) for s in searchable)]

        result = sorted(out, key=functools.cmp_to_key(self._comparator(st.sort_key)))
        self._cache_key = key
        self._cache = result
        return list(result)

    def view(self) -> View:
        rows = self.filtered_sorted()
        total = len(rows)
        size = self._state.page_size
        pages = page_count(total, size)
        current = min(max(self._state.page, 1), pages)
        start = (current - 1) * size
        return View(
            rows=rows[start : start + size],
            total_count=total,
            page_count=pages,
            current_page=current,
            page_size=size,
        )

    def export_delimited(self, columns: Sequence[ExportColumn], *, delimiter: str = ",") -> str:
        rows = self.filtered_sorted()
        logger.debug("Exporting %d rows as delimited text", len(rows))
        return to_delimited(rows, columns, delimiter=delimiter)

    def spreadsheet_rows(self, columns: Sequence[ExportColumn]) -> list[dict[str, Any]]:
        return spreadsheet_rows(self.filtered_sorted(), columns)

    # -- ordering -------------------------------------------------------

    def _comparator(self, sort_key: str):
        primary = self._fields[sort_key]
        chain = [primary] + [self._fields[n] for n in primary.tie_breakers]
        ident = self._fields[self._identity] if self._identity else None

        def cmp(a: Record, b: Record) -> int:
            for spec in chain:
                c = spec.compare(a, b)
                if c:
                    return c
            if ident is not None:
                return _asc(ident, a, b)
            return 0

        return cmp


def _asc(spec: FieldSpec, a: Record, b: Record) -> int:
    c = spec.compare(a, b)
    return -c if spec.descending else c
