"""Field declarations for the tabular browser.

A FieldSpec says how one field of a flat record is read, compared and
searched. Records are plain mappings from the data source; a field that is
missing or has the wrong type never raises, it falls back to the field's
null handling:

 - number fields use ``null_sentinel`` (declared per field, since "worst"
   means 999 for a finish and 0 for a win count)
 - text fields compare as the empty string
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence

Record = Mapping[str, Any]
Accessor = Callable[[Record], Any]
Comparator = Callable[[Any, Any], int]

NUMBER = "number"
TEXT = "text"

# Finish placements: 1 is best, missing sorts after every real finish.
FINISH_SENTINEL = 999


class UnknownFieldError(KeyError):
    pass


def get_field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def safe_float(x: Any) -> Optional[float]:
    if x is None or x == "" or isinstance(x, bool):
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if v != v:  # NaN
        return None
    return v


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def compare_numbers(a: float, b: float) -> int:
    return _cmp(a, b)


def compare_text(a: str, b: str) -> int:
    # Case-insensitive first so "bob" sits next to "Bob"; raw text breaks the tie.
    return _cmp(a.casefold(), b.casefold()) or _cmp(a, b)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str = TEXT
    accessor: Optional[Accessor] = None
    descending: bool = False
    null_sentinel: float = 0
    searchable: bool = False
    tie_breakers: Sequence[str] = field(default_factory=tuple)
    comparator: Optional[Comparator] = None
    label: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in (NUMBER, TEXT):
            raise ValueError(f"FieldSpec {self.name!r}: kind must be {NUMBER!r} or {TEXT!r}")
        object.__setattr__(self, "tie_breakers", tuple(self.tie_breakers))

    @property
    def title(self) -> str:
        return self.label or self.name.replace("_", " ").title()

    def raw(self, record: Record) -> Any:
        if self.accessor is not None:
            try:
                return self.accessor(record)
            except (KeyError, TypeError, ValueError, ZeroDivisionError, AttributeError):
                return None
        return get_field(record, self.name)

    def sort_value(self, record: Record) -> Any:
        v = self.raw(record)
        if self.kind == NUMBER:
            f = safe_float(v)
            return self.null_sentinel if f is None else f
        return "" if v is None else str(v)

    def search_text(self, record: Record) -> str:
        v = self.raw(record)
        if v is None:
            return ""
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        return str(v).lower()

    def filter_token(self, record: Record) -> str:
        return filter_token(self.raw(record))

    def compare(self, a: Record, b: Record) -> int:
        """Compare two records on this field alone, honoring its direction."""
        va = self.sort_value(a)
        vb = self.sort_value(b)
        if self.comparator is not None:
            c = self.comparator(va, vb)
        elif self.kind == NUMBER:
            c = compare_numbers(va, vb)
        else:
            c = compare_text(va, vb)
        c = (c > 0) - (c < 0)
        return -c if self.descending else c


def filter_token(value: Any) -> str:
    """Normalize a field value or a selected filter value for equality checks."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def number(name: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name, kind=NUMBER, **kwargs)


def text(name: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name, kind=TEXT, **kwargs)
