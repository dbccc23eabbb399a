"""Export helpers for browser views.

Delimited text follows the site's CSV rule: a value is quoted (with inner
quotes doubled) only if it contains a comma, a double quote or a newline.
Spreadsheet export maps the same rows to ordered {label: value} dicts and
hands them to pandas / openpyxl.
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

import pandas as pd

from league_history.browser.fields import Record, get_field


_NEEDS_QUOTES = re.compile(r'[",\n]')

CSV_CONTENT_TYPE = "text/csv; charset=utf-8"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ExportColumn:
    label: str
    field: Optional[str] = None
    value: Optional[Callable[[Record], Any]] = None

    def get(self, record: Record) -> Any:
        if self.value is not None:
            return self.value(record)
        return get_field(record, self.field or self.label)


def to_csv_value(v: Any, delimiter: str = ",") -> str:
    if v is None:
        return ""
    s = str(v)
    if _NEEDS_QUOTES.search(s) or delimiter in s:
        return '"' + s.replace('"', '""') + '"'
    return s


def to_delimited(rows: Iterable[Record], columns: Sequence[ExportColumn], *, delimiter: str = ",") -> str:
    lines = [delimiter.join(to_csv_value(c.label, delimiter) for c in columns)]
    for r in rows:
        lines.append(delimiter.join(to_csv_value(c.get(r), delimiter) for c in columns))
    return "\n".join(lines)


def spreadsheet_rows(rows: Iterable[Record], columns: Sequence[ExportColumn]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for r in rows:
        out.append({c.label: c.get(r) for c in columns})
    return out


def to_xlsx_bytes(sheet_rows: Sequence[dict[str, Any]], *, sheet_name: str, columns: Optional[Sequence[str]] = None) -> bytes:
    """Serialize row dicts to an .xlsx workbook with a single sheet."""
    df = pd.DataFrame(list(sheet_rows), columns=list(columns) if columns is not None else None)
    buf = io.BytesIO()
    # Excel caps sheet names at 31 characters.
    df.to_excel(buf, sheet_name=sheet_name[:31] or "Sheet1", index=False, engine="openpyxl")
    return buf.getvalue()
