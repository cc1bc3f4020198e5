"""CSV and JSON rendering of export rows."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from datetime import date
from typing import Any

from workforce_engine.exports.rows import ExportRow

LAYOUTS = ("default", "excel", "eor", "ats", "audit")

# Words rendered in upper case in human-readable headers
ACRONYMS = {"id": "ID"}

FILE_EXTENSIONS = {"excel": "xls", "json": "json"}


def column_label(field_name: str) -> str:
    """'employee_id' -> 'Employee ID'."""
    return " ".join(ACRONYMS.get(word, word.capitalize()) for word in field_name.split("_"))


def headers_for(row_type: type[ExportRow], layout: str = "default") -> list[str]:
    """Column headers for a row type in a layout.

    ``default`` uses field names, ``excel`` uses readable labels and the
    system layouts (eor, ats, audit) use underscored labels. A system layout
    only applies to the row type it was made for.
    """
    if layout not in LAYOUTS:
        raise ValueError(f"Unknown layout '{layout}'; expected one of {', '.join(LAYOUTS)}")

    fields = list(row_type.model_fields)
    if layout == "default":
        return fields
    if layout == "excel":
        return [column_label(f) for f in fields]
    if layout != row_type.SYSTEM_LAYOUT:
        raise ValueError(f"Layout '{layout}' does not apply to {row_type.__name__}")
    return [column_label(f).replace(" ", "_") for f in fields]


def _cell(value: Any, layout: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return ("Yes" if value else "No") if layout != "default" else str(value).lower()
    return str(value)


def rows_to_csv(
    rows: Sequence[ExportRow],
    layout: str = "default",
    row_type: type[ExportRow] | None = None,
) -> str:
    """Render rows as CSV text with a header line.

    ``row_type`` supplies the header when ``rows`` is empty; with neither,
    the result is an empty string.
    """
    row_type = row_type or (type(rows[0]) if rows else None)
    if row_type is None:
        return ""

    headers = headers_for(row_type, layout)
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        values = row.model_dump(mode="json")
        writer.writerow([_cell(values[f], layout) for f in row_type.model_fields])
    return output.getvalue()


def rows_to_json(rows: Sequence[ExportRow]) -> str:
    """Render rows as a JSON array. Decimals are strings so no precision is lost."""
    return json.dumps([row.model_dump(mode="json") for row in rows], indent=2)


def export_filename(prefix: str, layout: str = "default", on_date: date | None = None) -> str:
    """Build a download name such as ``payroll-export-eor-2024-03-01.csv``."""
    on_date = on_date or date.today()
    extension = FILE_EXTENSIONS.get(layout, "csv")
    parts = [prefix, "export"]
    if layout != "default":
        parts.append(layout)
    parts.append(on_date.isoformat())
    return f"{'-'.join(parts)}.{extension}"
