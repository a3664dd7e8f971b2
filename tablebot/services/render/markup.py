"""Normalisation of table rows and HTML document generation."""

from __future__ import annotations

import html
from typing import Sequence

from .models import CellValue, TableData


NOT_AVAILABLE = "N/A"
DEFAULT_TITLE = "Dilly Comparison Table"

TABLE_STYLE = """
        table { border-collapse: collapse; width: 100%; }
        th, td { border: 1px solid black; padding: 8px; text-align: left; }
        th { background-color: #f2f2f2; }
"""

NormalizedItem = dict[str, CellValue]


def normalize_rows(data: TableData) -> list[NormalizedItem]:
    """Project every row onto the column keys.

    A field keeps the cell value only when the cell exists and its value is
    truthy; ``0``, ``False`` and ``""`` fall back to ``"N/A"`` like a missing
    cell does.
    """

    items: list[NormalizedItem] = []
    for row in data.rows:
        item: NormalizedItem = {}
        for index, column in enumerate(data.columns):
            cell = row[index] if index < len(row) else None
            item[column.key] = cell.value if cell is not None and cell.value else NOT_AVAILABLE
        items.append(item)
    return items


def format_value(value: CellValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_document(
    data: TableData,
    *,
    title: str = DEFAULT_TITLE,
    items: Sequence[NormalizedItem] | None = None,
    escape: bool = False,
) -> str:
    """Return a self-contained HTML document for the table.

    Values are interpolated verbatim unless ``escape`` is set; callers that
    pass untrusted cell values should enable it.
    """

    if items is None:
        items = normalize_rows(data)

    def _text(value: CellValue) -> str:
        text = format_value(value)
        return html.escape(text) if escape else text

    header_cells = "".join(f"<th>{_text(column.label)}</th>" for column in data.columns)
    body_rows = "".join(
        "\n          <tr>\n            "
        + "".join(f"<td>{_text(item.get(column.key, NOT_AVAILABLE))}</td>" for column in data.columns)
        + "\n          </tr>\n        "
        for item in items
    )
    caption = _text(title)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{caption}</title>
  <style>{TABLE_STYLE}  </style>
</head>
<body>
  <h1>{caption}</h1>
  <table>
    <tr>{header_cells}</tr>
    {body_rows}
  </table>
</body>
</html>
"""


__all__ = ["DEFAULT_TITLE", "NOT_AVAILABLE", "NormalizedItem", "build_document", "format_value", "normalize_rows"]
