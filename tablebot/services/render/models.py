"""Table data structures consumed by the renderer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence, Union

from tablebot.core.errors import TableShapeError


CellValue = Union[str, int, float, bool]


class RenderTarget(str, Enum):
    """Kind of artifact produced by a render."""

    RASTER = "raster"
    DOCUMENT = "document"

    @property
    def extension(self) -> str:
        return "pdf" if self is RenderTarget.DOCUMENT else "png"

    @classmethod
    def parse(cls, value: "str | RenderTarget") -> "RenderTarget":
        """Accept enum values as well as the file extensions ``png``/``pdf``."""

        if isinstance(value, RenderTarget):
            return value
        lowered = str(value).strip().lower()
        aliases = {"png": cls.RASTER, "pdf": cls.DOCUMENT}
        if lowered in aliases:
            return aliases[lowered]
        try:
            return cls(lowered)
        except ValueError as exc:
            raise ValueError(f"Unknown render target: {value}") from exc


@dataclass(frozen=True, slots=True)
class Column:
    """A table column; ``key`` addresses cells, ``header`` is the display label."""

    key: str
    header: str | None = None

    @property
    def label(self) -> str:
        return self.header or self.key


@dataclass(frozen=True, slots=True)
class Cell:
    value: CellValue


@dataclass(frozen=True, slots=True)
class TableData:
    """Columns plus rows of optional cells.

    Cell ``i`` of a row belongs to ``columns[i]``. Rows may be shorter or
    longer than the column list; the renderer treats missing cells as absent.
    """

    columns: tuple[Column, ...] = ()
    rows: tuple[tuple[Cell | None, ...], ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TableData":
        """Build table data from a decoded JSON ``{"columns": [...], "rows": [...]}`` mapping.

        Only the shape is checked: columns must be objects carrying a ``key``,
        rows must be lists. Cells that are ``null`` or not ``{"value": ...}``
        objects are treated as absent.
        """

        if not isinstance(payload, Mapping):
            raise TableShapeError("Table payload must be an object")
        raw_columns = payload.get("columns") or []
        raw_rows = payload.get("rows") or []
        if not isinstance(raw_columns, Sequence) or isinstance(raw_columns, (str, bytes)):
            raise TableShapeError("Table 'columns' must be a list")
        if not isinstance(raw_rows, Sequence) or isinstance(raw_rows, (str, bytes)):
            raise TableShapeError("Table 'rows' must be a list")

        columns = []
        for idx, raw in enumerate(raw_columns):
            if not isinstance(raw, Mapping) or raw.get("key") in (None, ""):
                raise TableShapeError(f"columns[{idx}] must be an object with a 'key'")
            header = raw.get("header")
            columns.append(Column(key=str(raw["key"]), header=str(header) if header is not None else None))

        rows = []
        for idx, raw_row in enumerate(raw_rows):
            if not isinstance(raw_row, Sequence) or isinstance(raw_row, (str, bytes)):
                raise TableShapeError(f"rows[{idx}] must be a list")
            rows.append(tuple(_parse_cell(raw_cell) for raw_cell in raw_row))
        return cls(columns=tuple(columns), rows=tuple(rows))


def _parse_cell(raw: Any) -> Cell | None:
    if isinstance(raw, Cell):
        return raw
    if isinstance(raw, Mapping) and "value" in raw:
        return Cell(value=raw["value"])
    return None


__all__ = ["Cell", "CellValue", "Column", "RenderTarget", "TableData"]
