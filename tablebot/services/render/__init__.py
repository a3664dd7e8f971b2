"""Table rendering service: table data in, PNG or PDF artifact out."""

from .engine import HeadlessEngine
from .markup import NOT_AVAILABLE, build_document, normalize_rows
from .models import Cell, Column, RenderTarget, TableData
from .renderer import TableRenderer

__all__ = [
    "Cell",
    "Column",
    "HeadlessEngine",
    "NOT_AVAILABLE",
    "RenderTarget",
    "TableData",
    "TableRenderer",
    "build_document",
    "normalize_rows",
]
