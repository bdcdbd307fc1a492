"""
Row codecs: streaming readers and append-only writers per file format.
"""

from .base import Row, RowReader, RowWriter
from .delimited import CsvReader, CsvWriter
from .excel import ExcelReader, ExcelWriter
from .registry import (
    count_rows,
    create_reader,
    create_writer,
    ensure_supported,
    format_of,
    register_format,
    supported_formats,
)

__all__ = [
    "Row",
    "RowReader",
    "RowWriter",
    "CsvReader",
    "CsvWriter",
    "ExcelReader",
    "ExcelWriter",
    "count_rows",
    "create_reader",
    "create_writer",
    "ensure_supported",
    "format_of",
    "register_format",
    "supported_formats",
]
