import os
from typing import Dict, Tuple, Type

from ..exceptions import UnsupportedFormatException
from .base import RowReader, RowWriter
from .delimited import CsvReader, CsvWriter
from .excel import ExcelReader, ExcelWriter

_FORMATS: Dict[str, Tuple[Type[RowReader], Type[RowWriter]]] = {
    "xlsx": (ExcelReader, ExcelWriter),
    "csv": (CsvReader, CsvWriter),
}


def supported_formats() -> list:
    return sorted(_FORMATS)


def format_of(path: str) -> str:
    return os.path.splitext(path)[1].lstrip(".").lower()


def ensure_supported(fmt: str, operation: str | None = None) -> str:
    token = (fmt or "").lower()
    if token not in _FORMATS:
        raise UnsupportedFormatException(fmt, operation)
    return token


def reader_class(fmt: str, operation: str = "reading") -> Type[RowReader]:
    return _FORMATS[ensure_supported(fmt, operation)][0]


def writer_class(fmt: str, operation: str = "writing") -> Type[RowWriter]:
    return _FORMATS[ensure_supported(fmt, operation)][1]


def _codec_options(fmt: str, options: dict) -> dict:
    # The delimiter only means something to the flat format
    if fmt != "csv":
        return {k: v for k, v in options.items() if k != "delimiter"}
    return options


def create_reader(path: str, **options) -> RowReader:
    fmt = ensure_supported(format_of(path), "reading")
    return reader_class(fmt)(**_codec_options(fmt, options))


def create_writer(fmt: str, **options) -> RowWriter:
    fmt = ensure_supported(fmt, "writing")
    return writer_class(fmt)(**_codec_options(fmt, options))


def count_rows(path: str, **options) -> int:
    fmt = ensure_supported(format_of(path), "counting")
    return reader_class(fmt, "counting").count_rows(path, **_codec_options(fmt, options))


def register_format(fmt: str, reader: Type[RowReader], writer: Type[RowWriter]) -> None:
    _FORMATS[fmt.lower()] = (reader, writer)
