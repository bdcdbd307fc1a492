"""
xlsx codec backed by openpyxl.

Reading uses read-only workbooks so rows are streamed from the archive instead
of loading the whole sheet; writing uses write-only workbooks for the same
reason.
"""

import logging
from typing import Any, Iterator, Optional, Sequence

from openpyxl import Workbook, load_workbook

from .base import Row, RowReader, RowWriter, is_blank

logger = logging.getLogger(__name__)


class ExcelReader(RowReader):
    extension = "xlsx"

    def __init__(self, **options):
        super().__init__(**options)
        self._wb = None

    def open(self, path: str) -> None:
        self.path = path
        self._wb = load_workbook(filename=path, read_only=True, data_only=True)

    def sheets(self) -> Iterator[Iterator[Row]]:
        if self._wb is None:
            raise RuntimeError("ExcelReader.sheets() called before open()")

        for ws in self._wb.worksheets:
            logger.debug(f"[EXCEL] Reading sheet '{ws.title}' from {self.path}")
            yield self._iter_sheet(ws)

    @staticmethod
    def _iter_sheet(ws) -> Iterator[Row]:
        for values in ws.iter_rows(values_only=True):
            row = list(values)
            if is_blank(row):
                continue
            yield row

    def close(self) -> None:
        if self._wb is not None:
            self._wb.close()
            self._wb = None

    @classmethod
    def count_rows(cls, path: str, **options) -> int:
        wb = load_workbook(filename=path, read_only=True, data_only=True)
        try:
            total = 0
            for ws in wb.worksheets:
                sheet_rows = sum(1 for row in ws.iter_rows(values_only=True) if not is_blank(row))
                # first non-blank row of each sheet is its header
                total += max(0, sheet_rows - 1)
            return total
        finally:
            wb.close()


class ExcelWriter(RowWriter):
    extension = "xlsx"

    def __init__(self, sheet_title: Optional[str] = None, **options):
        super().__init__(**options)
        self.sheet_title = sheet_title
        self._wb = None
        self._ws = None

    def open_to(self, path: str) -> None:
        self.path = path
        self._wb = Workbook(write_only=True)
        self._ws = self._wb.create_sheet(title=self.sheet_title)

    def add_row(self, values: Sequence[Any]) -> None:
        if self._ws is None:
            raise RuntimeError("ExcelWriter.add_row() called before open_to()")
        self._ws.append(list(values))

    def close(self) -> None:
        if self._wb is None:
            return
        try:
            self._wb.save(self.path)
        finally:
            self._wb = None
            self._ws = None
