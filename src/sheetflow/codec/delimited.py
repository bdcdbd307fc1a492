import csv
from typing import Any, Iterator, Sequence

from .base import Row, RowReader, RowWriter, is_blank


def _records(handle, delimiter: str) -> Iterator[Row]:
    for row in csv.reader(handle, delimiter=delimiter):
        if not row or is_blank(row):
            continue
        yield row


class CsvReader(RowReader):
    extension = "csv"

    def __init__(self, delimiter: str = ",", encoding: str = "utf-8-sig", **options):
        super().__init__(**options)
        self.delimiter = delimiter
        self.encoding = encoding
        self._handle = None

    def open(self, path: str) -> None:
        self.path = path
        self._handle = open(path, newline="", encoding=self.encoding)

    def sheets(self) -> Iterator[Iterator[Row]]:
        if self._handle is None:
            raise RuntimeError("CsvReader.sheets() called before open()")
        yield self._iter_rows()

    def _iter_rows(self) -> Iterator[Row]:
        return _records(self._handle, self.delimiter)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    @classmethod
    def count_rows(cls, path: str, **options) -> int:
        """
        Records minus the header, using the same parsing and blank-row rules
        as reading. Nothing is mapped or kept in memory.
        """
        delimiter = options.get("delimiter", ",")
        with open(path, newline="", encoding=options.get("encoding", "utf-8-sig")) as handle:
            records = sum(1 for _ in _records(handle, delimiter))
        return max(0, records - 1)


class CsvWriter(RowWriter):
    extension = "csv"

    def __init__(self, delimiter: str = ",", encoding: str = "utf-8", **options):
        super().__init__(**options)
        self.delimiter = delimiter
        self.encoding = encoding
        self._handle = None
        self._writer = None

    def open_to(self, path: str) -> None:
        self.path = path
        self._handle = open(path, "w", newline="", encoding=self.encoding)
        self._writer = csv.writer(self._handle, delimiter=self.delimiter, lineterminator="\n")

    def add_row(self, values: Sequence[Any]) -> None:
        if self._writer is None:
            raise RuntimeError("CsvWriter.add_row() called before open_to()")
        self._writer.writerow(["" if v is None else v for v in values])

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._writer = None
