from abc import ABC, abstractmethod
from typing import Any, Iterator, List, Sequence

Row = List[Any]


def is_blank(row: Sequence[Any]) -> bool:
    return all(value is None or value == "" for value in row)


class RowReader(ABC):
    """
    Streaming reader over a tabular file.

    `sheets()` yields one row iterator per sheet, in file order. Flat formats
    have a single implicit sheet. Blank rows are never yielded.
    """

    extension: str = ""

    def __init__(self, **options):
        self.options = options
        self.path = None

    @abstractmethod
    def open(self, path: str) -> None:
        """Open the file for reading."""

    @abstractmethod
    def sheets(self) -> Iterator[Iterator[Row]]:
        """Yield a row iterator per sheet."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying file handle."""

    def rows(self) -> Iterator[Row]:
        """All rows of all sheets, flattened."""
        for sheet in self.sheets():
            yield from sheet

    @classmethod
    @abstractmethod
    def count_rows(cls, path: str, **options) -> int:
        """Count data rows (header excluded) without mapping anything."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class RowWriter(ABC):
    """Append-only writer producing a new tabular file."""

    extension: str = ""

    def __init__(self, **options):
        self.options = options
        self.path = None

    @abstractmethod
    def open_to(self, path: str) -> None:
        """Create (or truncate) the target file."""

    @abstractmethod
    def add_row(self, values: Sequence[Any]) -> None:
        """Append one row."""

    def add_rows(self, rows) -> None:
        for values in rows:
            self.add_row(values)

    @abstractmethod
    def close(self) -> None:
        """Flush and close; the file is complete only after this returns."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
