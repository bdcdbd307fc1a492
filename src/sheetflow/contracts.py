"""
Import/export contracts.

`Importable` and `Exportable` are the required surfaces. Every other behavior
is an optional capability: a contract has it when it defines the methods of
the matching Protocol, whether or not it inherits from it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel


# ---------------------------------------------------------
# REQUIRED SURFACES
# ---------------------------------------------------------
class Importable(ABC):
    @abstractmethod
    def map(self, row: Dict[str, Any]) -> Any:
        """Turn a raw associative row (normalized header keys) into a record."""

    @abstractmethod
    def process(self, batch: List[Any]) -> None:
        """Handle a batch of mapped records as one unit."""


class Exportable(ABC):
    @abstractmethod
    def query(self) -> Iterable[Any]:
        """Single-pass source of raw rows."""

    @abstractmethod
    def headings(self) -> List[str]:
        """Column titles written as the first row; empty to skip the header."""

    @abstractmethod
    def map(self, row: Any) -> List[Any]:
        """Turn a raw row into the list of cell values to write."""

    @abstractmethod
    def batch_size(self) -> int:
        """Rows written per batch."""


# ---------------------------------------------------------
# OPTIONAL CAPABILITIES
# ---------------------------------------------------------
@runtime_checkable
class WithChunking(Protocol):
    def max_file_size(self) -> int:
        """Byte size above which the source file is split into chunks."""
        ...

    def chunk_rows(self) -> Optional[int]:
        """Data rows per chunk file; None uses the configured default."""
        ...


@runtime_checkable
class ShouldQueue(Protocol):
    def on_queue(self) -> Optional[str]:
        """Queue name; None uses the configured default."""
        ...

    def timeout(self) -> int:
        ...

    def memory(self) -> int:
        ...


@runtime_checkable
class WithErrorHandling(Protocol):
    def on_error(self, error: BaseException, row: Any, row_number: int) -> None:
        ...

    def should_skip_on_error(self) -> bool:
        ...

    def max_errors(self) -> Optional[int]:
        ...


@runtime_checkable
class WithProgress(Protocol):
    def on_start(self, total: int) -> None:
        ...

    def on_progress(self, processed: int, total: int) -> None:
        ...

    def on_complete(self) -> None:
        ...

    def on_failed(self, error: BaseException) -> None:
        ...


@runtime_checkable
class WithBatchSize(Protocol):
    def batch_size(self) -> int:
        ...


@runtime_checkable
class WithValidation(Protocol):
    def rules(self) -> type[BaseModel]:
        """Pydantic model every mapped record must satisfy."""
        ...


@runtime_checkable
class WithRowProcessing(Protocol):
    def process_row(self, record: Any, row_number: int) -> None:
        ...


@runtime_checkable
class WithCount(Protocol):
    def count(self) -> int:
        """Estimated number of rows `query()` will yield."""
        ...
