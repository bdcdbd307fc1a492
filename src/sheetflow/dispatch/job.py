import logging
import traceback
from typing import TYPE_CHECKING

from ..stats import RunStats
from .base import ImportUnit

if TYPE_CHECKING:
    from ..processor import DataProcessor

logger = logging.getLogger(__name__)


class ImportJob:
    """
    Executes one ImportUnit against a DataProcessor.

    A unit runs exactly once. When it fails the dispatcher calls `failed()`
    instead of retrying.
    """

    tries = 1

    def __init__(self, unit: ImportUnit):
        self.unit = unit

    @property
    def timeout(self) -> int:
        return self.unit.timeout

    @property
    def memory(self) -> int:
        return self.unit.memory

    def handle(self, processor: "DataProcessor") -> RunStats:
        unit = self.unit
        logger.info(
            f"[ImportJob] Processing unit {unit.id}: kind={unit.kind}, "
            f"rows={len(unit.batch)}, chunk_file={unit.chunk_file_path}, "
            f"contract={unit.contract.__class__.__name__}"
        )

        if unit.chunk_file_path:
            stats = processor.import_chunk(unit.contract, unit.chunk_file_path, row_offset=unit.row_offset)
            processor.file_manager.discard_chunk(unit.chunk_file_path)
        else:
            stats = processor.process_queued_batch(unit.contract, unit.batch, unit.row_numbers or None)

        logger.info(f"[ImportJob] Unit {unit.id} finished: {stats.snapshot()}")
        return stats

    def failed(self, processor: "DataProcessor", exc: BaseException) -> None:
        logger.error(
            f"[ImportJob] Unit {self.unit.id} failed: {exc}\n"
            f"{''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}"
        )

        if self.unit.chunk_file_path:
            processor.file_manager.discard_chunk(self.unit.chunk_file_path)
