"""
Streaming batch engine for tabular imports and exports.

Rows are read, mapped, validated and flushed in fixed-size batches; the whole
dataset is never held in memory. Oversized sources are split into chunk files
first, and batches or chunks can be handed to a JobDispatcher instead of being
processed inline.
"""

import logging
import os
import time
import uuid
from contextlib import closing
from typing import Any, List, Optional, Sequence

from more_itertools import chunked
from pydantic import ValidationError

from . import codec, telemetry
from .capabilities import ExportCapabilities, ImportCapabilities
from .chunking import ChunkSplitter
from .config import ProcessorSettings
from .dispatch.base import ImportUnit, JobDispatcher
from .exceptions import (
    ConfigurationException,
    ErrorBudgetExceededException,
    ProcessingException,
    RowValidationException,
)
from .files import FileManager
from .headers import header_keys, zip_row
from .policies import QueuePolicy
from .stats import RunStats
from .storage import DiskStorage

logger = logging.getLogger(__name__)
tracer = telemetry.tracing.get_tracer(__name__)


class DataProcessor:
    def __init__(
        self,
        file_manager: FileManager,
        chunk_splitter: Optional[ChunkSplitter] = None,
        dispatcher: Optional[JobDispatcher] = None,
        settings: Optional[ProcessorSettings] = None,
    ):
        self.file_manager = file_manager
        self.settings = settings or file_manager.settings
        self.chunk_splitter = chunk_splitter or ChunkSplitter(file_manager)
        self.dispatcher = dispatcher
        self._last_stats: Optional[RunStats] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ProcessorSettings] = None,
        dispatcher: Optional[JobDispatcher] = None,
    ) -> "DataProcessor":
        settings = settings or ProcessorSettings.from_env()
        file_manager = FileManager(DiskStorage(settings.storage_root), settings)
        return cls(file_manager, dispatcher=dispatcher, settings=settings)

    @property
    def last_stats(self) -> Optional[RunStats]:
        """Copy of the counters of the most recent call."""
        return self._last_stats.frozen_copy() if self._last_stats else None

    def get_stats(self) -> dict:
        return (self._last_stats or RunStats()).snapshot()

    # =====================================================================
    # IMPORT
    # =====================================================================
    def import_file(self, contract: Any, path: str) -> RunStats:
        """
        Import every data row of `path` through `contract`.

        Raises ProcessingException wrapping whatever aborted the run.
        """
        return self._run_import(contract, path, dispatch=True)

    def import_chunk(self, contract: Any, chunk_path: str, row_offset: int = 0) -> RunStats:
        """
        Import one chunk file inline. Used by workers executing chunk units:
        nothing is split again and no batch is re-dispatched.
        """
        return self._run_import(contract, chunk_path, dispatch=False, row_offset=row_offset)

    def _run_import(self, contract: Any, path: str, dispatch: bool, row_offset: int = 0) -> RunStats:
        started = time.perf_counter()
        status = "failed"
        stats = RunStats()
        local_path = None

        try:
            caps = ImportCapabilities.detect(contract, self.settings.batch_size)
        except Exception as exc:
            raise ProcessingException(cause=exc) from exc

        logger.info(f"Import started: contract={contract.__class__.__name__}, path={path}")

        with tracer.start_as_current_span("DataProcessor.import", attributes={"file.path": path}):
            try:
                self._check_import_configuration(caps, dispatch)

                local_path = self.file_manager.resolve(path)
                stats.total_rows = self.file_manager.count_rows(local_path)
                caps.report_start(stats.total_rows)

                if dispatch and caps.chunk is not None and self.file_manager.should_chunk(
                    local_path, caps.chunk.max_file_size
                ):
                    self._process_large_import(contract, caps, local_path, stats)
                else:
                    self._process_small_import(contract, caps, local_path, stats, dispatch, row_offset)

                caps.report_complete()
                status = "success"

            except Exception as exc:
                logger.error(f"Import failed for {path}: {exc}")
                caps.report_failed(exc)
                raise ProcessingException(cause=exc) from exc

            finally:
                if local_path is not None and local_path != path:
                    self.file_manager.delete_local(local_path)
                self._last_stats = stats.frozen_copy()
                telemetry.metrics.record_run("import", time.perf_counter() - started, status)

        logger.info(f"Import finished for {path} in {time.perf_counter() - started:.2f}s: {stats.snapshot()}")
        return stats.frozen_copy()

    def _check_import_configuration(self, caps: ImportCapabilities, dispatch: bool) -> None:
        if dispatch and caps.queue is not None and self.dispatcher is None:
            raise ConfigurationException("Contract requests queued execution but no dispatcher is configured")

        if caps.chunk is not None and caps.chunk.chunk_rows is not None and caps.chunk.chunk_rows < 1:
            raise ConfigurationException(
                f"Chunk row count must be a positive integer, got {caps.chunk.chunk_rows!r}"
            )

    def _process_small_import(
        self,
        contract: Any,
        caps: ImportCapabilities,
        local_path: str,
        stats: RunStats,
        dispatch: bool = True,
        row_offset: int = 0,
    ) -> int:
        """Stream one local file through map/validate/batch. Returns the last row number used."""
        reader = codec.create_reader(local_path, **self.file_manager.codec_options)
        current_row = row_offset
        records: List[Any] = []
        row_numbers: List[int] = []

        reader.open(local_path)
        try:
            for sheet in reader.sheets():
                keys = None
                for values in sheet:
                    if keys is None:
                        keys = header_keys(values)
                        continue

                    current_row += 1
                    raw_row = zip_row(keys, values)

                    try:
                        record = contract.map(raw_row)
                        if caps.rules is not None:
                            self._validate(caps.rules, record, current_row)
                    except Exception as exc:
                        self._handle_row_error(caps, stats, exc, raw_row, current_row)
                        continue

                    records.append(record)
                    row_numbers.append(current_row)

                    if len(records) >= caps.batch.size:
                        self._process_batch(contract, caps, stats, records, row_numbers, dispatch)
                        records, row_numbers = [], []

            if records:
                self._process_batch(contract, caps, stats, records, row_numbers, dispatch)
        finally:
            reader.close()

        return current_row

    def _process_large_import(
        self,
        contract: Any,
        caps: ImportCapabilities,
        local_path: str,
        stats: RunStats,
    ) -> None:
        chunk_rows = caps.chunk.chunk_rows or self.settings.chunk_rows
        reader = codec.create_reader(local_path, **self.file_manager.codec_options)
        row_offset = 0

        logger.info(
            f"{local_path} exceeds {caps.chunk.max_file_size} bytes, splitting into chunks of {chunk_rows} rows"
        )

        with closing(self.chunk_splitter.split(reader, local_path, chunk_rows)) as chunks:
            for chunk in chunks:
                if caps.queue is not None:
                    self._dispatch(
                        ImportUnit(
                            contract=contract,
                            chunk_file_path=chunk.path,
                            chunk_number=chunk.number,
                            row_offset=row_offset,
                            timeout=caps.queue.timeout,
                            memory=caps.queue.memory,
                            tries=caps.queue.tries,
                        ),
                        caps.queue,
                    )
                else:
                    chunk_local = self.file_manager.resolve(chunk.path)
                    try:
                        self._process_small_import(contract, caps, chunk_local, stats, row_offset=row_offset)
                    finally:
                        if chunk_local != chunk.path:
                            self.file_manager.delete_local(chunk_local)
                        self.file_manager.discard_chunk(chunk.path)

                row_offset += chunk.rows

    # =====================================================================
    # BATCH FLUSH
    # =====================================================================
    def process_queued_batch(
        self,
        contract: Any,
        batch: Sequence[Any],
        row_numbers: Optional[Sequence[int]] = None,
    ) -> RunStats:
        """
        Process a batch that was dispatched earlier. Never re-dispatches.
        Without `row_numbers` the records are numbered from 1.
        """
        records = list(batch)
        numbers = list(row_numbers) if row_numbers else list(range(1, len(records) + 1))
        stats = RunStats(total_rows=len(records))

        try:
            caps = ImportCapabilities.detect(contract, self.settings.batch_size)
            if records:
                self._process_batch(contract, caps, stats, records, numbers, dispatch=False)
        except Exception as exc:
            logger.error(f"Queued batch starting at row {numbers[0] if numbers else 0} failed: {exc}")
            raise ProcessingException(cause=exc) from exc
        finally:
            self._last_stats = stats.frozen_copy()

        return stats.frozen_copy()

    def _process_batch(
        self,
        contract: Any,
        caps: ImportCapabilities,
        stats: RunStats,
        records: List[Any],
        row_numbers: List[int],
        dispatch: bool = True,
    ) -> None:
        if dispatch and caps.queue is not None:
            # counters only move once a worker runs the batch
            self._dispatch(
                ImportUnit(
                    contract=contract,
                    batch=records,
                    row_numbers=row_numbers,
                    timeout=caps.queue.timeout,
                    memory=caps.queue.memory,
                    tries=caps.queue.tries,
                ),
                caps.queue,
            )
            return

        with tracer.start_as_current_span(
            "DataProcessor.process_batch",
            attributes={"batch.size": len(records), "batch.first_row": row_numbers[0]},
        ):
            if caps.process_row is not None:
                processed = 0
                for record, row_number in zip(records, row_numbers):
                    try:
                        caps.process_row(record, row_number)
                    except Exception as exc:
                        self._handle_row_error(caps, stats, exc, record, row_number)
                        continue
                    processed += 1
                    stats.processed_rows += 1
            else:
                try:
                    contract.process(records)
                except Exception as exc:
                    # the failing record is unknown; blame the last one
                    self._handle_row_error(caps, stats, exc, records[-1], row_numbers[-1], discarded=len(records))
                    return
                processed = len(records)
                stats.processed_rows += processed

        telemetry.metrics.record_rows("import", processed=processed)
        caps.report_progress(stats.processed_rows, stats.total_rows)

    def _dispatch(self, unit: ImportUnit, policy: QueuePolicy) -> None:
        queue_name = policy.queue_name or self.settings.queue
        logger.info(f"Dispatching {unit.kind} unit {unit.id} to queue '{queue_name}'")
        self.dispatcher.submit(unit, queue_name)
        telemetry.metrics.record_dispatch(unit.kind, queue_name)

    # =====================================================================
    # ERROR POLICY
    # =====================================================================
    @staticmethod
    def _validate(rules, record: Any, row_number: int) -> None:
        try:
            rules.model_validate(record)
        except ValidationError as exc:
            raise RowValidationException(row_number, exc.errors(include_url=False)) from exc

    @staticmethod
    def _handle_row_error(
        caps,
        stats: RunStats,
        error: Exception,
        row: Any,
        row_number: int,
        discarded: int = 1,
        operation: str = "import",
    ) -> None:
        """
        Apply the contract's error policy to one failed row (or whole batch).
        Returns when the row is skipped, raises otherwise.
        """
        policy = caps.errors
        if policy is None:
            raise error

        policy.on_error(error, row, row_number)

        if not policy.skip_on_error:
            raise error

        stats.error_count += discarded
        telemetry.metrics.record_rows(operation, errors=discarded)
        logger.warning(f"Skipping row {row_number} ({operation}): {error}")

        if policy.budget_exhausted(stats.error_count):
            raise ErrorBudgetExceededException(policy.max_errors, stats.error_count, cause=error) from error

    # =====================================================================
    # EXPORT
    # =====================================================================
    def export_file(self, contract: Any, output_path: str, fmt: str = "xlsx") -> RunStats:
        """
        Write every row produced by `contract.query()` to `output_path` in `fmt`.

        Raises ProcessingException wrapping whatever aborted the run.
        """
        started = time.perf_counter()
        status = "failed"
        temp_path = None

        try:
            caps = ExportCapabilities.detect(contract, self.settings.batch_size)
        except Exception as exc:
            raise ProcessingException(cause=exc) from exc

        stats = RunStats(total_rows=caps.estimated_count or 0)
        logger.info(f"Export started: contract={contract.__class__.__name__}, output={output_path}, format={fmt}")

        with tracer.start_as_current_span("DataProcessor.export", attributes={"file.path": output_path, "file.format": str(fmt)}):
            try:
                fmt = codec.ensure_supported(fmt, "writing")
                temp_path = self.file_manager.temp_path(f"export_{uuid.uuid4().hex}.{fmt}")

                caps.report_start(stats.total_rows)
                self._process_export(contract, caps, stats, temp_path, fmt)
                self.file_manager.upload(temp_path, output_path)

                caps.report_complete()
                status = "success"

            except Exception as exc:
                logger.error(f"Export failed for {output_path}: {exc}")
                caps.report_failed(exc)
                raise ProcessingException(cause=exc) from exc

            finally:
                self.file_manager.delete_local(temp_path)
                self._last_stats = stats.frozen_copy()
                telemetry.metrics.record_run("export", time.perf_counter() - started, status)

        logger.info(f"Export finished for {output_path} in {time.perf_counter() - started:.2f}s: {stats.snapshot()}")
        return stats.frozen_copy()

    def _process_export(
        self,
        contract: Any,
        caps: ExportCapabilities,
        stats: RunStats,
        temp_path: str,
        fmt: str,
    ) -> None:
        self.file_manager.ensure_dir(os.path.dirname(temp_path))
        writer = codec.create_writer(fmt, **self.file_manager.codec_options)
        writer.open_to(temp_path)

        try:
            headings = contract.headings()
            if headings:
                writer.add_row(list(headings))

            for batch in chunked(enumerate(contract.query(), start=1), caps.batch.size):
                self._write_batch(contract, writer, caps, stats, batch)
        finally:
            writer.close()

    def _write_batch(self, contract: Any, writer, caps: ExportCapabilities, stats: RunStats, batch: list) -> None:
        written = 0
        for row_number, raw_row in batch:
            try:
                writer.add_row(_cells(contract.map(raw_row)))
            except Exception as exc:
                self._handle_row_error(caps, stats, exc, raw_row, row_number, operation="export")
                continue
            written += 1
            stats.processed_rows += 1

        telemetry.metrics.record_rows("export", processed=written)

        if caps.estimated_count:
            caps.report_progress(stats.processed_rows, caps.estimated_count)


def _cells(record: Any) -> list:
    if isinstance(record, dict):
        return list(record.values())
    return list(record)
