"""
Physical splitting of oversized tabular files into smaller same-format files.
"""

import logging
import os
import uuid
from typing import Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from . import codec, telemetry
from .codec import Row, RowReader
from .exceptions import ConfigurationException
from .files import FileManager

logger = logging.getLogger(__name__)
tracer = telemetry.tracing.get_tracer(__name__)


class ChunkDescriptor(BaseModel):
    """One chunk file. `path` is a storage key when `remote`, a local path otherwise."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=1)
    path: str
    rows: int = Field(..., ge=1)
    remote: bool = False


class ChunkSplitter:
    """
    Splits a source file into chunk files of at most `chunk_rows` data rows,
    each starting with a copy of the header row.
    """

    def __init__(self, file_manager: FileManager):
        self.file_manager = file_manager

    def split(
        self,
        reader: RowReader,
        source_path: str,
        chunk_rows: int,
        output_format: Optional[str] = None,
    ) -> Iterator[ChunkDescriptor]:
        """
        Lazily yield one ChunkDescriptor per chunk, in file order.

        Configuration errors are raised here, before the source is opened.
        """
        if isinstance(chunk_rows, bool) or not isinstance(chunk_rows, int) or chunk_rows < 1:
            raise ConfigurationException(f"Chunk row count must be a positive integer, got {chunk_rows!r}")

        fmt = codec.ensure_supported(output_format or codec.format_of(source_path), "chunk output")

        return self._split(reader, source_path, chunk_rows, fmt)

    def _split(self, reader: RowReader, source_path: str, chunk_rows: int, fmt: str) -> Iterator[ChunkDescriptor]:
        run_id = uuid.uuid4().hex
        chunk_number = 1
        header: Optional[Row] = None
        buffer: List[Row] = []

        logger.info(f"Splitting {source_path} into chunks of {chunk_rows} rows ({fmt}, run {run_id})")

        reader.open(source_path)
        try:
            for sheet in reader.sheets():
                is_first_row = True
                for row in sheet:
                    if is_first_row:
                        # every sheet starts with a header; only the first one is kept
                        if header is None:
                            header = row
                        is_first_row = False
                        continue

                    buffer.append(row)

                    if len(buffer) >= chunk_rows:
                        yield self._write_chunk(buffer, header, run_id, chunk_number, fmt)
                        buffer = []
                        chunk_number += 1

            if buffer:
                yield self._write_chunk(buffer, header, run_id, chunk_number, fmt)
        finally:
            reader.close()

    def _write_chunk(self, rows: List[Row], header: Optional[Row], run_id: str, number: int, fmt: str) -> ChunkDescriptor:
        name = f"{run_id}/chunk_{number}.{fmt}"
        chunk_path = self.file_manager.temp_path(name)

        with tracer.start_as_current_span("ChunkSplitter.write_chunk", attributes={"chunk.number": number}):
            self.file_manager.ensure_dir(os.path.dirname(chunk_path))

            writer = codec.create_writer(fmt, **self.file_manager.codec_options)
            writer.open_to(chunk_path)
            try:
                if header is not None:
                    writer.add_row(header)
                writer.add_rows(rows)
            finally:
                writer.close()

            remote = self.file_manager.settings.use_cloud_temp
            path = chunk_path
            if remote:
                # multi-host setups: workers fetch the chunk from shared storage
                path = self.file_manager.storage_key(name)
                self.file_manager.upload(chunk_path, path)
                self.file_manager.delete_local(chunk_path)

        telemetry.metrics.record_chunk(fmt, remote)
        logger.debug(f"Chunk {number} written with {len(rows)} rows → {path}")
        return ChunkDescriptor(number=number, path=path, rows=len(rows), remote=remote)
