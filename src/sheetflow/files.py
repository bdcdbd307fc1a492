"""
Local temp-file lifecycle on top of a durable storage backend.
"""

import logging
import os
import uuid
from typing import Optional

from . import codec
from .config import ProcessorSettings
from .storage import StorageBackend

logger = logging.getLogger(__name__)


class FileManager:
    """
    Resolves logical paths to local files, moves artifacts to and from durable
    storage and owns the local temp area.

    A path is "local" when it names an existing file on this host; anything
    else is treated as a storage key.
    """

    def __init__(self, storage: StorageBackend, settings: Optional[ProcessorSettings] = None):
        self.storage = storage
        self.settings = settings or ProcessorSettings()

    # =====================================================================
    # PATHS
    # =====================================================================
    def temp_path(self, name: Optional[str] = None) -> str:
        base = os.path.join(self.settings.local_temp_root, self.settings.temp_path)
        return os.path.join(base, name.strip("/")) if name else base

    def storage_key(self, name: str) -> str:
        return f"{self.settings.temp_path}/{name.strip('/')}"

    @staticmethod
    def ensure_dir(directory: str) -> None:
        # Concurrent workers may create it first
        os.makedirs(directory, exist_ok=True)

    @staticmethod
    def is_local(path: str) -> bool:
        return os.path.isfile(path)

    @property
    def codec_options(self) -> dict:
        return {"delimiter": self.settings.csv_delimiter}

    # =====================================================================
    # RESOLVE / TRANSFER
    # =====================================================================
    def resolve(self, path: str) -> str:
        """Local path for `path`, downloading it to the temp area when remote."""
        if self.is_local(path):
            return path
        return self.download_to_temp(path)

    def download_to_temp(self, key: str) -> str:
        local_path = self.temp_path(f"{uuid.uuid4()}_{os.path.basename(key)}")
        self.ensure_dir(os.path.dirname(local_path))

        logger.debug(f"Downloading {key} to {local_path}")
        try:
            self.storage.read_to(key, local_path)
        except BaseException:
            self.delete_local(local_path)
            raise
        return local_path

    def upload(self, local_path: str, dest_path: str) -> None:
        logger.debug(f"Uploading {local_path} to {dest_path}")
        self.storage.write_file(dest_path, local_path)

    def delete_local(self, local_path: Optional[str]) -> None:
        if not local_path:
            return
        try:
            os.remove(local_path)
        except FileNotFoundError:
            pass

    def discard_chunk(self, path: str) -> None:
        """Remove a chunk wherever it lives: local temp file or storage key."""
        if self.is_local(path):
            self.delete_local(path)
        elif self.storage.exists(path):
            self.storage.delete(path)

    # =====================================================================
    # INSPECTION
    # =====================================================================
    def exists(self, path: str) -> bool:
        return self.is_local(path) or self.storage.exists(path)

    def size(self, path: str) -> int:
        if self.is_local(path):
            return os.path.getsize(path)
        if self.storage.exists(path):
            return self.storage.size(path)
        return 0

    def should_chunk(self, path: str, max_size: int) -> bool:
        return self.size(path) > max_size

    def count_rows(self, path: str) -> int:
        """Fast data-row count (header excluded) for a local path or storage key."""
        # Format check first so a bad token never triggers a download
        codec.ensure_supported(codec.format_of(path), "counting")

        if self.is_local(path):
            return codec.count_rows(path, **self.codec_options)

        if self.storage.exists(path):
            local_path = self.download_to_temp(path)
            try:
                return codec.count_rows(local_path, **self.codec_options)
            finally:
                self.delete_local(local_path)

        raise FileNotFoundError(f"File not found: {path}")
