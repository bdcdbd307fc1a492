from __future__ import annotations

import shutil
from pathlib import Path

from sheetflow.storage.base import StorageBackend


class DiskStorage(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, base_path: str) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        return self._base / key.lstrip("/")

    # ---- interface ----

    def write_file(self, key: str, local_path: str) -> None:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_path, path)

    def read_to(self, key: str, local_path: str) -> None:
        source = self._resolve(key)
        if not source.is_file():
            raise FileNotFoundError(f"File not found in storage: {key}")
        shutil.copyfile(source, local_path)

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def size(self, key: str) -> int:
        return self._resolve(key).stat().st_size

    def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path.is_file():
            path.unlink()

    def local_path(self, key: str) -> str:
        return str(self._resolve(key))
