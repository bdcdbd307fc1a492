from sheetflow.storage.base import StorageBackend
from sheetflow.storage.disk import DiskStorage

__all__ = [
    "StorageBackend",
    "DiskStorage",
]
