from . import exceptions
from .capabilities import ExportCapabilities, ImportCapabilities
from .chunking import ChunkDescriptor, ChunkSplitter
from .config import ProcessorSettings
from .contracts import (
    Exportable,
    Importable,
    ShouldQueue,
    WithBatchSize,
    WithChunking,
    WithCount,
    WithErrorHandling,
    WithProgress,
    WithRowProcessing,
    WithValidation,
)
from .dispatch import ImportJob, ImportUnit, InlineDispatcher, JobDispatcher
from .files import FileManager
from .processor import DataProcessor
from .stats import RunStats
from .storage import DiskStorage, StorageBackend
from .telemetry import (
    logging,
    metrics,
    tracing,
)

__all__ = [
    "DataProcessor",
    "ChunkSplitter",
    "ChunkDescriptor",
    "FileManager",
    "ProcessorSettings",
    "RunStats",
    "StorageBackend",
    "DiskStorage",
    "ImportCapabilities",
    "ExportCapabilities",
    "Importable",
    "Exportable",
    "WithChunking",
    "ShouldQueue",
    "WithErrorHandling",
    "WithProgress",
    "WithBatchSize",
    "WithValidation",
    "WithRowProcessing",
    "WithCount",
    "JobDispatcher",
    "ImportUnit",
    "ImportJob",
    "InlineDispatcher",
    "logging",
    "tracing",
    "metrics",
    "exceptions",
]

__version__ = "0.1.0"
