from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict

from . import contracts
from .exceptions import ConfigurationException
from .policies import BatchPolicy, ChunkPolicy, ErrorPolicy, QueuePolicy


class Capabilities(BaseModel):
    """
    Optional behaviors of one contract, resolved once at the start of a call.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    batch: BatchPolicy
    errors: Optional[ErrorPolicy] = None
    progress: Optional[Any] = None

    def report_start(self, total: int) -> None:
        if self.progress is not None:
            self.progress.on_start(total)

    def report_progress(self, processed: int, total: int) -> None:
        if self.progress is not None:
            self.progress.on_progress(processed, total)

    def report_complete(self) -> None:
        if self.progress is not None:
            self.progress.on_complete()

    def report_failed(self, error: BaseException) -> None:
        if self.progress is not None:
            self.progress.on_failed(error)


class ImportCapabilities(Capabilities):
    chunk: Optional[ChunkPolicy] = None
    queue: Optional[QueuePolicy] = None
    rules: Optional[type[BaseModel]] = None
    process_row: Optional[Callable[[Any, int], Any]] = None

    @classmethod
    def detect(cls, contract: Any, default_batch_size: int) -> "ImportCapabilities":
        if not isinstance(contract, contracts.Importable) and not (
            callable(getattr(contract, "map", None)) and callable(getattr(contract, "process", None))
        ):
            raise ConfigurationException(
                f"Import contract {contract.__class__.__name__} must define map() and process()"
            )

        chunk = None
        if isinstance(contract, contracts.WithChunking):
            chunk = ChunkPolicy(max_file_size=contract.max_file_size(), chunk_rows=contract.chunk_rows())

        queue = None
        if isinstance(contract, contracts.ShouldQueue):
            queue = QueuePolicy(
                queue_name=contract.on_queue(),
                timeout=contract.timeout(),
                memory=contract.memory(),
            )

        rules = contract.rules() if isinstance(contract, contracts.WithValidation) else None
        if rules is not None and not (isinstance(rules, type) and issubclass(rules, BaseModel)):
            raise ConfigurationException(
                f"rules() of {contract.__class__.__name__} must return a pydantic model class, got {rules!r}"
            )

        return cls(
            batch=_batch_policy(contract, default_batch_size),
            errors=_error_policy(contract),
            progress=contract if isinstance(contract, contracts.WithProgress) else None,
            chunk=chunk,
            queue=queue,
            rules=rules,
            process_row=contract.process_row if isinstance(contract, contracts.WithRowProcessing) else None,
        )


class ExportCapabilities(Capabilities):
    estimated_count: Optional[int] = None

    @classmethod
    def detect(cls, contract: Any, default_batch_size: int) -> "ExportCapabilities":
        for method in ("query", "headings", "map"):
            if not callable(getattr(contract, method, None)):
                raise ConfigurationException(
                    f"Export contract {contract.__class__.__name__} must define {method}()"
                )

        return cls(
            batch=_batch_policy(contract, default_batch_size),
            errors=_error_policy(contract),
            progress=contract if isinstance(contract, contracts.WithProgress) else None,
            estimated_count=contract.count() if isinstance(contract, contracts.WithCount) else None,
        )


def _batch_policy(contract: Any, default: int) -> BatchPolicy:
    size = contract.batch_size() if isinstance(contract, contracts.WithBatchSize) else default
    if size is None or int(size) < 1:
        raise ConfigurationException(f"Batch size must be at least 1, got {size!r}")
    return BatchPolicy(size=size)


def _error_policy(contract: Any) -> Optional[ErrorPolicy]:
    if not isinstance(contract, contracts.WithErrorHandling):
        return None
    return ErrorPolicy(
        on_error=contract.on_error,
        skip_on_error=contract.should_skip_on_error(),
        max_errors=contract.max_errors(),
    )
