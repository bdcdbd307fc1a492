import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Deque, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..stats import RunStats
from .base import ImportUnit, JobDispatcher
from .job import ImportJob

if TYPE_CHECKING:
    from ..processor import DataProcessor

logger = logging.getLogger(__name__)


class JobResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    unit_id: str
    queue_name: str
    success: bool
    stats: Optional[RunStats] = None
    error: Optional[Any] = None


class InlineDispatcher(JobDispatcher):
    """
    In-process FIFO dispatcher. Units are only stored on submit and executed
    later by `run_pending()`, in submission order.

    With `serialize=True` every unit goes through `to_message()` and
    `from_message()` before it runs, so the job sees the same payload a
    remote worker would: a rebuilt contract and JSON-shaped records.
    """

    def __init__(self, serialize: bool = False):
        self.serialize = serialize
        self.pending: Deque[Tuple[str, ImportUnit]] = deque()

    def submit(self, unit: ImportUnit, queue_name: str) -> None:
        logger.debug(f"Queued unit {unit.id} ({unit.kind}) on '{queue_name}'")
        self.pending.append((queue_name, unit))

    def queued(self, queue_name: Optional[str] = None) -> List[ImportUnit]:
        return [unit for name, unit in self.pending if queue_name is None or name == queue_name]

    def run_pending(self, processor: "DataProcessor") -> List[JobResult]:
        results = []
        while self.pending:
            queue_name, unit = self.pending.popleft()
            if self.serialize:
                unit = ImportUnit.from_message(unit.to_message())
            job = ImportJob(unit)
            try:
                stats = job.handle(processor)
            except Exception as exc:
                job.failed(processor, exc)
                results.append(JobResult(unit_id=unit.id, queue_name=queue_name, success=False, error=exc))
                continue
            results.append(JobResult(unit_id=unit.id, queue_name=queue_name, success=True, stats=stats))
        return results
