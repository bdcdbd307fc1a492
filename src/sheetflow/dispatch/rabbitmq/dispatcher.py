import logging
from typing import TYPE_CHECKING, List, Optional

from ..base import ImportUnit, JobDispatcher
from ..job import ImportJob
from .models import RabbitmqClient, UnitMessage
from .service import RabbitMQService

if TYPE_CHECKING:
    from ...processor import DataProcessor

logger = logging.getLogger(__name__)


class RabbitMQDispatcher(JobDispatcher):
    """Publishes import units to RabbitMQ for remote workers."""

    def __init__(self, service: RabbitMQService):
        self.service = service

    @classmethod
    def from_client(cls, client: RabbitmqClient) -> "RabbitMQDispatcher":
        return cls(RabbitMQService(client))

    def submit(self, unit: ImportUnit, queue_name: str) -> None:
        self.service.publish(
            UnitMessage(
                id=unit.id,
                queue_name=queue_name,
                body=unit.to_message(),
                timeout=unit.timeout,
                memory=unit.memory,
                tries=unit.tries,
            )
        )

    def close(self) -> None:
        self.service.close()


class RabbitMQWorker:
    """
    Consumes import units and runs them once each.

    Success acks the message. Failure runs the job's failure callback and
    dead-letters the message (nack without requeue).
    """

    def __init__(self, processor: "DataProcessor", service: RabbitMQService, queue_name: Optional[str] = None):
        self.processor = processor
        self.service = service
        self.queue_name = queue_name or service.client.queue_name
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    def run_once(self, batch_size: int = 1) -> List[bool]:
        results = []
        for message in self.service.consume(self.queue_name, batch_size=batch_size):
            results.append(self._handle(message))
        return results

    def run(self, max_messages: Optional[int] = None) -> int:
        handled = 0
        logger.info(f"Worker listening on '{self.queue_name}'")
        while not self._stopped and (max_messages is None or handled < max_messages):
            handled += len(self.run_once())
        logger.info(f"Worker stopped after {handled} messages")
        return handled

    def _handle(self, message) -> bool:
        try:
            unit = ImportUnit.from_message(message.data or {})
        except Exception as exc:
            logger.error(f"Rejecting message {message.delivery_tag}: cannot rebuild unit: {exc}")
            self.service.nack(message.delivery_tag, requeue=False)
            return False

        job = ImportJob(unit)
        try:
            job.handle(self.processor)
        except Exception as exc:
            job.failed(self.processor, exc)
            self.service.nack(message.delivery_tag, requeue=False)
            return False

        self.service.ack(message.delivery_tag)
        return True
