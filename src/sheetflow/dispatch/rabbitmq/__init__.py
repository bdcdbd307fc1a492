from .dispatcher import RabbitMQDispatcher, RabbitMQWorker
from .models import ConsumedMessage, RabbitmqClient, UnitMessage
from .service import RabbitMQService

__all__ = [
    "RabbitMQDispatcher",
    "RabbitMQWorker",
    "RabbitMQService",
    "RabbitmqClient",
    "UnitMessage",
    "ConsumedMessage",
]
