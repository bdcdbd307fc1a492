import json
import logging
import time
from collections import deque
from typing import List, Optional

import pika

from .helper import headers_generator
from .models import ConsumedMessage, RabbitmqClient, UnitMessage

logger = logging.getLogger(__name__)


class RabbitMQService:
    def __init__(self, client: RabbitmqClient) -> None:
        self.client = client

        self._connection: Optional[pika.BlockingConnection] = None
        self._channel: Optional[pika.adapters.blocking_connection.BlockingChannel] = None
        self._declared = set()
        self._connect()

    # ---------- Connection / channel ----------

    def _connect(self) -> None:
        if self._connection and self._connection.is_open:
            return

        params = pika.ConnectionParameters(
            host=self.client.host,
            port=self.client.port,
            virtual_host=self.client.virtual_host,
            credentials=pika.PlainCredentials(self.client.username, self.client.password),
            connection_attempts=self.client.connection_attempts,
            socket_timeout=self.client.socket_timeout,
            heartbeat=self.client.heartbeat,
            blocked_connection_timeout=self.client.blocked_connection_timeout,
        )
        self._connection = pika.BlockingConnection(params)
        self._channel = self._connection.channel()
        self._declared.clear()

        self.declare(self.client.queue_name)
        self._channel.basic_qos(prefetch_count=self.client.prefetch_count)

    def declare(self, queue_name: str) -> None:
        if queue_name in self._declared:
            return
        self._channel.queue_declare(queue=queue_name, durable=True)
        self._declared.add(queue_name)

    def close(self) -> None:
        try:
            if self._channel and self._channel.is_open:
                self._channel.close()
        finally:
            if self._connection and self._connection.is_open:
                self._connection.close()

    # ---------- Consuming ----------

    def consume(self, queue_name: Optional[str] = None, batch_size: int = 1, timeout: float = 2.0) -> List[ConsumedMessage]:
        """
        Pull up to `batch_size` messages with manual acknowledgement.
        Returns fewer when the queue stays empty for `timeout` seconds.
        """
        q = queue_name or self.client.queue_name
        self.declare(q)

        buffer = deque()

        def _internal_callback(ch, method, properties, body):
            if len(buffer) >= batch_size:
                ch.basic_nack(method.delivery_tag, requeue=True)
                return

            try:
                payload = json.loads(body.decode("utf-8")) if body else None
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.error(f"Discarding undecodable message {method.delivery_tag} on '{q}'")
                ch.basic_nack(method.delivery_tag, requeue=False)
                return

            buffer.append(
                ConsumedMessage(
                    data=payload,
                    routing_key=method.routing_key,
                    delivery_tag=method.delivery_tag,
                    headers=getattr(properties, "headers", {}) or {},
                )
            )

        consumer_tag = self._channel.basic_consume(queue=q, on_message_callback=_internal_callback, auto_ack=False)

        start = time.time()
        try:
            while len(buffer) < batch_size:
                self._connection.process_data_events(time_limit=0.1)
                if time.time() - start > timeout:
                    break
        finally:
            self._channel.basic_cancel(consumer_tag)

        return list(buffer)

    def ack(self, delivery_tag: int) -> None:
        self._channel.basic_ack(delivery_tag=delivery_tag)
        logger.debug(f"Acked message {delivery_tag}")

    def nack(self, delivery_tag: int, requeue: bool = False) -> None:
        self._channel.basic_nack(delivery_tag=delivery_tag, requeue=requeue)
        logger.debug(f"Nacked message {delivery_tag} (requeue={requeue})")

    # ---------- Publishing ----------

    def publish(self, message: UnitMessage) -> None:
        self._connect()
        self.declare(message.queue_name)

        properties = pika.BasicProperties(
            content_type=message.content_type,
            delivery_mode=message.delivery_mode,
            correlation_id=message.id,
            headers=headers_generator(
                id=message.id,
                timeout=message.timeout,
                memory=message.memory,
                tries=message.tries,
                content_type=message.content_type,
            ),
        )

        self._channel.basic_publish(
            exchange="",
            routing_key=message.queue_name,
            body=json.dumps(message.body, ensure_ascii=False).encode("utf-8"),
            properties=properties,
        )
        logger.info(f"Published unit {message.id} to '{message.queue_name}'")
