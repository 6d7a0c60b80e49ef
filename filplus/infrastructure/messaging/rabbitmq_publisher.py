# filplus/infrastructure/messaging/rabbitmq_publisher.py

import json
import logging
from typing import Dict

import aio_pika

logger = logging.getLogger(__name__)


class RabbitMQPublisher:
    """Publishes JSON messages to durable topic exchanges. Connects lazily on first publish."""

    def __init__(self, url: str, prefetch_count: int = 10):
        self._url = url
        self._prefetch_count = prefetch_count
        self._connection = None
        self._channel = None
        self._exchanges: Dict[str, aio_pika.abc.AbstractExchange] = {}

    async def connect(self):
        self._connection = await aio_pika.connect_robust(self._url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self._prefetch_count)
        self._exchanges = {}

    async def _exchange(self, name: str):
        if name not in self._exchanges:
            self._exchanges[name] = await self._channel.declare_exchange(
                name,
                aio_pika.ExchangeType.TOPIC,
                durable=True,
            )
        return self._exchanges[name]

    async def publish(
        self,
        exchange_name: str,
        routing_key: str,
        message: dict,
        idempotency_key: str,
    ):
        """message_id carries the idempotency key so consumers can drop re-deliveries."""
        if not self._channel:
            await self.connect()
        exchange = await self._exchange(exchange_name)

        await exchange.publish(
            aio_pika.Message(
                body=json.dumps(message, default=str).encode(),
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                message_id=idempotency_key,
                headers={"idempotency_key": idempotency_key},
            ),
            routing_key=routing_key,
        )
        logger.debug(
            "broker_message_published",
            extra={"exchange": exchange_name, "routing_key": routing_key, "message_id": idempotency_key},
        )

    async def close(self):
        if self._connection is not None:
            await self._connection.close()
        self._connection = None
        self._channel = None
        self._exchanges = {}
