# lifecycle_engine/infrastructure/messaging/rabbitmq_publisher.py

import json
from typing import Optional

import aio_pika

from lifecycle_engine.application.transition_events import TransitionEvent
from lifecycle_engine.config.settings import get_settings


class RabbitMQTransitionPublisher:
    """Publishes committed transitions to a durable topic exchange, routing key '<kind>.<to_state>'."""

    def __init__(self, rabbitmq_url: Optional[str] = None, exchange_name: Optional[str] = None):
        settings = get_settings()
        self._url = rabbitmq_url or settings.rabbitmq_url
        self._exchange_name = exchange_name or settings.transition_exchange
        self._connection = None
        self._channel = None
        self._exchange = None

    async def connect(self):
        if not self._url:
            raise ValueError("rabbitmq_url is not configured")
        self._connection = await aio_pika.connect_robust(self._url)
        self._channel = await self._connection.channel()
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
        )

    async def publish(self, event: TransitionEvent) -> None:
        if self._exchange is None:
            await self.connect()

        msg = aio_pika.Message(
            body=json.dumps(event.to_message()).encode(),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            headers={
                "tenant_id": event.tenant_id,
                "correlation_id": event.correlation_id or "",
            },
        )

        await self._exchange.publish(msg, routing_key=event.routing_key)

    async def close(self):
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None
