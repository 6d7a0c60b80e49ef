"""Forwards every persisted domain event to the message broker for downstream consumers."""

import logging
from typing import Any, Dict, Protocol

from filplus.domain.models.events import DomainEvent

EXCHANGE_NAME = "application_events"


class EventPublisher(Protocol):
    async def publish(
        self,
        exchange_name: str,
        routing_key: str,
        message: Dict[str, Any],
        idempotency_key: str,
    ) -> None:
        ...


class EventForwarder:
    """
    Catch-all event bus subscriber. The idempotency key is aggregate id plus sequence
    number, so consumers can drop re-deliveries.
    """

    def __init__(
        self,
        publisher: EventPublisher,
        logger: logging.Logger,
        exchange_name: str = EXCHANGE_NAME,
    ) -> None:
        self._publisher = publisher
        self._logger = logger
        self._exchange = exchange_name

    async def __call__(self, event: DomainEvent) -> None:
        await self._publisher.publish(
            exchange_name=self._exchange,
            routing_key=f"application.{event.event_type}",
            message=event.to_dict(),
            idempotency_key=f"{event.aggregate_id}:{event.sequence_number}",
        )
        self._logger.debug(
            "event_forwarded",
            extra={
                "application_id": event.aggregate_id,
                "event_type": event.event_type,
                "sequence_number": event.sequence_number,
            },
        )
