"""Rebuilds read-model documents from the authoritative event log."""

import logging
from typing import List

from filplus.application.bus import EventBus
from filplus.application.event_store import ApplicationDetailsStore, EventStore
from filplus.application.exceptions import NotFoundError


class ProjectionRebuilder:
    """
    Drops an application's document and replays its full log through the subscribed
    projectors. Broker forwarders are not re-triggered. Live publishing for the same
    application waits until the rebuild is done.
    """

    def __init__(
        self,
        event_store: EventStore,
        details_store: ApplicationDetailsStore,
        event_bus: EventBus,
        logger: logging.Logger,
    ) -> None:
        self._events = event_store
        self._details = details_store
        self._bus = event_bus
        self._logger = logger

    async def rebuild(self, application_id: str) -> int:
        """Return the number of events replayed."""
        async with self._bus.ordered(application_id):
            events = await self._events.load(application_id)
            if not events:
                raise NotFoundError(f"Application not found: {application_id}")
            await self._details.delete(application_id)
            await self._bus.replay(events)
        self._logger.info(
            "projection_rebuilt",
            extra={"application_id": application_id, "event_count": len(events)},
        )
        return len(events)

    async def rebuild_all(self) -> List[str]:
        rebuilt = []
        for application_id in await self._events.aggregate_ids():
            await self.rebuild(application_id)
            rebuilt.append(application_id)
        return rebuilt
