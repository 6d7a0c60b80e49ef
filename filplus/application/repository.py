"""Application repository: rebuilds aggregates from the event log and persists new events."""

import logging
from typing import List, Optional

from filplus.application.bus import EventBus
from filplus.application.event_store import EventStore
from filplus.application.exceptions import NotFoundError
from filplus.domain.models.application import Application
from filplus.domain.models.events import DomainEvent


class ApplicationRepository:
    """
    Write-side access to Application aggregates.
    Loading replays the full log; saving appends uncommitted events under an optimistic
    version check, then publishes each appended event to the event bus in order.
    """

    def __init__(
        self,
        event_store: EventStore,
        event_bus: EventBus,
        logger: logging.Logger,
    ) -> None:
        self._store = event_store
        self._bus = event_bus
        self._logger = logger

    async def find_by_id(self, application_id: str) -> Optional[Application]:
        """Return the aggregate, or None if it has no events."""
        events = await self._store.load(application_id)
        if not events:
            return None
        return Application.from_history(application_id, events)

    async def get_by_id(self, application_id: str) -> Application:
        aggregate = await self.find_by_id(application_id)
        if aggregate is None:
            raise NotFoundError(f"Application not found: {application_id}")
        return aggregate

    async def save(
        self,
        aggregate: Application,
        expected_version: Optional[int] = None,
        *,
        skip_concurrency_check: bool = False,
    ) -> List[DomainEvent]:
        """
        Append the aggregate's uncommitted events. expected_version defaults to the version
        the aggregate was loaded at. skip_concurrency_check=True disables the version check
        and is only safe on call paths that are the single writer for this aggregate.
        """
        events = aggregate.uncommitted_events
        if not events:
            return []
        if expected_version is None:
            expected_version = aggregate.committed_version
        await self._store.append(
            aggregate.application_id,
            events,
            None if skip_concurrency_check else expected_version,
        )
        aggregate.mark_committed()
        self._logger.info(
            "events_appended",
            extra={
                "application_id": aggregate.application_id,
                "event_types": [e.event_type for e in events],
                "version": aggregate.version,
            },
        )
        await self._bus.publish_all(events)
        return events
