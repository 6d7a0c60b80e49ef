"""In-process event store. Used for the memory storage backend and in tests."""

import asyncio
from typing import Dict, List, Optional, Sequence

from filplus.application.exceptions import ConcurrencyConflictError
from filplus.domain.models.events import DomainEvent


class InMemoryEventStore:
    """Implements EventStore with one list per aggregate, guarded by a single asyncio.Lock."""

    def __init__(self) -> None:
        self._streams: Dict[str, List[DomainEvent]] = {}
        self._lock = asyncio.Lock()

    async def append(
        self,
        aggregate_id: str,
        events: Sequence[DomainEvent],
        expected_version: Optional[int],
    ) -> None:
        async with self._lock:
            stream = self._streams.get(aggregate_id, [])
            current = len(stream)
            if expected_version is not None and expected_version != current:
                raise ConcurrencyConflictError(
                    f"Expected version {expected_version} for {aggregate_id}, found {current}"
                )
            # Without a version check the sequence numbers must still continue the stream.
            for offset, event in enumerate(events, start=1):
                if event.aggregate_id != aggregate_id or event.sequence_number != current + offset:
                    raise ConcurrencyConflictError(
                        f"Event #{event.sequence_number} does not follow version {current} "
                        f"of {aggregate_id}"
                    )
            self._streams[aggregate_id] = stream + list(events)

    async def load(self, aggregate_id: str) -> List[DomainEvent]:
        async with self._lock:
            return list(self._streams.get(aggregate_id, []))

    async def current_version(self, aggregate_id: str) -> int:
        async with self._lock:
            return len(self._streams.get(aggregate_id, []))

    async def aggregate_ids(self) -> List[str]:
        async with self._lock:
            return [k for k, v in self._streams.items() if v]
