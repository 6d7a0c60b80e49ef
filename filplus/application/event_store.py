"""Event store and read-model store protocols. Application layer depends on these; infrastructure implements them."""

from typing import Any, Dict, List, Optional, Protocol, Sequence

from filplus.domain.models.events import DomainEvent
from filplus.domain.schemas.application import ApplicationDetails


class EventStore(Protocol):
    """Append-only, per-aggregate ordered log. Source of truth."""

    async def append(
        self,
        aggregate_id: str,
        events: Sequence[DomainEvent],
        expected_version: Optional[int],
    ) -> None:
        """
        Append events atomically. Raises ConcurrencyConflictError if the stored version
        differs from expected_version; expected_version=None skips the check.
        """
        ...

    async def load(self, aggregate_id: str) -> List[DomainEvent]:
        """Return the aggregate's events in sequence order (empty list if none)."""
        ...

    async def current_version(self, aggregate_id: str) -> int:
        """Highest stored sequence number for the aggregate, 0 if none."""
        ...

    async def aggregate_ids(self) -> List[str]:
        """All aggregate ids that have at least one event."""
        ...


class ApplicationDetailsStore(Protocol):
    """Query-side document store: one ApplicationDetails document per application id."""

    async def get(self, application_id: str) -> Optional[ApplicationDetails]:
        ...

    async def upsert(
        self,
        application_id: str,
        fields: Dict[str, Any],
        sequence_number: int,
    ) -> bool:
        """
        Merge fields into the document (created if missing). Ignored, returning False,
        when sequence_number is not greater than the document's last applied sequence.
        """
        ...

    async def delete(self, application_id: str) -> None:
        ...

    async def search(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[List[ApplicationDetails], int]:
        """Return (page of documents, total matching count)."""
        ...
