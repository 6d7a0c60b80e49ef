"""DB-backed event store. Persists domain events to PostgreSQL (domain_events table)."""

from datetime import timezone
from typing import List, Optional, Sequence

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from filplus.application.exceptions import ConcurrencyConflictError
from filplus.domain.models.events import DomainEvent
from filplus.infrastructure.database.models import DomainEventRow


def _to_event(row: DomainEventRow) -> DomainEvent:
    occurred_at = row.occurred_at
    if occurred_at is not None and occurred_at.tzinfo is None:
        occurred_at = occurred_at.replace(tzinfo=timezone.utc)
    return DomainEvent(
        aggregate_id=row.aggregate_id,
        sequence_number=row.sequence_number,
        event_type=row.event_type,
        payload=row.payload or {},
        occurred_at=occurred_at,
    )


class DbEventStore:
    """
    Implements EventStore. Each append runs in its own transaction; a duplicate
    (aggregate_id, sequence_number) means another writer got there first.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def append(
        self,
        aggregate_id: str,
        events: Sequence[DomainEvent],
        expected_version: Optional[int],
    ) -> None:
        async with self._sessions() as session:
            if expected_version is not None:
                current = await self._version(session, aggregate_id)
                if current != expected_version:
                    raise ConcurrencyConflictError(
                        f"Expected version {expected_version} for {aggregate_id}, found {current}"
                    )
            session.add_all(
                DomainEventRow(
                    aggregate_id=aggregate_id,
                    sequence_number=e.sequence_number,
                    event_type=e.event_type,
                    payload=e.payload,
                    occurred_at=e.occurred_at,
                )
                for e in events
            )
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConcurrencyConflictError(
                    f"Concurrent append to {aggregate_id} detected"
                ) from e

    async def load(self, aggregate_id: str) -> List[DomainEvent]:
        async with self._sessions() as session:
            stmt = (
                select(DomainEventRow)
                .where(DomainEventRow.aggregate_id == aggregate_id)
                .order_by(DomainEventRow.sequence_number)
            )
            result = await session.execute(stmt)
            return [_to_event(row) for row in result.scalars()]

    async def current_version(self, aggregate_id: str) -> int:
        async with self._sessions() as session:
            return await self._version(session, aggregate_id)

    async def aggregate_ids(self) -> List[str]:
        async with self._sessions() as session:
            result = await session.execute(select(distinct(DomainEventRow.aggregate_id)))
            return list(result.scalars())

    @staticmethod
    async def _version(session: AsyncSession, aggregate_id: str) -> int:
        stmt = select(func.max(DomainEventRow.sequence_number)).where(
            DomainEventRow.aggregate_id == aggregate_id
        )
        return (await session.execute(stmt)).scalar() or 0
