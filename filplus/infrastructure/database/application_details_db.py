"""DB-backed ApplicationDetails store. One JSONB document per application, merged with `||`."""

from typing import Any, Dict, List, Optional

from sqlalchemy import cast, delete, func, or_, select
from sqlalchemy.dialects.postgresql import JSONB, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from filplus.domain.schemas.application import ApplicationDetails
from filplus.infrastructure.database.models import ApplicationDetailsRow

SEARCH_FIELDS = ("name", "organization", "github", "address")


def _to_details(row: ApplicationDetailsRow) -> ApplicationDetails:
    return ApplicationDetails.model_validate(
        {**row.document, "id": row.id, "last_sequence_number": row.last_sequence_number}
    )


class DbApplicationDetailsStore:
    """
    Implements ApplicationDetailsStore. The upsert is a single INSERT .. ON CONFLICT statement
    whose WHERE clause is the sequence guard, so a stale or repeated projection is a no-op
    even with several projector processes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def get(self, application_id: str) -> Optional[ApplicationDetails]:
        async with self._sessions() as session:
            row = await session.get(ApplicationDetailsRow, application_id)
            return _to_details(row) if row is not None else None

    async def upsert(
        self,
        application_id: str,
        fields: Dict[str, Any],
        sequence_number: int,
    ) -> bool:
        table = ApplicationDetailsRow
        stmt = insert(table).values(
            id=application_id,
            status=fields.get("status"),
            document={"id": application_id, **fields},
            last_sequence_number=sequence_number,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.id],
            set_={
                "document": cast(table.document, JSONB).op("||")(cast(stmt.excluded.document, JSONB)),
                "status": func.coalesce(stmt.excluded.status, table.status),
                "last_sequence_number": stmt.excluded.last_sequence_number,
                "updated_at": func.now(),
            },
            where=table.last_sequence_number < stmt.excluded.last_sequence_number,
        ).returning(table.id)
        async with self._sessions() as session:
            result = await session.execute(stmt)
            applied = result.scalar_one_or_none() is not None
            await session.commit()
            return applied

    async def delete(self, application_id: str) -> None:
        async with self._sessions() as session:
            await session.execute(delete(ApplicationDetailsRow).where(ApplicationDetailsRow.id == application_id))
            await session.commit()

    async def search(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[List[ApplicationDetails], int]:
        table = ApplicationDetailsRow
        conditions = []
        if status:
            conditions.append(table.status == status)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(*(table.document[f].as_string().ilike(pattern) for f in SEARCH_FIELDS))
            )
        async with self._sessions() as session:
            total = await session.scalar(select(func.count()).select_from(table).where(*conditions))
            stmt = (
                select(table)
                .where(*conditions)
                .order_by(table.document["number"].as_integer().desc().nulls_last(), table.id.desc())
                .offset(offset)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_details(r) for r in rows], total or 0
