"""Queries and their handlers. Handlers read the ApplicationDetails store only, never the event log."""

from dataclasses import dataclass
from typing import Optional

from filplus.application.event_store import ApplicationDetailsStore
from filplus.application.exceptions import NotFoundError
from filplus.domain.exceptions import DomainValidationError
from filplus.domain.schemas.application import ApplicationDetails, ApplicationsPage

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class GetApplication:
    application_id: str


@dataclass(frozen=True)
class GetApplications:
    status: Optional[str] = None
    search: Optional[str] = None
    page: int = 1
    limit: int = 10


class GetApplicationHandler:
    def __init__(self, store: ApplicationDetailsStore) -> None:
        self._store = store

    async def handle(self, query: GetApplication) -> ApplicationDetails:
        details = await self._store.get(query.application_id)
        if details is None:
            raise NotFoundError(f"Application not found: {query.application_id}")
        return details


class GetApplicationsHandler:
    """Paged listing, optionally filtered by status and a case-insensitive search term."""

    def __init__(self, store: ApplicationDetailsStore) -> None:
        self._store = store

    async def handle(self, query: GetApplications) -> ApplicationsPage:
        if query.page < 1:
            raise DomainValidationError("page must be at least 1")
        if not 1 <= query.limit <= MAX_PAGE_SIZE:
            raise DomainValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        items, total = await self._store.search(
            status=query.status,
            search=(query.search or "").strip() or None,
            offset=(query.page - 1) * query.limit,
            limit=query.limit,
        )
        return ApplicationsPage(items=items, total=total, page=query.page, limit=query.limit)
