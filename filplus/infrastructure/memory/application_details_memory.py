"""In-process ApplicationDetails store with the same merge and sequence-guard rules as the database one."""

import asyncio
import copy
from typing import Any, Dict, List, Optional

from filplus.domain.schemas.application import ApplicationDetails

SEARCH_FIELDS = ("name", "organization", "github", "address")


def matches(document: Dict[str, Any], status: Optional[str], search: Optional[str]) -> bool:
    if status and document.get("status") != status:
        return False
    if search:
        needle = search.lower()
        return any(needle in str(document.get(f) or "").lower() for f in SEARCH_FIELDS)
    return True


class InMemoryApplicationDetailsStore:
    def __init__(self) -> None:
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, application_id: str) -> Optional[ApplicationDetails]:
        async with self._lock:
            document = self._documents.get(application_id)
            if document is None:
                return None
            return ApplicationDetails.model_validate(document)

    async def upsert(
        self,
        application_id: str,
        fields: Dict[str, Any],
        sequence_number: int,
    ) -> bool:
        async with self._lock:
            document = self._documents.get(application_id)
            if document is not None and sequence_number <= document["last_sequence_number"]:
                return False
            merged = dict(document or {"id": application_id})
            merged.update(copy.deepcopy(fields))
            merged["last_sequence_number"] = sequence_number
            self._documents[application_id] = merged
            return True

    async def delete(self, application_id: str) -> None:
        async with self._lock:
            self._documents.pop(application_id, None)

    async def search(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[List[ApplicationDetails], int]:
        async with self._lock:
            found = [d for d in self._documents.values() if matches(d, status, search)]
        # Newest applications first.
        found.sort(key=lambda d: (d.get("number") or 0, d["id"]), reverse=True)
        page = found[offset : offset + limit]
        return [ApplicationDetails.model_validate(d) for d in page], len(found)
