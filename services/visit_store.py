"""
Visit Store

Visits are the user-facing history entries joined 1:1 to emergency requests
by ``request_id``. Remote database when an identity is present, otherwise
local storage only.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from core.logging import get_logger
from repositories.visit import VisitRepository
from schemas.emergency import VisitCreate, VisitRead, VisitStatus

logger = get_logger(__name__)

VISITS_KEY = "visits"


class VisitNotFoundError(LookupError):
    """No visit with the given id."""


def _row_values(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}


class VisitStore:
    def __init__(self, session_factory, local, user_id: Optional[str] = None):
        self.session_factory = session_factory
        self.local = local
        self.user_id = user_id
        self._local_lock = asyncio.Lock()

    async def add(self, visit: VisitCreate) -> VisitRead:
        now = datetime.now(timezone.utc)
        values = _row_values(visit.model_dump(mode="python"))
        values.update(user_id=self.user_id, created_at=now, updated_at=now)

        if self.user_id:
            async with self.session_factory() as session:
                return await VisitRepository(session).create_visit(values)

        record = VisitRead.model_validate(values)
        async with self._local_lock:
            items = await self.local.read(VISITS_KEY, [])
            items.append(record.model_dump(mode="json"))
            await self.local.write(VISITS_KEY, items)
        logger.info("Created local-only visit", visit_id=record.id, request_id=record.request_id)
        return record

    async def get(self, visit_id: str) -> Optional[VisitRead]:
        if self.user_id:
            async with self.session_factory() as session:
                return await VisitRepository(session).get_visit(str(visit_id), self.user_id)

        for raw in await self.local.read(VISITS_KEY, []):
            if str(raw.get("id")) == str(visit_id):
                return VisitRead.model_validate(raw)
        return None

    async def list(self) -> List[VisitRead]:
        if self.user_id:
            async with self.session_factory() as session:
                return await VisitRepository(session).list_for_user(self.user_id)
        items = [VisitRead.model_validate(raw) for raw in await self.local.read(VISITS_KEY, [])]
        return sorted(items, key=lambda v: str(v.created_at or ""), reverse=True)

    async def update(self, visit_id: str, patch: Dict[str, Any]) -> VisitRead:
        """
        Apply a partial update to a visit.

        Raises:
            VisitNotFoundError: if no visit has this id
        """
        values = _row_values(dict(patch))
        values["updated_at"] = datetime.now(timezone.utc)

        if self.user_id:
            async with self.session_factory() as session:
                record = await VisitRepository(session).update_visit(str(visit_id), values, self.user_id)
            if record is None:
                raise VisitNotFoundError(visit_id)
            return record

        async with self._local_lock:
            items = await self.local.read(VISITS_KEY, [])
            for index, raw in enumerate(items):
                if str(raw.get("id")) == str(visit_id):
                    record = VisitRead.model_validate({**raw, **values})
                    items[index] = record.model_dump(mode="json")
                    await self.local.write(VISITS_KEY, items)
                    return record
        raise VisitNotFoundError(visit_id)

    async def cancel(self, visit_id: str) -> VisitRead:
        return await self.update(visit_id, {"status": VisitStatus.CANCELLED})

    async def complete(self, visit_id: str) -> VisitRead:
        return await self.update(visit_id, {"status": VisitStatus.COMPLETED})
