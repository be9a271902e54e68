"""
Request Status Store

Persistence for emergency requests. Remote-first against the backing
database with the key-value store as a local mirror:

- reads go to the database and overwrite the mirror on success, falling
  back to the mirror on any remote error;
- writes go to the database when an identity is present, otherwise to local
  storage only;
- updates are keyed by ``id`` and retried by ``request_id`` when no row
  matched.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.logging import get_logger
from core.redis import (
    EMERGENCY_REQUESTS_KEY,
    HOSPITAL_BEDS_CHANNEL,
    REQUEST_CHANNEL,
    RESPONDER_LOCATION_CHANNEL,
)
from repositories.emergency_request import EmergencyRequestRepository
from schemas.emergency import (
    ACTIVE_REQUEST_STATUSES,
    EmergencyRequestCreate,
    EmergencyRequestRead,
    EmergencyRequestStatus,
    ServiceType,
)
from services.realtime import Subscription

logger = get_logger(__name__)


# Request status -> notification event
STATUS_EVENTS = {
    EmergencyRequestStatus.ACCEPTED: "accepted",
    EmergencyRequestStatus.ARRIVED: "arriving",
    EmergencyRequestStatus.COMPLETED: "completed",
    EmergencyRequestStatus.CANCELLED: "cancelled",
}


class RequestNotFoundError(LookupError):
    """No emergency request matched either the id or the request_id."""


def generate_request_id() -> str:
    return f"er_{int(datetime.now(timezone.utc).timestamp() * 1000)}"


def _row_values(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}


def _newest_first(items: List[EmergencyRequestRead]) -> List[EmergencyRequestRead]:
    return sorted(items, key=lambda r: str(r.created_at or ""), reverse=True)


class RequestStatusStore:
    def __init__(
        self,
        session_factory,
        local,
        user_id: Optional[str] = None,
        dispatcher=None,
        realtime=None,
    ):
        self.session_factory = session_factory
        self.local = local
        self.user_id = user_id
        self.dispatcher = dispatcher
        self.realtime = realtime
        self._local_lock = asyncio.Lock()

    async def list(self) -> List[EmergencyRequestRead]:
        """Non-terminal requests of the current identity, newest first."""
        if not self.user_id:
            return await self._read_local()

        try:
            async with self.session_factory() as session:
                items = await EmergencyRequestRepository(session).list_for_user(
                    self.user_id, ACTIVE_REQUEST_STATUSES
                )
        except Exception as e:
            logger.warning("Remote request list failed, using local cache", user_id=self.user_id, error=str(e))
            return await self._read_local()

        await self._mirror(items)
        return items

    async def create(self, request: EmergencyRequestCreate) -> EmergencyRequestRead:
        now = datetime.now(timezone.utc)
        request_id = request.id or request.request_id or generate_request_id()

        values = _row_values(request.model_dump(mode="python"))
        values.update(
            id=request_id,
            request_id=request_id,
            user_id=self.user_id,
            created_at=request.created_at or now,
            updated_at=now,
        )

        if self.user_id:
            async with self.session_factory() as session:
                record = await EmergencyRequestRepository(session).create_request(values)
        else:
            record = EmergencyRequestRead.model_validate(values)
            async with self._local_lock:
                items = await self.local.read(EMERGENCY_REQUESTS_KEY, [])
                items.append(record.model_dump(mode="json"))
                await self.local.write(EMERGENCY_REQUESTS_KEY, items)
            logger.info("Created local-only emergency request", request_id=request_id)

        return record

    async def update(self, request_id: str, updates: Dict[str, Any]) -> EmergencyRequestRead:
        values = _row_values(dict(updates))
        values["updated_at"] = datetime.now(timezone.utc)

        if self.user_id:
            record = await self._update_remote(str(request_id), values)
        else:
            record = await self._update_local(str(request_id), values)

        await self._publish(record)
        return record

    async def set_status(
        self,
        request_id: str,
        status,
        details: Optional[Dict[str, Any]] = None,
    ) -> EmergencyRequestRead:
        """
        Write a new status, optionally with extra fields in the same update.

        Only status changes made here notify the user; notification is
        best-effort. Plain ``update`` calls never notify.
        """
        status = EmergencyRequestStatus(status)
        updates: Dict[str, Any] = dict(details or {})
        updates["status"] = status
        if status == EmergencyRequestStatus.COMPLETED:
            updates["completed_at"] = datetime.now(timezone.utc)
        elif status == EmergencyRequestStatus.CANCELLED:
            updates["cancelled_at"] = datetime.now(timezone.utc)

        record = await self.update(request_id, updates)
        await self._notify(status, record)
        return record

    async def get(self, request_id: str) -> Optional[EmergencyRequestRead]:
        """One request of the current identity by id or request_id, in any status."""
        if self.user_id:
            async with self.session_factory() as session:
                return await EmergencyRequestRepository(session).get_by_any_id(str(request_id), self.user_id)

        items = await self.local.read(EMERGENCY_REQUESTS_KEY, [])
        raw = next((r for r in items if str(r.get("id")) == str(request_id)), None)
        if raw is None:
            raw = next((r for r in items if str(r.get("request_id")) == str(request_id)), None)
        return EmergencyRequestRead.model_validate(raw) if raw else None

    async def get_active(self, service_type: Optional[ServiceType] = None) -> Optional[EmergencyRequestRead]:
        """First request that is still in flight; assumes at most one per type."""
        for request in await self.list():
            if request.status not in ACTIVE_REQUEST_STATUSES:
                continue
            if service_type and request.service_type != ServiceType(service_type):
                continue
            return request
        return None

    # Realtime hooks
    async def subscribe_to_request(self, request_id: str, callback: Callable[[Any], Any]) -> Subscription:
        return await self.realtime.subscribe(REQUEST_CHANNEL.format(request_id=request_id), callback)

    async def subscribe_to_responder_location(self, request_id: str, callback: Callable[[Any], Any]) -> Subscription:
        return await self.realtime.subscribe(RESPONDER_LOCATION_CHANNEL.format(request_id=request_id), callback)

    async def subscribe_to_hospital_beds(self, hospital_id: str, callback: Callable[[Any], Any]) -> Subscription:
        return await self.realtime.subscribe(HOSPITAL_BEDS_CHANNEL.format(hospital_id=hospital_id), callback)

    async def _update_remote(self, request_id: str, values: Dict[str, Any]) -> EmergencyRequestRead:
        async with self.session_factory() as session:
            repo = EmergencyRequestRepository(session)
            affected = await repo.update_by("id", request_id, values, self.user_id)
            if not affected:
                logger.info("No request matched by id, retrying by request_id", request_id=request_id)
                affected = await repo.update_by("request_id", request_id, values, self.user_id)
            if not affected:
                raise RequestNotFoundError(request_id)
            return await repo.get_by_any_id(request_id, self.user_id)

    async def _update_local(self, request_id: str, values: Dict[str, Any]) -> EmergencyRequestRead:
        async with self._local_lock:
            return await self._update_cached(request_id, values)

    async def _update_cached(self, request_id: str, values: Dict[str, Any]) -> EmergencyRequestRead:
        items = await self.local.read(EMERGENCY_REQUESTS_KEY, [])
        index = next((i for i, r in enumerate(items) if str(r.get("id")) == request_id), None)
        if index is None:
            index = next((i for i, r in enumerate(items) if str(r.get("request_id")) == request_id), None)
        if index is None:
            raise RequestNotFoundError(request_id)

        record = EmergencyRequestRead.model_validate({**items[index], **values})
        items[index] = record.model_dump(mode="json")
        await self.local.write(EMERGENCY_REQUESTS_KEY, items)
        return record

    async def _read_local(self) -> List[EmergencyRequestRead]:
        items = []
        for raw in await self.local.read(EMERGENCY_REQUESTS_KEY, []):
            try:
                items.append(EmergencyRequestRead.model_validate(raw))
            except ValueError:
                logger.warning("Skipping malformed cached request", raw_id=(raw or {}).get("id"))
        return _newest_first([r for r in items if r.status in ACTIVE_REQUEST_STATUSES])

    async def _mirror(self, items: List[EmergencyRequestRead]) -> None:
        try:
            await self.local.write(EMERGENCY_REQUESTS_KEY, [r.model_dump(mode="json") for r in items])
        except Exception as e:
            logger.warning("Could not refresh local request cache", error=str(e))

    async def _publish(self, record: EmergencyRequestRead) -> None:
        if not self.realtime:
            return
        try:
            await self.realtime.publish(
                REQUEST_CHANNEL.format(request_id=record.id),
                record.model_dump(mode="json"),
            )
        except Exception as e:
            logger.warning("Realtime publish failed", request_id=record.id, error=str(e))

    async def _notify(self, status: EmergencyRequestStatus, record: EmergencyRequestRead) -> None:
        kind = STATUS_EVENTS.get(status)
        if not kind or not self.dispatcher:
            return
        try:
            await self.dispatcher.dispatch(kind, record.model_dump(mode="json"))
        except Exception as e:
            logger.warning("Status notification failed", request_id=record.id, status=status.value, error=str(e))
