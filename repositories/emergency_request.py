"""
Emergency Request Repository

Data access layer for emergency requests in the backing database.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from models.emergency import EmergencyRequest
from repositories.base import BaseRepository
from schemas.emergency import EmergencyRequestRead

logger = logging.getLogger(__name__)


class EmergencyRequestRepository(BaseRepository[EmergencyRequest]):
    """Repository for emergency requests."""

    def __init__(self, db_session: AsyncSession):
        super().__init__(EmergencyRequest, db_session)

    async def create_request(self, values: Dict[str, Any]) -> EmergencyRequestRead:
        try:
            request = await self.create(values)
            logger.info(f"Created emergency request {request.id} ({request.service_type})")
            return EmergencyRequestRead.model_validate(request)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error creating emergency request: {str(e)}")
            raise

    async def list_for_user(
        self,
        user_id: str,
        statuses: Iterable[str]
    ) -> List[EmergencyRequestRead]:
        """Requests of one user in the given statuses, newest first."""
        try:
            result = await self.db.execute(
                select(EmergencyRequest)
                .where(
                    EmergencyRequest.user_id == user_id,
                    EmergencyRequest.status.in_([getattr(s, "value", s) for s in statuses]),
                )
                .order_by(EmergencyRequest.created_at.desc())
            )
            return [EmergencyRequestRead.model_validate(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.exception(f"Database error listing emergency requests for user {user_id}: {str(e)}")
            raise

    async def get_by_any_id(self, identifier: str, user_id: Optional[str] = None) -> Optional[EmergencyRequestRead]:
        """Look a request up by primary id or by its request_id, optionally scoped to one user."""
        try:
            query = select(EmergencyRequest).where(
                or_(
                    EmergencyRequest.id == identifier,
                    EmergencyRequest.request_id == identifier,
                )
            )
            if user_id is not None:
                query = query.where(EmergencyRequest.user_id == user_id)
            result = await self.db.execute(query)
            request = result.scalars().first()
            if request:
                return EmergencyRequestRead.model_validate(request)
            return None
        except SQLAlchemyError as e:
            logger.exception(f"Database error getting emergency request {identifier}: {str(e)}")
            raise

    async def update_by(
        self,
        field: str,
        identifier: str,
        values: Dict[str, Any],
        user_id: Optional[str] = None
    ) -> int:
        filters = {"user_id": user_id} if user_id is not None else None
        try:
            return await self.update_where(field, identifier, values, filters)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error updating emergency request {field}={identifier}: {str(e)}")
            raise
