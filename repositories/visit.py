import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from models.emergency import Visit
from repositories.base import BaseRepository
from schemas.emergency import VisitRead

logger = logging.getLogger(__name__)


class VisitRepository(BaseRepository[Visit]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Visit, db_session)

    async def create_visit(self, values: Dict[str, Any]) -> VisitRead:
        try:
            visit = await self.create(values)
            logger.info(f"Created visit {visit.id} for request {visit.request_id}")
            return VisitRead.model_validate(visit)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error creating visit: {str(e)}")
            raise

    async def get_visit(self, visit_id: str, user_id: Optional[str] = None) -> Optional[VisitRead]:
        try:
            visit = await self.get(visit_id)
            if visit and (user_id is None or visit.user_id == user_id):
                return VisitRead.model_validate(visit)
            return None
        except SQLAlchemyError as e:
            logger.exception(f"Database error getting visit {visit_id}: {str(e)}")
            raise

    async def list_for_user(self, user_id: str) -> List[VisitRead]:
        try:
            result = await self.db.execute(
                select(Visit).where(Visit.user_id == user_id).order_by(Visit.created_at.desc())
            )
            return [VisitRead.model_validate(v) for v in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.exception(f"Database error listing visits for user {user_id}: {str(e)}")
            raise

    async def update_visit(
        self,
        visit_id: str,
        values: Dict[str, Any],
        user_id: Optional[str] = None
    ) -> Optional[VisitRead]:
        """Apply a patch; returns None when no visit of that user has that id."""
        filters = {"user_id": user_id} if user_id is not None else None
        try:
            affected = await self.update_where("id", visit_id, values, filters)
            if not affected:
                return None
            return await self.get_visit(visit_id, user_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error updating visit {visit_id}: {str(e)}")
            raise
