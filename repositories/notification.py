import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models.notification import Notification
from schemas.notification import NotificationCreate, NotificationRead

logger = logging.getLogger(__name__)


class NotificationRepository:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def upsert(self, notification: NotificationCreate) -> NotificationRead:
        """Insert, or overwrite a notification with the same id."""
        async with self.session_factory() as session:
            try:
                values = notification.model_dump(mode="python")
                values["type"] = notification.type.value
                values["priority"] = notification.priority.value
                existing = await session.get(Notification, notification.id)
                if existing:
                    for field, value in values.items():
                        setattr(existing, field, value)
                    record = existing
                else:
                    record = Notification(**values)
                    session.add(record)
                await session.commit()
                await session.refresh(record)
                return NotificationRead.model_validate(record)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.exception(f"Database error saving notification {notification.id}: {str(e)}")
                raise

    async def list_for_user(self, user_id: str) -> List[NotificationRead]:
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(Notification)
                    .where(Notification.user_id == user_id)
                    .order_by(Notification.timestamp.desc())
                )
                return [NotificationRead.model_validate(n) for n in result.scalars().all()]
            except SQLAlchemyError as e:
                logger.exception(f"Database error listing notifications for user {user_id}: {str(e)}")
                raise
