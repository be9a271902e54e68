"""
Notification Dispatcher

Turns emergency request events into user-facing notifications:

1. persists an in-app notification,
2. emits haptic feedback for the device,
3. hands a push job to the push worker (delivery is not handled here).

Callers treat dispatching as fire-and-forget and swallow its failures.
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from celery_app import celery_app
from core.config import settings
from core.logging import get_logger
from schemas.notification import (
    NotificationCreate,
    NotificationPriority,
    NotificationRead,
    NotificationType,
)
from services.feedback import FeedbackKind

logger = get_logger(__name__)


EVENT_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "accepted": {
        "title": "Help is on the way!",
        "message": "{responder} has accepted your request.",
        "type": NotificationType.EMERGENCY,
        "priority": NotificationPriority.URGENT,
        "haptic": FeedbackKind.SUCCESS,
    },
    "arriving": {
        "title": "Ambulance Arriving",
        "message": "The responder is approaching your location.",
        "type": NotificationType.EMERGENCY,
        "priority": NotificationPriority.HIGH,
        "haptic": FeedbackKind.WARNING,
    },
    "completed": {
        "title": "Trip Completed",
        "message": "You have arrived at the hospital.",
        "type": NotificationType.EMERGENCY,
        "priority": NotificationPriority.NORMAL,
        "haptic": FeedbackKind.SUCCESS,
    },
    "cancelled": {
        "title": "Request Cancelled",
        "message": "The emergency request was cancelled.",
        "type": NotificationType.SYSTEM,
        "priority": NotificationPriority.NORMAL,
        "haptic": FeedbackKind.ERROR,
    },
}


def send_push_via_celery(title: str, message: str, data: Dict[str, Any]) -> None:
    celery_app.send_task(
        settings.PUSH_NOTIFICATION_TASK,
        kwargs={"title": title, "message": message, "data": data},
    )


class NotificationDispatcher:
    def __init__(
        self,
        notifications,
        feedback,
        user_id: Optional[str] = None,
        push_sender: Callable[[str, str, Dict[str, Any]], None] = send_push_via_celery,
    ):
        self.notifications = notifications
        self.feedback = feedback
        self.user_id = user_id
        self.push_sender = push_sender

    async def dispatch(self, kind: str, payload: Dict[str, Any]) -> Optional[NotificationRead]:
        """
        Dispatch a notification for an emergency event.

        Args:
            kind: 'accepted' | 'arriving' | 'completed' | 'cancelled'
            payload: the emergency request record

        Returns:
            The stored notification, or None for kinds without a template.
        """
        template = EVENT_TEMPLATES.get(kind)
        if not template or not payload:
            return None

        request_id = payload.get("id") or payload.get("request_id")
        logger.info("Dispatching notification", kind=kind, request_id=request_id)

        notification = NotificationCreate(
            id=f"evt_{request_id}_{kind}",
            user_id=self.user_id,
            type=template["type"],
            title=template["title"],
            message=template["message"].format(
                responder=payload.get("responder_name") or "An ambulance"
            ),
            priority=template["priority"],
            action_type="view_map",
            action_data={"request_id": request_id},
        )
        saved = await self.add_notification(notification)

        await self.feedback.emit(template["haptic"], request_id=request_id)
        await self._push(notification, kind)
        return saved

    async def add_notification(self, notification: NotificationCreate) -> NotificationRead:
        return await self.notifications.upsert(notification)

    async def _push(self, notification: NotificationCreate, kind: str) -> None:
        try:
            await asyncio.to_thread(
                self.push_sender,
                notification.title,
                notification.message,
                {"request_id": (notification.action_data or {}).get("request_id"), "type": kind},
            )
        except Exception as e:
            logger.warning("Push hand-off failed", notification_id=notification.id, error=str(e))
