"""
UI feedback service.

Haptics are performed on the device; the backend only publishes the intent
on the identity's feedback channel. Fire-and-forget: failures are logged.
"""

from enum import Enum
from typing import Optional

from core.logging import get_logger
from core.redis import FEEDBACK_CHANNEL

logger = get_logger(__name__)


class FeedbackKind(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    IMPACT_LIGHT = "impact_light"
    IMPACT_MEDIUM = "impact_medium"


class FeedbackService:
    def __init__(self, realtime, identity: Optional[str] = None):
        self.realtime = realtime
        self.channel = FEEDBACK_CHANNEL.format(identity=identity or "anonymous")

    async def emit(self, kind: FeedbackKind, **context) -> None:
        try:
            await self.realtime.publish(self.channel, {"kind": kind.value, **context})
        except Exception as e:
            logger.warning("Feedback publish failed", kind=kind.value, error=str(e))
