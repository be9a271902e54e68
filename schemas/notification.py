from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    EMERGENCY = "emergency"
    SYSTEM = "system"
    APPOINTMENT = "appointment"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationCreate(BaseModel):
    id: str
    user_id: Optional[str] = None
    type: NotificationType = NotificationType.SYSTEM
    title: str
    message: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_type: Optional[str] = None
    action_data: Optional[Dict[str, Any]] = None
    read: bool = False
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class NotificationRead(NotificationCreate):
    model_config = ConfigDict(from_attributes=True)
