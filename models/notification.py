"""
In-app notification model.
"""

from sqlalchemy import Column, String, Text, DateTime, Boolean, JSON
from sqlalchemy.sql import func

from core.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(128), primary_key=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)

    type = Column(String(20), nullable=False)  # emergency, system, appointment
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    priority = Column(String(20), default="normal")
    action_type = Column(String(50), nullable=True)
    action_data = Column(JSON, nullable=True)
    read = Column(Boolean, default=False)

    timestamp = Column(DateTime(timezone=True), server_default=func.now())
