"""
Hospital directory model.
"""

from sqlalchemy import Column, String, Text, Integer, Float, DateTime, JSON
from sqlalchemy.sql import func

from core.database import Base


class Hospital(Base):
    """Hospital the user can request an ambulance from or book a bed at."""

    __tablename__ = "hospitals"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    image = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    specialties = Column(JSON, nullable=True)
    available_beds = Column(Integer, default=0)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Hospital(id={self.id}, name='{self.name}')>"
