"""
Profile data the emergency flow snapshots at request time.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON
from sqlalchemy.sql import func

from core.database import Base


class MedicalProfile(Base):
    """Medical profile shared with responders when the user allows it."""

    __tablename__ = "medical_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    blood_type = Column(String(10), nullable=True)
    allergies = Column(JSON, nullable=True)
    medications = Column(JSON, nullable=True)
    conditions = Column(JSON, nullable=True)
    surgeries = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class EmergencyContact(Base):
    """EmergencyContact model for emergency contact management."""

    __tablename__ = "emergency_contacts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    relationship = Column(String(100), nullable=True)  # spouse, child, friend, doctor, etc.
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<EmergencyContact(id={self.id}, name='{self.name}', user_id={self.user_id})>"


class UserPreferences(Base):
    """Privacy and notification preferences."""

    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    privacy_share_medical_profile = Column(Boolean, default=False)
    privacy_share_emergency_contacts = Column(Boolean, default=False)
    notifications_enabled = Column(Boolean, default=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
