"""
Emergency request and visit models.

An EmergencyRequest and its Visit share the same primary key; they are
created together and never deleted (cancel/complete are terminal statuses).
"""

from sqlalchemy import Column, String, Text, DateTime, JSON
from sqlalchemy.sql import func

from core.database import Base


class EmergencyRequest(Base):
    """Ambulance dispatch or bed reservation request."""

    __tablename__ = "emergency_requests"

    id = Column(String(64), primary_key=True, index=True)
    request_id = Column(String(64), nullable=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)

    service_type = Column(String(20), nullable=False)  # ambulance, bed
    hospital_id = Column(String(64), nullable=False)
    hospital_name = Column(String(255), nullable=True)
    specialty = Column(String(255), nullable=True)

    # Ambulance
    ambulance_type = Column(String(100), nullable=True)
    ambulance_id = Column(String(64), nullable=True)
    estimated_arrival = Column(String(100), nullable=True)

    # Bed
    bed_number = Column(String(50), nullable=True)
    bed_type = Column(String(100), nullable=True)
    bed_count = Column(String(50), nullable=True)

    # Responder, filled on acceptance
    responder_name = Column(String(255), nullable=True)
    responder_phone = Column(String(50), nullable=True)
    responder_vehicle_type = Column(String(100), nullable=True)
    responder_vehicle_plate = Column(String(50), nullable=True)

    status = Column(String(20), nullable=False, default="in_progress", index=True)

    # Point-in-time disclosures, never rewritten after creation
    patient_snapshot = Column(JSON, nullable=True)
    shared_data_snapshot = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<EmergencyRequest(id={self.id}, service_type='{self.service_type}', status='{self.status}')>"


class Visit(Base):
    """User-facing visit joined 1:1 with an emergency request."""

    __tablename__ = "visits"

    id = Column(String(64), primary_key=True, index=True)
    request_id = Column(String(64), nullable=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    hospital_id = Column(String(64), nullable=True)

    # Display only
    hospital = Column(String(255), nullable=True)
    doctor = Column(String(255), nullable=True)
    specialty = Column(String(255), nullable=True)
    date = Column(String(20), nullable=True)
    time = Column(String(20), nullable=True)
    type = Column(String(50), nullable=True)
    image = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    room_number = Column(String(50), nullable=True)
    estimated_duration = Column(String(100), nullable=True)

    status = Column(String(20), nullable=False, default="upcoming")
    lifecycle_state = Column(String(30), nullable=True)
    lifecycle_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Visit(id={self.id}, status='{self.status}', lifecycle_state='{self.lifecycle_state}')>"
