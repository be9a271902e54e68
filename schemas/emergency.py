from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceType(str, Enum):
    AMBULANCE = "ambulance"
    BED = "bed"


class EmergencyRequestStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_REQUEST_STATUSES = (
    EmergencyRequestStatus.IN_PROGRESS,
    EmergencyRequestStatus.ACCEPTED,
    EmergencyRequestStatus.ARRIVED,
)

TERMINAL_REQUEST_STATUSES = (
    EmergencyRequestStatus.COMPLETED,
    EmergencyRequestStatus.CANCELLED,
)


class VisitStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VisitType(str, Enum):
    AMBULANCE_RIDE = "Ambulance Ride"
    BED_BOOKING = "Bed Booking"


class LifecycleState(str, Enum):
    INITIATED = "initiated"
    CONFIRMED = "confirmed"
    MONITORING = "monitoring"
    ARRIVED = "arrived"
    OCCUPIED = "occupied"
    COMPLETED = "completed"
    RATING_PENDING = "rating_pending"
    RATED = "rated"
    CLEARED = "cleared"
    CANCELLED = "cancelled"


# Snapshots taken at creation time
class PatientSnapshot(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None


class SharedSnapshot(BaseModel):
    medical_profile: Optional[Dict[str, Any]] = None
    emergency_contacts: Optional[List[Dict[str, Any]]] = None


# Emergency requests
class EmergencyRequestBase(BaseModel):
    service_type: ServiceType
    hospital_id: str
    hospital_name: Optional[str] = None
    specialty: Optional[str] = None
    ambulance_type: Optional[str] = None
    ambulance_id: Optional[str] = None
    estimated_arrival: Optional[str] = None
    bed_number: Optional[str] = None
    bed_type: Optional[str] = None
    bed_count: Optional[str] = None


class EmergencyRequestCreate(EmergencyRequestBase):
    id: Optional[str] = None
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    status: EmergencyRequestStatus = EmergencyRequestStatus.IN_PROGRESS
    patient_snapshot: Optional[PatientSnapshot] = None
    shared_data_snapshot: Optional[SharedSnapshot] = None
    created_at: Optional[datetime] = None


class EmergencyRequestRead(EmergencyRequestBase):
    id: str
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    status: EmergencyRequestStatus
    responder_name: Optional[str] = None
    responder_phone: Optional[str] = None
    responder_vehicle_type: Optional[str] = None
    responder_vehicle_plate: Optional[str] = None
    patient_snapshot: Optional[PatientSnapshot] = None
    shared_data_snapshot: Optional[SharedSnapshot] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Visits
class VisitBase(BaseModel):
    hospital_id: Optional[str] = None
    hospital: Optional[str] = None
    doctor: Optional[str] = None
    specialty: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    type: Optional[VisitType] = None
    image: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    room_number: Optional[str] = None
    estimated_duration: Optional[str] = None


class VisitCreate(VisitBase):
    id: str
    request_id: str
    user_id: Optional[str] = None
    status: VisitStatus = VisitStatus.UPCOMING
    lifecycle_state: Optional[LifecycleState] = None
    lifecycle_updated_at: Optional[datetime] = None


class VisitRead(VisitBase):
    id: str
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    status: VisitStatus
    lifecycle_state: Optional[LifecycleState] = None
    lifecycle_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Orchestrator inputs
class RequestIntent(BaseModel):
    """What the client sends when the user taps Request Ambulance / Book Bed."""
    service_type: str
    hospital_id: Optional[str] = None
    request_id: Optional[str] = None
    hospital_name: Optional[str] = None
    specialty: Optional[str] = None
    ambulance_type: Optional[str] = None
    ambulance_id: Optional[str] = None
    estimated_arrival: Optional[str] = None
    bed_number: Optional[str] = None
    bed_type: Optional[str] = None
    bed_count: Optional[str] = None
    patient: Optional[PatientSnapshot] = None


class AcceptanceDetails(BaseModel):
    """Responder and resource details sent when a request is accepted."""
    service_type: Optional[str] = None
    hospital_id: Optional[str] = None
    hospital_name: Optional[str] = None
    specialty: Optional[str] = None
    ambulance_type: Optional[str] = None
    ambulance_id: Optional[str] = None
    estimated_arrival: Optional[str] = None
    bed_number: Optional[str] = None
    bed_type: Optional[str] = None
    bed_count: Optional[str] = None
    responder_name: Optional[str] = None
    responder_phone: Optional[str] = None
    responder_vehicle_type: Optional[str] = None
    responder_vehicle_plate: Optional[str] = None
    route: Optional[List[List[float]]] = None


class AcceptanceSignal(AcceptanceDetails):
    """Dispatch/ward acceptance of a pending request."""
    request_id: str
    service_type: str


# Active domain objects
class ActiveAmbulanceTrip(BaseModel):
    request_id: str
    hospital_id: str
    hospital_name: Optional[str] = None
    ambulance_id: Optional[str] = None
    ambulance_type: Optional[str] = None
    estimated_arrival: Optional[str] = None
    route: Optional[List[List[float]]] = None
    arrived: bool = False
    started_at: datetime = Field(default_factory=datetime.utcnow)


class ActiveBedBooking(BaseModel):
    request_id: str
    hospital_id: str
    hospital_name: Optional[str] = None
    specialty: Optional[str] = None
    bed_number: Optional[str] = None
    bed_type: Optional[str] = None
    bed_count: Optional[str] = None
    estimated_wait: Optional[str] = None
    occupied: bool = False
    started_at: datetime = Field(default_factory=datetime.utcnow)


# Snapshot sources
class HospitalRead(BaseModel):
    id: str
    name: str
    image: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    specialties: Optional[List[str]] = None
    available_beds: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PreferencesRead(BaseModel):
    privacy_share_medical_profile: bool = False
    privacy_share_emergency_contacts: bool = False
    notifications_enabled: bool = True

    model_config = ConfigDict(from_attributes=True)


class MedicalProfileRead(BaseModel):
    blood_type: Optional[str] = None
    allergies: Optional[List[str]] = None
    medications: Optional[List[str]] = None
    conditions: Optional[List[str]] = None
    surgeries: Optional[List[str]] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EmergencyContactRead(BaseModel):
    name: str
    relationship: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
