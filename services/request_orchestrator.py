"""
Request Orchestrator

Two-phase flow turning a "Request Ambulance" / "Book Bed" intent into a
coordinated EmergencyRequest + Visit pair:

Phase 1 (initiated): validate, take the concurrency guard, snapshot the
patient, write the request and then its visit.

Phase 2 (complete): mark the request accepted, move the visit lifecycle to
monitoring, start the active trip or booking and activate the guard.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.logging import get_logger
from schemas.emergency import (
    AcceptanceSignal,
    ActiveAmbulanceTrip,
    ActiveBedBooking,
    EmergencyRequestCreate,
    EmergencyRequestRead,
    EmergencyRequestStatus,
    HospitalRead,
    LifecycleState,
    PatientSnapshot,
    RequestIntent,
    ServiceType,
    SharedSnapshot,
    VisitCreate,
    VisitStatus,
    VisitType,
)
from services.request_status_store import RequestNotFoundError, generate_request_id

logger = get_logger(__name__)


RESPONDER_FIELDS = (
    "responder_name",
    "responder_phone",
    "responder_vehicle_type",
    "responder_vehicle_plate",
)


def _parse_service_type(value) -> Optional[ServiceType]:
    try:
        return ServiceType(value)
    except ValueError:
        return None


class RequestOrchestrator:
    def __init__(
        self,
        request_store,
        visit_store,
        lifecycle,
        guard,
        state,
        hospitals,
        preferences,
        medical_profiles,
        emergency_contacts,
        patient: Optional[PatientSnapshot] = None,
        user_id: Optional[str] = None,
    ):
        self.request_store = request_store
        self.visit_store = visit_store
        self.lifecycle = lifecycle
        self.guard = guard
        self.state = state
        self.hospitals = hospitals
        self.preferences = preferences
        self.medical_profiles = medical_profiles
        self.emergency_contacts = emergency_contacts
        self.patient = patient
        self.user_id = user_id

    async def handle_request_initiated(self, intent: RequestIntent) -> Optional[EmergencyRequestRead]:
        """
        Phase 1: create the request and its companion visit.

        Args:
            intent: service type, hospital and the requested resource details

        Returns:
            The created request, or None when the intent was rejected
            (unknown service type, unknown hospital, or a request of the
            same type already pending or active).

        Raises:
            Any persistence error; the guard is released before it propagates.
        """
        service_type = _parse_service_type(intent.service_type)
        if service_type is None:
            logger.warning("Ignoring request with invalid service type", service_type=intent.service_type)
            return None

        hospital_id = intent.hospital_id or self.state.selected_hospital_id
        hospital = await self.hospitals.find_by_id(hospital_id)
        if not hospital:
            logger.warning("Ignoring request without a resolvable hospital", hospital_id=hospital_id)
            return None

        if not self.guard.try_begin(service_type):
            return None

        try:
            request_id = intent.request_id or generate_request_id()
            shared = await self._build_shared_snapshot()

            request = await self.request_store.create(
                self._build_request(request_id, service_type, intent, hospital, shared)
            )
            try:
                await self.visit_store.add(self._build_visit(request, service_type, hospital))
            except Exception:
                await self._compensate(request.id)
                raise
        except Exception as e:
            logger.error("Request initiation failed", service_type=service_type.value, error=str(e))
            self.guard.fail(service_type)
            raise

        logger.info(
            "Emergency request initiated",
            request_id=request.id,
            service_type=service_type.value,
            hospital_id=hospital.id,
        )
        return request

    async def handle_request_complete(self, signal: AcceptanceSignal) -> Optional[EmergencyRequestRead]:
        """
        Phase 2: the request was accepted by dispatch or the ward.

        Returns:
            The accepted request, or None when the hospital could not be
            resolved (the pending guard is cleared in that case) or the
            request is no longer waiting for acceptance.

        Raises:
            RequestNotFoundError: the identity has no such request
        """
        service_type = _parse_service_type(signal.service_type)
        if service_type is None:
            logger.warning("Ignoring acceptance with invalid service type", service_type=signal.service_type)
            return None

        hospital_id = signal.hospital_id or self.state.selected_hospital_id
        hospital = await self.hospitals.find_by_id(hospital_id)
        if not hospital:
            logger.warning(
                "Ignoring acceptance without a resolvable hospital",
                request_id=signal.request_id,
                hospital_id=hospital_id,
            )
            self.guard.fail(service_type)
            return None

        try:
            current = await self.request_store.get(signal.request_id)
            if current is None:
                raise RequestNotFoundError(signal.request_id)
            if current.status != EmergencyRequestStatus.IN_PROGRESS:
                logger.warning(
                    "Ignoring acceptance for a request that is no longer pending",
                    request_id=signal.request_id,
                    status=current.status.value,
                )
                return None

            record = await self._accept(signal)
            await self.lifecycle.advance(
                record.request_id or record.id, LifecycleState.CONFIRMED, LifecycleState.MONITORING
            )
            if service_type == ServiceType.AMBULANCE:
                self.state.start_ambulance_trip(self._build_trip(record, signal, hospital))
            else:
                self.state.start_bed_booking(self._build_booking(record, signal, hospital))
        except Exception as e:
            logger.error("Request completion failed", request_id=signal.request_id, error=str(e))
            self.guard.fail(service_type)
            raise

        self.guard.activate(service_type)
        self.state.clear_selected_hospital()
        logger.info("Emergency request accepted", request_id=record.id, service_type=service_type.value)
        return record

    async def _accept(self, signal: AcceptanceSignal) -> EmergencyRequestRead:
        details: Dict[str, Any] = {}
        for field in RESPONDER_FIELDS:
            value = getattr(signal, field)
            if value is not None:
                details[field] = value
        try:
            return await self.request_store.set_status(
                signal.request_id, EmergencyRequestStatus.ACCEPTED, details
            )
        except Exception as e:
            logger.warning(
                "Full acceptance update failed, falling back to status only",
                request_id=signal.request_id,
                error=str(e),
            )
            return await self.request_store.set_status(signal.request_id, EmergencyRequestStatus.ACCEPTED)

    async def _compensate(self, request_id: str) -> None:
        """Cancel a request whose visit could not be written."""
        try:
            await self.request_store.update(
                request_id,
                {"status": EmergencyRequestStatus.CANCELLED, "cancelled_at": datetime.now(timezone.utc)},
            )
        except Exception as e:
            logger.error("Could not cancel orphaned request", request_id=request_id, error=str(e))

    async def _build_shared_snapshot(self) -> SharedSnapshot:
        preferences = await self.preferences.get()
        shared = SharedSnapshot()

        if preferences.privacy_share_medical_profile:
            profile = await self.medical_profiles.get()
            if profile:
                shared.medical_profile = copy.deepcopy(profile.model_dump())

        if preferences.privacy_share_emergency_contacts:
            contacts = await self.emergency_contacts.list()
            shared.emergency_contacts = copy.deepcopy([c.model_dump() for c in contacts])

        return shared

    def _build_request(
        self,
        request_id: str,
        service_type: ServiceType,
        intent: RequestIntent,
        hospital: HospitalRead,
        shared: SharedSnapshot,
    ) -> EmergencyRequestCreate:
        patient = intent.patient or self.patient
        patient = patient.model_copy(deep=True) if patient else PatientSnapshot()
        details = intent.model_dump(
            exclude={"service_type", "hospital_id", "request_id", "hospital_name", "patient"}
        )
        return EmergencyRequestCreate(
            id=request_id,
            request_id=request_id,
            user_id=self.user_id,
            service_type=service_type,
            hospital_id=hospital.id,
            hospital_name=intent.hospital_name or hospital.name,
            status=EmergencyRequestStatus.IN_PROGRESS,
            patient_snapshot=patient,
            shared_data_snapshot=shared,
            **details,
        )

    def _build_visit(
        self,
        request: EmergencyRequestRead,
        service_type: ServiceType,
        hospital: HospitalRead,
    ) -> VisitCreate:
        now = datetime.now()
        if service_type == ServiceType.AMBULANCE:
            descriptive = {
                "doctor": "Ambulance Dispatch",
                "specialty": "Emergency Response",
                "type": VisitType.AMBULANCE_RIDE,
                "notes": "Emergency ambulance requested",
                "estimated_duration": request.estimated_arrival,
            }
        else:
            descriptive = {
                "doctor": "Admissions Desk",
                "specialty": request.specialty or "General Care",
                "type": VisitType.BED_BOOKING,
                "notes": "Hospital bed reserved",
                "room_number": request.bed_number,
            }

        return VisitCreate(
            id=request.request_id or request.id,
            request_id=request.request_id or request.id,
            user_id=self.user_id,
            hospital_id=hospital.id,
            hospital=hospital.name,
            date=now.strftime("%Y-%m-%d"),
            time=now.strftime("%I:%M %p"),
            image=hospital.image,
            address=hospital.address,
            phone=hospital.phone,
            status=VisitStatus.IN_PROGRESS,
            lifecycle_state=LifecycleState.INITIATED,
            lifecycle_updated_at=datetime.now(timezone.utc),
            **descriptive,
        )

    @staticmethod
    def _build_trip(record: EmergencyRequestRead, signal: AcceptanceSignal, hospital: HospitalRead) -> ActiveAmbulanceTrip:
        return ActiveAmbulanceTrip(
            request_id=record.id,
            hospital_id=hospital.id,
            hospital_name=hospital.name,
            ambulance_id=signal.ambulance_id or record.ambulance_id,
            ambulance_type=signal.ambulance_type or record.ambulance_type,
            estimated_arrival=signal.estimated_arrival or record.estimated_arrival,
            route=signal.route,
        )

    @staticmethod
    def _build_booking(record: EmergencyRequestRead, signal: AcceptanceSignal, hospital: HospitalRead) -> ActiveBedBooking:
        return ActiveBedBooking(
            request_id=record.id,
            hospital_id=hospital.id,
            hospital_name=hospital.name,
            specialty=signal.specialty or record.specialty,
            bed_number=signal.bed_number or record.bed_number,
            bed_type=signal.bed_type or record.bed_type,
            bed_count=signal.bed_count or record.bed_count,
            estimated_wait=signal.estimated_arrival or record.estimated_arrival,
        )
