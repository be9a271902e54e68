"""
Per-identity wiring of the emergency flow.

One ``EmergencySession`` holds the stores, the shared active trip/booking
state, the guard, the orchestrator, the handlers and the sheet controller of
a single user (or of the anonymous local-only session).
"""

from typing import Optional

from core.logging import get_logger
from repositories.hospital import HospitalRepository
from repositories.notification import NotificationRepository
from repositories.profile import (
    EmergencyContactRepository,
    MedicalProfileRepository,
    PreferencesRepository,
)
from schemas.emergency import (
    ActiveAmbulanceTrip,
    ActiveBedBooking,
    EmergencyRequestStatus,
    ServiceType,
)
from schemas.sheet import SheetGeometry
from services.concurrency_guard import ConcurrencyGuard
from services.emergency_handlers import EmergencyHandlers
from services.emergency_state import EmergencyState
from services.feedback import FeedbackService
from services.lifecycle import LifecycleStateMachine
from services.local_storage import LocalStorage
from services.notification_dispatcher import NotificationDispatcher
from services.realtime import RealtimeHub
from services.request_orchestrator import RequestOrchestrator
from services.request_status_store import RequestStatusStore
from services.sheet_snap_controller import SheetSnapController
from services.visit_store import VisitStore

logger = get_logger(__name__)


class EmergencySession:
    def __init__(
        self,
        session_factory,
        redis_client,
        user_id: Optional[str] = None,
        geometry: Optional[SheetGeometry] = None,
    ):
        self.user_id = user_id

        self.local = LocalStorage(redis_client, user_id)
        self.realtime = RealtimeHub(redis_client)
        self.feedback = FeedbackService(self.realtime, user_id)
        self.dispatcher = NotificationDispatcher(
            NotificationRepository(session_factory), self.feedback, user_id
        )

        self.request_store = RequestStatusStore(
            session_factory, self.local, user_id, self.dispatcher, self.realtime
        )
        self.visit_store = VisitStore(session_factory, self.local, user_id)
        self.lifecycle = LifecycleStateMachine(self.visit_store)

        self.state = EmergencyState()
        self.guard = ConcurrencyGuard(self.state)
        self.sheet = SheetSnapController(geometry)

        self.orchestrator = RequestOrchestrator(
            request_store=self.request_store,
            visit_store=self.visit_store,
            lifecycle=self.lifecycle,
            guard=self.guard,
            state=self.state,
            hospitals=HospitalRepository(session_factory),
            preferences=PreferencesRepository(session_factory, user_id),
            medical_profiles=MedicalProfileRepository(session_factory, user_id),
            emergency_contacts=EmergencyContactRepository(session_factory, user_id),
            user_id=user_id,
        )
        self.handlers = EmergencyHandlers(
            state=self.state,
            request_store=self.request_store,
            visit_store=self.visit_store,
            lifecycle=self.lifecycle,
            guard=self.guard,
            dispatcher=self.dispatcher,
            sheet=self.sheet,
            feedback=self.feedback,
            user_id=user_id,
        )

    async def restore(self) -> None:
        """
        Rebuild process-local state from persisted requests.

        Accepted or arrived requests become the active trip/booking again;
        a request still waiting for acceptance puts its type back to pending.
        """
        for service_type in ServiceType:
            request = await self.request_store.get_active(service_type)
            if not request:
                continue

            if request.status == EmergencyRequestStatus.IN_PROGRESS:
                self.guard.try_begin(service_type)
                continue

            arrived = request.status == EmergencyRequestStatus.ARRIVED
            if service_type == ServiceType.AMBULANCE:
                self.state.start_ambulance_trip(ActiveAmbulanceTrip(
                    request_id=request.id,
                    hospital_id=request.hospital_id,
                    hospital_name=request.hospital_name,
                    ambulance_id=request.ambulance_id,
                    ambulance_type=request.ambulance_type,
                    estimated_arrival=request.estimated_arrival,
                    arrived=arrived,
                ))
            else:
                self.state.start_bed_booking(ActiveBedBooking(
                    request_id=request.id,
                    hospital_id=request.hospital_id,
                    hospital_name=request.hospital_name,
                    specialty=request.specialty,
                    bed_number=request.bed_number,
                    bed_type=request.bed_type,
                    bed_count=request.bed_count,
                    estimated_wait=request.estimated_arrival,
                    occupied=arrived,
                ))
            self.guard.activate(service_type)
            logger.info("Restored active emergency request", request_id=request.id, service_type=service_type.value)
