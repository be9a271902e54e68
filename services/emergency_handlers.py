"""
Emergency Handlers

Cancel / complete / arrived / occupied actions on the active ambulance trip
or bed booking. Each handler is a ``CompositeAction``:

1. all writes run concurrently and every one settles;
2. ``on_success`` runs only if none of them failed;
3. ``cleanup`` always runs;
4. the sheet snaps back to its half position and feedback is emitted.

There is no rollback: a failed write is logged and the writes that landed
stay. Handler errors never propagate to the caller.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from core.config import settings
from core.logging import get_logger
from schemas.emergency import EmergencyRequestStatus, LifecycleState, ServiceType
from schemas.notification import NotificationCreate, NotificationPriority, NotificationType
from services.feedback import FeedbackKind

logger = get_logger(__name__)


class HandlerKind(str, Enum):
    CANCEL_AMBULANCE = "cancel_ambulance"
    COMPLETE_AMBULANCE = "complete_ambulance"
    CANCEL_BED = "cancel_bed"
    COMPLETE_BED = "complete_bed"
    MARK_ARRIVED = "mark_arrived"
    MARK_OCCUPIED = "mark_occupied"


@dataclass
class CompositeAction:
    kind: HandlerKind
    request_id: str
    writes: List[Callable[[], Awaitable]]
    on_success: Optional[Callable[[], None]] = None
    cleanup: Optional[Callable[[], None]] = None
    feedback: FeedbackKind = FeedbackKind.SUCCESS


@dataclass
class ActionOutcome:
    kind: HandlerKind
    executed: bool
    request_id: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.executed and not self.errors


class EmergencyHandlers:
    def __init__(
        self,
        state,
        request_store,
        visit_store,
        lifecycle,
        guard,
        dispatcher,
        sheet,
        feedback,
        user_id: Optional[str] = None,
    ):
        self.state = state
        self.request_store = request_store
        self.visit_store = visit_store
        self.lifecycle = lifecycle
        self.guard = guard
        self.dispatcher = dispatcher
        self.sheet = sheet
        self.feedback = feedback
        self.user_id = user_id

    async def on_cancel_ambulance_trip(self) -> ActionOutcome:
        trip = self.state.active_ambulance_trip
        if not trip:
            return ActionOutcome(HandlerKind.CANCEL_AMBULANCE, executed=False)
        return await self.run(self._cancel_action(HandlerKind.CANCEL_AMBULANCE, trip.request_id, ServiceType.AMBULANCE))

    async def on_complete_ambulance_trip(self) -> ActionOutcome:
        trip = self.state.active_ambulance_trip
        if not trip:
            return ActionOutcome(HandlerKind.COMPLETE_AMBULANCE, executed=False)
        return await self.run(self._complete_action(HandlerKind.COMPLETE_AMBULANCE, trip.request_id, ServiceType.AMBULANCE))

    async def on_cancel_bed_booking(self) -> ActionOutcome:
        booking = self.state.active_bed_booking
        if not booking:
            return ActionOutcome(HandlerKind.CANCEL_BED, executed=False)
        action = self._cancel_action(HandlerKind.CANCEL_BED, booking.request_id, ServiceType.BED)
        action.writes.append(lambda: self.dispatcher.add_notification(NotificationCreate(
            id=f"bed_cancel_{booking.request_id}",
            user_id=self.user_id,
            type=NotificationType.APPOINTMENT,
            title="Bed reservation cancelled",
            message="You cancelled the active bed reservation.",
            priority=NotificationPriority.NORMAL,
            action_data={"visit_id": booking.request_id},
        )))
        return await self.run(action)

    async def on_complete_bed_booking(self) -> ActionOutcome:
        booking = self.state.active_bed_booking
        if not booking:
            return ActionOutcome(HandlerKind.COMPLETE_BED, executed=False)
        action = self._complete_action(HandlerKind.COMPLETE_BED, booking.request_id, ServiceType.BED)
        action.writes.append(lambda: self.dispatcher.add_notification(NotificationCreate(
            id=f"bed_complete_{booking.request_id}",
            user_id=self.user_id,
            type=NotificationType.APPOINTMENT,
            title="Bed booking completed",
            message="Your bed booking has been marked complete.",
            priority=NotificationPriority.NORMAL,
            action_type="view_summary",
            action_data={"visit_id": booking.request_id},
        )))
        return await self.run(action)

    async def on_mark_ambulance_arrived(self) -> ActionOutcome:
        trip = self.state.active_ambulance_trip
        if not trip:
            return ActionOutcome(HandlerKind.MARK_ARRIVED, executed=False)
        request_id = trip.request_id
        return await self.run(CompositeAction(
            kind=HandlerKind.MARK_ARRIVED,
            request_id=request_id,
            writes=[
                lambda: self.request_store.set_status(request_id, EmergencyRequestStatus.ARRIVED),
                lambda: self.lifecycle.transition(request_id, LifecycleState.ARRIVED),
            ],
            on_success=self.state.mark_ambulance_arrived,
        ))

    async def on_mark_bed_occupied(self) -> ActionOutcome:
        booking = self.state.active_bed_booking
        if not booking:
            return ActionOutcome(HandlerKind.MARK_OCCUPIED, executed=False)
        request_id = booking.request_id
        return await self.run(CompositeAction(
            kind=HandlerKind.MARK_OCCUPIED,
            request_id=request_id,
            writes=[
                lambda: self.request_store.set_status(request_id, EmergencyRequestStatus.ARRIVED),
                lambda: self.lifecycle.transition(request_id, LifecycleState.OCCUPIED),
            ],
            on_success=self.state.mark_bed_occupied,
        ))

    async def run(self, action: CompositeAction) -> ActionOutcome:
        outcome = ActionOutcome(action.kind, executed=True, request_id=action.request_id)
        try:
            results = await asyncio.gather(*(write() for write in action.writes), return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    outcome.errors.append(f"{type(result).__name__}: {result}")
            if outcome.errors:
                logger.error(
                    "Emergency action partially failed",
                    kind=action.kind.value,
                    request_id=action.request_id,
                    errors=outcome.errors,
                )
            else:
                if action.on_success:
                    action.on_success()
                logger.info("Emergency action completed", kind=action.kind.value, request_id=action.request_id)
        except Exception as e:
            outcome.errors.append(f"{type(e).__name__}: {e}")
            logger.error("Emergency action failed", kind=action.kind.value, request_id=action.request_id, error=str(e))
        finally:
            self._cleanup(action)

        await self.feedback.emit(FeedbackKind.ERROR if outcome.errors else action.feedback, request_id=action.request_id)
        return outcome

    def _cleanup(self, action: CompositeAction) -> None:
        try:
            if action.cleanup:
                action.cleanup()
        except Exception as e:
            logger.error("Emergency action cleanup failed", kind=action.kind.value, error=str(e))
        self.sheet.snap_to(settings.SHEET_SNAP_INDEX_AFTER_ACTION)

    def _cancel_action(self, kind: HandlerKind, request_id: str, service_type: ServiceType) -> CompositeAction:
        return CompositeAction(
            kind=kind,
            request_id=request_id,
            writes=[
                lambda: self.request_store.set_status(request_id, EmergencyRequestStatus.CANCELLED),
                lambda: self.visit_store.cancel(request_id),
                lambda: self.lifecycle.transition(request_id, LifecycleState.CANCELLED),
            ],
            cleanup=lambda: self._stop(service_type),
            feedback=FeedbackKind.WARNING,
        )

    def _complete_action(self, kind: HandlerKind, request_id: str, service_type: ServiceType) -> CompositeAction:
        return CompositeAction(
            kind=kind,
            request_id=request_id,
            writes=[
                lambda: self.request_store.set_status(request_id, EmergencyRequestStatus.COMPLETED),
                lambda: self.visit_store.complete(request_id),
                lambda: self.lifecycle.advance(
                    request_id, LifecycleState.COMPLETED, LifecycleState.RATING_PENDING
                ),
            ],
            cleanup=lambda: self._stop(service_type),
            feedback=FeedbackKind.SUCCESS,
        )

    def _stop(self, service_type: ServiceType) -> None:
        if service_type == ServiceType.AMBULANCE:
            self.state.stop_ambulance_trip()
        else:
            self.state.stop_bed_booking()
        self.guard.release(service_type)
