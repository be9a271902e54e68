"""
Emergency API endpoints.

Drives the emergency request lifecycle: request initiation and acceptance,
trip/booking actions and the bottom-sheet snap state.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_emergency_session
from core.logging import get_logger
from schemas.emergency import AcceptanceDetails, AcceptanceSignal, RequestIntent, ServiceType
from schemas.responses import StandardSuccessResponse
from schemas.sheet import SheetGeometry, SheetIndexUpdate, SheetModeUpdate
from services.emergency_handlers import ActionOutcome
from services.emergency_session import EmergencySession
from services.feedback import FeedbackKind
from services.lifecycle import is_loosely_synchronized

logger = get_logger(__name__)

router = APIRouter()


def _outcome_response(outcome: ActionOutcome) -> StandardSuccessResponse:
    if not outcome.executed:
        message = "Nothing to do"
    elif outcome.errors:
        message = "Action attempted with errors"
    else:
        message = "Action completed"
    return StandardSuccessResponse(
        message=message,
        data={
            "kind": outcome.kind.value,
            "executed": outcome.executed,
            "request_id": outcome.request_id,
            "errors": outcome.errors,
        },
    )


@router.get("/requests", response_model=StandardSuccessResponse)
async def list_requests(session: EmergencySession = Depends(get_emergency_session)):
    """List the caller's requests that are still in flight."""
    requests = await session.request_store.list()
    return StandardSuccessResponse(
        message="Emergency requests retrieved",
        data=[r.model_dump(mode="json") for r in requests],
    )


@router.get("/requests/active", response_model=StandardSuccessResponse)
async def get_active_request(
    service_type: Optional[ServiceType] = None,
    session: EmergencySession = Depends(get_emergency_session),
):
    """Active request with its visit and whether the two agree."""
    request = await session.request_store.get_active(service_type)
    if not request:
        return StandardSuccessResponse(message="No active emergency request", data=None)

    visit = await session.visit_store.get(request.request_id or request.id)
    lifecycle_state = visit.lifecycle_state if visit else None
    return StandardSuccessResponse(
        message="Active emergency request retrieved",
        data={
            "request": request.model_dump(mode="json"),
            "visit": visit.model_dump(mode="json") if visit else None,
            "lifecycle_in_sync": is_loosely_synchronized(request.status, lifecycle_state),
        },
    )


@router.post("/requests", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def initiate_request(
    intent: RequestIntent,
    session: EmergencySession = Depends(get_emergency_session),
):
    """Start a new ambulance request or bed booking."""
    request = await session.orchestrator.handle_request_initiated(intent)
    if request is None:
        return StandardSuccessResponse(success=False, message="Emergency request was not started")
    return StandardSuccessResponse(
        message="Emergency request initiated",
        data=request.model_dump(mode="json"),
    )


@router.post("/requests/{request_id}/accept", response_model=StandardSuccessResponse)
async def accept_request(
    request_id: str,
    details: AcceptanceDetails,
    session: EmergencySession = Depends(get_emergency_session),
):
    """Record dispatch/ward acceptance of a pending request."""
    pending = await session.request_store.get(request_id)
    if pending is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Emergency request not found")

    values = details.model_dump(exclude_none=True)
    values["service_type"] = pending.service_type.value
    values.setdefault("hospital_id", pending.hospital_id)

    request = await session.orchestrator.handle_request_complete(
        AcceptanceSignal(request_id=request_id, **values)
    )
    if request is None:
        return StandardSuccessResponse(success=False, message="Emergency request was not accepted")
    return StandardSuccessResponse(
        message="Emergency request accepted",
        data=request.model_dump(mode="json"),
    )


@router.post("/trip/cancel", response_model=StandardSuccessResponse)
async def cancel_trip(session: EmergencySession = Depends(get_emergency_session)):
    return _outcome_response(await session.handlers.on_cancel_ambulance_trip())


@router.post("/trip/complete", response_model=StandardSuccessResponse)
async def complete_trip(session: EmergencySession = Depends(get_emergency_session)):
    return _outcome_response(await session.handlers.on_complete_ambulance_trip())


@router.post("/trip/arrived", response_model=StandardSuccessResponse)
async def mark_trip_arrived(session: EmergencySession = Depends(get_emergency_session)):
    return _outcome_response(await session.handlers.on_mark_ambulance_arrived())


@router.post("/booking/cancel", response_model=StandardSuccessResponse)
async def cancel_booking(session: EmergencySession = Depends(get_emergency_session)):
    return _outcome_response(await session.handlers.on_cancel_bed_booking())


@router.post("/booking/complete", response_model=StandardSuccessResponse)
async def complete_booking(session: EmergencySession = Depends(get_emergency_session)):
    return _outcome_response(await session.handlers.on_complete_bed_booking())


@router.post("/booking/occupied", response_model=StandardSuccessResponse)
async def mark_booking_occupied(session: EmergencySession = Depends(get_emergency_session)):
    return _outcome_response(await session.handlers.on_mark_bed_occupied())


@router.get("/sheet", response_model=StandardSuccessResponse)
async def get_sheet(session: EmergencySession = Depends(get_emergency_session)):
    return StandardSuccessResponse(
        message="Sheet state retrieved",
        data=session.sheet.snapshot().model_dump(mode="json"),
    )


@router.put("/sheet/mode", response_model=StandardSuccessResponse)
async def set_sheet_mode(
    update: SheetModeUpdate,
    session: EmergencySession = Depends(get_emergency_session),
):
    state = session.sheet.set_mode(update.mode, update.request_phase)
    return StandardSuccessResponse(message="Sheet mode updated", data=state.model_dump(mode="json"))


@router.put("/sheet/index", response_model=StandardSuccessResponse)
async def set_sheet_index(
    update: SheetIndexUpdate,
    session: EmergencySession = Depends(get_emergency_session),
):
    """Report a snap index change from the device."""
    change = session.sheet.handle_sheet_change(update.index)
    if change.haptic:
        await session.feedback.emit(FeedbackKind(change.haptic), snap_index=change.index)
    return StandardSuccessResponse(message="Sheet index updated", data=change.model_dump(mode="json"))


@router.put("/sheet/geometry", response_model=StandardSuccessResponse)
async def set_sheet_geometry(
    geometry: SheetGeometry,
    session: EmergencySession = Depends(get_emergency_session),
):
    session.sheet.update_geometry(geometry)
    return StandardSuccessResponse(
        message="Sheet geometry updated",
        data=session.sheet.snapshot().model_dump(mode="json"),
    )
