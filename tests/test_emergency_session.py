import pytest

from models.hospital import Hospital
from models.profile import MedicalProfile, UserPreferences
from schemas.emergency import (
    AcceptanceSignal,
    EmergencyRequestStatus,
    RequestIntent,
    ServiceType,
)
from services.concurrency_guard import GuardState
from services.emergency_session import EmergencySession


@pytest.fixture
async def seeded(file_session_factory, no_push):
    async with file_session_factory() as session:
        session.add(Hospital(id="H1", name="St. Mary Hospital", address="1 Main Street", available_beds=4))
        session.add(UserPreferences(user_id="u1", privacy_share_medical_profile=True))
        session.add(MedicalProfile(user_id="u1", blood_type="B+", allergies=["latex"]))
        await session.commit()
    return file_session_factory


async def test_flow_against_database(seeded, redis_client):
    session = EmergencySession(seeded, redis_client, "u1")

    request = await session.orchestrator.handle_request_initiated(
        RequestIntent(service_type="ambulance", hospital_id="H1", request_id="er_1")
    )
    assert request.shared_data_snapshot.medical_profile["blood_type"] == "B+"

    await session.orchestrator.handle_request_complete(
        AcceptanceSignal(request_id="er_1", service_type="ambulance", hospital_id="H1", responder_name="Sam")
    )
    active = await session.request_store.get_active(ServiceType.AMBULANCE)
    assert active.status == EmergencyRequestStatus.ACCEPTED
    assert active.responder_name == "Sam"


async def test_restore_rebuilds_active_trip(seeded, redis_client):
    first = EmergencySession(seeded, redis_client, "u1")
    await first.orchestrator.handle_request_initiated(
        RequestIntent(service_type="ambulance", hospital_id="H1", request_id="er_1", ambulance_id="A-9")
    )
    await first.orchestrator.handle_request_complete(
        AcceptanceSignal(request_id="er_1", service_type="ambulance", hospital_id="H1")
    )
    await first.handlers.on_mark_ambulance_arrived()

    restarted = EmergencySession(seeded, redis_client, "u1")
    await restarted.restore()

    trip = restarted.state.active_ambulance_trip
    assert trip.request_id == "er_1"
    assert trip.ambulance_id == "A-9"
    assert trip.arrived is True
    assert restarted.guard.state(ServiceType.AMBULANCE) == GuardState.ACTIVE


async def test_restore_keeps_pending_request_blocking(seeded, redis_client):
    first = EmergencySession(seeded, redis_client, "u1")
    await first.orchestrator.handle_request_initiated(
        RequestIntent(service_type="bed", hospital_id="H1", request_id="B1")
    )

    restarted = EmergencySession(seeded, redis_client, "u1")
    await restarted.restore()

    assert restarted.guard.state(ServiceType.BED) == GuardState.PENDING
    assert restarted.state.active_bed_booking is None
    assert await restarted.orchestrator.handle_request_initiated(
        RequestIntent(service_type="bed", hospital_id="H1", request_id="B2")
    ) is None
