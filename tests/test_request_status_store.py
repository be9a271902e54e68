import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from repositories.emergency_request import EmergencyRequestRepository
from schemas.emergency import EmergencyRequestCreate, EmergencyRequestStatus, ServiceType
from services.feedback import FeedbackService
from services.local_storage import LocalStorage
from services.notification_dispatcher import NotificationDispatcher
from services.realtime import RealtimeHub
from services.request_status_store import RequestNotFoundError, RequestStatusStore
from tests.conftest import FakeNotifications


def broken_session_factory():
    raise ConnectionError("database unreachable")


@pytest.fixture
def notifications():
    return FakeNotifications()


@pytest.fixture
def pushes():
    return []


@pytest.fixture
def store(session_factory, redis_client, notifications, pushes):
    realtime = RealtimeHub(redis_client)
    dispatcher = NotificationDispatcher(
        notifications,
        FeedbackService(realtime, "u1"),
        "u1",
        push_sender=lambda title, message, data: pushes.append(data),
    )
    return RequestStatusStore(
        session_factory, LocalStorage(redis_client, "u1"), "u1", dispatcher, realtime
    )


def ambulance_request(request_id="er_1", **overrides):
    values = dict(
        id=request_id,
        request_id=request_id,
        service_type=ServiceType.AMBULANCE,
        hospital_id="H1",
        hospital_name="St. Mary Hospital",
        ambulance_type="ALS",
    )
    values.update(overrides)
    return EmergencyRequestCreate(**values)


async def test_create_and_list_remote(store):
    created = await store.create(ambulance_request())

    assert created.id == "er_1"
    assert created.user_id == "u1"
    assert created.status == EmergencyRequestStatus.IN_PROGRESS

    items = await store.list()
    assert [r.id for r in items] == ["er_1"]


async def test_create_generates_id_when_missing(store):
    created = await store.create(ambulance_request(request_id=None))
    assert created.id.startswith("er_")
    assert created.request_id == created.id


async def test_successful_list_overwrites_cache(store):
    await store.local.write("emergency_requests", [{"id": "stale"}])
    await store.create(ambulance_request())

    await store.list()

    cached = await store.local.read("emergency_requests")
    assert [r["id"] for r in cached] == ["er_1"]


async def test_list_falls_back_to_cache_on_remote_error(store):
    await store.create(ambulance_request())
    await store.list()

    store.session_factory = broken_session_factory
    items = await store.list()

    assert [r.id for r in items] == ["er_1"]


async def test_list_excludes_terminal_requests(store):
    await store.create(ambulance_request("er_1"))
    await store.create(ambulance_request("er_2", service_type=ServiceType.BED))
    await store.set_status("er_1", EmergencyRequestStatus.CANCELLED)

    assert [r.id for r in await store.list()] == ["er_2"]


async def test_create_error_propagates(store):
    await store.create(ambulance_request())
    with pytest.raises(IntegrityError):
        await store.create(ambulance_request())


async def test_update_retries_by_request_id(store, session_factory):
    async with session_factory() as session:
        await EmergencyRequestRepository(session).create_request({
            "id": "row_7",
            "request_id": "er_7",
            "user_id": "u1",
            "service_type": "bed",
            "hospital_id": "H1",
            "status": "in_progress",
        })

    updated = await store.update("er_7", {"bed_number": "12B"})

    assert updated.id == "row_7"
    assert updated.bed_number == "12B"


async def test_update_unknown_request_raises(store):
    with pytest.raises(RequestNotFoundError):
        await store.update("nope", {"bed_number": "1"})


async def test_set_status_stamps_terminal_timestamps(store):
    await store.create(ambulance_request())

    completed = await store.set_status("er_1", EmergencyRequestStatus.COMPLETED)

    assert completed.status == EmergencyRequestStatus.COMPLETED
    assert completed.completed_at is not None
    assert completed.cancelled_at is None


async def test_set_status_dispatches_notification(store, notifications, pushes):
    await store.create(ambulance_request())

    await store.set_status("er_1", EmergencyRequestStatus.ACCEPTED)

    assert "evt_er_1_accepted" in notifications.saved
    assert pushes and pushes[0]["type"] == "accepted"


async def test_notification_failure_does_not_fail_set_status(store, notifications):
    await store.create(ambulance_request())
    notifications.fail = True

    record = await store.set_status("er_1", EmergencyRequestStatus.ARRIVED)

    assert record.status == EmergencyRequestStatus.ARRIVED


async def test_updates_are_published_on_request_channel(store, redis_client):
    await store.create(ambulance_request())
    await store.set_status("er_1", EmergencyRequestStatus.ACCEPTED)

    messages = redis_client.messages("emergency_requests:er_1")
    assert messages[-1]["status"] == "accepted"


async def test_get_active_filters_by_service_type(store):
    await store.create(ambulance_request("er_1"))
    await store.create(ambulance_request("er_2", service_type=ServiceType.BED))

    assert (await store.get_active(ServiceType.BED)).id == "er_2"
    assert (await store.get_active("ambulance")).id == "er_1"


async def test_get_active_without_requests(store):
    assert await store.get_active() is None


async def test_anonymous_requests_stay_local(session_factory, redis_client):
    store = RequestStatusStore(session_factory, LocalStorage(redis_client))

    await store.create(ambulance_request())
    await store.set_status("er_1", EmergencyRequestStatus.ACCEPTED)

    async with session_factory() as session:
        assert await EmergencyRequestRepository(session).get_by_any_id("er_1") is None
    active = await store.get_active()
    assert active.id == "er_1"
    assert active.status == EmergencyRequestStatus.ACCEPTED


async def test_subscribe_to_request_receives_updates(store):
    received = []
    subscription = await store.subscribe_to_request("er_1", received.append)
    await store.create(ambulance_request())
    await store.set_status("er_1", EmergencyRequestStatus.ACCEPTED)

    for _ in range(5):
        if received:
            break
        await asyncio.sleep(0)
    await subscription.close()

    assert received[-1]["status"] == "accepted"


async def test_plain_update_does_not_notify(store, notifications, pushes):
    await store.create(ambulance_request())

    record = await store.update("er_1", {"status": EmergencyRequestStatus.CANCELLED})

    assert record.status == EmergencyRequestStatus.CANCELLED
    assert notifications.saved == {}
    assert pushes == []


async def test_set_status_writes_details_in_the_same_update(store, notifications):
    await store.create(ambulance_request())

    record = await store.set_status("er_1", EmergencyRequestStatus.ACCEPTED, {"responder_name": "Sam Medic"})

    assert record.responder_name == "Sam Medic"
    assert notifications.saved["evt_er_1_accepted"].message == "Sam Medic has accepted your request."


async def test_get_finds_terminal_requests(store):
    await store.create(ambulance_request())
    await store.set_status("er_1", EmergencyRequestStatus.COMPLETED)

    assert (await store.get("er_1")).status == EmergencyRequestStatus.COMPLETED
    assert await store.get("missing") is None


async def test_requests_are_scoped_to_their_owner(store, session_factory, redis_client):
    await store.create(ambulance_request())
    other = RequestStatusStore(session_factory, LocalStorage(redis_client, "u2"), "u2")

    assert await other.get("er_1") is None
    with pytest.raises(RequestNotFoundError):
        await other.update("er_1", {"responder_name": "Mallory"})
    assert (await store.get("er_1")).responder_name is None


async def test_local_get_by_request_id(redis_client):
    local = RequestStatusStore(None, LocalStorage(redis_client))
    await local.create(ambulance_request("er_9"))

    assert (await local.get("er_9")).hospital_id == "H1"
    assert await local.get("er_10") is None
