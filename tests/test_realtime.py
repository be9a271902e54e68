import asyncio

from services.feedback import FeedbackKind, FeedbackService
from services.local_storage import LocalStorage
from services.realtime import RealtimeHub


async def wait_for(predicate, attempts=10):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)


async def test_subscription_delivers_payloads_until_closed(redis_client):
    hub = RealtimeHub(redis_client)
    received = []

    subscription = await hub.subscribe("responder_location:er_1", received.append)
    await hub.publish("responder_location:er_1", {"lat": 6.5, "lng": 3.4})
    await wait_for(lambda: received)
    await subscription.close()
    await hub.publish("responder_location:er_1", {"lat": 0, "lng": 0})
    await asyncio.sleep(0)

    assert received == [{"lat": 6.5, "lng": 3.4}]


async def test_async_callbacks_are_awaited(redis_client):
    hub = RealtimeHub(redis_client)
    received = []

    async def on_beds(payload):
        received.append(payload["available_beds"])

    subscription = await hub.subscribe("hospital_beds:H1", on_beds)
    await hub.publish("hospital_beds:H1", {"available_beds": 3})
    await wait_for(lambda: received)
    await subscription.close()

    assert received == [3]


async def test_failing_callback_keeps_subscription_alive(redis_client):
    hub = RealtimeHub(redis_client)
    received = []

    def flaky(payload):
        if payload["n"] == 1:
            raise ValueError("bad payload")
        received.append(payload["n"])

    subscription = await hub.subscribe("emergency_requests:er_1", flaky)
    await hub.publish("emergency_requests:er_1", {"n": 1})
    await hub.publish("emergency_requests:er_1", {"n": 2})
    await wait_for(lambda: received)
    await subscription.close()

    assert received == [2]


async def test_feedback_is_published_per_identity(redis_client):
    await FeedbackService(RealtimeHub(redis_client), "u1").emit(FeedbackKind.WARNING, request_id="er_1")

    assert redis_client.messages("feedback:u1") == [{"kind": "warning", "request_id": "er_1"}]


async def test_local_storage_namespaces_by_identity(redis_client):
    mine = LocalStorage(redis_client, "u1")
    anonymous = LocalStorage(redis_client)

    await mine.write("visits", [{"id": "er_1"}])

    assert await mine.read("visits") == [{"id": "er_1"}]
    assert await anonymous.read("visits", []) == []
    assert "@ivisit_u1_visits" in redis_client.store
    assert await mine.query("visits", lambda v: v["id"] == "er_2") == []
