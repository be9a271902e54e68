import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("ENABLE_FILE_LOGGING", "false")
os.environ.setdefault("ENABLE_REQUEST_LOGGING", "false")

import asyncio
import json
from collections import defaultdict
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers the tables on Base.metadata
from core.database import Base, build_session_factory
from schemas.emergency import (
    EmergencyContactRead,
    HospitalRead,
    MedicalProfileRead,
    PatientSnapshot,
    PreferencesRead,
)
from schemas.notification import NotificationCreate, NotificationRead
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


class FakePubSub:
    def __init__(self, broker: "FakeRedis"):
        self.broker = broker
        self.channels = set()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels):
        for channel in channels:
            self.channels.add(channel)
            self.broker.subscribers[channel].append(self)
            self.queue.put_nowait({"type": "subscribe", "channel": channel, "data": 1})

    async def unsubscribe(self, *channels):
        for channel in channels or tuple(self.channels):
            self.channels.discard(channel)
            if self in self.broker.subscribers[channel]:
                self.broker.subscribers[channel].remove(self)

    async def listen(self):
        while True:
            yield await self.queue.get()

    async def aclose(self):
        self.closed = True


class FakeRedis:
    """In-memory stand-in for the subset of redis.asyncio.Redis the app uses."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.published: List[tuple] = []
        self.subscribers = defaultdict(list)

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value):
        self.store[key] = value
        return True

    async def publish(self, channel, message):
        self.published.append((channel, message))
        for pubsub in self.subscribers[channel]:
            pubsub.queue.put_nowait({"type": "message", "channel": channel, "data": message})
        return len(self.subscribers[channel])

    def pubsub(self):
        return FakePubSub(self)

    def messages(self, channel: str) -> List[dict]:
        return [json.loads(message) for c, message in self.published if c == channel]


class FakeHospitals:
    def __init__(self, *hospitals: HospitalRead):
        self.hospitals = {h.id: h for h in hospitals}

    async def find_by_id(self, hospital_id):
        if not hospital_id:
            return None
        return self.hospitals.get(str(hospital_id))


class FakePreferences:
    def __init__(self, **flags):
        self.preferences = PreferencesRead(**flags)

    async def get(self):
        return self.preferences


class FakeMedicalProfiles:
    def __init__(self, profile: Optional[MedicalProfileRead] = None):
        self.profile = profile

    async def get(self):
        return self.profile


class FakeEmergencyContacts:
    def __init__(self, contacts: Optional[List[EmergencyContactRead]] = None):
        self.contacts = contacts or []

    async def list(self):
        return self.contacts


class FakeNotifications:
    def __init__(self):
        self.saved: Dict[str, NotificationRead] = {}
        self.fail = False

    async def upsert(self, notification: NotificationCreate) -> NotificationRead:
        if self.fail:
            raise RuntimeError("notification store unavailable")
        record = NotificationRead(**notification.model_dump())
        self.saved[record.id] = record
        return record


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def file_session_factory(tmp_path):
    """One connection per session, for flows whose writes run concurrently."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'emergency.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def no_push(monkeypatch):
    from celery_app import celery_app

    sent = []
    monkeypatch.setattr(celery_app, "send_task", lambda name, *args, **kwargs: sent.append((name, kwargs)))
    return sent


@pytest.fixture
def hospital():
    return HospitalRead(
        id="H1",
        name="St. Mary Hospital",
        image="https://example.com/h1.png",
        address="1 Main Street",
        phone="+15550100",
        specialties=["Cardiology", "General Care"],
        available_beds=12,
    )


def build_flow(
    redis_client: FakeRedis,
    hospitals: FakeHospitals,
    user_id: Optional[str] = None,
    session_factory=None,
    preferences: Optional[FakePreferences] = None,
    medical_profiles: Optional[FakeMedicalProfiles] = None,
    emergency_contacts: Optional[FakeEmergencyContacts] = None,
    patient: Optional[PatientSnapshot] = None,
) -> SimpleNamespace:
    """Wire the emergency flow the way EmergencySession does, with fakes at the edges."""
    flow = SimpleNamespace()
    flow.redis = redis_client
    flow.pushes = []
    flow.local = LocalStorage(redis_client, user_id)
    flow.realtime = RealtimeHub(redis_client)
    flow.feedback = FeedbackService(flow.realtime, user_id)
    flow.notifications = FakeNotifications()
    flow.dispatcher = NotificationDispatcher(
        flow.notifications,
        flow.feedback,
        user_id,
        push_sender=lambda title, message, data: flow.pushes.append((title, message, data)),
    )
    flow.request_store = RequestStatusStore(
        session_factory, flow.local, user_id, flow.dispatcher, flow.realtime
    )
    flow.visit_store = VisitStore(session_factory, flow.local, user_id)
    flow.lifecycle = LifecycleStateMachine(flow.visit_store)
    flow.state = EmergencyState()
    flow.guard = ConcurrencyGuard(flow.state)
    flow.sheet = SheetSnapController()
    flow.hospitals = hospitals
    flow.preferences = preferences or FakePreferences()
    flow.medical_profiles = medical_profiles or FakeMedicalProfiles()
    flow.emergency_contacts = emergency_contacts or FakeEmergencyContacts()
    flow.orchestrator = RequestOrchestrator(
        request_store=flow.request_store,
        visit_store=flow.visit_store,
        lifecycle=flow.lifecycle,
        guard=flow.guard,
        state=flow.state,
        hospitals=hospitals,
        preferences=flow.preferences,
        medical_profiles=flow.medical_profiles,
        emergency_contacts=flow.emergency_contacts,
        patient=patient,
        user_id=user_id,
    )
    flow.handlers = EmergencyHandlers(
        state=flow.state,
        request_store=flow.request_store,
        visit_store=flow.visit_store,
        lifecycle=flow.lifecycle,
        guard=flow.guard,
        dispatcher=flow.dispatcher,
        sheet=flow.sheet,
        feedback=flow.feedback,
        user_id=user_id,
    )
    return flow


@pytest.fixture
def flow(redis_client, hospital):
    """Anonymous, local-only flow backed by the fake redis."""
    return build_flow(
        redis_client,
        FakeHospitals(hospital),
        patient=PatientSnapshot(full_name="Ada Obi", phone="+15550123", email="ada@example.com"),
    )


async def stored_requests(flow) -> List[dict]:
    """Raw request records in local storage, terminal ones included."""
    return await flow.local.read("emergency_requests", [])


async def stored_visits(flow) -> List[dict]:
    return await flow.local.read("visits", [])
