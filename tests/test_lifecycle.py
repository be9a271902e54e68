import pytest

from schemas.emergency import EmergencyRequestStatus, LifecycleState, VisitCreate
from services.lifecycle import (
    LifecycleStateMachine,
    LifecycleTransitionError,
    is_forward,
    is_loosely_synchronized,
)
from services.local_storage import LocalStorage
from services.visit_store import VisitNotFoundError, VisitStore

S = LifecycleState


@pytest.fixture
async def visit_store(redis_client):
    store = VisitStore(None, LocalStorage(redis_client))
    await store.add(VisitCreate(id="er_1", request_id="er_1", lifecycle_state=S.INITIATED))
    return store


@pytest.fixture
def lifecycle(visit_store):
    return LifecycleStateMachine(visit_store)


@pytest.mark.parametrize("current,target", [
    (None, S.CONFIRMED),
    (S.INITIATED, S.CONFIRMED),
    (S.CONFIRMED, S.MONITORING),
    (S.MONITORING, S.ARRIVED),
    (S.ARRIVED, S.OCCUPIED),
    (S.OCCUPIED, S.COMPLETED),
    (S.COMPLETED, S.RATING_PENDING),
    (S.RATED, S.CLEARED),
    (S.INITIATED, S.MONITORING),
    (S.MONITORING, S.CANCELLED),
])
def test_forward_moves(current, target):
    assert is_forward(current, target)


@pytest.mark.parametrize("current,target", [
    (S.MONITORING, S.CONFIRMED),
    (S.COMPLETED, S.ARRIVED),
    (S.RATING_PENDING, S.COMPLETED),
    (S.CANCELLED, S.CONFIRMED),
    (S.COMPLETED, S.CANCELLED),
    (S.CLEARED, S.CANCELLED),
])
def test_backward_or_post_terminal_moves(current, target):
    assert not is_forward(current, target)


async def test_transition_writes_state_and_timestamp(lifecycle, visit_store):
    visit = await lifecycle.transition("er_1", S.CONFIRMED)

    assert visit.lifecycle_state == S.CONFIRMED
    assert visit.lifecycle_updated_at is not None
    assert (await visit_store.get("er_1")).lifecycle_state == S.CONFIRMED


async def test_advance_applies_targets_in_order(lifecycle):
    visit = await lifecycle.advance("er_1", S.CONFIRMED, S.MONITORING)
    assert visit.lifecycle_state == S.MONITORING


async def test_backward_transition_is_rejected(lifecycle, visit_store):
    await lifecycle.advance("er_1", S.CONFIRMED, S.MONITORING)

    with pytest.raises(LifecycleTransitionError):
        await lifecycle.transition("er_1", S.CONFIRMED)
    assert (await visit_store.get("er_1")).lifecycle_state == S.MONITORING


async def test_cancelled_is_terminal(lifecycle):
    await lifecycle.transition("er_1", S.CANCELLED)
    with pytest.raises(LifecycleTransitionError):
        await lifecycle.transition("er_1", S.MONITORING)


async def test_transition_of_unknown_visit(lifecycle):
    with pytest.raises(VisitNotFoundError):
        await lifecycle.transition("missing", S.CONFIRMED)


async def test_transition_leaves_visit_status_alone(lifecycle, visit_store):
    before = await visit_store.get("er_1")
    after = await lifecycle.transition("er_1", S.CONFIRMED)
    assert after.status == before.status


@pytest.mark.parametrize("status,state,expected", [
    (EmergencyRequestStatus.IN_PROGRESS, S.INITIATED, True),
    (EmergencyRequestStatus.ACCEPTED, S.MONITORING, True),
    (EmergencyRequestStatus.ACCEPTED, S.INITIATED, False),
    (EmergencyRequestStatus.ARRIVED, S.OCCUPIED, True),
    (EmergencyRequestStatus.COMPLETED, S.RATING_PENDING, True),
    (EmergencyRequestStatus.CANCELLED, S.CANCELLED, True),
    (EmergencyRequestStatus.CANCELLED, S.MONITORING, False),
    (EmergencyRequestStatus.IN_PROGRESS, None, False),
])
def test_loose_synchronization(status, state, expected):
    assert is_loosely_synchronized(status, state) is expected
