"""
Visit lifecycle state machine.

Forward-only progression of a visit's ``lifecycle_state``:

    initiated -> confirmed -> monitoring -> arrived | occupied
              -> completed -> rating_pending -> rated -> cleared

``cancelled`` can be entered from any state before ``completed`` and ends the
lifecycle. Transitions only touch the visit; the request status is written
separately by its own call sites.
"""

from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from core.logging import get_logger
from schemas.emergency import EmergencyRequestStatus, LifecycleState, VisitRead
from services.visit_store import VisitNotFoundError

logger = get_logger(__name__)


LIFECYCLE_RANK: Dict[LifecycleState, int] = {
    LifecycleState.INITIATED: 0,
    LifecycleState.CONFIRMED: 1,
    LifecycleState.MONITORING: 2,
    LifecycleState.ARRIVED: 3,
    LifecycleState.OCCUPIED: 3,
    LifecycleState.COMPLETED: 4,
    LifecycleState.RATING_PENDING: 5,
    LifecycleState.RATED: 6,
    LifecycleState.CLEARED: 7,
}

TERMINAL_LIFECYCLE_STATES = frozenset({LifecycleState.CANCELLED, LifecycleState.CLEARED})

# Lifecycle states consistent with each request status
SYNCHRONIZED_STATES: Dict[EmergencyRequestStatus, FrozenSet[LifecycleState]] = {
    EmergencyRequestStatus.IN_PROGRESS: frozenset({LifecycleState.INITIATED}),
    EmergencyRequestStatus.ACCEPTED: frozenset({LifecycleState.CONFIRMED, LifecycleState.MONITORING}),
    EmergencyRequestStatus.ARRIVED: frozenset({LifecycleState.ARRIVED, LifecycleState.OCCUPIED}),
    EmergencyRequestStatus.COMPLETED: frozenset({
        LifecycleState.COMPLETED,
        LifecycleState.RATING_PENDING,
        LifecycleState.RATED,
        LifecycleState.CLEARED,
    }),
    EmergencyRequestStatus.CANCELLED: frozenset({LifecycleState.CANCELLED}),
}


class LifecycleTransitionError(ValueError):
    def __init__(self, visit_id: str, current: Optional[LifecycleState], target: LifecycleState):
        self.visit_id = visit_id
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move visit {visit_id} from {getattr(current, 'value', current)} to {target.value}"
        )


def is_forward(current: Optional[LifecycleState], target: LifecycleState) -> bool:
    """True when ``target`` does not move the lifecycle backwards from ``current``."""
    target = LifecycleState(target)
    if current is None:
        return True
    current = LifecycleState(current)
    if current in TERMINAL_LIFECYCLE_STATES:
        return current == target
    if target == LifecycleState.CANCELLED:
        return LIFECYCLE_RANK[current] < LIFECYCLE_RANK[LifecycleState.COMPLETED]
    return LIFECYCLE_RANK[target] >= LIFECYCLE_RANK[current]


def is_loosely_synchronized(request_status, lifecycle_state) -> bool:
    if lifecycle_state is None:
        return False
    allowed = SYNCHRONIZED_STATES.get(EmergencyRequestStatus(request_status), frozenset())
    return LifecycleState(lifecycle_state) in allowed


class LifecycleStateMachine:
    def __init__(self, visit_store):
        self.visit_store = visit_store

    async def transition(self, visit_id: str, target: LifecycleState) -> VisitRead:
        """
        Move a visit to ``target``.

        Raises:
            VisitNotFoundError: if the visit does not exist
            LifecycleTransitionError: if the move would go backwards
        """
        target = LifecycleState(target)
        visit = await self.visit_store.get(visit_id)
        if visit is None:
            raise VisitNotFoundError(visit_id)

        if not is_forward(visit.lifecycle_state, target):
            raise LifecycleTransitionError(visit_id, visit.lifecycle_state, target)

        updated = await self.visit_store.update(
            visit_id,
            {"lifecycle_state": target, "lifecycle_updated_at": datetime.now(timezone.utc)},
        )
        logger.info(
            "Lifecycle transition",
            visit_id=visit_id,
            from_state=getattr(visit.lifecycle_state, "value", None),
            to_state=target.value,
        )
        return updated

    async def advance(self, visit_id: str, *targets: LifecycleState) -> Optional[VisitRead]:
        """Apply several transitions in order, each awaited before the next."""
        visit = None
        for target in targets:
            visit = await self.transition(visit_id, target)
        return visit
