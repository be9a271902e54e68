"""
Concurrency guard: at most one active or pending request per service type.

Each service type moves through ``idle -> pending -> active -> idle``.
``try_begin`` checks and sets in one step with no await in between, so two
interleaved initiations on the same event loop cannot both get through.
Process-local; nothing here is persisted.
"""

from enum import Enum
from typing import Dict

from core.logging import get_logger
from schemas.emergency import ServiceType

logger = get_logger(__name__)


class GuardState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    ACTIVE = "active"


class ConcurrencyGuard:
    def __init__(self, emergency_state):
        self.emergency_state = emergency_state
        self._states: Dict[ServiceType, GuardState] = {t: GuardState.IDLE for t in ServiceType}

    def state(self, service_type) -> GuardState:
        return self._states[ServiceType(service_type)]

    def is_inflight(self, service_type) -> bool:
        return self.state(service_type) == GuardState.PENDING

    def can_start_request(self, service_type) -> bool:
        service_type = ServiceType(service_type)
        if self.is_inflight(service_type):
            return False
        return self.emergency_state.active_for(service_type) is None

    def try_begin(self, service_type) -> bool:
        service_type = ServiceType(service_type)
        if not self.can_start_request(service_type):
            logger.warning(
                "Request blocked by concurrency guard",
                service_type=service_type.value,
                state=self._states[service_type].value,
            )
            return False
        self._states[service_type] = GuardState.PENDING
        return True

    def fail(self, service_type) -> None:
        service_type = ServiceType(service_type)
        if self._states[service_type] == GuardState.PENDING:
            self._states[service_type] = GuardState.IDLE

    def activate(self, service_type) -> None:
        self._states[ServiceType(service_type)] = GuardState.ACTIVE

    def release(self, service_type) -> None:
        self._states[ServiceType(service_type)] = GuardState.IDLE
