"""
Dependency injection utilities for API endpoints.
"""

import asyncio
from typing import Dict, Optional

from fastapi import Depends, Header, Request

from core.logging import get_logger
from services.emergency_session import EmergencySession

logger = get_logger(__name__)


class SessionRegistry:
    """One in-memory EmergencySession per identity."""

    def __init__(self, session_factory, redis_client):
        self.session_factory = session_factory
        self.redis_client = redis_client
        self._sessions: Dict[Optional[str], EmergencySession] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: Optional[str]) -> EmergencySession:
        session = self._sessions.get(user_id)
        if session:
            return session

        async with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                session = EmergencySession(self.session_factory, self.redis_client, user_id)
                await session.restore()
                self._sessions[user_id] = session
                logger.info("Emergency session created", user_id=user_id)
        return session

    def clear(self) -> None:
        self._sessions.clear()


def get_registry(request: Request) -> SessionRegistry:
    """Get the session registry stored on the application."""
    return request.app.state.sessions


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Identity of the caller; no header means an anonymous local-only session."""
    return x_user_id or None


async def get_emergency_session(
    user_id: Optional[str] = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
) -> EmergencySession:
    """Get the emergency session of the calling identity."""
    return await registry.get(user_id)
