"""
Profile Repositories

Read-only snapshot sources used when a request is initiated: privacy
preferences, medical profile and emergency contacts of a user.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models.profile import MedicalProfile, EmergencyContact, UserPreferences
from schemas.emergency import PreferencesRead, MedicalProfileRead, EmergencyContactRead

logger = logging.getLogger(__name__)


class PreferencesRepository:
    def __init__(self, session_factory, user_id: Optional[str]):
        self.session_factory = session_factory
        self.user_id = user_id

    async def get(self) -> PreferencesRead:
        """Preferences of the user; defaults (nothing shared) when none are stored."""
        if not self.user_id:
            return PreferencesRead()
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(UserPreferences).where(UserPreferences.user_id == self.user_id)
                )
                preferences = result.scalar_one_or_none()
                if preferences:
                    return PreferencesRead.model_validate(preferences)
                return PreferencesRead()
            except SQLAlchemyError as e:
                logger.exception(f"Database error fetching preferences for user {self.user_id}: {str(e)}")
                raise


class MedicalProfileRepository:
    def __init__(self, session_factory, user_id: Optional[str]):
        self.session_factory = session_factory
        self.user_id = user_id

    async def get(self) -> Optional[MedicalProfileRead]:
        if not self.user_id:
            return None
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(MedicalProfile).where(MedicalProfile.user_id == self.user_id)
                )
                profile = result.scalar_one_or_none()
                if profile:
                    return MedicalProfileRead.model_validate(profile)
                return None
            except SQLAlchemyError as e:
                logger.exception(f"Database error fetching medical profile for user {self.user_id}: {str(e)}")
                raise


class EmergencyContactRepository:
    def __init__(self, session_factory, user_id: Optional[str]):
        self.session_factory = session_factory
        self.user_id = user_id

    async def list(self) -> List[EmergencyContactRead]:
        if not self.user_id:
            return []
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(EmergencyContact)
                    .where(EmergencyContact.user_id == self.user_id)
                    .order_by(EmergencyContact.id)
                )
                return [EmergencyContactRead.model_validate(c) for c in result.scalars().all()]
            except SQLAlchemyError as e:
                logger.exception(f"Database error fetching emergency contacts for user {self.user_id}: {str(e)}")
                raise
