import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from models.hospital import Hospital
from repositories.base import BaseRepository
from schemas.emergency import HospitalRead

logger = logging.getLogger(__name__)


class HospitalRepository:
    """Read access to the hospitals directory."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def find_by_id(self, hospital_id: Optional[str]) -> Optional[HospitalRead]:
        if not hospital_id:
            return None
        async with self.session_factory() as session:
            try:
                hospital = await BaseRepository(Hospital, session).get(str(hospital_id))
                if hospital:
                    return HospitalRead.model_validate(hospital)
                return None
            except SQLAlchemyError as e:
                logger.exception(f"Database error fetching hospital {hospital_id}: {str(e)}")
                raise
