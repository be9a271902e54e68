"""
Base repository shared by the emergency tables.
"""

from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Thin CRUD helpers bound to one session; callers own the session lifetime."""

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def get(self, id: Any) -> Optional[ModelType]:
        result = await self.db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def create(self, values: Dict[str, Any]) -> ModelType:
        db_obj = self.model(**values)
        self.db.add(db_obj)
        await self.db.commit()
        await self.db.refresh(db_obj)
        return db_obj

    async def update_where(
        self,
        field: str,
        value: Any,
        values: Dict[str, Any],
        filters: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Update rows matching ``field == value`` and ``filters``; returns the affected row count."""
        conditions = [getattr(self.model, field) == value]
        for column, expected in (filters or {}).items():
            conditions.append(getattr(self.model, column) == expected)
        query = (
            update(self.model)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(query)
        await self.db.commit()
        return result.rowcount or 0
