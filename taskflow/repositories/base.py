"""
Base repository with generic CRUD operations.

Repositories never commit. They flush so generated values and constraint
violations surface immediately, and leave the commit to whoever opened the
surrounding transaction (see taskflow.database.transaction).
"""
import uuid
from typing import TypeVar, Generic, Type, Optional, Any

from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import delete

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository with CRUD operations.
    Inherit and specify the model class.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, obj_in: dict) -> ModelType:
        """Create a new record."""
        db_obj = self.model(**obj_in)
        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)
        return db_obj

    async def get(self, id: uuid.UUID) -> Optional[ModelType]:
        """Get a record by ID."""
        return await self.session.get(self.model, id)

    async def get_by_field(self, field: str, value: Any) -> Optional[ModelType]:
        """Get a record by a specific field."""
        query = select(self.model).where(getattr(self.model, field) == value)
        result = await self.session.exec(query)
        return result.first()

    async def delete(self, id: uuid.UUID) -> int:
        """Delete a record. Returns the number of rows removed (0 or 1)."""
        query = delete(self.model).where(self.model.id == id)
        result = await self.session.execute(
            query.execution_options(synchronize_session=False)
        )
        return result.rowcount
