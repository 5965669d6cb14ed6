"""
CRUD (Create, Read, Update, Delete) utility functions
"""
from typing import TypeVar, Generic, Type, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from momento.core.async_database import Base

ModelType = TypeVar("ModelType", bound=Base)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, UpdateSchemaType]):
    """
    Base class for CRUD operations
    """

    def __init__(self, model: Type[ModelType]):
        """
        Initialize CRUD with a SQLAlchemy model
        """
        self.model = model

    async def create(
        self,
        db: AsyncSession,
        **values: Any
    ) -> ModelType:
        """
        Create a new record
        """
        db_obj = self.model(**values)
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        db_obj: ModelType,
        obj_in: UpdateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """
        Update a record
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            setattr(db_obj, field, value)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj
