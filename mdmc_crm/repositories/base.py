"""
Base repository with generic CRUD operations.
"""
import uuid
from typing import TypeVar, Generic, Type, Optional, List, Any
from datetime import datetime

from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import func

from mdmc_crm.core.pagination import create_paginated_response

ModelType = TypeVar("ModelType", bound=SQLModel)


def escape_like(value: str, escape: str = "!") -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    for char in (escape, "%", "_"):
        value = value.replace(char, escape + char)
    return value


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
        return await self.save(db_obj)

    async def save(self, db_obj: ModelType) -> ModelType:
        """
        Persist a new or modified record in a single commit.
        Derived fields are recomputed first when the model defines them.
        """
        if hasattr(db_obj, 'apply_derived_fields'):
            db_obj.apply_derived_fields()
        if hasattr(db_obj, 'updated_at'):
            db_obj.updated_at = datetime.utcnow()

        self.session.add(db_obj)
        await self.session.commit()
        await self.session.refresh(db_obj)
        return db_obj

    async def get(self, id: uuid.UUID) -> Optional[ModelType]:
        """Get a record by ID."""
        return await self.session.get(self.model, id)

    async def get_for_update(self, id: uuid.UUID) -> Optional[ModelType]:
        """Get a record by ID with a row lock held until the next commit."""
        query = select(self.model).where(self.model.id == id).with_for_update()
        result = await self.session.exec(query)
        return result.first()

    async def get_many(self, ids: List[uuid.UUID], for_update: bool = False) -> List[ModelType]:
        """Get every record whose id is in ``ids``."""
        if not ids:
            return []
        query = select(self.model).where(self.model.id.in_(ids))
        if for_update:
            query = query.with_for_update()
        result = await self.session.exec(query)
        return list(result.all())

    async def get_by_field(self, field: str, value: Any) -> Optional[ModelType]:
        """Get a record by a specific field."""
        query = select(self.model).where(getattr(self.model, field) == value)
        result = await self.session.exec(query)
        return result.first()

    def _apply_filters(self, query, filters: Optional[dict]):
        if filters:
            for field, value in filters.items():
                if hasattr(self.model, field) and value is not None:
                    query = query.where(getattr(self.model, field) == value)
        return query

    def _apply_ordering(self, query, order_by: Optional[str], order_desc: bool):
        # Unknown sort fields fall back to newest first
        if not order_by or order_by not in self.model.__table__.columns:
            order_by, order_desc = "created_at", True
        order_column = getattr(self.model, order_by)
        return query.order_by(order_column.desc() if order_desc else order_column.asc())

    async def list(
        self,
        filters: Optional[dict] = None,
        order_by: str = "created_at",
        order_desc: bool = True
    ) -> List[ModelType]:
        """List all records with optional filters."""
        query = self._apply_filters(select(self.model), filters)
        query = self._apply_ordering(query, order_by, order_desc)
        result = await self.session.exec(query)
        return list(result.all())

    async def list_paginated(
        self,
        query=None,
        filters: Optional[dict] = None,
        page: int = 1,
        limit: int = 20,
        order_by: str = "created_at",
        order_desc: bool = True
    ) -> dict:
        """List records with pagination, optionally starting from a prepared query."""
        if query is None:
            query = select(self.model)
        query = self._apply_filters(query, filters)

        # Get total count
        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.session.exec(count_query)
        total = total_result.one()

        query = self._apply_ordering(query, order_by, order_desc)
        query = query.offset((page - 1) * limit).limit(limit)

        result = await self.session.exec(query)
        items = result.all()

        return create_paginated_response(items, total, page, limit)

    async def update(self, db_obj: ModelType, obj_in: dict) -> ModelType:
        """Apply a dict of changes to a loaded record and save it."""
        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        return await self.save(db_obj)

    async def count(self, filters: Optional[dict] = None) -> int:
        """Count records."""
        query = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await self.session.exec(query)
        return result.one()

    async def exists(self, id: uuid.UUID) -> bool:
        """Check if a record exists."""
        obj = await self.get(id)
        return obj is not None
