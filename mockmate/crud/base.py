"""
CRUD base class - SQLModel

Works directly on SQLModel objects
"""
from typing import Generic, TypeVar, Type, Optional, List, Any, Dict, Tuple
from sqlalchemy import select, func, delete as sa_delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from mockmate.models.base import utc_now

ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=SQLModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=SQLModel)


class CRUDBase(Generic[ModelType]):
    """
    CRUD base class

    Shared get / list / count / create / update / delete for one table model
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: str) -> Optional[ModelType]:
        """Fetch one row by primary key"""
        result = await db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_by(self, db: AsyncSession, **filters: Any) -> Optional[ModelType]:
        """Fetch the first row matching column == value filters"""
        query = select(self.model)
        for column, value in filters.items():
            query = query.where(getattr(self.model, column) == value)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        order_by: Any = None
    ) -> List[ModelType]:
        """List rows (paged)"""
        query = select(self.model)
        if order_by is not None:
            query = query.order_by(order_by)
        else:
            query = query.order_by(self.model.created_at.desc())
        query = query.offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count(self, db: AsyncSession, *conditions: Any) -> int:
        """Row count, optionally filtered"""
        query = select(func.count()).select_from(self.model)
        if conditions:
            query = query.where(*conditions)
        result = await db.execute(query)
        return result.scalar() or 0

    async def paginate(
        self,
        db: AsyncSession,
        *,
        conditions: Optional[List[Any]] = None,
        page: int = 1,
        page_size: int = 20,
        order_by: Any = None,
    ) -> Tuple[List[ModelType], int]:
        """Filtered page of rows plus the total count"""
        conditions = conditions or []
        total = await self.count(db, *conditions)
        query = select(self.model)
        if conditions:
            query = query.where(*conditions)
        if order_by is None:
            order_by = self.model.created_at.desc()
        if not isinstance(order_by, (list, tuple)):
            order_by = [order_by]
        query = query.order_by(*order_by).offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: CreateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """
        Create a row

        Accepts a dict or a schema instance
        """
        if isinstance(obj_in, dict):
            db_obj = self.model(**obj_in)
        else:
            db_obj = self.model.model_validate(obj_in)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: UpdateSchemaType | Dict[str, Any],
        skip_none: bool = True
    ) -> ModelType:
        """
        Update a row

        None values are skipped unless skip_none is False
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if value is None and skip_none:
                continue
            setattr(db_obj, field, value)

        if hasattr(db_obj, "updated_at"):
            db_obj.updated_at = utc_now()

        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, *, id: str) -> bool:
        """Delete a row by primary key"""
        obj = await self.get(db, id)
        if obj:
            await db.delete(obj)
            await db.flush()
            return True
        return False

    async def delete_where(self, db: AsyncSession, *conditions: Any) -> int:
        """Bulk delete, returns the number of rows removed"""
        result = await db.execute(sa_delete(self.model).where(*conditions))
        await db.flush()
        return result.rowcount or 0
