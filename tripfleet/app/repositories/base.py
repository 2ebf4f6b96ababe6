"""
Repository base.

Thin async data access per entity: get, list, create, update. Repositories
flush but never commit; the calling service owns the transaction.
"""

from typing import Any, Generic, List, Optional, Type, TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: Type[ModelT]

    @classmethod
    async def get(cls, db: AsyncSession, record_id: int, refresh: bool = False) -> Optional[ModelT]:
        """Fetch by primary key. ``refresh`` re-reads a row already in the session."""
        if refresh:
            return await db.get(cls.model, record_id, populate_existing=True)
        return await db.get(cls.model, record_id)

    @classmethod
    async def list(cls, db: AsyncSession, *criteria, order_by: Any = None) -> List[ModelT]:
        query = select(cls.model).where(*criteria)
        query = query.order_by(order_by if order_by is not None else cls.model.id)
        result = await db.execute(query)
        return list(result.scalars().all())

    @classmethod
    async def create(cls, db: AsyncSession, **fields) -> ModelT:
        record = cls.model(**fields)
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return record

    @classmethod
    async def update(cls, db: AsyncSession, record: ModelT, **fields) -> ModelT:
        for key, value in fields.items():
            setattr(record, key, value)
        await db.flush()
        return record
