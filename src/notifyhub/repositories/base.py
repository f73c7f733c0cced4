"""Base repository with keyed lookups and row writes."""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notifyhub.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Async repository for one ORM model keyed by a single string column.

    Subclasses set ``model_class`` and ``pk_field``. Writes only flush;
    committing is left to the caller's unit of work.
    """

    model_class: type[T]
    pk_field: str

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def _pk(self):
        return getattr(self.model_class, self.pk_field)

    async def get(self, pk_value: str) -> T | None:
        result = await self.session.execute(select(self.model_class).where(self._pk == pk_value))
        return result.scalar_one_or_none()

    async def exists(self, pk_value: str) -> bool:
        result = await self.session.execute(select(func.count(self._pk)).where(self._pk == pk_value))
        return (result.scalar() or 0) > 0

    async def create(self, **kwargs: Any) -> T:
        row = self.model_class(**kwargs)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: T, **kwargs: Any) -> T:
        for key, value in kwargs.items():
            setattr(row, key, value)
        await self.session.flush()
        return row
