"""Base Repository Pattern for the Helpline CRM.

Provides generic CRUD operations with async SQLAlchemy support.
All specialized repositories inherit from BaseRepository.
"""
from __future__ import annotations

from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.core.exceptions import RecordNotFoundError
from helpline_crm.db.base import Base, parse_uuid

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Generic base repository with async CRUD operations.

    Usage:
        class AgentRepository(BaseRepository[AgentModel]):
            def __init__(self, session: AsyncSession):
                super().__init__(AgentModel, session)

            async def find_by_email(self, email: str) -> AgentModel | None:
                ...
    """

    def __init__(self, model: type[ModelT], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current database session."""
        return self._session

    # ========================================================================
    # Basic CRUD Operations
    # ========================================================================

    async def get(self, id: UUID | str) -> ModelT | None:
        """Get a single record by ID.

        Strings that are not valid UUIDs simply find nothing.
        """
        uuid_id = parse_uuid(id)
        if uuid_id is None:
            return None

        stmt = select(self._model).where(self._model.id == uuid_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, id: UUID | str) -> ModelT:
        """Get a single record by ID.

        Raises:
            RecordNotFoundError: If record not found
        """
        obj = await self.get(id)
        if obj is None:
            raise RecordNotFoundError(
                f"{self._model.__name__} with id {id} not found",
                details={"id": str(id)},
            )
        return obj

    async def get_multi(
        self,
        *,
        skip: int = 0,
        limit: int = 100,
        order_by: str | None = None,
        descending: bool = True,
    ) -> Sequence[ModelT]:
        """Get multiple records with pagination.

        Args:
            skip: Number of records to skip
            limit: Maximum records to return
            order_by: Column name to order by (default: created_at)
            descending: Sort in descending order
        """
        stmt = select(self._model)

        column = getattr(self._model, order_by or "created_at", None)
        if column is not None:
            stmt = stmt.order_by(column.desc() if descending else column)

        stmt = stmt.offset(skip).limit(limit)

        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def create(self, obj_in: ModelT) -> ModelT:
        """Create a new record.

        Returns:
            Created model instance with generated ID and server defaults loaded
        """
        self._session.add(obj_in)
        await self._session.flush()
        await self._session.refresh(obj_in)
        return obj_in

    async def save(self, db_obj: ModelT) -> ModelT:
        """Flush pending changes on an already loaded record."""
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    async def update(self, id: UUID | str, obj_in: dict[str, Any]) -> ModelT | None:
        """Update a record by ID.

        Args:
            id: UUID or string primary key
            obj_in: Dictionary of fields to update

        Returns:
            Updated model instance or None if not found
        """
        db_obj = await self.get(id)
        if db_obj is None:
            return None

        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        return await self.save(db_obj)

    async def delete(self, id: UUID | str) -> bool:
        """Delete a record by ID.

        Returns:
            True if deleted, False if not found
        """
        db_obj = await self.get(id)
        if db_obj is None:
            return False

        await self._session.delete(db_obj)
        await self._session.flush()
        return True

    # ========================================================================
    # Query Helpers
    # ========================================================================

    async def count(self) -> int:
        """Get total count of records."""
        stmt = select(func.count()).select_from(self._model)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def find_one(self, **filters: Any) -> ModelT | None:
        """Find a single record by arbitrary column filters."""
        stmt = select(self._model)
        for field, value in filters.items():
            if hasattr(self._model, field):
                stmt = stmt.where(getattr(self._model, field) == value)

        result = await self._session.execute(stmt.limit(1))
        return result.scalar_one_or_none()
