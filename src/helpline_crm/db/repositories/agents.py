"""Agent Repository for the Helpline CRM."""
from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.db.models.crm import AgentModel
from helpline_crm.db.repositories.base import BaseRepository


class AgentRepository(BaseRepository[AgentModel]):
    """Repository for agent database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(AgentModel, session)

    async def find_by_email(self, email: str) -> AgentModel | None:
        """Find an agent by (case-insensitive) email."""
        return await self.find_one(email=email.strip().lower())

    async def login(self, email: str, name: str) -> AgentModel:
        """Mark an agent online, creating the agent on first login."""
        agent = await self.find_by_email(email)
        if agent is None:
            return await self.create(
                AgentModel(
                    name=name,
                    email=email.strip().lower(),
                    status="online",
                )
            )

        agent.status = "online"
        return await self.save(agent)

    async def set_status(self, id: UUID | str, status: str) -> AgentModel | None:
        """Set an agent's presence status."""
        return await self.update(id, {"status": status})

    async def list_all(self) -> Sequence[AgentModel]:
        """All agents ordered by name."""
        stmt = select(self._model).order_by(self._model.name)
        result = await self._session.execute(stmt)
        return result.scalars().all()
