"""Appointment Repository for the Helpline CRM."""
from __future__ import annotations

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.db.models.core import AppointmentModel
from helpline_crm.db.repositories.base import BaseRepository


class AppointmentRepository(BaseRepository[AppointmentModel]):
    """Repository for appointment database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(AppointmentModel, session)

    async def list_filtered(
        self,
        *,
        patient_id: UUID | None = None,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 500,
    ) -> Sequence[AppointmentModel]:
        """Appointments matching the filters, soonest first."""
        stmt = select(self._model)

        if patient_id is not None:
            stmt = stmt.where(self._model.patient_id == patient_id)
        if status:
            stmt = stmt.where(self._model.status == status)
        if start is not None:
            stmt = stmt.where(self._model.appointment_date >= start)
        if end is not None:
            stmt = stmt.where(self._model.appointment_date <= end)

        stmt = stmt.order_by(self._model.appointment_date).limit(limit)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def set_status(self, id: UUID | str, status: str) -> AppointmentModel | None:
        """Change an appointment's status."""
        return await self.update(id, {"status": status})
