"""Call Repository for the Helpline CRM.

Specialized repository for call records and their event logs,
including the aggregate queries behind the dashboard and reports.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.db.base import parse_uuid
from helpline_crm.db.models.core import CallLogModel, CallModel
from helpline_crm.db.repositories.base import BaseRepository


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC start of ``day`` and start of the following day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class CallRepository(BaseRepository[CallModel]):
    """Repository for call database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(CallModel, session)

    # ========================================================================
    # Lookups
    # ========================================================================

    async def find_by_provider_sid(self, sid: str) -> CallModel | None:
        """Find a call by the telephony provider's call SID."""
        if not sid:
            return None
        return await self.find_one(provider_sid=sid)

    async def find_by_reference(self, reference: UUID | str) -> CallModel | None:
        """Find a call by UUID, call code or provider SID."""
        uuid_id = parse_uuid(reference)
        if uuid_id is not None:
            return await self.get(uuid_id)

        stmt = select(self._model).where(
            or_(
                self._model.call_code == reference,
                self._model.provider_sid == reference,
            )
        ).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_patient(self, patient_id: UUID, *, limit: int = 100) -> Sequence[CallModel]:
        """Calls linked to a patient, most recent first."""
        stmt = (
            select(self._model)
            .where(self._model.patient_id == patient_id)
            .order_by(self._model.call_start.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # History
    # ========================================================================

    async def history(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        call_type: str | None = None,
        agent_id: UUID | None = None,
        patient_id: UUID | None = None,
        status: str | None = None,
        limit: int = 1000,
    ) -> Sequence[CallModel]:
        """Filtered call history ordered by call start, newest first.

        Patient and agent are eager loaded so callers can read their names.
        """
        stmt = select(self._model)

        if start is not None:
            stmt = stmt.where(self._model.call_start >= start)
        if end is not None:
            stmt = stmt.where(self._model.call_start <= end)
        if call_type:
            stmt = stmt.where(self._model.call_type == call_type)
        if agent_id is not None:
            stmt = stmt.where(self._model.agent_id == agent_id)
        if patient_id is not None:
            stmt = stmt.where(self._model.patient_id == patient_id)
        if status:
            stmt = stmt.where(self._model.status == status)

        stmt = stmt.order_by(self._model.call_start.desc()).limit(limit)

        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # Statistics
    # ========================================================================

    async def dashboard_stats(self, day: date) -> dict[str, int]:
        """Counters for calls started on ``day`` (UTC)."""
        start, end = day_bounds(day)
        completed = self._model.status == "completed"

        stmt = select(
            func.count(self._model.id),
            func.sum(case((completed, 1), else_=0)),
            func.sum(case((self._model.call_type == "emergency", 1), else_=0)),
            func.sum(case((self._model.status == "missed", 1), else_=0)),
            func.avg(case((completed, self._model.duration), else_=None)),
        ).where(
            self._model.call_start >= start,
            self._model.call_start < end,
        )

        row = (await self._session.execute(stmt)).one()
        return {
            "totalCalls": row[0] or 0,
            "completedCalls": int(row[1] or 0),
            "emergencyCalls": int(row[2] or 0),
            "missedCalls": int(row[3] or 0),
            "avgDuration": round(float(row[4] or 0)),
        }

    async def report_stats(self, start: datetime, end: datetime) -> dict[str, Any]:
        """Aggregate call figures for calls started between two instants."""

        def count_type(call_type: str):
            return func.sum(case((self._model.call_type == call_type, 1), else_=0))

        stmt = select(
            func.count(self._model.id),
            count_type("emergency"),
            count_type("consultation"),
            count_type("followup"),
            count_type("general"),
            func.avg(self._model.duration),
            func.sum(self._model.duration),
        ).where(self._model.call_start.between(start, end))

        row = (await self._session.execute(stmt)).one()
        avg_duration = row[5]
        return {
            "total_calls": row[0] or 0,
            "emergency_calls": int(row[1] or 0),
            "consultation_calls": int(row[2] or 0),
            "followup_calls": int(row[3] or 0),
            "general_calls": int(row[4] or 0),
            "avg_duration": round(float(avg_duration), 2) if avg_duration is not None else 0,
            "total_duration": int(row[6] or 0),
        }


class CallLogRepository(BaseRepository[CallLogModel]):
    """Repository for per-call provider event logs."""

    def __init__(self, session: AsyncSession):
        super().__init__(CallLogModel, session)

    async def log_event(
        self,
        call_id: UUID,
        event_type: str,
        data: dict[str, Any] | None = None,
    ) -> CallLogModel:
        """Append an event to a call's log."""
        return await self.create(
            CallLogModel(call_id=call_id, event_type=event_type, event_data=data or {})
        )

    async def get_for_call(self, call_id: UUID) -> Sequence[CallLogModel]:
        """All events for a call, oldest first."""
        stmt = (
            select(self._model)
            .where(self._model.call_id == call_id)
            .order_by(self._model.created_at, self._model.id)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()
