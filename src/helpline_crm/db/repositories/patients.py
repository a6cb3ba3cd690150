"""Patient Repository for the Helpline CRM.

Extends BaseRepository with roster lookups, search and the
patient code sequence.
"""
from __future__ import annotations

import re
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.db.base import parse_uuid
from helpline_crm.db.models.crm import PATIENT_PRIORITIES, PatientModel
from helpline_crm.db.repositories.base import BaseRepository


PATIENT_CODE_PREFIX = "P"
PATIENT_CODE_WIDTH = 4

_CODE_PATTERN = re.compile(rf"^{PATIENT_CODE_PREFIX}(\d+)$")


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def format_patient_code(sequence: int) -> str:
    """Format a roster sequence number as a patient code (P0001)."""
    return f"{PATIENT_CODE_PREFIX}{sequence:0{PATIENT_CODE_WIDTH}d}"


class PatientRepository(BaseRepository[PatientModel]):
    """Repository for patient database operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(PatientModel, session)

    # ========================================================================
    # Identification
    # ========================================================================

    async def next_patient_code(self) -> str:
        """Return the code for the next patient.

        Derived from the highest existing code rather than the row count,
        so a deleted patient never causes a duplicate code.
        """
        code = self._model.patient_code
        stmt = (
            select(code)
            .where(code.like(f"{PATIENT_CODE_PREFIX}%"))
            .order_by(func.length(code).desc(), code.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        highest = result.scalar_one_or_none()

        sequence = 0
        if highest:
            match = _CODE_PATTERN.match(highest)
            if match:
                sequence = int(match.group(1))

        return format_patient_code(sequence + 1)

    async def get_by_identifier(self, value: UUID | str) -> PatientModel | None:
        """Find a patient by UUID or by patient code."""
        uuid_id = parse_uuid(value)
        if uuid_id is not None:
            return await self.get(uuid_id)

        return await self.find_one(patient_code=str(value).upper())

    async def find_by_phone(self, phone: str) -> PatientModel | None:
        """Find the most recently created patient with this exact phone."""
        stmt = (
            select(self._model)
            .where(self._model.phone == phone)
            .order_by(self._model.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    # ========================================================================
    # Listing and Search
    # ========================================================================

    async def list_recent(self, *, skip: int = 0, limit: int = 500) -> Sequence[PatientModel]:
        """All patients, newest first."""
        stmt = (
            select(self._model)
            .order_by(self._model.created_at.desc(), self._model.patient_code.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def search(self, term: str, *, limit: int = 100) -> Sequence[PatientModel]:
        """Case-insensitive match on name, phone or patient code."""
        pattern = f"%{escape_like(term.strip())}%"
        stmt = (
            select(self._model)
            .where(
                or_(
                    self._model.name.ilike(pattern, escape="\\"),
                    self._model.phone.ilike(pattern, escape="\\"),
                    self._model.patient_code.ilike(pattern, escape="\\"),
                )
            )
            .order_by(self._model.name)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # Statistics
    # ========================================================================

    async def count_by_priority(self) -> list[dict[str, int | str]]:
        """Patient counts grouped by priority, in priority order."""
        stmt = select(
            self._model.priority,
            func.count(self._model.id),
        ).group_by(self._model.priority)

        result = await self._session.execute(stmt)
        counts = {row[0]: row[1] for row in result.all()}

        order = {priority: i for i, priority in enumerate(PATIENT_PRIORITIES)}
        return [
            {"priority": priority, "count": count}
            for priority, count in sorted(counts.items(), key=lambda kv: order.get(kv[0], 99))
        ]
