"""Reporting Service.

Dashboard counters, daily/weekly/monthly reports and the call history
CSV export.
"""

from __future__ import annotations

import calendar
import csv
import io
from datetime import datetime, time, timedelta, timezone
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.core.exceptions import InvalidRequestError
from helpline_crm.db.base import as_utc, utcnow
from helpline_crm.db.models.core import CallModel
from helpline_crm.db.repositories.calls import CallRepository
from helpline_crm.db.repositories.patients import PatientRepository


REPORT_TYPES = ("daily", "weekly", "monthly")

CSV_HEADERS = ["Call ID", "Patient Name", "Phone", "Type", "Duration", "Date Time", "Status"]


def subtract_month(value: datetime) -> datetime:
    """Same wall-clock time one calendar month earlier.

    The day is clamped to the length of the target month (Mar 31 -> Feb 28).
    """
    year, month = (value.year, value.month - 1) if value.month > 1 else (value.year - 1, 12)
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def report_period(report_type: str, now: datetime) -> tuple[datetime, datetime]:
    """Start and end instants covered by a report.

    Raises:
        InvalidRequestError: Unknown report type
    """
    if report_type == "daily":
        start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        end = datetime.combine(now.date(), time.max, tzinfo=now.tzinfo)
        return start, end
    if report_type == "weekly":
        return now - timedelta(days=7), now
    if report_type == "monthly":
        return subtract_month(now), now

    raise InvalidRequestError(
        "Invalid report type",
        details={"type": report_type, "allowed": list(REPORT_TYPES)},
    )


def format_duration(seconds: int | None) -> str:
    """Seconds as HH:MM:SS."""
    seconds = max(int(seconds or 0), 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def calls_to_csv(calls: Iterable[CallModel]) -> str:
    """Render call history rows as CSV text."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)

    for call in calls:
        started = as_utc(call.call_start).strftime("%Y-%m-%d %H:%M:%S") if call.call_start else ""
        writer.writerow([
            call.call_code,
            call.patient.name if call.patient else "",
            call.phone_number,
            call.call_type,
            format_duration(call.duration),
            started,
            call.status,
        ])

    return output.getvalue()


class ReportService:
    """Aggregates call and patient statistics."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.calls = CallRepository(session)
        self.patients = PatientRepository(session)

    async def dashboard(self, now: datetime | None = None) -> dict[str, int]:
        """Today's counters (UTC day)."""
        now = now or utcnow()
        return await self.calls.dashboard_stats(now.astimezone(timezone.utc).date())

    async def report(self, report_type: str, now: datetime | None = None) -> dict[str, Any]:
        """Build a daily, weekly or monthly report.

        Raises:
            InvalidRequestError: Unknown report type
        """
        now = now or utcnow()
        start, end = report_period(report_type, now)

        call_stats = await self.calls.report_stats(start, end)
        patient_stats = await self.patients.count_by_priority()

        return {
            "type": report_type,
            "period": {
                "startDate": start.isoformat(),
                "endDate": end.isoformat(),
            },
            "calls": call_stats,
            "patients": patient_stats,
            "total_patients": sum(int(row["count"]) for row in patient_stats),
        }

    async def export_history_csv(self, **filters: Any) -> str:
        """Filtered call history as CSV text."""
        calls = await self.calls.history(**filters)
        return calls_to_csv(calls)
