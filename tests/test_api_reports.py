"""Tests for dashboard statistics, reports and the report helpers."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from helpline_crm.core.exceptions import InvalidRequestError
from helpline_crm.services.reports import (
    ReportService,
    format_duration,
    report_period,
    subtract_month,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestReportHelpers:
    """Tests for report periods and formatting."""

    def test_daily_period(self):
        start, end = report_period("daily", utc(2024, 12, 16, 15, 30))

        assert start == utc(2024, 12, 16, 0, 0)
        assert end.date() == start.date()
        assert end.hour == 23 and end.minute == 59

    def test_weekly_period(self):
        now = utc(2024, 12, 16, 15, 30)
        start, end = report_period("weekly", now)

        assert start == utc(2024, 12, 9, 15, 30)
        assert end == now

    def test_monthly_period(self):
        start, _ = report_period("monthly", utc(2024, 12, 16))

        assert start == utc(2024, 11, 16)

    def test_invalid_type(self):
        with pytest.raises(InvalidRequestError, match="Invalid report type"):
            report_period("yearly", utc(2024, 12, 16))

    @pytest.mark.parametrize(
        "value,expected",
        [
            (utc(2024, 3, 31), utc(2024, 2, 29)),
            (utc(2023, 3, 31), utc(2023, 2, 28)),
            (utc(2024, 1, 15), utc(2023, 12, 15)),
        ],
    )
    def test_subtract_month_clamps_day(self, value, expected):
        assert subtract_month(value) == expected

    def test_format_duration(self):
        assert format_duration(0) == "00:00:00"
        assert format_duration(765) == "00:12:45"
        assert format_duration(3723) == "01:02:03"
        assert format_duration(None) == "00:00:00"


class TestReportService:
    """Tests for ReportService against the database."""

    @pytest.mark.asyncio
    async def test_report(self, db_session, call_repository, sample_patient):
        from helpline_crm.db.models import CallModel

        for code, call_type, duration, start in (
            ("C1", "emergency", 323, utc(2024, 12, 16, 10, 30)),
            ("C2", "consultation", 765, utc(2024, 12, 16, 9, 15)),
            ("C3", "followup", 490, utc(2024, 12, 1, 16, 45)),
        ):
            await call_repository.create(
                CallModel(
                    call_code=code,
                    phone_number="+1234567890",
                    call_type=call_type,
                    duration=duration,
                    call_start=start,
                )
            )
        await db_session.commit()

        report = await ReportService(db_session).report("weekly", now=utc(2024, 12, 16, 18))

        assert report["type"] == "weekly"
        assert report["period"]["endDate"] == "2024-12-16T18:00:00+00:00"
        assert report["calls"]["total_calls"] == 2
        assert report["calls"]["emergency_calls"] == 1
        assert report["calls"]["consultation_calls"] == 1
        assert report["calls"]["total_duration"] == 1088
        assert report["patients"] == [{"priority": "medium", "count": 1}]
        assert report["total_patients"] == 1

    @pytest.mark.asyncio
    async def test_dashboard_uses_utc_day(self, db_session, call_repository):
        from datetime import timedelta

        from helpline_crm.db.models import CallModel

        await call_repository.create(
            CallModel(
                call_code="C1",
                phone_number="+15550000000",
                status="completed",
                duration=60,
                call_start=utc(2024, 12, 16, 23, 0),
            )
        )
        await db_session.commit()

        service = ReportService(db_session)
        # 01:00 on the 17th in UTC+2 is still the 16th in UTC
        local_now = utc(2024, 12, 16, 23, 0).astimezone(timezone(timedelta(hours=2)))

        stats = await service.dashboard(now=local_now)

        assert stats["totalCalls"] == 1
        assert stats["completedCalls"] == 1
        assert stats["avgDuration"] == 60


class TestReportsApi:
    """Tests for /api/stats/dashboard and /api/reports/{type}."""

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, client, sample_call):
        response = await client.get("/api/stats/dashboard")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["stats"]["totalCalls"] == 1
        assert body["stats"]["emergencyCalls"] == 1
        assert set(body["stats"]) == {
            "totalCalls",
            "completedCalls",
            "emergencyCalls",
            "missedCalls",
            "avgDuration",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("report_type", ["daily", "weekly", "monthly"])
    async def test_report_types(self, client, sample_patient, report_type):
        response = await client.get(f"/api/reports/{report_type}")

        assert response.status_code == 200
        report = response.json()["report"]
        assert report["type"] == report_type
        assert set(report["period"]) == {"startDate", "endDate"}
        assert report["total_patients"] == 1

    @pytest.mark.asyncio
    async def test_invalid_report_type(self, client):
        response = await client.get("/api/reports/yearly")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Invalid report type"
