"""Dashboard statistics and report endpoints."""
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from helpline_crm.api.rate_limits import RateLimits, limiter
from helpline_crm.dependencies import get_report_service
from helpline_crm.services.reports import ReportService


router = APIRouter()

ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]


@router.get("/stats/dashboard")
@limiter.limit(RateLimits.READ)
async def dashboard_stats(request: Request, reports: ReportServiceDep) -> dict[str, Any]:
    """Today's call counters for the dashboard header."""
    return {"success": True, "stats": await reports.dashboard()}


@router.get("/reports/{report_type}")
@limiter.limit(RateLimits.ANALYTICS)
async def generate_report(
    request: Request,
    report_type: str,
    reports: ReportServiceDep,
) -> dict[str, Any]:
    """Daily, weekly or monthly call and patient report.

    Unknown report types answer 400 "Invalid report type".
    """
    return {"success": True, "report": await reports.report(report_type)}
