"""Business services."""

from helpline_crm.services.calls import CallService, generate_call_code
from helpline_crm.services.reports import (
    ReportService,
    calls_to_csv,
    format_duration,
    report_period,
)

__all__ = [
    "CallService",
    "generate_call_code",
    "ReportService",
    "calls_to_csv",
    "format_duration",
    "report_period",
]
