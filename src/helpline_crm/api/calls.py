"""Call management endpoints.

Outbound calls are placed through Twilio; Twilio then drives the call
status through the webhooks in ``webhooks.py``. These endpoints cover
initiation, hangup, TwiML, notes and the call history.
"""
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.api.patients import PHONE_PATTERN
from helpline_crm.api.rate_limits import RateLimits, limiter
from helpline_crm.config import get_settings
from helpline_crm.core.exceptions import InvalidRequestError, RecordNotFoundError
from helpline_crm.db import parse_uuid
from helpline_crm.dependencies import (
    DbSession,
    get_call_service,
    get_report_service,
)
from helpline_crm.db.repositories.calls import CallLogRepository, CallRepository
from helpline_crm.db.repositories.patients import PatientRepository
from helpline_crm.integrations.voice import build_twiml
from helpline_crm.services.calls import CallService
from helpline_crm.services.reports import ReportService, calls_to_csv


router = APIRouter()


# ============================================================================
# Pydantic Schemas
# ============================================================================

class CallType(str, Enum):
    """Reason for the call."""

    EMERGENCY = "emergency"
    CONSULTATION = "consultation"
    FOLLOWUP = "followup"
    GENERAL = "general"


class CallStatus(str, Enum):
    """Call status as mirrored from the provider."""

    INITIATED = "initiated"
    RINGING = "ringing"
    CONNECTED = "connected"
    COMPLETED = "completed"
    FAILED = "failed"
    MISSED = "missed"


class CallInitiate(BaseModel):
    """Request to place an outbound call."""

    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(
        ...,
        max_length=20,
        pattern=PHONE_PATTERN,
        description="Destination phone number in E.164 format",
    )
    from_number: str | None = Field(
        None,
        alias="from",
        max_length=20,
        description="Caller ID, defaults to the configured Twilio number",
    )
    agent_id: UUID | None = Field(None, alias="agentId")
    patient_id: str | None = Field(None, alias="patientId", max_length=64)
    call_type: CallType = Field(CallType.GENERAL, alias="callType")
    notes: str | None = Field(None, max_length=10000)


class CallNotesUpdate(BaseModel):
    """Agent notes on a call."""

    notes: str | None = Field(None, max_length=10000)


CallServiceDep = Annotated[CallService, Depends(get_call_service)]


# ============================================================================
# Query helpers
# ============================================================================

def parse_date_bound(value: str | None, *, end: bool = False) -> datetime | None:
    """Parse a ``YYYY-MM-DD`` or ISO-8601 filter value as a UTC instant.

    A bare date used as an upper bound covers the whole day.

    Raises:
        InvalidRequestError: Unparseable value
    """
    if not value:
        return None

    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end else time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise InvalidRequestError(f"Invalid date: {value}", cause=e) from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_uuid_param(value: str | None, name: str) -> UUID | None:
    """Parse an optional UUID query parameter."""
    if not value:
        return None
    parsed = parse_uuid(value)
    if parsed is None:
        raise InvalidRequestError(f"Invalid {name}: {value}")
    return parsed


class HistoryFilters:
    """Call history query parameters (shared by list and CSV export)."""

    def __init__(
        self,
        start_date: str | None = Query(None, alias="startDate"),
        end_date: str | None = Query(None, alias="endDate"),
        call_type: CallType | None = Query(None, alias="callType"),
        agent_id: str | None = Query(None, alias="agentId"),
        patient_id: str | None = Query(None, alias="patientId"),
        status: CallStatus | None = Query(None),
    ):
        self.start_date = start_date
        self.end_date = end_date
        self.call_type = call_type
        self.agent_id = agent_id
        self.patient_id = patient_id
        self.status = status

    async def to_repository_filters(self, db: AsyncSession) -> dict[str, Any] | None:
        """Repository keyword filters, or None when the patient is unknown.

        ``patientId`` may be a UUID or a patient code (P0001).
        """
        patient_id = None
        if self.patient_id:
            patient = await PatientRepository(db).get_by_identifier(self.patient_id)
            if patient is None:
                return None
            patient_id = patient.id

        return {
            "start": parse_date_bound(self.start_date),
            "end": parse_date_bound(self.end_date, end=True),
            "call_type": self.call_type.value if self.call_type else None,
            "agent_id": parse_uuid_param(self.agent_id, "agentId"),
            "patient_id": patient_id,
            "status": self.status.value if self.status else None,
        }


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/calls/initiate")
@limiter.limit(RateLimits.OUTBOUND_CALL)
async def initiate_call(
    request: Request,
    body: CallInitiate,
    service: CallServiceDep,
) -> dict[str, Any]:
    """Place an outbound call through Twilio."""
    result = await service.initiate_call(
        body.to,
        from_number=body.from_number,
        agent_id=body.agent_id,
        call_type=body.call_type.value,
        patient_id=body.patient_id,
        notes=body.notes,
    )
    return {"success": True, **result}


@router.api_route("/calls/twiml", methods=["GET", "POST"])
async def call_twiml() -> Response:
    """TwiML Twilio fetches when the callee answers."""
    twilio = get_settings().telephony.twilio
    twiml = build_twiml(twilio.greeting, twilio.voice, twilio.agent_phone)
    return Response(content=twiml, media_type="text/xml")


@router.post("/calls/end/{reference}")
async def end_call(reference: str, service: CallServiceDep) -> dict[str, Any]:
    """Hang up a call by call code or Twilio call SID."""
    call = await service.end_call(reference)
    return {"success": True, "call": call.to_dict()}


@router.put("/calls/{reference}/notes")
async def update_call_notes(
    reference: str,
    body: CallNotesUpdate,
    service: CallServiceDep,
) -> dict[str, Any]:
    """Replace the agent's notes on a call."""
    call = await service.update_notes(reference, body.notes)
    return {"success": True, "call": call.to_dict()}


@router.get("/calls/history")
@limiter.limit(RateLimits.READ)
async def call_history(
    request: Request,
    db: DbSession,
    filters: Annotated[HistoryFilters, Depends()],
) -> dict[str, Any]:
    """Call history with patient and agent names, newest first."""
    repo_filters = await filters.to_repository_filters(db)
    if repo_filters is None:
        return {"success": True, "calls": []}
    calls = await CallRepository(db).history(**repo_filters)
    return {"success": True, "calls": [c.to_dict() for c in calls]}


@router.get("/calls/history/export")
@limiter.limit(RateLimits.ANALYTICS)
async def export_call_history(
    request: Request,
    filters: Annotated[HistoryFilters, Depends()],
    reports: Annotated[ReportService, Depends(get_report_service)],
) -> Response:
    """Download the filtered call history as CSV."""
    repo_filters = await filters.to_repository_filters(reports.session)
    if repo_filters is None:
        content = calls_to_csv([])
    else:
        content = await reports.export_history_csv(**repo_filters)
    filename = f"call_history_{datetime.now(timezone.utc).date().isoformat()}.csv"

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/calls/{reference}/logs")
async def call_logs(reference: str, db: DbSession) -> dict[str, Any]:
    """Provider events recorded for a call."""
    call = await CallRepository(db).find_by_reference(reference)
    if call is None:
        raise RecordNotFoundError("Call not found", details={"call": reference})

    logs = await CallLogRepository(db).get_for_call(call.id)
    return {"success": True, "logs": [entry.to_dict() for entry in logs]}
