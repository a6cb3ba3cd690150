"""Appointment endpoints.

Agents book follow-up appointments for patients while on a call.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.api.calls import parse_date_bound
from helpline_crm.api.rate_limits import RateLimits, limiter
from helpline_crm.core.exceptions import RecordNotFoundError
from helpline_crm.core.logging import get_logger
from helpline_crm.db import get_db
from helpline_crm.db.models.core import AppointmentModel
from helpline_crm.db.repositories.agents import AgentRepository
from helpline_crm.db.repositories.appointments import AppointmentRepository
from helpline_crm.db.repositories.patients import PatientRepository

log = get_logger(__name__)

router = APIRouter()


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""

    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., alias="patientId", max_length=64)
    appointment_date: datetime = Field(..., alias="appointmentDate")
    agent_id: UUID | None = Field(None, alias="agentId")
    type: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=10000)


class AppointmentStatusUpdate(BaseModel):
    """Status change request."""

    status: AppointmentStatus


def get_appointment_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AppointmentRepository:
    """Dependency to get appointment repository."""
    return AppointmentRepository(db)


AppointmentRepo = Annotated[AppointmentRepository, Depends(get_appointment_repository)]


@router.get("/appointments")
@limiter.limit(RateLimits.READ)
async def list_appointments(
    request: Request,
    repo: AppointmentRepo,
    patient_id: str | None = Query(None, alias="patientId"),
    status: AppointmentStatus | None = Query(None),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
) -> dict[str, Any]:
    """Appointments matching the filters, soonest first."""
    patient_uuid = None
    if patient_id:
        patient = await PatientRepository(repo.session).get_by_identifier(patient_id)
        if patient is None:
            return {"success": True, "appointments": []}
        patient_uuid = patient.id

    appointments = await repo.list_filtered(
        patient_id=patient_uuid,
        status=status.value if status else None,
        start=parse_date_bound(start_date),
        end=parse_date_bound(end_date, end=True),
    )
    return {"success": True, "appointments": [a.to_dict() for a in appointments]}


@router.post("/appointments")
@limiter.limit(RateLimits.WRITE)
async def create_appointment(
    request: Request,
    body: AppointmentCreate,
    repo: AppointmentRepo,
) -> dict[str, Any]:
    """Book an appointment for an existing patient."""
    patient = await PatientRepository(repo.session).get_by_identifier(body.patient_id)
    if patient is None:
        raise RecordNotFoundError("Patient not found", details={"patient_id": body.patient_id})

    if body.agent_id is not None and await AgentRepository(repo.session).get(body.agent_id) is None:
        raise RecordNotFoundError("Agent not found", details={"agent_id": str(body.agent_id)})

    appointment_date = body.appointment_date
    if appointment_date.tzinfo is None:
        appointment_date = appointment_date.replace(tzinfo=timezone.utc)
    else:
        appointment_date = appointment_date.astimezone(timezone.utc)

    appointment = await repo.create(
        AppointmentModel(
            patient_id=patient.id,
            agent_id=body.agent_id,
            appointment_date=appointment_date,
            type=body.type,
            notes=body.notes,
            status=AppointmentStatus.SCHEDULED.value,
        )
    )
    log.info(
        "Appointment booked",
        appointment_id=str(appointment.id),
        patient_code=patient.patient_code,
    )
    return {"success": True, "appointment": appointment.to_dict()}


@router.patch("/appointments/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: str,
    body: AppointmentStatusUpdate,
    repo: AppointmentRepo,
) -> dict[str, Any]:
    """Complete, cancel or reschedule an appointment."""
    appointment = await repo.set_status(appointment_id, body.status.value)
    if appointment is None:
        raise RecordNotFoundError("Appointment not found", details={"appointment_id": appointment_id})

    return {"success": True, "appointment": appointment.to_dict()}
