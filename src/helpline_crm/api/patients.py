"""Patient roster endpoints.

Patients are addressable by UUID or by their patient code (P0001).
"""
from enum import Enum
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.api.rate_limits import RateLimits, limiter
from helpline_crm.core.exceptions import RecordNotFoundError
from helpline_crm.core.logging import get_logger
from helpline_crm.db import get_db, utcnow
from helpline_crm.db.models.crm import PatientModel
from helpline_crm.db.repositories.calls import CallRepository
from helpline_crm.db.repositories.patients import PatientRepository

log = get_logger(__name__)

router = APIRouter()

# E.164, the only format Twilio dials; calls link to patients by exact match
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


# ============================================================================
# Pydantic Schemas
# ============================================================================

class PatientPriority(str, Enum):
    """Patient triage priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PatientCreate(BaseModel):
    """Schema for registering a patient."""

    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., max_length=20, pattern=PHONE_PATTERN)
    email: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=2000)
    medical_history: str | None = Field(
        None,
        max_length=10000,
        validation_alias=AliasChoices("medical_history", "medicalHistory"),
    )
    priority: PatientPriority = PatientPriority.MEDIUM


class PatientUpdate(BaseModel):
    """Schema for updating a patient. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=20, pattern=PHONE_PATTERN)
    email: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=2000)
    medical_history: str | None = Field(
        None,
        max_length=10000,
        validation_alias=AliasChoices("medical_history", "medicalHistory"),
    )
    priority: PatientPriority | None = None


def get_patient_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PatientRepository:
    """Dependency to get patient repository."""
    return PatientRepository(db)


def get_call_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CallRepository:
    """Dependency to get call repository."""
    return CallRepository(db)


PatientRepo = Annotated[PatientRepository, Depends(get_patient_repository)]


async def _get_patient_or_404(repo: PatientRepository, patient_id: str) -> PatientModel:
    patient = await repo.get_by_identifier(patient_id)
    if patient is None:
        raise RecordNotFoundError("Patient not found", details={"patient_id": patient_id})
    return patient


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/patients")
@limiter.limit(RateLimits.READ)
async def list_patients(
    request: Request,
    repo: PatientRepo,
    search: str | None = Query(None, max_length=100, description="Name, phone or patient code"),
) -> dict[str, Any]:
    """List patients, newest first, or search the roster."""
    if search and search.strip():
        patients = await repo.search(search)
    else:
        patients = await repo.list_recent()

    return {"success": True, "patients": [p.to_dict() for p in patients]}


@router.post("/patients")
@limiter.limit(RateLimits.WRITE)
async def create_patient(request: Request, body: PatientCreate, repo: PatientRepo) -> dict[str, Any]:
    """Register a patient with the next free patient code."""
    patient = await repo.create(
        PatientModel(
            patient_code=await repo.next_patient_code(),
            name=body.name,
            phone=body.phone,
            email=body.email,
            address=body.address,
            medical_history=body.medical_history,
            priority=body.priority.value,
            last_contact=utcnow(),
        )
    )
    log.info("Patient registered", patient_code=patient.patient_code)
    return {"success": True, "patient": patient.to_dict()}


@router.get("/patients/{patient_id}")
async def get_patient(patient_id: str, repo: PatientRepo) -> dict[str, Any]:
    """Get a patient by UUID or patient code."""
    patient = await _get_patient_or_404(repo, patient_id)
    return {"success": True, "patient": patient.to_dict()}


@router.put("/patients/{patient_id}")
@limiter.limit(RateLimits.WRITE)
async def update_patient(
    request: Request,
    patient_id: str,
    body: PatientUpdate,
    repo: PatientRepo,
) -> dict[str, Any]:
    """Update a patient's details."""
    patient = await _get_patient_or_404(repo, patient_id)

    changes = body.model_dump(exclude_unset=True)
    if isinstance(changes.get("priority"), Enum):
        changes["priority"] = changes["priority"].value
    # name, phone and priority are NOT NULL
    for required in ("name", "phone", "priority"):
        if required in changes and changes[required] is None:
            del changes[required]

    patient = await repo.update(patient.id, changes)
    return {"success": True, "patient": patient.to_dict()}


@router.delete("/patients/{patient_id}")
async def delete_patient(patient_id: str, repo: PatientRepo) -> dict[str, Any]:
    """Remove a patient. Their calls are kept, unlinked."""
    patient = await _get_patient_or_404(repo, patient_id)
    await repo.delete(patient.id)
    log.info("Patient deleted", patient_code=patient.patient_code)
    return {"success": True}


@router.get("/patients/{patient_id}/calls")
async def get_patient_calls(
    patient_id: str,
    repo: PatientRepo,
    calls: Annotated[CallRepository, Depends(get_call_repository)],
) -> dict[str, Any]:
    """Call history of one patient."""
    patient = await _get_patient_or_404(repo, patient_id)
    rows = await calls.get_by_patient(patient.id)
    return {"success": True, "calls": [c.to_dict() for c in rows]}
