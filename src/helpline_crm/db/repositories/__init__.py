"""Repository pattern for data access."""

from helpline_crm.db.repositories.base import BaseRepository
from helpline_crm.db.repositories.agents import AgentRepository
from helpline_crm.db.repositories.patients import PatientRepository
from helpline_crm.db.repositories.calls import CallLogRepository, CallRepository
from helpline_crm.db.repositories.appointments import AppointmentRepository

__all__ = [
    "BaseRepository",
    "AgentRepository",
    "PatientRepository",
    "CallRepository",
    "CallLogRepository",
    "AppointmentRepository",
]
