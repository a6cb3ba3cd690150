"""ORM models for the Helpline CRM database."""

from helpline_crm.db.models.crm import AgentModel, PatientModel
from helpline_crm.db.models.core import AppointmentModel, CallLogModel, CallModel

__all__ = [
    "AgentModel",
    "PatientModel",
    "CallModel",
    "CallLogModel",
    "AppointmentModel",
]
