"""CRM ORM Models: helpline agents and the patient roster."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from helpline_crm.db.base import Base, TimestampMixin, UUIDMixin


AGENT_STATUSES = ("online", "offline", "busy", "away")
PATIENT_PRIORITIES = ("low", "medium", "high", "critical")


class AgentModel(Base, UUIDMixin, TimestampMixin):
    """Call-center agent.

    Agents are created on first login and keyed by email.
    """

    __tablename__ = "agents"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        index=True,
    )
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="offline",
        comment="online, offline, busy, away",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PatientModel(Base, UUIDMixin, TimestampMixin):
    """Patient on the helpline roster.

    Besides the UUID primary key every patient carries a human-facing
    code (P0001, P0002, ...) that agents read out on the phone.
    """

    __tablename__ = "patients"

    patient_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    medical_history: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="medium",
        comment="low, medium, high, critical",
    )
    last_contact: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_patients_priority", "priority"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "patient_code": self.patient_code,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "medical_history": self.medical_history,
            "priority": self.priority,
            "last_contact": self.last_contact.isoformat() if self.last_contact else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
