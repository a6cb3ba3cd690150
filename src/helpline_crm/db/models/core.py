"""Core ORM Models: calls, call event logs and appointments.

A call row mirrors the provider's view of a phone call. Its status is
written by the provider's status callbacks and never reconciled locally.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpline_crm.db.base import Base, TimestampMixin, UUIDMixin, UUIDType

if TYPE_CHECKING:
    from helpline_crm.db.models.crm import AgentModel, PatientModel


CALL_TYPES = ("emergency", "consultation", "followup", "general")
CALL_STATUSES = ("initiated", "ringing", "connected", "completed", "failed", "missed")
TERMINAL_CALL_STATUSES = ("completed", "failed", "missed")
APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled", "rescheduled")


class CallModel(Base, UUIDMixin, TimestampMixin):
    """Phone call placed through the helpline."""

    __tablename__ = "calls"

    call_code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
        comment="Application call id (C + epoch milliseconds)",
    )
    provider_sid: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
        index=True,
        comment="Telephony provider call SID",
    )

    patient_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        ForeignKey("patients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    agent_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        ForeignKey("agents.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    call_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="general",
        comment="emergency, consultation, followup, general",
    )
    duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Duration in seconds",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="initiated",
        index=True,
        comment="initiated, ringing, connected, completed, failed, missed",
    )
    recording_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    call_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    call_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    patient: Mapped["PatientModel | None"] = relationship(lazy="selectin")
    agent: Mapped["AgentModel | None"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_calls_call_start", "call_start"),
        Index("ix_calls_type_start", "call_type", "call_start"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "call_code": self.call_code,
            "provider_sid": self.provider_sid,
            "patient_id": str(self.patient_id) if self.patient_id else None,
            "agent_id": str(self.agent_id) if self.agent_id else None,
            "patient_name": self.patient.name if self.patient else None,
            "agent_name": self.agent.name if self.agent else None,
            "phone_number": self.phone_number,
            "call_type": self.call_type,
            "duration": self.duration,
            "status": self.status,
            "recording_url": self.recording_url,
            "notes": self.notes,
            "call_start": self.call_start.isoformat() if self.call_start else None,
            "call_end": self.call_end.isoformat() if self.call_end else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CallLogModel(Base, UUIDMixin, TimestampMixin):
    """Raw provider event received for a call."""

    __tablename__ = "call_logs"

    call_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("calls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    event_data: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "call_id": str(self.call_id),
            "event_type": self.event_type,
            "event_data": self.event_data or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AppointmentModel(Base, UUIDMixin, TimestampMixin):
    """Follow-up appointment booked for a patient during a call."""

    __tablename__ = "appointments"

    patient_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    agent_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        ForeignKey("agents.id", ondelete="SET NULL"),
        nullable=True,
    )
    appointment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="scheduled",
        comment="scheduled, completed, cancelled, rescheduled",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient: Mapped["PatientModel"] = relationship(lazy="selectin")

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "patient_id": str(self.patient_id),
            "patient_name": self.patient.name if self.patient else None,
            "agent_id": str(self.agent_id) if self.agent_id else None,
            "appointment_date": self.appointment_date.isoformat(),
            "type": self.type,
            "status": self.status,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
