"""FastAPI dependency providers shared by the routers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.api.realtime import broadcast_event
from helpline_crm.db import get_db
from helpline_crm.integrations.voice import VoiceGateway, get_voice_gateway
from helpline_crm.services.calls import CallService
from helpline_crm.services.reports import ReportService


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_gateway() -> VoiceGateway | None:
    """Configured voice gateway, None without Twilio credentials."""
    return get_voice_gateway()


def get_call_service(
    db: DbSession,
    gateway: Annotated[VoiceGateway | None, Depends(get_gateway)],
) -> CallService:
    """Call service bound to the request's session."""
    return CallService(db, gateway, broadcast=broadcast_event)


def get_report_service(db: DbSession) -> ReportService:
    """Report service bound to the request's session."""
    return ReportService(db)
