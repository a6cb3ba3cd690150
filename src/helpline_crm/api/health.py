"""Health check endpoint."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text

from helpline_crm.api.rate_limits import RateLimits, limiter
from helpline_crm.config import get_settings
from helpline_crm.core.logging import get_logger
from helpline_crm.dependencies import DbSession, get_gateway
from helpline_crm.integrations.voice import VoiceGateway

log = get_logger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    timestamp: str
    database: str
    telephony: str


@router.get("/health")
@limiter.limit(RateLimits.HEALTH)
async def health_check(
    request: Request,
    db: DbSession,
    gateway: Annotated[VoiceGateway | None, Depends(get_gateway)],
) -> HealthResponse:
    """Report service liveness plus database and Twilio status.

    The service stays "healthy" while the database answers; Twilio being
    unconfigured only disables outbound calling.
    """
    settings = get_settings()

    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        log.error("Database health check failed", error=str(e))
        database = "error"

    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        service=settings.service_name,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=database,
        telephony="configured" if gateway is not None else "not_configured",
    )
