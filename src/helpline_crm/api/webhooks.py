"""Twilio webhook endpoints.

Twilio reports call progress (initiated, ringing, answered, completed)
to the status callback and finished recordings to the recording
callback. Both are form-encoded and signed with X-Twilio-Signature.

The handlers only mirror what Twilio reports; call state is never
reordered or reconciled locally.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from helpline_crm.api.rate_limits import RateLimits, limiter
from helpline_crm.api.webhook_security import WebhookSecurityManager, get_webhook_security
from helpline_crm.core.logging import get_logger
from helpline_crm.dependencies import get_call_service
from helpline_crm.services.calls import CallService

log = get_logger(__name__)

router = APIRouter()


async def validate_twilio_webhook(
    request: Request,
    security: Annotated[WebhookSecurityManager, Depends(get_webhook_security)],
) -> None:
    """Dependency rejecting requests without a valid Twilio signature.

    Raises:
        WebhookSecurityError: Translated to 403 by the app's error handler
    """
    await security.validate_twilio(request)


@router.post("/calls/status", dependencies=[Depends(validate_twilio_webhook)])
@limiter.limit(RateLimits.WEBHOOK)
async def call_status_callback(
    request: Request,
    service: Annotated[CallService, Depends(get_call_service)],
) -> PlainTextResponse:
    """Mirror a Twilio call status event onto the call record."""
    form = await request.form()
    log.debug(
        "Twilio status callback",
        call_sid=form.get("CallSid"),
        status=form.get("CallStatus"),
    )

    await service.apply_status_callback(dict(form))
    return PlainTextResponse("OK")


@router.post("/calls/recording", dependencies=[Depends(validate_twilio_webhook)])
@limiter.limit(RateLimits.WEBHOOK)
async def call_recording_callback(
    request: Request,
    service: Annotated[CallService, Depends(get_call_service)],
) -> PlainTextResponse:
    """Store the recording URL of a finished call."""
    form = await request.form()
    await service.apply_recording_callback(dict(form))
    return PlainTextResponse("OK")
