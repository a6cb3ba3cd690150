"""Call Service.

Glue between the dashboard, the voice provider and the database:
places outbound calls, mirrors provider webhooks into call rows and
hangs calls up. Every state change is appended to the call's event log
and pushed to connected dashboards.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Mapping
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.config import Settings, get_settings
from helpline_crm.core.exceptions import (
    RecordNotFoundError,
    TelephonyNotConfiguredError,
)
from helpline_crm.core.logging import get_logger
from helpline_crm.db.base import as_utc, utcnow
from helpline_crm.db.models.core import TERMINAL_CALL_STATUSES, CallModel
from helpline_crm.db.repositories.agents import AgentRepository
from helpline_crm.db.repositories.calls import CallLogRepository, CallRepository
from helpline_crm.db.repositories.patients import PatientRepository
from helpline_crm.integrations.voice.base import VoiceCallRequest, VoiceGateway
from helpline_crm.integrations.voice.twilio import map_provider_status

log = get_logger(__name__)

Broadcaster = Callable[[str, dict[str, Any]], Awaitable[None]]

NOT_CONFIGURED_MESSAGE = (
    "Twilio not configured. Please set up Twilio credentials in .env file."
)


async def _no_broadcast(event: str, data: dict[str, Any]) -> None:
    return None


def generate_call_code(now_ms: int | None = None) -> str:
    """Application call id: ``C`` followed by epoch milliseconds."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"C{now_ms}"


def _parse_duration(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError):
        return None


class CallService:
    """Service for outbound call lifecycle management.

    Usage:
        service = CallService(session, gateway, broadcast=broadcast_event)
        result = await service.initiate_call(to="+15551234567")
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: VoiceGateway | None,
        *,
        settings: Settings | None = None,
        broadcast: Broadcaster | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: SQLAlchemy async session
            gateway: Voice gateway, None when telephony is not configured
            settings: Application settings (default: get_settings())
            broadcast: Coroutine pushing events to dashboards
        """
        self.session = session
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.broadcast = broadcast or _no_broadcast

        self.calls = CallRepository(session)
        self.logs = CallLogRepository(session)
        self.patients = PatientRepository(session)
        self.agents = AgentRepository(session)

    def _require_gateway(self) -> VoiceGateway:
        if self.gateway is None:
            raise TelephonyNotConfiguredError(NOT_CONFIGURED_MESSAGE)
        return self.gateway

    def _callback_url(self, path: str) -> str:
        return self.settings.telephony.twilio.base_url.rstrip("/") + path

    async def _unique_call_code(self) -> str:
        now_ms = int(time.time() * 1000)
        code = generate_call_code(now_ms)
        while await self.calls.find_one(call_code=code) is not None:
            now_ms += 1
            code = generate_call_code(now_ms)
        return code

    # =========================================================================
    # Outbound calls
    # =========================================================================

    async def initiate_call(
        self,
        to: str,
        *,
        from_number: str | None = None,
        agent_id: UUID | str | None = None,
        call_type: str = "general",
        patient_id: UUID | str | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Place an outbound call and record it.

        Returns:
            ``{"callId", "twilioSid", "status"}`` where status is the
            provider's status for the new call.

        Raises:
            TelephonyNotConfiguredError: No Twilio credentials
            RecordNotFoundError: Unknown patient or agent
            TelephonyError: Twilio rejected the call
        """
        gateway = self._require_gateway()
        twilio = self.settings.telephony.twilio

        patient = None
        if patient_id:
            patient = await self.patients.get_by_identifier(patient_id)
            if patient is None:
                raise RecordNotFoundError("Patient not found", details={"patient_id": str(patient_id)})
        else:
            patient = await self.patients.find_by_phone(to)

        agent = None
        if agent_id:
            agent = await self.agents.get(agent_id)
            if agent is None:
                raise RecordNotFoundError("Agent not found", details={"agent_id": str(agent_id)})

        result = await gateway.create_call(
            VoiceCallRequest(
                to=to,
                from_number=from_number or twilio.from_number,
                twiml_url=self._callback_url("/api/calls/twiml"),
                status_callback_url=self._callback_url("/api/calls/status"),
                record=twilio.record,
                recording_callback_url=self._callback_url("/api/calls/recording"),
            )
        )

        now = utcnow()
        call = await self.calls.create(
            CallModel(
                call_code=await self._unique_call_code(),
                provider_sid=result.sid or None,
                patient_id=patient.id if patient else None,
                agent_id=agent.id if agent else None,
                phone_number=to,
                call_type=call_type or "general",
                status="initiated",
                notes=notes,
                call_start=now,
            )
        )

        if patient is not None:
            patient.last_contact = now
            await self.patients.save(patient)

        await self.logs.log_event(
            call.id,
            "call_initiated",
            {"to": to, "twilio_sid": result.sid, "twilio_status": result.status},
        )

        log.info(
            "Call initiated",
            call_id=call.call_code,
            call_sid=result.sid,
            call_type=call.call_type,
            patient=patient.patient_code if patient else None,
        )

        await self.broadcast(
            "call_initiated",
            {
                "callId": call.call_code,
                "twilioSid": result.sid,
                "to": to,
                "status": "initiated",
            },
        )

        return {
            "callId": call.call_code,
            "twilioSid": result.sid,
            "status": result.status,
        }

    async def end_call(self, reference: str) -> CallModel:
        """Hang up a call by call code or provider SID.

        Raises:
            TelephonyNotConfiguredError: No Twilio credentials
            RecordNotFoundError: Unknown call
            TelephonyError: Twilio rejected the hangup
        """
        gateway = self._require_gateway()

        call = await self.calls.find_by_reference(reference)
        if call is None:
            raise RecordNotFoundError("Call not found", details={"call": reference})

        sid = call.provider_sid or reference
        await gateway.end_call(sid)

        now = utcnow()
        call.status = "completed"
        call.call_end = now
        if not call.duration and call.call_start is not None:
            call.duration = max(int((now - as_utc(call.call_start)).total_seconds()), 0)
        call = await self.calls.save(call)

        await self.logs.log_event(call.id, "call_ended", {"ended_by": "agent"})
        log.info("Call ended", call_id=call.call_code, duration=call.duration)

        await self.broadcast(
            "call_status_update",
            {
                "callSid": call.provider_sid,
                "callId": call.call_code,
                "status": call.status,
                "duration": call.duration,
            },
        )
        return call

    async def update_notes(self, reference: str, notes: str | None) -> CallModel:
        """Replace the agent's notes on a call."""
        call = await self.calls.find_by_reference(reference)
        if call is None:
            raise RecordNotFoundError("Call not found", details={"call": reference})

        call.notes = notes
        return await self.calls.save(call)

    # =========================================================================
    # Provider webhooks
    # =========================================================================

    async def apply_status_callback(self, form: Mapping[str, Any]) -> CallModel | None:
        """Mirror a Twilio status callback onto the call row.

        Unknown call SIDs are logged and ignored so Twilio stops retrying.
        """
        call_sid = str(form.get("CallSid", ""))
        provider_status = form.get("CallStatus")
        duration = _parse_duration(form.get("CallDuration"))

        call = await self.calls.find_by_provider_sid(call_sid)
        if call is None:
            log.warning("Status callback for unknown call", call_sid=call_sid, status=provider_status)
            return None

        status = map_provider_status(provider_status)
        if status is not None:
            call.status = status
            if status in TERMINAL_CALL_STATUSES and call.call_end is None:
                call.call_end = utcnow()
        else:
            log.warning("Unmapped Twilio call status", call_sid=call_sid, status=provider_status)

        if duration is not None:
            call.duration = duration

        call = await self.calls.save(call)
        await self.logs.log_event(call.id, "status_update", dict(form))

        log.info(
            "Call status updated",
            call_id=call.call_code,
            call_sid=call_sid,
            twilio_status=provider_status,
            status=call.status,
        )

        await self.broadcast(
            "call_status_update",
            {
                "callSid": call_sid,
                "callId": call.call_code,
                "status": call.status,
                "duration": call.duration,
            },
        )
        return call

    async def apply_recording_callback(self, form: Mapping[str, Any]) -> CallModel | None:
        """Store the recording URL Twilio reports for a call."""
        call_sid = str(form.get("CallSid", ""))
        recording_url = form.get("RecordingUrl")

        call = await self.calls.find_by_provider_sid(call_sid)
        if call is None:
            log.warning("Recording callback for unknown call", call_sid=call_sid)
            return None

        if recording_url:
            call.recording_url = str(recording_url)
            call = await self.calls.save(call)

        await self.logs.log_event(call.id, "recording", dict(form))
        log.info("Call recording stored", call_id=call.call_code, call_sid=call_sid)
        return call
