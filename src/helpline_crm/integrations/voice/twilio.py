"""Twilio Voice Gateway Implementation.

Places and controls outbound calls through the Twilio Programmable
Voice REST API. Call progress arrives separately through the status
callback webhook.

API Documentation: https://www.twilio.com/docs/voice/api/call-resource
"""
from __future__ import annotations

from typing import Any

import httpx

from helpline_crm.core.exceptions import TelephonyError
from helpline_crm.core.logging import get_logger
from helpline_crm.integrations.voice.base import (
    VoiceCallRequest,
    VoiceCallResult,
    VoiceGateway,
)

log = get_logger(__name__)


# Twilio call status to our call status mapping
TWILIO_STATUS_MAP: dict[str, str] = {
    "queued": "initiated",
    "initiated": "initiated",
    "ringing": "ringing",
    "in-progress": "connected",
    "answered": "connected",
    "completed": "completed",
    "busy": "failed",
    "failed": "failed",
    "no-answer": "missed",
    "canceled": "missed",
}


def map_provider_status(provider_status: str | None) -> str | None:
    """Map a Twilio CallStatus onto the call status column.

    Returns None for statuses we do not track, leaving the column as is.
    """
    if not provider_status:
        return None
    return TWILIO_STATUS_MAP.get(provider_status.strip().lower())


class TwilioVoiceGateway(VoiceGateway):
    """Twilio voice gateway implementation.

    Status Callback Flow:
    1. Call queued by Twilio (create_call returns)
    2. Twilio posts initiated, ringing, answered, completed events
    3. Each event lands on /api/calls/status and is mirrored to the DB

    Attributes:
        account_sid: Twilio Account SID
        auth_token: Twilio Auth Token
    """

    API_BASE = "https://api.twilio.com/2010-04-01"

    provider = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Twilio voice gateway.

        Args:
            account_sid: Twilio Account SID
            auth_token: Twilio Auth Token
            timeout: HTTP request timeout
            client: Preconfigured HTTP client (tests)
        """
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.timeout = timeout

        self._client = client or httpx.AsyncClient(
            base_url=f"{self.API_BASE}/Accounts/{account_sid}",
            auth=httpx.BasicAuth(account_sid, auth_token),
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def create_call(self, request: VoiceCallRequest) -> VoiceCallResult:
        """Place an outbound call via the Calls resource.

        Raises:
            TelephonyError: If Twilio rejects the call or is unreachable
        """
        data: dict[str, Any] = {
            "To": request.to,
            "From": request.from_number,
            "Url": request.twiml_url,
        }

        if request.status_callback_url:
            data["StatusCallback"] = request.status_callback_url
            data["StatusCallbackMethod"] = "POST"
            # httpx repeats the key once per list item
            data["StatusCallbackEvent"] = list(request.status_events)

        if request.record:
            data["Record"] = "true"
            if request.recording_callback_url:
                data["RecordingStatusCallback"] = request.recording_callback_url
                data["RecordingStatusCallbackEvent"] = "completed"

        payload = await self._request("POST", "/Calls.json", data=data, context={"to": request.to})
        result = self._to_result(payload)

        log.info(
            "Call placed via Twilio",
            call_sid=result.sid,
            to=request.to,
            status=result.status,
        )
        return result

    async def end_call(self, sid: str) -> VoiceCallResult:
        """Hang up a call by moving it to the completed status.

        Raises:
            TelephonyError: If Twilio rejects the update or is unreachable
        """
        payload = await self._request(
            "POST",
            f"/Calls/{sid}.json",
            data={"Status": "completed"},
            context={"call_sid": sid},
        )
        result = self._to_result(payload)
        log.info("Call ended via Twilio", call_sid=sid, status=result.status)
        return result

    async def get_call(self, sid: str) -> dict[str, Any] | None:
        """Get full call details from Twilio.

        Returns:
            Call resource dict or None on error
        """
        try:
            response = await self._client.get(f"/Calls/{sid}.json")
        except httpx.HTTPError as e:
            log.error("Twilio get call error", call_sid=sid, error=str(e))
            return None

        if response.status_code == 200:
            return response.json()

        log.warning(
            "Failed to get Twilio call",
            call_sid=sid,
            status_code=response.status_code,
        )
        return None

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    # ========================================================================
    # Internals
    # ========================================================================

    async def _request(
        self,
        method: str,
        url: str,
        *,
        data: dict[str, Any],
        context: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, data=data)
        except httpx.TimeoutException as e:
            log.error("Twilio request timeout", url=url, **context)
            raise TelephonyError("Twilio request timed out", details=context, cause=e) from e
        except httpx.HTTPError as e:
            log.error("Twilio HTTP error", url=url, error=str(e), **context)
            raise TelephonyError(f"Twilio request failed: {e}", details=context, cause=e) from e

        if response.status_code in (200, 201):
            return response.json()

        # Error response - safely parse JSON
        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            error_data = {}
        error_code = str(error_data.get("code", response.status_code))
        error_message = error_data.get("message", f"HTTP {response.status_code}")

        log.error(
            "Twilio request rejected",
            url=url,
            status_code=response.status_code,
            error_code=error_code,
            error=error_message,
            **context,
        )
        raise TelephonyError(
            error_message,
            details={**context, "provider_code": error_code, "http_status": response.status_code},
        )

    @staticmethod
    def _to_result(payload: dict[str, Any]) -> VoiceCallResult:
        duration = payload.get("duration")
        return VoiceCallResult(
            sid=payload.get("sid", ""),
            status=payload.get("status", "queued"),
            to=payload.get("to"),
            from_number=payload.get("from"),
            duration=int(duration) if duration not in (None, "") else None,
            raw=payload,
        )
