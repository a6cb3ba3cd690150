"""Tests for the Twilio voice gateway and TwiML."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from helpline_crm.core.exceptions import TelephonyError
from helpline_crm.integrations.voice import factory as voice_factory
from helpline_crm.integrations.voice import (
    TwilioVoiceGateway,
    VoiceCallRequest,
    build_twiml,
    close_voice_gateway,
    get_voice_gateway,
    map_provider_status,
    reset_voice_gateway,
)

ACCOUNT_SID = "AC00000000000000000000000000000000"


def make_gateway(handler) -> TwilioVoiceGateway:
    """Gateway whose HTTP client is served by ``handler``."""
    client = httpx.AsyncClient(
        base_url=f"{TwilioVoiceGateway.API_BASE}/Accounts/{ACCOUNT_SID}",
        auth=httpx.BasicAuth(ACCOUNT_SID, "test_auth_token"),
        transport=httpx.MockTransport(handler),
    )
    return TwilioVoiceGateway(ACCOUNT_SID, "test_auth_token", client=client)


def call_request(**overrides) -> VoiceCallRequest:
    values = {
        "to": "+15557654321",
        "from_number": "+15550001111",
        "twiml_url": "https://helpline.example.com/api/calls/twiml",
        "status_callback_url": "https://helpline.example.com/api/calls/status",
        "record": True,
        "recording_callback_url": "https://helpline.example.com/api/calls/recording",
    }
    values.update(overrides)
    return VoiceCallRequest(**values)


# ============================================================================
# Status Mapping
# ============================================================================

class TestStatusMapping:
    """Tests for Twilio status mapping."""

    @pytest.mark.parametrize(
        "twilio_status,expected",
        [
            ("queued", "initiated"),
            ("initiated", "initiated"),
            ("ringing", "ringing"),
            ("in-progress", "connected"),
            ("answered", "connected"),
            ("completed", "completed"),
            ("busy", "failed"),
            ("failed", "failed"),
            ("no-answer", "missed"),
            ("canceled", "missed"),
        ],
    )
    def test_known_statuses(self, twilio_status, expected):
        assert map_provider_status(twilio_status) == expected

    def test_case_insensitive(self):
        assert map_provider_status("In-Progress") == "connected"

    def test_unknown_status(self):
        assert map_provider_status("paused") is None
        assert map_provider_status(None) is None
        assert map_provider_status("") is None


# ============================================================================
# REST Calls
# ============================================================================

class TestTwilioVoiceGateway:
    """Tests for TwilioVoiceGateway against a mocked Twilio API."""

    @pytest.mark.asyncio
    async def test_create_call(self):
        """Test the Calls resource receives the expected form fields."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization", "")
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(
                201,
                json={
                    "sid": "CA123",
                    "status": "queued",
                    "to": "+15557654321",
                    "from": "+15550001111",
                    "duration": None,
                },
            )

        gateway = make_gateway(handler)
        result = await gateway.create_call(call_request())
        await gateway.close()

        assert result.sid == "CA123"
        assert result.status == "queued"
        assert result.duration is None

        assert seen["method"] == "POST"
        assert seen["path"] == f"/2010-04-01/Accounts/{ACCOUNT_SID}/Calls.json"
        assert seen["auth"].startswith("Basic ")

        form = seen["form"]
        assert form["To"] == ["+15557654321"]
        assert form["From"] == ["+15550001111"]
        assert form["Url"] == ["https://helpline.example.com/api/calls/twiml"]
        assert form["StatusCallback"] == ["https://helpline.example.com/api/calls/status"]
        assert form["StatusCallbackEvent"] == ["initiated", "ringing", "answered", "completed"]
        assert form["Record"] == ["true"]
        assert form["RecordingStatusCallback"] == ["https://helpline.example.com/api/calls/recording"]

    @pytest.mark.asyncio
    async def test_create_call_without_recording(self):
        """Test recording fields are omitted when recording is off."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "CA123", "status": "queued"})

        gateway = make_gateway(handler)
        await gateway.create_call(call_request(record=False))

        assert "Record" not in seen["form"]
        assert "RecordingStatusCallback" not in seen["form"]

    @pytest.mark.asyncio
    async def test_create_call_rejected(self):
        """Test a Twilio error response raises TelephonyError with its code."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"code": 21211, "message": "The 'To' number is not a valid phone number."},
            )

        gateway = make_gateway(handler)

        with pytest.raises(TelephonyError) as exc_info:
            await gateway.create_call(call_request(to="+1"))

        error = exc_info.value
        assert error.status_code == 502
        assert "not a valid phone number" in error.message
        assert error.details["provider_code"] == "21211"
        assert error.details["http_status"] == 400

    @pytest.mark.asyncio
    async def test_create_call_non_json_error(self):
        """Test an error body that is not JSON still raises cleanly."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        gateway = make_gateway(handler)

        with pytest.raises(TelephonyError) as exc_info:
            await gateway.create_call(call_request())

        assert exc_info.value.message == "HTTP 503"

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test connection failures are wrapped in TelephonyError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(handler)

        with pytest.raises(TelephonyError) as exc_info:
            await gateway.create_call(call_request())

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test timeouts are reported as TelephonyError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        gateway = make_gateway(handler)

        with pytest.raises(TelephonyError, match="timed out"):
            await gateway.create_call(call_request())

    @pytest.mark.asyncio
    async def test_end_call(self):
        """Test hanging up posts Status=completed to the call resource."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"sid": "CA123", "status": "completed", "duration": "61"})

        gateway = make_gateway(handler)
        result = await gateway.end_call("CA123")

        assert seen["path"].endswith("/Calls/CA123.json")
        assert seen["form"] == {"Status": ["completed"]}
        assert result.status == "completed"
        assert result.duration == 61

    @pytest.mark.asyncio
    async def test_get_call(self):
        """Test fetching a call returns Twilio's resource, None when missing."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/CA123.json"):
                return httpx.Response(200, json={"sid": "CA123", "status": "in-progress"})
            return httpx.Response(404, json={"code": 20404, "message": "Not found"})

        gateway = make_gateway(handler)

        assert (await gateway.get_call("CA123"))["status"] == "in-progress"
        assert await gateway.get_call("CA404") is None


# ============================================================================
# Gateway Factory
# ============================================================================

class TestVoiceGatewayFactory:
    """Tests for the voice gateway singleton."""

    @pytest.fixture(autouse=True)
    def clean_singleton(self):
        reset_voice_gateway()
        yield
        reset_voice_gateway()

    def test_not_configured(self, monkeypatch):
        from helpline_crm.config import Settings

        monkeypatch.setattr(voice_factory, "get_settings", lambda: Settings())

        assert get_voice_gateway() is None

    @pytest.mark.asyncio
    async def test_singleton(self, monkeypatch, twilio_settings):
        monkeypatch.setattr(voice_factory, "get_settings", lambda: twilio_settings)

        gateway = get_voice_gateway()

        assert isinstance(gateway, TwilioVoiceGateway)
        assert gateway.account_sid == ACCOUNT_SID
        assert get_voice_gateway() is gateway

        await close_voice_gateway()
        assert get_voice_gateway() is not gateway


# ============================================================================
# TwiML
# ============================================================================

class TestTwiml:
    """Tests for the answer TwiML."""

    def test_greeting_and_dial(self):
        twiml = build_twiml("Hello, caller", "alice", "+15550002222")

        assert twiml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<Say voice="alice">Hello, caller</Say>' in twiml
        assert "<Dial><Number>+15550002222</Number></Dial>" in twiml
        assert twiml.endswith("</Response>")

    def test_without_agent_phone(self):
        twiml = build_twiml("Hello", "alice", "")

        assert "<Dial>" not in twiml

    def test_greeting_is_escaped(self):
        twiml = build_twiml("Tom & Jerry <clinic>", "alice", None)

        assert "Tom &amp; Jerry &lt;clinic&gt;" in twiml
