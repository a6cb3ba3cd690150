"""Tests for Twilio webhook signature validation."""

from __future__ import annotations

import base64
import hashlib
import hmac

import pytest

from helpline_crm.api.webhook_security import (
    TwilioSignatureValidator,
    WebhookSecurityConfig,
    WebhookSecurityManager,
    get_webhook_security,
)

AUTH_TOKEN = "12345"
STATUS_URL = "https://helpline.example.com/api/calls/status"
FORM = {"CallSid": "CA123", "CallStatus": "ringing", "To": "+15557654321"}


def reference_signature(token: str, url: str, params: dict) -> str:
    data = url + "".join(f"{k}{params[k]}" for k in sorted(params))
    digest = hmac.new(token.encode(), data.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


class TestTwilioSignatureValidator:
    """Tests for TwilioSignatureValidator."""

    def test_compute_matches_algorithm(self):
        validator = TwilioSignatureValidator(AUTH_TOKEN)

        assert validator.compute(STATUS_URL, FORM) == reference_signature(AUTH_TOKEN, STATUS_URL, FORM)

    def test_params_sorted(self):
        """Test parameter order does not change the signature."""
        validator = TwilioSignatureValidator(AUTH_TOKEN)
        reordered = dict(reversed(list(FORM.items())))

        assert validator.compute(STATUS_URL, FORM) == validator.compute(STATUS_URL, reordered)

    def test_repeated_keys_sign_every_value(self):
        validator = TwilioSignatureValidator(AUTH_TOKEN)
        pairs = [
            ("StatusCallbackEvent", "ringing"),
            ("StatusCallbackEvent", "answered"),
            ("CallSid", "CA1"),
        ]
        data = STATUS_URL + "CallSidCA1" + "StatusCallbackEventanswered" + "StatusCallbackEventringing"
        digest = hmac.new(AUTH_TOKEN.encode(), data.encode(), hashlib.sha1).digest()

        assert validator.compute(STATUS_URL, pairs) == base64.b64encode(digest).decode()
        assert validator.compute(STATUS_URL, pairs) != validator.compute(STATUS_URL, dict(pairs))

    def test_validate(self):
        validator = TwilioSignatureValidator(AUTH_TOKEN)
        signature = validator.compute(STATUS_URL, FORM)

        assert validator.validate(signature, STATUS_URL, FORM) is True
        assert validator.validate(signature, STATUS_URL, {**FORM, "CallStatus": "completed"}) is False
        assert validator.validate(signature, STATUS_URL.replace("https", "http"), FORM) is False

    def test_missing_signature_or_token(self):
        signature = TwilioSignatureValidator(AUTH_TOKEN).compute(STATUS_URL, FORM)

        assert TwilioSignatureValidator(AUTH_TOKEN).validate("", STATUS_URL, FORM) is False
        assert TwilioSignatureValidator("").validate(signature, STATUS_URL, FORM) is False


class TestWebhookEndpointsSecurity:
    """Signature enforcement on the status callback."""

    @pytest.fixture
    def secured_app(self, app):
        """App validating signatures against the public base URL."""
        app.dependency_overrides[get_webhook_security] = lambda: WebhookSecurityManager(
            WebhookSecurityConfig(
                validate_signatures=True,
                twilio_auth_token=AUTH_TOKEN,
                public_base_url="https://helpline.example.com",
            )
        )
        return app

    @pytest.mark.asyncio
    async def test_valid_signature_accepted(self, secured_app, client, sample_call):
        form = {"CallSid": sample_call.provider_sid, "CallStatus": "in-progress"}
        signature = reference_signature(AUTH_TOKEN, STATUS_URL, form)

        response = await client.post(
            "/api/calls/status",
            data=form,
            headers={"X-Twilio-Signature": signature},
        )

        assert response.status_code == 200
        assert response.text == "OK"

    @pytest.mark.asyncio
    async def test_invalid_signature_rejected(self, secured_app, client, sample_call):
        response = await client.post(
            "/api/calls/status",
            data={"CallSid": sample_call.provider_sid, "CallStatus": "completed"},
            headers={"X-Twilio-Signature": "bogus"},
        )

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "INVALID_SIGNATURE"

    @pytest.mark.asyncio
    async def test_missing_signature_rejected(self, secured_app, client, sample_call, call_repository):
        response = await client.post(
            "/api/calls/status",
            data={"CallSid": sample_call.provider_sid, "CallStatus": "completed"},
        )

        assert response.status_code == 403
        call = await call_repository.get(sample_call.id)
        assert call.status == "ringing"

    @pytest.mark.asyncio
    async def test_repeated_form_keys_accepted(self, secured_app, client, sample_call):
        """Test every value of a repeated form key is covered by the signature."""
        pairs = [
            ("CallSid", sample_call.provider_sid),
            ("CallStatus", "in-progress"),
            ("StatusCallbackEvent", "ringing"),
            ("StatusCallbackEvent", "answered"),
        ]
        validator = TwilioSignatureValidator(AUTH_TOKEN)

        response = await client.post(
            "/api/calls/status",
            data={
                "CallSid": sample_call.provider_sid,
                "CallStatus": "in-progress",
                "StatusCallbackEvent": ["ringing", "answered"],
            },
            headers={"X-Twilio-Signature": validator.compute(STATUS_URL, pairs)},
        )

        assert response.status_code == 200
        assert response.text == "OK"
