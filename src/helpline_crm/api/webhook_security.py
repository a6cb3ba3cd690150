"""Webhook security and signature verification.

Twilio signs every webhook it sends with the account's auth token.
Requests to the status and recording callbacks are rejected unless the
X-Twilio-Signature header matches.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from helpline_crm.config import get_settings
from helpline_crm.core.exceptions import WebhookSecurityError
from helpline_crm.core.logging import get_logger

if TYPE_CHECKING:
    from fastapi import Request

log = get_logger(__name__)


@dataclass
class WebhookSecurityConfig:
    """Webhook security configuration."""

    validate_signatures: bool = True
    twilio_auth_token: str = ""
    twilio_signature_header: str = "X-Twilio-Signature"

    # Public base URL Twilio was given; the signed URL is rebuilt from it
    # because behind a proxy request.url shows the internal address
    public_base_url: str = ""


class TwilioSignatureValidator:
    """Validate Twilio webhook signatures.

    See: https://www.twilio.com/docs/usage/security

    Signature calculation:
    1. Take the full URL of the request
    2. If POST, sort parameters alphabetically and append name + value to the URL
    3. Compute HMAC-SHA1 of the result using the Auth Token as key
    4. Base64 encode the result
    """

    def __init__(self, auth_token: str) -> None:
        self.auth_token = auth_token

    def compute(
        self,
        url: str,
        params: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
    ) -> str:
        """Compute the expected signature for a URL and POST parameters.

        ``params`` may be a mapping or (key, value) pairs; a key sent more
        than once contributes each of its values, sorted.
        """
        data = url
        if params:
            items = params.items() if isinstance(params, Mapping) else params
            grouped: dict[str, set[str]] = {}
            for key, value in items:
                grouped.setdefault(str(key), set()).add(str(value))
            for key in sorted(grouped):
                for value in sorted(grouped[key]):
                    data += key + value

        return base64.b64encode(
            hmac.new(
                self.auth_token.encode("utf-8"),
                data.encode("utf-8"),
                hashlib.sha1,
            ).digest()
        ).decode("utf-8")

    def validate(
        self,
        signature: str,
        url: str,
        params: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
    ) -> bool:
        """Validate Twilio signature.

        Args:
            signature: Value from X-Twilio-Signature header
            url: Full request URL (including https://)
            params: POST parameters (if any)
        """
        if not self.auth_token:
            log.warning("Twilio auth token not configured")
            return False
        if not signature:
            return False

        return hmac.compare_digest(self.compute(url, params), signature)


class WebhookSecurityManager:
    """Validates incoming provider webhooks.

    Usage:
        security = WebhookSecurityManager(config)

        @router.post("/calls/status")
        async def status_callback(request: Request):
            await security.validate_twilio(request)
            ...
    """

    def __init__(self, config: WebhookSecurityConfig) -> None:
        self.config = config
        self._twilio = TwilioSignatureValidator(config.twilio_auth_token)

    def signed_url(self, request: "Request") -> str:
        """The URL Twilio signed for this request."""
        if self.config.public_base_url:
            url = self.config.public_base_url.rstrip("/") + request.url.path
            if request.url.query:
                url += "?" + request.url.query
            return url
        return str(request.url)

    async def validate_twilio(self, request: "Request") -> None:
        """Validate a Twilio webhook request.

        Raises:
            WebhookSecurityError: If validation fails
        """
        if not self.config.validate_signatures:
            return

        signature = request.headers.get(self.config.twilio_signature_header, "")
        params: list[tuple[str, Any]] = []
        if request.method == "POST":
            form = await request.form()
            params = form.multi_items()

        if not self._twilio.validate(signature, self.signed_url(request), params):
            log.warning("Invalid Twilio signature", path=str(request.url.path))
            raise WebhookSecurityError("Invalid Twilio signature")

        log.debug("Twilio webhook validated", path=str(request.url.path))


def get_webhook_security() -> WebhookSecurityManager:
    """FastAPI dependency building the manager from settings."""
    settings = get_settings()
    return WebhookSecurityManager(
        WebhookSecurityConfig(
            validate_signatures=settings.webhook_validate_signatures,
            twilio_auth_token=settings.twilio_auth_token or "",
            public_base_url=settings.telephony.twilio.base_url,
        )
    )
