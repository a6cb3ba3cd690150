"""Voice Gateway Factory.

Creates the Twilio voice gateway from configuration. Unlike SMS there is
no mock fallback: without credentials calls cannot be placed at all.
"""

from __future__ import annotations

from helpline_crm.config import get_settings
from helpline_crm.core.logging import get_logger
from helpline_crm.integrations.voice.base import VoiceGateway

log = get_logger(__name__)


# Singleton instance
_voice_gateway: VoiceGateway | None = None


def get_voice_gateway() -> VoiceGateway | None:
    """Get the configured voice gateway.

    Returns:
        Gateway instance, or None when Twilio is not configured.
    """
    global _voice_gateway

    if _voice_gateway is not None:
        return _voice_gateway

    twilio_config = get_settings().telephony.twilio
    if not twilio_config.is_configured:
        log.warning("Twilio credentials not configured, outbound calls disabled")
        return None

    from helpline_crm.integrations.voice.twilio import TwilioVoiceGateway

    _voice_gateway = TwilioVoiceGateway(
        account_sid=twilio_config.account_sid,
        auth_token=twilio_config.auth_token,
    )
    log.info("Twilio voice gateway initialized", from_number=twilio_config.from_number)
    return _voice_gateway


async def close_voice_gateway() -> None:
    """Close the gateway's HTTP client, if one was created."""
    global _voice_gateway

    if _voice_gateway is not None:
        await _voice_gateway.close()
        _voice_gateway = None


def reset_voice_gateway() -> None:
    """Reset the voice gateway (for testing)."""
    global _voice_gateway
    _voice_gateway = None
