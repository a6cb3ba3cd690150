"""Voice provider integration (Twilio)."""

from helpline_crm.integrations.voice.base import (
    VoiceCallRequest,
    VoiceCallResult,
    VoiceGateway,
)
from helpline_crm.integrations.voice.factory import (
    close_voice_gateway,
    get_voice_gateway,
    reset_voice_gateway,
)
from helpline_crm.integrations.voice.twilio import (
    TWILIO_STATUS_MAP,
    TwilioVoiceGateway,
    map_provider_status,
)
from helpline_crm.integrations.voice.twiml import build_twiml

__all__ = [
    "VoiceCallRequest",
    "VoiceCallResult",
    "VoiceGateway",
    "TwilioVoiceGateway",
    "TWILIO_STATUS_MAP",
    "map_provider_status",
    "build_twiml",
    "get_voice_gateway",
    "close_voice_gateway",
    "reset_voice_gateway",
]
