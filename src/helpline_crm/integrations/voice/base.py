"""Base Voice Gateway Interface.

Defines the abstract interface for outbound voice providers.
Signaling, media and recording stay with the provider; a gateway
only places, inspects and hangs up calls through its REST API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class VoiceCallRequest:
    """Outbound call to place."""

    to: str  # E.164 destination number
    from_number: str  # Caller ID owned by the account
    twiml_url: str  # URL the provider fetches call instructions from
    status_callback_url: str | None = None
    status_events: list[str] = field(
        default_factory=lambda: ["initiated", "ringing", "answered", "completed"]
    )
    record: bool = False
    recording_callback_url: str | None = None


@dataclass
class VoiceCallResult:
    """Provider view of a call after a REST operation."""

    sid: str
    status: str
    to: str | None = None
    from_number: str | None = None
    duration: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


class VoiceGateway(ABC):
    """Abstract base class for voice gateways.

    Implementations raise TelephonyError when the provider rejects
    a request or cannot be reached.
    """

    provider: str = "unknown"

    @abstractmethod
    async def create_call(self, request: VoiceCallRequest) -> VoiceCallResult:
        """Place an outbound call."""

    @abstractmethod
    async def end_call(self, sid: str) -> VoiceCallResult:
        """Hang up an in-progress call."""

    @abstractmethod
    async def get_call(self, sid: str) -> dict[str, Any] | None:
        """Fetch the provider's record of a call, None if unknown."""

    async def close(self) -> None:
        """Release network resources."""
