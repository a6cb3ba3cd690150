"""TwiML documents served to Twilio."""

from __future__ import annotations

from xml.sax.saxutils import escape, quoteattr


def build_twiml(greeting: str, voice: str, agent_phone: str | None) -> str:
    """Greet the caller, then bridge them to the agent phone.

    Without an agent phone the caller only hears the greeting.
    """
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        "<Response>",
        f"<Say voice={quoteattr(voice)}>{escape(greeting)}</Say>",
    ]
    if agent_phone:
        parts.append(f"<Dial><Number>{escape(agent_phone)}</Number></Dial>")
    parts.append("</Response>")
    return "\n".join(parts)
