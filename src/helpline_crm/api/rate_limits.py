"""Rate limiting configuration for API endpoints.

Provides rate limiting using slowapi to prevent abuse. Outbound calls
cost money per minute, so initiation is the tightest limit.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from helpline_crm.config import get_settings


# Rate limiter instance - shared across the application
limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)


class RateLimits:
    """Rate limit constants for different endpoint types."""

    # Standard read operations
    READ = "60/minute"

    # Write operations (create, update)
    WRITE = "30/minute"

    # Agent login
    SENSITIVE = "10/minute"

    # Outbound calls (expensive operation)
    OUTBOUND_CALL = "5/minute"

    # Webhooks (high volume from Twilio)
    WEBHOOK = "200/minute"

    # Reports and CSV exports
    ANALYTICS = "20/minute"

    # Health checks (allow frequent polling)
    HEALTH = "300/minute"
