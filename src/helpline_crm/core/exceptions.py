"""Helpline CRM Exception Hierarchy.

Provides structured error handling with context preservation
and proper HTTP status code mapping.
"""

from __future__ import annotations

from typing import Any


class HelplineError(Exception):
    """Base exception for all Helpline CRM errors.

    Provides:
    - Structured error context
    - HTTP status code mapping
    - Logging-friendly representation
    """

    status_code: int = 500
    error_code: str = "HELPLINE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Additional context for debugging
            cause: Original exception if wrapping
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API error envelope."""
        result: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """String representation for logging."""
        parts = [f"{self.error_code}: {self.message}"]
        if self.details:
            parts.append(f"details={self.details}")
        if self.cause:
            parts.append(f"cause={self.cause}")
        return " | ".join(parts)


# =============================================================================
# Database Errors
# =============================================================================


class RecordNotFoundError(HelplineError):
    """Requested record not found."""

    status_code = 404
    error_code = "RECORD_NOT_FOUND"


# =============================================================================
# Request Errors
# =============================================================================


class InvalidRequestError(HelplineError):
    """Request is well-formed but semantically invalid."""

    status_code = 400
    error_code = "INVALID_REQUEST"


# =============================================================================
# Telephony Errors
# =============================================================================


class TelephonyError(HelplineError):
    """The telephony provider rejected or failed a request."""

    status_code = 502
    error_code = "TELEPHONY_ERROR"


class TelephonyNotConfiguredError(TelephonyError):
    """No telephony credentials are configured."""

    status_code = 503
    error_code = "TELEPHONY_NOT_CONFIGURED"


# =============================================================================
# Security Errors
# =============================================================================


class WebhookSecurityError(HelplineError):
    """Webhook request failed signature validation."""

    status_code = 403
    error_code = "INVALID_SIGNATURE"
