"""Core utilities: logging setup and the exception hierarchy."""

from helpline_crm.core.exceptions import (
    HelplineError,
    RecordNotFoundError,
    InvalidRequestError,
    TelephonyError,
    TelephonyNotConfiguredError,
    WebhookSecurityError,
)
from helpline_crm.core.logging import get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Exceptions
    "HelplineError",
    "RecordNotFoundError",
    "InvalidRequestError",
    "TelephonyError",
    "TelephonyNotConfiguredError",
    "WebhookSecurityError",
]
