"""104 Medical Helpline call-center CRM."""

__version__ = "0.1.0"
