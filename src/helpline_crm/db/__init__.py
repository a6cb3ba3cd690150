"""Database module for the Helpline CRM.

Provides:
- SQLAlchemy ORM models for agents, patients, calls and appointments
- Async session management with dependency injection
- Repository pattern for data access
- Database initialization and lifecycle management
"""
from helpline_crm.db.base import (
    Base,
    UUIDMixin,
    TimestampMixin,
    as_utc,
    parse_uuid,
    utcnow,
)
from helpline_crm.db.session import (
    get_engine,
    get_session_factory,
    get_db,
    get_db_context,
    init_db,
    close_db,
    create_test_engine,
    get_test_session_factory,
)

__all__ = [
    # Base and mixins
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "as_utc",
    "parse_uuid",
    "utcnow",
    # Session management
    "get_engine",
    "get_session_factory",
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    "create_test_engine",
    "get_test_session_factory",
]
