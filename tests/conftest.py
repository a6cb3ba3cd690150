"""Pytest configuration and fixtures for Helpline CRM tests."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

# Set test environment before any helpline_crm import reads settings
os.environ["HELPLINE_ENV"] = "test"
os.environ["HELPLINE_CONFIG_DIR"] = str(Path(__file__).parent.parent / "configs")


@pytest.fixture
def twilio_settings():
    """Settings with Twilio configured."""
    from helpline_crm.config import Settings

    return Settings(
        environment="test",
        debug=True,
        telephony={
            "twilio": {
                "account_sid": "AC00000000000000000000000000000000",
                "auth_token": "test_auth_token",
                "from_number": "+15550001111",
                "agent_phone": "+15550002222",
                "base_url": "https://helpline.example.com",
            },
        },
    )


# ============================================================================
# Async Database Fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Fresh in-memory SQLite database for each test function."""
    from helpline_crm.db import create_test_engine

    engine = await create_test_engine()

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator:
    """Test database session, rolled back after each test."""
    from helpline_crm.db import get_test_session_factory

    async_session_factory = get_test_session_factory(db_engine)

    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def patient_repository(db_session):
    """Create PatientRepository instance for testing."""
    from helpline_crm.db.repositories import PatientRepository

    return PatientRepository(db_session)


@pytest_asyncio.fixture
async def agent_repository(db_session):
    """Create AgentRepository instance for testing."""
    from helpline_crm.db.repositories import AgentRepository

    return AgentRepository(db_session)


@pytest_asyncio.fixture
async def call_repository(db_session):
    """Create CallRepository instance for testing."""
    from helpline_crm.db.repositories import CallRepository

    return CallRepository(db_session)


@pytest_asyncio.fixture
async def call_log_repository(db_session):
    """Create CallLogRepository instance for testing."""
    from helpline_crm.db.repositories import CallLogRepository

    return CallLogRepository(db_session)


@pytest_asyncio.fixture
async def appointment_repository(db_session):
    """Create AppointmentRepository instance for testing."""
    from helpline_crm.db.repositories import AppointmentRepository

    return AppointmentRepository(db_session)


@pytest_asyncio.fixture
async def sample_patient(db_session, patient_repository):
    """Create a sample patient for testing."""
    from helpline_crm.db.models import PatientModel

    patient = PatientModel(
        patient_code="P0001",
        name="John Smith",
        phone="+1234567890",
        email="john.smith@email.com",
        address="123 Main St, City",
        medical_history="Hypertension, Diabetes Type 2",
        priority="medium",
    )

    await patient_repository.create(patient)
    await db_session.commit()

    return patient


@pytest_asyncio.fixture
async def sample_agent(db_session, agent_repository):
    """Create a sample agent for testing."""
    from helpline_crm.db.models import AgentModel

    agent = AgentModel(
        name="Priya Raman",
        email="priya@helpline.example.com",
        status="online",
    )

    await agent_repository.create(agent)
    await db_session.commit()

    return agent


@pytest_asyncio.fixture
async def sample_call(db_session, call_repository, sample_patient, sample_agent):
    """Create a sample ringing call for testing."""
    from helpline_crm.db.models import CallModel

    call = CallModel(
        call_code="C1734345000000",
        provider_sid="CA1111111111111111111111111111111",
        patient_id=sample_patient.id,
        agent_id=sample_agent.id,
        phone_number=sample_patient.phone,
        call_type="emergency",
        status="ringing",
        call_start=datetime.now(timezone.utc),
    )

    await call_repository.create(call)
    await db_session.commit()

    return call


# ============================================================================
# Telephony Fixtures
# ============================================================================

@pytest.fixture
def mock_gateway():
    """Voice gateway double returning a queued Twilio call."""
    from helpline_crm.integrations.voice import VoiceCallResult, VoiceGateway

    gateway = AsyncMock(spec=VoiceGateway)
    gateway.create_call.return_value = VoiceCallResult(
        sid="CA2222222222222222222222222222222",
        status="queued",
        to="+1234567890",
        from_number="+15550001111",
    )
    gateway.end_call.return_value = VoiceCallResult(
        sid="CA2222222222222222222222222222222",
        status="completed",
    )
    gateway.get_call.return_value = None
    return gateway


@pytest.fixture
def broadcast():
    """Recording broadcaster."""
    return AsyncMock()


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def app(db_session, mock_gateway):
    """Application wired to the test session and gateway double.

    Webhook signature validation is disabled; tests that exercise it
    override ``get_webhook_security`` themselves.
    """
    from helpline_crm.api.rate_limits import limiter
    from helpline_crm.api.webhook_security import (
        WebhookSecurityConfig,
        WebhookSecurityManager,
        get_webhook_security,
    )
    from helpline_crm.db import get_db
    from helpline_crm.dependencies import get_gateway
    from helpline_crm.main import create_app

    limiter.enabled = False
    app = create_app()

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: mock_gateway
    app.dependency_overrides[get_webhook_security] = lambda: WebhookSecurityManager(
        WebhookSecurityConfig(validate_signatures=False)
    )

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    """HTTP client sharing the test's event loop and database session."""
    import httpx

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
