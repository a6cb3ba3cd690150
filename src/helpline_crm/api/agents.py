"""Agent presence endpoints.

Agents log in with name and email; the first login creates the agent.
"""
from enum import Enum
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.api.rate_limits import RateLimits, limiter
from helpline_crm.api.realtime import broadcast_event
from helpline_crm.core.exceptions import RecordNotFoundError
from helpline_crm.core.logging import get_logger
from helpline_crm.db import get_db
from helpline_crm.db.repositories.agents import AgentRepository

log = get_logger(__name__)

router = APIRouter()


# ============================================================================
# Pydantic Schemas
# ============================================================================

class AgentStatus(str, Enum):
    """Agent presence status."""

    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"
    AWAY = "away"


class AgentLogin(BaseModel):
    """Login request."""

    email: str = Field(..., min_length=3, max_length=100, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(..., min_length=1, max_length=100)


class AgentStatusUpdate(BaseModel):
    """Presence change request."""

    status: AgentStatus


def get_agent_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AgentRepository:
    """Dependency to get agent repository."""
    return AgentRepository(db)


AgentRepo = Annotated[AgentRepository, Depends(get_agent_repository)]


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/agents/login")
@limiter.limit(RateLimits.SENSITIVE)
async def login(request: Request, body: AgentLogin, repo: AgentRepo) -> dict[str, Any]:
    """Log an agent in, creating the agent on first login."""
    agent = await repo.login(body.email, body.name)
    log.info("Agent logged in", agent_id=str(agent.id))

    await broadcast_event("agent_status_change", {"agentId": str(agent.id), "status": agent.status})
    return {"success": True, "agent": agent.to_dict()}


@router.post("/agents/logout/{agent_id}")
async def logout(agent_id: str, repo: AgentRepo) -> dict[str, Any]:
    """Mark an agent offline."""
    agent = await repo.set_status(agent_id, AgentStatus.OFFLINE.value)
    if agent is None:
        raise RecordNotFoundError("Agent not found", details={"agent_id": agent_id})

    log.info("Agent logged out", agent_id=agent_id)
    await broadcast_event("agent_status_change", {"agentId": agent_id, "status": agent.status})
    return {"success": True}


@router.get("/agents")
@limiter.limit(RateLimits.READ)
async def list_agents(request: Request, repo: AgentRepo) -> dict[str, Any]:
    """All agents with their presence status."""
    agents = await repo.list_all()
    return {"success": True, "agents": [a.to_dict() for a in agents]}


@router.patch("/agents/{agent_id}/status")
async def update_agent_status(
    agent_id: str,
    body: AgentStatusUpdate,
    repo: AgentRepo,
) -> dict[str, Any]:
    """Change an agent's presence and notify dashboards."""
    agent = await repo.set_status(agent_id, body.status.value)
    if agent is None:
        raise RecordNotFoundError("Agent not found", details={"agent_id": agent_id})

    await broadcast_event("agent_status_change", {"agentId": agent_id, "status": agent.status})
    return {"success": True, "agent": agent.to_dict()}
