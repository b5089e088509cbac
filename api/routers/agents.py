"""
Review agent management endpoints used by the dashboard.
"""

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import ValidationError

from api.dependencies import get_review_store
from api.models.schemas import AgentPayload, PromptVariablesRequest, PromptVariablesResponse
from common.prompt_variables import extract_variables
from common.review_models import DEFAULT_PROMPT_VARIABLES, Agent, normalize_agent_settings
from db import AgentAlreadyExistsError, AgentNotFoundError, ReviewStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _agent_response(agent: Agent) -> Dict[str, Any]:
    return agent.model_dump(by_alias=True)


def _build_agent(**fields: Any) -> Agent:
    try:
        return Agent(**fields)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise HTTPException(status_code=400, detail=f"{location}: {first['msg']}")


@router.get("")
async def list_agents(store: ReviewStore = Depends(get_review_store)) -> List[Dict[str, Any]]:
    try:
        agents = await asyncio.to_thread(store.agents.list_agents)
    except Exception as e:
        logger.error(f"Failed to fetch agents: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch agents")
    return [_agent_response(agent) for agent in agents]


@router.post("/prompt/variables", response_model=PromptVariablesResponse)
async def prompt_variables(body: PromptVariablesRequest) -> PromptVariablesResponse:
    """Placeholders found in a prompt template, for the prompt editor."""
    return PromptVariablesResponse(variables=extract_variables(body.template))


@router.get("/{agent_id}")
async def get_agent(agent_id: str, store: ReviewStore = Depends(get_review_store)) -> Dict[str, Any]:
    try:
        agent = await asyncio.to_thread(store.agents.get_agent, agent_id)
    except Exception as e:
        logger.error(f"Failed to fetch agent {agent_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch agent")
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return _agent_response(agent)


@router.post("", status_code=201)
async def create_agent(
    payload: AgentPayload, store: ReviewStore = Depends(get_review_store)
) -> Dict[str, Any]:
    if not payload.id or not payload.name:
        raise HTTPException(status_code=400, detail="Agent ID and name are required")

    agent = _build_agent(
        id=payload.id,
        name=payload.name,
        description=payload.description or "",
        prompt_html=payload.prompt_html or "",
        variables=payload.variables or list(DEFAULT_PROMPT_VARIABLES),
        evaluation_dimensions=payload.evaluation_dimensions,
        settings=normalize_agent_settings(payload.settings),
    )

    try:
        created = await asyncio.to_thread(store.agents.create_agent, agent)
    except AgentAlreadyExistsError:
        raise HTTPException(status_code=409, detail="Agent with this ID already exists")
    except Exception as e:
        logger.error(f"Failed to create agent {payload.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create agent")

    logger.info(f"Created agent {created.id} ({created.name})")
    return _agent_response(created)


@router.put("/{agent_id}")
async def update_agent(
    agent_id: str, payload: AgentPayload, store: ReviewStore = Depends(get_review_store)
) -> Dict[str, Any]:
    if payload.id != agent_id:
        raise HTTPException(status_code=400, detail="Agent ID mismatch")

    try:
        existing = await asyncio.to_thread(store.agents.get_agent, agent_id)
    except Exception as e:
        logger.error(f"Failed to fetch agent {agent_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update agent")
    if existing is None:
        raise HTTPException(status_code=404, detail="Agent not found")

    agent = _build_agent(
        id=agent_id,
        name=payload.name or existing.name,
        description=payload.description if payload.description is not None else existing.description,
        prompt_html=payload.prompt_html or existing.prompt_html,
        variables=payload.variables or existing.variables,
        evaluation_dimensions=(
            payload.evaluation_dimensions
            if payload.evaluation_dimensions is not None
            else existing.evaluation_dimensions
        ),
        settings=normalize_agent_settings(
            payload.settings if payload.settings is not None else existing.settings
        ),
        created_at=existing.created_at,
    )

    try:
        updated = await asyncio.to_thread(store.agents.update_agent, agent)
    except AgentNotFoundError:
        raise HTTPException(status_code=404, detail="Agent not found")
    except Exception as e:
        logger.error(f"Failed to update agent {agent_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update agent")

    return _agent_response(updated)


@router.delete("/{agent_id}", status_code=204)
async def delete_agent(agent_id: str, store: ReviewStore = Depends(get_review_store)) -> Response:
    try:
        deleted = await asyncio.to_thread(store.agents.delete_agent, agent_id)
    except Exception as e:
        logger.error(f"Failed to delete agent {agent_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete agent")
    if not deleted:
        raise HTTPException(status_code=404, detail="Agent not found")
    return Response(status_code=204)
