"""Agent storage: CRUD plus the agent <-> repository mapping."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from neo4j import Transaction
from neo4j.exceptions import ConstraintError

from common.review_models import DEFAULT_PROMPT_VARIABLES, Agent, normalize_agent_settings

from .client import Neo4jClient
from .errors import AgentAlreadyExistsError, AgentNotFoundError
from .schema import CYPHER_QUERIES

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_agent(row: Dict[str, Any]) -> Agent:
    """Build an ``Agent`` from a stored node, tolerating missing or malformed JSON fields."""
    variables = row.get("variables")
    return Agent(
        id=row["id"],
        name=row.get("name") or "",
        description=row.get("description") or "",
        prompt_html=row.get("prompt_html") or "",
        variables=list(variables) if variables else list(DEFAULT_PROMPT_VARIABLES),
        evaluation_dimensions=row.get("evaluation_dimensions"),
        settings=normalize_agent_settings(row.get("settings")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _agent_params(agent: Agent) -> Dict[str, Any]:
    settings = normalize_agent_settings(agent.settings)
    return {
        "id": agent.id,
        "name": agent.name,
        "description": agent.description or "",
        "prompt_html": agent.prompt_html or "",
        "variables": list(agent.variables),
        "evaluation_dimensions": agent.evaluation_dimensions.model_dump_json(),
        "settings": settings.model_dump_json(by_alias=True),
        "enabled": settings.enabled,
        "now": _now(),
    }


def set_repositories_for_agent(
    tx: Transaction, agent_id: str, repository_full_names: List[str]
) -> None:
    """Replace the agent's repository mapping. Blank names are dropped, others trimmed."""
    tx.run(CYPHER_QUERIES["clear_agent_repositories"], {"agent_id": agent_id}).consume()

    valid = [name.strip() for name in repository_full_names if name and name.strip()]
    if valid:
        tx.run(
            CYPHER_QUERIES["add_agent_repositories"],
            {"agent_id": agent_id, "repositories": valid, "now": _now()},
        ).consume()
    logger.info(f"Mapped agent {agent_id} to {len(valid)} repositories")


class AgentStore:
    """Reads and writes ``(:Agent)`` nodes."""

    def __init__(self, client: Neo4jClient):
        self.db = client

    def list_agents(self) -> List[Agent]:
        """All agents, newest first."""
        records, _, _ = self.db.run_query(CYPHER_QUERIES["list_agents"])
        return [_row_to_agent(record["agent"]) for record in records]

    def list_enabled_agents(self) -> List[Agent]:
        """Enabled agents in creation order."""
        records, _, _ = self.db.run_query(CYPHER_QUERIES["list_enabled_agents"])
        return [_row_to_agent(record["agent"]) for record in records]

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        records, _, _ = self.db.run_query(CYPHER_QUERIES["get_agent"], {"id": agent_id})
        if not records:
            return None
        return _row_to_agent(records[0]["agent"])

    def create_agent(self, agent: Agent) -> Agent:
        """
        Persist a new agent and its repository mapping in one transaction.

        Raises:
            AgentAlreadyExistsError: when the id is taken
        """
        params = _agent_params(agent)
        try:
            with self.db.transaction() as tx:
                tx.run(CYPHER_QUERIES["create_agent"], params).consume()
                set_repositories_for_agent(tx, agent.id, agent.settings.repositories)
        except ConstraintError as e:
            raise AgentAlreadyExistsError(f"Agent with id {agent.id!r} already exists") from e

        created = self.get_agent(agent.id)
        if created is None:
            raise AgentNotFoundError(f"Failed to retrieve created agent {agent.id!r}")
        return created

    def update_agent(self, agent: Agent) -> Agent:
        """
        Overwrite an existing agent and re-sync its repository mapping.

        Raises:
            AgentNotFoundError: when no agent has this id
        """
        params = _agent_params(agent)
        with self.db.transaction() as tx:
            record = tx.run(CYPHER_QUERIES["update_agent"], params).single()
            if not record or record["updated"] == 0:
                raise AgentNotFoundError(f"Agent {agent.id!r} not found")
            set_repositories_for_agent(tx, agent.id, agent.settings.repositories)

        updated = self.get_agent(agent.id)
        if updated is None:
            raise AgentNotFoundError(f"Failed to retrieve updated agent {agent.id!r}")
        return updated

    def delete_agent(self, agent_id: str) -> bool:
        """Delete the agent and its mapping. Returns False when it did not exist."""
        records, _, _ = self.db.run_query(
            CYPHER_QUERIES["delete_agent"], {"id": agent_id}, write=True
        )
        return bool(records) and records[0]["deleted"] > 0
