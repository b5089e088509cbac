from typing import Optional
from fastapi import HTTPException, Request
import os
import logging

from db import Neo4jClient, ReviewStore
from api.services.webhook_service import WebhookOrchestrator

logger = logging.getLogger(__name__)


def get_neo4j_client() -> Neo4jClient:
    """
    Build the Neo4j client from NEO4J_* environment variables.

    Raises:
        ValueError: a required variable is missing
    """
    missing = [name for name in ("NEO4J_URI", "NEO4J_USERNAME", "NEO4J_PASSWORD") if not os.getenv(name)]
    if missing:
        raise ValueError(f"Missing required environment variable(s): {', '.join(missing)}")

    uri = os.environ["NEO4J_URI"]
    database = os.getenv("NEO4J_DATABASE") or None
    logger.info(f"Connecting to Neo4j at {uri} (database={database or 'default'})")

    return Neo4jClient(
        uri=uri,
        user=os.environ["NEO4J_USERNAME"],
        password=os.environ["NEO4J_PASSWORD"],
        database=database,
        max_connection_pool_size=int(os.getenv("NEO4J_MAX_POOL_SIZE", "50")),
    )


def get_review_store(request: Request) -> ReviewStore:
    """The store built once in the app lifespan."""
    store = getattr(request.app.state, "review_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Database is not configured")
    return store


def get_orchestrator(request: Request) -> Optional[WebhookOrchestrator]:
    """None when the app started without a database; deliveries are then dropped."""
    return getattr(request.app.state, "orchestrator", None)
