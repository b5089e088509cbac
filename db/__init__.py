
from .client import Neo4jClient
from .schema import ReviewSchema, CYPHER_QUERIES
from .errors import (
    PersistenceError,
    DatabaseUnavailableError,
    DuplicateEvaluationRunError,
    AgentNotFoundError,
    AgentAlreadyExistsError,
)
from .agents import AgentStore
from .reviews import ReviewQueryService
from .store import ReviewStore

__all__ = [
    "Neo4jClient",
    "ReviewSchema",
    "CYPHER_QUERIES",
    "PersistenceError",
    "DatabaseUnavailableError",
    "DuplicateEvaluationRunError",
    "AgentNotFoundError",
    "AgentAlreadyExistsError",
    "AgentStore",
    "ReviewQueryService",
    "ReviewStore",
]
