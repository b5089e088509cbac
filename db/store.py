from contextlib import contextmanager
from typing import Iterator, List

from neo4j import Transaction

from common.review_models import Agent

from .agents import AgentStore
from .client import Neo4jClient
from .reviews import ReviewQueryService


class ReviewStore:
    """
    Single entry point to persistence, built once per process.

    Exposes the agent store, the dashboard queries and the transactional
    unit of work used by the evaluation persister.
    """

    def __init__(self, client: Neo4jClient):
        self.client = client
        self.agents = AgentStore(client)
        self.reviews = ReviewQueryService(client)

    def list_enabled_agents(self) -> List[Agent]:
        return self.agents.list_enabled_agents()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        with self.client.transaction() as tx:
            yield tx
