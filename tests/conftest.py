"""Shared fakes: an in-memory store with real commit/rollback semantics and GitHub/LLM doubles."""

from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

import pytest
from neo4j.exceptions import ConstraintError

from api.models.schemas import PullRequestEvent
from common.review_models import Agent, ChangedFile
from db.schema import CYPHER_QUERIES


class FakeResult:
    def __init__(self, record: Optional[Dict[str, Any]] = None):
        self._record = record

    def consume(self):
        return None

    def single(self):
        return self._record


class FakeTransaction:
    """Buffers writes and applies them to the owning store on commit."""

    def __init__(self, store: "FakeStore"):
        self.store = store
        self.calls: List[tuple] = []
        self.pending: List[tuple] = []
        self.committed = False
        self.rolled_back = False

    def run(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> FakeResult:
        params = dict(parameters or {})
        name = next((key for key, q in CYPHER_QUERIES.items() if q == query), query)
        self.calls.append((name, params))

        if name in self.store.fail_on:
            raise RuntimeError(f"simulated failure in {name}")

        if name == "insert_evaluation_run":
            key = (params["github_repo_id"], params["pr_number"], params["agent_id"], params["head_sha"])
            pending_keys = {self.store.run_key(p) for n, p in self.pending if n == name}
            if key in self.store.runs or key in pending_keys:
                raise ConstraintError("EvaluationRun already exists")

        self.pending.append((name, params))
        return FakeResult()

    def commit(self):
        for name, params in self.pending:
            self.store.apply(name, params)
        self.committed = True

    def rollback(self):
        self.pending = []
        self.rolled_back = True


class FakeStore:
    """Stands in for ``ReviewStore`` in orchestrator tests."""

    def __init__(self, agents: Optional[List[Agent]] = None):
        self.agents = list(agents or [])
        self.repositories: Dict[int, Dict[str, Any]] = {}
        self.pull_requests: Dict[tuple, Dict[str, Any]] = {}
        self.evaluations: List[Dict[str, Any]] = []
        self.runs: Dict[tuple, Dict[str, Any]] = {}
        self.transactions: List[FakeTransaction] = []
        self.fail_on: set = set()
        self.list_error: Optional[Exception] = None

    @staticmethod
    def run_key(params: Dict[str, Any]) -> tuple:
        return (params["github_repo_id"], params["pr_number"], params["agent_id"], params["head_sha"])

    def list_enabled_agents(self) -> List[Agent]:
        if self.list_error is not None:
            raise self.list_error
        return [agent for agent in self.agents if agent.settings.enabled]

    def apply(self, name: str, params: Dict[str, Any]) -> None:
        if name == "upsert_repository":
            self.repositories[params["github_repo_id"]] = params
        elif name == "upsert_pull_request":
            self.pull_requests[(params["github_repo_id"], params["pr_number"])] = params
        elif name == "insert_evaluation":
            self.evaluations.append(params)
        elif name == "insert_evaluation_run":
            self.runs[self.run_key(params)] = params

    @contextmanager
    def transaction(self):
        tx = FakeTransaction(self)
        self.transactions.append(tx)
        try:
            yield tx
            tx.commit()
        except BaseException:
            tx.rollback()
            raise


class FakeAuth:
    def __init__(self, token: str = "installation-token", error: Optional[Exception] = None):
        self.token = token
        self.error = error
        self.installation_ids: List[int] = []

    async def get_installation_token(self, installation_id: int) -> str:
        self.installation_ids.append(installation_id)
        if self.error is not None:
            raise self.error
        return self.token


class FakeGitHub:
    def __init__(self, files: Optional[List[ChangedFile]] = None, fetch_error: Optional[Exception] = None):
        self.files = list(files or [])
        self.fetch_error = fetch_error
        self.post_error: Optional[Exception] = None
        self.comments: List[Dict[str, Any]] = []

    async def fetch_pull_request_files(self, token, owner, repo, pr_number):
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.files)

    async def post_review_comment(self, token, owner, repo, pr_number, body):
        if self.post_error is not None:
            raise self.post_error
        self.comments.append(
            {"token": token, "owner": owner, "repo": repo, "pr_number": pr_number, "body": body}
        )


class FakeGenerator:
    """Returns ``respond(prompt, change)``; records every call."""

    model_name = "fake/model"

    def __init__(self, respond: Optional[Callable[[str, ChangedFile], Any]] = None):
        self.respond = respond or (lambda prompt, change: good_review())
        self.calls: List[tuple] = []

    async def generate(self, prompt: str, change: ChangedFile):
        self.calls.append((prompt, change))
        return self.respond(prompt, change)


def good_review() -> Dict[str, Any]:
    return {
        "scores": {
            "correctness": 8,
            "security": 9,
            "maintainability": 7,
            "clarity": 6,
            "production_readiness": 4,
        },
        "justification": {
            "correctness": "Logic is sound.",
            "security": "No user input reaches the query.",
            "maintainability": "Small functions.",
            "clarity": "Names could be better.",
            "production_readiness": "Missing tests.",
        },
        "overall_summary": "Solid change, add tests.",
    }


def make_agent(agent_id: str = "agent-1", name: str = "Reviewer", **settings) -> Agent:
    return Agent(
        id=agent_id,
        name=name,
        prompt_html="Review this {file_type} change in {context}:\n{code_chunk}",
        settings=settings,
    )


def make_pr_payload(action: str = "opened", **overrides) -> Dict[str, Any]:
    payload = {
        "action": action,
        "number": 42,
        "repository": {
            "id": 1001,
            "name": "widgets",
            "full_name": "acme/widgets",
            "owner": {"login": "acme"},
            "description": "Widget factory",
            "html_url": "https://github.com/acme/widgets",
            "url": "https://api.github.com/repos/acme/widgets",
            "private": False,
            "default_branch": "main",
            "language": "Python",
            "stargazers_count": 3,
            "forks_count": 1,
        },
        "pull_request": {
            "title": "Add widget caching",
            "user": {"login": "octocat"},
            "head": {"sha": "abc1234def5678"},
        },
        "installation": {"id": 555},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def pr_event() -> PullRequestEvent:
    return PullRequestEvent.model_validate(make_pr_payload())
