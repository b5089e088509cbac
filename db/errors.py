class PersistenceError(Exception):
    """Base exception for storage failures."""


class DatabaseUnavailableError(PersistenceError):
    """The Neo4j server could not be reached."""


class DuplicateEvaluationRunError(PersistenceError):
    """An evaluation run already exists for (repo, PR, agent, head SHA)."""

    def __init__(self, github_repo_id: int, pr_number: int, agent_id: str, head_sha: str):
        self.github_repo_id = github_repo_id
        self.pr_number = pr_number
        self.agent_id = agent_id
        self.head_sha = head_sha
        super().__init__(
            f"Evaluation run already recorded for repo {github_repo_id} "
            f"PR #{pr_number}, agent {agent_id!r}, head {head_sha[:7]}"
        )


class AgentNotFoundError(PersistenceError):
    """No agent exists with the given id."""


class AgentAlreadyExistsError(PersistenceError):
    """An agent with the given id already exists."""
