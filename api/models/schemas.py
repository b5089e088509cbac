from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from common.review_models import PullRequestInfo, RepositoryInfo


# ── Management API ────────────────────────────────────────────────────────────


class AgentPayload(BaseModel):
    """Request body for creating or updating an agent. Omitted fields are kept on update."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    prompt_html: Optional[str] = Field(None, alias="promptHtml")
    variables: Optional[List[str]] = None
    evaluation_dimensions: Optional[Dict[str, Any]] = Field(None, alias="evaluationDimensions")
    settings: Optional[Dict[str, Any]] = None


class PromptVariablesRequest(BaseModel):
    template: str = ""


class PromptVariablesResponse(BaseModel):
    variables: List[str]


# ── GitHub pull_request webhook ───────────────────────────────────────────────


class GitHubUser(BaseModel):
    login: str


class GitHubRepository(BaseModel):
    id: int
    name: str
    full_name: Optional[str] = None
    owner: GitHubUser
    description: Optional[str] = None
    url: Optional[str] = None
    html_url: Optional[str] = None
    private: bool = False
    default_branch: Optional[str] = None
    language: Optional[str] = None
    stargazers_count: int = 0
    forks_count: int = 0


class GitHubCommitRef(BaseModel):
    sha: str


class GitHubPullRequest(BaseModel):
    title: str = ""
    user: GitHubUser
    head: GitHubCommitRef


class GitHubInstallation(BaseModel):
    id: int


class PullRequestEvent(BaseModel):
    """The parts of a ``pull_request`` webhook delivery the reviewer needs."""

    action: str
    number: int
    repository: GitHubRepository
    pull_request: GitHubPullRequest
    installation: GitHubInstallation

    @property
    def owner(self) -> str:
        return self.repository.owner.login

    @property
    def repo(self) -> str:
        return self.repository.name

    @property
    def full_name(self) -> str:
        return self.repository.full_name or f"{self.owner}/{self.repo}"

    @property
    def head_sha(self) -> str:
        return self.pull_request.head.sha

    def repository_info(self) -> RepositoryInfo:
        repo = self.repository
        return RepositoryInfo(
            github_repo_id=repo.id,
            owner=self.owner,
            name=repo.name,
            description=repo.description,
            url=repo.url,
            html_url=repo.html_url,
            is_private=repo.private,
            default_branch=repo.default_branch or "main",
            language=repo.language,
            stars_count=repo.stargazers_count,
            forks_count=repo.forks_count,
        )

    def pull_request_info(self) -> PullRequestInfo:
        return PullRequestInfo(
            github_repo_id=self.repository.id,
            pr_number=self.number,
            title=self.pull_request.title,
            author=self.pull_request.user.login,
            head_sha=self.head_sha,
        )


class WebhookAck(BaseModel):
    """Body of every webhook response. GitHub only looks at the status code."""

    status: str
    reason: Optional[str] = None
    repo: Optional[str] = None
    pr_number: Optional[int] = None
