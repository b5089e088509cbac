"""Pydantic models shared by the webhook pipeline, the stores and the API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

SCORE_FIELDS = (
    "correctness",
    "security",
    "maintainability",
    "clarity",
    "production_readiness",
)

DEFAULT_PROMPT_VARIABLES = ["{code_chunk}", "{file_type}", "{context}"]
DEFAULT_SEVERITY_THRESHOLD = 6


# ── Agents ────────────────────────────────────────────────────────────────────


class AgentSettings(BaseModel):
    """Scoping and enablement settings of a review agent."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    severity_threshold: int = Field(
        DEFAULT_SEVERITY_THRESHOLD, ge=1, le=10, alias="severityThreshold"
    )
    file_type_filters: list[str] = Field(default_factory=list, alias="fileTypeFilters")
    repositories: list[str] = Field(default_factory=list)


class EvaluationDimensions(BaseModel):
    """Dimension toggles shown in the dashboard. Not used for matching."""

    relevance: bool = True
    accuracy: bool = True
    actionability: bool = True
    clarity: bool = True
    helpfulness: bool = True


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return json.loads(value)
        except ValueError:
            logger.warning(f"Could not parse stored JSON value: {value[:200]}")
            return None
    return value


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def normalize_agent_settings(raw: Any = None) -> AgentSettings:
    """
    Materialize a complete ``AgentSettings`` from partial or stored input.

    Accepts ``None``, a JSON string (as stored on the agent node), a mapping
    using camelCase or snake_case keys, or an ``AgentSettings`` instance.
    Missing or malformed sub-fields fall back to their defaults, so the
    result always carries all four settings. This is the only place
    settings defaults are applied.
    """
    if isinstance(raw, AgentSettings):
        return raw

    data = _load_json(raw)
    if not isinstance(data, Mapping):
        data = {}

    enabled = data.get("enabled", True)
    if not isinstance(enabled, bool):
        enabled = True

    threshold = data.get("severityThreshold", data.get("severity_threshold"))
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        threshold = DEFAULT_SEVERITY_THRESHOLD
    threshold = min(10, max(1, int(round(threshold))))

    filters = data.get("fileTypeFilters", data.get("file_type_filters"))

    return AgentSettings(
        enabled=enabled,
        severity_threshold=threshold,
        file_type_filters=_string_list(filters),
        repositories=_string_list(data.get("repositories")),
    )


class Agent(BaseModel):
    """A configured review persona."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    prompt_html: str = Field("", alias="promptHtml")
    variables: list[str] = Field(default_factory=lambda: list(DEFAULT_PROMPT_VARIABLES))
    evaluation_dimensions: EvaluationDimensions = Field(
        default_factory=EvaluationDimensions, alias="evaluationDimensions"
    )
    settings: AgentSettings = Field(default_factory=AgentSettings)
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @field_validator("settings", mode="before")
    @classmethod
    def _complete_settings(cls, value: Any) -> AgentSettings:
        return normalize_agent_settings(value)

    @field_validator("evaluation_dimensions", mode="before")
    @classmethod
    def _complete_dimensions(cls, value: Any) -> Any:
        value = _load_json(value)
        return value if isinstance(value, (Mapping, EvaluationDimensions)) else {}


# ── Evaluations ───────────────────────────────────────────────────────────────


class EvaluationScores(BaseModel):
    correctness: int = 0
    security: int = 0
    maintainability: int = 0
    clarity: int = 0
    production_readiness: int = 0


class EvaluationJustification(BaseModel):
    correctness: str = ""
    security: str = ""
    maintainability: str = ""
    clarity: str = ""
    production_readiness: str = ""


class CodeEvaluation(BaseModel):
    """Canonical evaluation produced by the normalizer. Always fully populated."""

    scores: EvaluationScores = Field(default_factory=EvaluationScores)
    justification: EvaluationJustification = Field(default_factory=EvaluationJustification)
    overall_summary: str = ""


# ── GitHub entities ───────────────────────────────────────────────────────────


class RepositoryInfo(BaseModel):
    """Repository metadata keyed by GitHub's stable numeric id."""

    github_repo_id: int
    owner: str
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    html_url: Optional[str] = None
    is_private: bool = False
    default_branch: str = "main"
    language: Optional[str] = None
    stars_count: int = 0
    forks_count: int = 0

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class PullRequestInfo(BaseModel):
    github_repo_id: int
    pr_number: int
    title: str = ""
    author: str = ""
    head_sha: str


class ChangedFile(BaseModel):
    """One entry of the PR files listing."""

    filename: str
    patch: Optional[str] = None
    changes: int = 0
    status: Optional[str] = None
    additions: int = 0
    deletions: int = 0


class EvaluationRecord(BaseModel):
    """One append-only evaluation row for a (PR, file, agent)."""

    github_repo_id: int
    pr_number: int
    agent_id: str
    evaluation: CodeEvaluation
    file_path: Optional[str] = None
    evaluation_model: str = "unknown"
    evaluation_version: str = "v1"


class EvaluationRunRecord(BaseModel):
    """Audit entry; unique on (github_repo_id, pr_number, agent_id, head_sha)."""

    github_repo_id: int
    pr_number: int
    agent_id: str
    head_sha: str
    status: Literal["success", "failed"]
    error_message: Optional[str] = None
