"""
Evaluation persister.

Every function takes an open transaction (see ``Neo4jClient.transaction``)
so the caller decides the unit of work: repository and PR metadata share
one transaction per webhook event, and each evaluation + run pair gets its
own.
"""

import logging
import uuid
from datetime import datetime, timezone

from neo4j import Transaction
from neo4j.exceptions import ConstraintError

from common.review_models import (
    EvaluationRecord,
    EvaluationRunRecord,
    PullRequestInfo,
    RepositoryInfo,
)

from .errors import DuplicateEvaluationRunError
from .schema import CYPHER_QUERIES

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def upsert_repository(tx: Transaction, repo: RepositoryInfo) -> None:
    """Insert the repository or refresh its metadata. Keyed by ``github_repo_id``."""
    tx.run(
        CYPHER_QUERIES["upsert_repository"],
        {
            "github_repo_id": repo.github_repo_id,
            "owner": repo.owner,
            "name": repo.name,
            "full_name": repo.full_name,
            "description": repo.description,
            "url": repo.url,
            "html_url": repo.html_url,
            "is_private": repo.is_private,
            "default_branch": repo.default_branch or "main",
            "language": repo.language,
            "stars_count": repo.stars_count,
            "forks_count": repo.forks_count,
            "now": _now(),
        },
    ).consume()


def upsert_pull_request(tx: Transaction, pr: PullRequestInfo) -> None:
    """Insert the PR or overwrite title, author and head SHA with the latest values."""
    tx.run(
        CYPHER_QUERIES["upsert_pull_request"],
        {
            "github_repo_id": pr.github_repo_id,
            "pr_number": pr.pr_number,
            "title": pr.title,
            "author": pr.author,
            "head_sha": pr.head_sha,
            "now": _now(),
        },
    ).consume()


def insert_evaluation(tx: Transaction, record: EvaluationRecord) -> str:
    """Append one evaluation row and return its generated id. Never updates."""
    evaluation_id = uuid.uuid4().hex
    scores = record.evaluation.scores
    reasons = record.evaluation.justification
    tx.run(
        CYPHER_QUERIES["insert_evaluation"],
        {
            "id": evaluation_id,
            "github_repo_id": record.github_repo_id,
            "pr_number": record.pr_number,
            "agent_id": record.agent_id,
            "file_path": record.file_path,
            "correctness_score": scores.correctness,
            "security_score": scores.security,
            "maintainability_score": scores.maintainability,
            "clarity_score": scores.clarity,
            "production_readiness_score": scores.production_readiness,
            "correctness_reason": reasons.correctness,
            "security_reason": reasons.security,
            "maintainability_reason": reasons.maintainability,
            "clarity_reason": reasons.clarity,
            "production_readiness_reason": reasons.production_readiness,
            "overall_summary": record.evaluation.overall_summary,
            "evaluation_model": record.evaluation_model,
            "evaluation_version": record.evaluation_version,
            "now": _now(),
        },
    ).consume()
    return evaluation_id


def insert_evaluation_run(tx: Transaction, run: EvaluationRunRecord) -> None:
    """
    Append one evaluation run.

    Raises:
        DuplicateEvaluationRunError: a run already exists for
            (repo, PR, agent, head SHA). The transaction is no longer
            usable after this and must be rolled back.
    """
    try:
        tx.run(
            CYPHER_QUERIES["insert_evaluation_run"],
            {
                "github_repo_id": run.github_repo_id,
                "pr_number": run.pr_number,
                "agent_id": run.agent_id,
                "head_sha": run.head_sha,
                "status": run.status,
                "error_message": run.error_message,
                "now": _now(),
            },
        ).consume()
    except ConstraintError as e:
        raise DuplicateEvaluationRunError(
            run.github_repo_id, run.pr_number, run.agent_id, run.head_sha
        ) from e
