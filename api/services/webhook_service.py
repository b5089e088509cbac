"""
Pull request review orchestration.

The webhook router acknowledges the delivery and hands the parsed event to
``process_pull_request_event`` as a background task. From there the flow is:

    installation token -> changed files -> repository/PR metadata ->
    for each patched file: match agents -> for each agent:
        compile prompt -> LLM -> normalize -> persist -> comment

Files and agents are processed sequentially. A failing agent or file never
stops the others; only a failure to authenticate or list the files aborts
the event.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Set, Tuple

from pydantic import ValidationError

from api.models.schemas import PullRequestEvent
from api.utils.comment_formatter import format_review_comment
from common.agent_matcher import get_file_extension, select_agents
from common.prompt_variables import (
    build_review_context,
    compile_prompt,
    default_variable_values,
)
from common.review_models import (
    Agent,
    ChangedFile,
    CodeEvaluation,
    EvaluationRecord,
    EvaluationRunRecord,
)
from common.review_normalizer import normalize_code_review
from db.errors import DuplicateEvaluationRunError
from db.evaluations import (
    insert_evaluation,
    insert_evaluation_run,
    upsert_pull_request,
    upsert_repository,
)
from db.store import ReviewStore

logger = logging.getLogger(__name__)

ACCEPTED_ACTIONS = frozenset({"opened", "synchronize"})


class ReviewGenerator(Protocol):
    model_name: str

    async def generate(self, prompt: str, change: ChangedFile) -> Optional[Any]: ...


def is_reviewable_event(event_type: Optional[str], payload: Any) -> bool:
    """Only ``pull_request`` deliveries that open or update a PR are reviewed."""
    if event_type != "pull_request" or not isinstance(payload, Mapping):
        return False
    return payload.get("action") in ACCEPTED_ACTIONS


def parse_pull_request_event(payload: Mapping) -> Optional[PullRequestEvent]:
    try:
        return PullRequestEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed pull_request payload: {e.error_count()} error(s)")
        return None


@dataclass
class ReviewSummary:
    files_processed: int = 0
    files_skipped: int = 0
    evaluated: int = 0
    commented: int = 0
    failed: int = 0
    succeeded_agents: Set[str] = field(default_factory=set)
    failed_agents: Dict[str, Tuple[Agent, str]] = field(default_factory=dict)


class WebhookOrchestrator:
    """Drives one pull request event through review, persistence and commenting."""

    def __init__(
        self,
        store: ReviewStore,
        github,
        auth,
        generator: ReviewGenerator,
        evaluation_version: str = "v1",
    ):
        self.store = store
        self.github = github
        self.auth = auth
        self.generator = generator
        self.evaluation_version = evaluation_version

    async def handle_pull_request(self, event: PullRequestEvent) -> ReviewSummary:
        summary = ReviewSummary()
        label = f"{event.full_name}#{event.number}"
        logger.info(f"Reviewing {label} at {event.head_sha[:7]} (action={event.action})")

        token = await self.auth.get_installation_token(event.installation.id)
        files = await self.github.fetch_pull_request_files(
            token, event.owner, event.repo, event.number
        )

        await self._store_metadata(event)

        for change in files:
            if not change.patch:
                logger.debug(f"Skipping {change.filename}: no patch")
                summary.files_skipped += 1
                continue
            await self._review_file(token, event, change, summary)

        # One run row per agent and head SHA: an agent that failed on one file
        # but succeeded on another already has its success row.
        for agent_id, (agent, message) in summary.failed_agents.items():
            if agent_id not in summary.succeeded_agents:
                await self._record_failed_run(event, agent, message)

        logger.info(
            f"Finished {label}: processed={summary.files_processed}, "
            f"skipped={summary.files_skipped}, evaluated={summary.evaluated}, "
            f"commented={summary.commented}, failed={summary.failed}"
        )
        return summary

    # ── Metadata ──────────────────────────────────────────────────────────

    def _persist_metadata(self, event: PullRequestEvent) -> None:
        with self.store.transaction() as tx:
            upsert_repository(tx, event.repository_info())
            upsert_pull_request(tx, event.pull_request_info())

    async def _store_metadata(self, event: PullRequestEvent) -> None:
        try:
            await asyncio.to_thread(self._persist_metadata, event)
        except Exception as e:
            logger.error(f"Failed to store repository/PR metadata for {event.full_name}#{event.number}: {e}")

    # ── Per file / per agent ──────────────────────────────────────────────

    async def _review_file(
        self, token: str, event: PullRequestEvent, change: ChangedFile, summary: ReviewSummary
    ) -> None:
        summary.files_processed += 1
        extension = get_file_extension(change.filename)

        agents = await asyncio.to_thread(select_agents, self.store, event.full_name, extension)
        if not agents:
            logger.info(f"No matching agents for {change.filename} in {event.full_name}")
            return

        for agent in agents:
            await self._review_with_agent(token, event, change, extension, agent, summary)

    async def _review_with_agent(
        self,
        token: str,
        event: PullRequestEvent,
        change: ChangedFile,
        extension: str,
        agent: Agent,
        summary: ReviewSummary,
    ) -> None:
        variables = default_variable_values(
            code_chunk=change.patch,
            file_type=extension or None,
            context=build_review_context(event.full_name, event.number),
        )
        prompt = compile_prompt(agent.prompt_html, variables)

        try:
            raw = await self.generator.generate(prompt, change)
        except Exception as e:
            logger.error(f"Agent {agent.name!r} failed on {change.filename}: {e}")
            summary.failed += 1
            summary.failed_agents.setdefault(agent.id, (agent, str(e)))
            return

        if raw is None:
            logger.info(f"Agent {agent.name!r} produced no review for {change.filename}")
            return

        evaluation = normalize_code_review(raw)

        try:
            await asyncio.to_thread(self._persist_evaluation, event, change, agent, evaluation)
            summary.evaluated += 1
            summary.succeeded_agents.add(agent.id)
        except Exception as e:
            logger.error(
                f"Failed to store evaluation of {change.filename} by agent {agent.name!r}: {e}"
            )
            summary.failed += 1

        try:
            body = format_review_comment(evaluation, agent.name)
            await self.github.post_review_comment(token, event.owner, event.repo, event.number, body)
            summary.commented += 1
        except Exception as e:
            logger.error(
                f"Failed to post review comment for {change.filename} by agent {agent.name!r}: {e}"
            )

    # ── Persistence ───────────────────────────────────────────────────────

    def _persist_evaluation(
        self,
        event: PullRequestEvent,
        change: ChangedFile,
        agent: Agent,
        evaluation: CodeEvaluation,
    ) -> None:
        record = EvaluationRecord(
            github_repo_id=event.repository.id,
            pr_number=event.number,
            agent_id=agent.id,
            evaluation=evaluation,
            file_path=change.filename,
            evaluation_model=self.generator.model_name,
            evaluation_version=self.evaluation_version,
        )
        run = EvaluationRunRecord(
            github_repo_id=event.repository.id,
            pr_number=event.number,
            agent_id=agent.id,
            head_sha=event.head_sha,
            status="success",
        )

        try:
            with self.store.transaction() as tx:
                insert_evaluation(tx, record)
                insert_evaluation_run(tx, run)
        except DuplicateEvaluationRunError as e:
            # One run per (PR, agent, head SHA): later files of the same push
            # keep their evaluation without a second run row.
            logger.info(f"{e}; storing the evaluation without a new run")
            with self.store.transaction() as tx:
                insert_evaluation(tx, record)

    def _persist_failed_run(self, event: PullRequestEvent, agent: Agent, message: str) -> None:
        run = EvaluationRunRecord(
            github_repo_id=event.repository.id,
            pr_number=event.number,
            agent_id=agent.id,
            head_sha=event.head_sha,
            status="failed",
            error_message=message,
        )
        with self.store.transaction() as tx:
            insert_evaluation_run(tx, run)

    async def _record_failed_run(self, event: PullRequestEvent, agent: Agent, message: str) -> None:
        try:
            await asyncio.to_thread(self._persist_failed_run, event, agent, message)
        except DuplicateEvaluationRunError as e:
            logger.info(f"Failed run not recorded: {e}")
        except Exception as e:
            logger.warning(f"Could not record failed run for agent {agent.name!r}: {e}")


async def process_pull_request_event(
    orchestrator: WebhookOrchestrator, event: PullRequestEvent
) -> Optional[ReviewSummary]:
    """Background task entry point. Every failure ends here, logged."""
    try:
        return await orchestrator.handle_pull_request(event)
    except Exception as e:
        logger.error(
            f"Review of {event.full_name}#{event.number} aborted: {e}", exc_info=True
        )
        return None
