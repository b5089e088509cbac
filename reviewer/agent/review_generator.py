"""Per-file code review generation using a pydantic-ai agent over OpenRouter."""

import json
import logging
import os
import re
from typing import Any, Optional

from common.review_models import ChangedFile
from reviewer.config import ReviewerConfig, config as default_config
from reviewer.prompts import DEFAULT_EVALUATION_PROMPT, PROMPT_BODY, SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)


class ReviewGenerationError(Exception):
    """Raised when the model produced no usable review after all retries."""


def parse_review_output(text: Optional[str]) -> Optional[Any]:
    """
    Decode the model's JSON answer.

    Surrounding Markdown code fences are tolerated. Returns None for empty
    output and raises ``ValueError`` when the text is not JSON.
    """
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None

    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1).strip()
        if not stripped:
            return None

    return json.loads(stripped)


_SLOT_RE = re.compile(r"\{(code_changes|user_evaluation_prompt)\}")


def build_user_prompt(code_changes: str, evaluation_prompt: Optional[str] = None) -> str:
    """
    Assemble the user message for one file.

    An agent's compiled prompt is sent as is, with only ``{code_changes}``
    filled in. Without one, the default instructions and the diff go into
    ``PROMPT_BODY``. Slots are filled in a single pass so text inside the
    diff is never substituted.
    """
    if evaluation_prompt:
        return evaluation_prompt.replace("{code_changes}", code_changes or "")

    values = {
        "code_changes": code_changes or "",
        "user_evaluation_prompt": DEFAULT_EVALUATION_PROMPT,
    }
    return _SLOT_RE.sub(lambda m: values[m.group(1)], PROMPT_BODY)


def _build_agent(cfg: ReviewerConfig):
    # pydantic-ai's OpenRouterProvider reads the key from the process env,
    # our config reads .env only.
    os.environ.setdefault("OPENROUTER_API_KEY", cfg.openrouter_api_key)

    from pydantic_ai import Agent
    from pydantic_ai.settings import ModelSettings

    agent = Agent(
        f"openrouter:{cfg.review_model}",
        system_prompt=SYSTEM_PROMPT,
        output_type=str,
        model_settings=ModelSettings(
            temperature=cfg.llm_temperature,
            timeout=cfg.llm_timeout,
        ),
        name="code_reviewer",
    )

    # Logfire instrumentation
    try:
        import logfire

        if cfg.enable_logfire and cfg.logfire_token:
            logfire.configure(token=cfg.logfire_token)
            logfire.instrument_pydantic_ai(agent)
    except ImportError:
        pass

    return agent


class LLMReviewGenerator:
    """
    Produces the raw (un-normalized) review of one changed file.

    The pydantic-ai agent is built on first use so the app can start
    without LLM credentials. Tests pass their own ``agent``.
    """

    def __init__(self, cfg: Optional[ReviewerConfig] = None, agent: Any = None):
        self.config = cfg or default_config
        self.model_name = self.config.review_model
        self._agent = agent

    @property
    def agent(self):
        if self._agent is None:
            self._agent = _build_agent(self.config)
        return self._agent

    async def generate(self, prompt: str, change: ChangedFile) -> Optional[Any]:
        """
        Review ``change`` following the agent's compiled ``prompt``.

        Returns the decoded JSON (shape not guaranteed, pass it through the
        normalizer) or None when the model answered with nothing.

        Raises:
            ReviewGenerationError: every attempt failed or returned non-JSON
        """
        user_prompt = build_user_prompt(change.patch or "", prompt)
        attempts = self.config.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                result = await self.agent.run(user_prompt)
                review = parse_review_output(result.output)
                if review is None:
                    logger.warning(f"Model returned an empty review for {change.filename}")
                return review
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Review attempt {attempt}/{attempts} failed for {change.filename}: {e}"
                )

        raise ReviewGenerationError(
            f"No usable review for {change.filename} after {attempts} attempts: {last_error}"
        ) from last_error
