"""
Coerce raw LLM review output into a ``CodeEvaluation``.

Models do not reliably follow the requested schema: keys come back in
camelCase or snake_case, nested under ``scores``/``justification``/``reasons``
or flattened, and values may be missing or of the wrong type. Each target
field has a priority-ordered list of dotted lookup paths; the first path
that resolves to a non-null value wins.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any, Dict, Optional, Sequence

from common.review_models import (
    SCORE_FIELDS,
    CodeEvaluation,
    EvaluationJustification,
    EvaluationScores,
)

logger = logging.getLogger(__name__)

SCORE_PATHS: Dict[str, Sequence[str]] = {
    "correctness": (
        "scores.correctness", "scores.correctness_score",
        "correctness", "correctness_score",
    ),
    "security": (
        "scores.security", "scores.security_score",
        "security", "security_score",
    ),
    "maintainability": (
        "scores.maintainability", "scores.maintainability_score",
        "maintainability", "maintainability_score",
    ),
    "clarity": (
        "scores.clarity", "scores.clarity_score",
        "clarity", "clarity_score",
    ),
    "production_readiness": (
        "scores.production_readiness", "scores.productionReadiness",
        "scores.production_readiness_score",
        "production_readiness", "productionReadiness", "production_readiness_score",
    ),
}

JUSTIFICATION_PATHS: Dict[str, Sequence[str]] = {
    "correctness": (
        "justification.correctness", "justification.correctness_reason",
        "reasons.correctness",
    ),
    "security": (
        "justification.security", "justification.security_reason",
        "reasons.security",
    ),
    "maintainability": (
        "justification.maintainability", "justification.maintainability_reason",
        "reasons.maintainability",
    ),
    "clarity": (
        "justification.clarity", "justification.clarity_reason",
        "reasons.clarity",
    ),
    "production_readiness": (
        "justification.production_readiness", "justification.productionReadiness",
        "justification.production_readiness_reason",
        "reasons.production_readiness", "reasons.productionReadiness",
    ),
}

SUMMARY_PATHS: Sequence[str] = (
    "overall_summary", "overallSummary", "summary", "overall_summary_text",
)


def _lookup(data: Mapping, paths: Sequence[str]) -> Optional[Any]:
    for path in paths:
        value: Any = data
        for key in path.split("."):
            if isinstance(value, Mapping) and key in value:
                value = value[key]
            else:
                value = None
                break
        if value is not None:
            return value
    return None


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def _coerce_score(name: str, value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning(f"Score {name!r} is not a valid number (got {value!r:.50}), defaulting to 0")
        return 0
    # JSON integers are unbounded and may not fit in a float
    if isinstance(value, int):
        return max(0, min(10, value))
    if not math.isfinite(value):
        logger.warning(f"Score {name!r} is not finite (got {value!r}), defaulting to 0")
        return 0
    return max(0, min(10, _round_half_away(value)))


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def normalize_code_review(raw: Any) -> CodeEvaluation:
    """
    Normalize ``raw`` into a fully populated ``CodeEvaluation``.

    Never raises. Anything that is not a mapping is treated as an empty
    mapping, which yields zero scores and empty strings.
    """
    if not isinstance(raw, Mapping):
        logger.warning(
            f"Code review result is not an object (got {type(raw).__name__}), using defaults"
        )
        raw = {}

    scores = {
        field: _coerce_score(field, _lookup(raw, SCORE_PATHS[field]))
        for field in SCORE_FIELDS
    }
    justification = {
        field: _coerce_text(_lookup(raw, JUSTIFICATION_PATHS[field]))
        for field in SCORE_FIELDS
    }
    summary = _coerce_text(_lookup(raw, SUMMARY_PATHS))

    evaluation = CodeEvaluation(
        scores=EvaluationScores(**scores),
        justification=EvaluationJustification(**justification),
        overall_summary=summary,
    )
    logger.debug(
        f"Normalized code review: scores={evaluation.scores.model_dump()}, "
        f"summary length={len(evaluation.overall_summary)}"
    )
    return evaluation
