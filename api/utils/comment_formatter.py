from typing import Optional

from common.review_models import CodeEvaluation

# ── Helpers ───────────────────────────────────────────────────────────────────

_SCORE_LABELS = (
    ("correctness", "Correctness"),
    ("security", "Security"),
    ("maintainability", "Maintainability"),
    ("clarity", "Clarity"),
    ("production_readiness", "Production Readiness"),
)

_REASON_LABELS = (
    ("correctness", "✅ Correctness"),
    ("security", "🔐 Security"),
    ("maintainability", "🛠 Maintainability"),
    ("clarity", "✍️ Clarity"),
    ("production_readiness", "🚀 Production Readiness"),
)


def score_emoji(score: int) -> str:
    if score >= 8:
        return "🟢"
    if score >= 5:
        return "🟡"
    return "🔴"


def _score_line(label: str, score: int) -> str:
    return f"- **{label}**: {score}/10 {score_emoji(score)}"


# ── Public API ────────────────────────────────────────────────────────────────


def format_review_comment(evaluation: CodeEvaluation, agent_name: Optional[str] = None) -> str:
    """Render one evaluation as the Markdown body of a PR review."""
    scores = evaluation.scores
    reasons = evaluation.justification

    items: list[str] = []
    for field, label in _REASON_LABELS:
        reason = getattr(reasons, field)
        if reason:
            items.append(f"- **{label}:** {reason}")
    if evaluation.overall_summary:
        items.append(f"- **📄 Overall:** {evaluation.overall_summary}")

    lines = ["## 🧠 Automated Code Review", "", "### 📊 Summary Scores"]
    lines += [_score_line(label, getattr(scores, field)) for field, label in _SCORE_LABELS]
    lines += [
        "",
        "---",
        "",
        "### 📋 Review Summary",
        "\n\n".join(items) if items else "No review details available.",
    ]
    body = "\n".join(lines)

    if agent_name:
        body = f"**Reviewed by: {agent_name}**\n\n{body}"
    return body
