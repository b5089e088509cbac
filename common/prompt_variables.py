import re
from typing import Dict, List, Optional

_VARIABLE_RE = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")


def extract_variables(template: str) -> List[str]:
    """
    Return the distinct ``{name}`` placeholders found in ``template``.

    Tokens keep their braces and are returned in first-seen order.
    """
    seen: Dict[str, None] = {}
    for match in _VARIABLE_RE.finditer(template or ""):
        seen.setdefault("{" + match.group(1) + "}", None)
    return list(seen)


def compile_prompt(template: str, variables: Dict[str, str]) -> str:
    """
    Substitute every ``{key}`` occurrence with its value.

    Plain literal replacement: values are inserted verbatim and placeholders
    with no supplied value are left in place.
    """
    result = template or ""
    for key, value in variables.items():
        result = result.replace("{" + key + "}", value)
    return result


def build_review_context(repository_full_name: str, pr_number: int) -> str:
    return f"Repository: {repository_full_name}, PR: #{pr_number}"


def default_variable_values(
    code_chunk: Optional[str] = None,
    file_type: Optional[str] = None,
    context: Optional[str] = None,
) -> Dict[str, str]:
    """The fixed variable set applied to every agent prompt."""
    return {
        "code_chunk": code_chunk or "",
        "file_type": file_type or "unknown",
        "context": context or "",
    }
