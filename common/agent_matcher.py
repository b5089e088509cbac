"""Selects the review agents that apply to a changed file."""

import logging
from typing import List, Protocol

from common.review_models import Agent

logger = logging.getLogger(__name__)


class EnabledAgentSource(Protocol):
    """Anything that can enumerate enabled agents in creation order."""

    def list_enabled_agents(self) -> List[Agent]: ...


def get_file_extension(filename: str) -> str:
    """Return the text after the last '.' of ``filename``, or '' when there is none."""
    last_dot = filename.rfind(".")
    if last_dot == -1 or last_dot == len(filename) - 1:
        return ""
    return filename[last_dot + 1:]


def normalize_extension(extension: str) -> str:
    """Lower-case an extension and strip one leading dot: '.TS' -> 'ts'."""
    extension = extension.strip()
    if extension.startswith("."):
        extension = extension[1:]
    return extension.lower()


def repository_matches(agent: Agent, repository_full_name: str) -> bool:
    """Exact, case-insensitive match of 'owner/name'. No configured repositories matches all."""
    repositories = agent.settings.repositories
    if not repositories:
        return True

    candidate = repository_full_name.strip().lower()
    return any(repo.strip().lower() == candidate for repo in repositories)


def file_type_matches(agent: Agent, file_extension: str) -> bool:
    """Dot- and case-insensitive extension match. No configured filters matches all."""
    filters = agent.settings.file_type_filters
    if not filters:
        return True

    candidate = normalize_extension(file_extension)
    return any(normalize_extension(f) == candidate for f in filters)


def select_agents(
    source: EnabledAgentSource,
    repository_full_name: str,
    file_extension: str,
) -> List[Agent]:
    """
    Return the enabled agents whose repository and file-type filters both match.

    Order follows ``source.list_enabled_agents()``. Store errors propagate
    to the caller.
    """
    agents = source.list_enabled_agents()
    if not agents:
        logger.info("No agents configured")
        return []

    matched: List[Agent] = []
    for agent in agents:
        if not agent.settings.enabled:
            continue
        if not repository_matches(agent, repository_full_name):
            logger.debug(
                f"Agent {agent.name!r} skipped: repository {repository_full_name} "
                f"not in {agent.settings.repositories}"
            )
            continue
        if not file_type_matches(agent, file_extension):
            logger.debug(
                f"Agent {agent.name!r} skipped: extension {file_extension!r} "
                f"not in {agent.settings.file_type_filters}"
            )
            continue
        matched.append(agent)

    logger.info(
        f"Matched {len(matched)}/{len(agents)} enabled agent(s) "
        f"for {repository_full_name} (extension {file_extension!r})"
    )
    return matched
