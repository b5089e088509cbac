"""
Neo4j Schema for Code Review Storage

Defines the constraints, indexes, and Cypher queries used to persist
review agents, repository/PR metadata and evaluation history.

Graph Structure:
================
(:Agent {id})                                     - review agent; settings stored as JSON
(:AgentRepository {agent_id, repository_full_name}) - agent <-> repository mapping
(:Repository {github_repo_id})                    - upserted on every webhook
(:PullRequest {github_repo_id, pr_number})        - upserted on every webhook
(:CodeEvaluation {id})                            - append-only, one per (PR, file, agent)
(:EvaluationRun {github_repo_id, pr_number, agent_id, head_sha}) - idempotency ledger

Nodes reference each other by key properties rather than relationships,
so evaluations survive agent deletion and repository renames.
"""

import logging

from .client import Neo4jClient

logger = logging.getLogger(__name__)


class ReviewSchema:
    """Manages the Neo4j schema for review storage."""

    def __init__(self, client: Neo4jClient):
        """
        Initialize schema manager.

        Args:
            client: Neo4j database client
        """
        self.db = client

    def create_constraints_and_indexes(self) -> None:
        """Create all necessary constraints and indexes."""

        constraints = [
            "CREATE CONSTRAINT agent_id IF NOT EXISTS FOR (a:Agent) REQUIRE a.id IS UNIQUE",
            "CREATE CONSTRAINT agent_repository_unique IF NOT EXISTS "
            "FOR (m:AgentRepository) REQUIRE (m.agent_id, m.repository_full_name) IS UNIQUE",
            "CREATE CONSTRAINT repository_github_id IF NOT EXISTS "
            "FOR (r:Repository) REQUIRE r.github_repo_id IS UNIQUE",
            "CREATE CONSTRAINT pull_request_unique IF NOT EXISTS "
            "FOR (p:PullRequest) REQUIRE (p.github_repo_id, p.pr_number) IS UNIQUE",
            "CREATE CONSTRAINT code_evaluation_id IF NOT EXISTS "
            "FOR (ce:CodeEvaluation) REQUIRE ce.id IS UNIQUE",
            "CREATE CONSTRAINT evaluation_run_unique IF NOT EXISTS "
            "FOR (er:EvaluationRun) REQUIRE (er.github_repo_id, er.pr_number, er.agent_id, er.head_sha) IS UNIQUE",
        ]

        indexes = [
            "CREATE INDEX agent_enabled IF NOT EXISTS FOR (a:Agent) ON (a.enabled)",
            "CREATE INDEX agent_created_at IF NOT EXISTS FOR (a:Agent) ON (a.created_at)",
            "CREATE INDEX agent_repository_name IF NOT EXISTS FOR (m:AgentRepository) ON (m.repository_full_name)",
            "CREATE INDEX code_evaluation_pr IF NOT EXISTS FOR (ce:CodeEvaluation) ON (ce.github_repo_id, ce.pr_number)",
            "CREATE INDEX code_evaluation_agent IF NOT EXISTS FOR (ce:CodeEvaluation) ON (ce.agent_id)",
            "CREATE INDEX code_evaluation_created_at IF NOT EXISTS FOR (ce:CodeEvaluation) ON (ce.created_at)",
            "CREATE INDEX repository_owner_name IF NOT EXISTS FOR (r:Repository) ON (r.owner, r.name)",
        ]

        for statement in constraints + indexes:
            try:
                self.db.run_query(statement, write=True)
            except Exception as e:
                logger.warning(f"Schema statement failed (may already exist): {e}")

        logger.info("Review schema constraints and indexes ensured")


# Shared WHERE clause for evaluation filters (agent id and inclusive date range)
_EVALUATION_FILTERS = """
WHERE ($agent_id IS NULL OR ce.agent_id = $agent_id)
  AND ($start_date IS NULL OR substring(ce.created_at, 0, 10) >= $start_date)
  AND ($end_date IS NULL OR substring(ce.created_at, 0, 10) <= $end_date)
"""

_SUM_OF_SCORES = (
    "(ce.correctness_score + ce.security_score + ce.maintainability_score + "
    "ce.clarity_score + ce.production_readiness_score)"
)


CYPHER_QUERIES = {
    # ── Evaluation persistence ────────────────────────────────────────────
    "upsert_repository": """
        MERGE (r:Repository {github_repo_id: $github_repo_id})
        ON CREATE SET r.created_at = $now
        SET r.owner = $owner,
            r.name = $name,
            r.full_name = $full_name,
            r.description = $description,
            r.url = $url,
            r.html_url = $html_url,
            r.is_private = $is_private,
            r.default_branch = $default_branch,
            r.language = $language,
            r.stars_count = $stars_count,
            r.forks_count = $forks_count,
            r.updated_at = $now
    """,

    "upsert_pull_request": """
        MERGE (p:PullRequest {github_repo_id: $github_repo_id, pr_number: $pr_number})
        ON CREATE SET p.created_at = $now
        SET p.title = $title,
            p.author = $author,
            p.head_sha = $head_sha,
            p.updated_at = $now
    """,

    "insert_evaluation": """
        CREATE (ce:CodeEvaluation {
            id: $id,
            github_repo_id: $github_repo_id,
            pr_number: $pr_number,
            agent_id: $agent_id,
            file_path: $file_path,
            correctness_score: $correctness_score,
            security_score: $security_score,
            maintainability_score: $maintainability_score,
            clarity_score: $clarity_score,
            production_readiness_score: $production_readiness_score,
            correctness_reason: $correctness_reason,
            security_reason: $security_reason,
            maintainability_reason: $maintainability_reason,
            clarity_reason: $clarity_reason,
            production_readiness_reason: $production_readiness_reason,
            overall_summary: $overall_summary,
            evaluation_model: $evaluation_model,
            evaluation_version: $evaluation_version,
            created_at: $now
        })
    """,

    "insert_evaluation_run": """
        CREATE (er:EvaluationRun {
            github_repo_id: $github_repo_id,
            pr_number: $pr_number,
            agent_id: $agent_id,
            head_sha: $head_sha,
            status: $status,
            error_message: $error_message,
            created_at: $now
        })
    """,

    # ── Agents ────────────────────────────────────────────────────────────
    "list_agents": """
        MATCH (a:Agent)
        RETURN a {.*} AS agent
        ORDER BY a.created_at DESC, a.id
    """,

    "list_enabled_agents": """
        MATCH (a:Agent)
        WHERE a.enabled = true
        RETURN a {.*} AS agent
        ORDER BY a.created_at ASC, a.id
    """,

    "get_agent": """
        MATCH (a:Agent {id: $id})
        RETURN a {.*} AS agent
    """,

    "create_agent": """
        CREATE (a:Agent {
            id: $id,
            name: $name,
            description: $description,
            prompt_html: $prompt_html,
            variables: $variables,
            evaluation_dimensions: $evaluation_dimensions,
            settings: $settings,
            enabled: $enabled,
            created_at: $now,
            updated_at: $now
        })
    """,

    "update_agent": """
        MATCH (a:Agent {id: $id})
        SET a.name = $name,
            a.description = $description,
            a.prompt_html = $prompt_html,
            a.variables = $variables,
            a.evaluation_dimensions = $evaluation_dimensions,
            a.settings = $settings,
            a.enabled = $enabled,
            a.updated_at = $now
        RETURN count(a) AS updated
    """,

    "delete_agent": """
        MATCH (a:Agent {id: $id})
        OPTIONAL MATCH (m:AgentRepository {agent_id: $id})
        DETACH DELETE m
        WITH DISTINCT a
        DETACH DELETE a
        RETURN count(a) AS deleted
    """,

    "clear_agent_repositories": """
        MATCH (m:AgentRepository {agent_id: $agent_id})
        DETACH DELETE m
    """,

    "add_agent_repositories": """
        UNWIND $repositories AS repository_full_name
        MERGE (m:AgentRepository {agent_id: $agent_id, repository_full_name: repository_full_name})
        ON CREATE SET m.created_at = $now
    """,

    "list_agent_assignments": """
        MATCH (m:AgentRepository)
        MATCH (a:Agent {id: m.agent_id})
        RETURN m.repository_full_name AS repository_full_name,
               a.id AS agent_id,
               a.name AS agent_name
        ORDER BY a.created_at ASC, m.created_at ASC
    """,

    # ── Repositories ──────────────────────────────────────────────────────
    "list_repositories": """
        MATCH (r:Repository)
        RETURN r {.*} AS repository
        ORDER BY r.created_at DESC
    """,

    "list_repositories_with_stats": """
        MATCH (r:Repository)
        OPTIONAL MATCH (p:PullRequest {github_repo_id: r.github_repo_id})
        WITH r, count(DISTINCT p) AS pr_count
        OPTIONAL MATCH (ce:CodeEvaluation {github_repo_id: r.github_repo_id})
        RETURN r {.*} AS repository, pr_count, count(DISTINCT ce) AS review_count
        ORDER BY r.created_at DESC
    """,

    "get_repository_by_github_id": """
        MATCH (r:Repository {github_repo_id: $github_repo_id})
        RETURN r {.*} AS repository
    """,

    "get_repository_by_full_name": """
        MATCH (r:Repository {owner: $owner, name: $name})
        RETURN r {.*} AS repository
        LIMIT 1
    """,

    # ── Reviews ───────────────────────────────────────────────────────────
    "list_reviews": """
        MATCH (ce:CodeEvaluation)
        """ + _EVALUATION_FILTERS + """
        OPTIONAL MATCH (a:Agent {id: ce.agent_id})
        OPTIONAL MATCH (r:Repository {github_repo_id: ce.github_repo_id})
        OPTIONAL MATCH (p:PullRequest {github_repo_id: ce.github_repo_id, pr_number: ce.pr_number})
        RETURN ce {.*} AS evaluation,
               a.name AS agent_name,
               a.description AS agent_description,
               r.owner AS repo_owner,
               r.name AS repo_name,
               p.title AS pr_title,
               p.author AS pr_author
        ORDER BY ce.created_at DESC
    """,

    "review_score_averages": """
        MATCH (ce:CodeEvaluation)
        """ + _EVALUATION_FILTERS + """
        RETURN count(ce) AS total_reviews,
               avg(ce.correctness_score) AS avg_correctness,
               avg(ce.security_score) AS avg_security,
               avg(ce.maintainability_score) AS avg_maintainability,
               avg(ce.clarity_score) AS avg_clarity,
               avg(ce.production_readiness_score) AS avg_production_readiness
    """,

    "review_trend": """
        MATCH (ce:CodeEvaluation)
        """ + _EVALUATION_FILTERS + """
        RETURN ce.id AS id, """ + _SUM_OF_SCORES + """ / 5.0 AS helpfulness
        ORDER BY ce.created_at DESC
        LIMIT $trend_window
    """,

    "review_agent_comparison": """
        MATCH (ce:CodeEvaluation)
        """ + _EVALUATION_FILTERS + """
        OPTIONAL MATCH (a:Agent {id: ce.agent_id})
        WITH ce.agent_id AS agent_id, a.name AS agent_name,
             avg(""" + _SUM_OF_SCORES + """ / 5.0) AS avg_score,
             count(ce) AS review_count
        RETURN agent_id, agent_name, avg_score, review_count
        ORDER BY avg_score DESC
    """,
}
