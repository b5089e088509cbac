from typing import Any, Dict, List, Optional
import logging

from .client import Neo4jClient
from .schema import CYPHER_QUERIES

logger = logging.getLogger(__name__)

TREND_WINDOW = 50


def _repository_to_dict(row: Dict[str, Any]) -> Dict[str, Any]:
    owner = row.get("owner")
    name = row.get("name")
    return {
        "githubRepoId": row.get("github_repo_id"),
        "fullName": row.get("full_name") or f"{owner}/{name}",
        "owner": owner,
        "name": name,
        "description": row.get("description"),
        "url": row.get("url"),
        "htmlUrl": row.get("html_url"),
        "isPrivate": bool(row.get("is_private") or False),
        "defaultBranch": row.get("default_branch") or "main",
        "language": row.get("language"),
        "starsCount": row.get("stars_count") or 0,
        "forksCount": row.get("forks_count") or 0,
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at") or row.get("created_at"),
    }


def _review_to_dict(record: Any) -> Dict[str, Any]:
    ce = record["evaluation"]
    return {
        "id": ce.get("id"),
        "agentId": ce.get("agent_id"),
        "agentName": record.get("agent_name"),
        "agentDescription": record.get("agent_description"),
        "repository": f"{record.get('repo_owner')}/{record.get('repo_name')}",
        "prNumber": ce.get("pr_number"),
        "prTitle": record.get("pr_title"),
        "prAuthor": record.get("pr_author"),
        "filePath": ce.get("file_path"),
        "scores": {
            "correctness": ce.get("correctness_score"),
            "security": ce.get("security_score"),
            "maintainability": ce.get("maintainability_score"),
            "clarity": ce.get("clarity_score"),
            "productionReadiness": ce.get("production_readiness_score"),
        },
        "reasons": {
            "correctness": ce.get("correctness_reason"),
            "security": ce.get("security_reason"),
            "maintainability": ce.get("maintainability_reason"),
            "clarity": ce.get("clarity_reason"),
            "productionReadiness": ce.get("production_readiness_reason"),
        },
        "overallSummary": ce.get("overall_summary"),
        "evaluationModel": ce.get("evaluation_model"),
        "evaluationVersion": ce.get("evaluation_version"),
        "createdAt": ce.get("created_at"),
    }


def build_review_stats(
    averages: Optional[Any],
    trend_rows: List[Any],
    agent_rows: List[Any],
) -> Dict[str, Any]:
    """
    Assemble the dashboard statistics payload.

    ``trend_rows`` arrive newest first and are reversed so the trend reads
    oldest to newest, indexed from 1.
    """
    averages = averages or {}
    return {
        "totalReviews": averages.get("total_reviews") or 0,
        "averageScores": {
            "correctness": float(averages.get("avg_correctness") or 0),
            "security": float(averages.get("avg_security") or 0),
            "maintainability": float(averages.get("avg_maintainability") or 0),
            "clarity": float(averages.get("avg_clarity") or 0),
            "productionReadiness": float(averages.get("avg_production_readiness") or 0),
        },
        "trendData": [
            {"index": index, "helpfulness": float(row.get("helpfulness") or 0)}
            for index, row in enumerate(reversed(trend_rows), start=1)
        ],
        "agentComparison": [
            {
                "agentId": row.get("agent_id"),
                "agentName": row.get("agent_name") or "Unknown Agent",
                "avgScore": float(row.get("avg_score") or 0),
                "reviewCount": row.get("review_count") or 0,
            }
            for row in agent_rows
        ],
    }


class ReviewQueryService:
    """
    Read side consumed by the dashboard.

    Provides methods for:
    - Listing evaluations with agent/date filters and pagination
    - Aggregated review statistics
    - Listing repositories, optionally with counts and agent assignments
    """

    def __init__(self, client: Neo4jClient):
        self.db = client

    # =========================================================================
    # Reviews
    # =========================================================================

    def list_reviews(
        self,
        agent_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Evaluations newest first. ``offset`` only applies together with ``limit``."""
        query = CYPHER_QUERIES["list_reviews"]
        params: Dict[str, Any] = {
            "agent_id": agent_id,
            "start_date": start_date,
            "end_date": end_date,
        }
        if limit:
            if offset:
                query += "\nSKIP $offset"
                params["offset"] = offset
            query += "\nLIMIT $limit"
            params["limit"] = limit

        records, _, _ = self.db.run_query(query, params)
        return [_review_to_dict(record) for record in records]

    def get_review_stats(
        self,
        agent_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {"agent_id": agent_id, "start_date": start_date, "end_date": end_date}

        averages, _, _ = self.db.run_query(CYPHER_QUERIES["review_score_averages"], params)
        trend, _, _ = self.db.run_query(
            CYPHER_QUERIES["review_trend"], {**params, "trend_window": TREND_WINDOW}
        )
        agents, _, _ = self.db.run_query(CYPHER_QUERIES["review_agent_comparison"], params)

        return build_review_stats(averages[0] if averages else None, trend, agents)

    # =========================================================================
    # Repositories
    # =========================================================================

    def list_repositories(self, include_stats: bool = False) -> List[Dict[str, Any]]:
        if not include_stats:
            records, _, _ = self.db.run_query(CYPHER_QUERIES["list_repositories"])
            return [_repository_to_dict(record["repository"]) for record in records]

        records, _, _ = self.db.run_query(CYPHER_QUERIES["list_repositories_with_stats"])
        return [
            {
                **_repository_to_dict(record["repository"]),
                "prCount": int(record.get("pr_count") or 0),
                "reviewCount": int(record.get("review_count") or 0),
            }
            for record in records
        ]

    def get_repository_by_github_id(self, github_repo_id: int) -> Optional[Dict[str, Any]]:
        records, _, _ = self.db.run_query(
            CYPHER_QUERIES["get_repository_by_github_id"], {"github_repo_id": github_repo_id}
        )
        if not records:
            return None
        return _repository_to_dict(records[0]["repository"])

    def get_repository_by_full_name(self, full_name: str) -> Optional[Dict[str, Any]]:
        owner, _, name = full_name.partition("/")
        if not owner.strip() or not name.strip():
            return None
        records, _, _ = self.db.run_query(
            CYPHER_QUERIES["get_repository_by_full_name"],
            {"owner": owner.strip(), "name": name.strip()},
        )
        if not records:
            return None
        return _repository_to_dict(records[0]["repository"])

    def list_repositories_with_agents(self) -> List[Dict[str, Any]]:
        """Repositories with the agents whose mapping names them exactly."""
        repositories = self.list_repositories(include_stats=False)
        records, _, _ = self.db.run_query(CYPHER_QUERIES["list_agent_assignments"])

        assignments: Dict[str, List[Dict[str, str]]] = {}
        for record in records:
            assignments.setdefault(record["repository_full_name"], []).append(
                {"agentId": record["agent_id"], "agentName": record["agent_name"]}
            )

        return [
            {**repo, "assignedAgents": assignments.get(repo["fullName"], [])}
            for repo in repositories
        ]
