"""
Repository endpoints - repositories seen through webhook deliveries.
"""

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from api.dependencies import get_review_store
from db import ReviewStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_repositories(
    include_stats: bool = Query(False, alias="includeStats", description="Include PR and review counts"),
    store: ReviewStore = Depends(get_review_store),
) -> List[Dict[str, Any]]:
    try:
        return await asyncio.to_thread(store.reviews.list_repositories, include_stats)
    except Exception as e:
        logger.error(f"Failed to fetch repositories: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch repositories")


@router.get("/with-agents")
async def list_repositories_with_agents(
    store: ReviewStore = Depends(get_review_store),
) -> List[Dict[str, Any]]:
    """Repositories with the agents explicitly assigned to them."""
    try:
        return await asyncio.to_thread(store.reviews.list_repositories_with_agents)
    except Exception as e:
        logger.error(f"Failed to fetch repositories with agents: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch repositories with agents")


@router.get("/github/{github_repo_id}")
async def get_repository_by_github_id(
    github_repo_id: int = Path(..., description="GitHub repository id"),
    store: ReviewStore = Depends(get_review_store),
) -> Dict[str, Any]:
    try:
        repo = await asyncio.to_thread(store.reviews.get_repository_by_github_id, github_repo_id)
    except Exception as e:
        logger.error(f"Failed to fetch repository {github_repo_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch repository")
    if repo is None:
        raise HTTPException(status_code=404, detail="Repository not found")
    return repo


@router.get("/fullname/{full_name:path}")
async def get_repository_by_full_name(
    full_name: str,
    store: ReviewStore = Depends(get_review_store),
) -> Dict[str, Any]:
    try:
        repo = await asyncio.to_thread(store.reviews.get_repository_by_full_name, full_name)
    except Exception as e:
        logger.error(f"Failed to fetch repository {full_name}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch repository")
    if repo is None:
        raise HTTPException(status_code=404, detail="Repository not found")
    return repo
