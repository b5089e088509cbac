"""
Review history and statistics for the dashboard.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_review_store
from db import ReviewStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_reviews(
    agent_id: Optional[str] = Query(None, alias="agentId"),
    start_date: Optional[str] = Query(None, alias="startDate", description="YYYY-MM-DD, inclusive"),
    end_date: Optional[str] = Query(None, alias="endDate", description="YYYY-MM-DD, inclusive"),
    limit: Optional[int] = Query(None, ge=1),
    offset: Optional[int] = Query(None, ge=0),
    store: ReviewStore = Depends(get_review_store),
) -> List[Dict[str, Any]]:
    try:
        return await asyncio.to_thread(
            store.reviews.list_reviews, agent_id, start_date, end_date, limit, offset
        )
    except Exception as e:
        logger.error(f"Failed to fetch reviews: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch reviews")


@router.get("/stats")
async def review_stats(
    agent_id: Optional[str] = Query(None, alias="agentId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    store: ReviewStore = Depends(get_review_store),
) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(
            store.reviews.get_review_stats, agent_id, start_date, end_date
        )
    except Exception as e:
        logger.error(f"Failed to fetch review stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch review statistics")
