import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from api.dependencies import get_orchestrator
from api.models.schemas import WebhookAck
from api.services.webhook_service import (
    WebhookOrchestrator,
    is_reviewable_event,
    parse_pull_request_event,
    process_pull_request_event,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/github")
async def webhook_status() -> str:
    return "GitHub webhook endpoint is up"


@router.post("/github", response_model=WebhookAck, response_model_exclude_none=True)
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    orchestrator: Optional[WebhookOrchestrator] = Depends(get_orchestrator),
) -> WebhookAck:
    """
    Receive GitHub App deliveries.

    Always answers 200 so GitHub never retries; ``pull_request`` events that
    open or update a PR are reviewed in the background after the response.
    """
    event_type = request.headers.get("X-GitHub-Event", "")

    try:
        payload = await request.json()
    except ValueError:
        logger.warning(f"Ignoring {event_type or 'unknown'} delivery with a non-JSON body")
        return WebhookAck(status="ignored", reason="invalid JSON body")

    if not is_reviewable_event(event_type, payload):
        action = payload.get("action") if isinstance(payload, dict) else None
        logger.debug(f"Ignoring webhook: event={event_type!r}, action={action!r}")
        return WebhookAck(status="ignored", reason=f"event={event_type}, action={action}")

    event = parse_pull_request_event(payload)
    if event is None:
        return WebhookAck(status="ignored", reason="malformed pull_request payload")

    if orchestrator is None:
        logger.error(f"Dropping {event.full_name}#{event.number}: review pipeline is not configured")
        return WebhookAck(status="ignored", reason="review pipeline not configured")

    logger.info(f"Received pull_request {event.action} for {event.full_name}#{event.number}")
    background_tasks.add_task(process_pull_request_event, orchestrator, event)

    return WebhookAck(status="processing", repo=event.full_name, pr_number=event.number)
