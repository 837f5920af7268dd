"""Webhook API — unauthenticated endpoint for receiving GitHub push events."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from github_deploy.api.deps import get_deploy_service, get_settings
from github_deploy.config import Settings
from github_deploy.metrics import WEBHOOKS_TOTAL
from github_deploy.services.deploy_service import DeployService
from github_deploy.services.signature import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/{path:path}", response_class=PlainTextResponse)
async def receive_push(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    service: DeployService = Depends(get_deploy_service),
) -> PlainTextResponse:
    """Receive a GitHub webhook delivery on any path.

    Validation is done via HMAC signature. The deploy runs as a
    background task once the response has been sent.
    """
    body = await request.body()
    signature = request.headers.get("X-Hub-Signature-256")

    if not verify_signature(signature, body, settings.webhook_secret):
        WEBHOOKS_TOTAL.labels(outcome="unauthorized").inc()
        logger.warning("Signature mismatch for delivery to %s", request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized")

    WEBHOOKS_TOTAL.labels(outcome="accepted").inc()
    background_tasks.add_task(service.handle_push, body)
    return PlainTextResponse("ok")
