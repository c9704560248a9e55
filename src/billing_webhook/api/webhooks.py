"""Stripe webhook endpoint."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billing_webhook.api.dependencies import (
    CapturedRequest,
    captured_request,
    get_dispatcher,
    get_webhook_config,
)
from billing_webhook.config import WebhookConfig
from billing_webhook.database import get_db
from billing_webhook.services.dispatcher import WebhookAck, WebhookDispatcher
from billing_webhook.services.verifier import verify_event

WEBHOOK_PATH = "/api/webhook"

router = APIRouter(tags=["webhooks"])

log = structlog.get_logger()


@router.post(WEBHOOK_PATH, response_model=WebhookAck)
async def stripe_webhook(
    captured: CapturedRequest = Depends(captured_request),
    config: WebhookConfig = Depends(get_webhook_config),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
    db: AsyncSession = Depends(get_db),
):
    """Verify a Stripe event against the raw body and apply it.

    Responds only after the store has committed the change.
    """
    log.info(
        "webhook_received",
        has_signature=captured.signature is not None,
        has_secret=config.has_secret,
        body_length=len(captured.raw_body),
    )
    event = verify_event(captured.raw_body, captured.signature, config)
    structlog.contextvars.bind_contextvars(event_id=event.event_id, event_type=event.type)
    try:
        return await dispatcher.dispatch(event, db)
    finally:
        structlog.contextvars.unbind_contextvars("event_id", "event_type")
