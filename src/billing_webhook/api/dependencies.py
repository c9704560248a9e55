"""Shared FastAPI dependencies for the webhook route."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from billing_webhook.config import WebhookConfig
from billing_webhook.middleware.raw_body import RAW_BODY_STATE_KEY
from billing_webhook.services.dispatcher import WebhookDispatcher

SIGNATURE_HEADER = "stripe-signature"


@dataclass(frozen=True)
class CapturedRequest:
    raw_body: bytes
    signature: str | None


def captured_request(request: Request) -> CapturedRequest:
    """Return the body bytes captured by ``RawBodyMiddleware``.

    Raises RuntimeError when the middleware did not run for this path;
    the body is never re-read from a parsed form.
    """
    raw_body = getattr(request.state, RAW_BODY_STATE_KEY, None)
    if raw_body is None:
        raise RuntimeError("RawBodyMiddleware is not installed for this route")
    return CapturedRequest(
        raw_body=raw_body,
        signature=request.headers.get(SIGNATURE_HEADER),
    )


def get_webhook_config(request: Request) -> WebhookConfig:
    return request.app.state.webhook_config


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher
