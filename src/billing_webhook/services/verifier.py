"""Stripe signature verification over the captured request body."""

from __future__ import annotations

import stripe
import structlog

from billing_webhook.config import WebhookConfig
from billing_webhook.errors import SignatureInvalid, WebhookError
from billing_webhook.services.events import InboundEvent, decode_event

log = structlog.get_logger()


def verify_event(
    raw_body: bytes,
    signature: str | None,
    config: WebhookConfig,
) -> InboundEvent:
    """Check the Stripe-Signature header against ``raw_body``, then decode.

    The header carries ``t=<timestamp>`` and one or more ``v1=<digest>``
    entries.  At least one digest must equal HMAC-SHA256(secret,
    ``"{t}.{body}"``) and ``t`` must be within the configured tolerance.
    The body is decoded only after that succeeds.
    """
    if not config.has_secret:
        log.error("webhook_secret_missing")
        raise WebhookError("Webhook secret is not configured")

    if not signature:
        raise SignatureInvalid("Missing Stripe-Signature header")

    try:
        payload = raw_body.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureInvalid("Invalid signature")

    try:
        stripe.WebhookSignature.verify_header(
            payload,
            signature,
            config.webhook_secret.get_secret_value(),
            tolerance=config.tolerance_seconds,
        )
    except stripe.SignatureVerificationError as exc:
        log.warning("webhook_signature_invalid", reason=str(exc), body_length=len(raw_body))
        raise SignatureInvalid("Invalid signature")

    return decode_event(raw_body)
