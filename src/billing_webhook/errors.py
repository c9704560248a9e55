"""Error kinds surfaced by the webhook endpoint.

Each error carries the HTTP status it maps to.  ``main`` registers a single
exception handler that renders any ``WebhookError`` as ``{"error": ...}``.
"""

from __future__ import annotations


class WebhookError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MethodNotAllowed(WebhookError):
    """Non-POST request to the webhook route."""

    status_code = 405


class SignatureInvalid(WebhookError):
    """Missing, malformed, expired or mismatching signature.

    The provider treats a 4xx as a permanent rejection and does not retry.
    """

    status_code = 400


class InvalidPayload(WebhookError):
    """Signature matched but the body cannot be decoded into an event."""

    status_code = 400


class StoreError(WebhookError):
    """The record store was unavailable or rejected the write.

    Answered with 500 so the provider re-delivers the event.
    """

    status_code = 500


class ProviderLookupError(StoreError):
    """Retrieving the subscription from the provider failed."""
