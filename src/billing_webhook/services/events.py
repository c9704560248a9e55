"""Typed view of verified Stripe events.

Each variant carries only what its handler needs.  Anything that is not one
of the handled kinds decodes to ``UnrecognizedEvent`` so it can be
acknowledged without touching the store.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from billing_webhook.errors import InvalidPayload


class EventKind(str, Enum):
    """Event types the dispatcher routes to a handler."""

    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    PAYMENT_FAILED = "invoice.payment_failed"


class SubscriptionStatus(str, Enum):
    """Statuses the handlers assign themselves.

    Subscription events may report any provider status; those are stored
    as given.
    """

    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    type: str
    session_id: str
    customer: str | None
    client_reference_id: str | None
    subscription_id: str | None


@dataclass(frozen=True)
class SubscriptionChanged:
    event_id: str
    type: str
    kind: EventKind
    subscription_id: str
    customer: str
    status: str


@dataclass(frozen=True)
class InvoicePayment:
    event_id: str
    type: str
    kind: EventKind
    invoice_id: str
    customer: str | None
    subscription_id: str | None


@dataclass(frozen=True)
class UnrecognizedEvent:
    event_id: str
    type: str


InboundEvent = Union[CheckoutCompleted, SubscriptionChanged, InvoicePayment, UnrecognizedEvent]


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _id_of(value: Any) -> str | None:
    """Return the id of a reference that may be a string or expanded object."""
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, str) and value:
        return value
    return None


def _require(obj: dict, field: str, event_type: str) -> str:
    value = _id_of(obj.get(field))
    if value is None:
        raise InvalidPayload(f"{event_type} event is missing '{field}'")
    return value


def _invoice_subscription(invoice: dict) -> str | None:
    """Invoices carry the subscription at the top level on older API
    versions and under ``parent.subscription_details`` on newer ones."""
    direct = _id_of(invoice.get("subscription"))
    if direct is not None:
        return direct
    parent = invoice.get("parent")
    if not isinstance(parent, dict):
        return None
    details = parent.get("subscription_details")
    if not isinstance(details, dict):
        return None
    return _id_of(details.get("subscription"))


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _decode_checkout(event_id: str, event_type: str, obj: dict) -> CheckoutCompleted:
    customer = _id_of(obj.get("customer"))
    reference = obj.get("client_reference_id")
    client_reference_id = reference if isinstance(reference, str) and reference else None
    if customer is None and client_reference_id is None:
        raise InvalidPayload(
            f"{event_type} event has neither 'customer' nor 'client_reference_id'"
        )
    return CheckoutCompleted(
        event_id=event_id,
        type=event_type,
        session_id=_require(obj, "id", event_type),
        customer=customer,
        client_reference_id=client_reference_id,
        subscription_id=_id_of(obj.get("subscription")),
    )


def _decode_subscription(
    kind: EventKind, event_id: str, event_type: str, obj: dict,
) -> SubscriptionChanged:
    status = obj.get("status")
    if not isinstance(status, str) or not status:
        raise InvalidPayload(f"{event_type} event is missing 'status'")
    return SubscriptionChanged(
        event_id=event_id,
        type=event_type,
        kind=kind,
        subscription_id=_require(obj, "id", event_type),
        customer=_require(obj, "customer", event_type),
        status=status,
    )


def _decode_invoice(
    kind: EventKind, event_id: str, event_type: str, obj: dict,
) -> InvoicePayment:
    return InvoicePayment(
        event_id=event_id,
        type=event_type,
        kind=kind,
        invoice_id=_require(obj, "id", event_type),
        customer=_id_of(obj.get("customer")),
        subscription_id=_invoice_subscription(obj),
    )


def decode_event(raw_body: bytes) -> InboundEvent:
    """Decode a verified request body into an ``InboundEvent``.

    Must only be called after the signature over ``raw_body`` has been
    checked.  Raises ``InvalidPayload`` when the JSON is malformed or a
    handled event lacks a field its handler needs.
    """
    try:
        envelope = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidPayload("Invalid payload") from exc

    if not isinstance(envelope, dict):
        raise InvalidPayload("Invalid payload")

    event_id = envelope.get("id")
    event_type = envelope.get("type")
    if not isinstance(event_id, str) or not isinstance(event_type, str):
        raise InvalidPayload("Event is missing 'id' or 'type'")

    try:
        kind = EventKind(event_type)
    except ValueError:
        return UnrecognizedEvent(event_id=event_id, type=event_type)

    data = envelope.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        raise InvalidPayload(f"{event_type} event is missing 'data.object'")

    if kind is EventKind.CHECKOUT_COMPLETED:
        return _decode_checkout(event_id, event_type, obj)
    if kind in (
        EventKind.SUBSCRIPTION_CREATED,
        EventKind.SUBSCRIPTION_UPDATED,
        EventKind.SUBSCRIPTION_DELETED,
    ):
        return _decode_subscription(kind, event_id, event_type, obj)
    return _decode_invoice(kind, event_id, event_type, obj)
