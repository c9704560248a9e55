"""Tests for decoding verified bodies into typed events."""

from __future__ import annotations

import pytest

from billing_webhook.errors import InvalidPayload
from billing_webhook.services.events import (
    CheckoutCompleted,
    EventKind,
    InvoicePayment,
    SubscriptionChanged,
    UnrecognizedEvent,
    decode_event,
)


def test_checkout_without_reference_id(make_event):
    body = make_event(
        "checkout.session.completed",
        {"id": "cs_1", "customer": "cus_XYZ", "client_reference_id": None, "subscription": "sub_2"},
    )

    event = decode_event(body)

    assert event == CheckoutCompleted(
        event_id="evt_test_1",
        type="checkout.session.completed",
        session_id="cs_1",
        customer="cus_XYZ",
        client_reference_id=None,
        subscription_id="sub_2",
    )


def test_checkout_with_expanded_customer(make_event):
    body = make_event(
        "checkout.session.completed",
        {"id": "cs_1", "customer": {"id": "cus_EXP", "object": "customer"}, "subscription": None},
    )

    event = decode_event(body)

    assert event.customer == "cus_EXP"
    assert event.subscription_id is None


def test_checkout_without_customer_keeps_reference_id(make_event):
    body = make_event(
        "checkout.session.completed",
        {"id": "cs_1", "customer": None, "client_reference_id": "cust_42"},
    )

    event = decode_event(body)

    assert event.customer is None
    assert event.client_reference_id == "cust_42"


def test_checkout_without_customer_or_reference_is_invalid(make_event):
    body = make_event(
        "checkout.session.completed",
        {"id": "cs_1", "customer": None, "client_reference_id": None},
    )

    with pytest.raises(InvalidPayload):
        decode_event(body)


@pytest.mark.parametrize(
    "event_type, kind",
    [
        ("customer.subscription.created", EventKind.SUBSCRIPTION_CREATED),
        ("customer.subscription.updated", EventKind.SUBSCRIPTION_UPDATED),
        ("customer.subscription.deleted", EventKind.SUBSCRIPTION_DELETED),
    ],
)
def test_subscription_events(event_type, kind, make_event):
    body = make_event(event_type, {"id": "sub_1", "customer": "cus_1", "status": "trialing"})

    event = decode_event(body)

    assert isinstance(event, SubscriptionChanged)
    assert event.kind is kind
    assert event.subscription_id == "sub_1"
    assert event.customer == "cus_1"
    assert event.status == "trialing"


def test_subscription_without_status_is_invalid(make_event):
    body = make_event("customer.subscription.updated", {"id": "sub_1", "customer": "cus_1"})

    with pytest.raises(InvalidPayload):
        decode_event(body)


def test_invoice_top_level_subscription(make_event):
    body = make_event(
        "invoice.payment_failed",
        {"id": "in_1", "customer": "cus_9", "subscription": "sub_9"},
    )

    event = decode_event(body)

    assert isinstance(event, InvoicePayment)
    assert event.kind is EventKind.PAYMENT_FAILED
    assert event.subscription_id == "sub_9"


def test_invoice_parent_subscription_details(make_event):
    body = make_event(
        "invoice.payment_succeeded",
        {
            "id": "in_2",
            "customer": "cus_9",
            "parent": {
                "type": "subscription_details",
                "subscription_details": {"subscription": "sub_new"},
            },
        },
    )

    event = decode_event(body)

    assert event.kind is EventKind.PAYMENT_SUCCEEDED
    assert event.subscription_id == "sub_new"


@pytest.mark.parametrize("parent", ["subscription_details", ["x"], {"subscription_details": "sub_x"}])
def test_invoice_with_odd_parent_has_no_subscription(parent, make_event):
    body = make_event(
        "invoice.payment_failed", {"id": "in_4", "customer": "cus_1", "parent": parent},
    )

    assert decode_event(body).subscription_id is None


def test_invoice_without_subscription(make_event):
    body = make_event("invoice.payment_succeeded", {"id": "in_3", "customer": "cus_1"})

    assert decode_event(body).subscription_id is None


def test_unrecognized_type_needs_no_data(make_event):
    body = make_event("price.updated", {})

    event = decode_event(body)

    assert event == UnrecognizedEvent(event_id="evt_test_1", type="price.updated")


@pytest.mark.parametrize(
    "body",
    [b"[]", b'{"type": "price.updated"}', b'{"id": "evt_1", "type": "invoice.payment_failed"}'],
)
def test_malformed_envelopes(body):
    with pytest.raises(InvalidPayload):
        decode_event(body)
