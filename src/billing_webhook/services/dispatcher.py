"""Route verified events to the handler that updates subscriber state.

Routing table:

    checkout.session.completed     -> upsert, status=active
    customer.subscription.created  -> status from the event
    customer.subscription.updated  -> status from the event
    customer.subscription.deleted  -> status=canceled
    invoice.payment_succeeded      -> fetch subscription, status=active
    invoice.payment_failed         -> fetch subscription, status=past_due
    anything else                  -> logged and acknowledged

Status updates for a Stripe customer with no existing row insert a row
keyed by the Stripe customer id.  The store session is committed before the
acknowledgement is returned; any store or provider failure rolls back and
propagates so the delivery is not acknowledged.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billing_webhook.errors import StoreError
from billing_webhook.integrations.stripe_subscriptions import ProviderSubscription
from billing_webhook.services.events import (
    CheckoutCompleted,
    EventKind,
    InboundEvent,
    InvoicePayment,
    SubscriptionChanged,
    SubscriptionStatus,
    UnrecognizedEvent,
)
from billing_webhook.services.subscriber_store import (
    SubscriberRecord,
    find_by_stripe_customer,
    update_subscriber,
    upsert_subscriber,
)

log = structlog.get_logger()


class WebhookAck(BaseModel):
    received: bool = True
    event_type: str


class SubscriptionProvider(Protocol):
    """Structural interface for the provider's subscription lookup."""

    async def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription: ...


Handler = Callable[[AsyncSession, Any], Awaitable[None]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WebhookDispatcher:
    """Applies verified events to the subscriber table."""

    def __init__(self, provider: SubscriptionProvider) -> None:
        self._provider = provider
        self._handlers: dict[EventKind, Handler] = {
            EventKind.CHECKOUT_COMPLETED: self._handle_checkout_completed,
            EventKind.SUBSCRIPTION_CREATED: self._handle_subscription_changed,
            EventKind.SUBSCRIPTION_UPDATED: self._handle_subscription_changed,
            EventKind.SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            EventKind.PAYMENT_SUCCEEDED: self._handle_invoice_payment,
            EventKind.PAYMENT_FAILED: self._handle_invoice_payment,
        }

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def dispatch(self, event: InboundEvent, db: AsyncSession) -> WebhookAck:
        """Run the handler for *event* and commit its writes."""
        if isinstance(event, UnrecognizedEvent):
            log.info("webhook_event_ignored", event_id=event.event_id, event_type=event.type)
            return WebhookAck(event_type=event.type)

        handler = self._handlers[EventKind(event.type)]
        try:
            await handler(db, event)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            log.error("webhook_store_failed", event_id=event.event_id, error=str(exc))
            raise StoreError("Failed to persist subscription change") from exc
        except StoreError as exc:
            await db.rollback()
            log.error("webhook_handler_failed", event_id=event.event_id, error=exc.message)
            raise

        log.info("webhook_event_processed", event_id=event.event_id, event_type=event.type)
        return WebhookAck(event_type=event.type)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_checkout_completed(
        self, db: AsyncSession, event: CheckoutCompleted,
    ) -> None:
        record = SubscriberRecord(
            customer_id=event.client_reference_id or event.customer,
            stripe_customer_id=event.customer,
            subscription_id=event.subscription_id,
            status=SubscriptionStatus.ACTIVE.value,
            updated_at=_now(),
        )
        log.info(
            "checkout_completed",
            session_id=event.session_id,
            customer_id=record.customer_id,
            stripe_customer_id=record.stripe_customer_id,
        )
        await upsert_subscriber(db, record)

    async def _handle_subscription_changed(
        self, db: AsyncSession, event: SubscriptionChanged,
    ) -> None:
        await self._apply_status(db, event.customer, event.subscription_id, event.status)

    async def _handle_subscription_deleted(
        self, db: AsyncSession, event: SubscriptionChanged,
    ) -> None:
        await self._apply_status(
            db, event.customer, event.subscription_id, SubscriptionStatus.CANCELED.value,
        )

    async def _handle_invoice_payment(
        self, db: AsyncSession, event: InvoicePayment,
    ) -> None:
        if event.subscription_id is None:
            log.info("invoice_without_subscription", invoice_id=event.invoice_id)
            return

        subscription = await self._provider.retrieve_subscription(event.subscription_id)
        status = (
            SubscriptionStatus.ACTIVE
            if event.kind is EventKind.PAYMENT_SUCCEEDED
            else SubscriptionStatus.PAST_DUE
        )
        await self._apply_status(
            db, subscription.customer, subscription.subscription_id, status.value,
        )

    # ------------------------------------------------------------------
    # Shared write path
    # ------------------------------------------------------------------

    async def _apply_status(
        self,
        db: AsyncSession,
        stripe_customer_id: str,
        subscription_id: str,
        status: str,
    ) -> None:
        """Update the row for a Stripe customer, inserting one if missing."""
        updated_at = _now()
        customer_id = await find_by_stripe_customer(db, stripe_customer_id)

        if customer_id is None:
            log.info(
                "subscriber_fallback_insert",
                stripe_customer_id=stripe_customer_id,
                status=status,
            )
            await upsert_subscriber(
                db,
                SubscriberRecord(
                    customer_id=stripe_customer_id,
                    stripe_customer_id=stripe_customer_id,
                    subscription_id=subscription_id,
                    status=status,
                    updated_at=updated_at,
                ),
            )
            return

        log.info("subscriber_status_updated", customer_id=customer_id, status=status)
        await update_subscriber(
            db,
            customer_id,
            stripe_customer_id=stripe_customer_id,
            subscription_id=subscription_id,
            status=status,
            updated_at=updated_at,
        )
