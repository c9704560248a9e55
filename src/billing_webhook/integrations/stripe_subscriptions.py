"""Stripe subscription lookups used by the invoice payment handlers.

Invoice events do not carry the subscription's status, so the handlers ask
Stripe for the canonical subscription before writing.

Usage:
    from billing_webhook.integrations.stripe_subscriptions import StripeSubscriptionProvider

    provider = StripeSubscriptionProvider(api_key=config.stripe_api_key)
    subscription = await provider.retrieve_subscription("sub_123")
"""

from __future__ import annotations

from dataclasses import dataclass

import stripe
from pydantic import SecretStr

from billing_webhook.errors import ProviderLookupError


@dataclass(frozen=True)
class ProviderSubscription:
    subscription_id: str
    customer: str
    status: str


class StripeSubscriptionProvider:
    """Reads subscriptions from the Stripe API with an explicit key."""

    def __init__(self, api_key: SecretStr) -> None:
        self._api_key = api_key

    async def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        """Fetch a subscription's current customer and status.

        Raises ``ProviderLookupError`` on any Stripe API failure.
        """
        try:
            subscription = stripe.Subscription.retrieve(
                subscription_id,
                api_key=self._api_key.get_secret_value(),
            )
        except stripe.StripeError as exc:
            raise ProviderLookupError(
                f"Failed to retrieve subscription {subscription_id}"
            ) from exc

        customer = subscription.customer
        if not isinstance(customer, str):
            customer = customer.id
        return ProviderSubscription(
            subscription_id=subscription.id,
            customer=customer,
            status=subscription.status,
        )
