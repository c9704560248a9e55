"""Record store operations for ``premium_users``.

Every write assigns absolute values, so applying the same event twice
leaves the row unchanged.  The SQL is portable between PostgreSQL and
SQLite (``ON CONFLICT ... DO UPDATE``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billing_webhook.errors import StoreError


@dataclass(frozen=True)
class SubscriberRecord:
    customer_id: str
    stripe_customer_id: str | None
    subscription_id: str | None
    status: str
    updated_at: datetime


_UPSERT_SQL = text(
    "INSERT INTO premium_users "
    "(customer_id, stripe_customer_id, subscription_id, status, updated_at) "
    "VALUES (:customer_id, :stripe_customer_id, :subscription_id, :status, :updated_at) "
    "ON CONFLICT (customer_id) DO UPDATE SET "
    "stripe_customer_id = excluded.stripe_customer_id, "
    "subscription_id = excluded.subscription_id, "
    "status = excluded.status, "
    "updated_at = excluded.updated_at"
).bindparams(bindparam("updated_at", type_=DateTime(timezone=True)))

_FIND_SQL = text(
    "SELECT customer_id FROM premium_users "
    "WHERE stripe_customer_id = :stripe_customer_id "
    "ORDER BY updated_at DESC "
    "LIMIT 1"
)

_UPDATE_SQL = text(
    "UPDATE premium_users "
    "SET stripe_customer_id = :stripe_customer_id, "
    "subscription_id = :subscription_id, "
    "status = :status, "
    "updated_at = :updated_at "
    "WHERE customer_id = :customer_id"
).bindparams(bindparam("updated_at", type_=DateTime(timezone=True)))


async def upsert_subscriber(db: AsyncSession, record: SubscriberRecord) -> None:
    """Insert or overwrite the row keyed by ``record.customer_id``."""
    try:
        await db.execute(
            _UPSERT_SQL,
            {
                "customer_id": record.customer_id,
                "stripe_customer_id": record.stripe_customer_id,
                "subscription_id": record.subscription_id,
                "status": record.status,
                "updated_at": record.updated_at,
            },
        )
    except SQLAlchemyError as exc:
        raise StoreError("Failed to upsert subscriber") from exc


async def find_by_stripe_customer(
    db: AsyncSession,
    stripe_customer_id: str,
) -> str | None:
    """Return the ``customer_id`` key for a Stripe customer, if any."""
    try:
        result = await db.execute(
            _FIND_SQL, {"stripe_customer_id": stripe_customer_id},
        )
    except SQLAlchemyError as exc:
        raise StoreError("Failed to look up subscriber") from exc
    row = result.fetchone()
    return row[0] if row is not None else None


async def update_subscriber(
    db: AsyncSession,
    customer_id: str,
    *,
    stripe_customer_id: str,
    subscription_id: str | None,
    status: str,
    updated_at: datetime,
) -> None:
    """Overwrite status fields on an existing row."""
    try:
        await db.execute(
            _UPDATE_SQL,
            {
                "customer_id": customer_id,
                "stripe_customer_id": stripe_customer_id,
                "subscription_id": subscription_id,
                "status": status,
                "updated_at": updated_at,
            },
        )
    except SQLAlchemyError as exc:
        raise StoreError("Failed to update subscriber") from exc
