"""Subscriber records written by the webhook handlers."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from billing_webhook.models.base import Base


class PremiumUser(Base):
    """One row per application customer; ``customer_id`` is the upsert key."""

    __tablename__ = "premium_users"

    customer_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )
    subscription_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("length(customer_id) > 0", name="ck_premium_users_customer_id"),
    )
