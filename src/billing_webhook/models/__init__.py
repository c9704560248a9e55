"""ORM models package -- re-exports all models and the Base class."""

from billing_webhook.models.base import Base
from billing_webhook.models.subscriber import PremiumUser

__all__ = [
    "Base",
    "PremiumUser",
]
