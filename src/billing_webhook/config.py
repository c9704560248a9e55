from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://app:devpassword@db:5432/billing"

    STRIPE_SECRET_KEY: SecretStr = SecretStr("")
    STRIPE_WEBHOOK_SECRET: SecretStr = SecretStr("")
    WEBHOOK_TOLERANCE_SECONDS: int = Field(300, gt=0)

    APP_ENV: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@dataclass(frozen=True)
class WebhookConfig:
    """Process-wide webhook configuration, built once at startup."""

    webhook_secret: SecretStr
    stripe_api_key: SecretStr
    tolerance_seconds: int = 300

    @classmethod
    def from_settings(cls, settings: Settings) -> WebhookConfig:
        return cls(
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            stripe_api_key=settings.STRIPE_SECRET_KEY,
            tolerance_seconds=settings.WEBHOOK_TOLERANCE_SECONDS,
        )

    @property
    def has_secret(self) -> bool:
        return bool(self.webhook_secret.get_secret_value())


settings = Settings()
