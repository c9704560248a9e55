from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from billing_webhook.api.webhooks import WEBHOOK_PATH
from billing_webhook.api.webhooks import router as webhooks_router
from billing_webhook.config import Settings, WebhookConfig, settings
from billing_webhook.errors import WebhookError
from billing_webhook.integrations.stripe_subscriptions import StripeSubscriptionProvider
from billing_webhook.middleware.raw_body import RawBodyMiddleware
from billing_webhook.services.dispatcher import WebhookDispatcher


def configure_logging(app_env: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.dev.ConsoleRenderer()
                if app_env == "development"
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


log = structlog.get_logger()


async def webhook_error_handler(request: Request, exc: WebhookError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("webhook_request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app(app_settings: Settings) -> FastAPI:
    """Build the application with its configuration threaded through.

    The webhook config and dispatcher are created once here and shared by
    every request; neither holds per-request state.
    """
    config = WebhookConfig.from_settings(app_settings)

    app = FastAPI(title="Billing Webhook")
    app.state.webhook_config = config
    app.state.dispatcher = WebhookDispatcher(
        StripeSubscriptionProvider(api_key=config.stripe_api_key),
    )

    # Must wrap the router so the body is captured before FastAPI reads it
    app.add_middleware(RawBodyMiddleware, paths={WEBHOOK_PATH})
    app.add_exception_handler(WebhookError, webhook_error_handler)

    app.include_router(webhooks_router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    log.info("app_created", env=app_settings.APP_ENV, has_secret=config.has_secret)
    return app


configure_logging(settings.APP_ENV)
app = create_app(settings)
