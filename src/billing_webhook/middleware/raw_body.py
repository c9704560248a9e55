"""Capture the exact request body for signature-verified routes.

Runs as a plain ASGI middleware so the bytes are collected before FastAPI
touches the request.  The captured value is the concatenation of every
``http.request`` chunk as received; nothing is decoded or re-serialized.
"""

from __future__ import annotations

import structlog
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from billing_webhook.errors import MethodNotAllowed

log = structlog.get_logger()

RAW_BODY_STATE_KEY = "raw_body"


class RawBodyMiddleware:
    """Reject non-POST requests and stash the raw body for guarded paths."""

    def __init__(self, app: ASGIApp, paths: set[str] | frozenset[str]) -> None:
        self.app = app
        self.paths = frozenset(paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] not in self.paths:
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        if method != "POST":
            error = MethodNotAllowed("Method not allowed")
            log.info("webhook_method_rejected", method=method, path=scope["path"])
            response = JSONResponse(
                status_code=error.status_code,
                content={"error": error.message, "method": method},
                headers={"Allow": "POST"},
            )
            await response(scope, receive, send)
            return

        body = await _read_body(receive)
        scope.setdefault("state", {})[RAW_BODY_STATE_KEY] = body
        await self.app(scope, _replay(body, receive), send)


async def _read_body(receive: Receive) -> bytes:
    """Drain the request stream into a single bytes value."""
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def _replay(body: bytes, receive: Receive) -> Receive:
    """Hand the already-drained body to the downstream app exactly once."""
    sent = False

    async def replay_receive() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay_receive
