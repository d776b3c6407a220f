"""HTTP receiver for webhook delivery.

Telegram POSTs each update as JSON to the registered URL. When the webhook
was registered with a secret, every request must echo it in
``X-Telegram-Bot-Api-Secret-Token``.
"""

from __future__ import annotations

import hmac
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, HTTPException, Request

from ..logging import get_logger
from .types import TelegramIncomingUpdate, parse_incoming_update

logger = get_logger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

UpdateHandler = Callable[[TelegramIncomingUpdate], Awaitable[None]]


def create_webhook_app(
    handle: UpdateHandler,
    *,
    path: str = "/webhook",
    secret_token: str | None = None,
) -> FastAPI:
    app = FastAPI(title="fizzy-bot", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(path)
    async def receive_update(request: Request) -> dict[str, bool]:
        if secret_token is not None:
            supplied = request.headers.get(SECRET_HEADER, "")
            if not hmac.compare_digest(supplied, secret_token):
                logger.warning("webhook.rejected", client=_client_host(request))
                raise HTTPException(status_code=403, detail="invalid secret token")
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid JSON body") from None
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="expected a JSON object")
        update = parse_incoming_update(payload)
        if update is None:
            logger.debug("webhook.update.ignored", update_id=payload.get("update_id"))
            return {"ok": True}
        # handle_update reports its own failures; Telegram only needs a 200
        await handle(update)
        return {"ok": True}

    return app


def _client_host(request: Request) -> str | None:
    return request.client.host if request.client is not None else None
