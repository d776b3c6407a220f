from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import anyio
import httpx

from ..logging import get_logger, register_secret
from ..settings import TELEGRAM_API_BASE
from .types import TelegramIncomingUpdate, parse_incoming_update

logger = get_logger(__name__)

ALLOWED_UPDATES = ["message", "callback_query", "my_chat_member"]
_POLL_ERROR_BACKOFF_S = 2.0


class BotClient:
    """Async Telegram Bot API client.

    Failed calls are logged and come back as ``None``; callers decide whether
    a missing result matters.
    """

    def __init__(
        self,
        token: str,
        *,
        api_base: str = TELEGRAM_API_BASE,
        http: httpx.AsyncClient | None = None,
        timeout_s: float = 120,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        register_secret(token)
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._base = f"{self._api_base}/bot{token}"
        self._http = http or httpx.AsyncClient(timeout=timeout_s)

    @property
    def api_base(self) -> str:
        return self._api_base

    async def close(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self._base}/{method}"
        try:
            response = await self._http.post(url, json=params or {})
        except httpx.HTTPError as exc:
            logger.warning(
                "telegram.request.failed",
                method=method,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning(
                "telegram.response.invalid",
                method=method,
                status=response.status_code,
                body=response.text[:200],
            )
            return None
        if not isinstance(payload, dict) or not payload.get("ok"):
            description = payload.get("description") if isinstance(payload, dict) else None
            logger.warning(
                "telegram.api.error",
                method=method,
                status=response.status_code,
                description=description,
            )
            return None
        logger.debug("telegram.api.ok", method=method)
        return payload.get("result")

    async def get_me(self) -> dict[str, Any] | None:
        return await self._call("getMe")

    async def get_updates(
        self,
        *,
        offset: int | None,
        timeout_s: int = 50,
        allowed_updates: list[str] | None = None,
    ) -> list[dict[str, Any]] | None:
        params: dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            params["offset"] = offset
        if allowed_updates is not None:
            params["allowed_updates"] = allowed_updates
        return await self._call("getUpdates", params)

    async def send_message(
        self,
        *,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        message_thread_id: int | None = None,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        params: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to_message_id is not None:
            params["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        if message_thread_id is not None:
            params["message_thread_id"] = message_thread_id
        if parse_mode is not None:
            params["parse_mode"] = parse_mode
        if reply_markup is not None:
            params["reply_markup"] = reply_markup
        return await self._call("sendMessage", params)

    async def edit_message_text(
        self,
        *,
        chat_id: int,
        message_id: int,
        text: str,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
        }
        if parse_mode is not None:
            params["parse_mode"] = parse_mode
        if reply_markup is not None:
            params["reply_markup"] = reply_markup
        return await self._call("editMessageText", params)

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> bool:
        params: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text is not None:
            params["text"] = text
        return bool(await self._call("answerCallbackQuery", params))

    async def get_file(self, file_id: str) -> dict[str, Any] | None:
        return await self._call("getFile", {"file_id": file_id})

    async def download_file(self, file_path: str) -> bytes | None:
        url = f"{self._api_base}/file/bot{self._token}/{file_path}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as exc:
            logger.warning(
                "telegram.download.failed",
                file_path=file_path,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return None
        if not response.is_success:
            logger.warning(
                "telegram.download.failed",
                file_path=file_path,
                status=response.status_code,
            )
            return None
        return response.content

    async def get_webhook_info(self) -> dict[str, Any] | None:
        return await self._call("getWebhookInfo")

    async def set_webhook(self, url: str, *, secret_token: str | None = None) -> bool:
        params: dict[str, Any] = {"url": url, "allowed_updates": list(ALLOWED_UPDATES)}
        if secret_token is not None:
            register_secret(secret_token)
            params["secret_token"] = secret_token
        return bool(await self._call("setWebhook", params))

    async def delete_webhook(self) -> bool:
        return bool(await self._call("deleteWebhook"))


async def poll_incoming(
    bot: BotClient,
    *,
    offset: int | None = None,
    timeout_s: int = 50,
) -> AsyncIterator[TelegramIncomingUpdate]:
    while True:
        updates = await bot.get_updates(
            offset=offset,
            timeout_s=timeout_s,
            allowed_updates=ALLOWED_UPDATES,
        )
        if updates is None:
            await anyio.sleep(_POLL_ERROR_BACKOFF_S)
            continue
        for update in updates:
            offset = update["update_id"] + 1
            parsed = parse_incoming_update(update)
            if parsed is None:
                logger.debug("telegram.update.ignored", update_id=update["update_id"])
                continue
            yield parsed
