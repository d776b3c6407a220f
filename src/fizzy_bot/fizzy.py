"""Client for the Fizzy boards API: card creation, board lookup, image upload."""

from __future__ import annotations

import base64
import hashlib
import html
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from .errors import ExternalServiceError
from .logging import get_logger
from .settings import FIZZY_BASE_URL

logger = get_logger(__name__)

_ERROR_BODY_LIMIT = 200
_CARD_ID_RE = re.compile(r"cards/(\d+)")
UNNAMED_BOARD = "Unnamed Board"


@dataclass(frozen=True, slots=True)
class CardImage:
    content: bytes = field(repr=False)
    filename: str
    content_type: str = "image/jpeg"

    @property
    def byte_size(self) -> int:
        return len(self.content)


@dataclass(frozen=True, slots=True)
class BoardConfig:
    account_slug: str
    board_id: str
    token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class UploadedBlob:
    signed_id: str
    filename: str
    content_type: str
    byte_size: int
    url: str


class FizzyError(ExternalServiceError):
    pass


def compute_checksum(content: bytes) -> str:
    return base64.b64encode(hashlib.md5(content).digest()).decode("ascii")


def render_description(description: str, blob: UploadedBlob | None) -> str:
    if blob is None:
        return description
    attachment = (
        f'<action-text-attachment sgid="{html.escape(blob.signed_id)}" '
        f'content-type="{html.escape(blob.content_type)}" '
        f'url="{html.escape(blob.url)}" '
        f'filename="{html.escape(blob.filename)}" '
        f'filesize="{blob.byte_size}" previewable="true"></action-text-attachment>'
    )
    body = description.replace("\n", "<br>")
    return f"{attachment}<p>{body}</p>"


def _truncate(text: str) -> str:
    return text[:_ERROR_BODY_LIMIT]


class FizzyClient:
    def __init__(
        self,
        *,
        base_url: str = FIZZY_BASE_URL,
        http: httpx.AsyncClient | None = None,
        timeout_s: float = 120,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout_s)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        await self._http.aclose()

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def card_url(self, account_slug: str, card_id: str) -> str:
        return f"{self._base_url}/{account_slug}/cards/{card_id}"

    def board_url(self, account_slug: str, board_id: str) -> str:
        return f"{self._base_url}/{account_slug}/boards/{board_id}"

    async def _request(
        self, method: str, url: str, *, what: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(
                f"fizzy.{what}.exception",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            raise FizzyError(str(exc) or exc.__class__.__name__) from exc

    async def upload_image(self, config: BoardConfig, image: CardImage) -> UploadedBlob:
        checksum = compute_checksum(image.content)
        response = await self._request(
            "POST",
            f"{self._base_url}/{config.account_slug}/rails/active_storage/direct_uploads",
            what="direct_upload",
            headers=self._headers(config.token),
            json={
                "blob": {
                    "filename": image.filename,
                    "byte_size": image.byte_size,
                    "checksum": checksum,
                    "content_type": image.content_type,
                }
            },
        )
        if not response.is_success:
            body = response.text
            logger.error(
                "fizzy.direct_upload.failed",
                status=response.status_code,
                error=_truncate(body),
                account_slug=config.account_slug,
            )
            raise FizzyError(
                f"direct upload failed: HTTP {response.status_code} {_truncate(body)}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
            direct_upload = payload["direct_upload"]
            upload_url = direct_upload["url"]
            upload_headers = direct_upload.get("headers") or {}
            signed_id = payload["signed_id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise FizzyError(f"direct upload returned an unexpected body: {exc}") from exc

        stored = await self._request(
            "PUT",
            upload_url,
            what="storage_upload",
            headers=upload_headers,
            content=image.content,
        )
        if not stored.is_success:
            body = stored.text
            logger.error(
                "fizzy.storage_upload.failed",
                status=stored.status_code,
                error=_truncate(body),
                account_slug=config.account_slug,
                filename=image.filename,
            )
            raise FizzyError(
                f"storage upload failed: HTTP {stored.status_code} {_truncate(body)}",
                status_code=stored.status_code,
            )

        blob_url = (
            f"{self._base_url}/{config.account_slug}/rails/active_storage/blobs/"
            f"redirect/{signed_id}/{quote(image.filename, safe='')}"
        )
        logger.info(
            "fizzy.image.uploaded",
            account_slug=config.account_slug,
            filename=image.filename,
            byte_size=image.byte_size,
        )
        return UploadedBlob(
            signed_id=signed_id,
            filename=image.filename,
            content_type=image.content_type,
            byte_size=image.byte_size,
            url=blob_url,
        )

    async def create_card(
        self,
        config: BoardConfig,
        title: str,
        description: str,
        image: CardImage | None = None,
    ) -> str:
        """Create a card and return its URL.

        An attached image is uploaded first; if that fails no card is created.
        Raises :class:`FizzyError` on any failure.
        """
        blob: UploadedBlob | None = None
        if image is not None:
            try:
                blob = await self.upload_image(config, image)
            except FizzyError as exc:
                raise FizzyError(
                    f"image upload failed: {exc.detail}", status_code=exc.status_code
                ) from exc

        response = await self._request(
            "POST",
            f"{self.board_url(config.account_slug, config.board_id)}/cards.json",
            what="card_create",
            headers=self._headers(config.token),
            json={
                "card": {
                    "title": title,
                    "description": render_description(description, blob),
                }
            },
        )
        if not response.is_success:
            body = _truncate(response.text)
            logger.error(
                "fizzy.card_create.failed",
                status=response.status_code,
                error=body,
                account_slug=config.account_slug,
                board_id=config.board_id,
            )
            raise FizzyError(
                f"HTTP {response.status_code}: {body}", status_code=response.status_code
            )

        match = _CARD_ID_RE.search(response.headers.get("location", ""))
        card_id = match.group(1) if match else None
        url = (
            self.card_url(config.account_slug, card_id)
            if card_id
            else self.board_url(config.account_slug, config.board_id)
        )
        logger.info(
            "fizzy.card_create.ok",
            account_slug=config.account_slug,
            board_id=config.board_id,
            card_id=card_id,
            has_image=image is not None,
        )
        return url

    async def fetch_board_name(self, config: BoardConfig) -> str:
        response = await self._request(
            "GET",
            f"{self.board_url(config.account_slug, config.board_id)}.json",
            what="board_fetch",
            headers=self._headers(config.token),
        )
        if not response.is_success:
            body = _truncate(response.text)
            logger.error(
                "fizzy.board_fetch.failed",
                status=response.status_code,
                error=body,
                account_slug=config.account_slug,
                board_id=config.board_id,
            )
            raise FizzyError(
                f"HTTP {response.status_code}: {body}", status_code=response.status_code
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise FizzyError(f"board lookup returned invalid JSON: {exc}") from exc
        name = payload.get("name") if isinstance(payload, dict) else None
        name = name or UNNAMED_BOARD
        logger.info(
            "fizzy.board_fetch.ok",
            account_slug=config.account_slug,
            board_id=config.board_id,
            board_name=name,
        )
        return name


def format_card_error(error: ExternalServiceError, alias: str, account_slug: str) -> str:
    account = f"{alias} ({account_slug})"
    if error.status_code == 403:
        return (
            f"Your '{alias}' ({account_slug}) account doesn't have access to this board.\n\n"
            "Try /select_account or check the board permissions in Fizzy."
        )
    if error.status_code == 401:
        return (
            f"Token '{alias}' ({account_slug}) is invalid or expired.\n\n"
            "Update it in private chat with /config_token."
        )
    if error.status_code == 404:
        return (
            "Board not found. The board ID might be wrong or the board was deleted.\n\n"
            f"Used account: {account}"
        )
    return f"Failed: {error.detail}\n\nUsed account: {account}"
