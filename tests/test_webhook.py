from functools import partial
from typing import Any

import pytest
from fastapi.testclient import TestClient

from fizzy_bot import messages
from fizzy_bot.store import Database
from fizzy_bot.telegram.bridge import build_bridge_config, handle_update
from fizzy_bot.telegram.types import TelegramIncomingMessage
from fizzy_bot.telegram.webhook import SECRET_HEADER, create_webhook_app

USER = 42


class _FakeBot:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send_message(self, **kwargs: Any) -> dict[str, Any] | None:
        self.sent.append(kwargs)
        return {"message_id": len(self.sent)}


def _update(text: str, *, chat_type: str = "private") -> dict[str, Any]:
    chat_id = USER if chat_type == "private" else -1001
    return {
        "update_id": 7,
        "message": {
            "message_id": 10,
            "text": text,
            "chat": {"id": chat_id, "type": chat_type},
            "from": {"id": USER, "username": "ana", "first_name": "Ana"},
        },
    }


@pytest.fixture
def received():
    return []


@pytest.fixture
def client(received) -> TestClient:
    async def handle(update) -> None:
        received.append(update)

    return TestClient(create_webhook_app(handle, path="/hook", secret_token="s3cret"))


def test_health(client) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_update_is_parsed_and_handled(client, received) -> None:
    response = client.post(
        "/hook", json=_update("/help"), headers={SECRET_HEADER: "s3cret"}
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert len(received) == 1
    assert isinstance(received[0], TelegramIncomingMessage)
    assert received[0].text == "/help"


def test_wrong_secret_is_rejected(client, received) -> None:
    missing = client.post("/hook", json=_update("/help"))
    wrong = client.post("/hook", json=_update("/help"), headers={SECRET_HEADER: "nope"})

    assert missing.status_code == 403
    assert wrong.status_code == 403
    assert received == []


def test_unsupported_update_is_acknowledged(client, received) -> None:
    response = client.post(
        "/hook",
        json={"update_id": 8, "edited_message": {"message_id": 1}},
        headers={SECRET_HEADER: "s3cret"},
    )

    assert response.status_code == 200
    assert received == []


def test_invalid_body_is_rejected(client) -> None:
    response = client.post(
        "/hook",
        content=b"not json",
        headers={SECRET_HEADER: "s3cret", "content-type": "application/json"},
    )

    assert response.status_code == 400


def test_no_secret_configured_accepts_any_request(received) -> None:
    async def handle(update) -> None:
        received.append(update)

    client = TestClient(create_webhook_app(handle))
    response = client.post("/webhook", json=_update("/status"))

    assert response.status_code == 200
    assert len(received) == 1


def test_webhook_delivers_to_dispatch() -> None:
    bot = _FakeBot()
    db = Database.open(":memory:")
    try:
        cfg = build_bridge_config(
            bot=bot, fizzy=object(), db=db, bot_username="fizzy_bot"
        )
        client = TestClient(create_webhook_app(partial(handle_update, cfg)))

        response = client.post("/webhook", json=_update("/help"))

        assert response.status_code == 200
        assert [call["text"] for call in bot.sent] == [messages.HELP_PRIVATE]
    finally:
        db.close()
