from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class TelegramPhotoSize:
    file_id: str
    file_unique_id: str | None = None
    file_size: int | None = None
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True, slots=True)
class TelegramSender:
    id: int
    username: str | None = None
    first_name: str | None = None

    @property
    def display(self) -> str:
        if self.username:
            return f"@{self.username}"
        return self.first_name or str(self.id)


@dataclass(frozen=True, slots=True)
class TelegramIncomingMessage:
    transport: str
    chat_id: int
    message_id: int
    text: str
    sender: TelegramSender
    chat_type: str | None = None
    thread_id: int | None = None
    is_topic_message: bool | None = None
    reply_to_message_id: int | None = None
    reply_to_text: str | None = None
    reply_to_photo: tuple[TelegramPhotoSize, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def sender_id(self) -> int:
        return self.sender.id

    @property
    def is_private(self) -> bool:
        return self.chat_type == "private"

    @property
    def is_reply(self) -> bool:
        return self.reply_to_message_id is not None


@dataclass(frozen=True, slots=True)
class TelegramCallbackQuery:
    transport: str
    chat_id: int
    message_id: int
    callback_query_id: str
    data: str | None
    sender: TelegramSender
    chat_type: str | None = None
    thread_id: int | None = None
    is_topic_message: bool | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def sender_id(self) -> int:
        return self.sender.id

    @property
    def is_private(self) -> bool:
        return self.chat_type == "private"


@dataclass(frozen=True, slots=True)
class TelegramChatMemberUpdate:
    transport: str
    chat_id: int
    chat_type: str | None
    new_status: str | None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


TelegramIncomingUpdate = (
    TelegramIncomingMessage | TelegramCallbackQuery | TelegramChatMemberUpdate
)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _parse_sender(raw: Any) -> TelegramSender | None:
    if not isinstance(raw, dict):
        return None
    sender_id = _as_int(raw.get("id"))
    if sender_id is None:
        return None
    username = raw.get("username")
    first_name = raw.get("first_name")
    return TelegramSender(
        id=sender_id,
        username=username if isinstance(username, str) else None,
        first_name=first_name if isinstance(first_name, str) else None,
    )


def _parse_photo(raw: Any) -> tuple[TelegramPhotoSize, ...]:
    if not isinstance(raw, list):
        return ()
    sizes: list[TelegramPhotoSize] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        file_id = item.get("file_id")
        if not isinstance(file_id, str):
            continue
        sizes.append(
            TelegramPhotoSize(
                file_id=file_id,
                file_unique_id=item.get("file_unique_id"),
                file_size=_as_int(item.get("file_size")),
                width=_as_int(item.get("width")),
                height=_as_int(item.get("height")),
            )
        )
    return tuple(sizes)


def largest_photo(sizes: tuple[TelegramPhotoSize, ...]) -> TelegramPhotoSize | None:
    if not sizes:
        return None
    return max(sizes, key=lambda size: size.file_size or 0)


def _parse_message(raw: dict[str, Any]) -> TelegramIncomingMessage | None:
    chat = raw.get("chat")
    if not isinstance(chat, dict):
        return None
    chat_id = _as_int(chat.get("id"))
    message_id = _as_int(raw.get("message_id"))
    sender = _parse_sender(raw.get("from"))
    if chat_id is None or message_id is None or sender is None:
        return None
    text = raw.get("text")
    if not isinstance(text, str):
        text = raw.get("caption")
    if not isinstance(text, str):
        return None

    reply_to_message_id = None
    reply_to_text = None
    reply_to_photo: tuple[TelegramPhotoSize, ...] = ()
    reply = raw.get("reply_to_message")
    # in forum chats every message "replies" to the topic's service message
    if isinstance(reply, dict) and not reply.get("forum_topic_created"):
        reply_to_message_id = _as_int(reply.get("message_id"))
        reply_text = reply.get("text")
        if not isinstance(reply_text, str):
            reply_text = reply.get("caption")
        reply_to_text = reply_text if isinstance(reply_text, str) else None
        reply_to_photo = _parse_photo(reply.get("photo"))

    chat_type = chat.get("type")
    is_topic_message = raw.get("is_topic_message")
    return TelegramIncomingMessage(
        transport="telegram",
        chat_id=chat_id,
        message_id=message_id,
        text=text,
        sender=sender,
        chat_type=chat_type if isinstance(chat_type, str) else None,
        thread_id=_as_int(raw.get("message_thread_id")),
        is_topic_message=is_topic_message if isinstance(is_topic_message, bool) else None,
        reply_to_message_id=reply_to_message_id,
        reply_to_text=reply_to_text,
        reply_to_photo=reply_to_photo,
        raw=raw,
    )


def _parse_callback(raw: dict[str, Any]) -> TelegramCallbackQuery | None:
    query_id = raw.get("id")
    sender = _parse_sender(raw.get("from"))
    message = raw.get("message")
    if not isinstance(query_id, str) or sender is None or not isinstance(message, dict):
        return None
    chat = message.get("chat")
    if not isinstance(chat, dict):
        return None
    chat_id = _as_int(chat.get("id"))
    message_id = _as_int(message.get("message_id"))
    if chat_id is None or message_id is None:
        return None
    data = raw.get("data")
    chat_type = chat.get("type")
    is_topic_message = message.get("is_topic_message")
    return TelegramCallbackQuery(
        transport="telegram",
        chat_id=chat_id,
        message_id=message_id,
        callback_query_id=query_id,
        data=data if isinstance(data, str) else None,
        sender=sender,
        chat_type=chat_type if isinstance(chat_type, str) else None,
        thread_id=_as_int(message.get("message_thread_id")),
        is_topic_message=is_topic_message if isinstance(is_topic_message, bool) else None,
        raw=raw,
    )


def _parse_chat_member(raw: dict[str, Any]) -> TelegramChatMemberUpdate | None:
    chat = raw.get("chat")
    if not isinstance(chat, dict):
        return None
    chat_id = _as_int(chat.get("id"))
    if chat_id is None:
        return None
    new_member = raw.get("new_chat_member")
    status = new_member.get("status") if isinstance(new_member, dict) else None
    chat_type = chat.get("type")
    return TelegramChatMemberUpdate(
        transport="telegram",
        chat_id=chat_id,
        chat_type=chat_type if isinstance(chat_type, str) else None,
        new_status=status if isinstance(status, str) else None,
        raw=raw,
    )


def parse_incoming_update(update: dict[str, Any]) -> TelegramIncomingUpdate | None:
    message = update.get("message")
    if isinstance(message, dict):
        return _parse_message(message)
    callback = update.get("callback_query")
    if isinstance(callback, dict):
        return _parse_callback(callback)
    member = update.get("my_chat_member")
    if isinstance(member, dict):
        return _parse_chat_member(member)
    return None
