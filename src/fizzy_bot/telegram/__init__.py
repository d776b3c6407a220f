from .types import (
    TelegramCallbackQuery,
    TelegramChatMemberUpdate,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    TelegramPhotoSize,
    TelegramSender,
    parse_incoming_update,
)

__all__ = [
    "TelegramCallbackQuery",
    "TelegramChatMemberUpdate",
    "TelegramIncomingMessage",
    "TelegramIncomingUpdate",
    "TelegramPhotoSize",
    "TelegramSender",
    "parse_incoming_update",
]
