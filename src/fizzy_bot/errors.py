from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .store import UserToken


class ConfigError(Exception):
    pass


class BotError(Exception):
    """Base for failures that end the handling of one update."""


class UsageError(BotError):
    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"{command}: {reason}")
        self.command = command
        self.reason = reason


class NotPrivateError(BotError):
    def __init__(self, command: str) -> None:
        super().__init__(f"{command} is only available in private chat")
        self.command = command


class NotFoundError(BotError):
    def __init__(self, message: str, *, alias: str | None = None) -> None:
        super().__init__(message)
        self.alias = alias


class NoAccountsError(BotError):
    pass


class NoBoardError(BotError):
    def __init__(self, topic_id: str) -> None:
        super().__init__(f"no board configured for topic {topic_id!r}")
        self.topic_id = topic_id


class ExternalServiceError(BotError):
    def __init__(self, detail: str, *, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class AmbiguousAccountError(BotError):
    """Raised when a user has several saved tokens and none is linked to the chat.

    Not a failure: callers answer it with the account-selection menu.
    """

    def __init__(
        self, tokens: Sequence[UserToken], *, current_alias: str | None = None
    ) -> None:
        super().__init__(f"{len(tokens)} accounts available")
        self.tokens = tuple(tokens)
        self.current_alias = current_alias
