from __future__ import annotations

from dataclasses import dataclass

from .errors import AmbiguousAccountError, NoAccountsError, NoBoardError, NotFoundError
from .fizzy import BoardConfig
from .logging import get_logger
from .store import (
    ChatLinkStore,
    CredentialStore,
    TopicBoard,
    TopicBoardStore,
    UserToken,
)

logger = get_logger(__name__)

GENERAL_TOPIC = "general"


def topic_id_for(thread_id: int | None, is_topic_message: bool | None) -> str:
    if is_topic_message and thread_id is not None:
        return str(thread_id)
    return GENERAL_TOPIC


@dataclass(frozen=True, slots=True)
class ResolvedAccount:
    token: UserToken
    auto_selected: bool = False

    @property
    def alias(self) -> str:
        return self.token.alias

    @property
    def account_slug(self) -> str:
        return self.token.account_slug

    def board_config(self, board_id: str) -> BoardConfig:
        return BoardConfig(
            account_slug=self.token.account_slug,
            board_id=board_id,
            token=self.token.token,
        )


@dataclass(frozen=True, slots=True)
class AccountChoice:
    tokens: tuple[UserToken, ...]
    current_alias: str | None = None


@dataclass(frozen=True, slots=True)
class GroupStatus:
    token: UserToken | None
    board: TopicBoard | None


class ContextResolver:
    __slots__ = ("_tokens", "_links", "_boards")

    def __init__(
        self,
        *,
        tokens: CredentialStore,
        links: ChatLinkStore,
        boards: TopicBoardStore,
    ) -> None:
        self._tokens = tokens
        self._links = links
        self._boards = boards

    def resolve_account(
        self, user_id: int | str, chat_id: int | str
    ) -> ResolvedAccount:
        """Pick the credential a user posts with in a chat.

        Uses the chat link when present, links the only saved token when there
        is exactly one, and raises :class:`AmbiguousAccountError` when the user
        has to choose.
        """
        link = self._links.get(user_id, chat_id)
        if link is not None:
            token = self._tokens.get(user_id, link.alias)
            if token is None:
                raise NotFoundError(
                    f"token {link.alias!r} not found", alias=link.alias
                )
            return ResolvedAccount(token=token)

        tokens = self._tokens.for_user(user_id)
        if not tokens:
            raise NoAccountsError("no accounts configured")
        if len(tokens) > 1:
            raise AmbiguousAccountError(tokens)
        only = tokens[0]
        self._links.save(user_id, chat_id, only.alias)
        logger.info("resolver.account.auto_selected", alias=only.alias)
        return ResolvedAccount(token=only, auto_selected=True)

    def link_account(
        self, user_id: int | str, chat_id: int | str, alias: str
    ) -> UserToken | None:
        # the link is written even for an unknown alias; readers treat it as dangling
        self._links.save(user_id, chat_id, alias)
        return self._tokens.get(user_id, alias)

    def selection_candidates(
        self, user_id: int | str, chat_id: int | str
    ) -> AccountChoice:
        tokens = self._tokens.for_user(user_id)
        if not tokens:
            raise NoAccountsError("no accounts configured")
        link = self._links.get(user_id, chat_id)
        return AccountChoice(
            tokens=tuple(tokens),
            current_alias=link.alias if link is not None else None,
        )

    def first_token(self, user_id: int | str) -> UserToken | None:
        tokens = self._tokens.for_user(user_id)
        return tokens[0] if tokens else None

    def board_for(self, topic_id: str) -> TopicBoard | None:
        return self._boards.get(topic_id)

    def resolve_board(self, topic_id: str) -> TopicBoard:
        board = self._boards.get(topic_id)
        if board is None:
            raise NoBoardError(topic_id)
        return board

    def group_status(
        self, user_id: int | str, chat_id: int | str, topic_id: str
    ) -> GroupStatus:
        link = self._links.get(user_id, chat_id)
        token = self._tokens.get(user_id, link.alias) if link is not None else None
        return GroupStatus(token=token, board=self._boards.get(topic_id))
