"""Slash-command grammar.

Each command is matched in three shapes: the full form, the bare verb
("lonely"), and an incomplete form (verb present, arguments unusable). The
last two produce a :class:`UsageProblem` so the bot can answer with the exact
usage for that command instead of ignoring the message.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

CARD_VERBS = ("issue", "todo", "fizzy")

MISSING_ARGS = "missing-args"
MALFORMED_ARGS = "malformed-args"

UsageReason = Literal["missing-args", "malformed-args"]

_VERBS = "|".join(CARD_VERBS)
# group chats address a bot as /verb@botname
_MENTION = re.compile(r"(/[A-Za-z_]+)@([A-Za-z0-9_]+)(?=\s|$)")


@dataclass(frozen=True, slots=True)
class ConfigToken:
    alias: str
    account_slug: str
    token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class DeleteAccount:
    alias: str


@dataclass(frozen=True, slots=True)
class ConfigBoard:
    board_id: str


@dataclass(frozen=True, slots=True)
class SelectAccount:
    pass


@dataclass(frozen=True, slots=True)
class CreateCard:
    verb: str
    title: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ShowStatus:
    pass


@dataclass(frozen=True, slots=True)
class ShowStart:
    payload: str = ""


@dataclass(frozen=True, slots=True)
class ShowHelp:
    pass


@dataclass(frozen=True, slots=True)
class UsageProblem:
    command: str
    reason: UsageReason


Command = (
    ConfigToken
    | DeleteAccount
    | ConfigBoard
    | SelectAccount
    | CreateCard
    | ShowStatus
    | ShowStart
    | ShowHelp
    | UsageProblem
)


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE | re.DOTALL)


_CONFIG_TOKEN = _compile(
    rf"/config_token\s+([A-Za-z0-9_-]+)\s+([A-Za-z0-9_-]+)\s+([A-Za-z0-9]{{20,}})\s*"
)
_CONFIG_TOKEN_LONELY = _compile(r"/config_token\s*")
_CONFIG_TOKEN_ANY = _compile(r"/config_token(?:\s.*)?")

_DELETE_ACCOUNT = _compile(r"/delete_account\s+([A-Za-z0-9_-]+)\s*")
_DELETE_ACCOUNT_LONELY = _compile(r"/delete_account\s*")
_DELETE_ACCOUNT_ANY = _compile(r"/delete_account(?:\s.*)?")

_CONFIG_BOARD = _compile(r"/config_board\s+([A-Za-z0-9]+)\s*")
_CONFIG_BOARD_LONELY = _compile(r"/config_board\s*")
_CONFIG_BOARD_ANY = _compile(r"/config_board(?:\s.*)?")

_SELECT_ACCOUNT = _compile(r"/select_account\s*")
_SELECT_ACCOUNT_ANY = _compile(r"/select_account(?:\s.*)?")

# title stops at the first " -d " and never crosses a newline
_CREATE_CARD = _compile(
    rf"/({_VERBS})[ \t]+(?!-d(?:\s|$))([^\n]+?)(?:\s+-d\s+(.*))?"
)
_CREATE_CARD_LONELY = _compile(rf"/({_VERBS})\s*")
_CREATE_CARD_ANY = _compile(rf"/({_VERBS})(?:\s.*)?")

_STATUS = _compile(r"/status(?:\s.*)?")
_START = _compile(r"/start(?:\s+(\S+)(?:\s.*)?)?")
_HELP = _compile(r"/help(?:\s.*)?")


def _three_way(
    text: str,
    *,
    name: str,
    full: re.Pattern[str],
    lonely: re.Pattern[str] | None,
    incomplete: re.Pattern[str],
    build: Callable[[re.Match[str]], Command],
) -> Command | None:
    match = full.fullmatch(text)
    if match is not None:
        return build(match)
    if lonely is not None and lonely.fullmatch(text):
        return UsageProblem(command=name, reason=MISSING_ARGS)
    if incomplete.fullmatch(text):
        return UsageProblem(command=name, reason=MALFORMED_ARGS)
    return None


def _match_config_token(text: str) -> Command | None:
    return _three_way(
        text,
        name="config_token",
        full=_CONFIG_TOKEN,
        lonely=_CONFIG_TOKEN_LONELY,
        incomplete=_CONFIG_TOKEN_ANY,
        build=lambda m: ConfigToken(
            alias=m.group(1), account_slug=m.group(2), token=m.group(3)
        ),
    )


def _match_delete_account(text: str) -> Command | None:
    return _three_way(
        text,
        name="delete_account",
        full=_DELETE_ACCOUNT,
        lonely=_DELETE_ACCOUNT_LONELY,
        incomplete=_DELETE_ACCOUNT_ANY,
        build=lambda m: DeleteAccount(alias=m.group(1)),
    )


def _match_config_board(text: str) -> Command | None:
    return _three_way(
        text,
        name="config_board",
        full=_CONFIG_BOARD,
        lonely=_CONFIG_BOARD_LONELY,
        incomplete=_CONFIG_BOARD_ANY,
        build=lambda m: ConfigBoard(board_id=m.group(1)),
    )


def _match_select_account(text: str) -> Command | None:
    return _three_way(
        text,
        name="select_account",
        full=_SELECT_ACCOUNT,
        lonely=None,
        incomplete=_SELECT_ACCOUNT_ANY,
        build=lambda _m: SelectAccount(),
    )


def _match_create_card(text: str) -> Command | None:
    lonely = _CREATE_CARD_LONELY.fullmatch(text)
    if lonely is not None:
        return UsageProblem(command=lonely.group(1).lower(), reason=MISSING_ARGS)
    match = _CREATE_CARD.fullmatch(text)
    if match is not None:
        description = match.group(3)
        if description is not None:
            description = description.strip() or None
        return CreateCard(
            verb=match.group(1).lower(),
            title=match.group(2).strip(),
            description=description,
        )
    incomplete = _CREATE_CARD_ANY.fullmatch(text)
    if incomplete is not None:
        return UsageProblem(command=incomplete.group(1).lower(), reason=MALFORMED_ARGS)
    return None


def _match_status(text: str) -> Command | None:
    return ShowStatus() if _STATUS.fullmatch(text) else None


def _match_start(text: str) -> Command | None:
    match = _START.fullmatch(text)
    if match is None:
        return None
    return ShowStart(payload=match.group(1) or "")


def _match_help(text: str) -> Command | None:
    return ShowHelp() if _HELP.fullmatch(text) else None


# precedence order; commands are mutually exclusive so it only matters for
# the usage shapes
_MATCHERS: tuple[Callable[[str], Command | None], ...] = (
    _match_config_token,
    _match_delete_account,
    _match_config_board,
    _match_select_account,
    _match_create_card,
    _match_status,
    _match_start,
    _match_help,
)


def _strip_mention(text: str, bot_username: str | None) -> str | None:
    """Drop a leading ``/verb@name`` mention, or reject it when it names another bot."""
    match = _MENTION.match(text)
    if match is None:
        return text
    if bot_username is not None and match.group(2).lower() != bot_username.lower():
        return None
    return match.group(1) + text[match.end() :]


def parse_command(text: str | None, bot_username: str | None = None) -> Command | None:
    """Classify a message; ``None`` means the text is not a command for this bot.

    With ``bot_username`` set, a ``/verb@name`` addressed to any other bot is
    ignored. Without it every mention is accepted.
    """
    if not text:
        return None
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    stripped = _strip_mention(stripped, bot_username)
    if stripped is None:
        return None
    for matcher in _MATCHERS:
        command = matcher(stripped)
        if command is not None:
            return command
    return None


def command_name(command: Command) -> str:
    if isinstance(command, UsageProblem):
        return f"/{command.command}"
    if isinstance(command, CreateCard):
        return f"/{command.verb}"
    return {
        ConfigToken: "/config_token",
        DeleteAccount: "/delete_account",
        ConfigBoard: "/config_board",
        SelectAccount: "/select_account",
        ShowStatus: "/status",
        ShowStart: "/start",
        ShowHelp: "/help",
    }[type(command)]
