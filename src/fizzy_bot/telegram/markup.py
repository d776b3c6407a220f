from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..store import UserToken

SET_TOKEN_CALLBACK = "set_token"
STATUS_CALLBACK = "status"
START_CALLBACK = "start"
HELP_CALLBACK = "help"
SELECT_ACCOUNT_MENU_CALLBACK = "select_account_btn"
SELECT_ACCOUNT_PREFIX = "select_account:"

CURRENT_MARK = "✅ "
_BUTTONS_PER_ROW = 2


def _button(text: str, callback_data: str) -> dict[str, str]:
    return {"text": text, "callback_data": callback_data}


PRIVATE_MENU: dict[str, Any] = {
    "inline_keyboard": [
        [_button("Setup Token", SET_TOKEN_CALLBACK)],
        [_button("Token accounts", STATUS_CALLBACK)],
        [_button("How to Use", START_CALLBACK), _button("Help", HELP_CALLBACK)],
    ]
}


def group_menu(bot_username: str) -> dict[str, Any]:
    return {
        "inline_keyboard": [
            [
                {
                    "text": "Setup Fizzy Personal Token",
                    "url": f"https://t.me/{bot_username}?start=setup",
                }
            ],
            [
                _button("Status", STATUS_CALLBACK),
                _button("Select Account", SELECT_ACCOUNT_MENU_CALLBACK),
            ],
            [_button("How to Use", START_CALLBACK), _button("Help", HELP_CALLBACK)],
        ]
    }


def menu_for(*, is_private: bool, bot_username: str) -> dict[str, Any]:
    return PRIVATE_MENU if is_private else group_menu(bot_username)


def account_selection_markup(
    tokens: Sequence[UserToken], current_alias: str | None = None
) -> dict[str, Any]:
    rows: list[list[dict[str, str]]] = []
    for token in tokens:
        label = f"{token.alias} ({token.account_slug})"
        if current_alias is not None and token.alias == current_alias:
            label = CURRENT_MARK + label
        button = _button(label, f"{SELECT_ACCOUNT_PREFIX}{token.alias}")
        if rows and len(rows[-1]) < _BUTTONS_PER_ROW:
            rows[-1].append(button)
        else:
            rows.append([button])
    return {"inline_keyboard": rows}


def parse_selected_alias(data: str | None) -> str | None:
    if not data or not data.startswith(SELECT_ACCOUNT_PREFIX):
        return None
    alias = data[len(SELECT_ACCOUNT_PREFIX) :]
    return alias or None
