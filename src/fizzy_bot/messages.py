"""User-facing texts.

Static texts that show command syntax are sent with HTML parse mode; any
text carrying user-provided values is sent as plain text.
"""

from __future__ import annotations

from collections.abc import Iterable

from .commands import CARD_VERBS
from .store import TopicBoard, UserToken

CARD_VERBS_TEXT = ", ".join(f"/{verb}" for verb in CARD_VERBS)

WELCOME_PRIVATE = """\
🚀 Welcome to the Fizzy bot!

<b>1. Save a token</b> here in private chat:
<code>/config_token &lt;alias&gt; &lt;account_slug&gt; &lt;token&gt;</code>
Generate a personal token under "My profile" in Fizzy.

<b>2. Pick a board</b> in your group or topic:
<code>/config_board &lt;board_id&gt;</code>

<b>3. Create cards</b>:
<code>/issue &lt;title&gt;</code>, <code>/todo &lt;title&gt;</code> or <code>/fizzy &lt;title&gt;</code>

Use the buttons below to get started 👇"""

WELCOME_GROUP = """\
🚀 Welcome to the Fizzy bot!

<b>1. Save a token</b> in private chat with the bot
(use the setup button below).

<b>2. Pick a board</b> for this chat or topic:
<code>/config_board &lt;board_id&gt;</code>

<b>3. Create cards</b>:
<code>/todo Fix login</code> or <code>/issue Add feature -d Details here</code>

💡 Reply to a message or photo to put it into the card."""

WELCOME_BOT_ADDED = "Hi! Use the buttons below to set me up:"

CONFIG_TOKEN_HELP = """\
<b>Command</b>
<code>/config_token &lt;alias&gt; &lt;account_slug&gt; &lt;personal_token&gt;</code>

<i>alias</i>: a short name for the account (work, personal, client-acme)
<i>account_slug</i>: the number right after the domain in your Fizzy URL,
e.g. https://app.fizzy.do/1234456/ has slug 1234456
<i>personal_token</i>: generate one under "My profile" in Fizzy

<b>Example</b>
<code>/config_token work 1234456 abc123token456abc123</code>"""

HELP_PRIVATE = """\
📚 <b>Commands</b>

<b>Accounts</b>
<code>/config_token &lt;alias&gt; &lt;slug&gt; &lt;token&gt;</code> save or update an account
<code>/delete_account &lt;alias&gt;</code> remove a saved account

<b>General</b>
/start show setup steps
/help show this message
/status list your saved accounts

Save your token(s) here, run <code>/config_board &lt;board_id&gt;</code> in your
group, then create cards with /issue or /todo.
Run any command without arguments to see an example."""

HELP_GROUP = """\
📚 <b>Commands</b>

<b>Setup</b>
<code>/config_board &lt;board_id&gt;</code> set the board for this chat or topic
/select_account switch the account you post with in this chat

<b>Cards</b>
<code>/issue &lt;title&gt; -d [description]</code>
<code>/todo &lt;title&gt; -d [description]</code>
<code>/fizzy &lt;title&gt; -d [description]</code>
Reply to a message or photo to include it in the card.

<b>General</b>
/start show setup steps
/help show this message
/status show the account and board used here

Tokens are configured in private chat only."""

_USAGE = {
    "config_token": (
        "<code>/config_token &lt;alias&gt; &lt;account_slug&gt; &lt;personal_token&gt;</code>",
        "<code>/config_token work 1234456 abc123token456abc123</code>",
    ),
    "delete_account": (
        "<code>/delete_account &lt;alias&gt;</code>",
        "<code>/delete_account work</code>",
    ),
    "config_board": (
        "<code>/config_board &lt;board_id&gt;</code>",
        "<code>/config_board 03f770pvr5f56</code>",
    ),
}


def usage_message(command: str, reason: str, *, is_private: bool = True) -> str:
    if command == "select_account":
        return (
            "❌ This command takes no arguments.\n\n"
            "Usage:\n<code>/select_account</code>\n\n"
            "It shows a menu to choose the account used in this chat."
        )
    usage, example = _USAGE[command]
    header = "❌ Missing arguments!" if reason == "missing-args" else "❌ Incorrect arguments!"
    text = f"{header}\n\nUsage:\n{usage}\n\nExample:\n{example}"
    if command == "config_token" and reason == "missing-args" and not is_private:
        text += "\n\n🚨 Run this command in private chat to keep your token safe."
    if command == "delete_account" and reason == "missing-args":
        text += "\n\n💡 /status lists your saved accounts."
    return text


def missing_title(verb: str) -> str:
    return (
        "Missing title!\n\n"
        f"Usage:\n/{verb} <title> -d [description]\n\n"
        f"Example:\n/{verb} Fix login -d Happens on iOS only\n"
        f"Or: /{verb} Add favicon"
    )


CONFIG_TOKEN_NOT_PRIVATE = (
    "⚠️ For security, tokens can only be set in private chat.\n\n"
    "Open a private chat with the bot and run /config_token there."
)
DELETE_ACCOUNT_NOT_PRIVATE = "This command is only available in private chat."
SELECT_ACCOUNT_NOT_GROUP = "This command is only available in group chats."

NO_ACCOUNTS = (
    "❌ No accounts configured.\n\n"
    "Set up your token in private chat first (see the setup button in /start)."
)
CONFIG_BOARD_NO_TOKEN = (
    "⚠️ Configure your token in private chat first.\n\n"
    "Use the setup button in /start."
)
CONFIG_BOARD_INVALID_ID = "❌ Invalid board ID. Board IDs are usually longer."
NO_BOARD = "❌ No board configured. Use /config_board <board_id> first."
SELECT_ACCOUNT_PROMPT = "🔑 Select which account to use for this chat:"
CREATING_CARD = "Creating Fizzy card..."
UNEXPECTED_ERROR = "❌ Something went wrong while handling that command."


def token_saved(alias: str, account_slug: str, *, updated: bool) -> str:
    if updated:
        return (
            f"✅ Token '{alias}' updated!\n\nAccount: {account_slug}\n\n"
            "💡 Chats using this account now use the new token."
        )
    return f"✅ Token '{alias}' saved!\n\nAccount: {account_slug}"


def account_deleted(alias: str) -> str:
    return f"✅ Account '{alias}' deleted."


def account_not_found(alias: str) -> str:
    return f"❌ Account '{alias}' not found."


def token_not_found(alias: str) -> str:
    return f"❌ Token '{alias}' not found. Please set it up in private chat."


def board_not_found(board_id: str) -> str:
    return (
        f"❌ Board not found: {board_id}\n\n"
        "The board ID might be wrong or the board doesn't exist.\n\n"
        "Check the board ID and try again."
    )


def board_set(
    board_id: str,
    board_name: str | None,
    *,
    alias: str | None = None,
    account_slug: str | None = None,
) -> str:
    display = f"{board_id} ({board_name})" if board_name else board_id
    text = f"✅ Board set: {display}\n\n"
    if alias and account_slug:
        text += f"Using account: {alias} ({account_slug})\n\n"
    return text + f"You can now use {CARD_VERBS_TEXT} here."


def account_selected(alias: str) -> str:
    return f"✅ Account '{alias}' selected for this chat!"


def creating_card_with(alias: str) -> str:
    return f"Using '{alias}' account. Creating card..."


def card_created(title: str, url: str) -> str:
    return f"✅ Card created!\n{title}\n{url}"


def card_failed(error: str) -> str:
    return f"❌ Failed to create card\n\n{error}"


def status_private(tokens: Iterable[UserToken]) -> str:
    tokens = list(tokens)
    if not tokens:
        return (
            "📊 Your status\n\n"
            "❌ No Fizzy accounts configured yet.\n\n"
            "Use the 'Setup Token' button below to get started."
        )
    lines = [f"• {token.alias} ({token.account_slug})" for token in tokens]
    return "Saved token accounts:\n\n" + "\n".join(lines)


def status_group(token: UserToken | None, board: TopicBoard | None) -> str:
    lines = ["Status", ""]
    if token is not None:
        lines.append(f"✅ Personal token: {token.alias} ({token.account_slug})")
    else:
        lines.append("❌ Personal token: not set")
    if board is not None:
        lines.append(f"✅ Board: {board.display_name}")
    else:
        lines.append("❌ Board: not set")
    return "\n".join(lines)


def card_outcome(*, has_description: bool, has_reply: bool, has_media: bool) -> str:
    if has_reply and has_media:
        return "card with reply and media created"
    if has_reply:
        return "card with reply created"
    if has_description:
        return "card with description created"
    return "card created"
