from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

import anyio
import uvicorn

from .. import messages
from ..commands import (
    CARD_VERBS,
    MISSING_ARGS,
    Command,
    ConfigBoard,
    ConfigToken,
    CreateCard,
    DeleteAccount,
    SelectAccount,
    ShowHelp,
    ShowStart,
    ShowStatus,
    UsageProblem,
    command_name,
    parse_command,
)
from ..errors import (
    AmbiguousAccountError,
    ConfigError,
    ExternalServiceError,
    NoAccountsError,
    NoBoardError,
    NotFoundError,
    NotPrivateError,
    UsageError,
)
from ..fizzy import CardImage, FizzyClient, format_card_error
from ..logging import (
    bind_update_context,
    clear_context,
    get_logger,
    log_command,
    register_secret,
)
from ..pending import PendingCard, PendingCardBuffer
from ..resolver import ContextResolver, ResolvedAccount, topic_id_for
from ..settings import WEBHOOK_HOST, BotSettings
from ..store import Database, TopicBoard
from .client import BotClient, poll_incoming
from .markup import (
    HELP_CALLBACK,
    PRIVATE_MENU,
    SELECT_ACCOUNT_MENU_CALLBACK,
    SET_TOKEN_CALLBACK,
    START_CALLBACK,
    STATUS_CALLBACK,
    account_selection_markup,
    menu_for,
    parse_selected_alias,
)
from .types import (
    TelegramCallbackQuery,
    TelegramChatMemberUpdate,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    largest_photo,
)
from .webhook import create_webhook_app

logger = get_logger(__name__)

HTML = "HTML"
MIN_BOARD_ID_LENGTH = 10
ATTRIBUTION_SEPARATOR = "\n\n\n\n"


@dataclass(frozen=True)
class TelegramBridgeConfig:
    bot: BotClient
    fizzy: FizzyClient
    resolver: ContextResolver
    db: Database
    bot_username: str
    pending: PendingCardBuffer = field(default_factory=PendingCardBuffer)


def build_bridge_config(
    *,
    bot: BotClient,
    fizzy: FizzyClient,
    db: Database,
    bot_username: str,
    pending: PendingCardBuffer | None = None,
) -> TelegramBridgeConfig:
    resolver = ContextResolver(tokens=db.tokens, links=db.links, boards=db.boards)
    return TelegramBridgeConfig(
        bot=bot,
        fizzy=fizzy,
        resolver=resolver,
        db=db,
        bot_username=bot_username,
        pending=pending if pending is not None else PendingCardBuffer(),
    )


@dataclass(frozen=True, slots=True)
class _Target:
    """Where replies for one update go."""

    chat_id: int
    thread_id: int | None
    is_private: bool
    sender: str


def _message_target(msg: TelegramIncomingMessage) -> _Target:
    return _Target(
        chat_id=msg.chat_id,
        thread_id=msg.thread_id if msg.is_topic_message else None,
        is_private=msg.is_private,
        sender=msg.sender.display,
    )


def _callback_target(query: TelegramCallbackQuery) -> _Target:
    return _Target(
        chat_id=query.chat_id,
        thread_id=query.thread_id if query.is_topic_message else None,
        is_private=query.is_private,
        sender=query.sender.display,
    )


async def _send(
    cfg: TelegramBridgeConfig,
    target: _Target,
    text: str,
    *,
    reply_to: int | None = None,
    parse_mode: str | None = None,
    reply_markup: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    return await cfg.bot.send_message(
        chat_id=target.chat_id,
        text=text,
        reply_to_message_id=reply_to,
        message_thread_id=target.thread_id,
        parse_mode=parse_mode,
        reply_markup=reply_markup,
    )


async def _replace(
    cfg: TelegramBridgeConfig,
    target: _Target,
    placeholder: dict[str, Any] | None,
    text: str,
    *,
    reply_to: int | None = None,
) -> None:
    message_id = placeholder.get("message_id") if placeholder else None
    if isinstance(message_id, int):
        edited = await cfg.bot.edit_message_text(
            chat_id=target.chat_id, message_id=message_id, text=text
        )
        if edited is not None:
            return
        logger.warning("reply.edit_failed", message_id=message_id)
    await _send(cfg, target, text, reply_to=reply_to)


def build_description(msg: TelegramIncomingMessage, command: CreateCard) -> str:
    if msg.is_reply:
        body = msg.reply_to_text or ""
    else:
        body = command.description or command.title
    return f"{body}{ATTRIBUTION_SEPARATOR}via telegram by {msg.sender.display}"


async def _image_from_reply(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage
) -> CardImage | None:
    photo = largest_photo(msg.reply_to_photo)
    if photo is None:
        return None
    info = await cfg.bot.get_file(photo.file_id)
    file_path = info.get("file_path") if isinstance(info, dict) else None
    if not isinstance(file_path, str):
        logger.warning("card.image.unavailable", file_id=photo.file_id)
        return None
    content = await cfg.bot.download_file(file_path)
    if content is None:
        logger.warning("card.image.download_failed", file_id=photo.file_id)
        return None
    return CardImage(content=content, filename=f"photo_{photo.file_id}.jpg")


async def _create_and_report(
    cfg: TelegramBridgeConfig,
    target: _Target,
    *,
    command: str,
    account: ResolvedAccount,
    board: TopicBoard,
    card: PendingCard,
    placeholder_text: str,
    reply_to: int | None,
) -> None:
    placeholder = await _send(cfg, target, placeholder_text, reply_to=reply_to)
    try:
        url = await cfg.fizzy.create_card(
            account.board_config(board.board_id),
            card.title,
            card.description,
            card.image,
        )
    except ExternalServiceError as exc:
        log_command(
            command,
            "error",
            f"card creation failed: {account.alias}",
            target.sender,
        )
        text = messages.card_failed(
            format_card_error(exc, account.alias, account.account_slug)
        )
    except Exception as exc:
        logger.exception(
            "card.create.failed",
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        log_command(command, "error", "unexpected failure", target.sender)
        text = messages.UNEXPECTED_ERROR
    else:
        log_command(
            command,
            "success",
            messages.card_outcome(
                has_description=card.has_description,
                has_reply=card.was_reply,
                has_media=card.image is not None,
            ),
            target.sender,
        )
        text = messages.card_created(card.title, url)
    await _replace(cfg, target, placeholder, text, reply_to=reply_to)


async def _show_account_menu(
    cfg: TelegramBridgeConfig,
    target: _Target,
    tokens: Any,
    current_alias: str | None,
    *,
    command: str,
) -> None:
    log_command(command, "success", "account selection menu shown", target.sender)
    await _send(
        cfg,
        target,
        messages.SELECT_ACCOUNT_PROMPT,
        reply_markup=account_selection_markup(tokens, current_alias),
    )


async def _handle_usage(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: UsageProblem
) -> None:
    raise UsageError(command.command, command.reason)


async def _reply_usage(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, error: UsageError
) -> None:
    target = _message_target(msg)
    detail = "lonely" if error.reason == MISSING_ARGS else "wrong arguments"
    log_command(f"/{error.command}", "validation", detail, target.sender)
    if error.command in CARD_VERBS:
        await _send(
            cfg, target, messages.missing_title(error.command), reply_to=msg.message_id
        )
        return
    await _send(
        cfg,
        target,
        messages.usage_message(error.command, error.reason, is_private=msg.is_private),
        parse_mode=HTML,
    )


_NOT_PRIVATE_REPLIES = {
    "/config_token": messages.CONFIG_TOKEN_NOT_PRIVATE,
    "/delete_account": messages.DELETE_ACCOUNT_NOT_PRIVATE,
}


def _require_private(msg: TelegramIncomingMessage, command: str) -> None:
    if not msg.is_private:
        raise NotPrivateError(command)


async def _handle_config_token(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: ConfigToken
) -> None:
    target = _message_target(msg)
    _require_private(msg, "/config_token")
    updated = cfg.db.tokens.save(
        msg.sender_id, command.alias, command.account_slug, command.token
    )
    verb = "updated" if updated else "saved"
    log_command("/config_token", "success", f"{verb} token: {command.alias}", target.sender)
    await _send(
        cfg,
        target,
        messages.token_saved(command.alias, command.account_slug, updated=updated),
        reply_markup=PRIVATE_MENU,
    )


async def _handle_delete_account(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: DeleteAccount
) -> None:
    target = _message_target(msg)
    _require_private(msg, "/delete_account")
    try:
        cfg.db.tokens.delete(msg.sender_id, command.alias)
    except NotFoundError:
        log_command(
            "/delete_account", "error", f"account not found: {command.alias}", target.sender
        )
        await _send(cfg, target, messages.account_not_found(command.alias))
        return
    log_command(
        "/delete_account", "success", f"deleted account: {command.alias}", target.sender
    )
    await _send(
        cfg, target, messages.account_deleted(command.alias), reply_markup=PRIVATE_MENU
    )


async def _handle_config_board(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: ConfigBoard
) -> None:
    target = _message_target(msg)
    board_id = command.board_id
    if len(board_id) < MIN_BOARD_ID_LENGTH:
        log_command("/config_board", "validation", "invalid board id", target.sender)
        await _send(cfg, target, messages.CONFIG_BOARD_INVALID_ID)
        return
    topic_id = topic_id_for(msg.thread_id, msg.is_topic_message)

    account: ResolvedAccount | None = None
    if msg.is_private:
        # any owned token can validate the board; without one it is saved unchecked
        first = cfg.resolver.first_token(msg.sender_id)
        if first is not None:
            account = ResolvedAccount(token=first)
    else:
        try:
            account = cfg.resolver.resolve_account(msg.sender_id, msg.chat_id)
        except NoAccountsError:
            log_command("/config_board", "warning", "no accounts configured", target.sender)
            await _send(cfg, target, messages.CONFIG_BOARD_NO_TOKEN)
            return
        except NotFoundError as exc:
            log_command(
                "/config_board", "error", f"token not found: {exc.alias}", target.sender
            )
            await _send(cfg, target, messages.token_not_found(exc.alias or ""))
            return
        except AmbiguousAccountError as exc:
            await _show_account_menu(
                cfg, target, exc.tokens, None, command="/config_board"
            )
            return
        if account.auto_selected:
            log_command(
                "/config_board",
                "info",
                f"auto-selected account: {account.alias}",
                target.sender,
            )

    board_name: str | None = None
    if account is not None:
        try:
            board_name = await cfg.fizzy.fetch_board_name(account.board_config(board_id))
        except ExternalServiceError:
            log_command(
                "/config_board", "error", f"board not found: {board_id}", target.sender
            )
            await _send(cfg, target, messages.board_not_found(board_id))
            return

    cfg.db.boards.save(topic_id, board_id, board_name)
    log_command(
        "/config_board", "success", f"board set for topic: {topic_id}", target.sender
    )
    if msg.is_private or account is None:
        text = messages.board_set(board_id, board_name)
    else:
        text = messages.board_set(
            board_id,
            board_name,
            alias=account.alias,
            account_slug=account.account_slug,
        )
    await _send(cfg, target, text)


async def _open_account_menu(
    cfg: TelegramBridgeConfig, target: _Target, user_id: int, *, command: str
) -> None:
    if target.is_private:
        log_command(command, "validation", "not in group chat", target.sender)
        await _send(cfg, target, messages.SELECT_ACCOUNT_NOT_GROUP)
        return
    try:
        choice = cfg.resolver.selection_candidates(user_id, target.chat_id)
    except NoAccountsError:
        log_command(command, "warning", "no accounts configured", target.sender)
        await _send(cfg, target, messages.NO_ACCOUNTS)
        return
    await _show_account_menu(
        cfg, target, choice.tokens, choice.current_alias, command=command
    )


async def _handle_select_account(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: SelectAccount
) -> None:
    await _open_account_menu(
        cfg, _message_target(msg), msg.sender_id, command="/select_account"
    )


async def _build_card(
    cfg: TelegramBridgeConfig,
    msg: TelegramIncomingMessage,
    command: CreateCard,
    topic_id: str,
) -> PendingCard:
    return PendingCard(
        title=command.title,
        description=build_description(msg, command),
        topic_id=topic_id,
        image=await _image_from_reply(cfg, msg),
        was_reply=msg.is_reply,
        has_description=command.description is not None,
    )


async def _handle_create_card(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: CreateCard
) -> None:
    target = _message_target(msg)
    name = command_name(command)
    topic_id = topic_id_for(msg.thread_id, msg.is_topic_message)
    try:
        board = cfg.resolver.resolve_board(topic_id)
    except NoBoardError:
        log_command(name, "warning", "no board configured", target.sender)
        await _send(cfg, target, messages.NO_BOARD)
        return
    if not command.title:
        log_command(name, "validation", "missing title", target.sender)
        await _send(cfg, target, messages.missing_title(command.verb))
        return

    try:
        account = cfg.resolver.resolve_account(msg.sender_id, msg.chat_id)
    except NoAccountsError:
        log_command(name, "warning", "no accounts configured", target.sender)
        await _send(cfg, target, messages.NO_ACCOUNTS)
        return
    except NotFoundError as exc:
        log_command(name, "error", f"token not found: {exc.alias}", target.sender)
        await _send(cfg, target, messages.token_not_found(exc.alias or ""))
        return
    except AmbiguousAccountError as exc:
        pending = await _build_card(cfg, msg, command, topic_id)
        replaced = cfg.pending.put(msg.sender_id, msg.chat_id, pending)
        if replaced is not None:
            logger.info("pending.replaced", title=replaced.title)
        await _show_account_menu(cfg, target, exc.tokens, None, command=name)
        return

    placeholder_text = (
        messages.creating_card_with(account.alias)
        if account.auto_selected
        else messages.CREATING_CARD
    )
    await _create_and_report(
        cfg,
        target,
        command=name,
        account=account,
        board=board,
        card=await _build_card(cfg, msg, command, topic_id),
        placeholder_text=placeholder_text,
        reply_to=msg.message_id,
    )


async def _send_status(cfg: TelegramBridgeConfig, target: _Target, user_id: int) -> None:
    if target.is_private:
        tokens = cfg.db.tokens.for_user(user_id)
        await _send(
            cfg, target, messages.status_private(tokens), reply_markup=PRIVATE_MENU
        )
        return
    topic_id = topic_id_for(target.thread_id, target.thread_id is not None)
    status = cfg.resolver.group_status(user_id, target.chat_id, topic_id)
    await _send(cfg, target, messages.status_group(status.token, status.board))


async def _handle_status(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: ShowStatus
) -> None:
    target = _message_target(msg)
    log_command("/status", "command executed", "", target.sender)
    await _send_status(cfg, target, msg.sender_id)


async def _send_welcome(cfg: TelegramBridgeConfig, target: _Target) -> None:
    text = messages.WELCOME_PRIVATE if target.is_private else messages.WELCOME_GROUP
    await _send(
        cfg,
        target,
        text,
        parse_mode=HTML,
        reply_markup=menu_for(is_private=target.is_private, bot_username=cfg.bot_username),
    )


async def _send_help(cfg: TelegramBridgeConfig, target: _Target) -> None:
    text = messages.HELP_PRIVATE if target.is_private else messages.HELP_GROUP
    await _send(
        cfg,
        target,
        text,
        parse_mode=HTML,
        reply_markup=menu_for(is_private=target.is_private, bot_username=cfg.bot_username),
    )


async def _handle_start(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: ShowStart
) -> None:
    target = _message_target(msg)
    log_command("/start", "command executed", command.payload, target.sender)
    if msg.is_private and command.payload == "setup":
        await _send(
            cfg, target, messages.CONFIG_TOKEN_HELP, parse_mode=HTML, reply_markup=PRIVATE_MENU
        )
        return
    await _send_welcome(cfg, target)


async def _handle_help(
    cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage, command: ShowHelp
) -> None:
    target = _message_target(msg)
    log_command("/help", "command executed", "", target.sender)
    await _send_help(cfg, target)


_Handler = Callable[[TelegramBridgeConfig, TelegramIncomingMessage, Any], Awaitable[None]]

_COMMAND_HANDLERS: dict[type, _Handler] = {
    UsageProblem: _handle_usage,
    ConfigToken: _handle_config_token,
    DeleteAccount: _handle_delete_account,
    ConfigBoard: _handle_config_board,
    SelectAccount: _handle_select_account,
    CreateCard: _handle_create_card,
    ShowStatus: _handle_status,
    ShowStart: _handle_start,
    ShowHelp: _handle_help,
}


async def handle_message(cfg: TelegramBridgeConfig, msg: TelegramIncomingMessage) -> None:
    command: Command | None = parse_command(msg.text, cfg.bot_username)
    if command is None:
        return
    handler = _COMMAND_HANDLERS[type(command)]
    try:
        await handler(cfg, msg, command)
    except UsageError as exc:
        await _reply_usage(cfg, msg, exc)
    except NotPrivateError as exc:
        target = _message_target(msg)
        log_command(exc.command, "validation", "not in private chat", target.sender)
        await _send(cfg, target, _NOT_PRIVATE_REPLIES[exc.command])


async def _complete_selection(
    cfg: TelegramBridgeConfig, query: TelegramCallbackQuery, alias: str
) -> None:
    """Link the chosen account, then finish a parked card if there is one."""
    target = _callback_target(query)
    token = cfg.resolver.link_account(query.sender_id, query.chat_id, alias)
    card = cfg.pending.pop(query.sender_id, query.chat_id)
    if card is None:
        log_command(
            "account_selection", "success", f"account linked: {alias}", target.sender
        )
        await _send(cfg, target, messages.account_selected(alias))
        return
    if token is None:
        log_command(
            "account_selection", "error", f"token not found: {alias}", target.sender
        )
        await _send(cfg, target, messages.token_not_found(alias))
        return
    board = cfg.resolver.board_for(card.topic_id)
    if board is None:
        log_command("account_selection", "warning", "board not configured", target.sender)
        await _send(cfg, target, messages.NO_BOARD)
        return
    await _create_and_report(
        cfg,
        target,
        command="card_creation",
        account=ResolvedAccount(token=token),
        board=board,
        card=card,
        placeholder_text=messages.creating_card_with(alias),
        reply_to=None,
    )


async def handle_callback(cfg: TelegramBridgeConfig, query: TelegramCallbackQuery) -> None:
    await cfg.bot.answer_callback_query(query.callback_query_id)
    target = _callback_target(query)
    data = query.data
    alias = parse_selected_alias(data)
    if alias is not None:
        log_command("keyboard", "option selected", "select_account", target.sender)
        await _complete_selection(cfg, query, alias)
        return
    log_command("keyboard", "option selected", data or "", target.sender)
    if data == SET_TOKEN_CALLBACK:
        await _send(cfg, target, messages.CONFIG_TOKEN_HELP, parse_mode=HTML)
    elif data == START_CALLBACK:
        await _send_welcome(cfg, target)
    elif data == HELP_CALLBACK:
        await _send_help(cfg, target)
    elif data == STATUS_CALLBACK:
        await _send_status(cfg, target, query.sender_id)
    elif data == SELECT_ACCOUNT_MENU_CALLBACK:
        await _open_account_menu(
            cfg, target, query.sender_id, command="select_account"
        )
    else:
        logger.debug("callback.ignored", data=data)


async def handle_chat_member(
    cfg: TelegramBridgeConfig, update: TelegramChatMemberUpdate
) -> None:
    if update.new_status != "member" or update.chat_type == "private":
        return
    logger.info("bot.added_to_chat", chat_id=update.chat_id)
    await cfg.bot.send_message(
        chat_id=update.chat_id,
        text=messages.WELCOME_BOT_ADDED,
        reply_markup=menu_for(is_private=False, bot_username=cfg.bot_username),
    )


def _update_kind(update: TelegramIncomingUpdate) -> str:
    if isinstance(update, TelegramCallbackQuery):
        return "callback_query"
    if isinstance(update, TelegramChatMemberUpdate):
        return "my_chat_member"
    return "message"


async def handle_update(cfg: TelegramBridgeConfig, update: TelegramIncomingUpdate) -> None:
    sender_id = None if isinstance(update, TelegramChatMemberUpdate) else update.sender_id
    bind_update_context(
        update_kind=_update_kind(update), chat_id=update.chat_id, user_id=sender_id
    )
    try:
        if isinstance(update, TelegramCallbackQuery):
            await handle_callback(cfg, update)
        elif isinstance(update, TelegramChatMemberUpdate):
            await handle_chat_member(cfg, update)
        else:
            await handle_message(cfg, update)
    except Exception as exc:
        logger.exception(
            "update.failed",
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        if not isinstance(update, TelegramChatMemberUpdate):
            await _report_failure(cfg, update)
    finally:
        clear_context()


async def _report_failure(
    cfg: TelegramBridgeConfig, update: TelegramIncomingMessage | TelegramCallbackQuery
) -> None:
    target = (
        _callback_target(update)
        if isinstance(update, TelegramCallbackQuery)
        else _message_target(update)
    )
    try:
        await _send(cfg, target, messages.UNEXPECTED_ERROR)
    except Exception as exc:
        logger.error(
            "update.failure_reply_failed",
            error=str(exc),
            error_type=exc.__class__.__name__,
        )


async def run_main_loop(
    cfg: TelegramBridgeConfig,
    poller: Callable[[], AsyncIterator[TelegramIncomingUpdate]] | None = None,
    *,
    poll_timeout_s: int = 50,
) -> None:
    if poller is None:
        poller = partial(poll_incoming, cfg.bot, timeout_s=poll_timeout_s)
    async with anyio.create_task_group() as tg:
        async for update in poller():
            tg.start_soon(handle_update, cfg, update)


async def serve_webhook(
    cfg: TelegramBridgeConfig,
    *,
    port: int,
    path: str = "/webhook",
    secret_token: str | None = None,
    host: str = WEBHOOK_HOST,
) -> None:
    app = create_webhook_app(
        partial(handle_update, cfg), path=path, secret_token=secret_token
    )
    server = uvicorn.Server(
        uvicorn.Config(app, host=host, port=port, log_config=None, access_log=False)
    )
    await server.serve()


async def serve(settings: BotSettings) -> None:
    bot = BotClient(settings.bot_token, api_base=settings.telegram_api_base)
    fizzy = FizzyClient(base_url=settings.fizzy_base_url)
    db = Database.open(settings.database_path)
    register_secret(settings.webhook_secret)
    try:
        me = await bot.get_me()
        username = me.get("username") if isinstance(me, dict) else None
        if not isinstance(username, str):
            raise ConfigError("failed to fetch bot info; check BOT_TOKEN.")
        cfg = build_bridge_config(bot=bot, fizzy=fizzy, db=db, bot_username=username)
        if settings.port is not None:
            logger.info(
                "startup.ready",
                mode="webhook",
                username=username,
                db_path=db.path,
                port=settings.port,
                path=settings.webhook_path,
            )
            await serve_webhook(
                cfg,
                port=settings.port,
                path=settings.webhook_path,
                secret_token=settings.webhook_secret,
            )
            return
        webhook = await bot.get_webhook_info()
        if isinstance(webhook, dict) and webhook.get("url"):
            raise ConfigError(
                f"a webhook is registered ({webhook['url']}); "
                "set PORT to receive it, or run `fizzy-bot webhook delete` to poll."
            )
        logger.info(
            "startup.ready",
            mode="polling",
            username=username,
            db_path=db.path,
            api_base=bot.api_base,
        )
        await run_main_loop(cfg, poll_timeout_s=settings.poll_timeout_s)
    finally:
        await bot.close()
        await fizzy.close()
        db.close()
