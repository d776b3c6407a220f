from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import anyio
import typer

from . import __version__
from .errors import ConfigError
from .logging import get_logger, setup_logging
from .settings import TELEGRAM_API_BASE, BotSettings, load_settings
from .store import Database
from .telegram.bridge import serve
from .telegram.client import BotClient

logger = get_logger(__name__)

T = TypeVar("T")


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _load_settings_or_exit() -> BotSettings:
    try:
        return load_settings()
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _bot_client(settings: BotSettings, *, api_base: str | None = None) -> BotClient:
    return BotClient(settings.bot_token, api_base=api_base or settings.telegram_api_base)


def _with_bot(
    settings: BotSettings,
    action: Callable[[BotClient], Awaitable[T]],
    *,
    api_base: str | None = None,
) -> T:
    async def _run() -> T:
        bot = _bot_client(settings, api_base=api_base)
        try:
            return await action(bot)
        finally:
            await bot.close()

    return anyio.run(_run)


def _run_bot(*, debug: bool) -> None:
    settings = _load_settings_or_exit()
    setup_logging(level=settings.log_level, fmt=settings.log_format, debug=debug)
    try:
        anyio.run(serve, settings)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
        raise typer.Exit(code=130) from None


app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="Telegram bot that turns chat messages into Fizzy cards.",
)
webhook_app = typer.Typer(add_completion=False, help="Inspect or change the webhook.")
app.add_typer(webhook_app, name="webhook")


@app.callback()
def app_main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log Telegram and Fizzy requests.",
    ),
) -> None:
    """Fizzy Telegram bot CLI."""
    if ctx.invoked_subcommand is None:
        _run_bot(debug=debug)
        raise typer.Exit()


@app.command(name="run")
def run_cmd(
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log Telegram and Fizzy requests.",
    ),
) -> None:
    """Poll Telegram and handle updates until interrupted."""
    _run_bot(debug=debug)


@app.command(name="init-db")
def init_db(
    force: bool = typer.Option(
        False, "--force", help="Run schema creation even if the file exists."
    ),
) -> None:
    """Create the database tables."""
    settings = _load_settings_or_exit()
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    path = settings.database_path
    if path.exists() and not force:
        typer.echo(f"database already exists at {path}; use --force to re-run")
        return
    try:
        db = Database.open(path)
    except Exception as exc:
        typer.echo(f"error: failed to initialize database: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    try:
        tables = ", ".join(db.table_names())
    finally:
        db.close()
    typer.echo(f"database ready at {path} ({tables})")


@app.command(name="reset-db")
def reset_db(
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Drop and recreate every table. All tokens, links and boards are lost."""
    settings = _load_settings_or_exit()
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    path = settings.database_path
    if not yes:
        confirmed = typer.confirm(
            f"delete all tokens, chat links and boards in {path}?", default=False
        )
        if not confirmed:
            typer.echo("aborted")
            raise typer.Exit(code=1)
    try:
        db = Database.open(path)
    except Exception as exc:
        typer.echo(f"error: failed to open database: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    try:
        db.reset()
    finally:
        db.close()
    typer.echo(f"database reset at {path}")


@webhook_app.command(name="status")
def webhook_status() -> None:
    """Show the registered webhook, if any."""
    settings = _load_settings_or_exit()
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    info = _with_bot(settings, lambda bot: bot.get_webhook_info())
    if info is None:
        typer.echo("error: failed to fetch webhook info", err=True)
        raise typer.Exit(code=1)
    url = info.get("url") or ""
    if not url:
        typer.echo("no webhook registered (long polling)")
        return
    typer.echo(f"url: {url}")
    typer.echo(f"pending updates: {info.get('pending_update_count', 0)}")
    last_error = info.get("last_error_message")
    if last_error:
        typer.echo(f"last error: {last_error}")


@webhook_app.command(name="set")
def webhook_set(url: str = typer.Argument(..., help="Public HTTPS URL.")) -> None:
    """Register a webhook URL."""
    settings = _load_settings_or_exit()
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    if not url.startswith("https://"):
        typer.echo("error: webhook url must start with https://", err=True)
        raise typer.Exit(code=1)
    if not _with_bot(
        settings,
        lambda bot: bot.set_webhook(url, secret_token=settings.webhook_secret),
    ):
        typer.echo("error: failed to set webhook", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"webhook set to {url}")


@webhook_app.command(name="delete")
def webhook_delete() -> None:
    """Remove the webhook so the bot can poll."""
    settings = _load_settings_or_exit()
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    if not _with_bot(settings, lambda bot: bot.delete_webhook()):
        typer.echo("error: failed to delete webhook", err=True)
        raise typer.Exit(code=1)
    typer.echo("webhook deleted")


def _check_get_me(settings: BotSettings, label: str, api_base: str) -> bool:
    me = _with_bot(settings, lambda bot: bot.get_me(), api_base=api_base)
    if me is None:
        typer.echo(f"[fail] {label}: getMe failed via {api_base}")
        return False
    typer.echo(f"[ok] {label}: @{me.get('username')} via {api_base}")
    return True


@app.command(name="selftest")
def selftest() -> None:
    """Check Bot API connectivity and report the webhook state."""
    settings = _load_settings_or_exit()
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    ok = _check_get_me(settings, "direct", TELEGRAM_API_BASE)
    if settings.telegram_api_proxy_url:
        ok = _check_get_me(settings, "proxy", settings.telegram_api_proxy_url) and ok
    info = _with_bot(settings, lambda bot: bot.get_webhook_info())
    if info is None:
        typer.echo("[fail] webhook: getWebhookInfo failed")
        ok = False
    elif info.get("url"):
        typer.echo(
            f"[warn] webhook: registered at {info['url']}; "
            "polling will not start unless PORT is set"
        )
    else:
        typer.echo("[ok] webhook: none registered")
    if not ok:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
