from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

SERVICE_NAME = "fizzy-telegram-bot"

_SECRET_KEYS = frozenset({"token", "bot_token", "secret_token", "authorization"})
_secrets: set[str] = set()


def mask_secret(value: str) -> str:
    if len(value) <= 12:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


def register_secret(value: str | None) -> None:
    if value:
        _secrets.add(value)


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        for secret in _secrets:
            if secret in value:
                value = value.replace(secret, mask_secret(secret))
        return value
    if isinstance(value, dict):
        return {key: _scrub(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(item) for item in value)
    return value


def _redact(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key, value in list(event_dict.items()):
        if key in _SECRET_KEYS and isinstance(value, str):
            event_dict[key] = mask_secret(value)
        else:
            event_dict[key] = _scrub(value)
    return event_dict


def _add_service(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(*, level: str = "info", fmt: str = "json", debug: bool = False) -> None:
    if debug:
        level = "debug"
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    renderer: Any
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service,
            structlog.processors.format_exc_info,
            _redact,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)


def bind_update_context(
    *, update_kind: str, chat_id: int | None, user_id: int | None
) -> None:
    structlog.contextvars.bind_contextvars(
        update_kind=update_kind,
        chat_id=chat_id,
        user_id=user_id,
    )


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


_command_logger = get_logger("fizzy_bot.commands")


def log_command(
    command: str,
    outcome: str,
    detail: str = "",
    sender: str | None = None,
) -> None:
    fields: dict[str, Any] = {"command": command, "outcome": outcome}
    if detail:
        fields["detail"] = detail
    if sender:
        fields["sender"] = sender
    event = f"command.{outcome}"
    if outcome in {"error", "failed"}:
        _command_logger.error(event, **fields)
    elif outcome == "warning":
        _command_logger.warning(event, **fields)
    else:
        _command_logger.info(event, **fields)
