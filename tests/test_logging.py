import json

import structlog

from fizzy_bot.logging import (
    bind_update_context,
    clear_context,
    get_logger,
    log_command,
    mask_secret,
    register_secret,
    setup_logging,
)


def _lines(capsys) -> list[dict]:
    out = capsys.readouterr().out
    return [json.loads(line) for line in out.splitlines() if line.strip()]


def test_mask_secret() -> None:
    assert mask_secret("short") == "*****"
    assert mask_secret("abcdefghijklmnop") == "abcd...mnop"


def test_token_fields_and_registered_secrets_are_masked(capsys) -> None:
    setup_logging(level="debug", fmt="json")
    register_secret("123456:SECRETSECRETSECRET")
    try:
        get_logger("test").info(
            "telegram.request",
            token="abcdefghijklmnop",
            secret_token="hook_secret_value",
            url="https://api.telegram.org/bot123456:SECRETSECRETSECRET/getMe",
        )
    finally:
        structlog.reset_defaults()

    [line] = _lines(capsys)
    assert line["token"] == "abcd...mnop"
    assert line["secret_token"] == "hook...alue"
    assert "SECRETSECRETSECRET" not in line["url"]
    assert line["service"] == "fizzy-telegram-bot"
    assert line["level"] == "info"


def test_log_command_levels_and_context(capsys) -> None:
    setup_logging(level="info", fmt="json")
    bind_update_context(update_kind="message", chat_id=-100, user_id=7)
    try:
        log_command("/todo", "success", "card created", "@ana")
        log_command("/todo", "error", "card creation failed: work", "@ana")
    finally:
        clear_context()
        structlog.reset_defaults()

    first, second = _lines(capsys)
    assert first["event"] == "command.success"
    assert first["level"] == "info"
    assert first["chat_id"] == -100
    assert first["sender"] == "@ana"
    assert second["level"] == "error"
    assert second["detail"] == "card creation failed: work"


def test_level_filters_debug(capsys) -> None:
    setup_logging(level="warning", fmt="json")
    try:
        get_logger().info("quiet")
        get_logger().warning("loud")
    finally:
        structlog.reset_defaults()

    assert [line["event"] for line in _lines(capsys)] == ["loud"]
