import pytest
import structlog
from typer.testing import CliRunner

from fizzy_bot import __version__, cli, settings
from fizzy_bot.store import Database

runner = CliRunner()


class _FakeBot:
    def __init__(self, webhook: dict | None, me: dict | None = None) -> None:
        self.webhook = webhook
        self.me = me
        self.deleted = False
        self.webhook_calls: list[tuple[str, str | None]] = []

    async def get_webhook_info(self):
        return self.webhook

    async def get_me(self):
        return self.me

    async def set_webhook(self, url: str, *, secret_token: str | None = None) -> bool:
        self.webhook_calls.append((url, secret_token))
        return True

    async def delete_webhook(self) -> bool:
        self.deleted = True
        return True

    async def close(self) -> None:
        return None


@pytest.fixture(autouse=True)
def _env(monkeypatch, tmp_path):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "data" / "bot.db"))
    monkeypatch.delenv("TELEGRAM_API_PROXY_URL", raising=False)
    monkeypatch.delenv("RAILWAY_VOLUME_MOUNT_PATH", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
    yield
    structlog.reset_defaults()


def _install_bot(monkeypatch, bot: _FakeBot) -> None:
    monkeypatch.setattr(cli, "_bot_client", lambda settings, api_base=None: bot)


def test_version() -> None:
    result = runner.invoke(cli.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_db_creates_tables(tmp_path) -> None:
    result = runner.invoke(cli.app, ["init-db"])

    assert result.exit_code == 0
    assert "database ready" in result.output
    db = Database.open(tmp_path / "data" / "bot.db", ensure_schema=False)
    try:
        assert db.table_names() == ["chat_token_links", "topic_boards", "user_tokens"]
    finally:
        db.close()


def test_init_db_skips_existing_file() -> None:
    runner.invoke(cli.app, ["init-db"])

    result = runner.invoke(cli.app, ["init-db"])
    assert result.exit_code == 0
    assert "already exists" in result.output

    forced = runner.invoke(cli.app, ["init-db", "--force"])
    assert forced.exit_code == 0
    assert "database ready" in forced.output


def test_reset_db_requires_confirmation(tmp_path) -> None:
    path = tmp_path / "data" / "bot.db"
    db = Database.open(path)
    db.tokens.save(1, "work", "1111", "w" * 20)
    db.close()

    aborted = runner.invoke(cli.app, ["reset-db"], input="n\n")
    assert aborted.exit_code == 1

    result = runner.invoke(cli.app, ["reset-db", "--yes"])
    assert result.exit_code == 0

    db = Database.open(path)
    try:
        assert db.tokens.for_user(1) == []
    finally:
        db.close()


def test_missing_token_exits_with_error(monkeypatch) -> None:
    monkeypatch.delenv("BOT_TOKEN")
    monkeypatch.setattr(cli, "load_settings", lambda: settings.load_settings(_env_file=None))
    result = runner.invoke(cli.app, ["init-db"])

    assert result.exit_code == 1
    assert "error:" in result.output


def test_webhook_status_without_webhook(monkeypatch) -> None:
    _install_bot(monkeypatch, _FakeBot({"url": ""}))

    result = runner.invoke(cli.app, ["webhook", "status"])

    assert result.exit_code == 0
    assert "no webhook registered" in result.output


def test_webhook_status_failure(monkeypatch) -> None:
    _install_bot(monkeypatch, _FakeBot(None))

    result = runner.invoke(cli.app, ["webhook", "status"])

    assert result.exit_code == 1


def test_webhook_set_rejects_plain_http(monkeypatch) -> None:
    _install_bot(monkeypatch, _FakeBot({"url": ""}))

    result = runner.invoke(cli.app, ["webhook", "set", "http://example.com/hook"])

    assert result.exit_code == 1


def test_webhook_set_sends_secret(monkeypatch) -> None:
    monkeypatch.setenv("WEBHOOK_SECRET", "hook_secret-1")
    bot = _FakeBot({"url": ""})
    _install_bot(monkeypatch, bot)

    result = runner.invoke(cli.app, ["webhook", "set", "https://bot.example.com/webhook"])

    assert result.exit_code == 0
    assert bot.webhook_calls == [("https://bot.example.com/webhook", "hook_secret-1")]


def test_webhook_delete(monkeypatch) -> None:
    bot = _FakeBot({"url": "https://example.com/hook"})
    _install_bot(monkeypatch, bot)

    result = runner.invoke(cli.app, ["webhook", "delete"])

    assert result.exit_code == 0
    assert bot.deleted is True


def test_selftest(monkeypatch) -> None:
    _install_bot(monkeypatch, _FakeBot({"url": ""}, me={"username": "fizzy_bot"}))

    result = runner.invoke(cli.app, ["selftest"])

    assert result.exit_code == 0
    assert "[ok] direct: @fizzy_bot" in result.output
    assert "[ok] webhook: none registered" in result.output


def test_selftest_fails_when_unreachable(monkeypatch) -> None:
    _install_bot(monkeypatch, _FakeBot({"url": ""}, me=None))

    result = runner.invoke(cli.app, ["selftest"])

    assert result.exit_code == 1
    assert "[fail] direct" in result.output
