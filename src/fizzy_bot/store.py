"""SQLite-backed persistence for tokens, chat links and topic boards."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

from .errors import NotFoundError
from .logging import get_logger

logger = get_logger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS user_tokens (
      user_id TEXT NOT NULL,
      alias TEXT NOT NULL,
      account_slug TEXT NOT NULL,
      token TEXT NOT NULL,
      PRIMARY KEY (user_id, alias)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_token_links (
      user_id TEXT NOT NULL,
      chat_id TEXT NOT NULL,
      alias TEXT NOT NULL,
      PRIMARY KEY (user_id, chat_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS topic_boards (
      topic_id TEXT PRIMARY KEY,
      board_id TEXT NOT NULL,
      board_name TEXT
    )
    """,
)
_TABLES = ("user_tokens", "chat_token_links", "topic_boards")


@dataclass(frozen=True, slots=True)
class UserToken:
    user_id: str
    alias: str
    account_slug: str
    token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class ChatTokenLink:
    user_id: str
    chat_id: str
    alias: str


@dataclass(frozen=True, slots=True)
class TopicBoard:
    topic_id: str
    board_id: str
    board_name: str | None = None

    @property
    def display_name(self) -> str:
        return self.board_name or self.board_id


class CredentialStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, user_id: int | str, alias: str) -> UserToken | None:
        row = self._conn.execute(
            "SELECT user_id, alias, account_slug, token FROM user_tokens "
            "WHERE user_id = ? AND alias = ?",
            (str(user_id), alias),
        ).fetchone()
        return UserToken(*row) if row is not None else None

    def for_user(self, user_id: int | str) -> list[UserToken]:
        rows = self._conn.execute(
            "SELECT user_id, alias, account_slug, token FROM user_tokens "
            "WHERE user_id = ? ORDER BY rowid",
            (str(user_id),),
        ).fetchall()
        return [UserToken(*row) for row in rows]

    def save(
        self, user_id: int | str, alias: str, account_slug: str, token: str
    ) -> bool:
        """Upsert a token; returns True when an existing alias was overwritten."""
        existed = self.get(user_id, alias) is not None
        self._conn.execute(
            "INSERT INTO user_tokens (user_id, alias, account_slug, token) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT (user_id, alias) DO UPDATE SET "
            "account_slug = excluded.account_slug, token = excluded.token",
            (str(user_id), alias, account_slug, token),
        )
        return existed

    def delete(self, user_id: int | str, alias: str) -> None:
        cursor = self._conn.execute(
            "DELETE FROM user_tokens WHERE user_id = ? AND alias = ?",
            (str(user_id), alias),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"account {alias!r} not found", alias=alias)


class ChatLinkStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, user_id: int | str, chat_id: int | str) -> ChatTokenLink | None:
        row = self._conn.execute(
            "SELECT user_id, chat_id, alias FROM chat_token_links "
            "WHERE user_id = ? AND chat_id = ?",
            (str(user_id), str(chat_id)),
        ).fetchone()
        return ChatTokenLink(*row) if row is not None else None

    def save(self, user_id: int | str, chat_id: int | str, alias: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO chat_token_links (user_id, chat_id, alias) "
            "VALUES (?, ?, ?)",
            (str(user_id), str(chat_id), alias),
        )


class TopicBoardStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, topic_id: str) -> TopicBoard | None:
        row = self._conn.execute(
            "SELECT topic_id, board_id, board_name FROM topic_boards "
            "WHERE topic_id = ?",
            (topic_id,),
        ).fetchone()
        return TopicBoard(*row) if row is not None else None

    def save(self, topic_id: str, board_id: str, board_name: str | None = None) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO topic_boards (topic_id, board_id, board_name) "
            "VALUES (?, ?, ?)",
            (topic_id, board_id, board_name),
        )


class Database:
    __slots__ = ("_conn", "path", "tokens", "links", "boards")

    def __init__(self, conn: sqlite3.Connection, *, path: str) -> None:
        self._conn = conn
        self.path = path
        self.tokens = CredentialStore(conn)
        self.links = ChatLinkStore(conn)
        self.boards = TopicBoardStore(conn)

    @classmethod
    def open(cls, path: Path | str, *, ensure_schema: bool = True) -> Database:
        location = str(path)
        if location != ":memory:":
            Path(location).parent.mkdir(parents=True, exist_ok=True)
        # autocommit: every statement is its own single-row transaction
        conn = sqlite3.connect(location, isolation_level=None, check_same_thread=False)
        db = cls(conn, path=location)
        if ensure_schema:
            db.ensure_schema()
        return db

    def ensure_schema(self) -> None:
        for statement in _SCHEMA:
            self._conn.execute(statement)
        logger.debug("store.schema.ensured", path=self.path)

    def reset(self) -> None:
        for table in _TABLES:
            self._conn.execute(f"DROP TABLE IF EXISTS {table}")
        self.ensure_schema()
        logger.warning("store.reset", path=self.path, tables=list(_TABLES))

    def table_names(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        ).fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        self._conn.close()
