import pytest

from fizzy_bot.errors import NotFoundError
from fizzy_bot.store import Database, TopicBoard


@pytest.fixture
def db():
    database = Database.open(":memory:")
    yield database
    database.close()


def test_schema_has_three_tables(db) -> None:
    assert db.table_names() == ["chat_token_links", "topic_boards", "user_tokens"]


def test_token_upsert_reports_update(db) -> None:
    assert db.tokens.save(1, "work", "1111", "a" * 20) is False
    assert db.tokens.save(1, "work", "3333", "b" * 20) is True

    token = db.tokens.get(1, "work")
    assert token is not None
    assert token.account_slug == "3333"
    assert token.token == "b" * 20
    assert len(db.tokens.for_user(1)) == 1


def test_tokens_are_scoped_per_user(db) -> None:
    db.tokens.save(1, "work", "1111", "a" * 20)
    db.tokens.save(2, "work", "2222", "b" * 20)

    assert db.tokens.get(1, "work").account_slug == "1111"
    assert db.tokens.get(2, "work").account_slug == "2222"


def test_for_user_keeps_insertion_order(db) -> None:
    db.tokens.save(1, "work", "1111", "a" * 20)
    db.tokens.save(1, "personal", "2222", "b" * 20)

    assert [token.alias for token in db.tokens.for_user(1)] == ["work", "personal"]


def test_token_repr_hides_secret(db) -> None:
    db.tokens.save(1, "work", "1111", "secret-token-value-123")
    assert "secret-token-value-123" not in repr(db.tokens.get(1, "work"))


def test_delete_missing_alias_raises(db) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        db.tokens.delete(1, "nope")
    assert excinfo.value.alias == "nope"


def test_delete_leaves_links_dangling(db) -> None:
    db.tokens.save(1, "work", "1111", "a" * 20)
    db.links.save(1, -100, "work")

    db.tokens.delete(1, "work")

    assert db.tokens.get(1, "work") is None
    link = db.links.get(1, -100)
    assert link is not None
    assert link.alias == "work"


def test_links_overwrite(db) -> None:
    db.links.save(1, -100, "work")
    db.links.save(1, -100, "personal")

    assert db.links.get(1, -100).alias == "personal"
    assert db.links.get(1, -200) is None


def test_topic_board_overwrite(db) -> None:
    db.boards.save("general", "03f770pvr5f56", "Roadmap")
    db.boards.save("general", "04aaaaaaaaaaa")

    assert db.boards.get("general") == TopicBoard("general", "04aaaaaaaaaaa", None)
    assert db.boards.get("42") is None


def test_display_name_falls_back_to_id() -> None:
    assert TopicBoard("general", "03f770pvr5f56").display_name == "03f770pvr5f56"
    assert TopicBoard("general", "03f770pvr5f56", "Roadmap").display_name == "Roadmap"


def test_reset_drops_rows(db) -> None:
    db.tokens.save(1, "work", "1111", "a" * 20)
    db.boards.save("general", "03f770pvr5f56")

    db.reset()

    assert db.tokens.for_user(1) == []
    assert db.boards.get("general") is None
    assert len(db.table_names()) == 3


def test_open_creates_parent_directory(tmp_path) -> None:
    path = tmp_path / "nested" / "bot.db"
    database = Database.open(path)
    try:
        database.tokens.save(1, "work", "1111", "a" * 20)
    finally:
        database.close()

    reopened = Database.open(path)
    try:
        assert reopened.tokens.get(1, "work") is not None
    finally:
        reopened.close()
