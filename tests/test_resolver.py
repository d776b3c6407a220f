import pytest

from fizzy_bot.errors import (
    AmbiguousAccountError,
    NoAccountsError,
    NoBoardError,
    NotFoundError,
)
from fizzy_bot.resolver import GENERAL_TOPIC, ContextResolver, topic_id_for
from fizzy_bot.store import Database

USER = 7
CHAT = -1001


@pytest.fixture
def db():
    database = Database.open(":memory:")
    yield database
    database.close()


@pytest.fixture
def resolver(db) -> ContextResolver:
    return ContextResolver(tokens=db.tokens, links=db.links, boards=db.boards)


def test_topic_id_for() -> None:
    assert topic_id_for(42, True) == "42"
    assert topic_id_for(42, None) == GENERAL_TOPIC
    assert topic_id_for(None, True) == GENERAL_TOPIC


def test_no_accounts(resolver) -> None:
    with pytest.raises(NoAccountsError):
        resolver.resolve_account(USER, CHAT)


def test_single_token_is_auto_linked(db, resolver) -> None:
    db.tokens.save(USER, "work", "1111", "a" * 20)

    account = resolver.resolve_account(USER, CHAT)

    assert account.alias == "work"
    assert account.auto_selected is True
    assert db.links.get(USER, CHAT).alias == "work"
    assert resolver.resolve_account(USER, CHAT).auto_selected is False


def test_several_tokens_need_a_choice(db, resolver) -> None:
    db.tokens.save(USER, "work", "1111", "a" * 20)
    db.tokens.save(USER, "personal", "2222", "b" * 20)

    with pytest.raises(AmbiguousAccountError) as excinfo:
        resolver.resolve_account(USER, CHAT)

    assert [token.alias for token in excinfo.value.tokens] == ["work", "personal"]
    assert db.links.get(USER, CHAT) is None


def test_linked_account_wins(db, resolver) -> None:
    db.tokens.save(USER, "work", "1111", "a" * 20)
    db.tokens.save(USER, "personal", "2222", "b" * 20)
    db.links.save(USER, CHAT, "personal")

    account = resolver.resolve_account(USER, CHAT)

    assert account.alias == "personal"
    assert account.account_slug == "2222"
    config = account.board_config("03f770pvr5f56")
    assert config.token == "b" * 20
    assert config.board_id == "03f770pvr5f56"


def test_dangling_link(db, resolver) -> None:
    db.links.save(USER, CHAT, "gone")

    with pytest.raises(NotFoundError) as excinfo:
        resolver.resolve_account(USER, CHAT)

    assert excinfo.value.alias == "gone"


def test_link_account_returns_token_or_none(db, resolver) -> None:
    db.tokens.save(USER, "work", "1111", "a" * 20)

    assert resolver.link_account(USER, CHAT, "work").alias == "work"
    assert resolver.link_account(USER, CHAT, "ghost") is None
    assert db.links.get(USER, CHAT).alias == "ghost"


def test_selection_candidates_marks_current(db, resolver) -> None:
    db.tokens.save(USER, "work", "1111", "a" * 20)
    db.tokens.save(USER, "personal", "2222", "b" * 20)
    db.links.save(USER, CHAT, "work")

    choice = resolver.selection_candidates(USER, CHAT)

    assert choice.current_alias == "work"
    assert len(choice.tokens) == 2


def test_selection_candidates_without_tokens(resolver) -> None:
    with pytest.raises(NoAccountsError):
        resolver.selection_candidates(USER, CHAT)


def test_resolve_board(db, resolver) -> None:
    with pytest.raises(NoBoardError):
        resolver.resolve_board("42")
    db.boards.save("42", "03f770pvr5f56", "Roadmap")
    assert resolver.resolve_board("42").board_name == "Roadmap"
    assert resolver.board_for(GENERAL_TOPIC) is None


def test_group_status(db, resolver) -> None:
    db.tokens.save(USER, "work", "1111", "a" * 20)
    db.links.save(USER, CHAT, "work")
    db.boards.save(GENERAL_TOPIC, "03f770pvr5f56")

    status = resolver.group_status(USER, CHAT, GENERAL_TOPIC)

    assert status.token.alias == "work"
    assert status.board.board_id == "03f770pvr5f56"
    assert resolver.group_status(USER, -2, "9").token is None
