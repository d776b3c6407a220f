import pytest

from fizzy_bot.commands import (
    MALFORMED_ARGS,
    MISSING_ARGS,
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


def test_config_token_full() -> None:
    command = parse_command("/config_token work 1111 abcdefghij0123456789")
    assert command == ConfigToken(
        alias="work", account_slug="1111", token="abcdefghij0123456789"
    )


def test_config_token_hides_token_in_repr() -> None:
    command = parse_command("/config_token work 1111 abcdefghij0123456789")
    assert "abcdefghij0123456789" not in repr(command)


def test_config_token_lonely() -> None:
    assert parse_command("/config_token") == UsageProblem("config_token", MISSING_ARGS)


def test_config_token_short_token_is_malformed() -> None:
    assert parse_command("/config_token work 1111 short") == UsageProblem(
        "config_token", MALFORMED_ARGS
    )


def test_config_token_missing_token_is_malformed() -> None:
    assert parse_command("/config_token work 1111") == UsageProblem(
        "config_token", MALFORMED_ARGS
    )


def test_delete_account_shapes() -> None:
    assert parse_command("/delete_account work") == DeleteAccount(alias="work")
    assert parse_command("/delete_account") == UsageProblem("delete_account", MISSING_ARGS)
    assert parse_command("/delete_account a b") == UsageProblem(
        "delete_account", MALFORMED_ARGS
    )


def test_config_board_shapes() -> None:
    assert parse_command("/config_board 03f770pvr5f56") == ConfigBoard("03f770pvr5f56")
    assert parse_command("/config_board") == UsageProblem("config_board", MISSING_ARGS)
    assert parse_command("/config_board abc-def") == UsageProblem(
        "config_board", MALFORMED_ARGS
    )


def test_config_board_short_id_parses() -> None:
    # length is checked when dispatching, not when parsing
    assert parse_command("/config_board abc") == ConfigBoard("abc")


def test_select_account_rejects_arguments() -> None:
    assert parse_command("/select_account") == SelectAccount()
    assert parse_command("/select_account work") == UsageProblem(
        "select_account", MALFORMED_ARGS
    )


@pytest.mark.parametrize("verb", ["issue", "todo", "fizzy"])
def test_card_verbs(verb: str) -> None:
    assert parse_command(f"/{verb} Fix bug") == CreateCard(verb=verb, title="Fix bug")


def test_card_with_description() -> None:
    command = parse_command("/todo Fix login -d Happens on iOS only")
    assert command == CreateCard(
        verb="todo", title="Fix login", description="Happens on iOS only"
    )


def test_card_description_spans_lines() -> None:
    command = parse_command("/issue Crash -d line one\nline two")
    assert command == CreateCard(
        verb="issue", title="Crash", description="line one\nline two"
    )


def test_card_title_keeps_dashes() -> None:
    command = parse_command("/todo Fix sign-in - again")
    assert command == CreateCard(verb="todo", title="Fix sign-in - again")


def test_card_lonely_and_malformed() -> None:
    assert parse_command("/todo") == UsageProblem("todo", MISSING_ARGS)
    assert parse_command("/todo   ") == UsageProblem("todo", MISSING_ARGS)
    assert parse_command("/todo -d only a description") == UsageProblem(
        "todo", MALFORMED_ARGS
    )


def test_card_verb_case_insensitive() -> None:
    assert parse_command("/TODO Ship it") == CreateCard(verb="todo", title="Ship it")


def test_bot_username_suffix() -> None:
    assert parse_command("/todo@fizzy_bot Fix bug") == CreateCard(
        verb="todo", title="Fix bug"
    )
    assert parse_command("/status@fizzy_bot") == ShowStatus()


def test_mention_must_name_this_bot() -> None:
    assert parse_command("/todo@other_bot Fix", "fizzy_bot") is None
    assert parse_command("/help@other_bot", "fizzy_bot") is None
    assert parse_command("/todo@Fizzy_Bot Fix", "fizzy_bot") == CreateCard(
        verb="todo", title="Fix"
    )
    assert parse_command("/todo@fizzy_bot", "fizzy_bot") == UsageProblem(
        command="todo", reason=MISSING_ARGS
    )
    assert parse_command(
        "/config_board@fizzy_bot 03f770pvr5f56", "fizzy_bot"
    ) == ConfigBoard(board_id="03f770pvr5f56")
    assert parse_command("/status", "fizzy_bot") == ShowStatus()


def test_info_commands() -> None:
    assert parse_command("/status") == ShowStatus()
    assert parse_command("/help") == ShowHelp()
    assert parse_command("/start") == ShowStart()
    assert parse_command("/start setup") == ShowStart(payload="setup")


def test_non_commands() -> None:
    assert parse_command(None) is None
    assert parse_command("") is None
    assert parse_command("hello /todo x") is None
    assert parse_command("/unknown thing") is None
    assert parse_command("/starting") is None
    assert parse_command("/todos list") is None


def test_command_name() -> None:
    assert command_name(CreateCard(verb="issue", title="x")) == "/issue"
    assert command_name(UsageProblem("config_board", MISSING_ARGS)) == "/config_board"
    assert command_name(ShowStatus()) == "/status"
