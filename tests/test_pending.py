from fizzy_bot.pending import PendingCard, PendingCardBuffer


def _card(title: str) -> PendingCard:
    return PendingCard(title=title, description=title, topic_id="general")


def test_put_and_pop_once() -> None:
    buffer = PendingCardBuffer()
    assert buffer.put(1, -100, _card("first")) is None

    assert buffer.pop(1, -100) == _card("first")
    assert buffer.pop(1, -100) is None
    assert len(buffer) == 0


def test_newer_card_replaces_older() -> None:
    buffer = PendingCardBuffer()
    buffer.put(1, -100, _card("first"))

    replaced = buffer.put(1, -100, _card("second"))

    assert replaced == _card("first")
    assert buffer.pop(1, -100) == _card("second")


def test_slots_are_per_user_and_chat() -> None:
    buffer = PendingCardBuffer()
    buffer.put(1, -100, _card("a"))
    buffer.put(2, -100, _card("b"))
    buffer.put(1, -200, _card("c"))

    assert len(buffer) == 3
    assert buffer.pop(2, -100) == _card("b")
    assert buffer.pop("1", "-200") == _card("c")
    assert len(buffer) == 1
