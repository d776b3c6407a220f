from __future__ import annotations

from dataclasses import dataclass

from .fizzy import CardImage


@dataclass(frozen=True, slots=True)
class PendingCard:
    title: str
    description: str
    topic_id: str
    image: CardImage | None = None
    was_reply: bool = False
    has_description: bool = False


class PendingCardBuffer:
    """Card requests parked until the user picks an account.

    One slot per (user, chat): a newer request replaces the older one and a
    slot is handed out at most once.
    """

    __slots__ = ("_cards",)

    def __init__(self) -> None:
        self._cards: dict[tuple[str, str], PendingCard] = {}

    @staticmethod
    def _key(user_id: int | str, chat_id: int | str) -> tuple[str, str]:
        return (str(user_id), str(chat_id))

    def put(
        self, user_id: int | str, chat_id: int | str, card: PendingCard
    ) -> PendingCard | None:
        key = self._key(user_id, chat_id)
        previous = self._cards.get(key)
        self._cards[key] = card
        return previous

    def pop(self, user_id: int | str, chat_id: int | str) -> PendingCard | None:
        return self._cards.pop(self._key(user_id, chat_id), None)

    def __len__(self) -> int:
        return len(self._cards)
