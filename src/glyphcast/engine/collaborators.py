from __future__ import annotations

from typing import Protocol, Sequence


class CardRef(Protocol):
    """A played card as the core sees it: only its letters are read."""

    @property
    def letter_values(self) -> str: ...


class Hand(Protocol):
    def selected_cards(self) -> Sequence[CardRef]: ...

    def is_full(self) -> bool: ...

    def size(self) -> int: ...

    def contains(self, card: CardRef) -> bool: ...

    def remove(self, card: CardRef) -> None: ...

    def add(self, card: CardRef) -> None: ...


class Deck(Protocol):
    def draw_one(self) -> CardRef | None: ...

    def is_empty(self) -> bool: ...

    def discard(self, card: CardRef) -> None: ...

    def return_to_bottom(self, card: CardRef) -> None: ...


class Targets(Protocol):
    """Enemy/unit pool that spell effects land on."""

    def alive_targets(self) -> Sequence[object]: ...

    def deal_damage(self, target: object, amount: int) -> None: ...

    def heal(self, target: object, amount: int) -> None: ...

    def apply_status(self, target: object, status: str, amount: int) -> None: ...


def extract_letters(cards: Sequence[CardRef]) -> str:
    return "".join(card.letter_values for card in cards if card is not None and card.letter_values)
