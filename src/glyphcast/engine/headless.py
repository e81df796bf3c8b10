"""In-memory collaborators for running the core without a presentation layer.

Hosts with real visuals implement the protocols in `collaborators` against
their own objects; simulations, replays and tests use these.
"""

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .collaborators import CardRef


@dataclass(frozen=True)
class LetterCard:
    card_id: str
    letter_values: str


@dataclass
class ListHand:
    max_size: int = 8
    cards: list[CardRef] = field(default_factory=list)
    selection: list[CardRef] = field(default_factory=list)
    ready: bool = True

    def selected_cards(self) -> Sequence[CardRef]:
        return list(self.selection)

    def select(self, *cards: CardRef) -> None:
        self.selection = [c for c in cards if c in self.cards]

    def is_full(self) -> bool:
        return len(self.cards) >= self.max_size

    def size(self) -> int:
        return len(self.cards)

    def contains(self, card: CardRef) -> bool:
        return card in self.cards

    def remove(self, card: CardRef) -> None:
        if card in self.cards:
            self.cards.remove(card)
        if card in self.selection:
            self.selection.remove(card)

    def add(self, card: CardRef) -> None:
        self.cards.append(card)


@dataclass
class ListDeck:
    """Draw pile as a queue (top at the left) plus a discard pile.

    An empty draw pile reshuffles the discard pile back in before it
    reports itself empty.
    """

    cards: deque[CardRef] = field(default_factory=deque)
    discard_pile: list[CardRef] = field(default_factory=list)
    rng: random.Random = field(default_factory=lambda: random.Random(0))
    ready: bool = True

    @staticmethod
    def from_cards(cards: Iterable[CardRef], seed: int = 0, shuffle: bool = False) -> "ListDeck":
        rng = random.Random(seed)
        items = list(cards)
        if shuffle:
            rng.shuffle(items)
        return ListDeck(cards=deque(items), rng=rng)

    def _recycle(self) -> None:
        if self.cards or not self.discard_pile:
            return
        pile = list(self.discard_pile)
        self.discard_pile.clear()
        self.rng.shuffle(pile)
        self.cards.extend(pile)

    def draw_one(self) -> CardRef | None:
        self._recycle()
        if not self.cards:
            return None
        return self.cards.popleft()

    def is_empty(self) -> bool:
        return not self.cards and not self.discard_pile

    def discard(self, card: CardRef) -> None:
        self.discard_pile.append(card)

    def return_to_bottom(self, card: CardRef) -> None:
        self.cards.append(card)


@dataclass
class Unit:
    name: str
    health: int
    max_health: int
    statuses: dict[str, int] = field(default_factory=dict)

    @property
    def is_alive(self) -> bool:
        return self.health > 0


@dataclass
class TargetPool:
    units: list[Unit] = field(default_factory=list)
    ready: bool = True

    @staticmethod
    def of(*specs: tuple[str, int]) -> "TargetPool":
        return TargetPool(units=[Unit(name=n, health=hp, max_health=hp) for n, hp in specs])

    def alive_targets(self) -> Sequence[object]:
        return [u for u in self.units if u.is_alive]

    def _unit(self, target: object) -> Unit:
        if not isinstance(target, Unit) or not any(u is target for u in self.units):
            raise ValueError(f"Unknown target: {target!r}")
        return target

    def deal_damage(self, target: object, amount: int) -> None:
        unit = self._unit(target)
        unit.health = max(0, unit.health - max(0, amount))

    def heal(self, target: object, amount: int) -> None:
        unit = self._unit(target)
        if unit.is_alive:
            unit.health = min(unit.max_health, unit.health + max(0, amount))

    def apply_status(self, target: object, status: str, amount: int) -> None:
        unit = self._unit(target)
        unit.statuses[status] = unit.statuses.get(status, 0) + amount
