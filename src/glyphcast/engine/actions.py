from __future__ import annotations

from dataclasses import dataclass

from .collaborators import CardRef


@dataclass(frozen=True)
class PlayCardsAction:
    cards: tuple[CardRef, ...]


@dataclass(frozen=True)
class DrawAction:
    pass


@dataclass(frozen=True)
class DiscardAction:
    card: CardRef | None = None
    cost: int | None = None


@dataclass(frozen=True)
class CastAction:
    pass


@dataclass(frozen=True)
class EndTurnAction:
    pass


@dataclass(frozen=True)
class FinishEnemyTurnAction:
    pass


Action = PlayCardsAction | DrawAction | DiscardAction | CastAction | EndTurnAction | FinishEnemyTurnAction
