from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

ResourceKind = Literal["life", "creativity"]
RESOURCE_KINDS: tuple[ResourceKind, ...] = ("life", "creativity")

HealTarget = Literal["self", "target"]


class ComboState(str, Enum):
    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"
    INVALID = "invalid"


class TurnPhase(str, Enum):
    PLAYER_TURN = "player_turn"
    ENEMY_TURN = "enemy_turn"
    TRANSITIONING = "transitioning"
    COMBAT_ENDED = "combat_ended"


@dataclass(frozen=True)
class DamageEffect:
    type: Literal["damage"]
    amount: int


@dataclass(frozen=True)
class HealEffect:
    type: Literal["heal"]
    amount: int
    target: HealTarget = "self"


@dataclass(frozen=True)
class BuffEffect:
    type: Literal["buff"]
    resource: ResourceKind
    amount: int


@dataclass(frozen=True)
class DebuffEffect:
    type: Literal["debuff"]
    status: str
    amount: int


@dataclass(frozen=True)
class CustomEffect:
    type: Literal["custom"]
    name: str
    amount: int = 0


Effect = DamageEffect | HealEffect | BuffEffect | DebuffEffect | CustomEffect


def normalize_letters(letters: str) -> str:
    """Canonical form used for every letter comparison."""
    return letters.upper()


@dataclass(frozen=True)
class SpellDefinition:
    id: str
    name: str
    letter_code: str
    effects: tuple[Effect, ...]
    subtypes: tuple[str, ...] = ()

    @property
    def normalized_code(self) -> str:
        return normalize_letters(self.letter_code)
