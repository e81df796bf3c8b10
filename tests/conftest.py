from __future__ import annotations

from typing import Callable, Sequence

import pytest

from glyphcast.engine.core import CombatCore, build_core
from glyphcast.engine.headless import LetterCard, ListDeck, ListHand, TargetPool
from glyphcast.engine.orchestrator import CombatConfig
from glyphcast.engine.types import SpellDefinition


def deck_of(*letters: str, prefix: str = "d") -> ListDeck:
    return ListDeck.from_cards(LetterCard(f"{prefix}{i}", lv) for i, lv in enumerate(letters))


@pytest.fixture
def make_core() -> Callable[..., tuple[CombatCore, ListHand, ListDeck, TargetPool]]:
    """Composed core with in-memory collaborators, already online and in combat."""

    def _make(
        spells: Sequence[SpellDefinition],
        config: CombatConfig | None = None,
        deck: ListDeck | None = None,
        hand: ListHand | None = None,
        targets: TargetPool | None = None,
    ) -> tuple[CombatCore, ListHand, ListDeck, TargetPool]:
        cfg = config or CombatConfig(starting_hand_size=0)
        h = hand or ListHand(max_size=8)
        d = deck or deck_of("A", "B", "C", "D", "E", "F", "G", "H")
        t = targets or TargetPool.of(("goblin", 30), ("orc", 50))
        core = build_core(spells, h, d, t, config=cfg)
        core.start()
        return core, h, d, t

    return _make
