from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from . import events as ev
from .events import EventBus
from .types import TurnPhase

logger = logging.getLogger(__name__)


class TurnGate:
    """Whose turn it is, and whether player commands are accepted right now."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self.phase = TurnPhase.COMBAT_ENDED
        self.turn = 0
        self.in_combat = False
        self._busy = 0

    @property
    def is_busy(self) -> bool:
        return self._busy > 0

    @property
    def is_player_turn(self) -> bool:
        return self.phase == TurnPhase.PLAYER_TURN

    @property
    def can_act(self) -> bool:
        return self.in_combat and self.phase == TurnPhase.PLAYER_TURN and not self.is_busy

    @property
    def can_end_turn(self) -> bool:
        return self.can_act

    @contextmanager
    def busy(self) -> Iterator[None]:
        """Close the gate while a command resolves, so re-entrant commands are refused."""
        self._busy += 1
        try:
            yield
        finally:
            self._busy -= 1

    def _set_phase(self, phase: TurnPhase) -> None:
        if phase == self.phase:
            return
        self.phase = phase
        logger.debug("Turn phase -> %s (turn %d)", phase.value, self.turn)
        self._bus.publish(ev.TURN_PHASE_CHANGED, phase=phase)

    def start_combat(self) -> None:
        self.in_combat = True
        self.turn = 1
        self._busy = 0
        self._bus.publish(ev.TURN_CHANGED, turn=self.turn)
        self._set_phase(TurnPhase.PLAYER_TURN)

    def end_turn(self) -> bool:
        if not self.can_end_turn:
            return False
        self._set_phase(TurnPhase.TRANSITIONING)
        return True

    def begin_enemy_turn(self) -> bool:
        if not self.in_combat or self.phase != TurnPhase.TRANSITIONING:
            return False
        self._set_phase(TurnPhase.ENEMY_TURN)
        return True

    def begin_player_turn(self) -> bool:
        if not self.in_combat or self.phase != TurnPhase.ENEMY_TURN:
            return False
        self.turn += 1
        self._bus.publish(ev.TURN_CHANGED, turn=self.turn)
        self._set_phase(TurnPhase.PLAYER_TURN)
        return True

    def end_combat(self) -> None:
        self.in_combat = False
        self._set_phase(TurnPhase.COMBAT_ENDED)
