from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Sequence

from . import events as ev
from .actions import (
    Action,
    CastAction,
    DiscardAction,
    DrawAction,
    EndTurnAction,
    FinishEnemyTurnAction,
    PlayCardsAction,
)
from .collaborators import CardRef, Deck, Hand, Targets, extract_letters
from .combo import ComboEngine
from .events import Event, EventBus
from .resources import ResourceLedger
from .turns import TurnGate
from .types import (
    BuffEffect,
    ComboState,
    CustomEffect,
    DamageEffect,
    DebuffEffect,
    Effect,
    HealEffect,
    SpellDefinition,
    TurnPhase,
    normalize_letters,
)

logger = logging.getLogger(__name__)

CustomEffectHandler = Callable[[CustomEffect, list[object]], None]


@dataclass(frozen=True)
class CombatConfig:
    start_life: int = 100
    max_life: int | None = None
    start_creativity: int = 3
    max_creativity: int = 10
    starting_hand_size: int = 5
    discard_cost: int = 1
    auto_cast: bool = True
    auto_partial_cast: bool = True
    clear_delay: float = 0.0


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: str | None = None


@dataclass(frozen=True)
class EffectOutcome:
    effect: Effect
    ok: bool
    error: str | None = None


def _reject(msg: str) -> StepResult:
    logger.debug("Rejected: %s", msg)
    return StepResult(ok=False, events=[], error=msg)


class PlayOrchestrator:
    """Validated entry point for every player command.

    Each request is checked against the turn gate and the resource ledger
    before anything is mutated; a rejected request returns
    StepResult(ok=False) and leaves hand, deck, combo and resources as they
    were. Accepted requests return the events they produced.
    """

    def __init__(
        self,
        bus: EventBus,
        engine: ComboEngine,
        ledger: ResourceLedger,
        gate: TurnGate,
        hand: Hand,
        deck: Deck,
        targets: Targets,
        config: CombatConfig | None = None,
        *,
        online: bool = True,
    ) -> None:
        self.bus = bus
        self.engine = engine
        self.ledger = ledger
        self.gate = gate
        self.hand = hand
        self.deck = deck
        self.targets = targets
        self.config = config or CombatConfig()
        self.online = online
        self.selected_targets: list[object] = []
        self.action_log: list[Action] = []
        self._effect_handlers: dict[str, CustomEffectHandler] = {}
        self._defeat_pending = False

        engine.on_cast = self._cast_spell
        engine.on_discard = self._consume_cards
        bus.subscribe(self._on_defeat, types=[ev.DEFEAT])

    # -- wiring -------------------------------------------------------------

    def set_online(self, online: bool) -> None:
        self.online = online
        logger.info("Orchestrator %s", "online" if online else "offline")

    def register_effect_handler(self, name: str, handler: CustomEffectHandler) -> None:
        self._effect_handlers[name] = handler

    def select_target(self, target: object) -> bool:
        alive = self.targets.alive_targets()
        if not any(t is target for t in alive):
            return False
        # Single target for now
        self.selected_targets = [target]
        return True

    # -- validation -----------------------------------------------------------

    def _gate_error(self) -> str | None:
        if not self.online:
            return "Core is not online."
        if not self.gate.in_combat:
            return "Not in combat."
        if self.gate.is_busy:
            return "Another action is resolving."
        if not self.gate.can_act:
            return "Not your turn."
        return None

    def can_play(self, cards: Sequence[CardRef]) -> bool:
        return bool(cards) and self._gate_error() is None and bool(extract_letters(cards))

    def can_discard(self, cost: int | None = None) -> bool:
        amount = self.config.discard_cost if cost is None else cost
        return (
            self._gate_error() is None
            and amount >= 0
            and self.ledger.can_spend("creativity", amount)
            and not self.deck.is_empty()
        )

    def preview(self, cards: Sequence[CardRef]) -> ComboState:
        return self.engine.preview(extract_letters(cards))

    # -- player commands -----------------------------------------------------

    def request_play(self, cards: Sequence[CardRef]) -> StepResult:
        played = [c for c in cards if c is not None]
        if not played:
            return _reject("No cards to play.")
        err = self._gate_error()
        if err:
            return _reject(err)
        letters = normalize_letters(extract_letters(played))
        if not letters:
            return _reject("Played cards carry no letters.")

        mark = self.bus.mark()
        with self._resolving():
            for card in played:
                self.hand.remove(card)
            self.bus.publish(ev.CARDS_PLAYED, cards=list(played), letters=letters)
            self.engine.append(letters, played)
        return StepResult(ok=True, events=self.bus.since(mark))

    def request_cast(self) -> StepResult:
        err = self._gate_error()
        if err:
            return _reject(err)
        if not self.engine.can_cast:
            return _reject("No combo ready to cast.")
        mark = self.bus.mark()
        with self._resolving():
            self.engine.cast()
        return StepResult(ok=True, events=self.bus.since(mark))

    def request_draw(self) -> StepResult:
        err = self._gate_error()
        if err:
            return _reject(err)
        if self.hand.is_full():
            return _reject("Hand is full.")
        if self.deck.is_empty():
            return _reject("Deck is empty.")
        mark = self.bus.mark()
        with self._resolving():
            card = self._draw_into_hand()
        if card is None:
            return _reject("Deck returned no card.")
        return StepResult(ok=True, events=self.bus.since(mark))

    def request_discard(self, card: CardRef | None = None, cost: int | None = None) -> StepResult:
        amount = self.config.discard_cost if cost is None else cost
        err = self._gate_error()
        if err:
            return _reject(err)

        selection = list(self.hand.selected_cards())
        if card is None:
            if len(selection) != 1:
                return _reject("Select exactly one card to discard.")
            card = selection[0]
        elif selection and (len(selection) != 1 or selection[0] != card):
            return _reject("Discard must target the single selected card.")
        if not self.hand.contains(card):
            return _reject("Card is not in hand.")

        if amount < 0:
            return _reject("Discard cost cannot be negative.")
        if not self.ledger.can_spend("creativity", amount):
            return _reject("Not enough creativity.")
        if self.deck.is_empty():
            return _reject("Deck cannot supply a replacement.")

        mark = self.bus.mark()
        with self._resolving():
            self.ledger.try_spend("creativity", amount)
            self.deck.discard(card)
            self.hand.remove(card)
            self.bus.publish(ev.CARD_DISCARDED, card=card, reason="discard")
            self._draw_into_hand()
        return StepResult(ok=True, events=self.bus.since(mark))

    def end_turn(self) -> StepResult:
        if not self.online:
            return _reject("Core is not online.")
        if not self.gate.can_end_turn:
            return _reject("Cannot end turn now.")
        mark = self.bus.mark()
        self.gate.end_turn()
        self.ledger.refill("creativity")
        self._refill_hand()
        self.gate.begin_enemy_turn()
        return StepResult(ok=True, events=self.bus.since(mark))

    def finish_enemy_turn(self) -> StepResult:
        if self.gate.phase != TurnPhase.ENEMY_TURN:
            return _reject("No enemy turn in progress.")
        mark = self.bus.mark()
        self.gate.begin_player_turn()
        return StepResult(ok=True, events=self.bus.since(mark))

    def receive_damage(self, amount: int) -> StepResult:
        """External (enemy) damage to the player; the only path to lower life from outside."""
        if amount < 0:
            return _reject("Damage cannot be negative.")
        if not self.gate.in_combat:
            return _reject("Not in combat.")
        mark = self.bus.mark()
        self.ledger.modify("life", -amount)
        return StepResult(ok=True, events=self.bus.since(mark))

    def step(self, action: Action) -> StepResult:
        # Log first so a replay has every attempted action
        self.action_log.append(action)
        if isinstance(action, PlayCardsAction):
            return self.request_play(action.cards)
        if isinstance(action, DrawAction):
            return self.request_draw()
        if isinstance(action, DiscardAction):
            return self.request_discard(action.card, action.cost)
        if isinstance(action, CastAction):
            return self.request_cast()
        if isinstance(action, EndTurnAction):
            return self.end_turn()
        if isinstance(action, FinishEnemyTurnAction):
            return self.finish_enemy_turn()
        return _reject("Unknown action.")

    def tick(self, dt: float) -> None:
        self.engine.tick(dt)

    # -- combat lifecycle ----------------------------------------------------

    def start_combat(self) -> StepResult:
        if not self.online:
            return _reject("Core is not online.")
        if self.gate.in_combat:
            return _reject("Combat already running.")
        mark = self.bus.mark()
        self.engine.clear()
        self.selected_targets = []
        self.ledger.reset()
        self.gate.start_combat()
        for _ in range(self.config.starting_hand_size):
            if self.hand.is_full() or self.deck.is_empty():
                break
            if self._draw_into_hand() is None:
                break
        alive = self.targets.alive_targets()
        if alive:
            self.selected_targets = [alive[0]]
        self.bus.publish(ev.COMBAT_STARTED, turn=self.gate.turn)
        logger.info("Combat started")
        return StepResult(ok=True, events=self.bus.since(mark))

    def end_combat(self, reason: str = "ended") -> StepResult:
        if not self.gate.in_combat:
            return _reject("Not in combat.")
        mark = self.bus.mark()
        if self.engine.state != ComboState.EMPTY or self.engine.source_cards:
            self.engine.clear()
        self.selected_targets = []
        self.gate.end_combat()
        self.bus.publish(ev.COMBAT_ENDED, reason=reason)
        logger.info("Combat ended (%s)", reason)
        return StepResult(ok=True, events=self.bus.since(mark))

    @contextmanager
    def _resolving(self) -> Iterator[None]:
        """Gate closed for one command; a defeat raised inside it ends combat on exit."""
        with self.gate.busy():
            yield
        if self._defeat_pending:
            self._defeat_pending = False
            if self.gate.in_combat:
                self.end_combat(reason="defeat")

    def _on_defeat(self, event: Event) -> None:
        if self.gate.is_busy:
            # Let the resolving cast finish first
            self._defeat_pending = True
            return
        if self.gate.in_combat:
            self.end_combat(reason="defeat")

    # -- effects ---------------------------------------------------------------

    def execute_effects(
        self, effects: Iterable[Effect], targets: Sequence[object] | None = None
    ) -> list[EffectOutcome]:
        """Apply effects in order. A failing effect or target never stops the rest."""
        chosen = list(targets) if targets else list(self.selected_targets)
        outcomes: list[EffectOutcome] = []
        for effect in effects:
            try:
                errors = self._apply(effect, chosen)
            except Exception as e:
                logger.exception("Effect %s failed", effect.type)
                errors = [str(e) or type(e).__name__]
            if errors:
                error = "; ".join(errors)
                self.bus.publish(ev.EFFECT_FAILED, effect=effect, error=error)
                outcomes.append(EffectOutcome(effect=effect, ok=False, error=error))
            else:
                self.bus.publish(ev.EFFECT_APPLIED, effect=effect)
                outcomes.append(EffectOutcome(effect=effect, ok=True))
        return outcomes

    def _resolve_targets(self, chosen: list[object]) -> list[object]:
        alive = list(self.targets.alive_targets())
        living = [t for t in chosen if any(t is a for a in alive)]
        if living:
            return living
        # Auto-target the first living enemy
        return alive[:1]

    def _each_target(self, chosen: list[object], apply: Callable[[object], None]) -> list[str]:
        resolved = self._resolve_targets(chosen)
        if not resolved:
            return ["No living target."]
        errors: list[str] = []
        for target in resolved:
            try:
                apply(target)
            except Exception as e:
                logger.exception("Effect failed on target %r", target)
                errors.append(f"{target!r}: {e}")
        return errors

    def _apply(self, effect: Effect, chosen: list[object]) -> list[str]:
        if isinstance(effect, DamageEffect):
            return self._each_target(chosen, lambda t: self.targets.deal_damage(t, effect.amount))
        if isinstance(effect, HealEffect):
            if effect.target == "self":
                self.ledger.modify("life", effect.amount)
                return []
            return self._each_target(chosen, lambda t: self.targets.heal(t, effect.amount))
        if isinstance(effect, BuffEffect):
            self.ledger.modify(effect.resource, effect.amount)
            return []
        if isinstance(effect, DebuffEffect):
            return self._each_target(
                chosen, lambda t: self.targets.apply_status(t, effect.status, effect.amount)
            )
        if isinstance(effect, CustomEffect):
            handler = self._effect_handlers.get(effect.name)
            if handler is None:
                logger.warning("No handler registered for custom effect %r", effect.name)
                return [f"No handler for custom effect {effect.name!r}."]
            handler(effect, self._resolve_targets(chosen))
            return []
        return [f"Unknown effect: {effect!r}"]

    # -- engine callbacks and helpers -----------------------------------------

    def _cast_spell(self, spell: SpellDefinition, cards: list[CardRef], used_letters: str) -> None:
        self.execute_effects(spell.effects)
        for card in cards:
            self.deck.return_to_bottom(card)

    def _consume_cards(self, cards: list[CardRef]) -> None:
        for card in cards:
            self.deck.discard(card)
            self.bus.publish(ev.CARD_DISCARDED, card=card, reason="fizzled")

    def _draw_into_hand(self) -> CardRef | None:
        card = self.deck.draw_one()
        if card is None:
            return None
        self.hand.add(card)
        self.bus.publish(ev.CARD_DRAWN, card=card)
        return card

    def _refill_hand(self) -> None:
        while self.hand.size() < self.config.starting_hand_size:
            if self.hand.is_full() or self.deck.is_empty():
                return
            if self._draw_into_hand() is None:
                return
