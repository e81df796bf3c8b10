from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from . import events as ev
from .catalog import SpellCatalog
from .collaborators import CardRef
from .events import EventBus
from .types import ComboState, SpellDefinition, normalize_letters

logger = logging.getLogger(__name__)

CastHandler = Callable[[SpellDefinition, list[CardRef], str], None]
DiscardHandler = Callable[[list[CardRef]], None]


@dataclass
class ComboBuffer:
    sequence: str = ""
    source_cards: list[CardRef] = field(default_factory=list)
    # Offset of each source card's first letter inside `sequence`
    card_starts: list[int] = field(default_factory=list)
    state: ComboState = ComboState.EMPTY

    def split(self, cut: int) -> tuple[list[CardRef], "ComboBuffer"]:
        """Cards whose letters begin before `cut`, and a buffer holding the rest."""
        taken: list[CardRef] = []
        rest = ComboBuffer(sequence=self.sequence[cut:])
        for card, start in zip(self.source_cards, self.card_starts):
            if start < cut:
                taken.append(card)
            else:
                rest.source_cards.append(card)
                rest.card_starts.append(start - cut)
        return taken, rest


def _noop_cast(spell: SpellDefinition, cards: list[CardRef], used_letters: str) -> None:
    return None


def _noop_discard(cards: list[CardRef]) -> None:
    return None


class ComboEngine:
    """Accumulates played letters and resolves them against the catalog.

    auto_cast: cast the moment the buffer exactly matches a spell; when
        False a READY combo waits for `cast()`.
    auto_partial_cast: when the buffer can no longer grow into any spell,
        cast the best spell contained in it and resolve the remainder again;
        when False the whole combo fails at once.
    clear_delay: seconds of host `tick` time a failed combo stays INVALID
        before it clears.

    Every transition is total: the engine reports outcomes through the
    event bus and its handlers and never raises on letter input.
    """

    def __init__(
        self,
        catalog: SpellCatalog,
        bus: EventBus,
        *,
        auto_cast: bool = True,
        auto_partial_cast: bool = True,
        clear_delay: float = 0.0,
        on_cast: CastHandler | None = None,
        on_discard: DiscardHandler | None = None,
    ) -> None:
        self._catalog = catalog
        self._bus = bus
        self.auto_cast = auto_cast
        self.auto_partial_cast = auto_partial_cast
        self.clear_delay = clear_delay
        self.on_cast: CastHandler = on_cast or _noop_cast
        self.on_discard: DiscardHandler = on_discard or _noop_discard
        self._buffer = ComboBuffer()
        self._pending_clear: float | None = None

    @property
    def sequence(self) -> str:
        return self._buffer.sequence

    @property
    def state(self) -> ComboState:
        return self._buffer.state

    @property
    def source_cards(self) -> list[CardRef]:
        return list(self._buffer.source_cards)

    @property
    def can_cast(self) -> bool:
        return self._buffer.state == ComboState.READY and bool(self._buffer.sequence)

    @property
    def clear_pending(self) -> bool:
        return self._pending_clear is not None

    def classify(self, sequence: str) -> ComboState:
        seq = normalize_letters(sequence)
        if not seq:
            return ComboState.EMPTY
        if self._catalog.try_exact_match(seq) is not None:
            return ComboState.READY
        if self._catalog.has_prefix_potential(seq):
            return ComboState.BUILDING
        return ComboState.INVALID

    def preview(self, letters: str) -> ComboState:
        """State the buffer would reach if `letters` were played now. Mutates nothing."""
        base = "" if self._pending_clear is not None else self._buffer.sequence
        return self.classify(base + normalize_letters(letters))

    def append(self, letters: str, cards: Sequence[CardRef] = ()) -> ComboState:
        new_letters = normalize_letters(letters)
        if not new_letters:
            return self._buffer.state
        self._flush_pending_clear()

        offset = len(self._buffer.sequence)
        for card in cards:
            self._buffer.source_cards.append(card)
            self._buffer.card_starts.append(offset)
            offset += len(normalize_letters(card.letter_values or ""))
        self._buffer.sequence += new_letters
        logger.debug("Combo extended with %r -> %r", new_letters, self._buffer.sequence)

        self._resolve()
        return self._buffer.state

    def cast(self) -> SpellDefinition | None:
        """Cast a READY combo. Anything else is a no-op returning None."""
        if not self.can_cast:
            return None
        spell = self._catalog.try_exact_match(self._buffer.sequence)
        if spell is None:
            return None
        self._cast_through(spell, cut=len(self._buffer.sequence), start=0)
        self.clear()
        return spell

    def clear(self) -> None:
        """Drop the combo from any state. Held cards go to the discard handler."""
        self._pending_clear = None
        leftover = list(self._buffer.source_cards)
        self._reset()
        if leftover:
            self.on_discard(leftover)

    def tick(self, dt: float) -> None:
        if self._pending_clear is None:
            return
        self._pending_clear -= dt
        if self._pending_clear <= 0:
            self.clear()

    def _set_state(self, state: ComboState) -> None:
        self._buffer.state = state
        self._bus.publish(ev.COMBO_STATE_CHANGED, sequence=self._buffer.sequence, state=state)

    def _reset(self) -> None:
        self._buffer = ComboBuffer()
        self._set_state(ComboState.EMPTY)
        self._bus.publish(ev.COMBO_CLEARED)

    def _flush_pending_clear(self) -> None:
        if self._pending_clear is not None:
            self.clear()

    def _fail(self) -> None:
        attempted = self._buffer.sequence
        logger.debug("No spell found for %r", attempted)
        self._bus.publish(ev.SPELL_NOT_FOUND, attempted_letters=attempted)
        if self.clear_delay > 0:
            self._pending_clear = self.clear_delay
        else:
            self.clear()

    def _cast_through(self, spell: SpellDefinition, *, cut: int, start: int) -> None:
        """Cast `spell` found at `start`, consuming the buffer up to `cut`."""
        used = self._buffer.sequence[start:cut]
        cards, rest = self._buffer.split(cut)
        logger.info("Casting %s (%s) from %r", spell.id, used, self._buffer.sequence)
        self._buffer = rest
        self._bus.publish(ev.SPELL_FOUND, spell_id=spell.id, used_letters=used)
        self._bus.publish(ev.SPELL_CAST, spell_id=spell.id, cards=list(cards))
        self.on_cast(spell, cards, used)

    def _resolve(self) -> None:
        # Each partial cast consumes at least one letter, so this is bounded
        for _ in range(len(self._buffer.sequence) + 1):
            candidate = self._buffer.sequence
            if not candidate:
                self.clear()
                return

            spell = self._catalog.try_exact_match(candidate)
            if spell is not None:
                self._set_state(ComboState.READY)
                if self.auto_cast:
                    self._cast_through(spell, cut=len(candidate), start=0)
                    self.clear()
                return

            if self._catalog.has_prefix_potential(candidate):
                self._set_state(ComboState.BUILDING)
                return

            self._set_state(ComboState.INVALID)
            if not self.auto_partial_cast:
                self._fail()
                return

            match = self._catalog.best_contained_match(candidate)
            if match is None:
                self._fail()
                return
            self._cast_through(match.spell, cut=match.end, start=match.start)
            if not self._buffer.sequence:
                self.clear()
                return
            # Remainder goes round again as a fresh candidate
        self._fail()
