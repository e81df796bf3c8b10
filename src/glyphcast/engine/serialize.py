from __future__ import annotations

from dataclasses import asdict, is_dataclass
from enum import Enum

from .combo import ComboEngine
from .events import Event
from .orchestrator import PlayOrchestrator


def _card_key(card: object) -> object:
    card_id = getattr(card, "card_id", None)
    if isinstance(card_id, str):
        return card_id
    return getattr(card, "letter_values", repr(card))


def _plain(value: object) -> object:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if hasattr(value, "letter_values"):
        return _card_key(value)
    if is_dataclass(value) and not isinstance(value, type):
        return {k: _plain(v) for k, v in asdict(value).items()}
    return repr(value)


def event_to_dict(event: Event) -> dict[str, object]:
    """JSON-serializable copy of a bus event; cards become their ids."""
    return {str(k): _plain(v) for k, v in event.items()}


def _combo_to_dict(engine: ComboEngine) -> dict[str, object]:
    return {
        "sequence": engine.sequence,
        "state": engine.state.value,
        "cards": [_card_key(c) for c in engine.source_cards],
    }


def snapshot(orchestrator: PlayOrchestrator) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the current combat state."""
    ledger = orchestrator.ledger
    gate = orchestrator.gate
    return {
        "online": orchestrator.online,
        "phase": gate.phase.value,
        "turn": gate.turn,
        "in_combat": gate.in_combat,
        "life": ledger.life.current,
        "creativity": ledger.creativity.current,
        "combo": _combo_to_dict(orchestrator.engine),
        "hand_size": orchestrator.hand.size(),
        "events": [event_to_dict(e) for e in orchestrator.bus.log],
    }
