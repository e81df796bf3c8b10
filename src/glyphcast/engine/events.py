from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

logger = logging.getLogger(__name__)

Event = dict[str, object]
Subscriber = Callable[[Event], None]

COMBO_STATE_CHANGED = "COMBO_STATE_CHANGED"
COMBO_CLEARED = "COMBO_CLEARED"
SPELL_FOUND = "SPELL_FOUND"
SPELL_NOT_FOUND = "SPELL_NOT_FOUND"
SPELL_CAST = "SPELL_CAST"
CARDS_PLAYED = "CARDS_PLAYED"
EFFECT_APPLIED = "EFFECT_APPLIED"
EFFECT_FAILED = "EFFECT_FAILED"
RESOURCE_CHANGED = "RESOURCE_CHANGED"
DEFEAT = "DEFEAT"
TURN_PHASE_CHANGED = "TURN_PHASE_CHANGED"
TURN_CHANGED = "TURN_CHANGED"
CARD_DRAWN = "CARD_DRAWN"
CARD_DISCARDED = "CARD_DISCARDED"
COMBAT_STARTED = "COMBAT_STARTED"
COMBAT_ENDED = "COMBAT_ENDED"
STARTUP_REQUIREMENT_READY = "STARTUP_REQUIREMENT_READY"
STARTUP_REQUIREMENT_TIMED_OUT = "STARTUP_REQUIREMENT_TIMED_OUT"
STARTUP_COMPLETED = "STARTUP_COMPLETED"
STARTUP_FAILED = "STARTUP_FAILED"


@dataclass(eq=False)
class _Subscription:
    callback: Subscriber
    types: frozenset[str] | None


@dataclass
class EventBus:
    """Publish/subscribe registry owned by one composed core.

    Every published event is appended to `log` and delivered, in
    subscription order, to the subscribers interested in its type. A
    subscriber that raises is logged and skipped; it never interrupts the
    publisher or the remaining subscribers.
    """

    log: list[Event] = field(default_factory=list)
    _subs: list[_Subscription] = field(default_factory=list)

    def subscribe(self, callback: Subscriber, types: Iterable[str] | None = None) -> Callable[[], None]:
        sub = _Subscription(callback=callback, types=frozenset(types) if types is not None else None)
        self._subs.append(sub)

        def unsubscribe() -> None:
            if sub in self._subs:
                self._subs.remove(sub)

        return unsubscribe

    def publish(self, event_type: str, **payload: object) -> Event:
        event: Event = {"type": event_type, **payload}
        self.log.append(event)
        # Copy: subscribers may unsubscribe while being notified
        for sub in list(self._subs):
            if sub.types is not None and event_type not in sub.types:
                continue
            try:
                sub.callback(event)
            except Exception:
                logger.exception("Subscriber failed while handling %s", event_type)
        return event

    def mark(self) -> int:
        """Position in the log; pair with `since` to collect one step's events."""
        return len(self.log)

    def since(self, mark: int) -> list[Event]:
        return list(self.log[mark:])

    def clear_subscribers(self) -> None:
        self._subs.clear()
