from __future__ import annotations

import logging
from dataclasses import dataclass

from . import events as ev
from .events import EventBus
from .types import RESOURCE_KINDS, ResourceKind

logger = logging.getLogger(__name__)


@dataclass
class Resource:
    start: int
    max: int
    current: int

    @staticmethod
    def create(start: int, max_value: int | None = None) -> "Resource":
        # Without an explicit positive max the start value is the ceiling
        cap = max_value if max_value is not None and max_value > 0 else start
        cap = max(0, cap)
        return Resource(start=start, max=cap, current=min(max(0, start), cap))

    def modify_by(self, delta: int) -> bool:
        before = self.current
        self.current = min(self.max, max(0, self.current + delta))
        return self.current != before

    def refill(self) -> bool:
        before = self.current
        self.current = self.max
        return self.current != before

    def reset(self) -> None:
        self.current = min(max(0, self.start), self.max)

    @property
    def percentage(self) -> float:
        return self.current / self.max if self.max > 0 else 0.0


class ResourceLedger:
    """Player life and creativity for one combat encounter.

    All mutation goes through `modify`, which clamps to [0, max] and only
    publishes RESOURCE_CHANGED when the value actually moved. Reaching zero
    life publishes DEFEAT once; it is re-armed when life rises again or the
    ledger is reset.
    """

    def __init__(
        self,
        bus: EventBus,
        *,
        start_life: int = 100,
        max_life: int | None = None,
        start_creativity: int = 3,
        max_creativity: int | None = 10,
    ) -> None:
        self._bus = bus
        self._resources: dict[ResourceKind, Resource] = {
            "life": Resource.create(start_life, max_life),
            "creativity": Resource.create(start_creativity, max_creativity),
        }
        self._defeat_signaled = False

    def get(self, kind: ResourceKind) -> Resource:
        if kind not in self._resources:
            raise KeyError(f"Unknown resource kind: {kind}")
        return self._resources[kind]

    @property
    def life(self) -> Resource:
        return self._resources["life"]

    @property
    def creativity(self) -> Resource:
        return self._resources["creativity"]

    @property
    def is_defeated(self) -> bool:
        return self.life.current <= 0

    def current(self, kind: ResourceKind) -> int:
        return self.get(kind).current

    def modify(self, kind: ResourceKind, delta: int) -> bool:
        res = self.get(kind)
        changed = res.modify_by(delta)
        if changed:
            self._announce(kind)
        return changed

    def can_spend(self, kind: ResourceKind, amount: int) -> bool:
        return self.current(kind) >= amount

    def try_spend(self, kind: ResourceKind, amount: int) -> bool:
        if amount < 0 or not self.can_spend(kind, amount):
            return False
        if amount > 0:
            self.modify(kind, -amount)
        return True

    def refill(self, kind: ResourceKind) -> bool:
        changed = self.get(kind).refill()
        if changed:
            self._announce(kind)
        return changed

    def reset(self) -> None:
        """Restore start values for a new encounter and re-arm DEFEAT."""
        for kind in RESOURCE_KINDS:
            self._resources[kind].reset()
        self._defeat_signaled = False
        for kind in RESOURCE_KINDS:
            self._bus.publish(ev.RESOURCE_CHANGED, kind=kind, value=self._resources[kind].current)

    def _announce(self, kind: ResourceKind) -> None:
        res = self._resources[kind]
        self._bus.publish(ev.RESOURCE_CHANGED, kind=kind, value=res.current)
        if kind != "life":
            return
        if res.current <= 0 and not self._defeat_signaled:
            self._defeat_signaled = True
            logger.info("Player life exhausted")
            self._bus.publish(ev.DEFEAT)
        elif res.current > 0:
            self._defeat_signaled = False
