from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Mapping

from glyphcast.engine.events import Event, EventBus
from glyphcast.engine.serialize import event_to_dict

logger = logging.getLogger(__name__)


@dataclass
class TelemetryService:
    """Appends core events to a JSON Lines file, one record per event."""

    path: Path
    _detach: list[Callable[[], None]] = field(default_factory=list)

    def log(self, event_type: str, payload: Mapping[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rec = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "type": event_type,
            "payload": dict(payload),
        }
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def record(self, event: Event) -> None:
        data = event_to_dict(event)
        event_type = str(data.pop("type", "UNKNOWN"))
        self.log(event_type, data)

    def attach(self, bus: EventBus, types: Iterable[str] | None = None) -> None:
        self._detach.append(bus.subscribe(self.record, types=types))
        logger.debug("Telemetry attached, writing to %s", self.path)

    def detach(self) -> None:
        for unsubscribe in self._detach:
            unsubscribe()
        self._detach.clear()

    def read(self) -> list[dict[str, object]]:
        if not self.path.exists():
            return []
        lines = self.path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
