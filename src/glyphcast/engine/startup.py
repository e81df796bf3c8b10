from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from . import events as ev
from .events import EventBus

logger = logging.getLogger(__name__)


class StartupStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RequirementStatus(str, Enum):
    WAITING = "waiting"
    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class StartupConfig:
    poll_interval: float = 0.05
    default_timeout: float = 2.0
    auto_start_combat: bool = True


@dataclass(frozen=True)
class StartupRequirement:
    """A collaborator the core waits for before accepting commands."""

    name: str
    is_ready: Callable[[], bool]
    priority: int = 0
    critical: bool = False
    timeout: float | None = None
    on_start: Callable[[], None] | None = None


@dataclass(frozen=True)
class StartupError:
    requirement: str
    critical: bool
    waited: float
    message: str


class StartupFailed(RuntimeError):
    def __init__(self, errors: Sequence[StartupError]) -> None:
        self.errors = list(errors)
        names = ", ".join(e.requirement for e in self.errors if e.critical) or "unknown"
        super().__init__(f"Startup failed: critical requirement(s) not ready: {names}")


@dataclass
class _Progress:
    elapsed: float = 0.0
    since_poll: float = 0.0


@dataclass
class StartupSequencer:
    """Brings collaborators online one at a time, in priority order.

    The host drives it with `tick(dt)` from its frame loop; nothing here
    blocks. Each requirement is polled every `poll_interval` seconds until
    it reports ready or its timeout elapses, and the next one is not started
    before that. A timed-out non-critical requirement is logged and skipped;
    a timed-out critical one fails the whole sequence.
    """

    requirements: Sequence[StartupRequirement]
    bus: EventBus
    poll_interval: float = 0.05
    default_timeout: float = 2.0
    on_ready: Callable[[], None] | None = None
    on_failed: Callable[[list[StartupError]], None] | None = None
    status: StartupStatus = StartupStatus.PENDING
    results: dict[str, RequirementStatus] = field(default_factory=dict)
    errors: list[StartupError] = field(default_factory=list)
    _ordered: list[StartupRequirement] = field(default_factory=list)
    _index: int = 0
    _progress: _Progress = field(default_factory=_Progress)

    @property
    def is_running(self) -> bool:
        return self.status == StartupStatus.RUNNING

    @property
    def current(self) -> StartupRequirement | None:
        if self.status != StartupStatus.RUNNING or self._index >= len(self._ordered):
            return None
        return self._ordered[self._index]

    def start(self) -> StartupStatus:
        # sorted() is stable: equal priorities keep registration order
        self._ordered = sorted(self.requirements, key=lambda r: r.priority)
        self.results = {r.name: RequirementStatus.WAITING for r in self._ordered}
        self.errors = []
        self._index = 0
        self.status = StartupStatus.RUNNING
        logger.info("Starting startup sequence (%d requirements)", len(self._ordered))
        self._begin_current()
        return self.status

    def retry(self) -> StartupStatus:
        return self.start()

    def cancel(self) -> None:
        if self.status in (StartupStatus.RUNNING, StartupStatus.PENDING):
            logger.info("Startup sequence cancelled")
            self.status = StartupStatus.CANCELLED

    def tick(self, dt: float) -> StartupStatus:
        req = self.current
        if req is None:
            return self.status
        self._progress.elapsed += dt
        self._progress.since_poll += dt
        if self._progress.since_poll >= self.poll_interval:
            self._progress.since_poll = 0.0
            if self._poll(req):
                return self.status
        if self._progress.elapsed >= self._timeout_of(req):
            self._give_up(req, f"{req.name} not ready after {self._progress.elapsed:.2f}s")
        return self.status

    def run(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        *,
        raise_on_failure: bool = False,
    ) -> StartupStatus:
        """Drive the sequence to completion for hosts without a frame loop."""
        if self.status != StartupStatus.RUNNING:
            self.start()
        last = clock()
        while self.status == StartupStatus.RUNNING:
            sleep(self.poll_interval)
            now = clock()
            self.tick(now - last)
            last = now
        if raise_on_failure and self.status == StartupStatus.FAILED:
            raise StartupFailed(self.errors)
        return self.status

    def _timeout_of(self, req: StartupRequirement) -> float:
        return req.timeout if req.timeout is not None else self.default_timeout

    def _begin_current(self) -> None:
        # Requirements that are already ready are accepted without waiting a tick
        while True:
            req = self.current
            if req is None:
                if self.status == StartupStatus.RUNNING:
                    self._finish()
                return
            self._progress = _Progress()
            logger.debug("Waiting for %s (priority %d)", req.name, req.priority)
            if req.on_start is not None:
                try:
                    req.on_start()
                except Exception as e:
                    logger.exception("Starting %s failed", req.name)
                    self._give_up(req, f"{req.name} failed to start: {e}")
                    return
            if not self._check(req):
                return
            self._mark_ready(req)

    def _check(self, req: StartupRequirement) -> bool:
        try:
            return bool(req.is_ready())
        except Exception:
            logger.exception("Readiness check for %s raised", req.name)
            return False

    def _poll(self, req: StartupRequirement) -> bool:
        if not self._check(req):
            return False
        self._mark_ready(req)
        self._begin_current()
        return True

    def _mark_ready(self, req: StartupRequirement) -> None:
        self.results[req.name] = RequirementStatus.READY
        logger.info("%s ready after %.2fs", req.name, self._progress.elapsed)
        self.bus.publish(ev.STARTUP_REQUIREMENT_READY, name=req.name, waited=self._progress.elapsed)
        self._index += 1

    def _give_up(self, req: StartupRequirement, message: str) -> None:
        error = StartupError(
            requirement=req.name,
            critical=req.critical,
            waited=self._progress.elapsed,
            message=message,
        )
        self.errors.append(error)
        self.results[req.name] = RequirementStatus.TIMED_OUT
        self.bus.publish(
            ev.STARTUP_REQUIREMENT_TIMED_OUT, name=req.name, critical=req.critical, message=message
        )
        if req.critical:
            logger.error("Critical startup requirement failed: %s", message)
            self.status = StartupStatus.FAILED
            self.bus.publish(ev.STARTUP_FAILED, errors=[e.requirement for e in self.errors])
            if self.on_failed is not None:
                self.on_failed(list(self.errors))
            return
        logger.warning("Continuing without %s: %s", req.name, message)
        self._index += 1
        self._begin_current()

    def _finish(self) -> None:
        self.status = StartupStatus.READY
        logger.info("Startup complete (%d skipped)", len(self.errors))
        self.bus.publish(ev.STARTUP_COMPLETED, skipped=[e.requirement for e in self.errors])
        if self.on_ready is not None:
            self.on_ready()
