from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from .actions import Action
from .catalog import SpellCatalog
from .collaborators import Deck, Hand, Targets
from .combo import ComboEngine
from .events import EventBus
from .headless import LetterCard, ListDeck, ListHand, TargetPool
from .orchestrator import CombatConfig, PlayOrchestrator
from .resources import ResourceLedger
from .startup import StartupConfig, StartupError, StartupRequirement, StartupSequencer, StartupStatus
from .turns import TurnGate
from .types import SpellDefinition

logger = logging.getLogger(__name__)


@dataclass
class CombatCore:
    bus: EventBus
    catalog: SpellCatalog
    ledger: ResourceLedger
    gate: TurnGate
    engine: ComboEngine
    orchestrator: PlayOrchestrator
    sequencer: StartupSequencer
    startup_config: StartupConfig

    @property
    def is_online(self) -> bool:
        return self.orchestrator.online

    def start(self) -> StartupStatus:
        return self.sequencer.start()

    def tick(self, dt: float) -> None:
        """One host frame: advance startup waits and delayed combo clears."""
        if self.sequencer.is_running:
            self.sequencer.tick(dt)
        self.orchestrator.tick(dt)


def _ready_flag(collaborator: object) -> bool:
    # Collaborators without a `ready` attribute are taken as ready
    return bool(getattr(collaborator, "ready", True))


def default_requirements(hand: Hand, deck: Deck, targets: Targets) -> list[StartupRequirement]:
    return [
        StartupRequirement(name="hand", is_ready=lambda: _ready_flag(hand), priority=0, critical=True),
        StartupRequirement(name="deck", is_ready=lambda: _ready_flag(deck), priority=1, critical=True),
        StartupRequirement(name="targets", is_ready=lambda: _ready_flag(targets), priority=2),
    ]


def build_core(
    spells: Iterable[SpellDefinition],
    hand: Hand,
    deck: Deck,
    targets: Targets,
    config: CombatConfig | None = None,
    startup: StartupConfig | None = None,
    requirements: Sequence[StartupRequirement] | None = None,
    *,
    strict_catalog: bool = False,
) -> CombatCore:
    """Compose one combat core with explicit references between its parts.

    The orchestrator starts offline; it goes online when the startup
    sequence completes, and starts combat then if `auto_start_combat` is set.
    """
    cfg = config or CombatConfig()
    scfg = startup or StartupConfig()
    bus = EventBus()
    catalog = SpellCatalog(spells, strict=strict_catalog)
    ledger = ResourceLedger(
        bus,
        start_life=cfg.start_life,
        max_life=cfg.max_life,
        start_creativity=cfg.start_creativity,
        max_creativity=cfg.max_creativity,
    )
    gate = TurnGate(bus)
    engine = ComboEngine(
        catalog,
        bus,
        auto_cast=cfg.auto_cast,
        auto_partial_cast=cfg.auto_partial_cast,
        clear_delay=cfg.clear_delay,
    )
    orchestrator = PlayOrchestrator(bus, engine, ledger, gate, hand, deck, targets, cfg, online=False)

    def on_ready() -> None:
        orchestrator.set_online(True)
        if scfg.auto_start_combat:
            orchestrator.start_combat()

    def on_failed(errors: list[StartupError]) -> None:
        orchestrator.set_online(False)
        for err in errors:
            logger.error("Startup error: %s", err.message)

    sequencer = StartupSequencer(
        requirements=list(requirements) if requirements is not None else default_requirements(hand, deck, targets),
        bus=bus,
        poll_interval=scfg.poll_interval,
        default_timeout=scfg.default_timeout,
        on_ready=on_ready,
        on_failed=on_failed,
    )
    return CombatCore(
        bus=bus,
        catalog=catalog,
        ledger=ledger,
        gate=gate,
        engine=engine,
        orchestrator=orchestrator,
        sequencer=sequencer,
        startup_config=scfg,
    )


def new_headless_core(
    spells: Iterable[SpellDefinition],
    deck_letters: Sequence[str],
    seed: int,
    config: CombatConfig | None = None,
    enemies: Sequence[tuple[str, int]] = (("enemy", 50),),
) -> CombatCore:
    """A started core over in-memory collaborators; the deck is shuffled with `seed`."""
    deck = ListDeck.from_cards(
        (LetterCard(f"card{i}", letters) for i, letters in enumerate(deck_letters)),
        seed=seed,
        shuffle=True,
    )
    core = build_core(spells, ListHand(), deck, TargetPool.of(*enemies), config=config)
    core.start()
    return core


def replay(
    spells: Iterable[SpellDefinition],
    deck_letters: Sequence[str],
    seed: int,
    actions: Iterable[Action],
    config: CombatConfig | None = None,
) -> CombatCore:
    core = new_headless_core(spells, deck_letters, seed, config=config)
    for a in actions:
        core.orchestrator.step(a)
        if not core.gate.in_combat:
            break
    return core
