"""Deterministic, headless spell-combo core for glyphcast.

IMPORTANT: This package must never import a rendering or input library.
"""

from .actions import CastAction, DiscardAction, DrawAction, EndTurnAction, FinishEnemyTurnAction, PlayCardsAction
from .catalog import CatalogError, SpellCatalog
from .combo import ComboEngine
from .core import CombatCore, build_core, new_headless_core, replay
from .events import EventBus
from .orchestrator import CombatConfig, PlayOrchestrator, StepResult
from .resources import ResourceLedger
from .startup import StartupConfig, StartupRequirement, StartupSequencer, StartupStatus
from .turns import TurnGate
from .types import ComboState, SpellDefinition, TurnPhase

__all__ = [
    "CastAction",
    "CatalogError",
    "CombatConfig",
    "CombatCore",
    "ComboEngine",
    "ComboState",
    "DiscardAction",
    "DrawAction",
    "EndTurnAction",
    "EventBus",
    "FinishEnemyTurnAction",
    "PlayCardsAction",
    "PlayOrchestrator",
    "ResourceLedger",
    "SpellCatalog",
    "SpellDefinition",
    "StartupConfig",
    "StartupRequirement",
    "StartupSequencer",
    "StartupStatus",
    "StepResult",
    "TurnGate",
    "TurnPhase",
    "build_core",
    "new_headless_core",
    "replay",
]
