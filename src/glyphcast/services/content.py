from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from jsonschema import Draft202012Validator

from glyphcast.engine.orchestrator import CombatConfig
from glyphcast.engine.startup import StartupConfig
from glyphcast.engine.types import (
    BuffEffect,
    CustomEffect,
    DamageEffect,
    DebuffEffect,
    Effect,
    HealEffect,
    SpellDefinition,
)


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def _load_schema(path: Path) -> object:
    return _load_json(path)


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_str(obj: Mapping[str, object], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if not isinstance(v, int) or isinstance(v, bool):
        raise ContentError(f"Expected int for {key}")
    return v


def _parse_effect(raw: Mapping[str, object]) -> Effect:
    t = raw.get("type")
    if not isinstance(t, str):
        raise ContentError("Effect missing type")
    if t == "damage":
        return DamageEffect(type="damage", amount=_require_int(raw, "amount"))
    if t == "heal":
        return HealEffect(
            type="heal",
            amount=_require_int(raw, "amount"),
            target=str(raw.get("target", "self")),  # type: ignore[arg-type]
        )
    if t == "buff":
        return BuffEffect(
            type="buff",
            resource=_require_str(raw, "resource"),  # type: ignore[arg-type]
            amount=_require_int(raw, "amount"),
        )
    if t == "debuff":
        return DebuffEffect(
            type="debuff",
            status=_require_str(raw, "status"),
            amount=_require_int(raw, "amount"),
        )
    if t == "custom":
        amount = raw.get("amount", 0)
        return CustomEffect(
            type="custom",
            name=_require_str(raw, "name"),
            amount=amount if isinstance(amount, int) else 0,
        )
    raise ContentError(f"Unknown effect type: {t}")


def parse_spells(raw: object) -> list[SpellDefinition]:
    """Spell definitions from an already schema-checked document, in file order.

    Letter-code rules (empty or duplicate codes) are left to SpellCatalog,
    which skips and reports offending entries.
    """
    if not isinstance(raw, dict):
        raise ContentError("spells.json must be an object")
    raw_spells = raw.get("spells")
    if not isinstance(raw_spells, list):
        raise ContentError("spells.json.spells must be a list")

    spells: list[SpellDefinition] = []
    for item in raw_spells:
        if not isinstance(item, dict):
            continue
        effects: list[Effect] = []
        effects_raw = item.get("effects", [])
        if isinstance(effects_raw, list):
            for eff in effects_raw:
                if isinstance(eff, dict):
                    effects.append(_parse_effect(eff))
        subtypes_raw = item.get("subtypes", [])
        subtypes = tuple(s for s in subtypes_raw if isinstance(s, str)) if isinstance(subtypes_raw, list) else ()
        spells.append(
            SpellDefinition(
                id=_require_str(item, "id"),
                name=_require_str(item, "name"),
                letter_code=_require_str(item, "letter_code"),
                effects=tuple(effects),
                subtypes=subtypes,
            )
        )
    return spells


def _section(raw: Mapping[str, object], key: str) -> dict[str, object]:
    v = raw.get(key, {})
    if not isinstance(v, dict):
        raise ContentError(f"{key} must be an object")
    return v


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def _load_validated(self, name: str) -> object:
        path = self._data_dir / f"{name}.json"
        raw = _load_json(path)
        schema = _load_schema(self._schema_dir / f"{name}.schema.json")
        validate_json(raw, schema, context=str(path))
        return raw

    def load_spells(self) -> list[SpellDefinition]:
        return parse_spells(self._load_validated("spells"))

    def _load_combat_doc(self) -> dict[str, object]:
        raw = self._load_validated("combat")
        if not isinstance(raw, dict):
            raise ContentError("combat.json must be an object")
        return raw

    def load_combat_config(self) -> CombatConfig:
        # Keys are checked by the schema; missing ones keep dataclass defaults
        section = _section(self._load_combat_doc(), "combat")
        return CombatConfig(**section)  # type: ignore[arg-type]

    def load_startup_config(self) -> StartupConfig:
        section = _section(self._load_combat_doc(), "startup")
        return StartupConfig(**section)  # type: ignore[arg-type]

    def validate_all(self) -> None:
        # Load is validation (schema + parse)
        _ = self.load_spells()
        _ = self.load_combat_config()
        _ = self.load_startup_config()
