from __future__ import annotations

import argparse
import json
import logging
from typing import Sequence

from glyphcast.engine.catalog import SpellCatalog
from glyphcast.engine.core import new_headless_core
from glyphcast.engine.serialize import event_to_dict
from glyphcast.paths import get_paths
from glyphcast.services.content import ContentService
from glyphcast.services.telemetry import TelemetryService


def main(argv: Sequence[str] | None = None) -> int:
    """Headless host: play letter cards against the bundled spells and print the events."""
    parser = argparse.ArgumentParser(prog="glyphcast")
    parser.add_argument("--validate", action="store_true", help="check content files and exit")
    parser.add_argument("--deck", default="FI,RE,ZA,P,IC,E,HE,AL", help="comma-separated card letters")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--play", nargs="*", default=[], help="letters of hand cards to play, in order")
    parser.add_argument("--telemetry", action="store_true", help="append events to userdata/telemetry.jsonl")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    paths = get_paths()
    content = ContentService(data_dir=paths.data_dir, schema_dir=paths.schema_dir)
    if args.validate:
        content.validate_all()
        catalog = SpellCatalog(content.load_spells())
        for issue in catalog.issues:
            print(f"spell #{issue.index} ({issue.spell_id or '?'}): {issue.reason}")
        print(f"{len(catalog)} spells OK")
        return 1 if catalog.issues else 0

    deck = [letters for letters in args.deck.split(",") if letters]
    core = new_headless_core(
        content.load_spells(),
        deck,
        seed=args.seed,
        config=content.load_combat_config(),
    )
    if args.telemetry:
        TelemetryService(paths.userdata_dir / "telemetry.jsonl").attach(core.bus)

    hand = core.orchestrator.hand
    for letters in args.play:
        wanted = letters.upper()
        card = next((c for c in hand.cards if c.letter_values.upper() == wanted), None)  # type: ignore[attr-defined]
        if card is None:
            print(f"no card {letters!r} in hand")
            continue
        mark = core.bus.mark()
        result = core.orchestrator.request_play([card])
        if not result.ok:
            print(f"rejected {letters!r}: {result.error}")
            continue
        # No frame loop here: let a delayed clear run out at once
        core.tick(core.engine.clear_delay)
        for event in core.bus.since(mark):
            print(json.dumps(event_to_dict(event), ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
