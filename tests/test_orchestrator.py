from __future__ import annotations

from glyphcast.engine import events as ev
from glyphcast.engine.actions import DiscardAction, DrawAction, EndTurnAction, PlayCardsAction
from glyphcast.engine.core import build_core
from glyphcast.engine.events import Event
from glyphcast.engine.headless import LetterCard, ListDeck, ListHand, TargetPool
from glyphcast.engine.orchestrator import CombatConfig
from glyphcast.engine.types import (
    BuffEffect,
    ComboState,
    CustomEffect,
    DamageEffect,
    DebuffEffect,
    HealEffect,
    SpellDefinition,
    TurnPhase,
)

from conftest import deck_of


def _spell(code: str, *effects: object) -> SpellDefinition:
    return SpellDefinition(id=code.lower(), name=code.title(), letter_code=code, effects=tuple(effects))  # type: ignore[arg-type]


FIRE = _spell("FIRE", DamageEffect(type="damage", amount=10))
ICE = _spell("ICE", DamageEffect(type="damage", amount=6))


def _types(events: list[Event]) -> list[object]:
    return [e["type"] for e in events]


def _in_hand(hand: ListHand, *letters: str) -> list[LetterCard]:
    cards = [LetterCard(f"h{i}", lv) for i, lv in enumerate(letters)]
    for c in cards:
        hand.add(c)
    return cards


def test_scenario_a_builds_then_casts(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    fi, re = _in_hand(hand, "FI", "RE")
    orch = core.orchestrator

    first = orch.request_play([fi])
    assert first.ok
    assert core.engine.state == ComboState.BUILDING
    assert core.engine.sequence == "FI"
    assert fi not in hand.cards

    second = orch.request_play([re])
    assert second.ok
    found = [e for e in second.events if e["type"] == ev.SPELL_FOUND]
    assert found and found[0]["spell_id"] == "fire"
    assert core.engine.state == ComboState.EMPTY
    assert core.engine.sequence == ""
    assert targets.units[0].health == 20
    # Cast cards go back under the deck
    assert list(deck.cards)[-2:] == [fi, re]


def test_scenario_b_exact_longer_match_wins(make_core) -> None:
    spells = [
        _spell("AB", HealEffect(type="heal", amount=5)),
        _spell("ABC", DamageEffect(type="damage", amount=3)),
    ]
    core, hand, deck, targets = make_core(spells, config=CombatConfig(starting_hand_size=0, start_life=50, max_life=100))
    (abc,) = _in_hand(hand, "ABC")
    result = core.orchestrator.request_play([abc])
    assert result.ok
    assert targets.units[0].health == 27
    assert core.ledger.life.current == 50


def test_scenario_c_unknown_letters_fizzle(make_core) -> None:
    core, hand, deck, targets = make_core([_spell("XY", BuffEffect(type="buff", resource="creativity", amount=1))])
    (zz,) = _in_hand(hand, "ZZ")
    result = core.orchestrator.request_play([zz])
    assert result.ok
    not_found = [e for e in result.events if e["type"] == ev.SPELL_NOT_FOUND]
    assert not_found[0]["attempted_letters"] == "ZZ"
    assert core.engine.state == ComboState.EMPTY
    assert deck.discard_pile == [zz]
    discarded = [e for e in result.events if e["type"] == ev.CARD_DISCARDED]
    assert discarded == [{"type": ev.CARD_DISCARDED, "card": zz, "reason": "fizzled"}]
    assert core.ledger.creativity.current == 3


def test_scenario_d_discard_without_creativity_is_rejected(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], config=CombatConfig(starting_hand_size=0, start_creativity=0))
    (card,) = _in_hand(hand, "Q")
    hand.select(card)
    mark = core.bus.mark()
    deck_before = list(deck.cards)

    result = core.orchestrator.request_discard(cost=1)
    assert not result.ok
    assert result.error == "Not enough creativity."
    assert hand.cards == [card]
    assert list(deck.cards) == deck_before
    assert deck.discard_pile == []
    assert core.ledger.creativity.current == 0
    assert core.bus.since(mark) == []


def test_scenario_e_play_rejected_on_enemy_turn(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    (fi,) = _in_hand(hand, "FI")
    assert core.orchestrator.end_turn().ok
    assert core.gate.phase == TurnPhase.ENEMY_TURN

    result = core.orchestrator.request_play([fi])
    assert not result.ok
    assert result.error == "Not your turn."
    assert core.engine.sequence == ""
    assert hand.cards == [fi]


def test_play_rejects_empty_and_letterless_cards(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    assert core.orchestrator.request_play([]).error == "No cards to play."
    (blank,) = _in_hand(hand, "")
    result = core.orchestrator.request_play([blank])
    assert result.error == "Played cards carry no letters."
    assert hand.cards == [blank]


def test_commands_refused_while_offline() -> None:
    hand = ListHand()
    core = build_core([FIRE], hand, deck_of("A"), TargetPool.of(("goblin", 10)))
    assert not core.is_online
    result = core.orchestrator.request_play([LetterCard("x", "FIRE")])
    assert result.error == "Core is not online."
    assert core.orchestrator.request_draw().error == "Core is not online."


def test_draw_rules(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], hand=ListHand(max_size=2), deck=deck_of("A", "B", "C"))
    orch = core.orchestrator
    result = orch.request_draw()
    assert result.ok
    assert _types(result.events) == [ev.CARD_DRAWN]
    assert [c.letter_values for c in hand.cards] == ["A"]
    assert orch.request_draw().ok
    assert orch.request_draw().error == "Hand is full."

    core2, hand2, _, _ = make_core([FIRE], deck=deck_of())
    assert core2.orchestrator.request_draw().error == "Deck is empty."
    assert hand2.cards == []


def test_discard_spends_and_draws_replacement(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], deck=deck_of("R", "S"))
    keep, drop = _in_hand(hand, "K", "D")
    orch = core.orchestrator

    assert orch.request_discard().error == "Select exactly one card to discard."
    hand.select(keep)
    assert orch.request_discard(drop).error == "Discard must target the single selected card."
    assert orch.request_discard(keep, cost=-1).error == "Discard cost cannot be negative."

    hand.select(drop)
    result = orch.request_discard()
    assert result.ok
    assert core.ledger.creativity.current == 2
    assert deck.discard_pile == [drop]
    assert [c.letter_values for c in hand.cards] == ["K", "R"]
    assert _types(result.events) == [ev.RESOURCE_CHANGED, ev.CARD_DISCARDED, ev.CARD_DRAWN]


def test_discard_explicit_card_without_selection(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    (card,) = _in_hand(hand, "Q")
    result = core.orchestrator.step(DiscardAction(card=card, cost=0))
    assert result.ok
    assert core.ledger.creativity.current == 3
    assert card not in hand.cards


def test_discard_rejects_card_outside_hand(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    deck_before = list(deck.cards)
    mark = core.bus.mark()

    result = core.orchestrator.request_discard(LetterCard("stranger", "Z"), cost=1)
    assert not result.ok
    assert result.error == "Card is not in hand."
    assert core.ledger.creativity.current == 3
    assert deck.discard_pile == []
    assert list(deck.cards) == deck_before
    assert hand.cards == []
    assert core.bus.since(mark) == []


def test_discard_needs_a_replacement(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], deck=deck_of())
    (card,) = _in_hand(hand, "Q")
    hand.select(card)
    assert core.orchestrator.request_discard().error == "Deck cannot supply a replacement."
    assert hand.cards == [card]


def test_partial_cast_through_orchestrator(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE, ICE])
    cards = _in_hand(hand, "FI", "RE", "IC", "E")
    result = core.orchestrator.request_play(cards)
    assert result.ok
    cast = [e["spell_id"] for e in result.events if e["type"] == ev.SPELL_CAST]
    assert cast == ["fire", "ice"]
    assert targets.units[0].health == 14
    assert hand.cards == []


def test_manual_cast(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], config=CombatConfig(starting_hand_size=0, auto_cast=False))
    (card,) = _in_hand(hand, "FIRE")
    orch = core.orchestrator
    assert orch.request_cast().error == "No combo ready to cast."
    orch.request_play([card])
    assert core.engine.state == ComboState.READY
    assert targets.units[0].health == 30

    result = orch.request_cast()
    assert result.ok
    assert targets.units[0].health == 20
    assert core.engine.state == ComboState.EMPTY


def test_effects_are_best_effort(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    outcomes = core.orchestrator.execute_effects(
        [CustomEffect(type="custom", name="mystery"), DamageEffect(type="damage", amount=5)]
    )
    assert [o.ok for o in outcomes] == [False, True]
    assert outcomes[0].error is not None and "mystery" in outcomes[0].error
    assert targets.units[0].health == 25
    types = _types(core.bus.log)
    assert ev.EFFECT_FAILED in types and ev.EFFECT_APPLIED in types


class _CursedPool(TargetPool):
    def deal_damage(self, target: object, amount: int) -> None:
        if getattr(target, "name", "") == "cursed":
            raise RuntimeError("cannot be harmed")
        super().deal_damage(target, amount)


def test_one_failing_target_does_not_stop_others(make_core) -> None:
    pool = _CursedPool(units=TargetPool.of(("cursed", 10), ("goblin", 30)).units)
    core, hand, deck, targets = make_core([FIRE], targets=pool)
    cursed, goblin = targets.units
    outcomes = core.orchestrator.execute_effects(
        [DamageEffect(type="damage", amount=5), DebuffEffect(type="debuff", status="weak", amount=2)],
        targets=[cursed, goblin],
    )
    assert [o.ok for o in outcomes] == [False, True]
    assert goblin.health == 25
    assert cursed.statuses == {"weak": 2}
    assert goblin.statuses == {"weak": 2}


def test_auto_target_moves_to_next_living_enemy(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    goblin, orc = targets.units
    orch = core.orchestrator
    assert orch.selected_targets == [goblin]

    orch.execute_effects([DamageEffect(type="damage", amount=40)])
    assert goblin.health == 0
    assert not orch.select_target(goblin)

    orch.execute_effects([DamageEffect(type="damage", amount=5)])
    assert orc.health == 45

    assert orch.select_target(orc)
    orc.health = 0
    outcomes = orch.execute_effects([DamageEffect(type="damage", amount=1)])
    assert outcomes[0].error == "No living target."


def test_self_heal_buff_and_target_heal(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], config=CombatConfig(starting_hand_size=0, start_life=50, max_life=100))
    goblin = targets.units[0]
    goblin.health = 10
    core.orchestrator.execute_effects(
        [
            HealEffect(type="heal", amount=12),
            HealEffect(type="heal", amount=8, target="target"),
            BuffEffect(type="buff", resource="creativity", amount=2),
        ]
    )
    assert core.ledger.life.current == 62
    assert goblin.health == 18
    assert core.ledger.creativity.current == 5


def test_custom_effect_handler(make_core) -> None:
    ward = _spell("WARD", CustomEffect(type="custom", name="shield", amount=5))
    core, hand, deck, targets = make_core([ward])
    calls: list[tuple[int, list[object]]] = []
    core.orchestrator.register_effect_handler("shield", lambda eff, ts: calls.append((eff.amount, ts)))
    (card,) = _in_hand(hand, "WARD")
    core.orchestrator.request_play([card])
    assert calls == [(5, [targets.units[0]])]


def test_end_turn_refills_and_passes_to_enemy(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], config=CombatConfig(starting_hand_size=3))
    orch = core.orchestrator
    assert hand.size() == 3
    core.ledger.try_spend("creativity", 3)
    orch.request_play([hand.cards[0]])
    assert hand.size() == 2

    result = orch.end_turn()
    assert result.ok
    assert core.ledger.creativity.current == 10
    assert hand.size() == 3
    assert core.gate.phase == TurnPhase.ENEMY_TURN
    assert orch.end_turn().error == "Cannot end turn now."

    assert orch.finish_enemy_turn().ok
    assert core.gate.phase == TurnPhase.PLAYER_TURN
    assert core.gate.turn == 2
    assert orch.finish_enemy_turn().error == "No enemy turn in progress."


def test_defeat_ends_combat(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    orch = core.orchestrator
    assert orch.receive_damage(-1).error == "Damage cannot be negative."
    result = orch.receive_damage(250)
    assert result.ok
    types = _types(result.events)
    assert types.index(ev.DEFEAT) < types.index(ev.COMBAT_ENDED)
    ended = [e for e in result.events if e["type"] == ev.COMBAT_ENDED]
    assert ended[0]["reason"] == "defeat"
    assert not core.gate.in_combat
    assert orch.request_draw().error == "Not in combat."
    assert orch.receive_damage(1).error == "Not in combat."


def test_self_inflicted_defeat_ends_combat_after_the_cast(make_core) -> None:
    doom = _spell("DOOM", BuffEffect(type="buff", resource="life", amount=-500))
    core, hand, deck, targets = make_core([doom])
    (card,) = _in_hand(hand, "DOOM")

    result = core.orchestrator.request_play([card])
    assert result.ok
    types = _types(result.events)
    assert types[-1] == ev.COMBAT_ENDED
    assert types.index(ev.DEFEAT) < types.index(ev.EFFECT_APPLIED) < types.index(ev.COMBAT_ENDED)
    assert types.count(ev.COMBO_CLEARED) == 1
    ended = [e for e in result.events if e["type"] == ev.COMBAT_ENDED]
    assert ended == [{"type": ev.COMBAT_ENDED, "reason": "defeat"}]
    assert not core.gate.in_combat
    assert not core.gate.is_busy
    assert core.engine.state == ComboState.EMPTY


def test_restart_combat_resets_ledger(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    orch = core.orchestrator
    orch.receive_damage(500)
    assert orch.start_combat().ok
    assert core.ledger.life.current == 100
    assert core.gate.turn == 1
    assert orch.start_combat().error == "Combat already running."


def test_commands_refused_while_resolving(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    nested: list[str | None] = []
    core.bus.subscribe(lambda e: nested.append(core.orchestrator.request_draw().error), types=[ev.CARDS_PLAYED])
    (card,) = _in_hand(hand, "FI")
    assert core.orchestrator.request_play([card]).ok
    assert nested == ["Another action is resolving."]
    assert core.gate.can_act


def test_delayed_clear_runs_on_tick(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE], config=CombatConfig(starting_hand_size=0, clear_delay=0.5))
    (zz,) = _in_hand(hand, "ZZ")
    core.orchestrator.request_play([zz])
    assert core.engine.state == ComboState.INVALID
    assert deck.discard_pile == []
    core.tick(0.6)
    assert core.engine.state == ComboState.EMPTY
    assert deck.discard_pile == [zz]


def test_step_dispatch_logs_every_action(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    orch = core.orchestrator
    (card,) = _in_hand(hand, "FIRE")
    assert orch.step(PlayCardsAction(cards=(card,))).ok
    assert orch.step(DrawAction()).ok
    assert orch.step(EndTurnAction()).ok
    assert not orch.step(DrawAction()).ok
    assert len(orch.action_log) == 4
    assert targets.units[0].health == 20


def test_preview_and_can_checks(make_core) -> None:
    core, hand, deck, targets = make_core([FIRE])
    orch = core.orchestrator
    fi, re = _in_hand(hand, "FI", "RE")
    assert orch.preview([fi]) == ComboState.BUILDING
    assert orch.preview([fi, re]) == ComboState.READY
    assert orch.can_play([fi])
    assert not orch.can_play([])
    assert orch.can_discard()
    assert not orch.can_discard(cost=99)
    deck_empty = ListDeck()
    core2, _, _, _ = make_core([FIRE], deck=deck_empty)
    assert not core2.orchestrator.can_discard()
