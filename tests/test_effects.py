from __future__ import annotations

import random

from guildbattles.engine.abilities import parse_ability
from guildbattles.engine.deck import make_card
from guildbattles.engine.effects import EffectContext, EffectExecutor
from guildbattles.engine.state import GameConfig, MatchState, PlayerState, Unit
from guildbattles.engine.types import DrawCard, ModifyAttribute


def _state() -> MatchState:
    return MatchState(
        config=GameConfig(),
        seed=1,
        rng=random.Random(1),
        players=[PlayerState(id="p1", name="Ann"), PlayerState(id="p2", name="Bob")],
        deck=[],
        discard_pile=[],
    )


def _card(card_id: str, color: str = "red", power: int = 2, value: int = 2, ability: str = "", name: str = "Test"):
    return make_card(card_id, name, color, power, value, ability)


def _unit(state: MatchState, player: PlayerState, unit_id: str, cards) -> Unit:
    unit = Unit(id=unit_id, player_id=player.id, cards=list(cards))
    state.refresh_unit(unit)
    player.units.append(unit)
    return unit


def test_temporary_modification_reverts_at_cleanup() -> None:
    state = _state()
    p1 = state.players[0]
    target = _card("t", power=2)
    p1.hand.append(target)
    source = _card("s")
    boost = ModifyAttribute(
        target="target_card", attribute="power", operation="increase", amount=1, duration="this_turn"
    )

    ex = EffectExecutor(state)
    result = ex.apply(boost, source, EffectContext(acting_player_id="p1", target_card_id="t"))
    assert result.success
    assert result.details["old_value"] == 2
    assert result.details["new_value"] == 3
    assert state.power_of(target) == 3

    assert ex.cleanup_turn(state.turn_number) == 1
    assert state.power_of(target) == 2


def test_permanent_value_change_survives_cleanup() -> None:
    state = _state()
    p1 = state.players[0]
    cards = [_card("a", value=1), _card("b", value=2), _card("c", value=3)]
    unit = _unit(state, p1, "unit-1", cards)
    assert unit.total_value == 6

    played = parse_ability("Increase this card's value by 2 when played")
    ex = EffectExecutor(state)
    outcome = ex.execute_ability(played, cards[0], EffectContext(acting_player_id="p1"))
    assert outcome.success
    assert state.value_of(cards[0]) == 3
    assert unit.total_value == 8

    ex.cleanup_turn(state.turn_number)
    assert unit.total_value == 8


def test_power_never_goes_negative() -> None:
    state = _state()
    card = _card("x", power=2)
    state.players[0].hand.append(card)
    drain = ModifyAttribute(target="this_card", attribute="power", operation="decrease", amount=5)
    result = EffectExecutor(state).apply(drain, card, EffectContext(acting_player_id="p1"))
    assert result.success
    assert result.details["new_value"] == 0
    assert state.power_of(card) == 0


def test_draw_stops_when_deck_runs_out() -> None:
    state = _state()
    state.deck.append(_card("only"))
    result = EffectExecutor(state).apply(DrawCard(amount=3), _card("s"), EffectContext(acting_player_id="p1"))
    assert result.success
    assert result.details["drawn"] == 1
    assert [c.id for c in state.players[0].hand] == ["only"]
    assert state.deck == []


def test_discard_waits_for_a_selection() -> None:
    state = _state()
    victim = _card("v")
    state.players[1].hand.append(victim)
    source = _card("s", ability="Target opponent discards 1 card from hand")
    ability = source.parsed_ability
    assert ability is not None

    ex = EffectExecutor(state)
    pending = ex.execute_ability(ability, source, EffectContext(acting_player_id="p1"))
    assert pending.success
    assert pending.requires_input
    assert state.players[1].hand == [victim]

    done = ex.execute_ability(ability, source, EffectContext(acting_player_id="p1", selected_targets=("v",)))
    assert done.success
    assert not done.requires_input
    assert state.players[1].hand == []
    assert state.discard_pile == [victim]


def test_revive_moves_selected_card_to_hand() -> None:
    state = _state()
    p1 = state.players[0]
    lost = _card("lost")
    p1.graveyard.append(lost)
    source = _card("s", ability="Move 1 target card from your graveyard to your hand")
    ability = source.parsed_ability
    assert ability is not None

    ex = EffectExecutor(state)
    assert ex.execute_ability(ability, source, EffectContext(acting_player_id="p1")).requires_input

    missing = ex.execute_ability(ability, source, EffectContext(acting_player_id="p1", selected_targets=("nope",)))
    assert not missing.success
    assert missing.reason == "no_valid_target"

    done = ex.execute_ability(ability, source, EffectContext(acting_player_id="p1", selected_targets=("lost",)))
    assert done.success
    assert p1.graveyard == []
    assert p1.hand == [lost]


def test_immunity_blocks_the_whole_ability() -> None:
    state = _state()
    guard = _card("guard", color="green", ability="Immune to abilities from black cards")
    _unit(state, state.players[1], "unit-1", [guard, _card("g2", color="green"), _card("g3", color="green")])
    source = _card("s", color="black", ability="Destroy 1 target card from opponent's unit")
    ability = source.parsed_ability
    assert ability is not None

    result = EffectExecutor(state).execute_ability(
        ability, source, EffectContext(acting_player_id="p1", selected_targets=("guard",))
    )
    assert not result.success
    assert result.reason == "blocked_by_immunity"
    assert len(state.players[1].units[0].cards) == 3
    assert state.players[1].graveyard == []

    # other colors get through
    red = _card("r", color="red", ability="Destroy 1 target card from opponent's unit")
    assert red.parsed_ability is not None
    result = EffectExecutor(state).execute_ability(
        red.parsed_ability, red, EffectContext(acting_player_id="p1", selected_targets=("guard",))
    )
    assert result.success
    assert [c.id for c in state.players[1].graveyard] == ["guard"]


def test_destroying_a_unit_dissolves_it() -> None:
    state = _state()
    p2 = state.players[1]
    _unit(state, p2, "unit-1", [_card("a"), _card("b"), _card("c")])
    source = _card("s", ability="Destroy 1 target opponent's unit")
    assert source.parsed_ability is not None

    result = EffectExecutor(state).execute_ability(
        source.parsed_ability, source, EffectContext(acting_player_id="p1", selected_targets=("unit-1",))
    )
    assert result.success
    assert p2.units == []
    assert sorted(c.id for c in p2.graveyard) == ["a", "b", "c"]
    assert [e["type"] for e in state.event_log] == ["unitDissolved"]


def test_unit_dissolves_when_last_card_leaves() -> None:
    state = _state()
    p1 = state.players[0]
    unit = _unit(state, p1, "unit-1", [_card("a", value=1), _card("b", value=2), _card("c", value=3)])

    state.remove_from_unit(p1, unit, "a")
    state.remove_from_unit(p1, unit, "b")
    assert p1.units == [unit]
    assert unit.total_value == 3
    assert state.event_log == []

    state.remove_from_unit(p1, unit, "c")
    assert p1.units == []
    assert state.event_log[-1] == {"type": "unitDissolved", "player": "p1", "unit_id": "unit-1"}


def test_random_steal_takes_from_opponent_hand() -> None:
    state = _state()
    p1, p2 = state.players
    p2.hand.extend([_card("x"), _card("y")])
    source = _card("s", ability="Steal 1 random card from opponent's hand")
    assert source.parsed_ability is not None

    result = EffectExecutor(state).execute_ability(source.parsed_ability, source, EffectContext(acting_player_id="p1"))
    assert result.success
    assert len(p1.hand) == 1
    assert len(p2.hand) == 1
    assert p1.hand[0].id in ("x", "y")
    assert result.results[0].details["stolen"] == [p1.hand[0].id]


def test_copy_enemy_ability_until_cleanup() -> None:
    state = _state()
    p1, p2 = state.players
    source = _card("s", ability="Copy target enemy card's ability this turn")
    enemy = _card("e", ability="Draw 1 card from deck")
    mine = _card("m", ability="Draw 1 card from deck")
    p1.hand.extend([source, mine])
    p2.hand.append(enemy)
    assert source.parsed_ability is not None

    ex = EffectExecutor(state)
    own = ex.execute_ability(source.parsed_ability, source, EffectContext(acting_player_id="p1", target_card_id="m"))
    assert not own.success
    assert own.reason == "target_not_enemy"

    copied = ex.execute_ability(source.parsed_ability, source, EffectContext(acting_player_id="p1", target_card_id="e"))
    assert copied.success
    assert [a.original_text for a in state.abilities_of(source)][-1] == "Draw 1 card from deck"

    ex.cleanup_turn(state.turn_number)
    assert len(state.abilities_of(source)) == 1


def test_required_item_condition() -> None:
    state = _state()
    p1 = state.players[0]
    target = _card("t", power=2)
    p1.hand.append(target)
    source = _card("s", ability="If you have sword, double power of target card this turn")
    ability = source.parsed_ability
    assert ability is not None

    ex = EffectExecutor(state)
    ctx = EffectContext(acting_player_id="p1", target_card_id="t")
    result = ex.execute_ability(ability, source, ctx)
    assert not result.success
    assert result.reason == "condition_not_met"

    p1.hand.append(_card("k", name="Sword Bearer"))
    assert ex.execute_ability(ability, source, ctx).success
    assert state.power_of(target) == 4


def test_scoped_boost_needs_matching_battle_role() -> None:
    state = _state()
    p1 = state.players[0]
    target = _card("t", power=2)
    p1.hand.append(target)
    boost = ModifyAttribute(
        target="target_card",
        attribute="power",
        operation="increase",
        amount=2,
        duration="this_turn",
        scope="defending",
    )

    ex = EffectExecutor(state)
    attacking = EffectContext(acting_player_id="p1", target_card_id="t", battle_role="attacking")
    result = ex.apply(boost, _card("s"), attacking)
    assert not result.success
    assert result.reason == "wrong_battle_role"
    assert state.power_of(target) == 2

    defending = EffectContext(acting_player_id="p1", target_card_id="t", battle_role="defending")
    assert ex.apply(boost, _card("s"), defending).success
    assert state.power_of(target) == 4
