from __future__ import annotations

import pytest

from guildbattles.engine.actions import (
    ActivateAbilityAction,
    AttackUnitAction,
    ChooseTurnAction,
    DefendWithCardAction,
    DiscardCardAction,
    DrawCardAction,
    EndTurnAction,
    KidnapAction,
    PlayUnitAction,
    ReinforceUnitAction,
)
from guildbattles.engine.deck import make_card
from guildbattles.engine.errors import ConfigError, StateConsistencyError
from guildbattles.engine.match import available_abilities, cancel_battle, check_invariants, new_match, step
from guildbattles.engine.state import MatchState, Unit
from guildbattles.paths import get_paths
from guildbattles.services.content import ContentService


def _load_catalog():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    return content.load_catalog()


def _match(players: int = 2, seed: int = 7) -> MatchState:
    return new_match(_load_catalog(), [f"P{i + 1}" for i in range(players)], seed=seed)


def _c(card_id: str, color: str = "red", power: int = 1, value: int = 1, ability: str = ""):
    return make_card(card_id, "Test", color, power, value, ability)


def _rig(state: MatchState, hands, deck=(), units=None) -> None:
    """Replace the dealt cards with known ones. `units` maps player index to unit cards."""
    for p, hand in zip(state.players, hands):
        p.hand = list(hand)
        p.units = []
        p.graveyard = []
    for index, cards in (units or {}).items():
        owner = state.players[index]
        unit = Unit(id=f"unit-{90 + index}", player_id=owner.id, cards=list(cards))
        state.refresh_unit(unit)
        owner.units.append(unit)
    state.deck = list(deck)
    state.discard_pile = []
    in_units = sum(len(u.cards) for p in state.players for u in p.units)
    state.card_count = sum(len(h) for h in hands) + len(deck) + in_units
    state.phase = "play"


def _pass_turn(state: MatchState):
    state.phase = "reinforce"
    res = step(state, EndTurnAction(player=state.current_player.id))
    assert res.ok, res.error
    return res


def test_new_match_setup() -> None:
    state = _match()
    assert [p.id for p in state.players] == ["player-1", "player-2"]
    assert [len(p.hand) for p in state.players] == [6, 6]
    assert len(state.discard_pile) == 2
    assert len(state.deck) == 36
    assert state.card_count == 50
    assert state.phase == "draw"
    assert state.current_player.id == "player-1"
    assert [e["type"] for e in state.event_log] == ["matchStarted", "turnStarted"]
    check_invariants(state)


def test_player_count_limits() -> None:
    catalog = _load_catalog()
    with pytest.raises(ConfigError):
        new_match(catalog, ["Solo"], seed=1)
    with pytest.raises(ConfigError):
        new_match(catalog, [f"P{i}" for i in range(7)], seed=1)
    with pytest.raises(ConfigError):
        new_match(catalog, ["A", "B"], seed=1, player_ids=["same", "same"])
    six = new_match(catalog, [f"P{i}" for i in range(6)], seed=1)
    assert len(six.deck) == 50 - 6 * 6 - 6


def test_draw_phase_advances_after_two_draws() -> None:
    state = _match()
    top_discard = state.discard_pile[-1]

    res = step(state, DrawCardAction(player="player-1"))
    assert res.ok
    assert [e["type"] for e in res.events] == ["cardDrawn", "cardRevealed"]
    assert res.events[1]["to"] == ["player-1"]
    assert "card_id" not in res.events[0]
    assert state.phase == "draw"

    res = step(state, DrawCardAction(player="player-1", from_discard=True))
    assert res.ok
    assert res.events[0]["card_id"] == top_discard.id
    assert res.events[-1] == {"type": "phaseChanged", "player": "player-1", "phase": "play"}
    assert state.phase == "play"
    assert len(state.current_player.hand) == 8

    res = step(state, DrawCardAction(player="player-1"))
    assert not res.ok
    assert res.code == "wrong_phase"
    check_invariants(state)


def test_rejected_intent_changes_nothing() -> None:
    state = _match()
    events_before = list(state.event_log)

    res = step(state, DrawCardAction(player="player-2"))
    assert not res.ok
    assert res.code == "not_your_turn"
    assert len(res.events) == 1
    assert res.events[0]["type"] == "intentRejected"
    assert res.events[0]["to"] == ["player-2"]
    assert state.event_log == events_before
    assert state.action_log == []

    state.discard_pile.clear()
    res = step(state, DrawCardAction(player="player-1", from_discard=True))
    assert res.code == "empty_pile"
    assert state.action_log == []


def test_unit_formation_rules() -> None:
    state = _match()
    hand = [_c("r1", value=2), _c("r2", value=3), _c("r3", value=4), _c("w", "white"), _c("k", "black"), _c("r4")]
    _rig(state, [hand, [_c("b1", "blue")]])

    res = step(state, PlayUnitAction(player="player-1", card_ids=("w", "k", "r4")))
    assert res.code == "invalid_unit"
    res = step(state, PlayUnitAction(player="player-1", card_ids=("r1", "r1", "r2")))
    assert res.code == "duplicate_card"
    res = step(state, PlayUnitAction(player="player-1", card_ids=("r1", "r2", "b1")))
    assert res.code == "card_not_in_hand"

    res = step(state, PlayUnitAction(player="player-1", card_ids=("r1", "r2", "r3")))
    assert res.ok
    formed = res.events[0]
    assert formed["type"] == "unitFormed"
    assert formed["total_value"] == 9
    assert state.score(state.players[0]) == 9

    res = step(state, PlayUnitAction(player="player-1", card_ids=("w", "r4", "k")))
    assert res.code == "unit_already_played"
    check_invariants(state)


def test_reinforce_checks_colors() -> None:
    state = _match()
    _rig(state, [[_c("g", "gray", value=2), _c("b", "blue")], [_c("x")]], units={0: [_c("r1"), _c("r2"), _c("r3")]})
    unit_id = state.players[0].units[0].id

    res = step(state, ReinforceUnitAction(player="player-1", card_id="b", unit_id=unit_id))
    assert res.code == "invalid_reinforcement"
    res = step(state, ReinforceUnitAction(player="player-1", card_id="g", unit_id="unit-404"))
    assert res.code == "unknown_unit"

    res = step(state, ReinforceUnitAction(player="player-1", card_id="g", unit_id=unit_id))
    assert res.ok
    assert res.events[0]["total_value"] == 5


def test_attack_needs_an_enemy_unit() -> None:
    state = _match()
    _rig(state, [[_c("a")], [_c("b")]])
    res = step(state, ChooseTurnAction(player="player-1", action="attack"))
    assert not res.ok
    assert res.code == "attack_blocked"
    assert res.events[0]["type"] == "attackBlocked"
    assert state.phase == "play"


def test_discard_ends_the_turn() -> None:
    state = _match()
    _rig(state, [[_c("a"), _c("b")], [_c("x")]], deck=[_c("d1"), _c("d2"), _c("d3")])

    assert step(state, ChooseTurnAction(player="player-1", action="discard")).ok
    assert state.phase == "discard"
    res = step(state, EndTurnAction(player="player-1"))
    assert res.code == "must_discard"

    res = step(state, DiscardCardAction(player="player-1", card_id="b"))
    assert res.ok
    assert [e["type"] for e in res.events] == ["cardDiscarded", "turnEnded", "turnStarted"]
    assert state.discard_pile[-1].id == "b"
    assert state.current_player.id == "player-2"
    assert state.turn_number == 2
    assert state.phase == "draw"
    check_invariants(state)


def test_attack_and_kidnap_scenario() -> None:
    state = _match()
    a_hand = [
        _c("a1", value=2),
        _c("a2", value=3),
        _c("a3", value=4),
        _c("atk", power=3),
    ]
    b_unit = [_c("b1", "green", power=2, value=1), _c("b2", "green", value=2), _c("b3", "green", value=3)]
    _rig(state, [a_hand, [_c("bh", "blue")]], deck=[_c("d1"), _c("d2")], units={1: b_unit})
    target = state.players[1].units[0]
    assert target.total_value == 6

    res = step(state, PlayUnitAction(player="player-1", card_ids=("a1", "a2", "a3")))
    assert res.ok
    assert state.players[0].units[0].total_value == 9

    assert step(state, ChooseTurnAction(player="player-1", action="attack")).ok
    res = step(state, AttackUnitAction(player="player-1", attacker_card_id="atk", target_unit_id=target.id))
    assert res.ok
    assert res.events[0]["type"] == "battleStart"
    assert state.phase == "battle"

    # only the defender may answer, and the turn does not move on until they do
    assert step(state, EndTurnAction(player="player-1")).code == "wrong_phase"
    assert step(state, DefendWithCardAction(player="player-1", card_id="b1", from_hand=False)).code == "not_defender"

    res = step(state, DefendWithCardAction(player="player-2", card_id="b1", from_hand=False))
    assert res.ok
    end = next(e for e in res.events if e["type"] == "battleEnd")
    assert end["winner"] == "attacker"
    assert (end["attacker_power"], end["defender_power"]) == (3, 2)
    choice = next(e for e in res.events if e["type"] == "kidnapChoice")
    assert choice["to"] == ["player-1"]
    assert sorted(choice["available"]) == ["b1", "b2", "b3"]
    check_invariants(state)

    res = step(state, KidnapAction(player="player-1", card_id="b2"))
    assert res.ok
    assert res.events[0]["type"] == "kidnapped"
    assert res.events[0]["from_unit"] is True
    assert state.phase == "reinforce"

    p1, p2 = state.players
    assert {c.id for c in p1.hand} == {"atk", "b2"}
    assert target.card_ids() == ["b3"]
    assert target.total_value == 3
    assert [c.id for c in p2.graveyard] == ["b1"]
    assert state.score(p2) == 3 - 1
    check_invariants(state)

    assert step(state, EndTurnAction(player="player-1")).ok
    assert state.current_player.id == "player-2"


def test_defender_win_and_attack_limit() -> None:
    state = _match()
    b_unit = [_c("b1", "green", power=5), _c("b2", "green"), _c("b3", "green")]
    _rig(state, [[_c("atk", power=1), _c("atk2", power=1)], [_c("bh")]], units={1: b_unit})
    target_id = state.players[1].units[0].id

    step(state, ChooseTurnAction(player="player-1", action="attack"))
    step(state, AttackUnitAction(player="player-1", attacker_card_id="atk", target_unit_id=target_id))
    res = step(state, DefendWithCardAction(player="player-2", card_id="b1", from_hand=False))
    assert res.ok
    assert state.phase == "reinforce"
    assert [c.id for c in state.players[0].graveyard] == ["atk"]

    res = step(state, AttackUnitAction(player="player-1", attacker_card_id="atk2", target_unit_id=target_id))
    assert res.code == "wrong_phase"
    check_invariants(state)


def test_cancel_battle_returns_to_attack() -> None:
    state = _match()
    b_unit = [_c("b1", "green"), _c("b2", "green"), _c("b3", "green")]
    _rig(state, [[_c("atk", power=3)], [_c("bh")]], units={1: b_unit})
    target_id = state.players[1].units[0].id

    logged = len(state.event_log)
    res = cancel_battle(state, "player-1")
    assert res.code == "no_battle"
    assert res.events[0]["type"] == "intentRejected"
    assert res.events[0]["to"] == ["player-1"]
    assert cancel_battle(state).events[0]["to"] == []
    assert len(state.event_log) == logged

    step(state, ChooseTurnAction(player="player-1", action="attack"))
    step(state, AttackUnitAction(player="player-1", attacker_card_id="atk", target_unit_id=target_id))

    res = cancel_battle(state)
    assert res.ok
    assert res.events[0]["type"] == "battleCancelled"
    assert state.phase == "attack"
    assert state.active_battle is None
    assert state.attacks_used_this_turn == 0

    res = step(state, AttackUnitAction(player="player-1", attacker_card_id="atk", target_unit_id=target_id))
    assert res.ok


def test_activated_ability_once_per_turn() -> None:
    state = _match()
    drawer = _c("dr", ability="Draw 1 card from deck")
    reviver = _c("rv", ability="Move 1 target card from your graveyard to your hand")
    _rig(state, [[_c("h1", ability="Draw 1 card from deck")], [_c("x")]],
         deck=[_c("d1"), _c("d2")], units={0: [drawer, reviver, _c("plain")]})
    p1 = state.players[0]
    listed = {a["card_id"]: a["needs_selection"] for a in available_abilities(state, "player-1")}
    assert listed == {"dr": False, "rv": True}

    res = step(state, ActivateAbilityAction(player="player-1", card_id="h1"))
    assert res.code == "card_not_in_unit"
    res = step(state, ActivateAbilityAction(player="player-1", card_id="plain"))
    assert res.code == "no_activated_ability"

    res = step(state, ActivateAbilityAction(player="player-1", card_id="dr"))
    assert res.ok
    assert res.events[0]["type"] == "abilityActivated"
    assert len(p1.hand) == 2
    res = step(state, ActivateAbilityAction(player="player-1", card_id="dr"))
    assert res.code == "ability_already_used"
    assert [a["card_id"] for a in available_abilities(state, "player-1")] == ["rv"]

    # a selection is needed before the revive does anything
    p1.graveyard.append(p1.take_from_hand("h1"))
    res = step(state, ActivateAbilityAction(player="player-1", card_id="rv"))
    assert res.ok
    assert res.events[0]["type"] == "abilityPrompt"
    assert res.events[0]["to"] == ["player-1"]
    res = step(state, ActivateAbilityAction(player="player-1", card_id="rv", selected_targets=("h1",)))
    assert res.ok
    assert p1.graveyard == []
    assert p1.hand_card("h1") is not None

    # uses reset on the player's next turn
    _pass_turn(state)
    _pass_turn(state)
    state.phase = "play"
    assert step(state, ActivateAbilityAction(player="player-1", card_id="dr")).ok


def test_copied_ability_can_be_used_after_copying() -> None:
    state = _match()
    copier = _c("cp", ability="Copy target enemy card's ability this turn")
    enemy = _c("en", "blue", ability="Draw 1 card from deck")
    _rig(state, [[_c("h1")], [_c("x")]], deck=[_c("d1"), _c("d2")],
         units={0: [copier, _c("a2"), _c("a3")], 1: [enemy, _c("b2", "blue"), _c("b3", "blue")]})
    p1 = state.players[0]

    res = step(state, ActivateAbilityAction(player="player-1", card_id="cp", target_card_id="en"))
    assert res.ok, res.error
    assert res.events[0]["results"][0]["copied_from"] == "en"
    listed = available_abilities(state, "player-1")
    assert [(a["card_id"], a["text"]) for a in listed] == [("cp", "Draw 1 card from deck")]

    res = step(state, ActivateAbilityAction(player="player-1", card_id="cp"))
    assert res.ok, res.error
    assert len(p1.hand) == 2
    res = step(state, ActivateAbilityAction(player="player-1", card_id="cp"))
    assert res.code == "ability_already_used"


def test_immunity_only_guards_effects_that_target_a_card() -> None:
    state = _match()
    drawer = _c("dr", ability="Draw 1 card from deck")
    booster = _c("bo", ability="Increase target card's power by 1 this turn")
    immune = _c("im", "blue", ability="Immune to abilities from red cards")
    _rig(state, [[_c("h1")], [_c("x")]], deck=[_c("d1"), _c("d2")],
         units={0: [drawer, booster, _c("a3")], 1: [immune, _c("b2", "blue"), _c("b3", "blue")]})

    # a stray target on a draw is ignored
    res = step(state, ActivateAbilityAction(player="player-1", card_id="dr", target_card_id="im"))
    assert res.ok, res.error
    assert len(state.players[0].hand) == 2

    res = step(state, ActivateAbilityAction(player="player-1", card_id="bo", target_card_id="im"))
    assert res.code == "blocked_by_immunity"
    assert res.events[0]["type"] == "abilityBlocked"
    assert state.power_of(immune) == 1


def test_defending_boost_only_while_defending() -> None:
    state = _match()
    text = "Increase the power of a card from this unit by 2 while defending"
    a_unit = [_c("a1"), _c("ab", ability=text), _c("a3")]
    b_unit = [_c("b1", "green", power=2), _c("bst", "green", ability=text), _c("b3", "green")]
    _rig(state, [[_c("atk", power=3)], [_c("bh")]], units={0: a_unit, 1: b_unit})
    target_id = state.players[1].units[0].id

    res = step(state, ActivateAbilityAction(player="player-1", card_id="ab", target_card_id="a1"))
    assert res.code == "wrong_battle_role"
    assert state.power_of(a_unit[0]) == 1

    step(state, ChooseTurnAction(player="player-1", action="attack"))
    assert step(state, AttackUnitAction(player="player-1", attacker_card_id="atk", target_unit_id=target_id)).ok
    res = step(state, ActivateAbilityAction(player="player-1", card_id="ab", target_card_id="a1"))
    assert res.code == "wrong_phase"

    # the defender boosts before answering the attack
    res = step(state, ActivateAbilityAction(player="player-2", card_id="bst", target_card_id="b1"))
    assert res.ok, res.error
    assert state.power_of(b_unit[0]) == 4
    assert state.phase == "battle"

    res = step(state, DefendWithCardAction(player="player-2", card_id="b1", from_hand=False))
    assert res.ok
    end = next(e for e in res.events if e["type"] == "battleEnd")
    assert end["winner"] == "defender"
    assert (end["attacker_power"], end["defender_power"]) == (3, 4)


def test_final_round_countdown_and_cancel() -> None:
    state = _match(players=3)
    big = [_c("v1", value=20), _c("v2", value=20), _c("v3", value=10)]
    _rig(state, [[_c("a")], [_c("b")], [_c("c")]], deck=[_c(f"d{i}") for i in range(6)], units={0: big})

    res = _pass_turn(state)
    started = next(e for e in res.events if e["type"] == "finalRoundStarted")
    assert started["player"] == "player-1"
    assert state.final_round_turns_remaining == 2

    _pass_turn(state)
    assert state.final_round_turns_remaining == 1
    assert state.current_player.id == "player-3"

    # the trigger player drops to 49 before the last turn ends
    state.ledger.add_permanent("v3", "value", -1)
    state.refresh_units()
    res = _pass_turn(state)
    assert "finalRoundCancelled" in [e["type"] for e in res.events]
    assert state.final_round_trigger_player_id is None
    assert state.final_round_turns_remaining == 0
    assert not state.game_ended
    assert state.current_player.id == "player-1"


def test_two_player_game_ends_after_final_round() -> None:
    state = _match()
    big = [_c("v1", value=25), _c("v2", value=25), _c("v3", value=1)]
    _rig(state, [[_c("a")], [_c("b", value=4)]], deck=[_c("d1")], units={0: big})

    _pass_turn(state)
    assert state.final_round_turns_remaining == 1
    res = _pass_turn(state)
    assert state.game_ended
    ended = res.events[-1]
    assert ended["type"] == "gameEnded"
    assert ended["winners"] == ["player-1"]
    assert [r["player_id"] for r in state.final_scores] == ["player-1", "player-2"]
    assert state.final_scores[0]["score"] == 51
    assert state.final_scores[0]["most_valuable_unit"]["total_value"] == 51

    res = step(state, EndTurnAction(player="player-1"))
    assert res.code == "game_over"


def test_tied_top_score_is_a_shared_victory() -> None:
    state = _match()
    _rig(state, [[_c("a")], [_c("b")]])
    for index, prefix in ((0, "x"), (1, "y")):
        owner = state.players[index]
        unit = Unit(
            id=f"unit-{prefix}",
            player_id=owner.id,
            cards=[_c(f"{prefix}1", value=20), _c(f"{prefix}2", value=20), _c(f"{prefix}3", value=10)],
        )
        state.refresh_unit(unit)
        owner.units.append(unit)

    _pass_turn(state)
    assert state.final_round_trigger_player_id == "player-1"
    _pass_turn(state)
    assert state.game_ended
    assert state.winners == ["player-1", "player-2"]


def test_check_invariants_detects_corruption() -> None:
    state = _match()
    check_invariants(state)
    state.players[0].units.append(Unit(id="unit-x", player_id="player-1", cards=[]))
    with pytest.raises(StateConsistencyError):
        check_invariants(state)

    state = _match()
    state.players[1].hand.append(state.players[0].hand[0])
    with pytest.raises(StateConsistencyError):
        check_invariants(state)
