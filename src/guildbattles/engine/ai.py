from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations

from .actions import (
    Action,
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
from .match import step
from .state import MatchState, PlayerState
from .types import Card
from .units import can_add_card_to_unit, can_form_unit


@dataclass(frozen=True)
class AISpec:
    """Simple bot tuning parameters.

    aggression:
      0 = never attacks
      1 = attacks when its best card at least matches the target's best card
      2 = always attacks when it can
    """

    aggression: int = 1


def _cards_of(p: PlayerState) -> list[tuple[Card, bool]]:
    return [(c, True) for c in p.hand] + [(c, False) for u in p.units for c in u.cards]


def _best_unit(state: MatchState, p: PlayerState) -> tuple[str, ...] | None:
    best: tuple[int, tuple[str, ...]] | None = None
    size = state.config.min_unit_size
    for combo in combinations(p.hand, size):
        if not can_form_unit(combo, size):
            continue
        total = sum(state.value_of(c) for c in combo)
        if best is None or total > best[0]:
            best = (total, tuple(c.id for c in combo))
    return best[1] if best is not None else None


def _reinforcement(p: PlayerState) -> ReinforceUnitAction | None:
    for card in p.hand:
        for unit in p.units:
            if can_add_card_to_unit(card, unit):
                return ReinforceUnitAction(player=p.id, card_id=card.id, unit_id=unit.id)
    return None


def _wants_attack(state: MatchState, p: PlayerState, spec: AISpec) -> bool:
    if spec.aggression <= 0 or not state.enemy_units(p.id) or not _cards_of(p):
        return False
    if spec.aggression >= 2:
        return True
    mine = max(state.power_of(c) for c, _ in _cards_of(p))
    theirs = max(state.power_of(c) for u in state.enemy_units(p.id) for c in u.cards)
    return mine >= theirs


def _kidnap(state: MatchState) -> Action | None:
    choice = state.pending_kidnap
    assert choice is not None

    def worth(card_id: str) -> int:
        if card_id == choice.defender_card.id:
            return state.value_of(choice.defender_card)
        loc = state.locate(card_id)
        return state.value_of(loc.card) if loc is not None else 0

    best = max(choice.available, key=worth)
    return KidnapAction(player=choice.player_id, card_id=best)


def _defend(state: MatchState) -> Action | None:
    battle = state.active_battle
    assert battle is not None
    defender = state.player(battle.defender.player_id)
    if defender is None:
        return None
    options = _cards_of(defender)
    if not options:
        return None
    card, from_hand = max(options, key=lambda o: (state.power_of(o[0]), o[1]))
    return DefendWithCardAction(player=defender.id, card_id=card.id, from_hand=from_hand)


def choose_action(state: MatchState, spec: AISpec | None = None) -> Action | None:
    """Pick a legal intent for whichever player the match is waiting on.

    Returns None when nobody can act (match over). Deterministic: the bot
    never draws on the match RNG.
    """
    spec = spec or AISpec()
    if state.game_ended:
        return None
    if state.pending_kidnap is not None:
        return _kidnap(state)
    if state.active_battle is not None:
        return _defend(state)

    p = state.current_player
    if state.phase == "draw":
        top = state.discard_pile[-1] if state.discard_pile else None
        take_top = top is not None and (not state.deck or state.value_of(top) >= 4)
        return DrawCardAction(player=p.id, from_discard=take_top)

    if state.phase == "play":
        if not state.unit_played_this_turn:
            combo = _best_unit(state, p)
            if combo is not None:
                return PlayUnitAction(player=p.id, card_ids=combo)
        reinforce = _reinforcement(p)
        if reinforce is not None:
            return reinforce
        choice = "attack" if _wants_attack(state, p, spec) else "discard"
        return ChooseTurnAction(player=p.id, action=choice)

    if state.phase == "attack":
        card, _ = max(_cards_of(p), key=lambda o: (state.power_of(o[0]), o[1]))
        target = max(state.enemy_units(p.id), key=lambda u: u.total_value)
        return AttackUnitAction(player=p.id, attacker_card_id=card.id, target_unit_id=target.id)

    if state.phase == "reinforce":
        reinforce = _reinforcement(p)
        if reinforce is not None:
            return reinforce
        return EndTurnAction(player=p.id)

    if state.phase == "discard":
        if not p.hand:
            return EndTurnAction(player=p.id)
        worst = min(p.hand, key=lambda c: (state.value_of(c), state.power_of(c)))
        return DiscardCardAction(player=p.id, card_id=worst.id)
    return None


def autoplay(state: MatchState, max_steps: int = 5000, spec: AISpec | None = None) -> int:
    """Drive the match with the bot for every seat. Returns the number of steps applied."""
    steps = 0
    while steps < max_steps and not state.game_ended:
        action = choose_action(state, spec)
        if action is None:
            break
        result = step(state, action)
        if not result.ok:
            break
        steps += 1
    return steps
