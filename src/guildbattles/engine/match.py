from __future__ import annotations

import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from .actions import (
    Action,
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
    SkipKidnapAction,
)
from .battle import (
    apply_battle_effects,
    attacker_wins,
    defender_wins,
    release_kidnap,
    resolve_battle,
    take_kidnap,
)
from .deck import build_deck, deal
from .effects import EffectContext, EffectExecutor, EffectResult
from .errors import ConfigError, StateConsistencyError, ValidationError
from .state import BattleSide, BattleState, Event, GameConfig, MatchState, PlayerState, Unit
from .types import (
    Ability,
    AbilityCatalog,
    AbilityType,
    BattleRole,
    Card,
    CopyAbility,
    Destroy,
    Discard,
    Generic,
    ModifyAttribute,
    Revive,
    Steal,
)
from .units import can_add_card_to_unit, can_form_unit

# Rejection codes that have their own event type.
_REJECTION_EVENTS = {
    "attack_blocked": "attackBlocked",
    "blocked_by_immunity": "abilityBlocked",
}


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: str | None = None
    code: str | None = None


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def _current(state: MatchState, player_id: str) -> PlayerState:
    if state.current_player.id != player_id:
        raise ValidationError("not_your_turn", "It is not your turn.")
    return state.current_player


def _require_phase(state: MatchState, *phases: str) -> None:
    if state.phase not in phases:
        raise ValidationError("wrong_phase", f"Not allowed during the {state.phase} phase.")


def _owned_card(player: PlayerState, card_id: str) -> tuple[Card, bool] | None:
    """The card and whether it sits in the hand, searching hand then units."""
    card = player.hand_card(card_id)
    if card is not None:
        return card, True
    unit = player.unit_of(card_id)
    if unit is not None:
        found = unit.get(card_id)
        assert found is not None
        return found, False
    return None


# ---------------------------------------------------------------------------
# Turn lifecycle
# ---------------------------------------------------------------------------


def _start_turn(state: MatchState) -> None:
    state.phase = "draw"
    state.action_chosen = None
    state.cards_drawn_this_turn = 0
    state.attacks_used_this_turn = 0
    state.unit_played_this_turn = False
    if not state.deck and not state.discard_pile:
        state.phase = "play"
    state.emit(
        "turnStarted",
        player=state.current_player.id,
        turn=state.turn_number,
        phase=state.phase,
    )


def _finish_turn(state: MatchState) -> None:
    ending = state.current_player
    turn = state.turn_number
    EffectExecutor(state).cleanup_turn(turn)
    state.ability_uses = {use for use in state.ability_uses if use[1] != turn}
    state.emit("turnEnded", player=ending.id, turn=turn)

    check_final_round(state)
    trigger = state.final_round_trigger_player_id
    if trigger is not None and ending.id != trigger:
        state.final_round_turns_remaining -= 1
        if state.final_round_turns_remaining <= 0:
            state.final_round_turns_remaining = 0
            _end_game(state, reason="final_round_complete")
            return

    state.current_player_index = (state.current_player_index + 1) % len(state.players)
    state.turn_number += 1
    _start_turn(state)


def check_final_round(state: MatchState) -> None:
    """Start, keep or cancel the final-round countdown from current scores.

    A running countdown is cancelled when its triggering player falls back under
    the threshold; the same check may then start a new one for someone else.
    """
    if state.game_ended:
        return
    threshold = state.config.win_threshold

    trigger_id = state.final_round_trigger_player_id
    if trigger_id is not None:
        trigger = state.player(trigger_id)
        score = state.score(trigger) if trigger is not None else 0
        if score >= threshold:
            return
        state.final_round_trigger_player_id = None
        state.final_round_turns_remaining = 0
        state.emit("finalRoundCancelled", player=trigger_id, score=score)

    n = len(state.players)
    for offset in range(n):
        p = state.players[(state.current_player_index + offset) % n]
        score = state.score(p)
        if score >= threshold:
            state.final_round_trigger_player_id = p.id
            state.final_round_turns_remaining = n - 1
            state.emit(
                "finalRoundStarted",
                player=p.id,
                score=score,
                turns_remaining=state.final_round_turns_remaining,
            )
            return


def final_scores(state: MatchState) -> list[dict[str, object]]:
    """Score breakdown for every player, best first. Seat order breaks ties."""
    rows: list[dict[str, object]] = []
    for p in state.players:
        unit_score = sum(u.total_value for u in p.units)
        penalty = sum(state.value_of(c) for c in p.graveyard)
        best: Unit | None = max(p.units, key=lambda u: u.total_value, default=None)
        rows.append(
            {
                "player_id": p.id,
                "name": p.name,
                "score": unit_score - penalty,
                "unit_score": unit_score,
                "graveyard_penalty": penalty,
                "most_valuable_unit": (
                    None
                    if best is None
                    else {"unit_id": best.id, "total_value": best.total_value, "card_ids": best.card_ids()}
                ),
            }
        )
    rows.sort(key=lambda r: r["score"], reverse=True)  # type: ignore[arg-type, return-value]
    return rows


def _end_game(state: MatchState, reason: str) -> None:
    scores = final_scores(state)
    top = scores[0]["score"]
    state.final_scores = scores
    state.winners = [str(r["player_id"]) for r in scores if r["score"] == top]
    state.game_ended = True
    state.active_battle = None
    state.emit("gameEnded", winners=list(state.winners), final_scores=scores, reason=reason)


# ---------------------------------------------------------------------------
# Ability helpers
# ---------------------------------------------------------------------------


def _needs_selection(ability: Ability) -> bool:
    for eff in ability.effects:
        if isinstance(eff, ModifyAttribute) and eff.target == "target_card":
            return True
        if isinstance(eff, CopyAbility):
            return True
        if isinstance(eff, (Destroy, Steal)) and not eff.random:
            return True
        if isinstance(eff, (Discard, Revive)):
            return True
    return False


def _activatable(state: MatchState, card: Card) -> list[Ability]:
    """Activated abilities on the card, a copied one ahead of the card's own."""
    out: list[Ability] = []
    for ability in reversed(state.abilities_of(card)):
        if ability.activation != "activated":
            continue
        if all(isinstance(e, Generic) for e in ability.effects):
            continue
        out.append(ability)
    return out


def _use_key(state: MatchState, card: Card, ability: Ability) -> tuple[str, int, str]:
    return (card.id, state.turn_number, ability.original_text)


def _activated_ability(state: MatchState, card: Card) -> Ability | None:
    """The first activatable ability on the card not yet used this turn."""
    for ability in _activatable(state, card):
        if _use_key(state, card, ability) not in state.ability_uses:
            return ability
    return None


def _prompt(state: MatchState, player_id: str, card: Card, ability: Ability) -> None:
    state.emit(
        "abilityPrompt",
        to=[player_id],
        player=player_id,
        card_id=card.id,
        ability=ability.type.value,
        text=ability.original_text,
    )


def _report(results: Sequence[EffectResult]) -> list[dict[str, object]]:
    return [r.to_dict() for r in results]


def _run_play_triggers(state: MatchState, player: PlayerState, unit: Unit) -> None:
    executor = EffectExecutor(state)
    for card in list(unit.cards):
        for ability in state.abilities_of(card):
            if ability.type != AbilityType.PLAY_TRIGGER or not ability.effects:
                continue
            if _needs_selection(ability):
                _prompt(state, player.id, card, ability)
                continue
            result = executor.execute_ability(ability, card, EffectContext(acting_player_id=player.id))
            state.emit(
                "abilityTriggered",
                player=player.id,
                card_id=card.id,
                ability=ability.type.value,
                success=result.success,
                results=_report(result.results),
            )


def available_abilities(state: MatchState, player_id: str) -> list[dict[str, object]]:
    """Activated abilities the player could use right now from their units."""
    p = state.player(player_id)
    if p is None:
        return []
    out: list[dict[str, object]] = []
    for unit in p.units:
        for card in unit.cards:
            ability = _activated_ability(state, card)
            if ability is None:
                continue
            out.append(
                {
                    "card_id": card.id,
                    "unit_id": unit.id,
                    "type": ability.type.value,
                    "text": ability.original_text,
                    "needs_selection": _needs_selection(ability),
                }
            )
    return out


# ---------------------------------------------------------------------------
# Intent handlers. Each validates fully before it mutates anything.
# ---------------------------------------------------------------------------


def _draw(state: MatchState, action: DrawCardAction) -> None:
    player = _current(state, action.player)
    _require_phase(state, "draw")
    pile = state.discard_pile if action.from_discard else state.deck
    if not pile:
        raise ValidationError("empty_pile", "There is nothing to draw from that pile.")

    card = pile.pop()
    player.hand.append(card)
    state.cards_drawn_this_turn += 1
    if action.from_discard:
        state.emit("cardDrawn", player=player.id, from_discard=True, card_id=card.id)
    else:
        state.emit("cardDrawn", player=player.id, from_discard=False)
        state.emit("cardRevealed", to=[player.id], player=player.id, card_id=card.id)

    exhausted = not state.deck and not state.discard_pile
    if state.cards_drawn_this_turn >= state.config.draws_per_turn or exhausted:
        state.phase = "play"
        state.emit("phaseChanged", player=player.id, phase="play")


def _play_unit(state: MatchState, action: PlayUnitAction) -> None:
    player = _current(state, action.player)
    _require_phase(state, "play")
    if state.unit_played_this_turn:
        raise ValidationError("unit_already_played", "Only one unit can be formed per turn.")
    if len(set(action.card_ids)) != len(action.card_ids):
        raise ValidationError("duplicate_card", "A card can only be used once in a unit.")
    cards: list[Card] = []
    for card_id in action.card_ids:
        card = player.hand_card(card_id)
        if card is None:
            raise ValidationError("card_not_in_hand", f"Card {card_id} is not in your hand.")
        cards.append(card)
    if not can_form_unit(cards, state.config.min_unit_size):
        raise ValidationError("invalid_unit", "These cards cannot form a unit.")

    for card in cards:
        player.take_from_hand(card.id)
    unit = Unit(id=state.new_unit_id(), player_id=player.id, cards=cards)
    state.refresh_unit(unit)
    player.units.append(unit)
    state.unit_played_this_turn = True
    state.emit(
        "unitFormed",
        player=player.id,
        unit_id=unit.id,
        card_ids=unit.card_ids(),
        total_value=unit.total_value,
    )
    _run_play_triggers(state, player, unit)


def _reinforce(state: MatchState, action: ReinforceUnitAction) -> None:
    player = _current(state, action.player)
    _require_phase(state, "play", "reinforce")
    card = player.hand_card(action.card_id)
    if card is None:
        raise ValidationError("card_not_in_hand", f"Card {action.card_id} is not in your hand.")
    unit = player.unit(action.unit_id)
    if unit is None:
        raise ValidationError("unknown_unit", f"You have no unit {action.unit_id}.")
    if not can_add_card_to_unit(card, unit):
        raise ValidationError("invalid_reinforcement", "That card cannot join this unit.")

    player.take_from_hand(card.id)
    unit.cards.append(card)
    state.refresh_unit(unit)
    state.emit(
        "unitReinforced",
        player=player.id,
        unit_id=unit.id,
        card_id=card.id,
        total_value=unit.total_value,
    )


def _choose(state: MatchState, action: ChooseTurnAction) -> None:
    player = _current(state, action.player)
    _require_phase(state, "play")
    if action.action == "attack":
        if not state.enemy_units(player.id):
            raise ValidationError("attack_blocked", "There are no enemy units to attack.")
        if not player.hand and not player.units:
            raise ValidationError("no_attacker", "You have no card to attack with.")
        state.phase = "attack"
    elif action.action == "discard":
        state.phase = "discard"
    else:
        raise ValidationError("unknown_action", f"Unknown turn action {action.action!r}.")
    state.action_chosen = action.action
    state.emit("actionChosen", player=player.id, action=action.action)


def _attack(state: MatchState, action: AttackUnitAction) -> None:
    player = _current(state, action.player)
    _require_phase(state, "attack")
    if state.action_chosen != "attack":
        raise ValidationError("wrong_action", "Attacking was not chosen this turn.")
    if state.attacks_used_this_turn >= state.config.attacks_per_turn:
        raise ValidationError("attack_limit", "You have already attacked this turn.")
    if not state.enemy_units(player.id):
        raise ValidationError("attack_blocked", "There are no enemy units to attack.")
    owned = _owned_card(player, action.attacker_card_id)
    if owned is None:
        raise ValidationError("card_not_owned", f"Card {action.attacker_card_id} is not yours to attack with.")
    found = state.find_unit(action.target_unit_id)
    if found is None:
        raise ValidationError("unknown_unit", f"There is no unit {action.target_unit_id}.")
    owner, _unit = found
    if owner.id == player.id:
        raise ValidationError("own_unit", "You cannot attack your own unit.")

    card, from_hand = owned
    state.active_battle = BattleState(
        attacker=BattleSide(player_id=player.id, card=card, from_hand=from_hand),
        defender=BattleSide(player_id=owner.id),
        target_unit_id=action.target_unit_id,
    )
    state.phase = "battle"
    state.emit(
        "battleStart",
        attacker=player.id,
        attacker_card_id=card.id,
        from_hand=from_hand,
        defender=owner.id,
        target_unit_id=action.target_unit_id,
    )


def _defend(state: MatchState, action: DefendWithCardAction) -> None:
    battle = state.active_battle
    if battle is None or battle.status != "awaiting_defense":
        raise ValidationError("no_battle", "There is no battle awaiting defense.")
    if action.player != battle.defender.player_id:
        raise ValidationError("not_defender", "Only the defending player may choose a defender.")
    defender = state.player(action.player)
    assert defender is not None
    owned = _owned_card(defender, action.card_id)
    if owned is None or owned[1] != action.from_hand:
        raise ValidationError("card_not_owned", f"Card {action.card_id} is not available to defend.")

    battle.defender.card, battle.defender.from_hand = owned
    outcome = resolve_battle(state, battle)
    state.attacks_used_this_turn += 1
    if outcome.winner == "attacker":
        choice = attacker_wins(state, battle)
    else:
        choice = None
        defender_wins(state, battle)
    results = apply_battle_effects(state, battle, outcome)
    state.active_battle = None

    assert battle.attacker.card is not None and battle.defender.card is not None
    state.emit(
        "battleEnd",
        winner=outcome.winner,
        attacker=battle.attacker.player_id,
        defender=battle.defender.player_id,
        attacker_card_id=battle.attacker.card.id,
        defender_card_id=battle.defender.card.id,
        attacker_power=outcome.modified_attacker_power,
        defender_power=outcome.modified_defender_power,
        ability_results=_report(results),
    )

    if choice is not None:
        state.pending_kidnap = choice
        state.emit(
            "kidnapChoice",
            to=[choice.player_id],
            player=choice.player_id,
            defender=choice.defender_id,
            target_unit_id=choice.target_unit_id,
            available=list(choice.available),
        )
    else:
        state.phase = "reinforce"


def _kidnap(state: MatchState, action: KidnapAction) -> None:
    choice = state.pending_kidnap
    if choice is None:
        raise ValidationError("no_kidnap", "There is no kidnap choice pending.")
    if action.player != choice.player_id:
        raise ValidationError("not_kidnapper", "Only the winning attacker may kidnap.")
    if action.card_id not in choice.available:
        raise ValidationError("card_not_available", f"Card {action.card_id} cannot be kidnapped.")

    card = take_kidnap(state, choice, action.card_id)
    if card is None:
        raise ValidationError("card_not_available", f"Card {action.card_id} cannot be kidnapped.")
    state.pending_kidnap = None
    state.phase = "reinforce"
    state.emit(
        "kidnapped",
        player=choice.player_id,
        from_player=choice.defender_id,
        card_id=card.id,
        from_unit=card.id != choice.defender_card.id,
    )


def _skip_kidnap(state: MatchState, action: SkipKidnapAction) -> None:
    choice = state.pending_kidnap
    if choice is None:
        raise ValidationError("no_kidnap", "There is no kidnap choice pending.")
    if action.player != choice.player_id:
        raise ValidationError("not_kidnapper", "Only the winning attacker may skip the kidnap.")
    release_kidnap(state, choice)
    state.pending_kidnap = None
    state.phase = "reinforce"
    state.emit("kidnapSkipped", player=choice.player_id, from_player=choice.defender_id)


def _discard(state: MatchState, action: DiscardCardAction) -> None:
    player = _current(state, action.player)
    _require_phase(state, "discard")
    card = player.take_from_hand(action.card_id)
    if card is None:
        raise ValidationError("card_not_in_hand", f"Card {action.card_id} is not in your hand.")
    state.discard_pile.append(card)
    state.emit("cardDiscarded", player=player.id, card_id=card.id)
    _finish_turn(state)


def _activating_player(state: MatchState, action: ActivateAbilityAction) -> tuple[PlayerState, BattleRole | None]:
    """The acting player and the battle role their abilities act in.

    The defender of an undefended battle may use abilities before answering.
    """
    battle = state.active_battle
    if (
        state.phase == "battle"
        and battle is not None
        and battle.status == "awaiting_defense"
        and action.player == battle.defender.player_id
    ):
        defender = state.player(action.player)
        assert defender is not None
        return defender, "defending"
    player = _current(state, action.player)
    _require_phase(state, "play", "attack", "reinforce")
    return player, "attacking" if state.phase == "attack" else None


def _activate(state: MatchState, action: ActivateAbilityAction) -> None:
    player, role = _activating_player(state, action)
    unit = player.unit_of(action.card_id)
    if unit is None:
        raise ValidationError("card_not_in_unit", "Abilities can only be activated from your units.")
    card = unit.get(action.card_id)
    assert card is not None
    if not _activatable(state, card):
        raise ValidationError("no_activated_ability", f"Card {card.id} has no ability to activate.")
    ability = _activated_ability(state, card)
    if ability is None:
        raise ValidationError("ability_already_used", "This ability was already used this turn.")

    ctx = EffectContext(
        acting_player_id=player.id,
        target_card_id=action.target_card_id,
        selected_targets=tuple(action.selected_targets),
        target_player_id=action.target_player_id,
        battle_role=role,
    )
    result = EffectExecutor(state).execute_ability(ability, card, ctx)
    if not result.success:
        reason = result.reason or "ability_failed"
        raise ValidationError(reason, f"Ability could not be applied: {reason}.")
    if result.requires_input:
        _prompt(state, player.id, card, ability)
        return

    state.ability_uses.add(_use_key(state, card, ability))
    state.emit(
        "abilityActivated",
        player=player.id,
        card_id=card.id,
        ability=ability.type.value,
        results=_report(result.results),
    )


def _end_turn(state: MatchState, action: EndTurnAction) -> None:
    player = _current(state, action.player)
    if state.phase == "discard":
        if player.hand:
            raise ValidationError("must_discard", "Discard a card to end your turn.")
    else:
        _require_phase(state, "reinforce")
    _finish_turn(state)


_HANDLERS: dict[type, Callable[[MatchState, Action], None]] = {
    DrawCardAction: _draw,  # type: ignore[dict-item]
    PlayUnitAction: _play_unit,  # type: ignore[dict-item]
    ChooseTurnAction: _choose,  # type: ignore[dict-item]
    AttackUnitAction: _attack,  # type: ignore[dict-item]
    DefendWithCardAction: _defend,  # type: ignore[dict-item]
    ReinforceUnitAction: _reinforce,  # type: ignore[dict-item]
    KidnapAction: _kidnap,  # type: ignore[dict-item]
    SkipKidnapAction: _skip_kidnap,  # type: ignore[dict-item]
    DiscardCardAction: _discard,  # type: ignore[dict-item]
    ActivateAbilityAction: _activate,  # type: ignore[dict-item]
    EndTurnAction: _end_turn,  # type: ignore[dict-item]
}


def _rejection(action: Action, err: ValidationError) -> StepResult:
    event: Event = {
        "type": _REJECTION_EVENTS.get(err.code, "intentRejected"),
        "player": getattr(action, "player", None),
        "code": err.code,
        "reason": err.message,
        "to": [action.player],
    }
    return StepResult(ok=False, events=[event], error=err.message, code=err.code)


def step(state: MatchState, action: Action) -> StepResult:
    """Apply a single intent to the match state.

    This mutates `state` in place and is deterministic for a given
    (seed, action sequence). Rejected intents leave the state untouched and
    are not recorded in the action log.
    """
    if state.game_ended:
        return _rejection(action, ValidationError("game_over", "The match has already ended."))
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return _rejection(action, ValidationError("unknown_intent", "Unknown intent."))

    start = len(state.event_log)
    try:
        handler(state, action)
    except ValidationError as err:
        return _rejection(action, err)

    state.action_log.append(action)
    check_final_round(state)
    return StepResult(ok=True, events=state.event_log[start:])


def cancel_battle(state: MatchState, player: str | None = None) -> StepResult:
    """Abandon a declared battle that has not been defended yet.

    The attack is not consumed; the attacker is back in the attack phase.
    A failed cancel is rejected like an intent and addressed to `player`
    only, or to nobody when no player asked for it.
    """
    battle = state.active_battle
    if battle is None or battle.status != "awaiting_defense":
        err = ValidationError("no_battle", "There is no battle to cancel.")
        event: Event = {
            "type": "intentRejected",
            "player": player,
            "code": err.code,
            "reason": err.message,
            "to": [player] if player is not None else [],
        }
        return StepResult(ok=False, events=[event], error=err.message, code=err.code)
    start = len(state.event_log)
    state.active_battle = None
    state.phase = "attack"
    state.emit(
        "battleCancelled",
        attacker=battle.attacker.player_id,
        defender=battle.defender.player_id,
        target_unit_id=battle.target_unit_id,
    )
    return StepResult(ok=True, events=state.event_log[start:])


# ---------------------------------------------------------------------------
# Setup, replay and invariants
# ---------------------------------------------------------------------------


def new_match(
    catalog: AbilityCatalog,
    player_names: Sequence[str],
    seed: int,
    config: GameConfig | None = None,
    player_ids: Sequence[str] | None = None,
) -> MatchState:
    cfg = config or GameConfig()
    count = len(player_names)
    if count < cfg.min_players or count > cfg.max_players:
        raise ConfigError(f"Game requires {cfg.min_players}-{cfg.max_players} players, got {count}.")
    ids = list(player_ids) if player_ids is not None else [f"player-{i + 1}" for i in range(count)]
    if len(ids) != count or len(set(ids)) != count:
        raise ConfigError("Player ids must be unique and match the player names.")

    rng = random.Random(seed)
    deck = build_deck(catalog, cfg.deck_colors, cfg.cards_per_color, rng=rng)
    card_count = len(deck)
    hands, discard = deal(deck, count, cfg.hand_size, cfg.min_players, cfg.max_players)

    players = [PlayerState(id=pid, name=name, hand=hand) for pid, name, hand in zip(ids, player_names, hands)]
    state = MatchState(
        config=cfg,
        seed=seed,
        rng=rng,
        players=players,
        deck=deck,
        discard_pile=discard,
        card_count=card_count,
    )
    state.emit("matchStarted", players=ids, seed=seed)
    _start_turn(state)
    return state


def replay(
    catalog: AbilityCatalog,
    player_names: Sequence[str],
    seed: int,
    actions: Iterable[Action],
    config: GameConfig | None = None,
    player_ids: Sequence[str] | None = None,
) -> MatchState:
    state = new_match(catalog, player_names, seed, config=config, player_ids=player_ids)
    for a in actions:
        step(state, a)
        if state.game_ended:
            break
    return state


def check_invariants(state: MatchState) -> None:
    """Raise StateConsistencyError if the state breaks a structural invariant."""
    seen: set[str] = set()

    def note(card: Card) -> None:
        if card.id in seen:
            raise StateConsistencyError(f"Card {card.id} appears in more than one place.")
        seen.add(card.id)

    for p in state.players:
        for card in p.hand:
            note(card)
        for card in p.graveyard:
            note(card)
        for unit in p.units:
            if not unit.cards:
                raise StateConsistencyError(f"Unit {unit.id} has no cards.")
            if unit.player_id != p.id:
                raise StateConsistencyError(f"Unit {unit.id} is held by {p.id} but owned by {unit.player_id}.")
            expected = sum(state.value_of(c) for c in unit.cards)
            if unit.total_value != expected:
                raise StateConsistencyError(f"Unit {unit.id} total {unit.total_value} != {expected}.")
            colors = {c.color for c in unit.cards}
            if "white" in colors and "black" in colors:
                raise StateConsistencyError(f"Unit {unit.id} mixes white and black.")
            for card in unit.cards:
                note(card)
    for card in state.deck:
        note(card)
    for card in state.discard_pile:
        note(card)
    if state.pending_kidnap is not None:
        note(state.pending_kidnap.defender_card)
        if state.phase != "battle":
            raise StateConsistencyError("A kidnap choice is pending outside the battle phase.")
    if len(seen) != state.card_count:
        raise StateConsistencyError(f"{len(seen)} cards in play, expected {state.card_count}.")
