"""Battle resolution and post-battle disposition.

Power comparison is a total order: the attacker wins ties.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from .effects import EffectContext, EffectExecutor, EffectResult
from .state import BattleState, KidnapChoice, MatchState
from .types import Ability, AbilityType, BattleRole, Card, Discard, ModifyAttribute, Revive, Steal

Winner = Literal["attacker", "defender"]


@dataclass
class BattleOutcome:
    winner: Winner
    attacker_power: int
    defender_power: int
    modified_attacker_power: int
    modified_defender_power: int
    ability_results: list[EffectResult] = field(default_factory=list)


def decide(attacker_power: int, defender_power: int) -> Winner:
    return "attacker" if attacker_power >= defender_power else "defender"


def _triggers(effect: ModifyAttribute, ability: Ability, role: BattleRole, opponent: Card) -> bool:
    if effect.timing == "when_attacking":
        return role == "attacking"
    if effect.timing == "when_defending":
        return role == "defending"
    if effect.timing == "when_battling":
        color = ability.target_color()
        return color is None or opponent.color == color
    return False


def _apply_operation(power: int, effect: ModifyAttribute) -> int:
    if effect.operation == "double":
        return power * 2
    if effect.operation == "increase":
        return power + effect.amount
    if effect.operation == "decrease":
        return max(0, power - effect.amount)
    return effect.amount


def modified_power(state: MatchState, card: Card, opponent: Card, role: BattleRole) -> int:
    """Effective power plus the card's battle-time modifiers. Nothing is persisted."""
    power = state.power_of(card)
    for ability in state.abilities_of(card):
        for eff in ability.effects:
            if not isinstance(eff, ModifyAttribute):
                continue
            if eff.attribute != "power" or eff.target != "this_card":
                continue
            if _triggers(eff, ability, role, opponent):
                power = _apply_operation(power, eff)
    return power


def _run_battle_triggers(
    state: MatchState, card: Card, owner_id: str, opponent_id: str, role: BattleRole
) -> list[EffectResult]:
    executor = EffectExecutor(state)
    results: list[EffectResult] = []
    for ability in state.abilities_of(card):
        if ability.type != AbilityType.BATTLE_TRIGGER:
            continue
        for eff in ability.effects:
            if isinstance(eff, ModifyAttribute):
                continue
            if isinstance(eff, (Discard, Revive)) or (isinstance(eff, Steal) and not eff.random):
                state.emit(
                    "abilityPrompt",
                    to=[owner_id],
                    player=owner_id,
                    card_id=card.id,
                    ability=ability.type.value,
                    text=ability.original_text,
                )
                continue
            ctx = EffectContext(acting_player_id=owner_id, target_player_id=opponent_id, battle_role=role)
            results.append(executor.apply(eff, card, ctx))
    return results


def _run_defeat_triggers(state: MatchState, card: Card, owner_id: str) -> list[EffectResult]:
    executor = EffectExecutor(state)
    results: list[EffectResult] = []
    for ability in state.abilities_of(card):
        for eff in ability.effects:
            if isinstance(eff, ModifyAttribute) and eff.timing == "on_defeat":
                results.append(executor.apply(eff, card, EffectContext(acting_player_id=owner_id)))
    return results


def resolve_battle(state: MatchState, battle: BattleState) -> BattleOutcome:
    """Compare modified powers. Cards are not moved here."""
    attacker = battle.attacker
    defender = battle.defender
    assert attacker.card is not None and defender.card is not None

    a_power = modified_power(state, attacker.card, defender.card, "attacking")
    d_power = modified_power(state, defender.card, attacker.card, "defending")
    outcome = BattleOutcome(
        winner=decide(a_power, d_power),
        attacker_power=state.power_of(attacker.card),
        defender_power=state.power_of(defender.card),
        modified_attacker_power=a_power,
        modified_defender_power=d_power,
    )
    battle.status = "resolved"
    return outcome


def apply_battle_effects(state: MatchState, battle: BattleState, outcome: BattleOutcome) -> list[EffectResult]:
    """Run battle-trigger effects for both cards, then the winner's defeat trigger."""
    attacker = battle.attacker
    defender = battle.defender
    assert attacker.card is not None and defender.card is not None

    results = _run_battle_triggers(state, attacker.card, attacker.player_id, defender.player_id, "attacking")
    results += _run_battle_triggers(state, defender.card, defender.player_id, attacker.player_id, "defending")
    if outcome.winner == "attacker":
        results += _run_defeat_triggers(state, attacker.card, attacker.player_id)
    else:
        results += _run_defeat_triggers(state, defender.card, defender.player_id)
    outcome.ability_results.extend(results)
    return results


def attacker_wins(state: MatchState, battle: BattleState) -> KidnapChoice | None:
    """Pull the defender's card out of play and offer the kidnap choice.

    The choice covers the defender's card plus whatever is left of the target
    unit. The defender's card stays out of every zone until the choice settles.
    """
    defender = state.player(battle.defender.player_id)
    card = battle.defender.card
    if defender is None or card is None:
        return None

    taken = state.take_card(card.id)
    if taken is None:
        return None

    available = [card.id]
    found = state.find_unit(battle.target_unit_id)
    if found is not None:
        available.extend(found[1].card_ids())
    return KidnapChoice(
        player_id=battle.attacker.player_id,
        defender_id=defender.id,
        target_unit_id=battle.target_unit_id,
        defender_card=card,
        available=available,
    )


def defender_wins(state: MatchState, battle: BattleState) -> Card | None:
    """Send the attacker's card to its owner's graveyard."""
    attacker = state.player(battle.attacker.player_id)
    card = battle.attacker.card
    if attacker is None or card is None:
        return None
    taken = state.take_card(card.id)
    if taken is None:
        return None
    attacker.graveyard.append(taken[1])
    return taken[1]


def take_kidnap(state: MatchState, choice: KidnapChoice, card_id: str) -> Card | None:
    kidnapper = state.player(choice.player_id)
    defender = state.player(choice.defender_id)
    if kidnapper is None or defender is None or card_id not in choice.available:
        return None

    if card_id == choice.defender_card.id:
        card = choice.defender_card
    else:
        found = state.find_unit(choice.target_unit_id)
        if found is None:
            return None
        owner, unit = found
        removed = state.remove_from_unit(owner, unit, card_id)
        if removed is None:
            return None
        card = removed
        defender.graveyard.append(choice.defender_card)
    kidnapper.hand.append(card)
    return card


def release_kidnap(state: MatchState, choice: KidnapChoice) -> None:
    defender = state.player(choice.defender_id)
    if defender is not None:
        defender.graveyard.append(choice.defender_card)
