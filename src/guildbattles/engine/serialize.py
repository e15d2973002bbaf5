"""Explicit serialization boundary for match state and intents.

Only the fields listed here leave the engine. Other players' hands are reduced
to a count in per-player views.
"""

from __future__ import annotations

from collections.abc import Mapping

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
from .errors import ValidationError
from .state import BattleState, KidnapChoice, MatchState, PlayerState, Unit
from .types import Card


def action_to_dict(a: Action) -> dict[str, object]:
    if isinstance(a, DrawCardAction):
        return {"type": "drawCard", "player": a.player, "fromDiscard": a.from_discard}
    if isinstance(a, PlayUnitAction):
        return {"type": "playUnit", "player": a.player, "cardIds": list(a.card_ids)}
    if isinstance(a, ChooseTurnAction):
        return {"type": "chooseAction", "player": a.player, "action": a.action}
    if isinstance(a, AttackUnitAction):
        return {
            "type": "attackUnit",
            "player": a.player,
            "attackerCardId": a.attacker_card_id,
            "targetUnitId": a.target_unit_id,
        }
    if isinstance(a, DefendWithCardAction):
        return {"type": "defendWithCard", "player": a.player, "cardId": a.card_id, "fromHand": a.from_hand}
    if isinstance(a, ReinforceUnitAction):
        return {"type": "reinforceUnit", "player": a.player, "cardId": a.card_id, "unitId": a.unit_id}
    if isinstance(a, KidnapAction):
        return {"type": "kidnap", "player": a.player, "cardId": a.card_id}
    if isinstance(a, SkipKidnapAction):
        return {"type": "skipKidnap", "player": a.player}
    if isinstance(a, DiscardCardAction):
        return {"type": "discardCard", "player": a.player, "cardId": a.card_id}
    if isinstance(a, ActivateAbilityAction):
        return {
            "type": "activateAbility",
            "player": a.player,
            "cardId": a.card_id,
            "targetSelections": {
                "targetCardId": a.target_card_id,
                "selectedTargets": list(a.selected_targets),
                "targetPlayerId": a.target_player_id,
            },
        }
    if isinstance(a, EndTurnAction):
        return {"type": "endTurn", "player": a.player}
    # should be unreachable
    return {"type": "unknown"}


def _str(payload: Mapping[str, object], key: str) -> str:
    v = payload.get(key)
    if not isinstance(v, str):
        raise ValidationError("bad_payload", f"Expected string for {key}.")
    return v


def _bool(payload: Mapping[str, object], key: str, default: bool = False) -> bool:
    v = payload.get(key, default)
    if not isinstance(v, bool):
        raise ValidationError("bad_payload", f"Expected boolean for {key}.")
    return v


def _str_list(payload: Mapping[str, object], key: str) -> tuple[str, ...]:
    v = payload.get(key, [])
    if not isinstance(v, list) or not all(isinstance(x, str) for x in v):
        raise ValidationError("bad_payload", f"Expected a list of strings for {key}.")
    return tuple(v)


def action_from_dict(data: Mapping[str, object], player: str | None = None) -> Action:
    """Decode a wire intent. `player`, when given, overrides any id in the payload."""
    kind = data.get("type")
    actor = player if player is not None else _str(data, "player")

    if kind == "drawCard":
        return DrawCardAction(player=actor, from_discard=_bool(data, "fromDiscard"))
    if kind == "playUnit":
        return PlayUnitAction(player=actor, card_ids=_str_list(data, "cardIds"))
    if kind == "chooseAction":
        choice = data.get("action")
        if choice not in ("attack", "discard"):
            raise ValidationError("bad_payload", "action must be 'attack' or 'discard'.")
        return ChooseTurnAction(player=actor, action=choice)  # type: ignore[arg-type]
    if kind == "attackUnit":
        return AttackUnitAction(
            player=actor,
            attacker_card_id=_str(data, "attackerCardId"),
            target_unit_id=_str(data, "targetUnitId"),
        )
    if kind == "defendWithCard":
        return DefendWithCardAction(player=actor, card_id=_str(data, "cardId"), from_hand=_bool(data, "fromHand"))
    if kind == "reinforceUnit":
        return ReinforceUnitAction(player=actor, card_id=_str(data, "cardId"), unit_id=_str(data, "unitId"))
    if kind == "kidnap":
        return KidnapAction(player=actor, card_id=_str(data, "cardId"))
    if kind == "skipKidnap":
        return SkipKidnapAction(player=actor)
    if kind == "discardCard":
        return DiscardCardAction(player=actor, card_id=_str(data, "cardId"))
    if kind == "activateAbility":
        raw = data.get("targetSelections") or {}
        if not isinstance(raw, Mapping):
            raise ValidationError("bad_payload", "targetSelections must be an object.")
        target_card = raw.get("targetCardId")
        target_player = raw.get("targetPlayerId")
        return ActivateAbilityAction(
            player=actor,
            card_id=_str(data, "cardId"),
            target_card_id=target_card if isinstance(target_card, str) else None,
            selected_targets=_str_list(raw, "selectedTargets"),
            target_player_id=target_player if isinstance(target_player, str) else None,
        )
    if kind == "endTurn":
        return EndTurnAction(player=actor)
    raise ValidationError("unknown_intent", f"Unknown intent type {kind!r}.")


def _card_to_dict(state: MatchState, c: Card) -> dict[str, object]:
    return {
        "id": c.id,
        "name": c.name,
        "color": c.color,
        "power": state.power_of(c),
        "value": state.value_of(c),
        "base_power": c.power,
        "base_value": c.value,
        "ability": c.ability_text,
        "ability_type": c.parsed_ability.type.value if c.parsed_ability is not None else None,
    }


def _unit_to_dict(state: MatchState, u: Unit) -> dict[str, object]:
    return {
        "id": u.id,
        "player_id": u.player_id,
        "cards": [_card_to_dict(state, c) for c in u.cards],
        "total_value": u.total_value,
    }


def _player_to_dict(state: MatchState, p: PlayerState, show_hand: bool) -> dict[str, object]:
    out: dict[str, object] = {
        "id": p.id,
        "name": p.name,
        "hand_count": len(p.hand),
        "units": [_unit_to_dict(state, u) for u in p.units],
        "graveyard": [_card_to_dict(state, c) for c in p.graveyard],
        "score": state.score(p),
    }
    if show_hand:
        out["hand"] = [_card_to_dict(state, c) for c in p.hand]
    return out


def _battle_to_dict(b: BattleState | None) -> dict[str, object] | None:
    if b is None:
        return None
    return {
        "attacker": {
            "player_id": b.attacker.player_id,
            "card_id": b.attacker.card.id if b.attacker.card is not None else None,
            "from_hand": b.attacker.from_hand,
        },
        "defender": {
            "player_id": b.defender.player_id,
            "card_id": b.defender.card.id if b.defender.card is not None else None,
            "from_hand": b.defender.from_hand,
        },
        "target_unit_id": b.target_unit_id,
        "status": b.status,
    }


def _kidnap_to_dict(k: KidnapChoice | None) -> dict[str, object] | None:
    if k is None:
        return None
    return {
        "player_id": k.player_id,
        "defender_id": k.defender_id,
        "target_unit_id": k.target_unit_id,
        "defender_card_id": k.defender_card.id,
        "available": list(k.available),
    }


def _common(state: MatchState) -> dict[str, object]:
    return {
        "seed": state.seed,
        "turn_number": state.turn_number,
        "current_player": state.current_player.id,
        "phase": state.phase,
        "action_chosen": state.action_chosen,
        "cards_drawn_this_turn": state.cards_drawn_this_turn,
        "attacks_used_this_turn": state.attacks_used_this_turn,
        "unit_played_this_turn": state.unit_played_this_turn,
        "deck_count": len(state.deck),
        "discard_top": _card_to_dict(state, state.discard_pile[-1]) if state.discard_pile else None,
        "discard_count": len(state.discard_pile),
        "final_round": {
            "trigger_player_id": state.final_round_trigger_player_id,
            "turns_remaining": state.final_round_turns_remaining,
        },
        "game_ended": state.game_ended,
        "winners": list(state.winners),
        "final_scores": list(state.final_scores),
        "battle": _battle_to_dict(state.active_battle),
    }


def snapshot(state: MatchState) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the full match state."""
    out = _common(state)
    out["players"] = [_player_to_dict(state, p, show_hand=True) for p in state.players]
    out["deck"] = [c.id for c in state.deck]
    out["discard_pile"] = [c.id for c in state.discard_pile]
    out["kidnap"] = _kidnap_to_dict(state.pending_kidnap)
    out["action_log"] = [action_to_dict(a) for a in state.action_log]  # type: ignore[arg-type]
    return out


def player_view(state: MatchState, viewer_id: str) -> dict[str, object]:
    """Snapshot as seen by one player: only their own hand is listed."""
    out = _common(state)
    out["viewer"] = viewer_id
    out["players"] = [_player_to_dict(state, p, show_hand=p.id == viewer_id) for p in state.players]
    kidnap = state.pending_kidnap
    out["kidnap"] = _kidnap_to_dict(kidnap) if kidnap is not None and kidnap.player_id == viewer_id else None
    return out
