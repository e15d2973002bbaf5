"""Deterministic, headless rules engine for Guild Battles.

IMPORTANT: This package must never import transport or UI code.
"""

from .abilities import parse_ability
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
from .deck import build_deck, deal, shuffle
from .errors import ConfigError, GameError, SetupError, StateConsistencyError, ValidationError
from .match import (
    StepResult,
    available_abilities,
    cancel_battle,
    check_final_round,
    check_invariants,
    new_match,
    replay,
    step,
)
from .state import GameConfig, MatchState
from .types import Ability, AbilityCatalog, AbilityType, Card
from .units import can_add_card_to_unit, can_form_unit

__all__ = [
    "Ability",
    "AbilityCatalog",
    "AbilityType",
    "Action",
    "ActivateAbilityAction",
    "AttackUnitAction",
    "Card",
    "ChooseTurnAction",
    "ConfigError",
    "DefendWithCardAction",
    "DiscardCardAction",
    "DrawCardAction",
    "EndTurnAction",
    "GameConfig",
    "GameError",
    "KidnapAction",
    "MatchState",
    "PlayUnitAction",
    "ReinforceUnitAction",
    "SetupError",
    "SkipKidnapAction",
    "StateConsistencyError",
    "StepResult",
    "ValidationError",
    "available_abilities",
    "build_deck",
    "can_add_card_to_unit",
    "can_form_unit",
    "cancel_battle",
    "check_final_round",
    "check_invariants",
    "deal",
    "new_match",
    "parse_ability",
    "replay",
    "shuffle",
    "step",
]
