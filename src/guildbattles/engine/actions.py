from __future__ import annotations

from dataclasses import dataclass

from .state import ActionChoice


@dataclass(frozen=True)
class DrawCardAction:
    player: str
    from_discard: bool = False


@dataclass(frozen=True)
class PlayUnitAction:
    player: str
    card_ids: tuple[str, ...]


@dataclass(frozen=True)
class ChooseTurnAction:
    player: str
    action: ActionChoice


@dataclass(frozen=True)
class AttackUnitAction:
    player: str
    attacker_card_id: str
    target_unit_id: str


@dataclass(frozen=True)
class DefendWithCardAction:
    player: str
    card_id: str
    from_hand: bool


@dataclass(frozen=True)
class ReinforceUnitAction:
    player: str
    card_id: str
    unit_id: str


@dataclass(frozen=True)
class KidnapAction:
    player: str
    card_id: str


@dataclass(frozen=True)
class SkipKidnapAction:
    player: str


@dataclass(frozen=True)
class DiscardCardAction:
    player: str
    card_id: str


@dataclass(frozen=True)
class ActivateAbilityAction:
    player: str
    card_id: str
    target_card_id: str | None = None
    selected_targets: tuple[str, ...] = ()
    target_player_id: str | None = None


@dataclass(frozen=True)
class EndTurnAction:
    player: str


Action = (
    DrawCardAction
    | PlayUnitAction
    | ChooseTurnAction
    | AttackUnitAction
    | DefendWithCardAction
    | ReinforceUnitAction
    | KidnapAction
    | SkipKidnapAction
    | DiscardCardAction
    | ActivateAbilityAction
    | EndTurnAction
)
