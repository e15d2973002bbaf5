from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Union

Color = Literal["green", "blue", "red", "black", "white", "gray"]
COLORS: tuple[Color, ...] = ("green", "blue", "red", "black", "white", "gray")

Attribute = Literal["power", "value"]
Operation = Literal["double", "increase", "decrease", "set"]
Timing = Literal["when_played", "when_attacking", "when_defending", "when_battling", "on_defeat"]
Duration = Literal["this_turn", "permanent"]
EffectTarget = Literal["this_card", "target_card"]
TargetKind = Literal["unit", "card"]
Source = Literal["hand", "unit", "graveyard"]
Activation = Literal["passive", "triggered", "activated"]
BattleRole = Literal["attacking", "defending"]


class AbilityType(str, Enum):
    PLAY_TRIGGER = "play_trigger"
    BATTLE_TRIGGER = "battle_trigger"
    DEFEAT_TRIGGER = "defeat_trigger"
    CONDITIONAL_POWER = "conditional_power_modifier"
    SITUATIONAL = "situational_modifier"
    IMMUNITY = "immunity"
    DEFEND_OTHERS = "defend_others"
    COLOR_MIXING = "color_mixing"
    CONDITIONAL_MANUAL_POWER = "conditional_manual_power"
    MANUAL_POWER_BOOST = "manual_power_boost"
    ACTIVATED_ACTION = "activated_action"
    GENERIC = "generic"


@dataclass(frozen=True)
class ModifyAttribute:
    target: EffectTarget
    attribute: Attribute
    operation: Operation
    amount: int = 1
    timing: Timing | None = None
    duration: Duration = "permanent"
    scope: BattleRole | None = None
    same_unit: bool = False
    kind: Literal["modify_attribute"] = "modify_attribute"


@dataclass(frozen=True)
class Destroy:
    target_kind: TargetKind
    amount: int = 1
    source: Source | None = None
    random: bool = False
    kind: Literal["destroy"] = "destroy"


@dataclass(frozen=True)
class Steal:
    target_kind: TargetKind
    amount: int = 1
    source: Source = "hand"
    random: bool = True
    kind: Literal["steal"] = "steal"


@dataclass(frozen=True)
class DrawCard:
    amount: int = 1
    kind: Literal["draw_card"] = "draw_card"


@dataclass(frozen=True)
class Discard:
    amount: int = 1
    opponent: bool = True
    kind: Literal["discard"] = "discard"


@dataclass(frozen=True)
class Revive:
    amount: int = 1
    kind: Literal["revive"] = "revive"


@dataclass(frozen=True)
class CopyAbility:
    kind: Literal["copy_ability"] = "copy_ability"


@dataclass(frozen=True)
class Immunity:
    color_blocked: Color
    kind: Literal["immunity"] = "immunity"


@dataclass(frozen=True)
class DefendOthers:
    kind: Literal["defend_others"] = "defend_others"


@dataclass(frozen=True)
class ColorMixing:
    allowance: int = 1
    stacks: bool = False
    kind: Literal["color_mixing"] = "color_mixing"


@dataclass(frozen=True)
class Generic:
    description: str
    kind: Literal["generic"] = "generic"


Effect = Union[
    ModifyAttribute,
    Destroy,
    Steal,
    DrawCard,
    Discard,
    Revive,
    CopyAbility,
    Immunity,
    DefendOthers,
    ColorMixing,
    Generic,
]


@dataclass(frozen=True)
class TargetColor:
    color: Color
    kind: Literal["target_color"] = "target_color"


@dataclass(frozen=True)
class RequiresItem:
    item: str | None
    kind: Literal["requires_item"] = "requires_item"


Condition = Union[TargetColor, RequiresItem]


@dataclass(frozen=True)
class Ability:
    original_text: str
    type: AbilityType
    activation: Activation
    conditions: tuple[Condition, ...] = ()
    effects: tuple[Effect, ...] = ()

    def target_color(self) -> Color | None:
        for cond in self.conditions:
            if isinstance(cond, TargetColor):
                return cond.color
        return None

    def immune_to(self, color: str) -> bool:
        return any(isinstance(e, Immunity) and e.color_blocked == color for e in self.effects)


@dataclass(frozen=True)
class Card:
    """Immutable card record. Attribute changes live in the match ledger."""

    id: str
    name: str
    color: Color
    power: int
    value: int
    ability_text: str = ""
    parsed_ability: Ability | None = field(default=None, compare=False)


@dataclass(frozen=True)
class AbilityCatalog:
    """Canonical ability table: legacy text -> standardized text (None = removed)."""

    standardized: dict[str, str | None]
    card_names: tuple[str, ...]

    def standardize(self, text: str) -> str | None:
        if text in self.standardized:
            return self.standardized[text]
        return text

    def active_texts(self) -> list[str]:
        return [t for t in self.standardized.values() if t is not None]

    def removed_texts(self) -> list[str]:
        return [k for k, v in self.standardized.items() if v is None]
