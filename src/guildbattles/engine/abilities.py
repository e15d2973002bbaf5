"""Ability text parser.

Turns the free-text ability printed on a card into a typed `Ability`. Parsing is
pure and never raises: text that matches no category degrades to an inert
`Generic` ability so that bad card data cannot break a match.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from .types import (
    COLORS,
    Ability,
    AbilityType,
    Activation,
    BattleRole,
    Color,
    ColorMixing,
    Condition,
    CopyAbility,
    DefendOthers,
    Destroy,
    Discard,
    DrawCard,
    Effect,
    Generic,
    Immunity,
    ModifyAttribute,
    RequiresItem,
    Revive,
    Steal,
    TargetColor,
)

_PLAY_TRIGGER = re.compile(r"when this card is played into a (?:party|unit)|when played")
_VS = re.compile(r"\bvs\b|\bagainst\b|when battling")
_COLOR_AFTER = re.compile(r"(?:\bvs\.?|\bagainst|\bbattling)\s+(\w+)")
_IMMUNE_COLOR = re.compile(r"immune to (?:abilities from )?(\w+)")
_DEFEND_OTHERS = re.compile(r"can defend other (?:parties|units)")
_MIXING = re.compile(r"cards? of a different colou?r")
_BOOST_SOURCE = re.compile(r"card from this (?:party|unit)")


def _normalize(text: str) -> str:
    return " ".join(text.lower().strip().split())


def _amount(text: str, patterns: Sequence[str], default: int = 1) -> int:
    """First integer found after any of the keyword patterns, in text order."""
    best: tuple[int, int] | None = None
    for pat in patterns:
        m = re.search(pat + r"\s*(\d+)", text)
        if m and (best is None or m.start() < best[0]):
            best = (m.start(), int(m.group(1)))
    return best[1] if best is not None else default


def _as_color(word: str | None) -> Color | None:
    if word is None:
        return None
    for c in COLORS:
        if word == c:
            return c
    return None


def _color_after_vs(text: str) -> Color | None:
    m = _COLOR_AFTER.search(text)
    return _as_color(m.group(1)) if m else None


def _role_scope(text: str) -> BattleRole | None:
    if "defending" in text:
        return "defending"
    if "attacking" in text:
        return "attacking"
    return None


# ---------------------------------------------------------------------------
# Category parsers. Each returns (conditions, effects).
# ---------------------------------------------------------------------------

Parsed = tuple[list[Condition], list[Effect]]


def _parse_play_trigger(text: str) -> Parsed:
    attribute = "power" if ("power" in text and "value" not in text) else "value"
    amount = _amount(text, [r"\+", r"\bby"])
    return [], [
        ModifyAttribute(
            target="this_card",
            attribute=attribute,
            operation="increase",
            amount=amount,
            timing="when_played",
        )
    ]


def _parse_conditional(text: str) -> Parsed:
    color = _color_after_vs(text)
    if color is None:
        return [], []
    attribute = "value" if ("value" in text and "power" not in text) else "power"
    return [TargetColor(color=color)], [
        ModifyAttribute(
            target="this_card",
            attribute=attribute,
            operation="double",
            timing="when_battling",
        )
    ]


def _parse_situational(text: str) -> Parsed:
    timing = "when_attacking" if "when attacking" in text else "when_defending"
    return [], [
        ModifyAttribute(
            target="this_card",
            attribute="power",
            operation="increase",
            amount=_amount(text, [r"\+", r"\bby"]),
            timing=timing,
        )
    ]


def _parse_immunity(text: str) -> Parsed:
    m = _IMMUNE_COLOR.search(text)
    color = _as_color(m.group(1)) if m else None
    if color is None:
        return [], []
    return [], [Immunity(color_blocked=color)]


def _parse_defeat_trigger(text: str) -> Parsed:
    if "gains" not in text or "value" not in text:
        return [], []
    return [], [
        ModifyAttribute(
            target="this_card",
            attribute="value",
            operation="increase",
            amount=_amount(text, [r"\bgains"]),
            timing="on_defeat",
        )
    ]


def _parse_color_mixing(text: str) -> Parsed:
    return [], [ColorMixing(allowance=_amount(text, [r"\ballows"]), stacks="can stack" in text)]


def _parse_conditional_manual_power(text: str) -> Parsed:
    m = re.search(r"if you have (\w+)", text)
    doubling = "double" in text
    return [RequiresItem(item=m.group(1) if m else None)], [
        ModifyAttribute(
            target="target_card",
            attribute="power",
            operation="double" if doubling else "increase",
            amount=2 if doubling else 1,
            duration="this_turn",
            scope=_role_scope(text),
        )
    ]


def _parse_manual_boost(text: str) -> Parsed:
    return [], [
        ModifyAttribute(
            target="target_card",
            attribute="power",
            operation="increase",
            amount=_amount(text, [r"\bby"]),
            duration="this_turn",
            scope=_role_scope(text),
            same_unit=True,
        )
    ]


def _parse_destroy(text: str) -> Effect:
    amount = _amount(text, [r"\bdestroy"])
    if "card" not in text:
        return Destroy(target_kind="unit", amount=amount)
    source = None
    if "hand" in text:
        source = "hand"
    elif "unit" in text or "party" in text:
        source = "unit"
    return Destroy(target_kind="card", amount=amount, source=source, random="random" in text)


def _parse_steal(text: str) -> Effect:
    amount = _amount(text, [r"\bsteal"])
    if "unit" in text or "party" in text:
        return Steal(target_kind="card", amount=amount, source="unit", random=False)
    randomly = "random" in text or "target" not in text
    return Steal(target_kind="card", amount=amount, source="hand", random=randomly)


def _parse_draw(text: str) -> Effect:
    return DrawCard(amount=_amount(text, [r"\bdraw"]))


def _parse_discard(text: str) -> Effect:
    return Discard(amount=_amount(text, [r"\bdiscards?"]), opponent="opponent" in text)


def _parse_revive(text: str) -> Effect:
    return Revive(amount=_amount(text, [r"\bmove", r"\brevive"]))


def _parse_temporary(text: str) -> Effect:
    return ModifyAttribute(
        target="target_card",
        attribute="value" if "value" in text else "power",
        operation="increase",
        amount=_amount(text, [r"\+", r"\bby"]),
        duration="this_turn",
    )


def _parse_battle_trigger(text: str) -> Parsed:
    if "steal" in text:
        return [], [_parse_steal(text)]
    if "discard" in text:
        return [], [_parse_discard(text)]
    if "double" in text:
        return _parse_conditional(text)
    return [], []


_ACTIONS: list[tuple[Callable[[str], bool], Callable[[str], Effect]]] = [
    (lambda t: "copy" in t and "ability" in t, lambda t: CopyAbility()),
    (lambda t: "destroy" in t, _parse_destroy),
    (lambda t: "steal" in t, _parse_steal),
    (lambda t: re.search(r"\bdraw", t) is not None, _parse_draw),
    (lambda t: "discard" in t, _parse_discard),
    (lambda t: "revive" in t or ("graveyard" in t and "hand" in t), _parse_revive),
    (lambda t: "this turn" in t and ("+" in t or "increase" in t), _parse_temporary),
]


def _parse_action(text: str) -> Effect | None:
    for matches, build in _ACTIONS:
        if matches(text):
            return build(text)
    return None


def _ability(
    original: str, atype: AbilityType, activation: Activation, parsed: Parsed
) -> Ability:
    conditions, effects = parsed
    return Ability(
        original_text=original,
        type=atype,
        activation=activation,
        conditions=tuple(conditions),
        effects=tuple(effects),
    )


def parse_ability(text: str) -> Ability:
    """Classify `text` and build its ability. The first matching category wins."""
    t = _normalize(text or "")

    if _PLAY_TRIGGER.search(t):
        return _ability(text, AbilityType.PLAY_TRIGGER, "triggered", _parse_play_trigger(t))
    if "when this card is in a battle" in t:
        return _ability(text, AbilityType.BATTLE_TRIGGER, "triggered", _parse_battle_trigger(t))
    if "every time this card defeats" in t:
        return _ability(text, AbilityType.DEFEAT_TRIGGER, "triggered", _parse_defeat_trigger(t))
    if "double" in t and _VS.search(t):
        return _ability(text, AbilityType.CONDITIONAL_POWER, "triggered", _parse_conditional(t))
    if ("when attacking" in t or "when defending" in t) and (
        "+" in t or ("increase" in t and "power" in t)
    ):
        return _ability(text, AbilityType.SITUATIONAL, "triggered", _parse_situational(t))
    if "immune to" in t:
        return _ability(text, AbilityType.IMMUNITY, "passive", _parse_immunity(t))
    if _DEFEND_OTHERS.search(t):
        return _ability(text, AbilityType.DEFEND_OTHERS, "passive", ([], [DefendOthers()]))
    if "allows" in t and _MIXING.search(t):
        return _ability(text, AbilityType.COLOR_MIXING, "passive", _parse_color_mixing(t))
    if "if you have" in t and "double power" in t:
        return _ability(
            text,
            AbilityType.CONDITIONAL_MANUAL_POWER,
            "activated",
            _parse_conditional_manual_power(t),
        )
    if "increase the power of" in t and _BOOST_SOURCE.search(t):
        return _ability(text, AbilityType.MANUAL_POWER_BOOST, "activated", _parse_manual_boost(t))

    action = _parse_action(t)
    if action is not None:
        return _ability(text, AbilityType.ACTIVATED_ACTION, "activated", ([], [action]))

    return _ability(text, AbilityType.GENERIC, "activated", ([], [Generic(description=t)]))
