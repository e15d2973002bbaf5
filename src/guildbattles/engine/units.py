"""Unit composition rules.

White and black never share a unit. Gray is color-agnostic. Otherwise all
non-gray members share one color, or white is mixed with exactly one other
color family. A unit made only of gray cards is not a valid unit.
"""

from __future__ import annotations

from collections.abc import Sequence

from .state import Unit
from .types import Card, ColorMixing


def mixing_allowance(cards: Sequence[Card]) -> int:
    """Off-color cards the group's color-mixing abilities let in.

    Stacking allowances add up; non-stacking ones count once (the largest).
    """
    stacked = 0
    single = 0
    for card in cards:
        ability = card.parsed_ability
        if ability is None:
            continue
        for eff in ability.effects:
            if not isinstance(eff, ColorMixing):
                continue
            if eff.stacks:
                stacked += eff.allowance
            else:
                single = max(single, eff.allowance)
    return stacked + single


def colors_compatible(cards: Sequence[Card], allowance: int = 0) -> bool:
    colors = [c.color for c in cards]
    if "white" in colors and "black" in colors:
        return False
    non_gray = [c for c in colors if c != "gray"]
    if not non_gray:
        return False
    families = set(non_gray)
    if len(families) == 1:
        return True
    if "white" in families and len(families - {"white"}) == 1:
        return True
    if allowance <= 0:
        return False

    candidates = [{c} for c in families]
    if "white" in families:
        candidates += [{"white", c} for c in families if c not in ("white", "black")]
    off_color = min(sum(1 for c in non_gray if c not in fam) for fam in candidates)
    return off_color <= allowance


def can_form_unit(cards: Sequence[Card], min_size: int = 3) -> bool:
    if len(cards) < min_size:
        return False
    if len({c.id for c in cards}) != len(cards):
        return False
    return colors_compatible(cards, mixing_allowance(cards))


def can_add_card_to_unit(card: Card, unit: Unit) -> bool:
    # Reinforcement has no size minimum, only the color check.
    if unit.get(card.id) is not None:
        return False
    if card.color == "gray":
        return True
    combined = [*unit.cards, card]
    return colors_compatible(combined, mixing_allowance(combined))
