from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

from .abilities import parse_ability
from .errors import ConfigError, SetupError
from .types import COLORS, AbilityCatalog, Card

T = TypeVar("T")

MIN_PLAYERS = 2
MAX_PLAYERS = 6


def shuffle(cards: Sequence[T], rng: random.Random) -> list[T]:
    """Fisher-Yates shuffle into a new list. The input is left untouched."""
    out = list(cards)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def make_card(
    card_id: str,
    name: str,
    color: str,
    power: int,
    value: int,
    ability_text: str,
    catalog: AbilityCatalog | None = None,
) -> Card:
    """Build a card, parsing its ability once.

    With a catalog, legacy ability text is first mapped to its standardized
    form; a removed ability leaves the card without one.
    """
    if catalog is not None:
        ability_text = catalog.standardize(ability_text) or ""
    return Card(
        id=card_id,
        name=name,
        color=color,  # type: ignore[arg-type]
        power=power,
        value=value,
        ability_text=ability_text,
        parsed_ability=parse_ability(ability_text) if ability_text else None,
    )


def build_deck(
    catalog: AbilityCatalog,
    color_count: int = 5,
    per_color: int = 10,
    rng_seed: int | None = None,
    rng: random.Random | None = None,
) -> list[Card]:
    """Build a shuffled deck of `color_count * per_color` cards.

    Deterministic for a given `rng_seed`. Without a seed the supplied `rng` (or
    a fresh unseeded one) is used.
    """
    if color_count <= 0 or per_color <= 0:
        raise ConfigError("Deck color count and cards per color must be positive.")
    if color_count > len(COLORS):
        raise ConfigError(f"At most {len(COLORS)} colors are available.")
    # legacy keys of the abilities still in play; make_card standardizes them
    texts = [legacy for legacy, text in catalog.standardized.items() if text is not None]
    if not texts:
        raise ConfigError("Ability catalog has no active abilities.")
    names = catalog.card_names or ("Card",)

    if rng_seed is not None:
        rng = random.Random(rng_seed)
    elif rng is None:
        rng = random.Random()

    cards: list[Card] = []
    counter = 0
    for color in COLORS[:color_count]:
        for _ in range(per_color):
            cards.append(
                make_card(
                    card_id=f"card-{counter}",
                    name=rng.choice(names),
                    color=color,
                    power=rng.randint(1, 5),
                    value=rng.randint(1, 5),
                    ability_text=rng.choice(texts),
                    catalog=catalog,
                )
            )
            counter += 1
    return shuffle(cards, rng)


def deal(
    deck: list[Card],
    player_count: int,
    hand_size: int = 6,
    min_players: int = MIN_PLAYERS,
    max_players: int = MAX_PLAYERS,
) -> tuple[list[list[Card]], list[Card]]:
    """Deal hands off the top of `deck` (mutated) plus an initial discard pile.

    The discard pile holds one card per player.
    """
    if player_count < min_players or player_count > max_players:
        raise ConfigError(f"Game requires {min_players}-{max_players} players.")
    needed = player_count * hand_size + player_count
    if len(deck) < needed:
        raise SetupError(f"Deck has {len(deck)} cards, {needed} are needed to deal.")
    hands = []
    for _ in range(player_count):
        hands.append([deck.pop() for _ in range(hand_size)])
    discard = [deck.pop() for _ in range(player_count)]
    return hands, discard
