from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Literal

from .types import Ability, Attribute, Card

Event = dict[str, object]
Phase = Literal["draw", "play", "attack", "battle", "reinforce", "discard"]
ActionChoice = Literal["attack", "discard"]
Zone = Literal["hand", "unit", "graveyard"]


@dataclass(frozen=True)
class GameConfig:
    hand_size: int = 6
    draws_per_turn: int = 2
    win_threshold: int = 50
    min_players: int = 2
    max_players: int = 6
    min_unit_size: int = 3
    attacks_per_turn: int = 1
    deck_colors: int = 5
    cards_per_color: int = 10


@dataclass
class Unit:
    id: str
    player_id: str
    cards: list[Card]
    total_value: int = 0

    def card_ids(self) -> list[str]:
        return [c.id for c in self.cards]

    def get(self, card_id: str) -> Card | None:
        for c in self.cards:
            if c.id == card_id:
                return c
        return None


@dataclass
class PlayerState:
    id: str
    name: str
    hand: list[Card] = field(default_factory=list)
    units: list[Unit] = field(default_factory=list)
    graveyard: list[Card] = field(default_factory=list)

    def hand_card(self, card_id: str) -> Card | None:
        for c in self.hand:
            if c.id == card_id:
                return c
        return None

    def unit(self, unit_id: str) -> Unit | None:
        for u in self.units:
            if u.id == unit_id:
                return u
        return None

    def unit_of(self, card_id: str) -> Unit | None:
        for u in self.units:
            if u.get(card_id) is not None:
                return u
        return None

    def take_from_hand(self, card_id: str) -> Card | None:
        for i, c in enumerate(self.hand):
            if c.id == card_id:
                return self.hand.pop(i)
        return None


@dataclass
class AttributeLedger:
    """Attribute deltas tracked apart from the immutable card records.

    Temporary deltas are keyed by (card_id, attribute, turn_number) and are
    dropped by `clear_turn`.
    """

    permanent: dict[tuple[str, str], int] = field(default_factory=dict)
    temporary: dict[tuple[str, str, int], int] = field(default_factory=dict)

    def add_permanent(self, card_id: str, attribute: Attribute, delta: int) -> None:
        key = (card_id, attribute)
        self.permanent[key] = self.permanent.get(key, 0) + delta

    def add_temporary(self, card_id: str, attribute: Attribute, turn: int, delta: int) -> None:
        key = (card_id, attribute, turn)
        self.temporary[key] = self.temporary.get(key, 0) + delta

    def delta(self, card_id: str, attribute: Attribute) -> int:
        total = self.permanent.get((card_id, attribute), 0)
        for (cid, attr, _turn), d in self.temporary.items():
            if cid == card_id and attr == attribute:
                total += d
        return total

    def clear_turn(self, turn: int) -> int:
        keys = [k for k in self.temporary if k[2] == turn]
        for k in keys:
            del self.temporary[k]
        return len(keys)


@dataclass
class BattleSide:
    player_id: str
    card: Card | None = None
    from_hand: bool | None = None


@dataclass
class BattleState:
    attacker: BattleSide
    defender: BattleSide
    target_unit_id: str
    status: Literal["awaiting_defense", "resolved"] = "awaiting_defense"


@dataclass
class KidnapChoice:
    player_id: str
    defender_id: str
    target_unit_id: str
    defender_card: Card
    available: list[str]


@dataclass(frozen=True)
class CardLocation:
    owner: PlayerState
    zone: Zone
    card: Card
    unit: Unit | None = None


@dataclass
class MatchState:
    config: GameConfig
    seed: int
    rng: random.Random
    players: list[PlayerState]
    deck: list[Card]
    discard_pile: list[Card]
    card_count: int = 0
    current_player_index: int = 0
    turn_number: int = 1
    phase: Phase = "draw"
    action_chosen: ActionChoice | None = None
    cards_drawn_this_turn: int = 0
    attacks_used_this_turn: int = 0
    unit_played_this_turn: bool = False
    final_round_trigger_player_id: str | None = None
    final_round_turns_remaining: int = 0
    game_ended: bool = False
    winners: list[str] = field(default_factory=list)
    final_scores: list[dict[str, object]] = field(default_factory=list)
    active_battle: BattleState | None = None
    pending_kidnap: KidnapChoice | None = None
    ledger: AttributeLedger = field(default_factory=AttributeLedger)
    copied_abilities: dict[str, tuple[Ability, int]] = field(default_factory=dict)
    ability_uses: set[tuple[str, int, str]] = field(default_factory=set)
    next_unit_number: int = 1
    action_log: list[object] = field(default_factory=list)
    event_log: list[Event] = field(default_factory=list)

    @property
    def current_player(self) -> PlayerState:
        return self.players[self.current_player_index]

    def player(self, player_id: str) -> PlayerState | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def opponents(self, player_id: str) -> list[PlayerState]:
        return [p for p in self.players if p.id != player_id]

    def emit(self, event_type: str, to: list[str] | None = None, **payload: object) -> Event:
        ev: Event = {"type": event_type, **payload}
        if to is not None:
            ev["to"] = list(to)
        self.event_log.append(ev)
        return ev

    def new_unit_id(self) -> str:
        uid = f"unit-{self.next_unit_number}"
        self.next_unit_number += 1
        return uid

    # -- attributes -------------------------------------------------------

    def power_of(self, card: Card) -> int:
        return max(0, card.power + self.ledger.delta(card.id, "power"))

    def value_of(self, card: Card) -> int:
        return card.value + self.ledger.delta(card.id, "value")

    def abilities_of(self, card: Card) -> list[Ability]:
        out: list[Ability] = []
        if card.parsed_ability is not None:
            out.append(card.parsed_ability)
        copied = self.copied_abilities.get(card.id)
        if copied is not None:
            out.append(copied[0])
        return out

    def is_immune(self, card: Card, color: str) -> bool:
        return any(a.immune_to(color) for a in self.abilities_of(card))

    # -- locations --------------------------------------------------------

    def locate(self, card_id: str) -> CardLocation | None:
        for p in self.players:
            c = p.hand_card(card_id)
            if c is not None:
                return CardLocation(owner=p, zone="hand", card=c)
            u = p.unit_of(card_id)
            if u is not None:
                c = u.get(card_id)
                assert c is not None
                return CardLocation(owner=p, zone="unit", card=c, unit=u)
            for c in p.graveyard:
                if c.id == card_id:
                    return CardLocation(owner=p, zone="graveyard", card=c)
        return None

    def find_unit(self, unit_id: str) -> tuple[PlayerState, Unit] | None:
        for p in self.players:
            u = p.unit(unit_id)
            if u is not None:
                return p, u
        return None

    # -- units & scoring --------------------------------------------------

    def refresh_unit(self, unit: Unit) -> None:
        unit.total_value = sum(self.value_of(c) for c in unit.cards)

    def refresh_units(self) -> None:
        for p in self.players:
            for u in p.units:
                self.refresh_unit(u)

    def remove_from_unit(self, owner: PlayerState, unit: Unit, card_id: str) -> Card | None:
        """Take a card out of a unit, dissolving the unit when it empties."""
        for i, c in enumerate(unit.cards):
            if c.id == card_id:
                card = unit.cards.pop(i)
                break
        else:
            return None
        if unit.cards:
            self.refresh_unit(unit)
        else:
            owner.units = [u for u in owner.units if u.id != unit.id]
            unit.total_value = 0
            self.emit("unitDissolved", player=owner.id, unit_id=unit.id)
        return card

    def take_card(self, card_id: str) -> tuple[PlayerState, Card] | None:
        """Remove a card from whichever hand, unit or graveyard holds it."""
        loc = self.locate(card_id)
        if loc is None:
            return None
        if loc.zone == "hand":
            loc.owner.take_from_hand(card_id)
        elif loc.zone == "unit":
            assert loc.unit is not None
            self.remove_from_unit(loc.owner, loc.unit, card_id)
        else:
            loc.owner.graveyard = [c for c in loc.owner.graveyard if c.id != card_id]
        return loc.owner, loc.card

    def score(self, player: PlayerState) -> int:
        units = sum(u.total_value for u in player.units)
        penalty = sum(self.value_of(c) for c in player.graveyard)
        return units - penalty

    def enemy_units(self, player_id: str) -> list[Unit]:
        return [u for p in self.opponents(player_id) for u in p.units if u.cards]
