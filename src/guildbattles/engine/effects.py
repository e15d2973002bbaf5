"""Effect executor.

Applies typed effects to the live `MatchState` it is given. Failures are
reported through `EffectResult` rather than raised, so callers must check
`success` before treating an effect as applied.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from .state import MatchState, PlayerState
from .types import (
    Ability,
    BattleRole,
    Card,
    ColorMixing,
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
)

T = TypeVar("T")


@dataclass(frozen=True)
class EffectContext:
    acting_player_id: str
    target_card_id: str | None = None
    selected_targets: tuple[str, ...] = ()
    target_player_id: str | None = None
    battle_role: BattleRole | None = None


@dataclass
class EffectResult:
    success: bool
    effect: str
    reason: str | None = None
    requires_input: bool = False
    details: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"success": self.success, "effect": self.effect}
        if self.reason is not None:
            out["reason"] = self.reason
        if self.requires_input:
            out["requires_input"] = True
        out.update(self.details)
        return out


@dataclass
class AbilityResult:
    success: bool
    results: list[EffectResult] = field(default_factory=list)
    reason: str | None = None

    @property
    def requires_input(self) -> bool:
        return any(r.requires_input for r in self.results)


def _fail(effect: Effect, reason: str) -> EffectResult:
    return EffectResult(success=False, effect=effect.kind, reason=reason)


def _needs_input(effect: Effect, ctx: EffectContext) -> bool:
    return isinstance(effect, (Discard, Revive)) and not ctx.selected_targets


def _awaiting(effect: Discard | Revive) -> EffectResult:
    return EffectResult(success=True, effect=effect.kind, requires_input=True, details={"amount": effect.amount})


def _uses_target_card(effect: Effect) -> bool:
    if isinstance(effect, ModifyAttribute):
        return effect.target == "target_card"
    return isinstance(effect, CopyAbility)


class EffectExecutor:
    def __init__(self, state: MatchState) -> None:
        self.state = state

    # -- abilities --------------------------------------------------------

    def execute_ability(self, ability: Ability, source: Card, ctx: EffectContext) -> AbilityResult:
        """Check conditions and immunity, then apply every effect in order."""
        for cond in ability.conditions:
            if isinstance(cond, RequiresItem) and not self._has_item(ctx.acting_player_id, cond.item):
                return AbilityResult(success=False, reason="condition_not_met")

        if self._blocked_by_immunity(ability.effects, source, ctx):
            return AbilityResult(success=False, reason="blocked_by_immunity")

        # Player-choice effects suspend the whole ability until a selection arrives.
        pending = [e for e in ability.effects if _needs_input(e, ctx)]
        if pending:
            return AbilityResult(
                success=True,
                results=[_awaiting(e) for e in pending],  # type: ignore[arg-type]
            )

        results = [self.apply(eff, source, ctx) for eff in ability.effects]
        failed = next((r for r in results if not r.success), None)
        if failed is not None:
            return AbilityResult(success=False, results=results, reason=failed.reason)
        return AbilityResult(success=True, results=results)

    def apply(self, effect: Effect, source: Card, ctx: EffectContext) -> EffectResult:
        if self._blocked_by_immunity((effect,), source, ctx):
            return _fail(effect, "blocked_by_immunity")

        if isinstance(effect, ModifyAttribute):
            return self._modify(effect, source, ctx)
        if isinstance(effect, Destroy):
            return self._destroy(effect, source, ctx)
        if isinstance(effect, Steal):
            return self._steal(effect, source, ctx)
        if isinstance(effect, DrawCard):
            return self._draw(effect, ctx)
        if isinstance(effect, Discard):
            return self._discard(effect, ctx)
        if isinstance(effect, Revive):
            return self._revive(effect, ctx)
        if isinstance(effect, CopyAbility):
            return self._copy(effect, source, ctx)
        if isinstance(effect, (Immunity, DefendOthers, ColorMixing, Generic)):
            return EffectResult(success=True, effect=effect.kind, details={"inert": True})
        return EffectResult(success=False, effect="unknown", reason="unknown_effect_type")

    # -- turn cleanup -----------------------------------------------------

    def cleanup_turn(self, turn: int) -> int:
        """Revert every temporary delta and copied ability recorded for `turn`."""
        reverted = self.state.ledger.clear_turn(turn)
        copied = [cid for cid, (_a, t) in self.state.copied_abilities.items() if t == turn]
        for cid in copied:
            del self.state.copied_abilities[cid]
        self.state.refresh_units()
        return reverted + len(copied)

    # -- helpers ----------------------------------------------------------

    def _has_item(self, player_id: str, item: str | None) -> bool:
        if item is None:
            return False
        p = self.state.player(player_id)
        if p is None:
            return False
        cards = list(p.hand) + [c for u in p.units for c in u.cards]
        return any(item in c.name.lower() for c in cards)

    def _targeted_cards(self, effects: Sequence[Effect], ctx: EffectContext) -> list[Card]:
        ids: list[str] = []
        if ctx.target_card_id is not None and any(_uses_target_card(e) for e in effects):
            ids.append(ctx.target_card_id)
        if any(isinstance(e, (Destroy, Steal)) or (isinstance(e, Discard) and e.opponent) for e in effects):
            ids.extend(ctx.selected_targets)
        cards: list[Card] = []
        for target_id in ids:
            loc = self.state.locate(target_id)
            if loc is not None:
                cards.append(loc.card)
                continue
            found = self.state.find_unit(target_id)
            if found is not None:
                cards.extend(found[1].cards)
        return cards

    def _blocked_by_immunity(self, effects: Sequence[Effect], source: Card, ctx: EffectContext) -> bool:
        return any(
            self.state.is_immune(card, source.color)
            for card in self._targeted_cards(effects, ctx)
            if card.id != source.id
        )

    def _opponent_pool(self, ctx: EffectContext) -> list[PlayerState]:
        if ctx.target_player_id is not None:
            target = self.state.player(ctx.target_player_id)
            if target is None or target.id == ctx.acting_player_id:
                return []
            return [target]
        return self.state.opponents(ctx.acting_player_id)

    def _card_pool(self, zone: str | None, ctx: EffectContext, source: Card) -> list[Card]:
        pool: list[Card] = []
        for p in self._opponent_pool(ctx):
            if zone in (None, "hand"):
                pool.extend(p.hand)
            if zone in (None, "unit"):
                pool.extend(c for u in p.units for c in u.cards)
        return [c for c in pool if not self.state.is_immune(c, source.color)]

    def _pick(
        self, pool: list[T], amount: int, randomly: bool, ctx: EffectContext, key: Callable[[T], str]
    ) -> list[T]:
        if randomly:
            return self.state.rng.sample(pool, min(amount, len(pool)))
        allowed = {key(x): x for x in pool}
        picked = [allowed[t] for t in ctx.selected_targets if t in allowed]
        return picked[:amount]

    # -- effect handlers --------------------------------------------------

    def _modify(self, effect: ModifyAttribute, source: Card, ctx: EffectContext) -> EffectResult:
        state = self.state
        if effect.scope is not None and ctx.battle_role != effect.scope:
            return _fail(effect, "wrong_battle_role")
        if effect.target == "this_card":
            target = source
        else:
            loc = state.locate(ctx.target_card_id) if ctx.target_card_id else None
            if loc is None or loc.zone == "graveyard":
                return _fail(effect, "no_valid_target")
            if effect.same_unit:
                src = state.locate(source.id)
                if src is None or src.unit is None or loc.unit is None or src.unit.id != loc.unit.id:
                    return _fail(effect, "target_not_in_same_unit")
            target = loc.card

        current = state.power_of(target) if effect.attribute == "power" else state.value_of(target)
        if effect.operation == "double":
            new = current * 2
        elif effect.operation == "increase":
            new = current + effect.amount
        elif effect.operation == "decrease":
            new = current - effect.amount
        else:
            new = effect.amount
        if effect.attribute == "power":
            new = max(0, new)

        delta = new - current
        temporary = effect.duration == "this_turn"
        if temporary:
            state.ledger.add_temporary(target.id, effect.attribute, state.turn_number, delta)
        else:
            state.ledger.add_permanent(target.id, effect.attribute, delta)
        if effect.attribute == "value":
            state.refresh_units()
        return EffectResult(
            success=True,
            effect=effect.kind,
            details={
                "card_id": target.id,
                "attribute": effect.attribute,
                "old_value": current,
                "new_value": new,
                "temporary": temporary,
            },
        )

    def _destroy(self, effect: Destroy, source: Card, ctx: EffectContext) -> EffectResult:
        state = self.state
        if effect.target_kind == "unit":
            pool = [u for p in self._opponent_pool(ctx) for u in p.units]
            units = self._pick(pool, effect.amount, effect.random, ctx, key=lambda u: u.id)
            if not units:
                return _fail(effect, "no_valid_target")
            destroyed: list[str] = []
            for unit in units:
                found = state.find_unit(unit.id)
                if found is None:
                    continue
                owner, _u = found
                for card in list(unit.cards):
                    state.remove_from_unit(owner, unit, card.id)
                    owner.graveyard.append(card)
                    destroyed.append(card.id)
            return EffectResult(
                success=True,
                effect=effect.kind,
                details={"units": [u.id for u in units], "destroyed": destroyed},
            )

        pool = self._card_pool(effect.source, ctx, source)
        cards = self._pick(pool, effect.amount, effect.random, ctx, key=lambda c: c.id)
        if not cards:
            return _fail(effect, "no_valid_target")
        for card in cards:
            taken = state.take_card(card.id)
            if taken is not None:
                taken[0].graveyard.append(taken[1])
        return EffectResult(success=True, effect=effect.kind, details={"destroyed": [c.id for c in cards]})

    def _steal(self, effect: Steal, source: Card, ctx: EffectContext) -> EffectResult:
        state = self.state
        thief = state.player(ctx.acting_player_id)
        if thief is None:
            return _fail(effect, "unknown_player")
        pool = self._card_pool(effect.source, ctx, source)
        cards = self._pick(pool, effect.amount, effect.random, ctx, key=lambda c: c.id)
        if not cards:
            return _fail(effect, "no_valid_target")
        for card in cards:
            taken = state.take_card(card.id)
            if taken is not None:
                thief.hand.append(taken[1])
        return EffectResult(success=True, effect=effect.kind, details={"stolen": [c.id for c in cards]})

    def _draw(self, effect: DrawCard, ctx: EffectContext) -> EffectResult:
        player = self.state.player(ctx.acting_player_id)
        if player is None:
            return _fail(effect, "unknown_player")
        drawn: list[str] = []
        while len(drawn) < effect.amount and self.state.deck:
            card = self.state.deck.pop()
            player.hand.append(card)
            drawn.append(card.id)
        return EffectResult(success=True, effect=effect.kind, details={"drawn": len(drawn)})

    def _discard(self, effect: Discard, ctx: EffectContext) -> EffectResult:
        if not ctx.selected_targets:
            return _awaiting(effect)
        if effect.opponent:
            pool = [c for p in self._opponent_pool(ctx) for c in p.hand]
        else:
            me = self.state.player(ctx.acting_player_id)
            pool = list(me.hand) if me is not None else []
        cards = self._pick(pool, effect.amount, False, ctx, key=lambda c: c.id)
        if not cards:
            return _fail(effect, "no_valid_target")
        for card in cards:
            taken = self.state.take_card(card.id)
            if taken is not None:
                self.state.discard_pile.append(taken[1])
        return EffectResult(success=True, effect=effect.kind, details={"discarded": [c.id for c in cards]})

    def _revive(self, effect: Revive, ctx: EffectContext) -> EffectResult:
        if not ctx.selected_targets:
            return _awaiting(effect)
        me = self.state.player(ctx.acting_player_id)
        if me is None:
            return _fail(effect, "unknown_player")
        cards = self._pick(list(me.graveyard), effect.amount, False, ctx, key=lambda c: c.id)
        if not cards:
            return _fail(effect, "no_valid_target")
        revived = {c.id for c in cards}
        me.graveyard = [c for c in me.graveyard if c.id not in revived]
        me.hand.extend(cards)
        return EffectResult(success=True, effect=effect.kind, details={"revived": [c.id for c in cards]})

    def _copy(self, effect: CopyAbility, source: Card, ctx: EffectContext) -> EffectResult:
        loc = self.state.locate(ctx.target_card_id) if ctx.target_card_id else None
        if loc is None or loc.card.parsed_ability is None:
            return _fail(effect, "no_ability_to_copy")
        if loc.owner.id == ctx.acting_player_id:
            return _fail(effect, "target_not_enemy")
        self.state.copied_abilities[source.id] = (loc.card.parsed_ability, self.state.turn_number)
        return EffectResult(success=True, effect=effect.kind, details={"copied_from": loc.card.id})
