"""In-process match coordinator.

Owns the registry of live matches. Intents for one match are applied strictly
one at a time in arrival order; each is run against a deep working copy that
is committed only when the engine accepts it, so readers always see the last
committed state.
"""

from __future__ import annotations

import copy
import logging
import random
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field

from guildbattles.engine.actions import Action
from guildbattles.engine.errors import ValidationError
from guildbattles.engine.match import StepResult, cancel_battle, new_match, step
from guildbattles.engine.serialize import action_from_dict, player_view, snapshot
from guildbattles.engine.state import Event, GameConfig, MatchState
from guildbattles.services.content import ContentError, ContentService
from guildbattles.services.telemetry import TelemetryService

log = logging.getLogger(__name__)


class MatchNotFound(KeyError):
    pass


@dataclass
class Outcome:
    ok: bool
    events: list[Event]
    deliveries: dict[str, list[Event]] = field(default_factory=dict)
    views: dict[str, dict[str, object]] = field(default_factory=dict)
    error: str | None = None
    code: str | None = None


def route_events(events: Sequence[Event], player_ids: Sequence[str]) -> dict[str, list[Event]]:
    """Split events per recipient. Events without a `to` list go to everyone."""
    out: dict[str, list[Event]] = {pid: [] for pid in player_ids}
    for ev in events:
        to = ev.get("to")
        recipients = to if isinstance(to, list) else player_ids
        public = {k: v for k, v in ev.items() if k != "to"}
        for pid in recipients:
            if pid in out:
                out[pid].append(public)
    return out


class MatchSession:
    """One match plus the FIFO ticket gate that serializes its intents."""

    def __init__(self, match_id: str, state: MatchState) -> None:
        self.match_id = match_id
        self.state = state
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._serving = 0

    @contextmanager
    def serialized(self) -> Iterator[None]:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while self._serving != ticket:
                self._cond.wait()
        try:
            yield
        finally:
            with self._cond:
                self._serving += 1
                self._cond.notify_all()

    def commit(self, state: MatchState) -> None:
        with self._cond:
            self.state = state

    def read(self) -> MatchState:
        with self._cond:
            return self.state


class MatchCoordinator:
    def __init__(
        self,
        content: ContentService,
        config: GameConfig | None = None,
        telemetry: TelemetryService | None = None,
    ) -> None:
        self._content = content
        self._catalog = content.load_catalog()
        self._config = config or content.load_rules()
        self._telemetry = telemetry
        self._sessions: dict[str, MatchSession] = {}
        self._lock = threading.Lock()
        self._next_match_id = 1

    # -- registry -----------------------------------------------------------

    def _new_match_id(self) -> str:
        mid = f"m{self._next_match_id}"
        self._next_match_id += 1
        return mid

    def _session(self, match_id: str) -> MatchSession:
        with self._lock:
            session = self._sessions.get(match_id)
        if session is None:
            raise MatchNotFound(match_id)
        return session

    def match_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._sessions)

    def create_match(
        self,
        player_names: Sequence[str],
        seed: int | None = None,
        player_ids: Sequence[str] | None = None,
    ) -> str:
        if seed is None:
            seed = random.SystemRandom().randrange(2**31)
        state = new_match(self._catalog, player_names, seed, config=self._config, player_ids=player_ids)
        with self._lock:
            match_id = self._new_match_id()
            self._sessions[match_id] = MatchSession(match_id, state)
        log.info("match %s created for %d players (seed=%d)", match_id, len(player_names), seed)
        self._journal("match_created", {"match_id": match_id, "players": [p.id for p in state.players], "seed": seed})
        return match_id

    def close_match(self, match_id: str) -> None:
        with self._lock:
            removed = self._sessions.pop(match_id, None)
        if removed is None:
            raise MatchNotFound(match_id)
        log.info("match %s closed", match_id)

    # -- intents ------------------------------------------------------------

    def submit(self, match_id: str, action: Action) -> Outcome:
        session = self._session(match_id)
        with session.serialized():
            return self._apply(session, action)

    def submit_payload(self, match_id: str, player_id: str, payload: Mapping[str, object]) -> Outcome:
        """Validate and decode a wire intent, then submit it for `player_id`."""
        session = self._session(match_id)
        try:
            self._content.validate_intent(dict(payload))
            action = action_from_dict(payload, player=player_id)
        except ContentError as e:
            return self._reject(session, player_id, "bad_payload", str(e))
        except ValidationError as e:
            return self._reject(session, player_id, e.code, e.message)
        return self.submit(match_id, action)

    def abandon_battle(self, match_id: str, player_id: str | None = None) -> Outcome:
        """Drop an undefended battle, e.g. when the attacker disconnects."""
        session = self._session(match_id)
        with session.serialized():
            working = copy.deepcopy(session.state)
            result = cancel_battle(working, player_id)
            if result.ok:
                session.commit(working)
                log.info("match %s: battle abandoned", match_id)
            return self._outcome(session, result)

    def _apply(self, session: MatchSession, action: Action) -> Outcome:
        working = copy.deepcopy(session.state)
        result = step(working, action)
        if not result.ok:
            log.debug(
                "match %s: rejected %s from %s (%s)",
                session.match_id,
                type(action).__name__,
                action.player,
                result.code,
            )
            self._journal(
                "intent_rejected",
                {
                    "match_id": session.match_id,
                    "player": action.player,
                    "intent": type(action).__name__,
                    "code": result.code,
                },
            )
            return self._outcome(session, result)

        session.commit(working)
        if working.game_ended:
            log.info("match %s ended, winners=%s", session.match_id, working.winners)
            self._journal(
                "match_ended",
                {"match_id": session.match_id, "winners": list(working.winners), "final_scores": working.final_scores},
            )
        return self._outcome(session, result)

    def _reject(self, session: MatchSession, player_id: str, code: str, message: str) -> Outcome:
        event: Event = {
            "type": "intentRejected",
            "player": player_id,
            "code": code,
            "reason": message,
            "to": [player_id],
        }
        self._journal("intent_rejected", {"match_id": session.match_id, "player": player_id, "code": code})
        return self._outcome(session, StepResult(ok=False, events=[event], error=message, code=code))

    def _outcome(self, session: MatchSession, result: StepResult) -> Outcome:
        state = session.read()
        ids = [p.id for p in state.players]
        views = {pid: player_view(state, pid) for pid in ids} if result.ok else {}
        return Outcome(
            ok=result.ok,
            events=list(result.events),
            deliveries=route_events(result.events, ids),
            views=views,
            error=result.error,
            code=result.code,
        )

    # -- reads --------------------------------------------------------------

    def view(self, match_id: str, player_id: str) -> dict[str, object]:
        return player_view(self._session(match_id).read(), player_id)

    def snapshot(self, match_id: str) -> dict[str, object]:
        return snapshot(self._session(match_id).read())

    def state(self, match_id: str) -> MatchState:
        """A private copy of the committed state."""
        return copy.deepcopy(self._session(match_id).read())

    def _journal(self, event_type: str, payload: Mapping[str, object]) -> None:
        if self._telemetry is not None:
            self._telemetry.log(event_type, payload)
