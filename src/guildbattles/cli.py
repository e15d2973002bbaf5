from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from guildbattles.coordinator import MatchCoordinator
from guildbattles.engine.ai import AISpec, choose_action
from guildbattles.engine.errors import GameError
from guildbattles.paths import get_paths
from guildbattles.services.content import ContentError, ContentService
from guildbattles.services.telemetry import TelemetryService

log = logging.getLogger("guildbattles")


def _content() -> ContentService:
    paths = get_paths()
    return ContentService(data_dir=paths.data_dir, schema_dir=paths.schema_dir)


def _simulate(args: argparse.Namespace) -> int:
    telemetry = TelemetryService(Path(args.telemetry)) if args.telemetry else None
    coordinator = MatchCoordinator(_content(), telemetry=telemetry)
    names = [f"Bot {i + 1}" for i in range(args.players)]
    match_id = coordinator.create_match(names, seed=args.seed)
    spec = AISpec(aggression=args.aggression)

    steps = 0
    while steps < args.max_steps:
        state = coordinator.state(match_id)
        if state.game_ended:
            break
        action = choose_action(state, spec)
        if action is None:
            break
        outcome = coordinator.submit(match_id, action)
        if not outcome.ok:
            log.error("bot intent rejected: %s (%s)", outcome.error, outcome.code)
            return 1
        steps += 1

    snap = coordinator.snapshot(match_id)
    summary = {
        "match_id": match_id,
        "seed": args.seed,
        "steps": steps,
        "turn_number": snap["turn_number"],
        "game_ended": snap["game_ended"],
        "winners": snap["winners"],
        "final_scores": snap["final_scores"],
        "scores": {p["id"]: p["score"] for p in snap["players"]},  # type: ignore[index, union-attr]
    }
    print(json.dumps(summary, indent=2))
    return 0


def _validate_content(args: argparse.Namespace) -> int:
    try:
        _content().validate_all()
    except ContentError as e:
        print(e)
        return 1
    print("Content OK")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="guildbattles")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Play a bot-only match and print the result.")
    sim.add_argument("--players", type=int, default=2)
    sim.add_argument("--seed", type=int, default=0)
    sim.add_argument("--max-steps", type=int, default=5000)
    sim.add_argument("--aggression", type=int, default=1, choices=(0, 1, 2))
    sim.add_argument("--telemetry", default=None, help="Append lifecycle events to this JSONL file.")
    sim.set_defaults(func=_simulate)

    val = sub.add_parser("validate-content", help="Check data files against their schemas.")
    val.set_defaults(func=_validate_content)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except (GameError, ContentError) as e:
        log.error("%s", e)
        return 2
