"""Command line entry point for the Village Wars server and tools."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import asdict

from villagewars.config import get_settings

logger = logging.getLogger(__name__)


def _parse_troops(pairs: Sequence[str]) -> dict[str, int]:
    troops: dict[str, int] = {}
    for pair in pairs:
        unit, sep, count = pair.partition("=")
        if not sep or not count.isdigit():
            raise argparse.ArgumentTypeError(f"expected unit=count, got {pair!r}")
        troops[unit] = troops.get(unit, 0) + int(count)
    return troops


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    if args.reload:
        uvicorn.run("villagewars.api.app:app", host=args.host, port=args.port, reload=True)
    else:
        from villagewars.api.app import app

        uvicorn.run(app, host=args.host, port=args.port, reload=False)
    return 0


def _tick(args: argparse.Namespace) -> int:
    from villagewars.api.runtime import ApiState
    from villagewars.domain.models import WorldID

    state = ApiState()
    summary = state.worlds.run_tick(WorldID(args.world_id))
    print(json.dumps({"world_id": args.world_id, **asdict(summary)}))
    return 0


def _create_world(args: argparse.Namespace) -> int:
    from villagewars.api.runtime import ApiState

    state = ApiState()
    world = state.worlds.create_world(args.name, speed=args.speed)
    print(json.dumps(state.worlds.to_summary_dict(world), default=str))
    return 0


def _distribute_artifacts(args: argparse.Namespace) -> int:
    from villagewars.api.runtime import ApiState, dump
    from villagewars.domain.artifacts import distribute_artifacts
    from villagewars.domain.models import WorldID

    state = ApiState()
    placed = state.worlds.mutate(WorldID(args.world_id), distribute_artifacts)
    print(json.dumps(dump(placed), indent=2))
    return 0


def _simulate(args: argparse.Namespace) -> int:
    from datetime import UTC, datetime

    from villagewars.api.runtime import dump
    from villagewars.domain.battle import simulate_battle
    from villagewars.domain.models import WorldID
    from villagewars.domain.players import create_world

    world = create_world(WorldID(0), "simulation", datetime.now(UTC), with_artifacts=False)
    summary = simulate_battle(
        world,
        _parse_troops(args.attacker),
        _parse_troops(args.defender),
        defender_buildings=_parse_troops(args.building),
        iterations=args.iterations,
        seed=args.seed,
        rules=get_settings().build_rules(),
    )
    print(json.dumps(dump(summary), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="villagewars", description="Village Wars server tools")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API server")
    serve.add_argument("--host", default="127.0.0.1", help="Host interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="TCP port to listen on")
    serve.add_argument("--reload", action="store_true", help="Enable autoreload (dev mode)")
    serve.set_defaults(handler=_serve)

    create = sub.add_parser("create-world", help="Create an empty world")
    create.add_argument("name")
    create.add_argument("--speed", type=float, default=1.0)
    create.set_defaults(handler=_create_world)

    tick = sub.add_parser("tick", help="Run one game tick for a world")
    tick.add_argument("world_id", type=int)
    tick.set_defaults(handler=_tick)

    artifacts = sub.add_parser(
        "distribute-artifacts", help="Hand every unheld artifact to a random village"
    )
    artifacts.add_argument("world_id", type=int)
    artifacts.set_defaults(handler=_distribute_artifacts)

    simulate = sub.add_parser("simulate", help="Simulate a battle without touching any world")
    simulate.add_argument("--attacker", nargs="+", default=[], metavar="UNIT=COUNT")
    simulate.add_argument("--defender", nargs="*", default=[], metavar="UNIT=COUNT")
    simulate.add_argument(
        "--building", nargs="*", default=[], metavar="BUILDING=LEVEL", help="Defender buildings"
    )
    simulate.add_argument("--iterations", type=int, default=None)
    simulate.add_argument("--seed", default="cli")
    simulate.set_defaults(handler=_simulate)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.handler(args)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    except (FileNotFoundError, LookupError) as exc:
        logger.error("not found: %s", exc)
        return 2
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    return 0  # pragma: no cover - parser.error exits


if __name__ == "__main__":
    sys.exit(main())
