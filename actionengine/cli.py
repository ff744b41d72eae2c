#!/usr/bin/env python3
"""
Action Engine Command Line Interface

Main entry point for the `action-engine` command.

Usage:
    action-engine simulate --plan args/demo_plan.yaml --duration 60 --energy high \
        --steps complete,skip,complete
    action-engine config          # Show the effective configuration as JSON
    action-engine --version       # Show version
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from actionengine import ARGS_DIR, ENERGY_LEVELS, __version__

DEFAULT_PLAN = ARGS_DIR / "demo_plan.yaml"
STEPS = ("complete", "skip", "stop")


class SimulatedClock:
    """Clock that only moves when the simulation says so."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


def _parse_steps(raw: str) -> list[str]:
    steps = [s.strip().lower() for s in raw.split(",") if s.strip()]
    unknown = [s for s in steps if s not in STEPS]
    if unknown:
        raise argparse.ArgumentTypeError(f"Unknown step(s): {', '.join(unknown)}. Use {', '.join(STEPS)}")
    return steps


async def run_simulation(plan_path: Path, duration: int, energy: str | None, steps: list[str]) -> dict:
    """Drive one Flow session against a static plan and report what happened."""
    from actionengine.clients.static import StaticRecommendationClient
    from actionengine.config import load_config
    from actionengine.engine import ActionEngine
    from actionengine.flow import FlowState

    config = load_config()
    clock = SimulatedClock()
    recommender = StaticRecommendationClient.from_yaml(plan_path)
    trail = []
    nudges = []

    async with ActionEngine(recommender, config=config, clock=clock) as engine:
        session = await engine.runner.start(duration, energy)
        trail.append({"step": "start", "session_id": session.session_id, **_position(engine)})

        for step in steps:
            if engine.runner.state is not FlowState.TASK_ACTIVE:
                trail.append({"step": step, "ignored": "no active task"})
                continue

            task = engine.runner.current_task
            if step == "complete":
                clock.advance(task.duration_minutes)
                await engine.runner.complete_task()
            elif step == "skip":
                clock.advance(1)
                await engine.runner.skip_task()
            else:
                await engine.runner.stop()

            engine.tick()
            nudge = engine.snapshot().nudge
            if nudge and (not nudges or nudges[-1]["id"] != nudge.id):
                nudges.append(nudge.to_dict())
            trail.append({"step": step, "task_id": task.id, **_position(engine)})

        if engine.runner.state is not FlowState.IDLE:
            await engine.runner.stop()
            trail.append({"step": "stop", **_position(engine)})

        debrief = engine.runner.debrief
        last = engine.runner.last_session
        return {
            "success": True,
            "session": last.to_dict() if last else None,
            "trail": trail,
            "nudges": nudges,
            "debrief": debrief.to_dict() if debrief else None,
        }


def _position(engine) -> dict:
    progress = engine.runner.progress
    return {
        "state": engine.runner.state.value,
        "current_task": engine.runner.current_task.id if engine.runner.current_task else None,
        "progress": f"{progress.current}/{progress.total} ({progress.percentage}%)" if progress else None,
    }


def cmd_simulate(args):
    """Handle simulate subcommand."""
    from actionengine.errors import ActionEngineError

    try:
        result = asyncio.run(run_simulation(Path(args.plan), args.duration, args.energy, args.steps))
    except (ActionEngineError, ValueError) as e:
        print(json.dumps({"success": False, "error": str(e)}, indent=2))
        return 1

    print(json.dumps(result, indent=2))
    return 0


def cmd_config(args):
    """Handle config subcommand."""
    from actionengine.config import load_config

    config = load_config(Path(args.file) if args.file else None)
    print(json.dumps(config.model_dump(mode="json"), indent=2))


def cmd_version(args):
    """Show version information."""
    print(f"action-engine {__version__}")


def main(argv=None):
    """Main CLI entry point."""
    from dotenv import load_dotenv

    from actionengine.logging_config import setup_logging

    parser = argparse.ArgumentParser(
        prog="action-engine",
        description="Action Engine - behavioral nudges and Flow Mode sessions",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--log-level", default=None, help="Log level (default: ACTION_ENGINE_LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Simulate subcommand
    simulate_parser = subparsers.add_parser(
        "simulate", help="Run a Flow session against a static plan"
    )
    simulate_parser.add_argument(
        "--plan", default=str(DEFAULT_PLAN), help=f"Plan YAML file (default: {DEFAULT_PLAN.name})"
    )
    simulate_parser.add_argument(
        "--duration", type=int, default=60, help="Session length in minutes (default: 60)"
    )
    simulate_parser.add_argument(
        "--energy", choices=ENERGY_LEVELS, default=None, help="Energy hint for the recommendation"
    )
    simulate_parser.add_argument(
        "--steps",
        type=_parse_steps,
        default=["complete"] * 3,
        help=f"Comma separated actions, each one of: {', '.join(STEPS)}",
    )
    simulate_parser.set_defaults(func=cmd_simulate)

    # Config subcommand
    config_parser = subparsers.add_parser(
        "config", help="Show the effective configuration as JSON"
    )
    config_parser.add_argument(
        "--file", default=None, help="Config YAML (default: args/action_engine.yaml)"
    )
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging(level=args.log_level)

    # Handle --version at top level
    if args.version:
        cmd_version(args)
        return 0

    # If no command given, show help
    if not args.command:
        parser.print_help()
        return 0

    result = args.func(args)

    # Commands may return an exit code
    if isinstance(result, int) and result != 0:
        sys.exit(result)
    return 0


if __name__ == "__main__":
    main()
