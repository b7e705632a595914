#!/usr/bin/env python3
"""Kersh Timer CLI.

Command-line front end for the timer engine. Runs a timer tree described
in a YAML file and manages the timers stored locally.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from common.timer_node import StructuralError  # noqa: E402
from common.timer_types import TimerConfig  # noqa: E402
from config.config_manager import ConfigValidationError  # noqa: E402
from supervisor.timer_engine import TimerEngine  # noqa: E402
from supervisor.timer_engine_config import TimerEngineConfig  # noqa: E402

# Configure logging for CLI
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("cli")

DEFAULT_CONFIG = "config.yaml"


def load_timer_file(path: str) -> TimerConfig:
    """Read a timer tree definition from a YAML file.

    The document is either the root timer mapping itself or a mapping with
    a single ``timer`` key holding it.

    Raises:
        ValueError: If the file does not describe a valid timer tree.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if isinstance(data, dict) and set(data) == {"timer"}:
        data = data["timer"]
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a timer mapping")

    try:
        return TimerConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid timer definition in {path}: {e}") from e


def build_engine(args) -> TimerEngine:
    """Create the engine from ``--config``, falling back to defaults."""
    if os.path.exists(args.config):
        config = TimerEngineConfig.from_file(args.config)
    elif args.config != DEFAULT_CONFIG:
        raise FileNotFoundError(f"Configuration file not found: {args.config}")
    else:
        logger.info("No config.yaml found, using default settings")
        config = TimerEngineConfig()

    if args.log_level:
        config.logging.log_level = args.log_level

    return TimerEngine(config=config, setup_logging=True)


def run_timer(engine: TimerEngine, path: str) -> int:
    """Run the timer tree in ``path`` to completion."""
    timer_config = load_timer_file(path)
    engine.load_graph(timer_config)
    logger.info(f"Starting timer '{timer_config.label or timer_config.id}'")

    try:
        state = engine.start()
    except KeyboardInterrupt:
        logger.info("⚠️ Timer interrupted by user")
        engine.pause()
        engine.save()
        return 130

    logger.info(f"✅ Timer finished in state {state.value}")
    return 0


def list_timers(engine: TimerEngine) -> int:
    if engine.persistence is None:
        print("Persistence is disabled")
        return 1

    timers = engine.persistence.load_all_timers()
    if not timers:
        print("📝 No stored timers")
        return 0

    print(f"\n📝 Stored timers ({len(timers)}):")
    print("-" * 50)
    for stored in timers:
        label = stored.config.label or ""
        print(f"{stored.timer_id:24s} {stored.state.value:10s} {label}")
    print("-" * 50)
    return 0


def show_timer(engine: TimerEngine, timer_id: str) -> int:
    stored = engine.load(timer_id)
    if stored is None:
        print(f"❌ No stored timer with id '{timer_id}'")
        return 1

    print(f"\n🔍 Timer {stored.timer_id} ({stored.state.value})")
    print("=" * 50)
    print(yaml.safe_dump(engine.graph.to_dict(), sort_keys=False))
    print(f"Saved at: {stored.saved_at.isoformat()}")
    return 0


def delete_timer(engine: TimerEngine, timer_id: str) -> int:
    if engine.persistence is None:
        print("Persistence is disabled")
        return 1

    if not engine.persistence.delete_timer(timer_id):
        print(f"❌ No stored timer with id '{timer_id}'")
        return 1

    print(f"🗑️ Deleted timer '{timer_id}'")
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Kersh Timer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py run examples/pomodoro.yaml      # Run a timer tree
  python cli.py --config custom.yaml list       # Use custom config
  python cli.py show pomodoro                   # Show a stored timer
  python cli.py delete pomodoro                 # Delete a stored timer
        """,
    )

    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG,
        help="Configuration file path (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        "-l",
        type=str.upper,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Override the configured log level",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a timer tree from a YAML file")
    run_parser.add_argument("file", help="Timer definition file")

    subparsers.add_parser("list", help="List stored timers")

    show_parser = subparsers.add_parser("show", help="Show a stored timer")
    show_parser.add_argument("timer_id")

    delete_parser = subparsers.add_parser("delete", help="Delete a stored timer")
    delete_parser.add_argument("timer_id")

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = create_parser().parse_args(argv)

    try:
        engine = build_engine(args)
    except (ConfigValidationError, FileNotFoundError) as e:
        logger.error(f"❌ Failed to initialize timer engine: {e}")
        return 1

    try:
        if args.command == "run":
            return run_timer(engine, args.file)
        if args.command == "list":
            return list_timers(engine)
        if args.command == "show":
            return show_timer(engine, args.timer_id)
        return delete_timer(engine, args.timer_id)
    except (OSError, ValueError, StructuralError) as e:
        logger.error(f"❌ {e}")
        return 1
    finally:
        engine.shutdown()


if __name__ == "__main__":
    sys.exit(main())
