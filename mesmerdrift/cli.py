"""MesmerDrift command-line interface.

Argparse-based CLI that initializes structured logging early and exposes the
session engine headless. Exposed via ``python -m mesmerdrift``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from pathlib import Path
from typing import Optional

from .logging_utils import LogMode, get_default_log_path, setup_logging
from .session.ambient import AmbientSettings
from .session.controller import SessionController
from .session.definition import SessionDefinition
from .session.effects import SettingsBackedEffects
from .session.events import SessionEvent, SessionEventEmitter, SessionEventType
from .session.loader import load_session_definition
from .session.simulate import ramp_table, simulate
from .session.tuning import EngineTuning
from .session_library import SessionLibrary

logger = logging.getLogger(__name__)


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set log level (default: INFO)",
    )
    parser.add_argument(
        "--log-mode",
        choices=[mode.value for mode in LogMode],
        default=LogMode.NORMAL.value,
        help="Logging preset: quiet suppresses console info, trace forces DEBUG incl. per-tick lines",
    )
    parser.add_argument(
        "--log-file",
        default=str(get_default_log_path()),
        help="Path to log file (default: per-user MesmerDrift directory)",
    )
    parser.add_argument(
        "--log-format",
        choices=["plain", "json"],
        default="plain",
        help="Log format (plain or json)",
    )


def _build_logging_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    _add_logging_args(parent)
    return parent


def _build_library_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--sessions-dir",
        default=None,
        help="Session library folder (default: per-user sessions directory)",
    )
    return parent


def _format_clock(minutes: float) -> str:
    total = int(round(minutes * 60.0))
    return f"{total // 60:02d}:{total % 60:02d}"


def _resolve_definition(load: str, sessions_dir: Optional[str]) -> SessionDefinition:
    """Load *load* as a file path, or look it up as a library session id."""
    path = Path(load)
    if path.exists():
        return load_session_definition(path)
    library = SessionLibrary(Path(sessions_dir) if sessions_dir else None)
    definition = library.get_definition(load)
    if definition is None:
        raise ValueError(f"No session file or library id '{load}'")
    return definition


def selftest() -> int:
    """Simulate the bundled session end to end. Returns exit code."""
    try:
        from .platform_paths import get_bundled_sessions_dir
        from .session.qt_driver import QtSessionDriver  # noqa: F401  # Ensure Qt deps import

        definition = load_session_definition(get_bundled_sessions_dir() / "morning_drift.session.json")
        result = simulate(definition, seed=0)
        if not result.completed:
            raise RuntimeError("simulated session did not complete")
        if result.settings_after != result.settings_before:
            raise RuntimeError("ambient settings were not restored")
        if result.restore_count != 1:
            raise RuntimeError(f"expected one restore, got {result.restore_count}")

        msg = f"Selftest OK: {definition.name} simulated in {result.ticks} ticks, settings restored"
        logger.info(msg)
        print(msg)
        return 0
    except Exception as e:
        logger.error("Selftest failed: %s", e)
        print(f"Selftest failed: {e}", file=sys.stderr)
        return 1


def cmd_sessions(args) -> int:
    """List the session library."""
    library = SessionLibrary(Path(args.sessions_dir) if args.sessions_dir else None)
    entries = library.list_sessions()
    if args.json:
        payload = [
            {
                "id": e.id,
                "name": e.definition.name,
                "duration_minutes": e.definition.duration_minutes,
                "source": e.source.value,
                "available": e.definition.available,
                "path": str(e.path),
            }
            for e in entries
        ]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0
    if not entries:
        print(f"No sessions in {library.sessions_dir}")
        return 0
    for e in entries:
        tag = "built-in" if not e.can_delete else "custom"
        print(f"{e.id:<24} {e.definition.duration_minutes:>5g} min  {e.definition.name} ({tag})")
    return 0


def cmd_show(args) -> int:
    """Print a session summary or its JSON."""
    try:
        definition = _resolve_definition(args.load, args.sessions_dir)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    if args.json:
        print(json.dumps(definition.to_dict(), ensure_ascii=False, indent=2))
        return 0
    print(f"{definition.icon} {definition.name} ({definition.id})".strip())
    print(f"Duration: {definition.duration_minutes:g} min   Bonus XP: {definition.bonus_xp}")
    if definition.description:
        print()
        print(definition.description)
    print()
    print("Timeline:")
    print(definition.describe_timeline() or "(no phases)")
    print()
    print("Effects:")
    print(definition.describe_effects())
    return 0


def cmd_preview(args) -> int:
    """Simulate a session and print its timeline and ramp table."""
    try:
        definition = _resolve_definition(args.load, args.sessions_dir)
        result = simulate(
            definition,
            step_seconds=args.step,
            seed=args.seed,
            tuning=EngineTuning.from_env(),
        )
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    timeline = result.timeline()
    minutes, columns = ramp_table(definition, step_minutes=args.table_step)

    if args.json:
        payload = {
            "session_id": definition.id,
            "completed": result.completed,
            "ticks": result.ticks,
            "restored": result.settings_after == result.settings_before,
            "timeline": [{"minute": round(m, 3), "event": text} for m, text in timeline],
            "ramps": {
                f"{effect.value}.{channel.value}": values.tolist()
                for (effect, channel), values in columns.items()
            },
            "ramp_minutes": minutes.tolist(),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    print(f"Preview: {definition.name} (seed={args.seed}, step={args.step:g}s)")
    for minute, text in timeline:
        print(f"  {_format_clock(minute)}  {text}")
    if columns:
        print()
        headers = [f"{e.value}.{c.value}" for e, c in columns]
        print("  min  " + "  ".join(f"{h:>20}" for h in headers))
        for row, minute in enumerate(minutes):
            cells = "  ".join(f"{int(values[row]):>20}" for values in columns.values())
            print(f"  {minute:>4g}  {cells}")
    return 0


def cmd_run(args) -> int:
    """Run a session headless on an asyncio loop against default ambient settings."""
    from .session.async_driver import AsyncSessionDriver, scaled_time_source

    try:
        definition = _resolve_definition(args.load, args.sessions_dir)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    if args.speed <= 0:
        print("Error: --speed must be positive")
        return 1

    tuning = EngineTuning.from_env()
    emitter = SessionEventEmitter()
    effects = SettingsBackedEffects(AmbientSettings())
    controller = SessionController(
        effects,
        event_emitter=emitter,
        rng=random.Random(args.seed),
        time_source=scaled_time_source(args.speed),
        tuning=tuning,
    )
    outcome: dict[str, object] = {}

    def _on_phase(event: SessionEvent) -> None:
        print(f"[{_format_clock(controller.elapsed_time / 60.0)}] Phase: {event.data['phase'].name}")

    def _on_completed(event: SessionEvent) -> None:
        outcome["completed"] = True
        print(f"Session complete: {definition.name} (+{event.data['bonus_xp']} XP)")

    def _on_stopped(event: SessionEvent) -> None:
        outcome["completed"] = False
        print(f"Session stopped at {_format_clock(event.data['elapsed'] / 60.0)}")

    emitter.subscribe(SessionEventType.PHASE_CHANGED, _on_phase)
    emitter.subscribe(SessionEventType.SESSION_COMPLETED, _on_completed)
    emitter.subscribe(SessionEventType.SESSION_STOP, _on_stopped)

    driver = AsyncSessionDriver(controller, interval_s=tuning.tick_interval_s / args.speed)
    print(f"Running {definition.name} at {args.speed:g}x")
    try:
        asyncio.run(driver.run(definition))
    except KeyboardInterrupt:
        print("Interrupted")
        return 130
    return 0 if outcome.get("completed") else 1


def build_parser() -> argparse.ArgumentParser:
    logging_parent = _build_logging_parent()
    library_parent = _build_library_parent()
    parser = argparse.ArgumentParser(
        description="MesmerDrift session engine CLI",
        parents=[logging_parent],
    )
    sub = parser.add_subparsers(dest="command", required=False)

    def add_subparser(name: str, **kwargs: object) -> argparse.ArgumentParser:
        parents = list(kwargs.pop("parents", []))
        parents.insert(0, logging_parent)
        return sub.add_parser(name, parents=parents, **kwargs)

    p_sessions = add_subparser("sessions", parents=[library_parent], help="List the session library")
    p_sessions.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    p_show = add_subparser("show", parents=[library_parent], help="Summarize a session definition")
    p_show.add_argument("--load", required=True, help="Session file path or library id")
    p_show.add_argument("--json", action="store_true", help="Print the definition as JSON")

    p_preview = add_subparser("preview", parents=[library_parent], help="Simulate a session instantly")
    p_preview.add_argument("--load", required=True, help="Session file path or library id")
    p_preview.add_argument("--step", type=float, default=1.0, help="Simulated seconds per tick (default: 1)")
    p_preview.add_argument("--seed", type=int, default=None, help="Random seed for jitter and bursts")
    p_preview.add_argument("--table-step", type=float, default=5.0, help="Minutes between ramp table rows")
    p_preview.add_argument("--json", action="store_true", help="Print JSON")

    p_run = add_subparser("run", parents=[library_parent], help="Run a session headless in real (or scaled) time")
    p_run.add_argument("--load", required=True, help="Session file path or library id")
    p_run.add_argument("--speed", type=float, default=1.0, help="Clock multiplier (60 = one minute per second)")
    p_run.add_argument("--seed", type=int, default=None, help="Random seed for jitter and bursts")

    add_subparser("selftest", help="Quick import and simulation check")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging before doing any work
    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=(args.log_format == "json"),
        log_mode=args.log_mode,
        add_console=True,
    )

    cmd = args.command or "sessions"
    if cmd == "sessions":
        if not hasattr(args, "json"):
            args.json = False
            args.sessions_dir = None
        return cmd_sessions(args)
    if cmd == "show":
        return cmd_show(args)
    if cmd == "preview":
        return cmd_preview(args)
    if cmd == "run":
        return cmd_run(args)
    if cmd == "selftest":
        return selftest()
    parser.error(f"Unknown command: {cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
