"""Inspect or reset the persisted roleplay clock without starting the bot."""
from __future__ import annotations

import argparse
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..config import Settings, SettingsLoader
from ..models import ClockState
from ..projection import project
from ..state import ClockStateStore
from ..telemetry import TelemetryCollector


def describe(state: ClockState, settings: Settings, now: datetime) -> Dict[str, Any]:
    """Summarise the record and what the bot would show at ``now``."""

    summary = state.to_dict()
    summary["configured"] = state.is_configured
    summary["projected"] = project(state, now)
    summary["presence"] = (
        f"{settings.presence_prefix}{summary['projected']}"
        if state.is_configured
        else settings.presence_awaiting
    )
    summary["reset_due"] = settings.reset_rule().is_due(state, now)
    return summary


def telemetry_summary(db_path: Optional[Path], limit: int = 10) -> Dict[str, Any]:
    """Command usage and the latest resets and calibrations from telemetry."""

    if db_path is None or not Path(db_path).exists():
        return {"commands": {}, "events": []}
    collector = TelemetryCollector(Path(db_path))
    return {
        "commands": collector.get_command_stats(),
        "events": collector.get_system_events(limit=limit),
    }


def main(argv: Iterable[str] | None = None) -> int:  # pragma: no cover - CLI entry point
    parser = argparse.ArgumentParser(description="Show the persisted roleplay clock state.")
    parser.add_argument("--settings", type=Path, default=None, help="Settings YAML file")
    parser.add_argument("--state", type=Path, default=None, help="Override the state file path")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table")
    parser.add_argument("--reset", action="store_true", help="Overwrite the state file with defaults")
    parser.add_argument("--stats", action="store_true", help="Include command and event telemetry")
    parser.add_argument("--telemetry", type=Path, default=None, help="Override the telemetry database")
    args = parser.parse_args(argv)

    settings = SettingsLoader(args.settings).load()
    store = ClockStateStore(args.state or settings.state_path)
    if args.reset:
        if not store.save(ClockState()):
            print(f"Failed to reset {store.path}")
            return 1
        print(f"Reset {store.path} to defaults")

    summary = describe(store.load(), settings, settings.now())
    if args.stats:
        summary["telemetry"] = telemetry_summary(args.telemetry or settings.telemetry_db)
    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2))
        return 0
    for key, value in summary.items():
        print(f"{key:<16} {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
