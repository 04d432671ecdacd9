"""Deployment smoke checks for the roleplay clock bot."""
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping

from ..config import SettingsLoader


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: str
    detail: str


REQUIRED_ENV = ["BOT_TOKEN", "CLIENT_ID"]


def _status(level: str, name: str, detail: str) -> CheckResult:
    return CheckResult(name=name, status=level, detail=detail)


def run_checks(env: Mapping[str, str], settings_path: Path | None = None) -> List[CheckResult]:
    results: List[CheckResult] = []

    for key in REQUIRED_ENV:
        if env.get(key):
            results.append(_status("ok", key, "present"))
        else:
            results.append(_status("error", key, "missing"))

    client_id = env.get("CLIENT_ID", "")
    if client_id and not client_id.isdigit():
        results.append(_status("error", "CLIENT_ID_format", "CLIENT_ID must be a numeric application id"))

    port = env.get("PORT")
    if port is None:
        results.append(_status("warning", "PORT", "not set; health endpoint uses the settings file port"))
    elif port.isdigit() and 0 < int(port) < 65536:
        results.append(_status("ok", "PORT", f"health endpoint on {port}"))
    else:
        results.append(_status("error", "PORT", f"invalid port {port!r}"))

    try:
        settings = SettingsLoader(settings_path).load(force=True)
    except (OSError, ValueError) as exc:
        results.append(_status("error", "settings", f"failed to load settings: {exc}"))
        return results
    results.append(_status("ok", "settings", f"tick every {settings.tick_seconds:g}s"))

    state_path = Path(env.get("RP_CLOCK_STATE") or settings.state_path)
    parent = state_path.resolve().parent
    if parent.exists() and os.access(parent, os.W_OK):
        results.append(_status("ok", "state_path", f"{state_path} is writable"))
    else:
        results.append(_status("error", "state_path", f"{parent} is not writable"))

    if settings.tick_seconds > settings.reset_window_minutes * 60:
        results.append(
            _status(
                "warning",
                "daily_reset",
                "tick interval is wider than the reset window; the daily reset may be missed",
            )
        )
    else:
        results.append(_status("ok", "daily_reset", "tick interval fits the reset window"))

    return results


def _print_table(results: Iterable[CheckResult]) -> None:
    header = f"{'Check':<32} {'Status':<8} Detail"
    print(header)
    print("-" * len(header))
    for result in results:
        print(f"{result.name:<32} {result.status:<8} {result.detail}")


def main(argv: Iterable[str] | None = None) -> int:  # pragma: no cover - CLI entry point
    parser = argparse.ArgumentParser(description="Run deployment smoke checks for the roleplay clock bot.")
    parser.add_argument("--settings", type=Path, default=None, help="Settings YAML to validate")
    args = parser.parse_args(argv)
    results = run_checks(os.environ, args.settings)
    _print_table(results)
    if any(result.status == "error" for result in results):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
