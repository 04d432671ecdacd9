"""Configuration loading utilities for the roleplay clock bot."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .models import truncate_ms
from .projection import parse_time_of_day
from .reset import DailyResetRule

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    state_path: Path
    timezone: str
    tick_seconds: float
    reset_hour: int
    reset_minute: int
    reset_window_minutes: int
    reset_target: str
    presence_prefix: str
    presence_awaiting: str
    health_port: int
    telemetry_db: Optional[Path]

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        data = data or {}
        clock_cfg = data.get("clock", {})
        reset_cfg = data.get("daily_reset", {})
        presence_cfg = data.get("presence", {})
        telemetry_db = data.get("telemetry", {}).get("db_path", "telemetry.db")
        trigger_hour, trigger_minute = parse_time_of_day(str(reset_cfg.get("trigger", "05:00")))
        target = str(reset_cfg.get("time", "18:00"))
        parse_time_of_day(target)
        tick_seconds = float(clock_cfg.get("tick_seconds", 10))
        if tick_seconds <= 0:
            raise ValueError("clock.tick_seconds must be positive")
        return Settings(
            state_path=Path(clock_cfg.get("state_path", "tempo.json")),
            timezone=str(clock_cfg.get("timezone") or ""),
            tick_seconds=tick_seconds,
            reset_hour=trigger_hour,
            reset_minute=trigger_minute,
            reset_window_minutes=int(reset_cfg.get("window_minutes", 60)),
            reset_target=target,
            presence_prefix=str(presence_cfg.get("prefix", "🕒 RP: ")),
            presence_awaiting=str(presence_cfg.get("awaiting", "Aguardando /sethora")),
            health_port=int(data.get("health", {}).get("port", 3000)),
            telemetry_db=Path(telemetry_db) if telemetry_db else None,
        )

    def with_env_overrides(self, env: Mapping[str, str]) -> "Settings":
        """Apply deployment environment variables on top of the file values."""

        overrides: Dict[str, Any] = {}
        if env.get("RP_CLOCK_STATE"):
            overrides["state_path"] = Path(env["RP_CLOCK_STATE"])
        if env.get("RP_CLOCK_TIMEZONE"):
            overrides["timezone"] = env["RP_CLOCK_TIMEZONE"]
        port = env.get("PORT")
        if port:
            try:
                overrides["health_port"] = int(port)
            except ValueError:
                logger.warning("Invalid PORT %s; keeping %s", port, self.health_port)
        return replace(self, **overrides) if overrides else self

    def reset_rule(self) -> DailyResetRule:
        target_hour, target_minute = parse_time_of_day(self.reset_target)
        return DailyResetRule(
            hour=self.reset_hour,
            minute=self.reset_minute,
            window_minutes=self.reset_window_minutes,
            reset_hour=target_hour,
            reset_minute=target_minute,
        )

    def zone(self) -> tzinfo:
        """Return the configured zone, or the host's local zone when unset."""

        if self.timezone:
            try:
                return ZoneInfo(self.timezone)
            except ZoneInfoNotFoundError:
                logger.warning("Unknown timezone %s; using the system local zone", self.timezone)
        return datetime.now().astimezone().tzinfo

    def now(self) -> datetime:
        return truncate_ms(datetime.now(self.zone()))


@dataclass(frozen=True)
class Credentials:
    """Discord application id and bot token taken from the environment."""

    client_id: Optional[int]
    bot_token: Optional[str]

    @property
    def can_register_commands(self) -> bool:
        return self.client_id is not None and bool(self.bot_token)

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "Credentials":
        env = os.environ if env is None else env
        client_id: Optional[int] = None
        raw = env.get("CLIENT_ID")
        if raw:
            try:
                client_id = int(raw)
            except ValueError:
                logger.warning("Invalid CLIENT_ID: %s", raw)
        return Credentials(client_id=client_id, bot_token=env.get("BOT_TOKEN") or None)


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.environ.get("RP_CLOCK_SETTINGS")
        self._path = path or (Path(env_path) if env_path else DEFAULT_SETTINGS_PATH)
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        self._cache = Settings.from_dict(data).with_env_overrides(os.environ)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


__all__ = ["Credentials", "Settings", "SettingsLoader", "get_settings"]
