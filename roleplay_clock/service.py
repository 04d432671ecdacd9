"""Clock service owning the roleplay clock record and its commands."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from . import projection
from .config import Settings
from .models import MAX_RATE, ClockState
from .state import ClockStateStore
from .telemetry import get_telemetry

logger = logging.getLogger(__name__)

PresenceListener = Callable[[str], None]


@dataclass(frozen=True)
class CommandResult:
    """Reply produced by a chat command."""

    message: str
    ephemeral: bool = False
    changed: bool = False


class ClockService:
    """Single owner of the clock record.

    Commands arrive on the Discord event loop while the presence tick runs on
    a scheduler thread, so every read-modify-write of the record happens under
    one lock. Persistence and listener failures never roll back the in-memory
    record.
    """

    InvalidTimeError = projection.InvalidTimeError
    InvalidRateError = projection.InvalidRateError
    NonPositiveDeltaError = projection.NonPositiveDeltaError
    NotCalibratedError = projection.NotCalibratedError

    COMMANDS: Tuple[str, ...] = ("sethora", "atualizar", "horaagora", "velocidade")

    def __init__(
        self,
        store: ClockStateStore,
        settings: Settings,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._reset_rule = settings.reset_rule()
        self._clock = clock or settings.now
        self._lock = threading.Lock()
        self._listeners: List[PresenceListener] = []
        self._state = store.load()

    @property
    def state(self) -> ClockState:
        with self._lock:
            return replace(self._state)

    def now(self) -> datetime:
        return self._clock()

    def add_listener(self, listener: PresenceListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def set_time(self, text: str, now: Optional[datetime] = None) -> ClockState:
        """Anchor the clock at ``text`` (HH:MM) today and reset the rate."""

        now = now or self.now()
        hour, minute = projection.parse_time_of_day(text)
        with self._lock:
            updated = projection.recalibrate_by_rate(self._state, hour, minute, now)
            # A reset already done today stays done; an older marker is cleared.
            last = self._state.last_reset_date
            if last is not None and last.astimezone(now.tzinfo).date() != now.date():
                last = None
            self._state = replace(updated, last_reset_date=last)
            snapshot = replace(self._state)
            self._store.save(snapshot)
        logger.info("Clock set to %02d:%02d at %s", hour, minute, now.isoformat(timespec="seconds"))
        get_telemetry().track_system_event("clock_set", source="sethora")
        self._notify(now)
        return snapshot

    def recalibrate(self, text: str, now: Optional[datetime] = None) -> ClockState:
        """Derive a new rate from the current virtual time observed at ``now``."""

        now = now or self.now()
        with self._lock:
            if not self._state.is_configured:
                raise projection.NotCalibratedError("The clock has not been set yet")
            hour, minute = projection.parse_time_of_day(text)
            self._state = projection.recalibrate_by_sample(self._state, hour, minute, now)
            snapshot = replace(self._state)
            self._store.save(snapshot)
        logger.info("Clock recalibrated to %02d:%02d; rate now %.4f", hour, minute, snapshot.rate)
        get_telemetry().track_system_event("clock_recalibrated", source="atualizar")
        self._notify(now)
        return snapshot

    def current_time(self, now: Optional[datetime] = None) -> str:
        now = now or self.now()
        with self._lock:
            return projection.project(self._state, now)

    def current_rate(self) -> float:
        with self._lock:
            return self._state.rate

    def change_rate(self, new_rate: Any, now: Optional[datetime] = None) -> Tuple[float, float]:
        """Set a new rate, freezing the displayed time; returns (old, new)."""

        now = now or self.now()
        with self._lock:
            old_rate = self._state.rate
            self._state = projection.set_rate(self._state, new_rate, now)
            snapshot = replace(self._state)
            self._store.save(snapshot)
        logger.info("Clock rate changed from %.4f to %.4f", old_rate, snapshot.rate)
        get_telemetry().track_system_event("rate_changed", source="velocidade")
        self._notify(now)
        return old_rate, snapshot.rate

    def presence_text(self, now: Optional[datetime] = None) -> str:
        now = now or self.now()
        with self._lock:
            return self._presence_text_locked(now)

    def _presence_text_locked(self, now: datetime) -> str:
        if not self._state.is_configured:
            return self._settings.presence_awaiting
        return f"{self._settings.presence_prefix}{projection.project(self._state, now)}"

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def on_tick(self, now: Optional[datetime] = None) -> str:
        """Run the daily reset check and return the presence text for ``now``."""

        now = now or self.now()
        with self._lock:
            self._state, fired = self._reset_rule.check(self._state, now)
            if fired:
                self._store.save(replace(self._state))
            text = self._presence_text_locked(now)
        if fired:
            get_telemetry().track_system_event("daily_reset", source="scheduler")
        return text

    def on_command(
        self,
        name: str,
        args: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        """Run a chat command, turning user mistakes into ephemeral replies."""

        handlers: Dict[str, Callable[[Mapping[str, Any], datetime], CommandResult]] = {
            "sethora": self._cmd_set_time,
            "atualizar": self._cmd_recalibrate,
            "horaagora": self._cmd_current_time,
            "velocidade": self._cmd_rate,
        }
        handler = handlers[name]
        return handler(args or {}, now or self.now())

    def _cmd_set_time(self, args: Mapping[str, Any], now: datetime) -> CommandResult:
        text = str(args.get("hora") or "")
        try:
            state = self.set_time(text, now)
        except projection.InvalidTimeError:
            return CommandResult(
                "⚠️ Formato de hora inválido. Use o formato HH:MM (Ex: 12:35).", ephemeral=True
            )
        label = state.virtual_anchor.strftime("%H:%M")
        return CommandResult(
            f"✔ Horário definido como **{label}** e velocidade resetada para **1.00x**!",
            changed=True,
        )

    def _cmd_recalibrate(self, args: Mapping[str, Any], now: datetime) -> CommandResult:
        text = str(args.get("hora") or "")
        try:
            state = self.recalibrate(text, now)
        except projection.NotCalibratedError:
            return CommandResult(
                "⚠️ Use /sethora primeiro para definir o ponto de partida.", ephemeral=True
            )
        except projection.InvalidTimeError:
            return CommandResult(
                "⚠️ Formato de hora inválido. Use o formato HH:MM (Ex: 12:40).", ephemeral=True
            )
        except projection.NonPositiveDeltaError:
            return CommandResult(
                "⚠️ O tempo real ou o tempo de jogo não avançaram o suficiente "
                "para calcular uma nova taxa.",
                ephemeral=True,
            )
        except projection.InvalidRateError:
            return CommandResult(
                f"⚠️ A velocidade calculada excede o máximo permitido ({MAX_RATE:g}x).",
                ephemeral=True,
            )
        return CommandResult(f"🔧 Nova velocidade calculada: **{state.rate:.2f}x**", changed=True)

    def _cmd_current_time(self, args: Mapping[str, Any], now: datetime) -> CommandResult:
        return CommandResult(f"🕒 Horário do servidor RP: **{self.current_time(now)}**")

    def _cmd_rate(self, args: Mapping[str, Any], now: datetime) -> CommandResult:
        new_rate = args.get("nova_taxa")
        if new_rate is None:
            return CommandResult(f"🚀 Velocidade do Tempo RP atual: **{self.current_rate():.2f}x**")
        try:
            old_rate, rate = self.change_rate(new_rate, now)
        except projection.NotCalibratedError:
            return CommandResult(
                "⚠️ O tempo de RP deve ser configurado primeiro com /sethora.", ephemeral=True
            )
        except projection.InvalidRateError:
            return CommandResult(
                f"⚠️ Taxa inválida. Use um número positivo até {MAX_RATE:g} (Ex: 2.5).",
                ephemeral=True,
            )
        return CommandResult(
            f"🚀 Velocidade do Tempo RP alterada de **{old_rate:.2f}x** para **{rate:.2f}x**!",
            changed=True,
        )

    def _notify(self, now: datetime) -> None:
        text = self.presence_text(now)
        for listener in list(self._listeners):
            try:
                listener(text)
            except Exception:
                logger.exception("Presence listener failed")


__all__ = ["ClockService", "CommandResult"]
