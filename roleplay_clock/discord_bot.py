"""Discord bot entry point for the roleplay clock."""
import asyncio
import atexit
import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from .config import Credentials, Settings, get_settings
from .health import start_health_server
from .scheduler import PresenceScheduler
from .service import ClockService, CommandResult
from .state import ClockStateStore
from .telemetry import TelemetryCollector, get_telemetry, set_telemetry
from .telemetry_decorator import track_command

logger = logging.getLogger(__name__)


async def _reply(interaction: discord.Interaction, result: CommandResult) -> None:
    await interaction.response.send_message(result.message, ephemeral=result.ephemeral)


def build_bot(
    settings: Settings,
    service: Optional[ClockService] = None,
    credentials: Optional[Credentials] = None,
    intents: Optional[discord.Intents] = None,
) -> commands.Bot:
    intents = intents or discord.Intents.default()
    credentials = credentials or Credentials.from_env()
    bot = commands.Bot(command_prefix="/", intents=intents, application_id=credentials.client_id)
    service = service or ClockService(ClockStateStore(settings.state_path), settings)
    setattr(bot, "clock_service", service)
    scheduler: Optional[PresenceScheduler] = None

    async def _publish_presence(text: str) -> None:
        try:
            await bot.change_presence(activity=discord.Game(name=text))
        except Exception:  # pragma: no cover - defensive logging
            logger.exception("Failed to update presence")
            return
        logger.debug("[Status Update] %s", text)

    def _schedule_presence(text: str) -> None:
        """Hand a presence update to the bot loop from any thread."""

        if not bot.is_ready():
            logger.debug("Skipping presence update %r; bot not ready", text)
            return
        asyncio.run_coroutine_threadsafe(_publish_presence(text), bot.loop)

    service.add_listener(_schedule_presence)

    def _shutdown() -> None:  # pragma: no cover - process shutdown hook
        if scheduler is None:
            return
        scheduler.shutdown()
        get_telemetry().flush()

    atexit.register(_shutdown)

    @bot.event
    async def on_ready() -> None:
        nonlocal scheduler
        logger.info("Roleplay clock bot connected as %s", bot.user)
        if credentials.can_register_commands:
            try:
                synced = await bot.tree.sync()
                logger.info("Registered %d commands", len(synced))
            except Exception as exc:  # pragma: no cover - logging only
                logger.exception("Failed to register commands (check CLIENT_ID): %s", exc)
        else:
            logger.error("CLIENT_ID or BOT_TOKEN is not set; skipping command registration")
        if scheduler is None:
            scheduler = PresenceScheduler(
                service,
                publisher=_schedule_presence,
                interval_seconds=settings.tick_seconds,
            )
            setattr(bot, "presence_scheduler", scheduler)
            scheduler.start()

    @app_commands.command(name="sethora", description="Define o horário atual do servidor RP")
    @track_command
    @app_commands.describe(hora="Ex: 12:35")
    async def sethora(interaction: discord.Interaction, hora: str) -> None:
        await _reply(interaction, service.on_command("sethora", {"hora": hora}))

    @app_commands.command(
        name="atualizar",
        description="Informa o novo horário para calcular a velocidade do tempo",
    )
    @track_command
    @app_commands.describe(hora="Ex: 12:40")
    async def atualizar(interaction: discord.Interaction, hora: str) -> None:
        await _reply(interaction, service.on_command("atualizar", {"hora": hora}))

    @app_commands.command(name="horaagora", description="Mostra o horário atual do servidor RP")
    @track_command
    async def horaagora(interaction: discord.Interaction) -> None:
        await _reply(interaction, service.on_command("horaagora"))

    @app_commands.command(
        name="velocidade",
        description="Mostra ou define a taxa de aceleração do tempo RP (Ex: 2.50x)",
    )
    @track_command
    @app_commands.describe(nova_taxa="Opcional: A nova taxa de aceleração (Ex: 2.5 ou 0.5).")
    async def velocidade(interaction: discord.Interaction, nova_taxa: Optional[float] = None) -> None:
        await _reply(interaction, service.on_command("velocidade", {"nova_taxa": nova_taxa}))

    bot.tree.add_command(sethora)
    bot.tree.add_command(atualizar)
    bot.tree.add_command(horaagora)
    bot.tree.add_command(velocidade)
    return bot


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    set_telemetry(TelemetryCollector(settings.telemetry_db))
    credentials = Credentials.from_env()
    start_health_server(settings.health_port)
    if not credentials.bot_token:
        raise RuntimeError("BOT_TOKEN environment variable must be set")
    bot = build_bot(settings, credentials=credentials)
    bot.run(credentials.bot_token, log_handler=None)


__all__ = ["build_bot", "main"]
