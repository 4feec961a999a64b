"""
Bastion - Main Bot Class
========================

Discord client that hosts the guard.

Features:
- Anti-nuke tracking from the audit log
- Raid detection and verification on member join
- Mass-mention tracking
- Health and status HTTP endpoint

DESIGN:
    SERVICE INITIALIZATION ORDER:
    1. setup_hook (before any event is dispatched):
       - Settings store, platform adapter, notifier
       - GuardService
       - Event cog loading
    2. on_ready:
       - Error webhook
       - Health Check Server

Author: حَـــــنَّـــــا
"""

from datetime import datetime
from typing import Optional

import discord
from discord.ext import commands

from bastion.core.config import Config, get_config
from bastion.core.database import DatabaseManager, SettingsStore, get_db
from bastion.core.health import HealthCheckServer
from bastion.core.logger import LOG_TZ, logger
from bastion.platform.discord_platform import DiscordNotifier, DiscordPlatform
from bastion.services.guard import GuardService


# =============================================================================
# BastionBot Class
# =============================================================================

class BastionBot(commands.Bot):
    """
    Main Discord bot class.

    Attributes:
        config: Process configuration.
        db: Settings database.
        guard: Guard facade, created in setup_hook.
        health_server: Health/status server, started in on_ready.
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or get_config()

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.db: DatabaseManager = get_db()
        self.start_time: datetime = datetime.now(LOG_TZ)
        self.guard: Optional[GuardService] = None
        self.health_server: Optional[HealthCheckServer] = None
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Build the guard and load event cogs before on_ready."""
        settings = SettingsStore(self.db)
        self.guard = GuardService(
            platform=DiscordPlatform(self, self.config),
            notifier=DiscordNotifier(self, settings, self.config),
            settings=settings,
            config=self.config,
        )

        from bastion.events import EVENT_COGS
        for cog in EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.debug(f"Event Cog Loaded: {cog.split('.')[-1]}")
            except commands.ExtensionError as e:
                logger.error("Failed to Load Event Cog", [("Cog", cog), ("Error", str(e))])

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        self.health_server = HealthCheckServer(self, self.guard, self.config.health_check_port)
        await self.health_server.start()

        logger.tree("BASTION READY", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
            ("Health Server", "Running" if self.health_server.runner else "Stopped"),
        ], emoji="🛡️")

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def close(self) -> None:
        """Stop timers, the health server and the database, then disconnect."""
        logger.info("Initiating Graceful Shutdown")

        if self.guard:
            await self.guard.close()

        if self.health_server:
            await self.health_server.stop()

        self.db.close()
        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now(LOG_TZ) - self.start_time)),
        ], emoji="🛑")


__all__ = ["BastionBot"]
