"""
Bastion - Health Check Server
=============================

HTTP health and status endpoints for external monitoring.

DESIGN:
    Lightweight aiohttp server running inside the bot's event loop.
    /health reports connection state for uptime checkers.
    /status/{guild_id} reports anti-nuke and anti-raid state for one
    guild as JSON, without member data.

Author: حَـــــنَّـــــا
"""

from datetime import datetime
from typing import Any, Optional, TYPE_CHECKING

from aiohttp import web

from bastion.core.logger import LOG_TZ, logger

if TYPE_CHECKING:
    from bastion.services.guard import GuardService


# =============================================================================
# Health Check Server
# =============================================================================

class HealthCheckServer:
    """
    Simple HTTP health check server for monitoring.

    Attributes:
        bot: Client whose connection state is reported.
        guard: Guard facade used for per-guild status.
        port: Port number for the HTTP server.
        app: aiohttp Application instance.
        runner: aiohttp AppRunner for lifecycle management.
    """

    def __init__(self, bot: Any, guard: "GuardService", port: int = 8081) -> None:
        self.bot = bot
        self.guard = guard
        self.port = port
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None

        self.app.router.add_get("/health", self.health_handler)
        self.app.router.add_get("/", self.health_handler)
        self.app.router.add_get("/status/{guild_id}", self.status_handler)

    # =========================================================================
    # Request Handlers
    # =========================================================================

    async def health_handler(self, request: web.Request) -> web.Response:
        """
        Handle health check requests.

        Returns:
            JSON with "healthy" once connected to Discord, "starting" before.
        """
        is_connected = self.bot.is_ready()
        status = {
            "status": "healthy" if is_connected else "starting",
            "bot": "Bastion",
            "connected": is_connected,
            "guilds": len(self.bot.guilds),
            "timers": len(self.guard.state.timers),
            "timestamp": datetime.now(LOG_TZ).isoformat(),
        }

        logger.debug(f"Health check: {status['status']}")
        return web.json_response(status)

    async def status_handler(self, request: web.Request) -> web.Response:
        try:
            guild_id = int(request.match_info["guild_id"])
        except ValueError:
            return web.json_response({"error": "guild_id must be an integer"}, status=400)

        if self.bot.get_guild(guild_id) is None:
            return web.json_response({"error": "Unknown guild"}, status=404)

        return web.json_response({
            "guild_id": str(guild_id),
            "antinuke": self.guard.get_status(guild_id),
            "antiraid": self.guard.get_raid_status(guild_id),
            "quarantined": [str(member_id) for member_id in self.guard.list_quarantined(guild_id)],
            "timestamp": datetime.now(LOG_TZ).isoformat(),
        })

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """Start serving on all interfaces. Failures are logged, not raised."""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, "0.0.0.0", self.port)
            await site.start()

            logger.tree("Health Server Started", [
                ("Port", str(self.port)),
                ("Endpoint", f"http://0.0.0.0:{self.port}/health"),
            ], emoji="🏥")

        except OSError as e:
            logger.error("Health Server Startup Failed", [
                ("Port", str(self.port)),
                ("Error", str(e)[:100]),
            ])

    async def stop(self) -> None:
        """Stop the server. Safe to call if it never started."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health check server stopped")


__all__ = ["HealthCheckServer"]
