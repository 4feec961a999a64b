#!/usr/bin/env python3
"""
Bastion - Entry Point
=====================

Anti-nuke and anti-raid protection bot for Discord servers.

Features:
- Audit-log based nuke detection with configurable punishment
- Emergency permission lockdown with automatic restore
- Join-burst raid detection with verification
- Graceful error handling

Author: حَـــــنَّـــــا
"""

import asyncio
import sys

from dotenv import load_dotenv

from bastion.core.logger import logger
from bastion.utils.error_handler import ErrorHandler


async def main() -> None:
    """
    Main entry point.

    1. Loads .env into the environment
    2. Validates configuration
    3. Connects to Discord

    Raises:
        SystemExit: If configuration is invalid or the bot fails to start
    """
    load_dotenv()

    from bastion.core.config import ConfigValidationError, validate_and_log_config

    try:
        validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Invalid Configuration", [("Error", str(e))])
        sys.exit(1)

    from bastion.bot import BastionBot
    from bastion.core.config import get_config

    logger.tree("BASTION STARTING", [
        ("Protection", "Anti-Nuke, Anti-Raid"),
    ], emoji="🛡️")

    bot = BastionBot()
    try:
        async with bot:
            await bot.start(get_config().discord_token)
    except Exception as e:
        ErrorHandler.handle(e, location="main.main", critical=True)
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")
