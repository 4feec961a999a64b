"""
Bastion - Error Handler
=======================

Categorized error logging for event handlers and startup.

Features:
- Error categorization (Discord, platform, database, network)
- Recovery hints in the log line
- Traceback logging for critical errors
- safe_execute decorator for event listeners

Author: حَـــــنَّـــــا
"""

import functools
import sqlite3
import traceback
from typing import Any, Awaitable, Callable, Optional, TypeVar

import discord

from bastion.core.errors import AuthorityError, NotFoundError, PlatformError
from bastion.core.logger import logger

T = TypeVar("T")


class ErrorHandler:
    """Turns exceptions into one categorized log line."""

    ERROR_CATEGORIES = (
        ("discord", (discord.Forbidden, discord.NotFound, discord.HTTPException)),
        ("platform", (PlatformError,)),
        ("database", (sqlite3.Error,)),
        ("network", (ConnectionError, TimeoutError, OSError)),
    )

    RECOVERY_SUGGESTIONS = (
        (discord.Forbidden, "Check bot permissions and role position"),
        (discord.NotFound, "Resource no longer exists"),
        (discord.HTTPException, "Discord API issue, the next event will retry"),
        (AuthorityError, "Move the bot's role above the target"),
        (NotFoundError, "Target already gone"),
        (sqlite3.OperationalError, "Database locked or unreadable, check the file"),
        (ConnectionError, "Network issue, check connectivity"),
        (TimeoutError, "Request timed out"),
    )

    @classmethod
    def categorize_error(cls, e: Exception) -> str:
        for category, types in cls.ERROR_CATEGORIES:
            if isinstance(e, types):
                return category
        return "general"

    @classmethod
    def get_recovery_suggestion(cls, e: Exception) -> str:
        for error_type, suggestion in cls.RECOVERY_SUGGESTIONS:
            if isinstance(e, error_type):
                return suggestion
        return "Unexpected error, check logs for details"

    @classmethod
    def handle(cls, e: Exception, location: str, critical: bool = False, **context: Any) -> None:
        """
        Log an error with its category and a recovery hint.

        Args:
            e: The exception
            location: Where the error occurred
            critical: Also log the traceback
            **context: Extra key/value pairs for the log entry
        """
        category = cls.categorize_error(e)
        details = [
            ("Location", location),
            ("Category", category),
            ("Type", type(e).__name__),
            ("Error", str(e)[:100]),
            ("Recovery", cls.get_recovery_suggestion(e)),
        ]
        details.extend((key, str(value)[:100]) for key, value in context.items())

        if critical:
            logger.error("💥 Critical Error", details)
            logger.info(f"Traceback:\n{''.join(traceback.format_exception(type(e), e, e.__traceback__))}")
        else:
            logger.warning("⚠️ Handled Error", details)


def safe_execute(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[Optional[T]]]:
    """
    Decorator for event listeners: log failures instead of raising.

    Usage:
        @commands.Cog.listener()
        @safe_execute
        async def on_member_join(self, member):
            ...
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Optional[T]:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            ErrorHandler.handle(e, location=f"{func.__module__}.{func.__name__}")
            return None

    return wrapper


__all__ = ["ErrorHandler", "safe_execute"]
