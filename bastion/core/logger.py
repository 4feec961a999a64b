"""
Bastion - Logger Module
=======================

Custom tree-style logging with daily rotation.

DESIGN:
    Structured, hierarchical output that is easy to scan while an attack
    is in progress. Every detection and enforcement step logs a tree with
    the guild, the actor or member, and the action involved.

    Key features:
    - Tree-style formatting for structured data visualization
    - Daily log rotation in dated folders
    - 7-day log retention with automatic cleanup
    - Session tracking with unique run IDs
    - Discord webhook integration for error alerts

Author: حَـــــنَّـــــا
"""

import os
import uuid
import aiohttp
import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Tuple, Optional

from zoneinfo import ZoneInfo


# =============================================================================
# Constants
# =============================================================================

LOGS_DIR = Path(os.getenv("BASTION_LOG_DIR", "logs"))
"""Directory for all log files, organized by date."""

LOG_RETENTION_DAYS = 7
"""Number of days to retain log directories before cleanup."""

LOG_TZ = ZoneInfo(os.getenv("BASTION_TIMEZONE", "UTC"))
"""Timezone used for every log timestamp."""

Details = Optional[List[Tuple[str, str]]]


# =============================================================================
# Tree Logger Class
# =============================================================================

class TreeLogger:
    """
    Custom logger with tree-style formatting.

    DESIGN:
        Uses tree-style output (├─ └─) for visual hierarchy.
        Separate error log file for quick troubleshooting.
        Optional webhook notifications for errors.

    Attributes:
        run_id: Unique identifier for this bot session.
        log_file: Path to the main log file.
        error_file: Path to the error-only log file.
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self) -> None:
        """
        Initialize logger with run ID and daily log file.

        Creates dated log directory, initializes log files,
        cleans up old logs, and writes session header.
        """
        self.run_id: str = str(uuid.uuid4())[:8]
        self._webhook_url: Optional[str] = None

        today = datetime.now(LOG_TZ).strftime("%Y-%m-%d")
        self.log_dir = LOGS_DIR / today
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / f"Bastion-{today}.log"
        self.error_file = self.log_dir / f"Bastion-Errors-{today}.log"

        self._cleanup_old_logs()
        self._write_session_header()

    def set_webhook(self, url: Optional[str]) -> None:
        """
        Set webhook URL for error notifications.

        Args:
            url: Discord webhook URL for error alerts.
        """
        self._webhook_url = url

    # =========================================================================
    # Log Cleanup
    # =========================================================================

    def _cleanup_old_logs(self) -> None:
        """Remove dated log directories older than the retention period."""
        if not LOGS_DIR.exists():
            return

        now = datetime.now()
        deleted = 0

        for item in LOGS_DIR.iterdir():
            if not item.is_dir():
                continue
            try:
                dir_date = datetime.strptime(item.name, "%Y-%m-%d")
            except ValueError:
                continue  # Not a dated directory

            if (now - dir_date).days > LOG_RETENTION_DAYS:
                for f in item.iterdir():
                    f.unlink()
                item.rmdir()
                deleted += 1

        if deleted > 0:
            print(f"[LOG CLEANUP] Removed {deleted} old log directories")

    # =========================================================================
    # Session Header
    # =========================================================================

    def _write_session_header(self) -> None:
        """Write session start marker to log file."""
        header = f"""
============================================================
NEW SESSION - RUN ID: {self.run_id}
[{datetime.now(LOG_TZ).strftime("%I:%M:%S %p %Z")}]
============================================================
"""
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(header)

    # =========================================================================
    # Core Logging
    # =========================================================================

    def _get_timestamp(self) -> str:
        return datetime.now(LOG_TZ).strftime("[%I:%M:%S %p %Z]")

    def _write(
        self,
        message: str,
        emoji: str = "",
        include_timestamp: bool = True,
        is_error: bool = False,
    ) -> None:
        """
        Write log message to console and file.

        Args:
            message: Log message content.
            emoji: Optional emoji prefix.
            include_timestamp: Whether to prepend timestamp.
            is_error: Whether to also write to error log.
        """
        if include_timestamp:
            timestamp = self._get_timestamp()
            full_message = f"{timestamp} {emoji} {message}" if emoji else f"{timestamp} {message}"
        else:
            full_message = f"{emoji} {message}" if emoji else message

        print(full_message)

        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(f"{full_message}\n")

        if is_error:
            with open(self.error_file, "a", encoding="utf-8") as f:
                f.write(f"{full_message}\n")

    def _write_details(self, details: List[Tuple[str, str]], is_error: bool = False) -> None:
        for i, (key, value) in enumerate(details):
            prefix = "└─" if i == len(details) - 1 else "├─"
            self._write(f"  {prefix} {key}: {value}", include_timestamp=False, is_error=is_error)

    # =========================================================================
    # Tree Formatting
    # =========================================================================

    def tree(
        self,
        title: str,
        items: List[Tuple[str, str]],
        emoji: str = "📦",
    ) -> None:
        """
        Log structured data in tree format.

        Args:
            title: Main heading for the tree.
            items: List of (key, value) tuples to display.
            emoji: Emoji prefix for the title.

        Example output:
            [02:30:45 PM UTC] 🛡️ Emergency Lockdown Enabled
              ├─ Guild: 1234
              ├─ Roles Modified: 4
              └─ Failed Roles: Admin
        """
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write("\n")

        self._write(title, emoji=emoji)
        self._write_details(items)

        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write("\n")

    # =========================================================================
    # Log Levels
    # =========================================================================

    def debug(self, msg: str, details: Details = None) -> None:
        """Log debug message (only if DEBUG env var set)."""
        if os.getenv("DEBUG"):
            self._write(msg, "🔍")
            if details:
                self._write_details(details)

    def info(self, msg: str, details: Details = None) -> None:
        self._write(msg, "ℹ️")
        if details:
            self._write_details(details)

    def success(self, msg: str, details: Details = None) -> None:
        self._write(msg, "✅")
        if details:
            self._write_details(details)

    def warning(self, msg: str, details: Details = None) -> None:
        self._write(msg, "⚠️")
        if details:
            self._write_details(details)

    def error(self, msg: str, details: Details = None) -> None:
        """
        Log error message with optional structured details.

        DESIGN:
            Errors with details use tree format for visibility.
            Sends to webhook if configured and an event loop is running.
            Always written to both main and error log files.

        Args:
            msg: Error message or title.
            details: Optional list of (key, value) detail tuples.
        """
        self._write(msg, "❌", is_error=True)
        if not details:
            return

        self._write_details(details, is_error=True)

        if self._webhook_url:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return  # Called from sync context, file log is enough
            loop.create_task(self._send_webhook_error(msg, details))

    def critical(self, msg: str) -> None:
        self._write(msg, "🚨", is_error=True)

    # =========================================================================
    # Webhook Integration
    # =========================================================================

    async def _send_webhook_error(
        self,
        title: str,
        details: List[Tuple[str, str]],
    ) -> None:
        """
        Send error notification to Discord webhook.

        Args:
            title: Error title for the embed.
            details: List of (key, value) detail tuples.
        """
        if not self._webhook_url:
            return

        description = "\n".join([f"**{k}:** {v}" for k, v in details])
        payload = {
            "embeds": [{
                "title": f"❌ {title}",
                "description": description,
                "color": 0xFF0000,
                "timestamp": datetime.now(LOG_TZ).isoformat(),
                "footer": {"text": f"Run ID: {self.run_id}"},
            }]
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._webhook_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=10),
                ) as resp:
                    if resp.status != 204:
                        print(f"Webhook error: {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"Failed to send webhook: {e}")


# =============================================================================
# Global Instance
# =============================================================================

logger = TreeLogger()
"""Global logger instance shared by every module."""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "logger",
    "TreeLogger",
    "LOG_TZ",
]
