"""
Bastion - Platform Package
==========================

Enforcement primitives and notifications.

DESIGN:
    base.py holds the protocols the services depend on;
    discord_platform.py implements them with discord.py.

Author: حَـــــنَّـــــا
"""

from .base import GuildPlatform, Notifier


__all__ = [
    "GuildPlatform",
    "Notifier",
]
