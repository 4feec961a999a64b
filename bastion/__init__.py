"""
Bastion - Source Package
========================

Anti-nuke and anti-raid protection for Discord servers.

Package Structure:
- bot.py: Discord client hosting the guard
- core/: Configuration, settings store, logging, shared state
- events/: Event cogs feeding the guard
- platform/: discord.py implementation of enforcement and notification
- services/: Detection and enforcement
- utils/: Timers, task helpers, error logging

Author: حَـــــنَّـــــا
"""

__version__ = "1.0.0"
