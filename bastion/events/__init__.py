"""
Bastion - Events Package
========================

Event handler Cogs that feed platform events into the guard.

DESIGN:
    Each event file contains a Cog class with @commands.Cog.listener
    decorators and a setup() hook for load_extension().

    Event routing:
    - audit_log.py: privileged audit log entries -> track_action
    - members.py: member joins -> on_join, guild removal -> reset_guild
    - messages.py: mass mentions -> track_action, verification codes -> verify

Author: حَـــــنَّـــــا
"""

# =============================================================================
# Event Cog Registry
# =============================================================================

EVENT_COGS = [
    "bastion.events.audit_log",
    "bastion.events.members",
    "bastion.events.messages",
]


__all__ = [
    "EVENT_COGS",
]
