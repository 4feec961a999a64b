"""
Bastion - Anti-Nuke Constants
=============================

Permission masks and action groupings for anti-nuke protection.
Thresholds are per guild, see bastion.core.settings.

Author: حَـــــنَّـــــا
"""

import discord

from bastion.core.models import ActionType


# Permissions stripped during emergency lockdown and by STRIP_ROLES
DANGEROUS_PERMISSIONS: int = discord.Permissions(
    administrator=True,
    ban_members=True,
    kick_members=True,
    manage_roles=True,
    manage_channels=True,
    manage_guild=True,
    manage_webhooks=True,
).value

# Granting any of these to a role counts as a permission update
ESCALATION_PERMISSIONS: int = discord.Permissions(
    administrator=True,
    ban_members=True,
    kick_members=True,
    manage_guild=True,
).value

# Lets the bot run emergency lockdown at all
MANAGE_ROLES: int = discord.Permissions(manage_roles=True).value
ADMINISTRATOR: int = discord.Permissions(administrator=True).value

# Denied on every channel for the quarantine role
QUARANTINE_DENY: int = discord.Permissions(
    send_messages=True,
    add_reactions=True,
    attach_files=True,
    create_public_threads=True,
    create_private_threads=True,
    use_application_commands=True,
).value

# Deletions that feed the multi-actor emergency signal
COORDINATED_ACTIONS = frozenset({
    ActionType.ROLE_DELETE,
    ActionType.CHANNEL_DELETE,
    ActionType.WEBHOOK_DELETE,
})


__all__ = [
    "DANGEROUS_PERMISSIONS",
    "ESCALATION_PERMISSIONS",
    "MANAGE_ROLES",
    "ADMINISTRATOR",
    "QUARANTINE_DENY",
    "COORDINATED_ACTIONS",
]
