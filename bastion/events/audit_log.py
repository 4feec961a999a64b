"""
Bastion - Audit Log Events
==========================

Routes privileged audit log entries to the anti-nuke tracker.

DESIGN:
    The audit log is the only place Discord says who performed an action,
    so every tracked action is read from it. Role updates count only when
    they grant escalation permissions, and member role updates only when
    an administrator role is added.

Author: حَـــــنَّـــــا
"""

from typing import Any, Optional, TYPE_CHECKING

import discord
from discord.ext import commands

from bastion.core.logger import logger
from bastion.core.models import ActionType
from bastion.services.antinuke.constants import ADMINISTRATOR, ESCALATION_PERMISSIONS
from bastion.utils.error_handler import safe_execute

if TYPE_CHECKING:
    from bastion.bot import BastionBot


# =============================================================================
# Routing Table
# =============================================================================

DIRECT_ACTIONS = {
    discord.AuditLogAction.ban: ActionType.BAN,
    discord.AuditLogAction.kick: ActionType.KICK,
    discord.AuditLogAction.role_delete: ActionType.ROLE_DELETE,
    discord.AuditLogAction.channel_delete: ActionType.CHANNEL_DELETE,
    discord.AuditLogAction.webhook_delete: ActionType.WEBHOOK_DELETE,
    discord.AuditLogAction.emoji_delete: ActionType.EMOJI_DELETE,
    discord.AuditLogAction.guild_update: ActionType.SERVER_UPDATE,
    discord.AuditLogAction.bot_add: ActionType.BOT_ADD,
    discord.AuditLogAction.member_prune: ActionType.MEMBER_PRUNE,
}


def _permission_value(diff: Any) -> int:
    permissions = getattr(diff, "permissions", None)
    return permissions.value if permissions is not None else 0


def grants_escalation(entry: Any) -> bool:
    """True if a role update added any escalation permission."""
    gained = _permission_value(entry.after) & ~_permission_value(entry.before)
    return bool(gained & ESCALATION_PERMISSIONS)


def adds_admin_role(entry: Any, guild: Any) -> bool:
    """True if a member role update added a role carrying administrator."""
    for added in getattr(entry.after, "roles", None) or []:
        role = guild.get_role(added.id)
        if role is not None and role.permissions.value & ADMINISTRATOR:
            return True
    return False


def classify_entry(entry: Any) -> Optional[ActionType]:
    """
    Map an audit log entry to a tracked action.

    Args:
        entry: discord.AuditLogEntry (or anything shaped like one).

    Returns:
        The ActionType to track, or None if the entry is not tracked.
    """
    action = DIRECT_ACTIONS.get(entry.action)
    if action is not None:
        return action

    if entry.action == discord.AuditLogAction.role_update and grants_escalation(entry):
        return ActionType.PERMISSION_UPDATE

    if entry.action == discord.AuditLogAction.member_role_update and adds_admin_role(entry, entry.guild):
        return ActionType.PERMISSION_UPDATE

    return None


# =============================================================================
# Cog
# =============================================================================

class AuditLogEvents(commands.Cog):
    """Audit log event handlers."""

    def __init__(self, bot: "BastionBot") -> None:
        self.bot = bot

    @commands.Cog.listener()
    @safe_execute
    async def on_audit_log_entry_create(self, entry: discord.AuditLogEntry) -> None:
        if not self.bot.guard or not entry.user_id or not entry.guild:
            return

        # Actions by the bot itself are enforcement, not attacks
        if self.bot.user and entry.user_id == self.bot.user.id:
            return

        action = classify_entry(entry)
        if action is None:
            return

        logger.debug(f"Audit Entry: {action.display}", [
            ("Guild", f"{entry.guild.name} ({entry.guild.id})"),
            ("Actor", str(entry.user_id)),
        ])
        await self.bot.guard.track_action(
            entry.guild.id,
            entry.user_id,
            action,
            now=entry.created_at.timestamp(),
        )


async def setup(bot: "BastionBot") -> None:
    """Add the audit log events cog to the bot."""
    await bot.add_cog(AuditLogEvents(bot))
    logger.debug("Audit Log Events Loaded")


__all__ = ["AuditLogEvents", "classify_entry", "grants_escalation", "adds_admin_role"]
