"""
Bastion - Member Events
=======================

Feeds member joins to raid detection and clears state for guilds the
bot leaves.

Author: حَـــــنَّـــــا
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from bastion.core.logger import logger
from bastion.core.models import JoinRecord
from bastion.utils.error_handler import safe_execute

if TYPE_CHECKING:
    from bastion.bot import BastionBot


def join_record(member: discord.Member) -> JoinRecord:
    """Snapshot the fields raid detection scores."""
    joined = member.joined_at or discord.utils.utcnow()
    return JoinRecord(
        member_id=member.id,
        username=member.name,
        account_created_at=member.created_at.timestamp(),
        has_avatar=member.avatar is not None,
        joined_at=joined.timestamp(),
    )


class MemberEvents(commands.Cog):
    """Member event handlers."""

    def __init__(self, bot: "BastionBot") -> None:
        self.bot = bot

    @commands.Cog.listener()
    @safe_execute
    async def on_member_join(self, member: discord.Member) -> None:
        # Bot additions are tracked from the audit log against whoever added them
        if member.bot or not self.bot.guard:
            return

        age_days = (discord.utils.utcnow() - member.created_at).days
        logger.tree("MEMBER JOINED", [
            ("User", f"{member} ({member.id})"),
            ("Guild", f"{member.guild.name} ({member.guild.id})"),
            ("Account Age", f"{age_days} days"),
            ("Avatar", "Yes" if member.avatar else "No"),
        ], emoji="📥")

        await self.bot.guard.on_join(member.guild.id, join_record(member))

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        if self.bot.guard:
            self.bot.guard.reset_guild(guild.id)
        logger.info("Left Guild", [("Guild", f"{guild.name} ({guild.id})")])

    @commands.Cog.listener()
    async def on_resumed(self) -> None:
        logger.info("Bot Connection Resumed")


async def setup(bot: "BastionBot") -> None:
    """Add the member events cog to the bot."""
    await bot.add_cog(MemberEvents(bot))
    logger.debug("Member Events Loaded")


__all__ = ["MemberEvents", "join_record"]
