"""
Bastion - Message Events
========================

Tracks mass mentions and accepts verification codes.

Author: حَـــــنَّـــــا
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from bastion.core.config import get_config
from bastion.core.logger import logger
from bastion.core.models import ActionType
from bastion.services.verification import VerificationReason, VerificationResult, VerificationState
from bastion.utils.error_handler import safe_execute

if TYPE_CHECKING:
    from bastion.bot import BastionBot


def mention_count(message: discord.Message) -> int:
    """User plus role mentions in one message."""
    return len(message.mentions) + len(message.role_mentions)


def verification_reply(member: discord.Member, result: VerificationResult) -> str:
    if result.success:
        return f"✅ {member.mention} verified, welcome!"
    if result.reason is VerificationReason.TOO_MANY_ATTEMPTS:
        return f"⛔ {member.mention} too many wrong codes. Verification failed."
    return f"❌ {member.mention} wrong code. {result.attempts_left} attempt(s) left."


class MessageEvents(commands.Cog):
    """Message event handlers."""

    def __init__(self, bot: "BastionBot") -> None:
        self.bot = bot
        self.config = get_config()

    @commands.Cog.listener()
    @safe_execute
    async def on_message(self, message: discord.Message) -> None:
        """
        Event handler for messages.

        DESIGN: Two routes:
        1. Pending member in the verification channel -> verify code
        2. More mentions than the configured limit -> track mass mention
        """
        if message.author.bot or not message.guild or not self.bot.guard:
            return

        guild_id = message.guild.id

        # -----------------------------------------------------------------
        # Route 1: Verification code submission
        # -----------------------------------------------------------------
        if self._is_verification_channel(message):
            state = self.bot.guard.get_verification_state(guild_id, message.author.id)
            if state is VerificationState.PENDING:
                result = await self.bot.guard.verify(guild_id, message.author.id, message.content)
                await message.channel.send(
                    verification_reply(message.author, result),
                    allowed_mentions=discord.AllowedMentions(users=True, roles=False, everyone=False),
                )
                return

        # -----------------------------------------------------------------
        # Route 2: Mass mentions
        # -----------------------------------------------------------------
        mentions = mention_count(message)
        if mentions > self.config.mass_mention_limit:
            logger.tree("MASS MENTION", [
                ("Guild", f"{message.guild.name} ({guild_id})"),
                ("Author", f"{message.author} ({message.author.id})"),
                ("Mentions", str(mentions)),
                ("Channel", f"#{message.channel}"),
            ], emoji="📢")
            role_ids = [role.id for role in getattr(message.author, "roles", [])]
            await self.bot.guard.track_action(
                guild_id,
                message.author.id,
                ActionType.MASS_MENTION,
                now=message.created_at.timestamp(),
                role_ids=role_ids,
            )

    def _is_verification_channel(self, message: discord.Message) -> bool:
        configured = self.bot.guard.settings.get(message.guild.id).antiraid.verification_channel_id
        if configured:
            return message.channel.id == configured
        return getattr(message.channel, "name", None) == self.config.verification_channel_name


async def setup(bot: "BastionBot") -> None:
    """Add the message events cog to the bot."""
    await bot.add_cog(MessageEvents(bot))
    logger.debug("Message Events Loaded")


__all__ = ["MessageEvents", "mention_count", "verification_reply"]
