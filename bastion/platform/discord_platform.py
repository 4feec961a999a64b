"""
Bastion - Discord Platform
==========================

discord.py implementation of GuildPlatform and Notifier.

DESIGN:
    Every mutating call goes through _call(), which translates discord.py
    failures into the core's error types:
        Forbidden      -> AuthorityError (with the blocking role if known)
        NotFound       -> NotFoundError
        HTTPException  -> PlatformError (after log_http_error)
    Members and roles leave this module only as RoleInfo/MemberInfo
    snapshots.

    Notification failures are logged and never raised: an alert that
    cannot be delivered must not undo the enforcement it reports.

Author: حَـــــنَّـــــا
"""

from datetime import datetime
from typing import Any, Awaitable, List, Optional, TYPE_CHECKING

import discord

from bastion.core.config import Config, EmbedColors, get_config
from bastion.core.errors import AuthorityError, NotFoundError, PlatformError
from bastion.core.logger import LOG_TZ, logger
from bastion.core.models import Alert, MemberInfo, RoleInfo, RoleSpec
from bastion.utils.discord_rate_limit import log_http_error

if TYPE_CHECKING:
    from bastion.core.database import SettingsProvider


# =============================================================================
# Snapshot Helpers
# =============================================================================

def role_info(role: discord.Role) -> RoleInfo:
    return RoleInfo(
        id=role.id,
        name=role.name,
        position=role.position,
        permissions=role.permissions.value,
        managed=role.managed,
        is_default=role.is_default(),
    )


def member_info(member: discord.Member) -> MemberInfo:
    return MemberInfo(
        id=member.id,
        name=member.name,
        role_ids=[role.id for role in member.roles if not role.is_default()],
        bot=member.bot,
        permissions=member.guild_permissions.value,
        top_role_position=member.top_role.position,
    )


def build_embed(alert: Alert) -> discord.Embed:
    """Render an Alert as a Discord embed."""
    embed = discord.Embed(
        title=alert.title,
        description=alert.description or None,
        color=alert.color if alert.color is not None else EmbedColors.INFO,
        timestamp=datetime.now(LOG_TZ),
    )
    for name, value in alert.fields:
        embed.add_field(name=name, value=str(value)[:1024] or "-", inline=False)
    embed.set_footer(text="Bastion")
    return embed


# =============================================================================
# Guild Platform
# =============================================================================

class DiscordPlatform:
    """Enforcement primitives backed by a discord.py client."""

    def __init__(self, bot: discord.Client, config: Optional[Config] = None) -> None:
        self.bot = bot
        self.config = config or get_config()

    def _guild(self, guild_id: int) -> discord.Guild:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            raise NotFoundError(f"Guild {guild_id} not available")
        return guild

    async def _fetch_member(self, guild: discord.Guild, member_id: int) -> Optional[discord.Member]:
        member = guild.get_member(member_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(member_id)
        except discord.NotFound:
            return None

    async def _call(
        self,
        operation: str,
        coro: Awaitable[Any],
        guild: discord.Guild,
        target: Optional[discord.Member] = None,
    ) -> Any:
        try:
            return await coro
        except discord.Forbidden as e:
            blocker = None
            if target is not None and guild.me is not None and target.top_role >= guild.me.top_role:
                blocker = target.top_role.name
            raise AuthorityError(f"{operation} forbidden", blocker=blocker or "Missing permissions") from e
        except discord.NotFound as e:
            raise NotFoundError(f"{operation}: target not found") from e
        except discord.HTTPException as e:
            log_http_error(e, operation, [("Guild", f"{guild.name} ({guild.id})")])
            raise PlatformError(f"{operation} failed: {e.status}") from e

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_roles(self, guild_id: int) -> List[RoleInfo]:
        return [role_info(role) for role in self._guild(guild_id).roles]

    async def get_member(self, guild_id: int, member_id: int) -> Optional[MemberInfo]:
        guild = self._guild(guild_id)
        try:
            member = await self._fetch_member(guild, member_id)
        except discord.HTTPException as e:
            log_http_error(e, "Fetch Member", [("Member", str(member_id))])
            raise PlatformError(f"Fetch member failed: {e.status}") from e
        return member_info(member) if member else None

    async def get_self_member(self, guild_id: int) -> MemberInfo:
        guild = self._guild(guild_id)
        if guild.me is None:
            raise NotFoundError(f"Bot member missing in guild {guild_id}")
        return member_info(guild.me)

    def get_owner_id(self, guild_id: int) -> Optional[int]:
        guild = self.bot.get_guild(guild_id)
        return guild.owner_id if guild else None

    # =========================================================================
    # Member Mutations
    # =========================================================================

    async def ban(self, guild_id: int, member_id: int, reason: str) -> None:
        guild = self._guild(guild_id)
        target = guild.get_member(member_id)
        await self._call(
            "Ban",
            guild.ban(discord.Object(id=member_id), reason=reason[:512], delete_message_seconds=0),
            guild,
            target,
        )

    async def kick(self, guild_id: int, member_id: int, reason: str) -> None:
        guild = self._guild(guild_id)
        target = guild.get_member(member_id)
        await self._call("Kick", guild.kick(discord.Object(id=member_id), reason=reason[:512]), guild, target)

    async def set_roles(self, guild_id: int, member_id: int, role_ids: List[int], reason: str) -> None:
        """Replace a member's roles. Managed roles stay, unknown role IDs are skipped."""
        guild = self._guild(guild_id)
        member = await self._fetch_member(guild, member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not in guild")

        roles = [role for role in member.roles if role.managed]
        for role_id in role_ids:
            role = guild.get_role(role_id)
            if role is None or role.is_default() or role in roles:
                continue
            roles.append(role)

        await self._call("Set Roles", member.edit(roles=roles, reason=reason[:512]), guild, member)

    # =========================================================================
    # Role Mutations
    # =========================================================================

    async def set_role_permissions(self, guild_id: int, role_id: int, permissions: int, reason: str) -> None:
        guild = self._guild(guild_id)
        role = guild.get_role(role_id)
        if role is None:
            raise NotFoundError(f"Role {role_id} not in guild")
        try:
            await role.edit(permissions=discord.Permissions(permissions), reason=reason[:512])
        except discord.Forbidden as e:
            raise AuthorityError(f"Edit role {role.name} forbidden", blocker=role.name) from e
        except discord.NotFound as e:
            raise NotFoundError(f"Role {role_id} deleted") from e
        except discord.HTTPException as e:
            log_http_error(e, "Edit Role", [("Role", f"{role.name} ({role.id})")])
            raise PlatformError(f"Edit role failed: {e.status}") from e

    async def ensure_role(self, guild_id: int, spec: RoleSpec) -> int:
        """
        Find a role by name or create it with per-channel deny overwrites.

        Args:
            guild_id: Guild to look in.
            spec: Name, denied permissions and optional allowed channel.

        Returns:
            ID of the role.
        """
        guild = self._guild(guild_id)
        role = discord.utils.get(guild.roles, name=spec.name)
        if role is None:
            role = await self._call(
                "Create Role",
                guild.create_role(name=spec.name, permissions=discord.Permissions.none(), reason=spec.reason),
                guild,
            )
            await self._apply_overwrites(guild, role, spec)
            logger.tree("Restricted Role Created", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Role", f"{role.name} ({role.id})"),
                ("Channels", str(len(guild.channels))),
            ], emoji="🔒")

        if spec.allowed_channel:
            await self._ensure_allowed_channel(guild, role, spec)
        return role.id

    async def _apply_overwrites(self, guild: discord.Guild, role: discord.Role, spec: RoleSpec) -> None:
        deny = discord.PermissionOverwrite.from_pair(discord.Permissions.none(), discord.Permissions(spec.deny))
        for channel in guild.channels:
            if spec.allowed_channel and channel.name == spec.allowed_channel:
                continue
            try:
                await channel.set_permissions(role, overwrite=deny, reason=spec.reason)
            except discord.Forbidden:
                logger.debug("Overwrite Skipped (Forbidden)", [
                    ("Channel", f"#{channel.name}"),
                    ("Role", role.name),
                ])
            except discord.HTTPException as e:
                log_http_error(e, "Set Channel Overwrite", [
                    ("Channel", f"#{channel.name}"),
                    ("Role", role.name),
                ])

    async def _ensure_allowed_channel(self, guild: discord.Guild, role: discord.Role, spec: RoleSpec) -> None:
        allow = discord.PermissionOverwrite(view_channel=True, send_messages=True, read_message_history=True)
        channel = discord.utils.get(guild.text_channels, name=spec.allowed_channel)
        if channel is None:
            overwrites = {
                guild.default_role: discord.PermissionOverwrite(view_channel=False),
                role: allow,
            }
            if guild.me is not None:
                overwrites[guild.me] = allow
            await self._call(
                "Create Channel",
                guild.create_text_channel(spec.allowed_channel, overwrites=overwrites, reason=spec.reason),
                guild,
            )
            logger.info("Verification Channel Created", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Channel", f"#{spec.allowed_channel}"),
            ])
        elif channel.overwrites_for(role) != allow:
            await self._call(
                "Set Channel Overwrite",
                channel.set_permissions(role, overwrite=allow, reason=spec.reason),
                guild,
            )


# =============================================================================
# Notifier
# =============================================================================

class DiscordNotifier:
    """Alerts to the mod-log channel, the guild owner, and members."""

    def __init__(
        self,
        bot: discord.Client,
        settings: "SettingsProvider",
        config: Optional[Config] = None,
    ) -> None:
        self.bot = bot
        self.settings = settings
        self.config = config or get_config()

    async def notify(self, guild_id: int, alert: Alert) -> None:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return

        channel_id = self.settings.get(guild_id).moderation.mod_log_channel_id
        channel = guild.get_channel(channel_id) if channel_id else None
        if not isinstance(channel, discord.TextChannel):
            logger.debug("Alert Not Sent (No Mod Log Channel)", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Alert", alert.title),
            ])
            return

        content = f"<@&{alert.mention_role_id}>" if alert.mention_role_id else None
        try:
            await channel.send(
                content=content,
                embed=build_embed(alert),
                allowed_mentions=discord.AllowedMentions(roles=True, users=False, everyone=False),
            )
        except discord.HTTPException as e:
            log_http_error(e, "Send Alert", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Channel", f"#{channel.name}"),
            ])

    async def notify_owner(self, guild_id: int, alert: Alert) -> None:
        guild = self.bot.get_guild(guild_id)
        if guild is None or guild.owner_id is None:
            return

        try:
            owner = guild.owner or await guild.fetch_member(guild.owner_id)
            await owner.send(embed=build_embed(alert))
        except discord.Forbidden:
            logger.debug("Owner DM Blocked", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Owner", str(guild.owner_id)),
            ])
        except discord.HTTPException as e:
            log_http_error(e, "Owner DM", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Owner", str(guild.owner_id)),
            ])

    async def notify_member(
        self,
        guild_id: int,
        member_id: int,
        alert: Alert,
        fallback_channel_id: Optional[int] = None,
    ) -> None:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return

        member = guild.get_member(member_id)
        if member is not None:
            try:
                await member.send(embed=build_embed(alert))
                return
            except discord.Forbidden:
                logger.debug("Member DM Blocked, Using Channel", [
                    ("Guild", f"{guild.name} ({guild.id})"),
                    ("Member", str(member_id)),
                ])
            except discord.HTTPException as e:
                log_http_error(e, "Member DM", [("Member", str(member_id))])

        channel = guild.get_channel(fallback_channel_id) if fallback_channel_id else None
        if channel is None:
            channel = discord.utils.get(guild.text_channels, name=self.config.verification_channel_name)
        if not isinstance(channel, discord.TextChannel):
            logger.warning("Member Notice Not Delivered", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Member", str(member_id)),
                ("Alert", alert.title),
            ])
            return

        try:
            await channel.send(
                content=f"<@{member_id}>",
                embed=build_embed(alert),
                allowed_mentions=discord.AllowedMentions(users=True, roles=False, everyone=False),
            )
        except discord.HTTPException as e:
            log_http_error(e, "Member Notice", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Channel", f"#{channel.name}"),
            ])


__all__ = [
    "DiscordPlatform",
    "DiscordNotifier",
    "build_embed",
    "member_info",
    "role_info",
]
