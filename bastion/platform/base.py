"""
Bastion - Platform Interfaces
=============================

Enforcement primitives and notification sink used by the services.

DESIGN:
    Services depend on these protocols only. The Discord implementation
    lives in bastion.platform.discord_platform; tests use an in-memory
    fake. Every mutating call raises AuthorityError when the bot lacks
    the permission or hierarchy to perform it, and NotFoundError when the
    target no longer exists.

Author: حَـــــنَّـــــا
"""

from typing import List, Optional, Protocol

from bastion.core.models import Alert, MemberInfo, RoleInfo, RoleSpec


class GuildPlatform(Protocol):
    """Read and mutate guild members and roles."""

    async def get_roles(self, guild_id: int) -> List[RoleInfo]: ...

    async def get_member(self, guild_id: int, member_id: int) -> Optional[MemberInfo]: ...

    async def get_self_member(self, guild_id: int) -> MemberInfo: ...

    def get_owner_id(self, guild_id: int) -> Optional[int]: ...

    async def ban(self, guild_id: int, member_id: int, reason: str) -> None: ...

    async def kick(self, guild_id: int, member_id: int, reason: str) -> None: ...

    async def set_roles(self, guild_id: int, member_id: int, role_ids: List[int], reason: str) -> None: ...

    async def set_role_permissions(self, guild_id: int, role_id: int, permissions: int, reason: str) -> None: ...

    async def ensure_role(self, guild_id: int, spec: RoleSpec) -> int: ...


class Notifier(Protocol):
    """Deliver alerts to staff, the guild owner, and individual members."""

    async def notify(self, guild_id: int, alert: Alert) -> None: ...

    async def notify_owner(self, guild_id: int, alert: Alert) -> None: ...

    async def notify_member(
        self,
        guild_id: int,
        member_id: int,
        alert: Alert,
        fallback_channel_id: Optional[int] = None,
    ) -> None: ...


__all__ = [
    "GuildPlatform",
    "Notifier",
]
