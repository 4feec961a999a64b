"""
Bastion - Quarantine Manager
============================

Isolates a member behind a restricted role and restores them later.

DESIGN:
    The member's non-managed roles are snapshotted into a
    QuarantineRecord and replaced with the quarantine role, which is
    created on first use with every channel denying messages, reactions,
    attachments, threads and application commands. Records are stored in
    the guild settings so a release still works after a restart.

Author: حَـــــنَّـــــا
"""

import time
from typing import Dict, Optional, Set, Tuple, TYPE_CHECKING

from bastion.core.config import Config, get_config
from bastion.core.errors import AuthorityError, NotFoundError
from bastion.core.logger import logger
from bastion.core.models import QuarantineRecord, RoleSpec
from bastion.core.state import GuardState
from bastion.services.antinuke.constants import QUARANTINE_DENY

if TYPE_CHECKING:
    from bastion.core.database import SettingsProvider
    from bastion.platform.base import GuildPlatform


class QuarantineManager:
    """Quarantine and release members, one record per member."""

    def __init__(
        self,
        state: GuardState,
        platform: "GuildPlatform",
        settings: "SettingsProvider",
        config: Optional[Config] = None,
    ) -> None:
        self.state = state
        self.platform = platform
        self.settings = settings
        self.config = config or get_config()
        self._pending: Set[Tuple[int, int]] = set()

    def _role_spec(self) -> RoleSpec:
        return RoleSpec(
            name=self.config.quarantine_role_name,
            deny=QUARANTINE_DENY,
            reason="Quarantine role for isolated members",
        )

    def is_quarantined(self, guild_id: int, member_id: int) -> bool:
        return member_id in self.settings.get(guild_id).antinuke.quarantined

    def list_quarantined(self, guild_id: int) -> Dict[int, QuarantineRecord]:
        return dict(self.settings.get(guild_id).antinuke.quarantined)

    async def quarantine(self, guild_id: int, member_id: int, reason: str = "Quarantined") -> bool:
        """
        Quarantine a member.

        Args:
            guild_id: Guild the member belongs to.
            member_id: Member to isolate.
            reason: Audit log reason.

        Returns:
            True if the member was quarantined, False if already
            quarantined, gone, or out of the bot's reach.
        """
        if self.is_quarantined(guild_id, member_id):
            logger.debug("Quarantine Skipped (Already Quarantined)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
            ])
            return False

        key = (guild_id, member_id)
        if key in self._pending:
            return False
        self._pending.add(key)
        try:
            return await self._quarantine(guild_id, member_id, reason)
        finally:
            self._pending.discard(key)

    async def _quarantine(self, guild_id: int, member_id: int, reason: str) -> bool:
        member = await self.platform.get_member(guild_id, member_id)
        if member is None:
            logger.warning("Quarantine Skipped (Member Not Found)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
            ])
            return False

        try:
            role_id = await self.platform.ensure_role(guild_id, self._role_spec())
        except AuthorityError as e:
            logger.error("Quarantine Role Unavailable", [
                ("Guild", str(guild_id)),
                ("Blocker", e.blocker or "Unknown"),
                ("Error", str(e)[:100]),
            ])
            return False

        roles = {role.id: role for role in await self.platform.get_roles(guild_id)}
        original = [
            rid for rid in member.role_ids
            if rid in roles and not roles[rid].managed and not roles[rid].is_default and rid != role_id
        ]

        try:
            await self.platform.set_roles(guild_id, member_id, [role_id], reason)
        except NotFoundError:
            logger.warning("Quarantine Skipped (Member Left)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
            ])
            return False
        except AuthorityError as e:
            logger.error("Quarantine Failed (Hierarchy)", [
                ("Guild", str(guild_id)),
                ("Member", f"{member.name} ({member_id})"),
                ("Blocker", e.blocker or "Unknown"),
            ])
            return False

        async with self.state.lock(guild_id):
            settings = self.settings.get(guild_id)
            settings.antinuke.quarantined[member_id] = QuarantineRecord(
                original_roles=original,
                quarantined_at=time.time(),
            )
            self.settings.set(guild_id, settings)

        logger.tree("Member Quarantined", [
            ("Guild", str(guild_id)),
            ("Member", f"{member.name} ({member_id})"),
            ("Roles Saved", str(len(original))),
            ("Reason", reason),
        ], emoji="🔒")
        return True

    async def release(self, guild_id: int, member_id: int) -> bool:
        """
        Release a quarantined member and restore their roles.

        Returns:
            False if the member has no quarantine record, True otherwise.
            A member who left is treated as released.
        """
        record = self.settings.get(guild_id).antinuke.quarantined.get(member_id)
        if record is None:
            return False

        try:
            await self.platform.set_roles(
                guild_id,
                member_id,
                record.original_roles,
                "Released from quarantine",
            )
        except NotFoundError:
            logger.warning("Quarantined Member Gone, Record Dropped", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
            ])
        except AuthorityError as e:
            logger.error("Quarantine Release Failed (Hierarchy)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
                ("Blocker", e.blocker or "Unknown"),
            ])
            return False

        async with self.state.lock(guild_id):
            settings = self.settings.get(guild_id)
            settings.antinuke.quarantined.pop(member_id, None)
            self.settings.set(guild_id, settings)

        logger.tree("Member Released From Quarantine", [
            ("Guild", str(guild_id)),
            ("Member", str(member_id)),
            ("Roles Restored", str(len(record.original_roles))),
        ], emoji="🔓")
        return True


__all__ = ["QuarantineManager"]
