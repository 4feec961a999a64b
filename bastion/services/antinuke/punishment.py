"""
Bastion - Punishment Dispatcher
===============================

Applies the configured punishment policy to an actor.

Author: حَـــــنَّـــــا
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from bastion.core.errors import AuthorityError, NotFoundError, PlatformError
from bastion.core.logger import logger
from bastion.core.models import PunishmentPolicy

from .constants import DANGEROUS_PERMISSIONS

if TYPE_CHECKING:
    from bastion.platform.base import GuildPlatform
    from bastion.services.quarantine import QuarantineManager


@dataclass
class PunishmentOutcome:
    applied: bool
    policy: PunishmentPolicy
    detail: str
    gone: bool = False


class PunishmentDispatcher:
    """
    Maps a PunishmentPolicy onto enforcement primitives.

    Failures are reported in the outcome and logged, never raised.
    """

    def __init__(self, platform: "GuildPlatform", quarantine: "QuarantineManager") -> None:
        self.platform = platform
        self.quarantine = quarantine

    async def punish(
        self,
        guild_id: int,
        actor_id: int,
        policy: PunishmentPolicy,
        reason: str,
    ) -> PunishmentOutcome:
        try:
            if policy is PunishmentPolicy.BAN:
                await self.platform.ban(guild_id, actor_id, reason)
                detail = "Banned"
            elif policy is PunishmentPolicy.KICK:
                await self.platform.kick(guild_id, actor_id, reason)
                detail = "Kicked"
            elif policy is PunishmentPolicy.STRIP_ROLES:
                detail = await self._strip_roles(guild_id, actor_id, reason)
            else:
                if not await self.quarantine.quarantine(guild_id, actor_id, reason):
                    return self._failed(guild_id, actor_id, policy, "Quarantine not applied")
                detail = "Quarantined"

        except NotFoundError:
            logger.warning("Punishment Target Gone", [
                ("Guild", str(guild_id)),
                ("Actor", str(actor_id)),
                ("Policy", policy.value),
            ])
            return PunishmentOutcome(applied=False, policy=policy, detail="Member no longer in server", gone=True)

        except AuthorityError as e:
            return self._failed(guild_id, actor_id, policy, f"Blocked by {e.blocker or 'role hierarchy'}")

        except PlatformError as e:
            return self._failed(guild_id, actor_id, policy, str(e)[:100])

        logger.tree("Punishment Applied", [
            ("Guild", str(guild_id)),
            ("Actor", str(actor_id)),
            ("Policy", policy.value),
            ("Result", detail),
        ], emoji="⚖️")
        return PunishmentOutcome(applied=True, policy=policy, detail=detail)

    async def _strip_roles(self, guild_id: int, actor_id: int, reason: str) -> str:
        member = await self.platform.get_member(guild_id, actor_id)
        if member is None:
            raise NotFoundError(f"Member {actor_id} not found")

        roles = {role.id: role for role in await self.platform.get_roles(guild_id)}
        keep = [
            rid for rid in member.role_ids
            if rid in roles and not roles[rid].permissions & DANGEROUS_PERMISSIONS
        ]
        removed = len(member.role_ids) - len(keep)

        await self.platform.set_roles(guild_id, actor_id, keep, reason)
        return f"Stripped {removed} role(s)"

    def _failed(
        self,
        guild_id: int,
        actor_id: int,
        policy: PunishmentPolicy,
        detail: str,
    ) -> PunishmentOutcome:
        logger.error("Punishment Failed", [
            ("Guild", str(guild_id)),
            ("Actor", str(actor_id)),
            ("Policy", policy.value),
            ("Reason", detail),
        ])
        return PunishmentOutcome(applied=False, policy=policy, detail=detail)


__all__ = ["PunishmentDispatcher", "PunishmentOutcome"]
