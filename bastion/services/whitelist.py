"""
Bastion - Whitelist
===================

Decides which actors are never tracked or punished, and manages the
per-guild whitelist.

DESIGN:
    Exempt: the guild owner, the configured superuser, trusted bots, and
    anyone on the guild whitelist either directly (USER target) or through
    a role they hold (ROLE target). The check is a pure predicate over the
    settings and the IDs passed in.

Author: حَـــــنَّـــــا
"""

from typing import Iterable, List, Optional, TYPE_CHECKING

from bastion.core.config import Config, get_config
from bastion.core.logger import logger
from bastion.core.models import Target, TargetKind

if TYPE_CHECKING:
    from bastion.core.database import SettingsProvider


class WhitelistService:
    """Exemption checks and whitelist management."""

    def __init__(self, settings: "SettingsProvider", config: Optional[Config] = None) -> None:
        self.settings = settings
        self.config = config or get_config()

    def is_exempt(
        self,
        guild_id: int,
        actor_id: int,
        role_ids: Iterable[int] = (),
        owner_id: Optional[int] = None,
    ) -> bool:
        """
        Check whether an actor is exempt from protection.

        Args:
            guild_id: Guild the action happened in.
            actor_id: User performing the action.
            role_ids: Roles the actor currently holds.
            owner_id: Guild owner, if known.

        Returns:
            True if the actor must not be tracked or punished.
        """
        if owner_id is not None and actor_id == owner_id:
            return True
        if self.config.superuser_id is not None and actor_id == self.config.superuser_id:
            return True
        if actor_id in self.config.trusted_bot_ids:
            return True

        whitelist = self.settings.get(guild_id).antinuke.whitelist
        if not whitelist:
            return False

        held = set(role_ids)
        for target in whitelist:
            if target.kind is TargetKind.USER and target.id == actor_id:
                return True
            if target.kind is TargetKind.ROLE and target.id in held:
                return True
        return False

    def list(self, guild_id: int) -> List[Target]:
        return list(self.settings.get(guild_id).antinuke.whitelist)

    def add(self, guild_id: int, target: Target) -> bool:
        """Add a target. Returns False if it was already whitelisted."""
        settings = self.settings.get(guild_id)
        if target in settings.antinuke.whitelist:
            return False
        settings.antinuke.whitelist.append(target)
        self.settings.set(guild_id, settings)

        logger.tree("Whitelist Entry Added", [
            ("Guild", str(guild_id)),
            ("Kind", target.kind.value),
            ("ID", str(target.id)),
        ], emoji="📝")
        return True

    def remove(self, guild_id: int, target: Target) -> bool:
        """Remove a target. Returns False if it was not whitelisted."""
        settings = self.settings.get(guild_id)
        if target not in settings.antinuke.whitelist:
            return False
        settings.antinuke.whitelist.remove(target)
        self.settings.set(guild_id, settings)

        logger.tree("Whitelist Entry Removed", [
            ("Guild", str(guild_id)),
            ("Kind", target.kind.value),
            ("ID", str(target.id)),
        ], emoji="📝")
        return True


__all__ = ["WhitelistService"]
