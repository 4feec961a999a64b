"""
Bastion - Guard Service
=======================

Single entry point for event sources and operators.

DESIGN:
    GuardService owns the GuardState and builds every component around
    it, so all of them share one set of per-guild locks and timers.
    Event cogs, the health server and tests only talk to this facade.

Author: حَـــــنَّـــــا
"""

from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from bastion.core.config import Config, get_config
from bastion.core.logger import logger
from bastion.core.models import ActionType, JoinRecord, QuarantineRecord, Target
from bastion.core.state import GuardState
from bastion.services.antinuke.emergency import EmergencyLockdownController, EmergencyResult
from bastion.services.antinuke.punishment import PunishmentDispatcher
from bastion.services.antinuke.service import AntiNukeService, TrackResult
from bastion.services.antiraid.service import AntiRaidService, JoinResult
from bastion.services.quarantine import QuarantineManager
from bastion.services.verification import VerificationResult, VerificationState, VerificationStateMachine
from bastion.services.whitelist import WhitelistService

if TYPE_CHECKING:
    from bastion.core.database import SettingsProvider
    from bastion.platform.base import GuildPlatform, Notifier


class GuardService:
    """
    Anti-nuke, anti-raid, quarantine and verification behind one object.

    Attributes:
        state: Shared in-memory detector state.
        antinuke: Action tracking, punishment and emergency lockdown.
        antiraid: Join scoring, raid mode and join responses.
        quarantine_manager: Role snapshot and restore for isolated members.
        verification: Pending verification sessions.
        whitelist: Exemption checks and whitelist management.
    """

    def __init__(
        self,
        platform: "GuildPlatform",
        notifier: "Notifier",
        settings: "SettingsProvider",
        config: Optional[Config] = None,
        state: Optional[GuardState] = None,
    ) -> None:
        self.config = config or get_config()
        self.state = state or GuardState()
        self.settings = settings

        self.whitelist = WhitelistService(settings, self.config)
        self.quarantine_manager = QuarantineManager(self.state, platform, settings, self.config)
        self.emergency = EmergencyLockdownController(self.state, platform, notifier, self.config)
        self.punisher = PunishmentDispatcher(platform, self.quarantine_manager)
        self.antinuke = AntiNukeService(
            self.state,
            platform,
            notifier,
            settings,
            self.whitelist,
            self.punisher,
            self.emergency,
        )
        self.verification = VerificationStateMachine(self.state, platform, notifier, settings, self.config)
        self.antiraid = AntiRaidService(
            self.state,
            platform,
            notifier,
            settings,
            self.whitelist,
            self.verification,
        )

        logger.tree("Guard Service Initialized", [
            ("Anti-Nuke", "Ready"),
            ("Anti-Raid", "Ready"),
            ("Verification", "Ready"),
            ("Trusted Bots", str(len(self.config.trusted_bot_ids))),
        ], emoji="🛡️")

    # =========================================================================
    # Anti-Nuke
    # =========================================================================

    async def track_action(
        self,
        guild_id: int,
        actor_id: int,
        action: ActionType,
        now: Optional[float] = None,
        role_ids: Optional[Iterable[int]] = None,
    ) -> TrackResult:
        return await self.antinuke.track_action(guild_id, actor_id, action, now, role_ids)

    async def enable_emergency_mode(self, guild_id: int, reason: str = "Manually enabled") -> EmergencyResult:
        return await self.emergency.enable(guild_id, reason)

    async def disable_emergency_mode(self, guild_id: int, reason: str = "Manually disabled") -> bool:
        return await self.emergency.disable(guild_id, reason)

    def get_status(self, guild_id: int) -> Dict[str, Any]:
        return self.antinuke.status(guild_id)

    # =========================================================================
    # Quarantine
    # =========================================================================

    async def quarantine(self, guild_id: int, member_id: int, reason: str = "Quarantined") -> bool:
        return await self.quarantine_manager.quarantine(guild_id, member_id, reason)

    async def release_from_quarantine(self, guild_id: int, member_id: int) -> bool:
        return await self.quarantine_manager.release(guild_id, member_id)

    def list_quarantined(self, guild_id: int) -> Dict[int, QuarantineRecord]:
        return self.quarantine_manager.list_quarantined(guild_id)

    # =========================================================================
    # Anti-Raid & Verification
    # =========================================================================

    async def on_join(self, guild_id: int, join: JoinRecord, now: Optional[float] = None) -> JoinResult:
        return await self.antiraid.on_join(guild_id, join, now)

    async def start_verification(
        self,
        guild_id: int,
        member_id: int,
        reasons: Optional[List[str]] = None,
    ) -> Optional[str]:
        return await self.verification.start(guild_id, member_id, reasons)

    async def verify(self, guild_id: int, member_id: int, code: str) -> VerificationResult:
        return await self.verification.verify(guild_id, member_id, code)

    def get_verification_state(self, guild_id: int, member_id: int) -> VerificationState:
        return self.verification.get_state(guild_id, member_id)

    def get_raid_status(self, guild_id: int) -> Dict[str, Any]:
        return self.antiraid.get_raid_status(guild_id)

    async def set_raid_mode(
        self,
        guild_id: int,
        enabled: bool,
        reason: str = "Manually triggered",
        duration_minutes: int = 30,
    ) -> bool:
        return await self.antiraid.set_raid_mode(guild_id, enabled, reason, duration_minutes)

    # =========================================================================
    # Whitelist
    # =========================================================================

    def add_to_whitelist(self, guild_id: int, target: Target) -> bool:
        return self.whitelist.add(guild_id, target)

    def remove_from_whitelist(self, guild_id: int, target: Target) -> bool:
        return self.whitelist.remove(guild_id, target)

    def get_whitelist(self, guild_id: int) -> List[Target]:
        return self.whitelist.list(guild_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def reset_guild(self, guild_id: int) -> None:
        """Forget detector state for a guild, e.g. after the bot leaves it."""
        self.state.reset_guild(guild_id)

    async def close(self) -> None:
        await self.state.close()
        logger.info("Guard Service Closed")


__all__ = ["GuardService"]
