"""
Bastion - Anti-Raid Service
===========================

Feeds member joins to the raid detector and responds to raid-affected
joins.

DESIGN:
    Scoring and raid-mode bookkeeping run under the guild lock; the
    response (ban, kick, verification) runs after it is released.
    Response ladder per join, by the severity of its own join window:
        severity 5    -> ban
        severity 3-4  -> kick (a configured ban is kept)
        otherwise     -> configured action
    A ban refused by hierarchy falls back to kick, a refused kick falls
    back to verification.

Author: حَـــــنَّـــــا
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from bastion.core.config import EmbedColors
from bastion.core.errors import AuthorityError, NotFoundError, PlatformError
from bastion.core.logger import logger
from bastion.core.models import Alert, JoinRecord, RaidAction
from bastion.core.state import GuardState, RaidModeState

from .detector import RaidAssessment, RaidDetector, decide_response

if TYPE_CHECKING:
    from bastion.core.database import SettingsProvider
    from bastion.platform.base import GuildPlatform, Notifier
    from bastion.services.verification import VerificationStateMachine
    from bastion.services.whitelist import WhitelistService


# =============================================================================
# Constants
# =============================================================================

ALERT_PING_SEVERITY = 3
MANUAL_RAID_SEVERITY = 3


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class JoinResult:
    """What on_join decided for one member."""

    checked: bool
    assessment: Optional[RaidAssessment] = None
    action: Optional[RaidAction] = None
    applied: bool = False


# =============================================================================
# Anti-Raid Service
# =============================================================================

class AntiRaidService:
    """Raid detection, raid mode, and the per-join response."""

    def __init__(
        self,
        state: GuardState,
        platform: "GuildPlatform",
        notifier: "Notifier",
        settings: "SettingsProvider",
        whitelist: "WhitelistService",
        verification: "VerificationStateMachine",
    ) -> None:
        self.state = state
        self.platform = platform
        self.notifier = notifier
        self.settings = settings
        self.whitelist = whitelist
        self.verification = verification
        self.detector = RaidDetector(state)

    # =========================================================================
    # Join Handling
    # =========================================================================

    async def on_join(self, guild_id: int, join: JoinRecord, now: Optional[float] = None) -> JoinResult:
        """
        Score a member join and respond if it is raid-affected.

        Args:
            guild_id: Guild joined.
            join: The join record.
            now: Evaluation time in epoch seconds, defaults to the current time.

        Returns:
            JoinResult; checked is False for disabled guilds and exempt members.
        """
        settings = self.settings.get(guild_id).antiraid
        if not settings.enabled:
            return JoinResult(checked=False)

        if self.whitelist.is_exempt(guild_id, join.member_id, owner_id=self.platform.get_owner_id(guild_id)):
            return JoinResult(checked=False)

        now = time.time() if now is None else now

        async with self.state.lock(guild_id):
            assessment = self.detector.on_join(guild_id, join, now, settings)
            mode = assessment.raid_mode
            if assessment.newly_activated and mode is not None:
                stats = self.state.raid_stats[guild_id]
                stats.total_raids += 1
                stats.last_raid_at = now
                stats.highest_severity = max(stats.highest_severity, mode.severity)
            if assessment.raid_affected:
                self.state.raid_stats[guild_id].total_raid_accounts += 1

        if assessment.expired is not None:
            self.state.timers.cancel(("raid_mode", guild_id))
            await self._announce_end(guild_id, assessment.expired, "Cooldown elapsed")

        result = JoinResult(checked=True, assessment=assessment)
        if not assessment.raid_affected:
            return result

        if assessment.newly_activated and mode is not None:
            self._schedule_expiry(guild_id, mode, now)
            await self._announce_raid(guild_id, mode, settings.alert_role_id)

        # Raid mode marks the join as affected; the response follows the join's own window
        action = decide_response(assessment.indicators.severity, settings.action)
        result.action = action
        reasons = mode.reasons if mode else assessment.indicators.reasons
        result.applied = await self._respond(guild_id, join, action, reasons)
        return result

    async def _respond(self, guild_id: int, join: JoinRecord, action: RaidAction, reasons: List[str]) -> bool:
        """Apply the response ladder, falling back when hierarchy blocks an action."""
        reason = f"Anti-raid: {'; '.join(reasons)}"[:512]

        if action is RaidAction.BAN:
            try:
                await self.platform.ban(guild_id, join.member_id, reason)
                self._log_response(guild_id, join, action)
                return True
            except AuthorityError as e:
                self._log_fallback(guild_id, join, action, RaidAction.KICK, e)
                action = RaidAction.KICK
            except NotFoundError:
                return False
            except PlatformError as e:
                self._log_failure(guild_id, join, action, e)
                return False

        if action is RaidAction.KICK:
            try:
                await self.platform.kick(guild_id, join.member_id, reason)
                self._log_response(guild_id, join, action)
                return True
            except AuthorityError as e:
                self._log_fallback(guild_id, join, action, RaidAction.VERIFICATION, e)
                action = RaidAction.VERIFICATION
            except NotFoundError:
                return False
            except PlatformError as e:
                self._log_failure(guild_id, join, action, e)
                return False

        if action is RaidAction.VERIFICATION:
            code = await self.verification.start(guild_id, join.member_id, reasons)
            return code is not None

        return False

    def _log_response(self, guild_id: int, join: JoinRecord, action: RaidAction) -> None:
        logger.tree("Raid Response Applied", [
            ("Guild", str(guild_id)),
            ("Member", f"{join.username} ({join.member_id})"),
            ("Action", action.value),
        ], emoji="🛡️")

    def _log_fallback(
        self,
        guild_id: int,
        join: JoinRecord,
        action: RaidAction,
        fallback: RaidAction,
        error: AuthorityError,
    ) -> None:
        logger.warning("Raid Response Blocked, Falling Back", [
            ("Guild", str(guild_id)),
            ("Member", f"{join.username} ({join.member_id})"),
            ("Action", action.value),
            ("Fallback", fallback.value),
            ("Blocker", error.blocker or "Unknown"),
        ])

    def _log_failure(self, guild_id: int, join: JoinRecord, action: RaidAction, error: PlatformError) -> None:
        logger.error("Raid Response Failed", [
            ("Guild", str(guild_id)),
            ("Member", f"{join.username} ({join.member_id})"),
            ("Action", action.value),
            ("Error", str(error)[:100]),
            ("Type", type(error).__name__),
        ])

    # =========================================================================
    # Raid Mode
    # =========================================================================

    def _schedule_expiry(self, guild_id: int, mode: RaidModeState, now: float) -> None:
        self.state.timers.schedule(
            ("raid_mode", guild_id),
            max(0.0, mode.expires_at - now),
            lambda: self._expire_raid_mode(guild_id, mode.since),
            name=f"Raid Mode Expiry {guild_id}",
        )

    async def _expire_raid_mode(self, guild_id: int, since: float) -> None:
        async with self.state.lock(guild_id):
            mode = self.state.raid_modes.get(guild_id)
            if mode is None or mode.since != since:
                return
            self.detector.deactivate(guild_id)
        await self._announce_end(guild_id, mode, "Cooldown elapsed")

    async def set_raid_mode(
        self,
        guild_id: int,
        enabled: bool,
        reason: str = "Manually triggered",
        duration_minutes: int = 30,
    ) -> bool:
        """
        Force raid mode on or off.

        Args:
            guild_id: Guild to change.
            enabled: Turn raid mode on (True) or off (False).
            reason: Shown in alerts.
            duration_minutes: How long a forced raid mode lasts.

        Returns:
            False if raid mode was already in the requested state.
        """
        now = time.time()
        async with self.state.lock(guild_id):
            current = self.state.raid_modes.get(guild_id)
            if enabled:
                if current is not None:
                    return False
                mode = self.detector.activate(
                    guild_id,
                    now,
                    [reason],
                    MANUAL_RAID_SEVERITY,
                    duration_minutes * 60,
                    manual=True,
                )
            else:
                if current is None:
                    return False
                self.detector.deactivate(guild_id)

        if enabled:
            self._schedule_expiry(guild_id, mode, now)
            await self._announce_raid(guild_id, mode, self.settings.get(guild_id).antiraid.alert_role_id)
        else:
            self.state.timers.cancel(("raid_mode", guild_id))
            await self._announce_end(guild_id, current, reason)
        return True

    async def _announce_raid(self, guild_id: int, mode: RaidModeState, alert_role_id: Optional[int]) -> None:
        logger.tree("RAID DETECTED" if not mode.manual else "Raid Mode Enabled", [
            ("Guild", str(guild_id)),
            ("Severity", f"{mode.severity}/5"),
            ("Reasons", "; ".join(mode.reasons)),
            ("Duration", f"{int(mode.duration // 60)} min"),
        ], emoji="🚨")

        ping = alert_role_id if alert_role_id and mode.severity >= ALERT_PING_SEVERITY else None
        await self.notifier.notify(guild_id, Alert(
            title="🚨 Raid Detected" if not mode.manual else "🚨 Raid Mode Enabled",
            description="Raid mode is active. New joins will be handled by raid protection.",
            fields=[
                ("Severity", f"{mode.severity}/5"),
                ("Reasons", "\n".join(mode.reasons) or "None"),
                ("Duration", f"{int(mode.duration // 60)} minutes"),
            ],
            color=EmbedColors.DANGER,
            mention_role_id=ping,
        ))

    async def _announce_end(self, guild_id: int, mode: RaidModeState, reason: str) -> None:
        logger.tree("Raid Mode Ended", [
            ("Guild", str(guild_id)),
            ("Reason", reason),
            ("Lasted", f"{int((time.time() - mode.since) // 60)} min"),
        ], emoji="✅")
        await self.notifier.notify(guild_id, Alert(
            title="✅ Raid Mode Ended",
            description=reason,
            color=EmbedColors.SUCCESS,
        ))

    # =========================================================================
    # Status
    # =========================================================================

    def get_raid_status(self, guild_id: int) -> Dict[str, Any]:
        """Raid mode and lifetime statistics for one guild."""
        mode = self.state.raid_modes.get(guild_id)
        stats = self.state.raid_stats.get(guild_id)
        return {
            "enabled": self.settings.get(guild_id).antiraid.enabled,
            "active": mode is not None,
            "reasons": list(mode.reasons) if mode else [],
            "since": mode.since if mode else None,
            "severity": mode.severity if mode else 0,
            "manual": mode.manual if mode else False,
            "window_size": self.detector.window_size(guild_id),
            "stats": {
                "total_raids": stats.total_raids if stats else 0,
                "total_raid_accounts": stats.total_raid_accounts if stats else 0,
                "last_raid_at": stats.last_raid_at if stats else None,
                "highest_severity": stats.highest_severity if stats else 0,
            },
        }


__all__ = ["AntiRaidService", "JoinResult"]
