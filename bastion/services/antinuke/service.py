"""
Bastion - Anti-Nuke Service
===========================

Detects and stops server nuking (mass bans, kicks, deletions, permission
grants) by a single actor or by several actors at once.

DESIGN:
    track_action() is the single entry point for every privileged event.
    Detection runs under the guild lock and clears the actor's history for
    that action as soon as a limit trips, so one burst earns exactly one
    punishment. Punishment and lockdown run after the lock is released.
    The history stays cleared even when the punishment could not be
    applied (e.g. the actor outranks the bot); the failure is reported to
    staff instead of retried on every later action.

Author: حَـــــنَّـــــا
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from bastion.core.config import EmbedColors
from bastion.core.constants import COORDINATED_MIN_ACTORS
from bastion.core.logger import logger
from bastion.core.models import ActionType, Alert
from bastion.core.state import GuardState

from .constants import COORDINATED_ACTIONS
from .emergency import EmergencyLockdownController, EmergencyResult
from .punishment import PunishmentDispatcher, PunishmentOutcome
from .tracker import ActionRateTracker

if TYPE_CHECKING:
    from bastion.core.database import SettingsProvider
    from bastion.platform.base import GuildPlatform, Notifier
    from bastion.services.whitelist import WhitelistService


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class TrackResult:
    """What track_action decided and did."""

    tracked: bool
    tripped: bool = False
    count: int = 0
    punishment: Optional[PunishmentOutcome] = None
    emergency: Optional[EmergencyResult] = None


# =============================================================================
# Anti-Nuke Service
# =============================================================================

class AntiNukeService:
    """
    Per-actor rate limits plus the coordinated-attack signal.

    Features:
        - Sliding-window limits for eleven action types
        - Configurable punishment (ban, kick, strip roles, quarantine)
        - Emergency lockdown when several actors delete in parallel
    """

    def __init__(
        self,
        state: GuardState,
        platform: "GuildPlatform",
        notifier: "Notifier",
        settings: "SettingsProvider",
        whitelist: "WhitelistService",
        punisher: PunishmentDispatcher,
        emergency: EmergencyLockdownController,
    ) -> None:
        self.state = state
        self.platform = platform
        self.notifier = notifier
        self.settings = settings
        self.whitelist = whitelist
        self.punisher = punisher
        self.emergency = emergency
        self.tracker = ActionRateTracker(state)

    async def track_action(
        self,
        guild_id: int,
        actor_id: int,
        action: ActionType,
        now: Optional[float] = None,
        role_ids: Optional[Iterable[int]] = None,
    ) -> TrackResult:
        """
        Record a privileged action and respond if it crosses a limit.

        Args:
            guild_id: Guild the action happened in.
            actor_id: Member who performed the action.
            action: What they did.
            now: Event time in epoch seconds, defaults to the current time.
            role_ids: Actor's roles if already known, otherwise looked up.

        Returns:
            TrackResult; tracked is False for disabled guilds and exempt actors.
        """
        try:
            return await self._track_action(guild_id, actor_id, action, now, role_ids)
        except Exception as e:
            logger.error("Track Action Failed", [
                ("Guild", str(guild_id)),
                ("Actor", str(actor_id)),
                ("Action", action.value),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            return TrackResult(tracked=False)

    async def _track_action(
        self,
        guild_id: int,
        actor_id: int,
        action: ActionType,
        now: Optional[float],
        role_ids: Optional[Iterable[int]],
    ) -> TrackResult:
        settings = self.settings.get(guild_id).antinuke
        if not settings.enabled:
            return TrackResult(tracked=False)

        if role_ids is None:
            member = await self.platform.get_member(guild_id, actor_id)
            role_ids = member.role_ids if member else []

        owner_id = self.platform.get_owner_id(guild_id)
        if self.whitelist.is_exempt(guild_id, actor_id, role_ids, owner_id):
            logger.debug(f"{action.display} Skipped (Exempt)", [
                ("Guild", str(guild_id)),
                ("Actor", str(actor_id)),
            ])
            return TrackResult(tracked=False)

        now = time.time() if now is None else now
        limit = settings.limit_for(action)

        async with self.state.lock(guild_id):
            decision = self.tracker.record(guild_id, actor_id, action, now, limit, settings.action_window)
            suspicious = 0
            if action in COORDINATED_ACTIONS:
                suspicious = self.tracker.count_suspicious_actors(guild_id, action, now)
            if decision.tripped:
                # One punishment per burst; a failed punishment is not retried
                self.tracker.clear(guild_id, actor_id, action)

        result = TrackResult(tracked=True, tripped=decision.tripped, count=decision.count)

        if suspicious >= COORDINATED_MIN_ACTORS and not self.emergency.is_active(guild_id):
            logger.tree("COORDINATED ATTACK DETECTED", [
                ("Guild", str(guild_id)),
                ("Action", action.display),
                ("Suspicious Actors", str(suspicious)),
            ], emoji="🚨")
            result.emergency = await self.emergency.enable(
                guild_id,
                f"Coordinated {action.display.lower()} by {suspicious} users",
            )

        if decision.tripped:
            await self._handle_nuke(guild_id, actor_id, action, decision.count, settings.action_window, result)

        return result

    async def _handle_nuke(
        self,
        guild_id: int,
        actor_id: int,
        action: ActionType,
        count: int,
        window: int,
        result: TrackResult,
    ) -> None:
        policy = self.settings.get(guild_id).antinuke.punishment

        logger.tree("🚨 NUKE ATTEMPT DETECTED", [
            ("Guild", str(guild_id)),
            ("Actor", str(actor_id)),
            ("Action", action.display),
            ("Count", f"{count} in {window}s"),
            ("Punishment", policy.value),
        ], emoji="🚨")

        outcome = await self.punisher.punish(
            guild_id,
            actor_id,
            policy,
            f"Anti-nuke: {count} {action.display.lower()} actions in {window}s",
        )
        result.punishment = outcome

        await self.notifier.notify(guild_id, Alert(
            title="🛡️ Nuke Attempt Stopped" if outcome.applied else "⚠️ Nuke Attempt Detected",
            description=f"<@{actor_id}> performed {count} {action.display.lower()} actions in {window} seconds.",
            fields=[
                ("Actor", f"<@{actor_id}> ({actor_id})"),
                ("Action", action.display),
                ("Punishment", policy.value),
                ("Result", outcome.detail),
            ],
            color=EmbedColors.DANGER if outcome.applied else EmbedColors.HIGH,
        ))

    def status(self, guild_id: int) -> Dict[str, Any]:
        """Anti-nuke status summary for one guild."""
        settings = self.settings.get(guild_id).antinuke
        emergency = self.emergency.status(guild_id)
        return {
            "enabled": settings.enabled,
            "punishment": settings.punishment.value,
            "action_window": settings.action_window,
            "limits": {action.value: limit for action, limit in settings.limits.items()},
            "emergency_mode": emergency["active"],
            "emergency_since": emergency["since"],
            "emergency_reason": emergency["reason"],
            "emergency_failed_roles": emergency["failed_roles"],
            "whitelisted": len(settings.whitelist),
            "quarantined": len(settings.quarantined),
        }


__all__ = ["AntiNukeService", "TrackResult"]
