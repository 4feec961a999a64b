"""
Bastion - Guard State
=====================

In-memory detector state for every guild.

DESIGN:
    One GuardState is created by GuardService and injected into each
    component, replacing module-level maps. Every guild gets its own
    asyncio.Lock: detection and state commits for a guild run under it,
    while enforcement calls happen with the lock released so a slow
    Discord request never stalls other events for that guild. Different
    guilds never contend.

    Nothing here survives a restart.

Author: حَـــــنَّـــــا
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bastion.core.logger import logger
from bastion.core.models import ActionType, JoinRecord
from bastion.utils.scheduler import TaskScheduler


# =============================================================================
# State Records
# =============================================================================

@dataclass
class EmergencyBackup:
    """
    Role permissions captured when emergency lockdown starts.

    Exists for a guild exactly while emergency mode is active.
    """

    role_permissions: Dict[int, int]
    failed_roles: List[str]
    started_at: float
    reason: str


@dataclass
class RaidModeState:
    since: float
    reasons: List[str]
    severity: int
    duration: float
    manual: bool = False

    @property
    def expires_at(self) -> float:
        return self.since + self.duration


@dataclass
class RaidStats:
    total_raids: int = 0
    total_raid_accounts: int = 0
    last_raid_at: Optional[float] = None
    highest_severity: int = 0


@dataclass
class VerificationSession:
    code: str
    created_at: float
    original_roles: List[int]
    attempts: int = 0


ActionHistory = Dict[ActionType, Dict[int, List[float]]]


# =============================================================================
# Guard State
# =============================================================================

class GuardState:
    """
    Per-guild stores plus the locks and timers that protect them.

    Attributes:
        action_history: guild -> action type -> actor -> timestamps.
        emergency: guild -> active emergency backup.
        emergency_pending: guilds with an enable in flight.
        raid_windows: guild -> recent joins ordered by join time.
        raid_modes: guild -> active raid mode.
        raid_stats: guild -> lifetime raid counters.
        verification: (guild, member) -> pending verification session.
        timers: keyed timers for auto-restore and expiry.
    """

    def __init__(self) -> None:
        self.action_history: Dict[int, ActionHistory] = defaultdict(lambda: defaultdict(dict))
        self.emergency: Dict[int, EmergencyBackup] = {}
        self.emergency_pending: set = set()
        self.raid_windows: Dict[int, List[JoinRecord]] = defaultdict(list)
        self.raid_modes: Dict[int, RaidModeState] = {}
        self.raid_stats: Dict[int, RaidStats] = defaultdict(RaidStats)
        self.verification: Dict[Tuple[int, int], VerificationSession] = {}
        self.timers = TaskScheduler()
        self._locks: Dict[int, asyncio.Lock] = {}
        self.closed = False

    def lock(self, guild_id: int) -> asyncio.Lock:
        """Get the lock serializing state changes for one guild."""
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[guild_id] = lock
        return lock

    def reset_guild(self, guild_id: int) -> None:
        """
        Forget detector state for a guild.

        Emergency backups are kept: dropping one would strand stripped
        role permissions with nothing left to restore them.
        """
        self.action_history.pop(guild_id, None)
        self.raid_windows.pop(guild_id, None)
        self.raid_stats.pop(guild_id, None)
        if self.raid_modes.pop(guild_id, None):
            self.timers.cancel(("raid_mode", guild_id))

        for key in [k for k in self.verification if k[0] == guild_id]:
            del self.verification[key]
            self.timers.cancel(("verification", key[0], key[1]))

        logger.info("Guild State Reset", [("Guild", str(guild_id))])

    async def close(self) -> None:
        """Cancel timers and drop every store."""
        if self.closed:
            return
        self.closed = True
        await self.timers.close()
        self.action_history.clear()
        self.raid_windows.clear()
        self.raid_modes.clear()
        self.verification.clear()
        self._locks.clear()


__all__ = [
    "ActionHistory",
    "EmergencyBackup",
    "RaidModeState",
    "RaidStats",
    "VerificationSession",
    "GuardState",
]
