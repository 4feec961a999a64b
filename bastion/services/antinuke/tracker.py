"""
Bastion - Action Rate Tracker
=============================

Sliding-window counters of privileged actions per actor.

DESIGN:
    Timestamps for one (guild, action, actor) are kept sorted, so evicting
    expired entries is a prefix trim found with bisect. An entry t is kept
    while now - t <= window; a count reaching the limit trips on that
    event. The caller holds the guild lock around every call here.

Author: حَـــــنَّـــــا
"""

import bisect
from dataclasses import dataclass
from typing import List

from bastion.core.constants import COORDINATED_MIN_ACTIONS, COORDINATED_WINDOW
from bastion.core.logger import logger
from bastion.core.models import ActionType
from bastion.core.state import GuardState


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class TrackDecision:
    """Outcome of recording one action."""

    tripped: bool
    count: int
    limit: int


# =============================================================================
# Tracker
# =============================================================================

def _trim(timestamps: List[float], now: float, window: float) -> None:
    """Drop every timestamp with now - t > window."""
    cut = bisect.bisect_left(timestamps, now - window)
    if cut:
        del timestamps[:cut]


class ActionRateTracker:
    """Counts actions per actor and decides when a limit is reached."""

    def __init__(self, state: GuardState) -> None:
        self.state = state

    def record(
        self,
        guild_id: int,
        actor_id: int,
        action: ActionType,
        now: float,
        limit: int,
        window: float,
    ) -> TrackDecision:
        """
        Record one action and compare the windowed count with the limit.

        Args:
            guild_id: Guild the action happened in.
            actor_id: Member who performed it.
            action: Action type.
            now: Event time in epoch seconds.
            limit: Maximum allowed events in the window.
            window: Window length in seconds.

        Returns:
            TrackDecision, tripped when the count reaches the limit.
        """
        actors = self.state.action_history[guild_id][action]
        timestamps = actors.setdefault(actor_id, [])

        # Late events are inserted in order, the list stays sorted
        if timestamps and now < timestamps[-1]:
            bisect.insort(timestamps, now)
        else:
            timestamps.append(now)

        _trim(timestamps, now, window)
        count = len(timestamps)

        logger.debug(f"{action.display} Tracked", [
            ("Guild", str(guild_id)),
            ("Actor", str(actor_id)),
            ("Count", f"{count} / {limit}"),
        ])

        return TrackDecision(tripped=count >= limit, count=count, limit=limit)

    def clear(self, guild_id: int, actor_id: int, action: ActionType) -> List[float]:
        """Forget an actor's history for one action type. Returns what was removed."""
        actors = self.state.action_history.get(guild_id, {}).get(action)
        if actors is None:
            return []
        return actors.pop(actor_id, [])

    def count(self, guild_id: int, actor_id: int, action: ActionType, now: float, window: float) -> int:
        actors = self.state.action_history.get(guild_id, {}).get(action, {})
        timestamps = actors.get(actor_id, [])
        return len(timestamps) - bisect.bisect_left(timestamps, now - window)

    def count_suspicious_actors(self, guild_id: int, action: ActionType, now: float) -> int:
        """
        Count actors with repeated events of one type in the coordinated window.

        Independent of the per-actor limit: several actors each doing a
        little can still add up to an attack.
        """
        actors = self.state.action_history.get(guild_id, {}).get(action, {})
        suspicious = 0
        for timestamps in actors.values():
            recent = len(timestamps) - bisect.bisect_right(timestamps, now - COORDINATED_WINDOW)
            if recent >= COORDINATED_MIN_ACTIONS:
                suspicious += 1
        return suspicious


__all__ = ["ActionRateTracker", "TrackDecision"]
