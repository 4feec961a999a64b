"""
Bastion - Raid Detector
=======================

Scores the recent join window of a guild and tracks raid mode.

DESIGN:
    Each join is added to a window pruned to the configured join window,
    then scored by independent signals. Any tripped signal marks the
    window as a raid; severity is the capped sum of signal points.
    The first raid window switches the guild into raid mode, during which
    every join is treated as raid-affected until the cooldown elapses.

Signals:
    - Join rate (threshold, 2x, 3x)
    - New accounts (below minimum age, majority bonus)
    - Brand-new accounts (under one hour)
    - Username similarity
    - Missing avatars

Author: حَـــــنَّـــــا
"""

import bisect
from dataclasses import dataclass, field
from typing import List, Optional

from bastion.core.constants import (
    BRAND_NEW_ACCOUNT_AGE,
    BRAND_NEW_MIN_COUNT,
    MAX_SEVERITY,
    NEW_ACCOUNT_MAJORITY,
    NO_AVATAR_MIN_COUNT,
    NO_AVATAR_RATIO,
    SECONDS_PER_DAY,
)
from bastion.core.logger import logger
from bastion.core.models import JoinRecord, RaidAction
from bastion.core.settings import AntiRaidSettings
from bastion.core.state import GuardState, RaidModeState

from .similarity import username_similarity


# =============================================================================
# Severity Weights
# =============================================================================

class SeverityWeights:
    """Severity points for each raid signal."""

    JOIN_RATE = 2
    JOIN_RATE_DOUBLE = 1
    JOIN_RATE_TRIPLE = 1
    NEW_ACCOUNTS = 2
    NEW_ACCOUNT_MAJORITY = 1
    BRAND_NEW_ACCOUNTS = 2
    SIMILAR_NAMES = 1
    NO_AVATAR = 1


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class RaidIndicators:
    is_raid: bool = False
    reasons: List[str] = field(default_factory=list)
    severity: int = 0


@dataclass
class RaidAssessment:
    """
    Result of feeding one join to the detector.

    Attributes:
        indicators: Score of the current window.
        raid_mode: Active raid mode after this join, if any.
        newly_activated: This join switched raid mode on.
        expired: Raid mode that lapsed and was cleared by this join.
    """

    indicators: RaidIndicators
    raid_mode: Optional[RaidModeState] = None
    newly_activated: bool = False
    expired: Optional[RaidModeState] = None

    @property
    def raid_affected(self) -> bool:
        return self.indicators.is_raid or self.raid_mode is not None


# =============================================================================
# Scoring
# =============================================================================

def score_window(joins: List[JoinRecord], now: float, settings: AntiRaidSettings) -> RaidIndicators:
    """
    Score a join window.

    Args:
        joins: Joins inside the window.
        now: Evaluation time in epoch seconds.
        settings: Guild anti-raid settings.

    Returns:
        RaidIndicators with severity capped at MAX_SEVERITY.
    """
    indicators = RaidIndicators()
    total = len(joins)
    if total == 0:
        return indicators

    severity = 0

    # Join rate
    if total >= settings.join_threshold:
        indicators.is_raid = True
        indicators.reasons.append(f"High join rate ({total} joins in {settings.join_window}s)")
        severity += SeverityWeights.JOIN_RATE
        if total >= settings.join_threshold * 2:
            severity += SeverityWeights.JOIN_RATE_DOUBLE
        if total >= settings.join_threshold * 3:
            severity += SeverityWeights.JOIN_RATE_TRIPLE

    # New accounts
    new_accounts = sum(1 for j in joins if now - j.account_created_at < settings.min_account_age)
    if new_accounts >= settings.new_account_threshold:
        indicators.is_raid = True
        days = settings.min_account_age / SECONDS_PER_DAY
        indicators.reasons.append(f"High number of new accounts ({new_accounts} accounts < {days:g}d old)")
        severity += SeverityWeights.NEW_ACCOUNTS

        share = new_accounts / total
        if share > NEW_ACCOUNT_MAJORITY:
            severity += SeverityWeights.NEW_ACCOUNT_MAJORITY
            indicators.reasons.append(f"{share * 100:.1f}% of joins are new accounts")

    # Brand-new accounts
    brand_new = sum(1 for j in joins if now - j.account_created_at < BRAND_NEW_ACCOUNT_AGE)
    if brand_new >= BRAND_NEW_MIN_COUNT:
        indicators.is_raid = True
        indicators.reasons.append(f"{brand_new} accounts less than 1 hour old detected")
        severity += SeverityWeights.BRAND_NEW_ACCOUNTS

    # Username similarity
    if username_similarity([j.username for j in joins]) >= settings.similar_name_threshold:
        indicators.is_raid = True
        indicators.reasons.append("High username similarity detected")
        severity += SeverityWeights.SIMILAR_NAMES

    # Missing avatars
    no_avatar = sum(1 for j in joins if not j.has_avatar)
    if no_avatar >= NO_AVATAR_MIN_COUNT and no_avatar / total > NO_AVATAR_RATIO:
        indicators.is_raid = True
        indicators.reasons.append(f"{no_avatar} accounts have no avatar ({no_avatar / total * 100:.1f}%)")
        severity += SeverityWeights.NO_AVATAR

    indicators.severity = min(severity, MAX_SEVERITY)
    return indicators


def decide_response(severity: int, configured: RaidAction) -> RaidAction:
    """
    Response ladder for a raid-affected join.

    Severity 5 bans, 3-4 kicks (a configured ban is kept), anything lower
    uses the configured action.
    """
    if severity >= 5:
        return RaidAction.BAN
    if severity >= 3:
        return RaidAction.BAN if configured is RaidAction.BAN else RaidAction.KICK
    return configured


# =============================================================================
# Detector
# =============================================================================

class RaidDetector:
    """Join windows and raid mode for every guild. Callers hold the guild lock."""

    def __init__(self, state: GuardState) -> None:
        self.state = state

    def on_join(
        self,
        guild_id: int,
        join: JoinRecord,
        now: float,
        settings: AntiRaidSettings,
    ) -> RaidAssessment:
        """
        Add a join to the window and score it.

        Args:
            guild_id: Guild joined.
            join: The join.
            now: Evaluation time in epoch seconds.
            settings: Guild anti-raid settings.

        Returns:
            RaidAssessment for this join.
        """
        expired = self.expire_if_due(guild_id, now)

        window = self.state.raid_windows[guild_id]
        bisect.insort(window, join, key=lambda j: j.joined_at)

        cut = bisect.bisect_left(window, now - settings.join_window, key=lambda j: j.joined_at)
        if cut:
            del window[:cut]

        indicators = score_window(window, now, settings)
        assessment = RaidAssessment(indicators=indicators, expired=expired)

        mode = self.state.raid_modes.get(guild_id)
        if mode is None and indicators.is_raid:
            mode = self.activate(
                guild_id,
                now,
                indicators.reasons,
                indicators.severity,
                settings.raid_mode_cooldown,
            )
            assessment.newly_activated = True

        assessment.raid_mode = mode

        logger.debug("Join Scored", [
            ("Guild", str(guild_id)),
            ("Member", f"{join.username} ({join.member_id})"),
            ("Window", str(len(window))),
            ("Severity", str(indicators.severity)),
            ("Raid Mode", "Active" if mode else "Inactive"),
        ])
        return assessment

    def activate(
        self,
        guild_id: int,
        now: float,
        reasons: List[str],
        severity: int,
        duration: float,
        manual: bool = False,
    ) -> RaidModeState:
        mode = RaidModeState(
            since=now,
            reasons=list(reasons),
            severity=severity,
            duration=duration,
            manual=manual,
        )
        self.state.raid_modes[guild_id] = mode
        return mode

    def deactivate(self, guild_id: int) -> Optional[RaidModeState]:
        return self.state.raid_modes.pop(guild_id, None)

    def expire_if_due(self, guild_id: int, now: float) -> Optional[RaidModeState]:
        """Clear raid mode when its cooldown has elapsed. Returns the cleared mode."""
        mode = self.state.raid_modes.get(guild_id)
        if mode is None or now < mode.expires_at:
            return None
        del self.state.raid_modes[guild_id]
        return mode

    def window_size(self, guild_id: int) -> int:
        return len(self.state.raid_windows.get(guild_id, []))


__all__ = [
    "SeverityWeights",
    "RaidIndicators",
    "RaidAssessment",
    "RaidDetector",
    "score_window",
    "decide_response",
]
