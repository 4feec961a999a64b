"""
Bastion - Anti-Nuke Package
===========================

Stops mass destructive actions by one actor or several at once.

Author: حَـــــنَّـــــا
"""

from .emergency import EmergencyLockdownController, EmergencyResult
from .punishment import PunishmentDispatcher, PunishmentOutcome
from .service import AntiNukeService, TrackResult
from .tracker import ActionRateTracker, TrackDecision


__all__ = [
    "ActionRateTracker",
    "AntiNukeService",
    "EmergencyLockdownController",
    "EmergencyResult",
    "PunishmentDispatcher",
    "PunishmentOutcome",
    "TrackDecision",
    "TrackResult",
]
