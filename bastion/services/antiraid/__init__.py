"""
Bastion - Anti-Raid Package
===========================

Detects join bursts and contains the accounts involved.

Author: حَـــــنَّـــــا
"""

from .detector import RaidAssessment, RaidDetector, RaidIndicators, decide_response, score_window
from .service import AntiRaidService, JoinResult
from .similarity import username_similarity


__all__ = [
    "AntiRaidService",
    "JoinResult",
    "RaidAssessment",
    "RaidDetector",
    "RaidIndicators",
    "decide_response",
    "score_window",
    "username_similarity",
]
