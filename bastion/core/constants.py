"""
Bastion - Constants
===================

Time windows and fixed thresholds shared across services.
Per-guild tunables live in bastion.core.settings.

Author: حَـــــنَّـــــا
"""

# =============================================================================
# Time Units (seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


# =============================================================================
# Anti-Nuke
# =============================================================================

ACTION_WINDOW_MIN = 30
ACTION_WINDOW_MAX = 300

COORDINATED_WINDOW = 300
"""Look-back for the multi-actor signal, independent of the action window."""

COORDINATED_MIN_ACTIONS = 2
"""Events one actor needs inside COORDINATED_WINDOW to count as suspicious."""

COORDINATED_MIN_ACTORS = 2
"""Suspicious actors that trigger emergency lockdown."""

EMERGENCY_DURATION = 30 * SECONDS_PER_MINUTE


# =============================================================================
# Anti-Raid
# =============================================================================

MAX_SEVERITY = 5
BRAND_NEW_ACCOUNT_AGE = SECONDS_PER_HOUR
BRAND_NEW_MIN_COUNT = 3
NEW_ACCOUNT_MAJORITY = 0.8
NO_AVATAR_MIN_COUNT = 3
NO_AVATAR_RATIO = 0.5
NAME_PAIR_SIMILARITY = 0.8


# =============================================================================
# Verification
# =============================================================================

VERIFICATION_TIMEOUT = 30 * SECONDS_PER_MINUTE
VERIFICATION_MAX_ATTEMPTS = 5
VERIFICATION_CODE_LENGTH = 6
VERIFICATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


# =============================================================================
# Health Check
# =============================================================================

HEALTH_CHECK_PORT = 8081


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "SECONDS_PER_MINUTE",
    "SECONDS_PER_HOUR",
    "SECONDS_PER_DAY",
    "ACTION_WINDOW_MIN",
    "ACTION_WINDOW_MAX",
    "COORDINATED_WINDOW",
    "COORDINATED_MIN_ACTIONS",
    "COORDINATED_MIN_ACTORS",
    "EMERGENCY_DURATION",
    "MAX_SEVERITY",
    "BRAND_NEW_ACCOUNT_AGE",
    "BRAND_NEW_MIN_COUNT",
    "NEW_ACCOUNT_MAJORITY",
    "NO_AVATAR_MIN_COUNT",
    "NO_AVATAR_RATIO",
    "NAME_PAIR_SIMILARITY",
    "VERIFICATION_TIMEOUT",
    "VERIFICATION_MAX_ATTEMPTS",
    "VERIFICATION_CODE_LENGTH",
    "VERIFICATION_CODE_ALPHABET",
    "HEALTH_CHECK_PORT",
]
