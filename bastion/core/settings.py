"""
Bastion - Guild Settings
========================

Versioned per-guild protection settings.

DESIGN:
    Settings are read from the database as JSON and shaped exactly once
    in GuildSettings.from_dict(): every missing key receives its default
    there, so the services never probe for absent fields. The payload
    carries SETTINGS_VERSION so older rows can be upgraded on load.

Author: حَـــــنَّـــــا
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bastion.core.constants import (
    ACTION_WINDOW_MAX,
    ACTION_WINDOW_MIN,
    SECONDS_PER_DAY,
    SECONDS_PER_MINUTE,
)
from bastion.core.models import (
    ActionType,
    PunishmentPolicy,
    QuarantineRecord,
    RaidAction,
    Target,
)


# =============================================================================
# Defaults
# =============================================================================

SETTINGS_VERSION = 1

DEFAULT_ACTION_LIMITS: Dict[ActionType, int] = {
    ActionType.BAN: 3,
    ActionType.KICK: 3,
    ActionType.ROLE_DELETE: 2,
    ActionType.CHANNEL_DELETE: 2,
    ActionType.WEBHOOK_DELETE: 3,
    ActionType.PERMISSION_UPDATE: 5,
    ActionType.EMOJI_DELETE: 5,
    ActionType.MASS_MENTION: 3,
    ActionType.SERVER_UPDATE: 2,
    ActionType.BOT_ADD: 2,
    ActionType.MEMBER_PRUNE: 2,
}

DEFAULT_ACTION_WINDOW = 60


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


# =============================================================================
# Anti-Nuke Settings
# =============================================================================

@dataclass
class AntiNukeSettings:
    """
    Anti-nuke configuration for one guild.

    Attributes:
        enabled: Master switch, checked at the start of every tracked action.
        punishment: Policy applied to an actor that trips a limit.
        limits: Maximum events per action type inside the window.
        action_window: Sliding window length in seconds (30-300).
        whitelist: Users and roles exempt from tracking.
        quarantined: Quarantine records keyed by member ID.
    """

    enabled: bool = False
    punishment: PunishmentPolicy = PunishmentPolicy.BAN
    limits: Dict[ActionType, int] = field(default_factory=lambda: dict(DEFAULT_ACTION_LIMITS))
    action_window: int = DEFAULT_ACTION_WINDOW
    whitelist: List[Target] = field(default_factory=list)
    quarantined: Dict[int, QuarantineRecord] = field(default_factory=dict)

    def limit_for(self, action: ActionType) -> int:
        return self.limits.get(action, DEFAULT_ACTION_LIMITS[action])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "punishment": self.punishment.value,
            "limits": {action.value: limit for action, limit in self.limits.items()},
            "action_window": self.action_window,
            "whitelist": [target.to_dict() for target in self.whitelist],
            "quarantined": {str(mid): record.to_dict() for mid, record in self.quarantined.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AntiNukeSettings":
        limits = dict(DEFAULT_ACTION_LIMITS)
        for key, value in (data.get("limits") or {}).items():
            try:
                limits[ActionType(key)] = max(1, int(value))
            except ValueError:
                continue  # Unknown action type from a newer build

        window = int(data.get("action_window", DEFAULT_ACTION_WINDOW))
        window = min(max(window, ACTION_WINDOW_MIN), ACTION_WINDOW_MAX)

        return cls(
            enabled=bool(data.get("enabled", False)),
            punishment=PunishmentPolicy(data.get("punishment", PunishmentPolicy.BAN.value)),
            limits=limits,
            action_window=window,
            whitelist=[Target.from_dict(t) for t in data.get("whitelist", [])],
            quarantined={
                int(mid): QuarantineRecord.from_dict(record)
                for mid, record in (data.get("quarantined") or {}).items()
            },
        )


# =============================================================================
# Anti-Raid Settings
# =============================================================================

@dataclass
class AntiRaidSettings:
    """
    Anti-raid and verification configuration for one guild.

    Durations are in seconds.
    """

    enabled: bool = False
    join_threshold: int = 10
    join_window: int = 30
    min_account_age: int = 7 * SECONDS_PER_DAY
    new_account_threshold: int = 5
    similar_name_threshold: float = 0.8
    action: RaidAction = RaidAction.VERIFICATION
    raid_mode_cooldown: int = 30 * SECONDS_PER_MINUTE
    alert_role_id: Optional[int] = None
    default_role_id: Optional[int] = None
    verification_channel_id: Optional[int] = None
    expired_verification_action: RaidAction = RaidAction.NONE
    failed_verification_action: RaidAction = RaidAction.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "join_threshold": self.join_threshold,
            "join_window": self.join_window,
            "min_account_age": self.min_account_age,
            "new_account_threshold": self.new_account_threshold,
            "similar_name_threshold": self.similar_name_threshold,
            "action": self.action.value,
            "raid_mode_cooldown": self.raid_mode_cooldown,
            "alert_role_id": self.alert_role_id,
            "default_role_id": self.default_role_id,
            "verification_channel_id": self.verification_channel_id,
            "expired_verification_action": self.expired_verification_action.value,
            "failed_verification_action": self.failed_verification_action.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AntiRaidSettings":
        defaults = cls()
        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            join_threshold=max(2, int(data.get("join_threshold", defaults.join_threshold))),
            join_window=max(1, int(data.get("join_window", defaults.join_window))),
            min_account_age=int(data.get("min_account_age", defaults.min_account_age)),
            new_account_threshold=max(1, int(data.get("new_account_threshold", defaults.new_account_threshold))),
            similar_name_threshold=float(data.get("similar_name_threshold", defaults.similar_name_threshold)),
            action=RaidAction(data.get("action", defaults.action.value)),
            raid_mode_cooldown=int(data.get("raid_mode_cooldown", defaults.raid_mode_cooldown)),
            alert_role_id=_optional_int(data.get("alert_role_id")),
            default_role_id=_optional_int(data.get("default_role_id")),
            verification_channel_id=_optional_int(data.get("verification_channel_id")),
            expired_verification_action=RaidAction(
                data.get("expired_verification_action", defaults.expired_verification_action.value)
            ),
            failed_verification_action=RaidAction(
                data.get("failed_verification_action", defaults.failed_verification_action.value)
            ),
        )


# =============================================================================
# Moderation Settings
# =============================================================================

@dataclass
class ModerationSettings:
    mod_log_channel_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"mod_log_channel_id": self.mod_log_channel_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModerationSettings":
        return cls(mod_log_channel_id=_optional_int(data.get("mod_log_channel_id")))


# =============================================================================
# Guild Settings
# =============================================================================

@dataclass
class GuildSettings:
    """All protection settings for one guild."""

    antinuke: AntiNukeSettings = field(default_factory=AntiNukeSettings)
    antiraid: AntiRaidSettings = field(default_factory=AntiRaidSettings)
    moderation: ModerationSettings = field(default_factory=ModerationSettings)
    version: int = SETTINGS_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SETTINGS_VERSION,
            "antinuke": self.antinuke.to_dict(),
            "antiraid": self.antiraid.to_dict(),
            "moderation": self.moderation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GuildSettings":
        """
        Build settings from a stored payload, applying every default.

        Args:
            data: Decoded JSON payload, or None for a guild never configured.

        Returns:
            Fully populated GuildSettings at the current version.
        """
        data = data or {}
        return cls(
            antinuke=AntiNukeSettings.from_dict(data.get("antinuke") or {}),
            antiraid=AntiRaidSettings.from_dict(data.get("antiraid") or {}),
            moderation=ModerationSettings.from_dict(data.get("moderation") or {}),
            version=SETTINGS_VERSION,
        )


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "SETTINGS_VERSION",
    "DEFAULT_ACTION_LIMITS",
    "DEFAULT_ACTION_WINDOW",
    "AntiNukeSettings",
    "AntiRaidSettings",
    "ModerationSettings",
    "GuildSettings",
]
