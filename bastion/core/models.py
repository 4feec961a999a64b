"""
Bastion - Data Models
=====================

Value types shared by the detectors, the enforcement layer and the
platform adapter. None of these hold discord.py objects: the adapter
converts members and roles into these snapshots at the boundary.

Author: حَـــــنَّـــــا
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Enums
# =============================================================================

class ActionType(str, Enum):
    """Privileged actions tracked by the anti-nuke engine."""

    BAN = "ban"
    KICK = "kick"
    ROLE_DELETE = "role_delete"
    CHANNEL_DELETE = "channel_delete"
    WEBHOOK_DELETE = "webhook_delete"
    PERMISSION_UPDATE = "permission_update"
    EMOJI_DELETE = "emoji_delete"
    MASS_MENTION = "mass_mention"
    SERVER_UPDATE = "server_update"
    BOT_ADD = "bot_add"
    MEMBER_PRUNE = "member_prune"

    @property
    def display(self) -> str:
        return self.value.replace("_", " ").title()


class PunishmentPolicy(str, Enum):
    """What happens to an actor that trips a threshold."""

    BAN = "BAN"
    KICK = "KICK"
    STRIP_ROLES = "STRIP_ROLES"
    QUARANTINE = "QUARANTINE"


class RaidAction(str, Enum):
    """Response applied to a raid-affected join or a verification outcome."""

    VERIFICATION = "VERIFICATION"
    KICK = "KICK"
    BAN = "BAN"
    NONE = "NONE"


class TargetKind(str, Enum):
    USER = "USER"
    ROLE = "ROLE"


# =============================================================================
# Whitelist Target
# =============================================================================

@dataclass(frozen=True)
class Target:
    """A whitelist entry: either a user or a role, never ambiguous."""

    kind: TargetKind
    id: int

    @classmethod
    def user(cls, user_id: int) -> "Target":
        return cls(TargetKind.USER, int(user_id))

    @classmethod
    def role(cls, role_id: int) -> "Target":
        return cls(TargetKind.ROLE, int(role_id))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "id": self.id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Target":
        return cls(TargetKind(data["kind"]), int(data["id"]))


# =============================================================================
# Platform Snapshots
# =============================================================================

@dataclass
class RoleInfo:
    """Snapshot of a guild role."""

    id: int
    name: str
    position: int
    permissions: int
    managed: bool = False
    is_default: bool = False


@dataclass
class MemberInfo:
    """
    Snapshot of a guild member.

    Attributes:
        role_ids: Every role the member holds, default role excluded.
        permissions: Guild-level permission bitset.
        top_role_position: Position of the member's highest role.
    """

    id: int
    name: str
    role_ids: List[int] = field(default_factory=list)
    bot: bool = False
    permissions: int = 0
    top_role_position: int = 0


@dataclass
class RoleSpec:
    """
    Description of a restricted role created on demand.

    Attributes:
        name: Role name, also used to find an existing role.
        deny: Permission bits denied on every channel for this role.
        reason: Audit log reason.
        allowed_channel: Channel name where the role may still talk,
            created if missing.
    """

    name: str
    deny: int
    reason: str
    allowed_channel: Optional[str] = None


@dataclass
class JoinRecord:
    """A member join as seen by the raid detector (epoch seconds)."""

    member_id: int
    username: str
    account_created_at: float
    has_avatar: bool
    joined_at: float


# =============================================================================
# Persisted Records
# =============================================================================

@dataclass
class QuarantineRecord:
    """Roles a member held before quarantine."""

    original_roles: List[int]
    quarantined_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {"original_roles": list(self.original_roles), "quarantined_at": self.quarantined_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuarantineRecord":
        return cls(
            original_roles=[int(r) for r in data.get("original_roles", [])],
            quarantined_at=float(data.get("quarantined_at", 0.0)),
        )


# =============================================================================
# Notifications
# =============================================================================

@dataclass
class Alert:
    """
    Operator-facing alert payload.

    The platform adapter renders it (an embed on Discord); the core only
    decides what to say.
    """

    title: str
    description: str = ""
    fields: List[tuple] = field(default_factory=list)
    color: Optional[int] = None
    mention_role_id: Optional[int] = None


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "ActionType",
    "PunishmentPolicy",
    "RaidAction",
    "TargetKind",
    "Target",
    "RoleInfo",
    "MemberInfo",
    "RoleSpec",
    "JoinRecord",
    "QuarantineRecord",
    "Alert",
]
