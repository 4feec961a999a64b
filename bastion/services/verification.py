"""
Bastion - Verification State Machine
====================================

Gates members flagged by raid detection behind a one-time code.

DESIGN:
    NONE -> PENDING -> VERIFIED | EXPIRED | LOCKED

    start() snapshots the member's roles, swaps them for the pending role,
    and sends a 6-character code. verify() restores the roles on the
    right code; the fifth wrong code locks the session and applies the
    guild's failed-verification action. An expiry timer applies the
    expired-verification action after VERIFICATION_TIMEOUT. Sessions are
    discarded on every terminal transition, so a later start() begins a
    fresh session.

Author: حَـــــنَّـــــا
"""

import hmac
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

import discord

from bastion.core.config import Config, EmbedColors, get_config
from bastion.core.constants import (
    VERIFICATION_CODE_ALPHABET,
    VERIFICATION_CODE_LENGTH,
    VERIFICATION_MAX_ATTEMPTS,
    VERIFICATION_TIMEOUT,
)
from bastion.core.errors import AuthorityError, NotFoundError, PlatformError
from bastion.core.logger import logger
from bastion.core.models import Alert, RaidAction, RoleSpec
from bastion.core.state import GuardState, VerificationSession

if TYPE_CHECKING:
    from bastion.core.database import SettingsProvider
    from bastion.platform.base import GuildPlatform, Notifier


# =============================================================================
# Constants
# =============================================================================

# Denied on every channel except the verification channel
PENDING_DENY: int = discord.Permissions(
    view_channel=True,
    send_messages=True,
    add_reactions=True,
).value


# =============================================================================
# Enums & Data Classes
# =============================================================================

class VerificationState(str, Enum):
    NONE = "NONE"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"
    LOCKED = "LOCKED"


class VerificationReason(str, Enum):
    VERIFIED = "VERIFIED"
    NO_VERIFICATION_NEEDED = "NO_VERIFICATION_NEEDED"
    INVALID_CODE = "INVALID_CODE"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"


@dataclass
class VerificationResult:
    success: bool
    reason: VerificationReason
    state: VerificationState
    attempts_left: int = 0


def generate_code() -> str:
    """Random code from an alphabet without look-alike characters."""
    return "".join(secrets.choice(VERIFICATION_CODE_ALPHABET) for _ in range(VERIFICATION_CODE_LENGTH))


# =============================================================================
# State Machine
# =============================================================================

class VerificationStateMachine:
    """Per-member verification sessions."""

    def __init__(
        self,
        state: GuardState,
        platform: "GuildPlatform",
        notifier: "Notifier",
        settings: "SettingsProvider",
        config: Optional[Config] = None,
        timeout: float = VERIFICATION_TIMEOUT,
    ) -> None:
        self.state = state
        self.platform = platform
        self.notifier = notifier
        self.settings = settings
        self.config = config or get_config()
        self.timeout = timeout

    def _role_spec(self) -> RoleSpec:
        return RoleSpec(
            name=self.config.pending_role_name,
            deny=PENDING_DENY,
            reason="Verification role for members flagged during a raid",
            allowed_channel=self.config.verification_channel_name,
        )

    def get_state(self, guild_id: int, member_id: int) -> VerificationState:
        if (guild_id, member_id) in self.state.verification:
            return VerificationState.PENDING
        return VerificationState.NONE

    # =========================================================================
    # Start
    # =========================================================================

    async def start(self, guild_id: int, member_id: int, reasons: Optional[List[str]] = None) -> Optional[str]:
        """
        Put a member into pending verification.

        Re-entrant: a member who is already pending gets their existing
        code back and nothing else changes.

        Args:
            guild_id: Guild the member joined.
            member_id: Member to verify.
            reasons: Why verification is required, shown to the member.

        Returns:
            The verification code, or None if the member could not be
            restricted.
        """
        key = (guild_id, member_id)
        async with self.state.lock(guild_id):
            existing = self.state.verification.get(key)
            if existing is not None:
                return existing.code
            session = VerificationSession(code=generate_code(), created_at=time.time(), original_roles=[])
            self.state.verification[key] = session

        try:
            started = await self._restrict(guild_id, member_id, session)
        except PlatformError as e:
            logger.error("Verification Start Failed", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            started = False

        if not started:
            async with self.state.lock(guild_id):
                if self.state.verification.get(key) is session:
                    del self.state.verification[key]
            return None

        self.state.timers.schedule(
            ("verification", guild_id, member_id),
            self.timeout,
            lambda: self._expire(guild_id, member_id, session.created_at),
            name=f"Verification Expiry {guild_id}/{member_id}",
        )

        settings = self.settings.get(guild_id).antiraid
        await self.notifier.notify_member(
            guild_id,
            member_id,
            Alert(
                title="🔐 Verification Required",
                description=(
                    f"Reply with this code in the verification channel within "
                    f"{int(self.timeout // 60)} minutes to get access:\n\n**`{session.code}`**"
                ),
                fields=[("Reason", "\n".join(reasons) if reasons else "Raid protection is active")],
                color=EmbedColors.WARNING,
            ),
            fallback_channel_id=settings.verification_channel_id,
        )

        logger.tree("Verification Started", [
            ("Guild", str(guild_id)),
            ("Member", str(member_id)),
            ("Roles Saved", str(len(session.original_roles))),
            ("Expires In", f"{int(self.timeout // 60)} min"),
        ], emoji="🔐")
        return session.code

    async def _restrict(self, guild_id: int, member_id: int, session: VerificationSession) -> bool:
        member = await self.platform.get_member(guild_id, member_id)
        if member is None:
            logger.warning("Verification Skipped (Member Not Found)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
            ])
            return False

        role_id = await self.platform.ensure_role(guild_id, self._role_spec())
        roles = {role.id: role for role in await self.platform.get_roles(guild_id)}
        session.original_roles = [
            rid for rid in member.role_ids
            if rid in roles and not roles[rid].managed and not roles[rid].is_default and rid != role_id
        ]

        await self.platform.set_roles(guild_id, member_id, [role_id], "Verification required")
        return True

    # =========================================================================
    # Verify
    # =========================================================================

    async def verify(self, guild_id: int, member_id: int, code: str) -> VerificationResult:
        """
        Check a submitted code.

        Args:
            guild_id: Guild of the session.
            member_id: Member submitting.
            code: Submitted code, case-insensitive.

        Returns:
            VerificationResult with the transition that happened.
        """
        key = (guild_id, member_id)
        submitted = code.strip().upper()

        async with self.state.lock(guild_id):
            session = self.state.verification.get(key)
            if session is None:
                return VerificationResult(
                    success=False,
                    reason=VerificationReason.NO_VERIFICATION_NEEDED,
                    state=VerificationState.NONE,
                )

            if hmac.compare_digest(submitted, session.code):
                del self.state.verification[key]
                outcome = VerificationState.VERIFIED
            else:
                session.attempts += 1
                if session.attempts < VERIFICATION_MAX_ATTEMPTS:
                    attempts_left = VERIFICATION_MAX_ATTEMPTS - session.attempts
                    logger.debug("Verification Code Rejected", [
                        ("Guild", str(guild_id)),
                        ("Member", str(member_id)),
                        ("Attempts Left", str(attempts_left)),
                    ])
                    return VerificationResult(
                        success=False,
                        reason=VerificationReason.INVALID_CODE,
                        state=VerificationState.PENDING,
                        attempts_left=attempts_left,
                    )
                del self.state.verification[key]
                outcome = VerificationState.LOCKED

        self.state.timers.cancel(("verification", guild_id, member_id))
        settings = self.settings.get(guild_id).antiraid

        if outcome is VerificationState.LOCKED:
            logger.tree("Verification Locked", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
                ("Attempts", str(VERIFICATION_MAX_ATTEMPTS)),
                ("Action", settings.failed_verification_action.value),
            ], emoji="⛔")
            await self._apply_action(
                guild_id,
                member_id,
                settings.failed_verification_action,
                "Failed verification: too many wrong codes",
            )
            return VerificationResult(
                success=False,
                reason=VerificationReason.TOO_MANY_ATTEMPTS,
                state=VerificationState.LOCKED,
            )

        restore = list(session.original_roles)
        if settings.default_role_id and settings.default_role_id not in restore:
            restore.append(settings.default_role_id)

        try:
            await self.platform.set_roles(guild_id, member_id, restore, "Verification passed")
        except PlatformError as e:
            logger.error("Verification Role Restore Failed", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])

        logger.tree("Member Verified", [
            ("Guild", str(guild_id)),
            ("Member", str(member_id)),
            ("Roles Restored", str(len(restore))),
        ], emoji="✅")
        return VerificationResult(
            success=True,
            reason=VerificationReason.VERIFIED,
            state=VerificationState.VERIFIED,
        )

    # =========================================================================
    # Expiry
    # =========================================================================

    async def _expire(self, guild_id: int, member_id: int, created_at: float) -> None:
        key = (guild_id, member_id)
        async with self.state.lock(guild_id):
            session = self.state.verification.get(key)
            if session is None or session.created_at != created_at:
                return
            del self.state.verification[key]

        member = await self.platform.get_member(guild_id, member_id)
        if member is None:
            logger.debug("Verification Expired (Member Left)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
            ])
            return

        action = self.settings.get(guild_id).antiraid.expired_verification_action
        logger.tree("Verification Expired", [
            ("Guild", str(guild_id)),
            ("Member", f"{member.name} ({member_id})"),
            ("Action", action.value),
        ], emoji="⌛")
        await self._apply_action(guild_id, member_id, action, "Verification expired")

    async def _apply_action(self, guild_id: int, member_id: int, action: RaidAction, reason: str) -> None:
        try:
            if action is RaidAction.KICK:
                await self.platform.kick(guild_id, member_id, reason)
            elif action is RaidAction.BAN:
                await self.platform.ban(guild_id, member_id, reason)
        except NotFoundError:
            logger.debug("Verification Action Skipped (Member Left)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
            ])
        except AuthorityError as e:
            logger.error("Verification Action Failed (Hierarchy)", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
                ("Action", action.value),
                ("Blocker", e.blocker or "Unknown"),
            ])
        except PlatformError as e:
            logger.error("Verification Action Failed", [
                ("Guild", str(guild_id)),
                ("Member", str(member_id)),
                ("Action", action.value),
                ("Error", str(e)[:100]),
            ])


__all__ = [
    "PENDING_DENY",
    "VerificationState",
    "VerificationReason",
    "VerificationResult",
    "VerificationStateMachine",
    "generate_code",
]
