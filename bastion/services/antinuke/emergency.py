"""
Bastion - Emergency Lockdown
============================

Strips dangerous permissions from every role the bot can reach, and puts
them back afterwards.

DESIGN:
    Enabling is all-or-nothing at the backup level: a role only enters the
    backup once its permissions were actually changed, so the backup always
    describes exactly what restore has to undo. If no role could be
    changed, nothing is stored and the guild is not in emergency mode.
    Roles above the bot's top role, or refused by the platform, are
    reported back as failed roles (partial success).

    A timer restores permissions after EMERGENCY_DURATION. It re-checks that
    the same lockdown is still active before restoring.

Author: حَـــــنَّـــــا
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from bastion.core.config import Config, EmbedColors, get_config
from bastion.core.constants import EMERGENCY_DURATION
from bastion.core.errors import AuthorityError, NotFoundError, PlatformError
from bastion.core.logger import logger
from bastion.core.models import Alert
from bastion.core.state import EmergencyBackup, GuardState
from bastion.utils.async_utils import gather_with_logging

from .constants import ADMINISTRATOR, DANGEROUS_PERMISSIONS, MANAGE_ROLES

if TYPE_CHECKING:
    from bastion.platform.base import GuildPlatform, Notifier


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class EmergencyResult:
    success: bool
    message: str
    partial_success: bool = False
    failed_roles: List[str] = field(default_factory=list)
    modified_roles: int = 0


# =============================================================================
# Controller
# =============================================================================

class EmergencyLockdownController:
    """Guild-wide permission lockdown with automatic restore."""

    def __init__(
        self,
        state: GuardState,
        platform: "GuildPlatform",
        notifier: "Notifier",
        config: Optional[Config] = None,
    ) -> None:
        self.state = state
        self.platform = platform
        self.notifier = notifier
        self.config = config or get_config()

    def is_active(self, guild_id: int) -> bool:
        return guild_id in self.state.emergency

    def status(self, guild_id: int) -> Dict[str, Any]:
        backup = self.state.emergency.get(guild_id)
        if backup is None:
            return {"active": False, "since": None, "reason": None, "failed_roles": []}
        return {
            "active": True,
            "since": backup.started_at,
            "reason": backup.reason,
            "failed_roles": list(backup.failed_roles),
        }

    # =========================================================================
    # Enable
    # =========================================================================

    async def enable(self, guild_id: int, reason: str) -> EmergencyResult:
        """
        Put a guild into emergency lockdown.

        Args:
            guild_id: Guild to lock down.
            reason: Why, shown in alerts and audit logs.

        Returns:
            EmergencyResult describing what was changed.
        """
        async with self.state.lock(guild_id):
            if guild_id in self.state.emergency or guild_id in self.state.emergency_pending:
                return EmergencyResult(success=False, message="Emergency mode is already active")
            self.state.emergency_pending.add(guild_id)

        try:
            result = await self._apply(guild_id, reason)
        finally:
            self.state.emergency_pending.discard(guild_id)

        return result

    async def _apply(self, guild_id: int, reason: str) -> EmergencyResult:
        try:
            me = await self.platform.get_self_member(guild_id)
        except PlatformError as e:
            return self._fail(guild_id, f"Could not read bot member: {e}")

        if not me.permissions & (MANAGE_ROLES | ADMINISTRATOR):
            return self._fail(guild_id, "Bot is missing the Manage Roles permission")

        try:
            roles = await self.platform.get_roles(guild_id)
        except PlatformError as e:
            return self._fail(guild_id, f"Could not read roles: {e}")

        targets = sorted(
            (
                role for role in roles
                if role.permissions & DANGEROUS_PERMISSIONS
                and not role.is_default
                and not role.managed
                and role.id not in me.role_ids
            ),
            key=lambda role: role.position,
            reverse=True,
        )

        backup: Dict[int, int] = {}
        failed: List[str] = []
        audit_reason = f"Emergency lockdown: {reason}"

        try:
            for role in targets:
                if role.position > me.top_role_position:
                    failed.append(role.name)
                    continue

                try:
                    await self.platform.set_role_permissions(
                        guild_id,
                        role.id,
                        role.permissions & ~DANGEROUS_PERMISSIONS,
                        audit_reason,
                    )
                except AuthorityError:
                    failed.append(role.name)
                    continue
                except NotFoundError:
                    continue  # Deleted mid-lockdown

                backup[role.id] = role.permissions
                logger.debug("Role Locked Down", [
                    ("Guild", str(guild_id)),
                    ("Role", f"{role.name} ({role.id})"),
                ])
                if self.config.rate_limit_delay:
                    await asyncio.sleep(self.config.rate_limit_delay)

        except Exception as e:
            await self._restore(guild_id, backup, "Emergency lockdown rolled back")
            logger.error("Emergency Lockdown Aborted", [
                ("Guild", str(guild_id)),
                ("Rolled Back", str(len(backup))),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            return EmergencyResult(success=False, message=f"Lockdown aborted: {e}", failed_roles=failed)

        if not backup:
            result = self._fail(guild_id, "No roles could be modified")
            result.failed_roles = failed
            return result

        started_at = time.time()
        async with self.state.lock(guild_id):
            self.state.emergency[guild_id] = EmergencyBackup(
                role_permissions=backup,
                failed_roles=failed,
                started_at=started_at,
                reason=reason,
            )

        self.state.timers.schedule(
            ("emergency", guild_id),
            EMERGENCY_DURATION,
            lambda: self._auto_disable(guild_id, started_at),
            name=f"Emergency Auto-Restore {guild_id}",
        )

        partial = bool(failed)
        logger.tree("EMERGENCY LOCKDOWN ENABLED", [
            ("Guild", str(guild_id)),
            ("Reason", reason),
            ("Roles Modified", str(len(backup))),
            ("Failed Roles", ", ".join(failed) if failed else "None"),
            ("Auto Restore", f"{EMERGENCY_DURATION // 60} min"),
        ], emoji="🚨")

        alert = Alert(
            title="🚨 Emergency Lockdown Enabled",
            description=(
                f"Dangerous permissions were removed from {len(backup)} role(s). "
                f"They will be restored automatically in {EMERGENCY_DURATION // 60} minutes."
            ),
            fields=[("Reason", reason)] + (
                [("Could Not Modify", ", ".join(failed))] if partial else []
            ),
            color=EmbedColors.DANGER,
        )
        await gather_with_logging(
            ("Mod Log Alert", self.notifier.notify(guild_id, alert)),
            ("Owner Alert", self.notifier.notify_owner(guild_id, alert)),
            context="Emergency Lockdown",
        )

        message = "Emergency mode enabled"
        if partial:
            message += f", but {len(failed)} role(s) could not be modified"
        return EmergencyResult(
            success=True,
            message=message,
            partial_success=partial,
            failed_roles=failed,
            modified_roles=len(backup),
        )

    def _fail(self, guild_id: int, message: str) -> EmergencyResult:
        logger.error("Emergency Lockdown Failed", [
            ("Guild", str(guild_id)),
            ("Reason", message),
        ])
        return EmergencyResult(success=False, message=message)

    # =========================================================================
    # Disable
    # =========================================================================

    async def disable(self, guild_id: int, reason: str = "Manually disabled") -> bool:
        """
        Restore every backed-up role and leave emergency mode.

        Returns:
            False if the guild was not in emergency mode.
        """
        async with self.state.lock(guild_id):
            backup = self.state.emergency.pop(guild_id, None)

        if backup is None:
            return False

        self.state.timers.cancel(("emergency", guild_id))
        failed = await self._restore(guild_id, backup.role_permissions, f"Emergency lockdown lifted: {reason}")

        logger.tree("Emergency Lockdown Disabled", [
            ("Guild", str(guild_id)),
            ("Reason", reason),
            ("Roles Restored", str(len(backup.role_permissions) - len(failed))),
            ("Restore Failures", ", ".join(failed) if failed else "None"),
        ], emoji="🔓")

        await self.notifier.notify(guild_id, Alert(
            title="🔓 Emergency Lockdown Lifted",
            description="Role permissions have been restored.",
            fields=[("Reason", reason)] + (
                [("Could Not Restore", ", ".join(failed))] if failed else []
            ),
            color=EmbedColors.SUCCESS,
        ))
        return True

    async def _restore(self, guild_id: int, role_permissions: Dict[int, int], audit_reason: str) -> List[str]:
        """Write backed-up permissions back. Returns IDs of roles that refused."""
        failed: List[str] = []
        for role_id, permissions in role_permissions.items():
            try:
                await self.platform.set_role_permissions(guild_id, role_id, permissions, audit_reason)
            except NotFoundError:
                logger.debug("Restore Skipped (Role Deleted)", [
                    ("Guild", str(guild_id)),
                    ("Role", str(role_id)),
                ])
            except PlatformError as e:
                failed.append(str(role_id))
                logger.warning("Role Restore Failed", [
                    ("Guild", str(guild_id)),
                    ("Role", str(role_id)),
                    ("Error", str(e)[:100]),
                ])
        return failed

    async def _auto_disable(self, guild_id: int, started_at: float) -> None:
        backup = self.state.emergency.get(guild_id)
        if backup is None or backup.started_at != started_at:
            return
        await self.disable(guild_id, reason=f"Automatic restore after {EMERGENCY_DURATION // 60} minutes")


__all__ = ["EmergencyLockdownController", "EmergencyResult"]
