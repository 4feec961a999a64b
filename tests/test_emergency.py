"""
Bastion - Emergency Lockdown Tests
==================================

Tests for permission lockdown, partial success and restore.
"""

import discord
import pytest

from bastion.core.errors import AuthorityError
from bastion.services.antinuke.constants import ADMINISTRATOR

from conftest import BOT_ID, BOT_ROLE_ID, GUILD_ID


SEND_MESSAGES = discord.Permissions(send_messages=True).value
BAN_MEMBERS = discord.Permissions(ban_members=True).value


@pytest.fixture
def guild(platform):
    """Two dangerous roles below the bot and one harmless role."""
    platform.add_role(30, "Admin", position=5, permissions=ADMINISTRATOR | SEND_MESSAGES)
    platform.add_role(31, "Mod", position=3, permissions=BAN_MEMBERS | SEND_MESSAGES)
    platform.add_role(32, "Member", position=2, permissions=SEND_MESSAGES)
    return platform


class TestEnable:
    """Entering emergency mode."""

    @pytest.mark.asyncio
    async def test_strips_dangerous_permissions(self, guard, guild, state):
        result = await guard.enable_emergency_mode(GUILD_ID, "Nuke in progress")

        assert result.success
        assert not result.partial_success
        assert result.modified_roles == 2
        assert guild.roles[30].permissions == SEND_MESSAGES
        assert guild.roles[31].permissions == SEND_MESSAGES
        assert state.emergency[GUILD_ID].role_permissions == {
            30: ADMINISTRATOR | SEND_MESSAGES,
            31: BAN_MEMBERS | SEND_MESSAGES,
        }

    @pytest.mark.asyncio
    async def test_leaves_protected_roles_alone(self, guard, guild):
        """Harmless, default, managed and the bot's own roles are untouched."""
        guild.roles[GUILD_ID].permissions = BAN_MEMBERS
        guild.add_role(33, "Integration", position=4, permissions=ADMINISTRATOR, managed=True)

        await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert guild.roles[32].permissions == SEND_MESSAGES
        assert guild.roles[GUILD_ID].permissions == BAN_MEMBERS
        assert guild.roles[33].permissions == ADMINISTRATOR
        assert guild.roles[BOT_ROLE_ID].permissions == ADMINISTRATOR

    @pytest.mark.asyncio
    async def test_schedules_auto_restore(self, guard, guild, state):
        await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert state.timers.is_scheduled(("emergency", GUILD_ID))

    @pytest.mark.asyncio
    async def test_alerts_mod_log_and_owner(self, guard, guild, notifier):
        await guard.enable_emergency_mode(GUILD_ID, "Drill")

        notifier.notify.assert_awaited_once()
        notifier.notify_owner.assert_awaited_once()
        alert = notifier.notify.await_args.args[1]
        assert "Emergency" in alert.title

    @pytest.mark.asyncio
    async def test_second_enable_is_rejected(self, guard, guild, state):
        """Enabling twice never overwrites the original backup."""
        await guard.enable_emergency_mode(GUILD_ID, "First")

        second = await guard.enable_emergency_mode(GUILD_ID, "Second")

        assert not second.success
        assert "already active" in second.message
        assert state.emergency[GUILD_ID].reason == "First"
        assert state.emergency[GUILD_ID].role_permissions[30] == ADMINISTRATOR | SEND_MESSAGES


class TestPartialAndFailure:
    """Roles the bot cannot change."""

    @pytest.mark.asyncio
    async def test_role_above_bot_is_reported(self, guard, guild):
        guild.add_role(40, "Owner Team", position=15, permissions=ADMINISTRATOR)

        result = await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert result.success
        assert result.partial_success
        assert result.failed_roles == ["Owner Team"]
        assert guild.roles[40].permissions == ADMINISTRATOR

    @pytest.mark.asyncio
    async def test_refused_role_is_reported(self, guard, guild, state):
        guild.failures[("set_role_permissions", 31)] = AuthorityError("Missing access")

        result = await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert result.partial_success
        assert result.failed_roles == ["Mod"]
        assert list(state.emergency[GUILD_ID].role_permissions) == [30]

    @pytest.mark.asyncio
    async def test_nothing_modifiable_means_no_emergency(self, guard, platform, state):
        """Without a modifiable role no backup is stored and disable is a no-op."""
        platform.add_role(40, "Owner Team", position=15, permissions=ADMINISTRATOR)

        result = await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert not result.success
        assert result.failed_roles == ["Owner Team"]
        assert GUILD_ID not in state.emergency
        assert not state.timers.is_scheduled(("emergency", GUILD_ID))
        assert await guard.disable_emergency_mode(GUILD_ID) is False

    @pytest.mark.asyncio
    async def test_bot_without_manage_roles(self, guard, guild, state):
        guild.members[BOT_ID].permissions = SEND_MESSAGES

        result = await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert not result.success
        assert "Manage Roles" in result.message
        assert guild.roles[30].permissions & ADMINISTRATOR
        assert GUILD_ID not in state.emergency

    @pytest.mark.asyncio
    async def test_unexpected_error_rolls_back(self, guard, guild, state):
        """A failure mid-way restores the roles already changed."""
        guild.failures[("set_role_permissions", 31)] = RuntimeError("boom")

        result = await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert not result.success
        assert guild.roles[30].permissions == ADMINISTRATOR | SEND_MESSAGES
        assert GUILD_ID not in state.emergency


class TestDisable:
    """Leaving emergency mode."""

    @pytest.mark.asyncio
    async def test_restores_original_permissions(self, guard, guild, state):
        await guard.enable_emergency_mode(GUILD_ID, "Drill")

        assert await guard.disable_emergency_mode(GUILD_ID) is True

        assert guild.roles[30].permissions == ADMINISTRATOR | SEND_MESSAGES
        assert guild.roles[31].permissions == BAN_MEMBERS | SEND_MESSAGES
        assert GUILD_ID not in state.emergency
        assert not state.timers.is_scheduled(("emergency", GUILD_ID))

    @pytest.mark.asyncio
    async def test_disable_when_inactive(self, guard, guild):
        assert await guard.disable_emergency_mode(GUILD_ID) is False

    @pytest.mark.asyncio
    async def test_deleted_role_is_skipped_on_restore(self, guard, guild):
        await guard.enable_emergency_mode(GUILD_ID, "Drill")
        del guild.roles[31]

        assert await guard.disable_emergency_mode(GUILD_ID) is True
        assert guild.roles[30].permissions == ADMINISTRATOR | SEND_MESSAGES

    @pytest.mark.asyncio
    async def test_auto_restore_checks_same_lockdown(self, guard, guild, state):
        """A stale timer never lifts a newer lockdown."""
        await guard.enable_emergency_mode(GUILD_ID, "Drill")
        started_at = state.emergency[GUILD_ID].started_at

        await guard.emergency._auto_disable(GUILD_ID, started_at - 1)
        assert GUILD_ID in state.emergency

        await guard.emergency._auto_disable(GUILD_ID, started_at)
        assert GUILD_ID not in state.emergency
        assert guild.roles[30].permissions & ADMINISTRATOR

    @pytest.mark.asyncio
    async def test_reset_guild_keeps_backup(self, guard, guild, state):
        await guard.enable_emergency_mode(GUILD_ID, "Drill")

        guard.reset_guild(GUILD_ID)

        assert GUILD_ID in state.emergency
