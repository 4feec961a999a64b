"""
Bastion - Quarantine Tests
==========================

Tests for quarantining and releasing members.
"""

import pytest

from bastion.core.database import SettingsStore
from bastion.core.errors import AuthorityError

from conftest import GUILD_ID


MEMBER = 600
BOOSTER_ROLE = 33


@pytest.fixture
def guild(platform):
    platform.add_role(30, "Helper", position=4)
    platform.add_role(31, "Artist", position=3)
    platform.add_role(BOOSTER_ROLE, "Server Booster", position=2, managed=True)
    platform.add_member(MEMBER, "suspect", [30, 31, BOOSTER_ROLE])
    return platform


class TestQuarantine:

    @pytest.mark.asyncio
    async def test_replaces_roles_with_quarantine_role(self, guard, guild):
        assert await guard.quarantine(GUILD_ID, MEMBER, "Suspicious activity") is True

        record = guard.list_quarantined(GUILD_ID)[MEMBER]
        assert record.original_roles == [30, 31]
        role_ids = guild.members[MEMBER].role_ids
        assert BOOSTER_ROLE in role_ids
        assert 30 not in role_ids and 31 not in role_ids
        quarantine_role = next(rid for rid in role_ids if rid != BOOSTER_ROLE)
        assert guild.roles[quarantine_role].name == "Quarantined"

    @pytest.mark.asyncio
    async def test_already_quarantined(self, guard, guild):
        """A second quarantine keeps the first snapshot."""
        await guard.quarantine(GUILD_ID, MEMBER)

        assert await guard.quarantine(GUILD_ID, MEMBER) is False
        assert guard.list_quarantined(GUILD_ID)[MEMBER].original_roles == [30, 31]

    @pytest.mark.asyncio
    async def test_unknown_member(self, guard, guild):
        assert await guard.quarantine(GUILD_ID, 9999) is False
        assert guard.list_quarantined(GUILD_ID) == {}

    @pytest.mark.asyncio
    async def test_hierarchy_block_stores_nothing(self, guard, guild):
        guild.failures[("set_roles", MEMBER)] = AuthorityError("Member outranks the bot")

        assert await guard.quarantine(GUILD_ID, MEMBER) is False
        assert guard.list_quarantined(GUILD_ID) == {}

    @pytest.mark.asyncio
    async def test_record_survives_reload(self, guard, guild, test_db):
        """Records are persisted with the guild settings."""
        await guard.quarantine(GUILD_ID, MEMBER)

        reloaded = SettingsStore(test_db).get(GUILD_ID)
        assert reloaded.antinuke.quarantined[MEMBER].original_roles == [30, 31]


class TestRelease:

    @pytest.mark.asyncio
    async def test_restores_original_roles(self, guard, guild):
        await guard.quarantine(GUILD_ID, MEMBER)

        assert await guard.release_from_quarantine(GUILD_ID, MEMBER) is True

        assert sorted(guild.members[MEMBER].role_ids) == [30, 31, BOOSTER_ROLE]
        assert MEMBER not in guard.list_quarantined(GUILD_ID)

    @pytest.mark.asyncio
    async def test_release_without_record(self, guard, guild):
        assert await guard.release_from_quarantine(GUILD_ID, MEMBER) is False

    @pytest.mark.asyncio
    async def test_member_left_counts_as_released(self, guard, guild):
        await guard.quarantine(GUILD_ID, MEMBER)
        del guild.members[MEMBER]

        assert await guard.release_from_quarantine(GUILD_ID, MEMBER) is True
        assert guard.list_quarantined(GUILD_ID) == {}

    @pytest.mark.asyncio
    async def test_blocked_release_keeps_record(self, guard, guild):
        await guard.quarantine(GUILD_ID, MEMBER)
        guild.failures[("set_roles", MEMBER)] = AuthorityError("Missing permissions")

        assert await guard.release_from_quarantine(GUILD_ID, MEMBER) is False
        assert MEMBER in guard.list_quarantined(GUILD_ID)
