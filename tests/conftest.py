"""
Bastion - Test Fixtures
=======================

Shared fixtures for all tests.
"""

import os
import tempfile
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Keep log files out of the working tree
os.environ.setdefault("BASTION_LOG_DIR", tempfile.mkdtemp(prefix="bastion-logs-"))

from bastion.core.config import Config
from bastion.core.database import DatabaseManager, SettingsStore
from bastion.core.errors import NotFoundError
from bastion.core.models import MemberInfo, RoleInfo, RoleSpec
from bastion.core.state import GuardState
from bastion.services.antinuke.constants import ADMINISTRATOR
from bastion.services.guard import GuardService


GUILD_ID = 1000
OWNER_ID = 1
BOT_ID = 2
BOT_ROLE_ID = 20


# =============================================================================
# Fake Platform
# =============================================================================

class FakePlatform:
    """
    In-memory guild implementing GuildPlatform.

    Every async primitive is an AsyncMock wrapping the in-memory behavior,
    so tests can both inspect state and assert calls. Put an exception in
    `failures[(method, target_id)]` to make that call raise.
    """

    def __init__(self) -> None:
        self.roles: Dict[int, RoleInfo] = {}
        self.members: Dict[int, MemberInfo] = {}
        self.owner_id: Optional[int] = OWNER_ID
        self.banned: List[int] = []
        self.kicked: List[int] = []
        self.failures: Dict[tuple, Exception] = {}
        self._next_id = 9000

        for name in (
            "get_roles",
            "get_member",
            "get_self_member",
            "ban",
            "kick",
            "set_roles",
            "set_role_permissions",
            "ensure_role",
        ):
            setattr(self, name, AsyncMock(side_effect=getattr(self, f"_{name}")))

    # -------------------------------------------------------------------------
    # Setup helpers
    # -------------------------------------------------------------------------

    def add_role(
        self,
        role_id: int,
        name: str,
        position: int,
        permissions: int = 0,
        managed: bool = False,
        is_default: bool = False,
    ) -> RoleInfo:
        role = RoleInfo(role_id, name, position, permissions, managed, is_default)
        self.roles[role_id] = role
        return role

    def add_member(
        self,
        member_id: int,
        name: str,
        role_ids: Optional[List[int]] = None,
        bot: bool = False,
    ) -> MemberInfo:
        role_ids = list(role_ids or [])
        member = MemberInfo(id=member_id, name=name, role_ids=role_ids, bot=bot)
        self._refresh(member)
        self.members[member_id] = member
        return member

    def _refresh(self, member: MemberInfo) -> None:
        held = [self.roles[rid] for rid in member.role_ids if rid in self.roles]
        member.permissions = 0
        for role in held:
            member.permissions |= role.permissions
        member.top_role_position = max((role.position for role in held), default=0)

    def _check(self, method: str, target: int) -> None:
        error = self.failures.get((method, target))
        if error is not None:
            raise error

    # -------------------------------------------------------------------------
    # GuildPlatform
    # -------------------------------------------------------------------------

    async def _get_roles(self, guild_id: int) -> List[RoleInfo]:
        return list(self.roles.values())

    async def _get_member(self, guild_id: int, member_id: int) -> Optional[MemberInfo]:
        return self.members.get(member_id)

    async def _get_self_member(self, guild_id: int) -> MemberInfo:
        return self.members[BOT_ID]

    def get_owner_id(self, guild_id: int) -> Optional[int]:
        return self.owner_id

    async def _ban(self, guild_id: int, member_id: int, reason: str) -> None:
        self._check("ban", member_id)
        self.members.pop(member_id, None)
        self.banned.append(member_id)

    async def _kick(self, guild_id: int, member_id: int, reason: str) -> None:
        self._check("kick", member_id)
        if member_id not in self.members:
            raise NotFoundError(f"Member {member_id} not in guild")
        del self.members[member_id]
        self.kicked.append(member_id)

    async def _set_roles(self, guild_id: int, member_id: int, role_ids: List[int], reason: str) -> None:
        self._check("set_roles", member_id)
        member = self.members.get(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not in guild")
        managed = [rid for rid in member.role_ids if rid in self.roles and self.roles[rid].managed]
        member.role_ids = managed + [rid for rid in role_ids if rid in self.roles and rid not in managed]
        self._refresh(member)

    async def _set_role_permissions(self, guild_id: int, role_id: int, permissions: int, reason: str) -> None:
        self._check("set_role_permissions", role_id)
        role = self.roles.get(role_id)
        if role is None:
            raise NotFoundError(f"Role {role_id} not in guild")
        role.permissions = permissions

    async def _ensure_role(self, guild_id: int, spec: RoleSpec) -> int:
        for role in self.roles.values():
            if role.name == spec.name:
                return role.id
        self._next_id += 1
        self.add_role(self._next_id, spec.name, position=1)
        return self._next_id


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def config():
    """Test configuration with no delays."""
    return Config(
        discord_token="test-token",
        superuser_id=42,
        trusted_bot_ids={77},
        rate_limit_delay=0,
    )


@pytest.fixture
def test_db(tmp_path):
    """Create a temporary settings database."""
    db = DatabaseManager(str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture
def settings(test_db):
    """Settings store over the temporary database."""
    return SettingsStore(test_db)


@pytest.fixture
def platform():
    """Guild with @everyone, the bot (administrator) and the owner."""
    fake = FakePlatform()
    fake.add_role(GUILD_ID, "@everyone", position=0, is_default=True)
    fake.add_role(BOT_ROLE_ID, "Bastion", position=10, permissions=ADMINISTRATOR, managed=True)
    fake.add_member(BOT_ID, "bastion", [BOT_ROLE_ID], bot=True)
    fake.add_member(OWNER_ID, "owner")
    return fake


@pytest.fixture
def notifier():
    """Notifier recording every alert."""
    mock = MagicMock()
    mock.notify = AsyncMock()
    mock.notify_owner = AsyncMock()
    mock.notify_member = AsyncMock()
    return mock


@pytest_asyncio.fixture
async def state():
    """Fresh detector state, closed after the test."""
    guard_state = GuardState()
    yield guard_state
    await guard_state.close()


@pytest_asyncio.fixture
async def guard(platform, notifier, settings, config, state):
    """GuardService wired to the fake platform."""
    return GuardService(platform, notifier, settings, config=config, state=state)


def enable_antinuke(settings, **overrides):
    """Turn anti-nuke on for GUILD_ID with optional overrides."""
    guild_settings = settings.get(GUILD_ID)
    guild_settings.antinuke.enabled = True
    for key, value in overrides.items():
        setattr(guild_settings.antinuke, key, value)
    settings.set(GUILD_ID, guild_settings)
    return guild_settings


def enable_antiraid(settings, **overrides):
    """Turn anti-raid on for GUILD_ID with optional overrides."""
    guild_settings = settings.get(GUILD_ID)
    guild_settings.antiraid.enabled = True
    for key, value in overrides.items():
        setattr(guild_settings.antiraid, key, value)
    settings.set(GUILD_ID, guild_settings)
    return guild_settings
