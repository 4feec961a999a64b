"""
Bastion - Anti-Raid Tests
=========================

Tests for join scoring, raid mode and the per-join response ladder.
"""

import pytest

from bastion.core.constants import SECONDS_PER_DAY, SECONDS_PER_HOUR
from bastion.core.errors import AuthorityError
from bastion.core.models import JoinRecord, RaidAction
from bastion.core.settings import AntiRaidSettings
from bastion.core.state import GuardState
from bastion.services.antiraid.detector import RaidDetector, decide_response, score_window
from bastion.services.verification import VerificationState

from conftest import GUILD_ID, OWNER_ID, enable_antiraid


NOW = 1_700_000_000.0

NAMES = [
    "alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf",
    "hotel", "india", "juliet", "kilo", "lima", "mike", "november",
    "oscar", "papa", "quebec", "romeo", "sierra", "tango",
]

OLD = 365 * SECONDS_PER_DAY
NEW = 5 * SECONDS_PER_HOUR


def make_join(member_id, username, age, joined_at=NOW, avatar=True):
    return JoinRecord(
        member_id=member_id,
        username=username,
        account_created_at=joined_at - age,
        has_avatar=avatar,
        joined_at=joined_at,
    )


# =============================================================================
# Scoring
# =============================================================================

class TestScoreWindow:
    """Raid signals over a join window."""

    def test_empty_window(self):
        indicators = score_window([], NOW, AntiRaidSettings())

        assert not indicators.is_raid
        assert indicators.severity == 0

    def test_quiet_window(self):
        joins = [make_join(i, NAMES[i], OLD) for i in range(3)]

        indicators = score_window(joins, NOW, AntiRaidSettings())

        assert not indicators.is_raid
        assert indicators.reasons == []

    def test_burst_of_new_accounts(self):
        """Ten joins in twenty seconds, nine of them new accounts."""
        joins = [make_join(0, NAMES[0], OLD, joined_at=NOW)]
        joins += [make_join(i, NAMES[i], NEW, joined_at=NOW + 2 * i) for i in range(1, 10)]

        indicators = score_window(joins, NOW + 20, AntiRaidSettings())

        assert indicators.is_raid
        assert any(r.startswith("High join rate") for r in indicators.reasons)
        assert any(r.startswith("High number of new accounts") for r in indicators.reasons)
        assert indicators.severity >= 4

    def test_brand_new_accounts_without_avatars(self):
        joins = [make_join(i, NAMES[i], 30 * 60, avatar=False) for i in range(3)]

        indicators = score_window(joins, NOW, AntiRaidSettings())

        assert indicators.is_raid
        assert "3 accounts less than 1 hour old detected" in indicators.reasons
        assert any("no avatar" in r for r in indicators.reasons)
        assert indicators.severity == 3

    def test_similar_usernames(self):
        joins = [make_join(i, f"raider{i}", OLD) for i in range(1, 4)]

        indicators = score_window(joins, NOW, AntiRaidSettings())

        assert indicators.reasons == ["High username similarity detected"]
        assert indicators.severity == 1

    def test_severity_is_capped(self):
        joins = [make_join(i, f"raider{i}", 60, avatar=False) for i in range(30)]

        indicators = score_window(joins, NOW, AntiRaidSettings())

        assert indicators.severity == 5

    def test_severity_never_drops_as_new_accounts_join(self):
        settings = AntiRaidSettings()
        joins = [make_join(i, NAMES[i], OLD) for i in range(3)]
        previous = 0

        for i in range(3, len(NAMES)):
            joins.append(make_join(i, NAMES[i], NEW))
            severity = score_window(joins, NOW, settings).severity
            assert severity >= previous
            previous = severity

        assert previous >= 4


class TestDecideResponse:

    @pytest.mark.parametrize("severity, configured, expected", [
        (5, RaidAction.VERIFICATION, RaidAction.BAN),
        (5, RaidAction.NONE, RaidAction.BAN),
        (4, RaidAction.VERIFICATION, RaidAction.KICK),
        (3, RaidAction.NONE, RaidAction.KICK),
        (3, RaidAction.BAN, RaidAction.BAN),
        (2, RaidAction.VERIFICATION, RaidAction.VERIFICATION),
        (1, RaidAction.NONE, RaidAction.NONE),
        (0, RaidAction.KICK, RaidAction.KICK),
    ])
    def test_ladder(self, severity, configured, expected):
        assert decide_response(severity, configured) is expected


class TestDetector:
    """Join windows and raid mode bookkeeping."""

    def test_window_is_pruned(self):
        detector = RaidDetector(GuardState())
        settings = AntiRaidSettings()

        for t in (0, 10, 40):
            detector.on_join(GUILD_ID, make_join(t, NAMES[t % 20], OLD, joined_at=NOW + t), NOW + t, settings)

        assert detector.window_size(GUILD_ID) == 2

    def test_first_raid_window_activates_raid_mode(self):
        detector = RaidDetector(GuardState())
        settings = AntiRaidSettings(join_threshold=3)

        assessments = [
            detector.on_join(GUILD_ID, make_join(i, NAMES[i], OLD), NOW, settings)
            for i in range(4)
        ]

        assert [a.newly_activated for a in assessments] == [False, False, True, False]
        assert assessments[3].raid_affected
        assert assessments[3].raid_mode.since == NOW

    def test_raid_mode_expires_on_next_join(self):
        detector = RaidDetector(GuardState())
        settings = AntiRaidSettings(raid_mode_cooldown=60)
        detector.activate(GUILD_ID, NOW, ["Drill"], 3, 60)

        during = detector.on_join(GUILD_ID, make_join(1, "alpha", OLD, joined_at=NOW + 30), NOW + 30, settings)
        after = detector.on_join(GUILD_ID, make_join(2, "bravo", OLD, joined_at=NOW + 61), NOW + 61, settings)

        assert during.raid_affected
        assert during.expired is None
        assert after.expired is not None
        assert not after.raid_affected


# =============================================================================
# Service
# =============================================================================

async def join(guard, platform, member_id, username, age, joined_at=NOW, avatar=True):
    """Add a member to the fake guild and feed the join to the guard."""
    platform.add_member(member_id, username)
    return await guard.on_join(GUILD_ID, make_join(member_id, username, age, joined_at, avatar), now=joined_at)


class TestOnJoin:

    @pytest.mark.asyncio
    async def test_disabled_guild(self, guard, platform):
        result = await join(guard, platform, 800, "alpha", NEW)

        assert result.checked is False

    @pytest.mark.asyncio
    async def test_owner_is_exempt(self, guard, platform, settings):
        enable_antiraid(settings)

        result = await guard.on_join(GUILD_ID, make_join(OWNER_ID, "owner", OLD), now=NOW)

        assert result.checked is False

    @pytest.mark.asyncio
    async def test_normal_join(self, guard, platform, settings, notifier):
        enable_antiraid(settings)

        result = await join(guard, platform, 800, "alpha", OLD)

        assert result.checked
        assert not result.assessment.raid_affected
        assert result.action is None
        notifier.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_raid_burst(self, guard, platform, settings, notifier):
        """New accounts flip raid mode on; later joins are kicked, then banned."""
        enable_antiraid(settings)

        results = [await join(guard, platform, 800, NAMES[0], OLD)]
        for i in range(1, 10):
            results.append(await join(guard, platform, 800 + i, NAMES[i], NEW, joined_at=NOW + 2 * i))

        first_raid = results[5]
        assert [r.assessment.newly_activated for r in results].count(True) == 1
        assert first_raid.assessment.newly_activated
        assert first_raid.action is RaidAction.KICK

        last = results[-1]
        assert last.assessment.indicators.severity >= 4
        assert last.action is RaidAction.BAN
        assert platform.kicked == [805, 806, 807, 808]
        assert platform.banned == [809]

        status = guard.get_raid_status(GUILD_ID)
        assert status["active"]
        assert status["stats"]["total_raids"] == 1
        assert status["stats"]["total_raid_accounts"] == 5
        notifier.notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_low_severity_uses_verification(self, guard, platform, settings):
        enable_antiraid(settings, join_threshold=3)

        for i in range(3):
            result = await join(guard, platform, 800 + i, NAMES[i], OLD)

        assert result.action is RaidAction.VERIFICATION
        assert result.applied
        assert guard.get_verification_state(GUILD_ID, 802) is VerificationState.PENDING

    @pytest.mark.asyncio
    async def test_alert_role_pinged_only_when_severe(self, guard, platform, settings, notifier):
        enable_antiraid(settings, join_threshold=3, alert_role_id=99)

        for i in range(3):
            await join(guard, platform, 800 + i, NAMES[i], OLD)

        alert = notifier.notify.await_args.args[1]
        assert alert.mention_role_id is None

    @pytest.mark.asyncio
    async def test_raid_mode_expiry_is_announced(self, guard, platform, settings, notifier, state):
        enable_antiraid(settings, join_threshold=3, raid_mode_cooldown=60)
        for i in range(3):
            await join(guard, platform, 800 + i, NAMES[i], OLD)

        result = await join(guard, platform, 810, "zulu", OLD, joined_at=NOW + 100)

        assert result.assessment.expired is not None
        assert not result.assessment.raid_affected
        assert not guard.get_raid_status(GUILD_ID)["active"]
        assert not state.timers.is_scheduled(("raid_mode", GUILD_ID))
        assert notifier.notify.await_args.args[1].title == "✅ Raid Mode Ended"


class TestFallbacks:
    """Hierarchy failures step down the response ladder."""

    @pytest.mark.asyncio
    async def test_blocked_ban_falls_back_to_kick(self, guard, platform, settings):
        enable_antiraid(settings, action=RaidAction.BAN)
        await guard.set_raid_mode(GUILD_ID, True)
        platform.failures[("ban", 800)] = AuthorityError("Missing permissions")

        result = await join(guard, platform, 800, "alpha", OLD)

        assert result.action is RaidAction.BAN
        assert result.applied
        assert platform.kicked == [800]

    @pytest.mark.asyncio
    async def test_blocked_kick_falls_back_to_verification(self, guard, platform, settings):
        enable_antiraid(settings, action=RaidAction.BAN)
        await guard.set_raid_mode(GUILD_ID, True)
        platform.failures[("ban", 800)] = AuthorityError("Missing permissions")
        platform.failures[("kick", 800)] = AuthorityError("Missing permissions")

        result = await join(guard, platform, 800, "alpha", OLD)

        assert result.applied
        assert guard.get_verification_state(GUILD_ID, 800) is VerificationState.PENDING

    @pytest.mark.asyncio
    async def test_member_left_before_response(self, guard, platform, settings):
        enable_antiraid(settings)
        await guard.set_raid_mode(GUILD_ID, True)

        result = await guard.on_join(GUILD_ID, make_join(800, "alpha", OLD), now=NOW)

        assert result.action is RaidAction.VERIFICATION
        assert result.applied is False


class TestManualRaidMode:

    @pytest.mark.asyncio
    async def test_toggle(self, guard, settings, notifier, state):
        enable_antiraid(settings, alert_role_id=99)

        assert await guard.set_raid_mode(GUILD_ID, True, "Drill") is True
        assert await guard.set_raid_mode(GUILD_ID, True) is False

        status = guard.get_raid_status(GUILD_ID)
        assert status["active"]
        assert status["manual"]
        assert status["severity"] == 3
        assert status["reasons"] == ["Drill"]
        assert state.timers.is_scheduled(("raid_mode", GUILD_ID))
        assert notifier.notify.await_args.args[1].mention_role_id == 99

        assert await guard.set_raid_mode(GUILD_ID, False) is True
        assert await guard.set_raid_mode(GUILD_ID, False) is False
        assert not guard.get_raid_status(GUILD_ID)["active"]
        assert not state.timers.is_scheduled(("raid_mode", GUILD_ID))
        assert notifier.notify.await_count == 2

    @pytest.mark.asyncio
    async def test_benign_join_during_manual_raid_mode(self, guard, platform, settings):
        """Raid mode alone sends a quiet join to verification, not a kick."""
        enable_antiraid(settings)
        await guard.set_raid_mode(GUILD_ID, True, "Drill")

        result = await join(guard, platform, 900, "alpha", OLD)

        assert result.assessment.raid_affected
        assert result.assessment.indicators.severity == 0
        assert result.action is RaidAction.VERIFICATION
        assert result.applied
        assert platform.kicked == []
        assert guard.get_verification_state(GUILD_ID, 900) is VerificationState.PENDING

    @pytest.mark.asyncio
    async def test_expiry_timer_checks_same_raid_mode(self, guard, settings, state):
        await guard.set_raid_mode(GUILD_ID, True)
        since = state.raid_modes[GUILD_ID].since

        await guard.antiraid._expire_raid_mode(GUILD_ID, since - 1)
        assert guard.get_raid_status(GUILD_ID)["active"]

        await guard.antiraid._expire_raid_mode(GUILD_ID, since)
        assert not guard.get_raid_status(GUILD_ID)["active"]

    @pytest.mark.asyncio
    async def test_status_for_quiet_guild(self, guard):
        status = guard.get_raid_status(GUILD_ID)

        assert status["enabled"] is False
        assert status["active"] is False
        assert status["window_size"] == 0
        assert status["stats"] == {
            "total_raids": 0,
            "total_raid_accounts": 0,
            "last_raid_at": None,
            "highest_severity": 0,
        }
