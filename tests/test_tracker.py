"""
Bastion - Action Rate Tracker Tests
===================================

Tests for sliding-window counting and the coordinated-attack signal.
"""

import pytest

from bastion.core.models import ActionType
from bastion.core.state import GuardState
from bastion.services.antinuke.tracker import ActionRateTracker


GUILD = 1000
ACTOR = 500


@pytest.fixture
def tracker():
    return ActionRateTracker(GuardState())


class TestWindow:
    """Sliding window correctness."""

    def test_events_inside_window_are_counted(self, tracker):
        """Every event within the window contributes to the count."""
        for t in (0, 10, 20, 30):
            decision = tracker.record(GUILD, ACTOR, ActionType.BAN, t, limit=10, window=60)
        assert decision.count == 4

    def test_events_older_than_window_are_evicted(self, tracker):
        """An event exactly window seconds old is kept, older ones drop."""
        for t in (0, 10, 20):
            tracker.record(GUILD, ACTOR, ActionType.KICK, t, limit=10, window=60)

        decision = tracker.record(GUILD, ACTOR, ActionType.KICK, 80, limit=10, window=60)

        assert decision.count == 2
        assert tracker.state.action_history[GUILD][ActionType.KICK][ACTOR] == [20, 80]

    def test_late_event_keeps_order(self, tracker):
        """Out-of-order events are inserted, not appended."""
        tracker.record(GUILD, ACTOR, ActionType.BAN, 30, limit=10, window=60)
        tracker.record(GUILD, ACTOR, ActionType.BAN, 10, limit=10, window=60)
        tracker.record(GUILD, ACTOR, ActionType.BAN, 20, limit=10, window=60)

        assert tracker.state.action_history[GUILD][ActionType.BAN][ACTOR] == [10, 20, 30]

    def test_actions_and_actors_are_independent(self, tracker):
        """Counts are kept per action type and per actor."""
        tracker.record(GUILD, ACTOR, ActionType.BAN, 0, limit=10, window=60)
        tracker.record(GUILD, ACTOR, ActionType.KICK, 1, limit=10, window=60)
        tracker.record(GUILD, ACTOR + 1, ActionType.BAN, 2, limit=10, window=60)

        assert tracker.count(GUILD, ACTOR, ActionType.BAN, 5, 60) == 1
        assert tracker.count(GUILD, ACTOR, ActionType.KICK, 5, 60) == 1
        assert tracker.count(GUILD, ACTOR + 1, ActionType.BAN, 5, 60) == 1


class TestThreshold:
    """Trip decisions."""

    def test_trips_on_reaching_limit(self, tracker):
        """max=3 trips on the third event, not the fourth."""
        first = tracker.record(GUILD, ACTOR, ActionType.KICK, 0, limit=3, window=60)
        second = tracker.record(GUILD, ACTOR, ActionType.KICK, 10, limit=3, window=60)
        third = tracker.record(GUILD, ACTOR, ActionType.KICK, 20, limit=3, window=60)

        assert not first.tripped
        assert not second.tripped
        assert third.tripped
        assert third.count == 3

    def test_clear_returns_and_removes_history(self, tracker):
        """Clearing hands back the removed timestamps."""
        tracker.record(GUILD, ACTOR, ActionType.KICK, 0, limit=3, window=60)
        tracker.record(GUILD, ACTOR, ActionType.KICK, 5, limit=3, window=60)

        removed = tracker.clear(GUILD, ACTOR, ActionType.KICK)

        assert removed == [0, 5]
        assert tracker.count(GUILD, ACTOR, ActionType.KICK, 5, 60) == 0

    def test_clear_unknown_actor(self, tracker):
        assert tracker.clear(GUILD, ACTOR, ActionType.KICK) == []


class TestSuspiciousActors:
    """Multi-actor signal."""

    def test_counts_actors_with_two_recent_events(self, tracker):
        for actor in (1, 2):
            tracker.record(GUILD, actor, ActionType.ROLE_DELETE, 0, limit=10, window=300)
            tracker.record(GUILD, actor, ActionType.ROLE_DELETE, 5, limit=10, window=300)
        tracker.record(GUILD, 3, ActionType.ROLE_DELETE, 6, limit=10, window=300)

        assert tracker.count_suspicious_actors(GUILD, ActionType.ROLE_DELETE, 10) == 2

    def test_ignores_events_older_than_five_minutes(self, tracker):
        tracker.record(GUILD, 1, ActionType.CHANNEL_DELETE, 0, limit=10, window=300)
        tracker.record(GUILD, 1, ActionType.CHANNEL_DELETE, 100, limit=10, window=300)

        assert tracker.count_suspicious_actors(GUILD, ActionType.CHANNEL_DELETE, 150) == 1
        assert tracker.count_suspicious_actors(GUILD, ActionType.CHANNEL_DELETE, 300) == 0
