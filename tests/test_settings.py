"""
Bastion - Settings Tests
========================

Tests for guild settings defaults, persistence and upgrades.
"""

import json

from bastion.core.database import SettingsStore
from bastion.core.models import ActionType, PunishmentPolicy, QuarantineRecord, RaidAction, Target
from bastion.core.settings import (
    DEFAULT_ACTION_LIMITS,
    SETTINGS_VERSION,
    GuildSettings,
)


class TestDefaults:

    def test_unknown_guild_gets_defaults(self, settings):
        guild = settings.get(1234)

        assert guild.antinuke.enabled is False
        assert guild.antinuke.punishment is PunishmentPolicy.BAN
        assert guild.antinuke.action_window == 60
        assert guild.antinuke.limit_for(ActionType.ROLE_DELETE) == 2
        assert guild.antiraid.enabled is False
        assert guild.antiraid.join_threshold == 10
        assert guild.antiraid.action is RaidAction.VERIFICATION
        assert guild.moderation.mod_log_channel_id is None

    def test_partial_payload_is_filled_in(self):
        guild = GuildSettings.from_dict({"antinuke": {"enabled": True, "limits": {"ban": 5}}})

        assert guild.antinuke.enabled is True
        assert guild.antinuke.limit_for(ActionType.BAN) == 5
        assert guild.antinuke.limit_for(ActionType.KICK) == DEFAULT_ACTION_LIMITS[ActionType.KICK]
        assert guild.antiraid.join_window == 30

    def test_action_window_is_clamped(self):
        low = GuildSettings.from_dict({"antinuke": {"action_window": 5}})
        high = GuildSettings.from_dict({"antinuke": {"action_window": 3600}})

        assert low.antinuke.action_window == 30
        assert high.antinuke.action_window == 300

    def test_unknown_action_types_are_skipped(self):
        guild = GuildSettings.from_dict({"antinuke": {"limits": {"sticker_delete": 1}}})

        assert guild.antinuke.limits == DEFAULT_ACTION_LIMITS


class TestPersistence:

    def test_round_trip(self, settings, test_db):
        guild = settings.get(1234)
        guild.antinuke.enabled = True
        guild.antinuke.punishment = PunishmentPolicy.QUARANTINE
        guild.antinuke.whitelist = [Target.user(5), Target.role(5)]
        guild.antinuke.quarantined[9] = QuarantineRecord(original_roles=[1, 2], quarantined_at=100.0)
        guild.antiraid.alert_role_id = 77
        guild.antiraid.failed_verification_action = RaidAction.KICK
        guild.moderation.mod_log_channel_id = 88
        settings.set(1234, guild)

        loaded = SettingsStore(test_db).get(1234)

        assert loaded == guild

    def test_guilds_are_independent(self, settings):
        first = settings.get(1)
        first.antinuke.enabled = True
        settings.set(1, first)

        assert settings.get(2).antinuke.enabled is False

    def test_corrupt_row_falls_back_to_defaults(self, test_db):
        test_db.execute(
            "INSERT INTO guild_settings (guild_id, version, data, updated_at) VALUES (?, ?, ?, ?)",
            (1234, SETTINGS_VERSION, "{not json", 0.0),
        )

        guild = SettingsStore(test_db).get(1234)

        assert guild == GuildSettings()

    def test_invalid_values_fall_back_to_defaults(self, test_db):
        payload = {"antinuke": {"punishment": "EXILE"}}
        test_db.execute(
            "INSERT INTO guild_settings (guild_id, version, data, updated_at) VALUES (?, ?, ?, ?)",
            (1234, SETTINGS_VERSION, json.dumps(payload), 0.0),
        )

        guild = SettingsStore(test_db).get(1234)

        assert guild.antinuke.punishment is PunishmentPolicy.BAN

    def test_old_version_is_rewritten(self, test_db):
        test_db.execute(
            "INSERT INTO guild_settings (guild_id, version, data, updated_at) VALUES (?, ?, ?, ?)",
            (1234, 0, json.dumps({"antinuke": {"enabled": True}}), 0.0),
        )

        guild = SettingsStore(test_db).get(1234)
        row = test_db.fetchone("SELECT version, data FROM guild_settings WHERE guild_id = ?", (1234,))

        assert guild.antinuke.enabled is True
        assert row["version"] == SETTINGS_VERSION
        assert json.loads(row["data"])["antiraid"]["join_threshold"] == 10
