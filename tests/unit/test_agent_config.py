"""
Tests for the persisted agent configuration and settings stores.

Tests rainwatch/core/config.py and rainwatch/core/store.py
"""

import json

import pytest

from rainwatch.core.config import (
    AgentConfig,
    Lookahead,
    PollInterval,
    SettingsKey,
)
from rainwatch.core.store import JsonFileSettingsStore, MemorySettingsStore


class TestEnums:

    def test_poll_interval_descriptions(self):
        assert PollInterval.EVERY_30_MINUTES.description == "30 minutes"
        assert PollInterval.EVERY_HOUR.description == "1 hour"
        assert PollInterval.EVERY_6_HOURS.description == "6 hours"

    @pytest.mark.parametrize("hours,days", [(6, 1), (12, 1), (24, 1), (48, 2)])
    def test_forecast_days(self, hours, days):
        assert Lookahead(hours).forecast_days == days


class TestAgentConfig:
    """Tests for AgentConfig load/save."""

    def test_defaults_on_empty_store(self):
        config = AgentConfig.load(MemorySettingsStore())

        assert config.location_query == ""
        assert config.poll_interval is PollInterval.EVERY_HOUR
        assert config.lookahead is Lookahead.TWELVE_HOURS
        assert config.notify_on_dry_result is False
        assert config.is_active is False
        assert not config.has_location

    def test_loads_stored_values(self):
        store = MemorySettingsStore({
            SettingsKey.LOCATION_QUERY: "Paris",
            SettingsKey.POLL_INTERVAL: 1800,
            SettingsKey.LOOKAHEAD: 48,
            SettingsKey.NOTIFY_ON_DRY: True,
            SettingsKey.IS_ACTIVE: True,
        })

        config = AgentConfig.load(store)

        assert config.location_query == "Paris"
        assert config.poll_interval is PollInterval.EVERY_30_MINUTES
        assert config.lookahead is Lookahead.FORTY_EIGHT_HOURS
        assert config.notify_on_dry_result is True
        assert config.is_active is True

    def test_invalid_stored_enums_fall_back(self):
        store = MemorySettingsStore({SettingsKey.POLL_INTERVAL: 42, SettingsKey.LOOKAHEAD: "soon"})

        config = AgentConfig.load(store)

        assert config.poll_interval is PollInterval.EVERY_HOUR
        assert config.lookahead is Lookahead.TWELVE_HOURS

    def test_save_writes_every_key(self):
        store = MemorySettingsStore()
        AgentConfig(location_query="Oslo", poll_interval=PollInterval.EVERY_3_HOURS).save(store)

        assert store.as_dict() == {
            "locationQuery": "Oslo",
            "pollIntervalSeconds": 10800,
            "lookaheadHours": 12,
            "notifyOnDryResult": False,
            "isActive": False,
        }

    def test_assignment_is_validated(self):
        config = AgentConfig()
        config.poll_interval = 21600

        assert config.poll_interval is PollInterval.EVERY_6_HOURS
        with pytest.raises(ValueError):
            config.lookahead = 7

    def test_whitespace_query_has_no_location(self):
        assert not AgentConfig(location_query="   ").has_location


class TestJsonFileSettingsStore:

    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "data" / "settings.json"
        JsonFileSettingsStore(path).set("locationQuery", "Lima")

        assert json.loads(path.read_text()) == {"locationQuery": "Lima"}
        assert JsonFileSettingsStore(path).get("locationQuery") == "Lima"

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileSettingsStore(tmp_path / "absent.json")

        assert store.get("isActive", False) is False

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        store = JsonFileSettingsStore(path)

        assert store.get("locationQuery") is None

    def test_non_object_file_is_empty(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")

        assert JsonFileSettingsStore(path).get("locationQuery", "") == ""

    def test_config_persists_across_restarts(self, tmp_path):
        path = tmp_path / "settings.json"
        config = AgentConfig(location_query="Paris", is_active=True, lookahead=Lookahead.SIX_HOURS)
        config.save(JsonFileSettingsStore(path))

        reloaded = AgentConfig.load(JsonFileSettingsStore(path))

        assert reloaded == config
