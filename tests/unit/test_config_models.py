"""Tests for meetwatch/config_models.py"""

from datetime import date

import pytest

from meetwatch import CONFIG_PATH
from meetwatch.config_models import (
    MonitorConfig,
    PollingConfig,
    SlotsConfig,
    load_and_validate,
)


class TestMonitorConfig:
    def test_defaults(self):
        config = MonitorConfig()
        assert config.monitor.poll_interval_seconds == 60.0
        assert config.monitor.max_results == 10
        assert config.monitor.max_concurrency == 1
        assert config.monitor.fallback_days == 2
        assert config.slots.workday_start == 9
        assert config.slots.workday_end == 18
        assert config.slots.mode == "gap"
        assert config.reply.max_candidates == 5
        assert config.processed_set.max_entries is None
        assert config.google.calendar_id == "primary"

    def test_valid_overrides(self):
        config = MonitorConfig(
            monitor={"poll_interval_seconds": 15, "max_concurrency": 4},
            slots={"timezone": "Europe/London", "mode": "enumerate"},
        )
        assert config.monitor.poll_interval_seconds == 15.0
        assert config.monitor.max_concurrency == 4
        assert config.slots.timezone == "Europe/London"
        assert config.slots.mode == "enumerate"

    def test_extra_keys_allowed(self):
        config = MonitorConfig(reply={"assistant_name": "Ada", "signature": "-- A"})
        assert config.reply.assistant_name == "Ada"


class TestValidation:
    def test_workday_must_start_before_end(self):
        with pytest.raises(ValueError):
            SlotsConfig(workday_start=18, workday_end=9)

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            SlotsConfig(mode="hourly")

    @pytest.mark.parametrize("field", ["poll_interval_seconds", "tick_deadline_seconds", "call_timeout_seconds"])
    def test_non_positive_durations_rejected(self, field):
        with pytest.raises(ValueError):
            PollingConfig(**{field: 0})


class TestToSlotSpec:
    def test_uses_configured_timezone(self):
        spec = SlotsConfig(buffer_minutes=10).to_slot_spec([date(2025, 7, 25)])
        assert spec.dates == (date(2025, 7, 25),)
        assert spec.timezone == "+00:00"
        assert spec.buffer_minutes == 10
        assert spec.slots_per_day == 18

    def test_timezone_override(self):
        spec = SlotsConfig().to_slot_spec(["2025-07-25"], timezone="-07:00")
        assert spec.timezone == "-07:00"


class TestLoadAndValidate:
    def test_shipped_config_loads(self):
        config = load_and_validate(CONFIG_PATH)
        assert config == MonitorConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "meetwatch.yaml"
        path.write_text("monitor:\n  poll_interval_seconds: 5\nslots:\n  timezone: '+08:00'\n")

        config = load_and_validate(path)

        assert config.monitor.poll_interval_seconds == 5.0
        assert config.slots.timezone == "+08:00"
        assert config.slots.workday_end == 18

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_and_validate(tmp_path / "absent.yaml") == MonitorConfig()

    def test_invalid_values_fall_back_to_defaults(self, tmp_path):
        path = tmp_path / "meetwatch.yaml"
        path.write_text("slots:\n  workday_start: 20\n  workday_end: 8\n")
        assert load_and_validate(path) == MonitorConfig()

    def test_malformed_yaml_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "meetwatch.yaml"
        path.write_text("monitor: [unclosed\n")
        assert load_and_validate(path) == MonitorConfig()
