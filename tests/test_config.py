"""
Tests for YAML configuration loading.
"""

from datetime import time
from pathlib import Path

import pytest

from salonbook.config import AppConfig, CalendarSettings


def _write(tmp_path: Path, text: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(text, encoding="utf-8")
    return config_path


class TestAppConfig:

    def test_minimal_config_uses_defaults(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, "shop_id: shop-1\n"))

        assert config.shop_id == "shop-1"
        assert config.timezone == "Europe/Berlin"
        assert config.calendar.slot_duration_minutes == 30
        assert config.calendar.snap_minutes == 5
        assert config.supabase is None

    def test_relative_data_file_resolved_against_config(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, "shop_id: s\ndata_file: data.json\n"))

        assert config.data_file == tmp_path / "data.json"

    def test_supabase_section(self, tmp_path):
        config = AppConfig.load_from_yaml(
            _write(
                tmp_path,
                "shop_id: s\nsupabase:\n  url: https://demo.supabase.co/\n  api_key: key\n",
            )
        )

        assert config.supabase.url == "https://demo.supabase.co"
        assert config.supabase.timeout_seconds == 30

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_unknown_timezone(self, tmp_path):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, "shop_id: s\ntimezone: Mars/Olympus\n"))

    def test_non_mapping_root(self, tmp_path):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, "- just\n- a list\n"))


class TestCalendarSettings:

    def test_snap_cannot_exceed_slot(self):
        with pytest.raises(ValueError):
            CalendarSettings(slot_duration_minutes=10, snap_minutes=15)

    def test_closing_after_opening(self):
        with pytest.raises(ValueError):
            CalendarSettings(default_opening="18:00", default_closing="09:00")

    def test_invalid_clock(self):
        with pytest.raises(ValueError):
            CalendarSettings(default_opening="8 o'clock")

    def test_grid_falls_back_to_defaults(self):
        settings = CalendarSettings(default_opening="07:00", default_closing="19:00")

        grid = settings.build_time_grid(None, time(18, 30))

        assert grid.start_hour == 7
        assert grid.end_hour == 19

    def test_resolver_settings(self):
        resolver = CalendarSettings(slot_duration_minutes=60, snap_minutes=15).build_resolver()

        assert resolver.slot_duration_minutes == 60
        assert resolver.snap_minutes == 15
