"""Tests for application settings."""

from __future__ import annotations

import json

import pytest

from devsweep.settings import GIB, Settings

pytestmark = pytest.mark.usefixtures("isolate_storage")


class TestSettings:
    def test_defaults(self, tmp_path):
        settings = Settings(tmp_path / "settings.json")
        assert settings.get("quarantine.capacity_bytes") == 10 * GIB
        assert settings.get_int("quarantine.max_records") == 50
        assert settings.get("scan.custom_paths") == []
        assert settings.get("no.such.key", "fallback") == "fallback"

    def test_set_persists(self, tmp_path):
        path = tmp_path / "settings.json"
        Settings(path).set("scan.custom_paths", ["~/builds"])
        assert Settings(path).get("scan.custom_paths") == ["~/builds"]
        assert json.loads(path.read_text()) == {"scan": {"custom_paths": ["~/builds"]}}

    def test_bad_number_falls_back(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"quarantine": {"max_records": "many", "lock_timeout": "x"}}))
        settings = Settings(path)
        assert settings.get_int("quarantine.max_records") == 50
        assert settings.get_float("quarantine.lock_timeout") == 10.0

    def test_unreadable_file_uses_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("not json")
        assert Settings(path).get_int("quarantine.max_records") == 50

    def test_non_object_file_ignored(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")
        assert Settings(path).get_int("quarantine.max_records") == 50

    def test_instance_is_singleton(self):
        assert Settings.instance() is Settings.instance()
