"""Tests for JSON storage helpers."""

from __future__ import annotations

import json
import os

import pytest

from devsweep.storage import load_json, save_json


class TestStorage:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "data.json"
        save_json(path, {"a": [1, 2]})
        assert load_json(path, None) == {"a": [1, 2]}

    def test_missing_file_returns_default(self, tmp_path):
        assert load_json(tmp_path / "missing.json", {"x": 1}) == {"x": 1}

    def test_corrupt_file_returns_default(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{oops")
        assert load_json(path, []) == []

    def test_failed_replace_keeps_old_content(self, tmp_path, monkeypatch):
        path = tmp_path / "data.json"
        save_json(path, {"version": 1})

        def fail_replace(src, dst):
            raise OSError("no space left")

        monkeypatch.setattr(os, "replace", fail_replace)
        with pytest.raises(OSError):
            save_json(path, {"version": 2})

        assert json.loads(path.read_text()) == {"version": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_unserializable_data_leaves_no_temp_file(self, tmp_path):
        path = tmp_path / "data.json"
        with pytest.raises(TypeError):
            save_json(path, {"bad": object()})
        assert list(tmp_path.iterdir()) == []
