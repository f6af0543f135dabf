"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from schedule_poster.config import (
    Settings,
    find_assets_dir,
    is_debug,
    load_settings,
)
from schedule_poster.exceptions import ValidationError


class TestIsDebug:
    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), ("TRUE", True), ("0", False), ("", False),
    ])
    def test_values(self, value, expected):
        assert is_debug({"DEBUG": value}) is expected


class TestFindAssetsDir:
    def test_first_existing_wins(self, tmp_path):
        a, b = tmp_path / "a", tmp_path / "b"
        b.mkdir()
        assert find_assets_dir([a, b]) == b

    def test_none_found(self, tmp_path):
        assert find_assets_dir([tmp_path / "missing"]) is None


class TestLoadSettings:

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings({})
        assert settings.port == 3000
        assert settings.host == "0.0.0.0"
        assert (settings.canvas_width, settings.canvas_height) == (1080, 1350)
        assert settings.default_theme == "samewave"
        assert settings.chromium_args == ("--no-sandbox", "--disable-setuid-sandbox")
        assert settings.debug is False

    def test_overrides(self, tmp_path):
        settings = load_settings({
            "PORT": "8080",
            "DEBUG": "1",
            "ASSETS_DIR": str(tmp_path),
            "CANVAS_WIDTH": "1080",
            "CANVAS_HEIGHT": "1920",
            "POSTER_THEME": "Midnight",
            "RENDER_SETTLE_MS": "0",
            "RENDER_TIMEOUT_MS": "5000",
            "CHROMIUM_ARGS": "--no-sandbox --font-render-hinting=none",
        })
        assert settings == Settings(
            port=8080,
            debug=True,
            assets_dir=tmp_path,
            canvas_width=1080,
            canvas_height=1920,
            default_theme="midnight",
            settle_ms=0,
            content_timeout_ms=5000,
            chromium_args=("--no-sandbox", "--font-render-hinting=none"),
        )

    def test_cwd_assets_discovered(self, tmp_path, monkeypatch):
        (tmp_path / "Assets").mkdir()
        monkeypatch.chdir(tmp_path)
        assert load_settings({}).assets_dir == tmp_path / "Assets"

    def test_missing_assets_dir_ignored(self, tmp_path, caplog):
        with caplog.at_level("WARNING"):
            settings = load_settings({"ASSETS_DIR": str(tmp_path / "nope")})
        assert settings.assets_dir is None
        assert "not a directory" in caplog.text

    def test_bad_integer(self):
        with pytest.raises(ValidationError, match="PORT"):
            load_settings({"PORT": "http"})

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            load_settings({"RENDER_TIMEOUT_MS": "0"})
