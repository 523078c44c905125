"""Tests for settings loading."""

from pathlib import Path

import pytest

from fieldops.config import Settings

_KEYS = [
    "API_URL",
    "API_TOKEN",
    "DATA_DIR",
    "LOG_LEVEL",
    "REQUEST_TIMEOUT",
    "SYNC_INTERVAL",
    "REINIT_GRACE_DELAY",
    "SEAT_RETRY_ATTEMPTS",
    "SEAT_RETRY_BASE_DELAY",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Clear FIELDOPS_* variables and restore them afterwards."""
    for key in _KEYS:
        # setenv first so values loaded from a .env file are undone too
        monkeypatch.setenv(f"FIELDOPS_{key}", "")
        monkeypatch.delenv(f"FIELDOPS_{key}")
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self, clean_env, tmp_path):
        """Without variables the defaults apply."""
        settings = Settings.from_env(tmp_path / "missing.env")

        assert settings.api_url == "http://localhost:8000"
        assert settings.api_token == ""
        assert settings.seat_retry_attempts == 1
        assert settings.session_path == Path("~/.fieldops").expanduser() / "session.json"

    def test_environment(self, clean_env, tmp_path):
        """FIELDOPS_* variables override defaults."""
        clean_env.setenv("FIELDOPS_API_URL", "https://ops.example.com/")
        clean_env.setenv("FIELDOPS_DATA_DIR", str(tmp_path / "data"))
        clean_env.setenv("FIELDOPS_LOG_LEVEL", "debug")
        clean_env.setenv("FIELDOPS_SYNC_INTERVAL", "60")
        clean_env.setenv("FIELDOPS_SEAT_RETRY_ATTEMPTS", "3")

        settings = Settings.from_env(tmp_path / "missing.env")

        assert settings.api_url == "https://ops.example.com"
        assert settings.data_dir == tmp_path / "data"
        assert settings.preferences_path == tmp_path / "data" / "preferences.json"
        assert settings.log_level == "DEBUG"
        assert settings.sync_interval_seconds == 60
        assert settings.seat_retry_attempts == 3

    def test_env_file(self, clean_env, tmp_path):
        """Values are read from a .env file."""
        env_file = tmp_path / "fieldops.env"
        env_file.write_text("FIELDOPS_API_TOKEN=abc123\nFIELDOPS_REQUEST_TIMEOUT=5\n")

        settings = Settings.from_env(env_file)

        assert settings.api_token == "abc123"
        assert settings.request_timeout == 5.0

    def test_environment_beats_env_file(self, clean_env, tmp_path):
        """Variables already set are not overwritten by the file."""
        env_file = tmp_path / "fieldops.env"
        env_file.write_text("FIELDOPS_API_TOKEN=from-file\n")
        clean_env.setenv("FIELDOPS_API_TOKEN", "from-env")

        assert Settings.from_env(env_file).api_token == "from-env"

    def test_retry_attempts_at_least_one(self, clean_env, tmp_path):
        """Zero attempts is treated as a single attempt."""
        clean_env.setenv("FIELDOPS_SEAT_RETRY_ATTEMPTS", "0")

        assert Settings.from_env(tmp_path / "missing.env").seat_retry_attempts == 1
