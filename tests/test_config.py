"""Tests for configuration loading."""

import pytest

from ideasync.config import Config, load_config
from ideasync.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Drop any IDEASYNC_ variables from the host environment."""
    import os

    for key in list(os.environ):
        if key.startswith("IDEASYNC_"):
            monkeypatch.delenv(key)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        config = load_config()

        assert isinstance(config, Config)
        assert config.remote.url == ""
        assert config.remote.projects_table == "projects"
        assert config.remote.ideas_table == "ideas"
        assert config.remote.max_retries == 3
        assert config.sync.upload_concurrency == 4
        assert config.cache.db_path == "~/.ideasync/cache.db"
        assert config.logging.level == "info"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config.remote.timeout_seconds == 30.0

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "remote:\n"
            "  url: https://example.supabase.co\n"
            "  api_key: anon\n"
            "  timeout_seconds: 5\n"
            "sync:\n"
            "  upload_concurrency: 2\n"
            "cache:\n"
            "  db_path: /tmp/cache.db\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  json: true\n"
        )

        config = load_config(path)

        assert config.remote.url == "https://example.supabase.co"
        assert config.remote.api_key == "anon"
        assert config.remote.timeout_seconds == 5.0
        assert config.remote.projects_table == "projects"
        assert config.sync.upload_concurrency == 2
        assert config.cache.db_path == "/tmp/cache.db"
        assert config.logging.level == "debug"
        assert config.logging.json is True

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path).remote.url == ""

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("remote:\n  url: https://from-file.example\n")
        monkeypatch.setenv("IDEASYNC_REMOTE_URL", "https://from-env.example")
        monkeypatch.setenv("IDEASYNC_REMOTE_ACCESS_TOKEN", "jwt")
        monkeypatch.setenv("IDEASYNC_REMOTE_MAX_RETRIES", "5")
        monkeypatch.setenv("IDEASYNC_SYNC_UPLOAD_CONCURRENCY", "1")
        monkeypatch.setenv("IDEASYNC_CACHE_DB_PATH", ":memory:")
        monkeypatch.setenv("IDEASYNC_LOG_JSON", "yes")

        config = load_config(path)

        assert config.remote.url == "https://from-env.example"
        assert config.remote.access_token == "jwt"
        assert config.remote.max_retries == 5
        assert config.sync.upload_concurrency == 1
        assert config.cache.db_path == ":memory:"
        assert config.logging.json is True

    def test_invalid_number_in_env(self, monkeypatch):
        monkeypatch.setenv("IDEASYNC_REMOTE_TIMEOUT", "soon")

        with pytest.raises(ConfigError, match="IDEASYNC_REMOTE_TIMEOUT"):
            load_config()

    def test_invalid_number_in_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("sync:\n  upload_concurrency: many\n")

        with pytest.raises(ConfigError, match="upload_concurrency"):
            load_config(path)

    def test_error_log_level(self, monkeypatch):
        monkeypatch.setenv("IDEASYNC_LOG_LEVEL", "ERROR")

        assert load_config().logging.level == "error"

    def test_unknown_log_level(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("logging:\n  level: loud\n")

        with pytest.raises(ConfigError, match="logging.level"):
            load_config(path)
