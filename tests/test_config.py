"""Tests for client settings."""

import pytest

from mealsync.config import ClientSettings, SettingsLoader


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "mealsync.yaml"
    path.write_text(
        "remote:\n"
        "  base_url: http://localhost:5000\n"
        "  api_token: yaml-token\n"
        "  timeout_seconds: 5\n"
        "alternatives:\n"
        "  limit: 4\n"
        "calendar:\n"
        "  timezone: Europe/Berlin\n"
    )
    return path


class TestClientSettings:
    """Test defaults and validation."""

    def test_defaults(self):
        settings = ClientSettings()
        assert settings.timeout_seconds == 12.0
        assert settings.alternatives_limit == 3
        assert settings.tzinfo() is None

    @pytest.mark.parametrize("kwargs", [
        {"timeout_seconds": 0},
        {"alternatives_limit": 11},
        {"alternatives_limit": 0},
        {"timezone": "Mars/Olympus"},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ClientSettings(**kwargs)

    def test_from_env(self):
        settings = ClientSettings.from_env({
            "MEALSYNC_BASE_URL": "http://api.test",
            "MEALSYNC_API_TOKEN": "env-token",
            "MEALSYNC_TIMEOUT": "2.5",
            "MEALSYNC_TIMEZONE": "UTC",
        })
        assert settings.base_url == "http://api.test"
        assert settings.api_token == "env-token"
        assert settings.timeout_seconds == 2.5
        assert settings.tzinfo().key == "UTC"

    def test_from_env_invalid_timeout(self):
        with pytest.raises(ValueError):
            ClientSettings.from_env({"MEALSYNC_TIMEOUT": "soon"})


class TestSettingsLoader:
    """Test YAML loading."""

    def test_load(self, settings_file):
        settings = SettingsLoader(str(settings_file)).load(environ={})
        assert settings.base_url == "http://localhost:5000"
        assert settings.api_token == "yaml-token"
        assert settings.timeout_seconds == 5.0
        assert settings.alternatives_limit == 4
        assert settings.timezone == "Europe/Berlin"

    def test_env_overrides_yaml(self, settings_file):
        settings = SettingsLoader(str(settings_file)).load(environ={"MEALSYNC_API_TOKEN": "env-token"})
        assert settings.api_token == "env-token"
        assert settings.base_url == "http://localhost:5000"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert SettingsLoader(str(path)).load(apply_env=False) == ClientSettings()

    def test_bad_section(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("remote: [1, 2]\n")
        with pytest.raises(ValueError):
            SettingsLoader(str(path)).load(apply_env=False)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SettingsLoader(str(tmp_path / "none.yaml")).load()
