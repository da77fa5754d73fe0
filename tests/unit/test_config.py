"""Unit tests for utils/config.py."""

import pytest
from pydantic import ValidationError

from provisioner.utils.config import Settings, get_settings


@pytest.mark.unit
class TestSettings:
    """Settings loaded from the environment."""

    def test_defaults(self):
        settings = Settings(main_password="pw")

        assert settings.main_password.get_secret_value() == "pw"
        assert settings.alternative_passwords == []
        assert settings.hostname_prefix == ""
        assert settings.port == 7201
        assert settings.router_url == "http://192.168.88.1"
        assert settings.connect_attempts == 10
        assert settings.connect_timeout == 3.0
        assert settings.connect_backoff == 0.5
        assert settings.mask_timeout == 60.0

    def test_main_password_not_exposed_in_repr(self):
        assert "secret-pw" not in repr(Settings(main_password="secret-pw"))

    def test_main_password_required(self, monkeypatch):
        monkeypatch.delenv("MAIN_PASSWORD", raising=False)

        with pytest.raises(ValidationError):
            Settings()

    def test_alternative_passwords_from_json_env(self, monkeypatch):
        monkeypatch.setenv("ALTERNATIVE_PASSWORDS", '["admin", "old-pw"]')

        assert Settings().alternative_passwords == ["admin", "old-pw"]

    def test_port_from_port_tplink(self, monkeypatch):
        monkeypatch.setenv("PORT_TPLINK", "8080")

        assert Settings().port == 8080

    def test_router_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("ROUTER_URL", "http://192.168.0.1")
        monkeypatch.setenv("HEADLESS", "false")
        monkeypatch.setenv("CONNECT_ATTEMPTS", "3")

        settings = Settings()

        assert settings.router_url == "http://192.168.0.1"
        assert settings.headless is False
        assert settings.connect_attempts == 3

    def test_get_settings_is_cached(self):
        first = get_settings()
        assert get_settings() is first

        get_settings.cache_clear()
        assert get_settings() is not first

    @pytest.mark.parametrize("prefix", ["", "lab-", "site1_", "A"])
    def test_valid_hostname_prefix(self, prefix):
        assert Settings(main_password="pw", hostname_prefix=prefix).hostname_prefix == prefix

    @pytest.mark.parametrize("prefix", ["lab.", "-lab", "_lab", "lab site"])
    def test_invalid_hostname_prefix_rejected(self, prefix):
        with pytest.raises(ValidationError, match="HOSTNAME_PREFIX"):
            Settings(main_password="pw", hostname_prefix=prefix)

    def test_log_level_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert Settings().log_level == "DEBUG"

    def test_unknown_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")

        with pytest.raises(ValidationError, match="log_level"):
            Settings()
