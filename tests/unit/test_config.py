"""Unit tests for configuration loading and editing."""

import sys
from pathlib import Path

import pytest
import yaml

from goog_cli.config import Config, get_config_path
from goog_cli.exceptions import ConfigError


@pytest.mark.unit
class TestConfigPath:
    """Tests for get_config_path()."""

    def test_should_honor_goog_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify GOOG_CONFIG overrides the platform path."""
        monkeypatch.setenv("GOOG_CONFIG", str(tmp_path / "custom.yaml"))

        assert get_config_path() == tmp_path / "custom.yaml"

    def test_should_use_xdg_config_home(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify XDG_CONFIG_HOME is used on Linux."""
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert get_config_path() == tmp_path / "goog" / "config.yaml"

    def test_should_use_application_support_on_macos(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify the macOS location."""
        monkeypatch.setattr(sys, "platform", "darwin")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_path() == tmp_path / "Library" / "Application Support" / "goog" / "config.yaml"


@pytest.mark.unit
class TestConfigLoad:
    """Tests for Config.load() and save()."""

    def test_should_create_default_file(self, config_path: Path) -> None:
        """Verify a missing config file is created with defaults."""
        config = Config.load()

        assert config_path.exists()
        assert config.default_format == "table"
        assert config.keyring_backend == "auto"
        assert config.auth_timeout == 300
        assert config.refresh_timeout == 30
        if sys.platform != "win32":
            assert config_path.stat().st_mode & 0o777 == 0o600

    def test_should_round_trip_values(self, config_path: Path) -> None:
        """Verify saved values load back."""
        config = Config.load()
        config.set_value("default_format", "json")
        config.set_value("redirect_port", "9090")
        config.save()

        reloaded = Config.load()

        assert reloaded.default_format == "json"
        assert reloaded.redirect_port == 9090

    def test_should_apply_environment_overrides(
        self, config_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify GOOG_* variables override file values."""
        monkeypatch.setenv("GOOG_FORMAT", "plain")
        monkeypatch.setenv("GOOG_CLIENT_ID", "env-client")
        monkeypatch.setenv("GOOG_REDIRECT_PORT", "9999")

        config = Config.load()

        assert config.default_format == "plain"
        assert config.client_id == "env-client"
        assert config.redirect_port == 9999

    def test_should_not_apply_environment_when_disabled(
        self, config_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify apply_env=False returns file values only."""
        monkeypatch.setenv("GOOG_FORMAT", "plain")

        assert Config.load(apply_env=False).default_format == "table"

    def test_should_reject_invalid_environment_value(
        self, config_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify invalid overrides name the variable."""
        monkeypatch.setenv("GOOG_FORMAT", "xml")

        with pytest.raises(ConfigError, match="GOOG_FORMAT"):
            Config.load()

    def test_should_reject_invalid_file_value(self, config_path: Path) -> None:
        """Verify invalid values in the file are rejected."""
        config_path.parent.mkdir(parents=True)
        config_path.write_text(yaml.safe_dump({"default_format": "xml"}))

        with pytest.raises(ConfigError, match="default_format"):
            Config.load()

    def test_should_reject_malformed_yaml(self, config_path: Path) -> None:
        """Verify unparseable YAML is a configuration error."""
        config_path.parent.mkdir(parents=True)
        config_path.write_text("default_format: [unclosed")

        with pytest.raises(ConfigError):
            Config.load()

    def test_should_ignore_unknown_keys(self, config_path: Path) -> None:
        """Verify keys from other versions do not break loading."""
        config_path.parent.mkdir(parents=True)
        config_path.write_text(yaml.safe_dump({"mail": {"default_label": "INBOX"}}))

        assert Config.load().default_format == "table"

    def test_should_place_registry_next_to_config(self, config_path: Path) -> None:
        """Verify default data paths."""
        config = Config.load()

        assert config.accounts_path == config_path.parent / "accounts.json"
        assert config.tokens_dir == config_path.parent / "tokens"


@pytest.mark.unit
class TestConfigValues:
    """Tests for get_value() and set_value()."""

    def test_should_get_known_key(self, config: Config) -> None:
        """Verify get_value reads attributes."""
        assert config.get_value("keyring_backend") == "file"

    def test_should_reject_unknown_key(self, config: Config) -> None:
        """Verify unknown keys raise ConfigError."""
        with pytest.raises(ConfigError, match="Unknown config key"):
            config.get_value("nope")
        with pytest.raises(ConfigError, match="Unknown config key"):
            config.set_value("nope", "1")

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("default_format", "xml"),
            ("keyring_backend", "vault"),
            ("timezone", "Not/AZone"),
            ("redirect_port", "abc"),
            ("redirect_port", "70000"),
            ("auth_timeout", "0"),
        ],
    )
    def test_should_reject_invalid_values(self, config: Config, key: str, value: str) -> None:
        """Verify validated keys refuse bad values."""
        with pytest.raises(ConfigError):
            config.set_value(key, value)

    @pytest.mark.parametrize(
        ("key", "value", "expected"),
        [
            ("default_format", "json", "json"),
            ("timezone", "Local", "Local"),
            ("default_account", "work", "work"),
            ("refresh_timeout", "12.5", 12.5),
        ],
    )
    def test_should_set_valid_values(self, config: Config, key: str, value: str, expected) -> None:
        """Verify valid values are converted and stored."""
        config.set_value(key, value)

        assert config.get_value(key) == expected

    def test_should_build_oauth_client_config(self, config: Config) -> None:
        """Verify OAuth client settings come from the config."""
        config.set_value("redirect_port", "9123")

        client = config.oauth_client_config()

        assert client.client_id == "test-client-id"
        assert client.client_secret == "test-client-secret"  # pragma: allowlist secret
        assert client.redirect_port == 9123
