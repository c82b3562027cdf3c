"""User configuration for goog-cli.

Configuration lives in a YAML file whose location depends on the platform:

- macOS: ``~/Library/Application Support/goog/config.yaml``
- Windows: ``%APPDATA%\\goog\\config.yaml``
- Other: ``$XDG_CONFIG_HOME/goog/config.yaml`` (``~/.config`` if unset)

The account registry (``accounts.json``) and the file credential store
(``tokens/``) live next to it unless configured otherwise.

Environment Variables:
    GOOG_CONFIG: Path of the config file.
    GOOG_FORMAT: Overrides ``default_format``.
    GOOG_CLIENT_ID: Overrides ``client_id``.
    GOOG_CLIENT_SECRET: Overrides ``client_secret``.
    GOOG_REDIRECT_PORT: Overrides ``redirect_port``.
    GOOG_KEYRING_BACKEND: Overrides ``keyring_backend``.
"""

import logging
import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, PrivateAttr, ValidationError

from goog_cli.auth.credential_store import BACKENDS
from goog_cli.auth.models import OAuthClientConfig
from goog_cli.exceptions import ConfigError
from goog_cli.utils.files import atomic_write_text

logger = logging.getLogger(__name__)

CONFIG_ENV = "GOOG_CONFIG"
FORMATS = ("table", "json", "plain")

# Environment variable -> config key
ENV_OVERRIDES = {
    "GOOG_FORMAT": "default_format",
    "GOOG_CLIENT_ID": "client_id",
    "GOOG_CLIENT_SECRET": "client_secret",
    "GOOG_REDIRECT_PORT": "redirect_port",
    "GOOG_KEYRING_BACKEND": "keyring_backend",
}

# Keys accepted by ``goog config get/set``
CONFIG_KEYS = (
    "default_account",
    "default_format",
    "timezone",
    "accounts_file",
    "keyring_backend",
    "client_id",
    "client_secret",
    "redirect_port",
    "auth_timeout",
    "refresh_timeout",
)

SECRET_KEYS = ("client_secret",)


def get_config_path() -> Path:
    """Return the config file path for this platform, honoring GOOG_CONFIG."""
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()

    if sys.platform == "darwin":
        config_dir = Path.home() / "Library" / "Application Support" / "goog"
    elif sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        base = Path(app_data) if app_data else Path.home() / "AppData" / "Roaming"
        config_dir = base / "goog"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg) if xdg else Path.home() / ".config"
        config_dir = base / "goog"

    return config_dir / "config.yaml"


def _validate_value(key: str, value):
    if key == "default_format" and value not in FORMATS:
        raise ConfigError(f"Invalid default_format {value!r}: must be one of {', '.join(FORMATS)}")

    if key == "keyring_backend" and value not in BACKENDS:
        raise ConfigError(
            f"Invalid keyring_backend {value!r}: must be one of {', '.join(BACKENDS)}"
        )

    if key == "timezone" and value != "Local":
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Invalid timezone {value!r}: {e}") from e

    if key in ("auth_timeout", "refresh_timeout") and value <= 0:
        raise ConfigError(f"Invalid {key} {value!r}: must be positive")

    if key == "redirect_port" and not 0 <= value <= 65535:
        raise ConfigError(f"Invalid redirect_port {value!r}: must be between 0 and 65535")


class Config(BaseModel):
    """goog-cli settings.

    Attributes:
        default_account: Alias used when no account is flagged default.
        default_format: Output format (table, json or plain).
        timezone: IANA timezone for displayed times, or "Local".
        accounts_file: Registry path. Empty means next to the config file.
        keyring_backend: auto, keyring or file.
        client_id: OAuth client ID.
        client_secret: OAuth client secret.
        redirect_port: Loopback port for the OAuth redirect.
        auth_timeout: Seconds to wait for browser consent.
        refresh_timeout: Seconds to wait for a token refresh.
    """

    default_account: str = ""
    default_format: str = "table"
    timezone: str = "Local"
    accounts_file: str = ""
    keyring_backend: str = "auto"
    client_id: str = ""
    client_secret: str = ""
    redirect_port: int = 8085
    auth_timeout: float = 300.0
    refresh_timeout: float = 30.0

    _path: Path = PrivateAttr(default_factory=get_config_path)

    @classmethod
    def load(cls, path: Path | None = None, apply_env: bool = True) -> "Config":
        """Load the config file, creating a default one if it does not exist.

        Args:
            path: Config file path. Defaults to ``get_config_path()``.
            apply_env: Apply GOOG_* environment overrides.

        Raises:
            ConfigError: If the file cannot be read or holds invalid values.
        """
        path = path or get_config_path()

        if path.exists():
            try:
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Failed to read config file {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {path} must contain a mapping")
        else:
            data = {}

        unknown = sorted(set(data) - set(CONFIG_KEYS))
        if unknown:
            logger.warning(f"Ignoring unknown config keys in {path}: {', '.join(unknown)}")
        data = {key: value for key, value in data.items() if key in CONFIG_KEYS}

        try:
            config = cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e
        for key in data:
            _validate_value(key, getattr(config, key))
        config._path = path

        if not path.exists():
            config.save()
            logger.debug(f"Created default config at {path}")

        if apply_env:
            config._apply_env()

        return config

    def _apply_env(self) -> None:
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                try:
                    self.set_value(key, value)
                except ConfigError as e:
                    raise ConfigError(f"Invalid {env_name}: {e.message}") from e

    def save(self) -> None:
        """Atomically write the config file (mode 0600)."""
        content = yaml.safe_dump(self.model_dump(), default_flow_style=False, sort_keys=False)
        try:
            atomic_write_text(self._path, content)
        except OSError as e:
            raise ConfigError(f"Failed to write config file {self._path}: {e}") from e

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config_dir(self) -> Path:
        return self._path.parent

    @property
    def accounts_path(self) -> Path:
        if self.accounts_file:
            return Path(self.accounts_file).expanduser()
        return self.config_dir / "accounts.json"

    @property
    def tokens_dir(self) -> Path:
        return self.config_dir / "tokens"

    def get_value(self, key: str):
        """Return a config value by key.

        Raises:
            ConfigError: If ``key`` is unknown.
        """
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown config key: {key}. Valid keys: {', '.join(CONFIG_KEYS)}")
        return getattr(self, key)

    def set_value(self, key: str, value: str) -> None:
        """Set a config value from its string form, validating it.

        Does not save; call ``save()`` to persist.

        Raises:
            ConfigError: If ``key`` is unknown or ``value`` is invalid.
        """
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown config key: {key}. Valid keys: {', '.join(CONFIG_KEYS)}")

        field_type = type(getattr(self, key))
        try:
            converted = field_type(value)
        except ValueError as e:
            raise ConfigError(f"Invalid {key} {value!r}: expected {field_type.__name__}") from e

        _validate_value(key, converted)
        setattr(self, key, converted)

    def oauth_client_config(self) -> OAuthClientConfig:
        """Build the OAuth client configuration from these settings."""
        return OAuthClientConfig(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_port=self.redirect_port,
        )
