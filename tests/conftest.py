"""Shared pytest fixtures for goog-cli tests.

This module provides reusable fixtures for tokens, credential stores,
configuration, a scripted authorization flow and the account registry.
"""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from google.oauth2.credentials import Credentials

from goog_cli.accounts.registry import AccountRegistry
from goog_cli.auth.credential_store import FileCredentialStore
from goog_cli.auth.models import OAuthToken, StoredToken, TokenMetadata
from goog_cli.auth.scopes import DEFAULT_SCOPES
from goog_cli.auth.token_manager import TokenManager
from goog_cli.config import Config
from goog_cli.exceptions import AuthorizationFailedError

GOOG_ENV_VARS = (
    "GOOG_CONFIG",
    "GOOG_ACCOUNT",
    "GOOG_FORMAT",
    "GOOG_CLIENT_ID",
    "GOOG_CLIENT_SECRET",
    "GOOG_REDIRECT_PORT",
    "GOOG_KEYRING_BACKEND",
)

# =============================================================================
# Token Fixtures
# =============================================================================


@pytest.fixture
def valid_token() -> OAuthToken:
    """Create a valid, non-expired OAuth token."""
    return OAuthToken(
        access_token="test_access_token_abc123",
        refresh_token="test_refresh_token_xyz789",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        scopes=list(DEFAULT_SCOPES),
        token_type="Bearer",
    )


@pytest.fixture
def expired_token() -> OAuthToken:
    """Create an expired OAuth token."""
    return OAuthToken(
        access_token="expired_access_token",
        refresh_token="test_refresh_token",
        expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        scopes=["https://www.googleapis.com/auth/calendar.readonly"],
        token_type="Bearer",
    )


@pytest.fixture
def token_metadata() -> TokenMetadata:
    """Create token metadata for testing."""
    return TokenMetadata(
        provider="google",
        created_at=datetime.now(timezone.utc) - timedelta(days=1),
    )


@pytest.fixture
def stored_token(valid_token: OAuthToken, token_metadata: TokenMetadata) -> StoredToken:
    """Create a complete stored token for testing."""
    return StoredToken(
        version=1,
        metadata=token_metadata,
        token=valid_token,
    )


# =============================================================================
# Environment and Configuration
# =============================================================================


@pytest.fixture(autouse=True)
def clean_goog_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's GOOG_* variables out of every test."""
    for name in GOOG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point GOOG_CONFIG at a temporary config file."""
    path = tmp_path / "goog" / "config.yaml"
    monkeypatch.setenv("GOOG_CONFIG", str(path))
    return path


@pytest.fixture
def config(config_path: Path) -> Config:
    """Create a loaded config using file-backed credentials."""
    cfg = Config.load()
    cfg.keyring_backend = "file"
    cfg.client_id = "test-client-id"
    cfg.client_secret = "test-client-secret"  # pragma: allowlist secret
    cfg.save()
    return cfg


# =============================================================================
# Credential Store and Token Manager
# =============================================================================


@pytest.fixture
def tokens_dir(tmp_path: Path) -> Path:
    """Directory for the file credential store."""
    return tmp_path / "tokens"


@pytest.fixture
def file_store(tokens_dir: Path) -> FileCredentialStore:
    """Create a FileCredentialStore in a temporary directory."""
    return FileCredentialStore(tokens_dir)


@pytest.fixture
def token_manager(file_store: FileCredentialStore, config: Config) -> TokenManager:
    """Create a TokenManager over the temporary file store."""
    return TokenManager(file_store, config.oauth_client_config(), refresh_timeout=5)


# =============================================================================
# Authorization Flow
# =============================================================================


class FakeAuthorizationFlow:
    """Authorization flow returning scripted tokens without a browser."""

    def __init__(self, email: str = "user@example.com") -> None:
        self.email = email
        self.error: Exception | None = None
        self.calls: list[list[str]] = []
        self.issued = 0

    async def authorize(self, scopes: list[str]) -> tuple[OAuthToken, str]:
        self.calls.append(list(scopes))
        if self.error is not None:
            raise self.error
        self.issued += 1
        token = OAuthToken(
            access_token=f"access-{self.issued}",
            refresh_token=f"refresh-{self.issued}",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            scopes=list(scopes),
        )
        return token, self.email

    def deny(self) -> None:
        self.error = AuthorizationFailedError("OAuth authentication failed: access_denied")


@pytest.fixture
def fake_flow() -> FakeAuthorizationFlow:
    """Create a scripted authorization flow."""
    return FakeAuthorizationFlow()


@pytest.fixture
def registry(
    config: Config,
    file_store: FileCredentialStore,
    fake_flow: FakeAuthorizationFlow,
    token_manager: TokenManager,
) -> AccountRegistry:
    """Create an AccountRegistry with temporary storage and a fake flow."""
    return AccountRegistry(config, file_store, flow=fake_flow, token_manager=token_manager)


# =============================================================================
# Mock Google Credentials
# =============================================================================


@pytest.fixture
def mock_google_credentials() -> MagicMock:
    """Create a mock Google OAuth2 Credentials object."""
    mock_creds = MagicMock()
    mock_creds.token = "mock_access_token"
    mock_creds.refresh_token = "mock_refresh_token"
    mock_creds.expiry = datetime.now(timezone.utc) + timedelta(hours=1)
    mock_creds.expired = False
    mock_creds.valid = True
    mock_creds.scopes = ["https://www.googleapis.com/auth/calendar.readonly"]
    return mock_creds


@pytest.fixture
def mock_refresh() -> Generator[MagicMock, None, None]:
    """Patch google-auth's network refresh to mint a new access token."""

    def fake_refresh(self, request) -> None:
        self.token = "refreshed_access_token"
        self.expiry = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)

    with patch.object(Credentials, "refresh", autospec=True, side_effect=fake_refresh) as mock:
        yield mock


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
