"""OAuth credentials for goog-cli accounts.

Quick Start:
    ```python
    from goog_cli.auth import GoogleAuthorizationFlow, TokenManager, open_credential_store

    store = open_credential_store("auto", tokens_dir)
    manager = TokenManager(store, client_config)

    # Credentials for Google API clients, refreshed and persisted on demand
    credentials = manager.get_token_source("work")
    ```
"""

from goog_cli.auth.credential_store import (
    SERVICE_NAME,
    CredentialStore,
    FileCredentialStore,
    KeyringCredentialStore,
    open_credential_store,
)
from goog_cli.auth.models import (
    OAuthClientConfig,
    OAuthToken,
    StoredToken,
    TokenInfo,
    TokenMetadata,
    TokenStatus,
)
from goog_cli.auth.oauth_flow import AuthorizationFlow, GoogleAuthorizationFlow
from goog_cli.auth.token_manager import PersistingCredentials, TokenManager

__all__ = [
    "SERVICE_NAME",
    "AuthorizationFlow",
    "CredentialStore",
    "FileCredentialStore",
    "GoogleAuthorizationFlow",
    "KeyringCredentialStore",
    "OAuthClientConfig",
    "OAuthToken",
    "PersistingCredentials",
    "StoredToken",
    "TokenInfo",
    "TokenManager",
    "TokenMetadata",
    "TokenStatus",
    "open_credential_store",
]
