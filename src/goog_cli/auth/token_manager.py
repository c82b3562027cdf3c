"""Per-account token management on top of a credential store.

The token manager turns stored tokens into google-auth credentials that
refresh themselves and write the refreshed token back to the store, so the
next ``goog`` invocation starts from the newest token instead of refreshing
again.

Refresh races:
    Two processes can refresh the same account at the same time. Google may
    rotate the refresh token, in which case the slower process's exchange
    fails. Before reporting ``RefreshFailedError`` the credentials re-read the
    store once and either adopt the token the other process saved or retry
    with its refresh token.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from pydantic import ValidationError

from goog_cli.auth.credential_store import CredentialStore
from goog_cli.auth.models import (
    OAuthClientConfig,
    OAuthToken,
    StoredToken,
    TokenInfo,
    TokenMetadata,
    TokenStatus,
)
from goog_cli.exceptions import (
    GoogCliError,
    RefreshFailedError,
    StorageFailedError,
    TokenNotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_TIMEOUT = 30.0


def _to_naive_utc(value: datetime | None) -> datetime | None:
    """google-auth compares expiry against a naive UTC clock."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def credentials_to_token(credentials: Credentials, scopes: list[str]) -> OAuthToken:
    """Convert google-auth Credentials to OAuthToken.

    Args:
        credentials: Google OAuth2 credentials.
        scopes: Scopes to record on the token.

    Returns:
        OAuthToken with all credential data.
    """
    if credentials.expiry:
        expires_at = credentials.expiry
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
    else:
        # Default to 1 hour expiration
        expires_at = datetime.now(timezone.utc) + timedelta(hours=1)

    return OAuthToken(  # nosec B106 - "Bearer" is OAuth token type, not a password
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        expires_at=expires_at,
        scopes=scopes,
        token_type="Bearer",
    )


class PersistingCredentials(Credentials):
    """OAuth2 credentials that save every refresh back to the credential store.

    Instances are ordinary google-auth credentials and can be handed to any
    Google API client. ``alias`` and ``manager`` are optional so that
    google-auth's internal copies (``with_quota_project`` and friends) still
    construct; such copies refresh without persisting.
    """

    def __init__(self, *args, alias: str | None = None, manager=None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._alias = alias
        self._manager = manager

    @property
    def alias(self) -> str | None:
        return self._alias

    def refresh(self, request) -> None:
        """Refresh the access token and persist the result.

        Raises:
            RefreshFailedError: If the refresh token is missing, revoked or
                expired and the stored token offers no way forward.
        """
        if self._manager is None:
            super().refresh(request)
            return

        try:
            super().refresh(request)
        except google.auth.exceptions.RefreshError as e:
            logger.warning(f"Token refresh failed for {self._alias}, re-reading stored token: {e}")
            self._recover_from_stored_token(request, e)
            return

        self._manager._persist_credentials(self._alias, self)

    def _recover_from_stored_token(self, request, error: Exception) -> None:
        """Re-read the store after a failed refresh and retry once."""
        try:
            stored = self._manager.load_token(self._alias)
        except GoogCliError as e:
            raise RefreshFailedError(self._alias, original_error=error) from e

        latest = stored.token
        if latest.access_token != self.token and not latest.is_expired(buffer_seconds=0):
            # Another process refreshed in the meantime
            logger.info(f"Adopted token refreshed by another process for {self._alias}")
            self._apply_token(latest)
            return

        if latest.refresh_token and latest.refresh_token != self.refresh_token:
            self._refresh_token = latest.refresh_token
            try:
                super().refresh(request)
            except google.auth.exceptions.RefreshError as e:
                raise RefreshFailedError(self._alias, original_error=e) from e
            self._manager._persist_credentials(self._alias, self)
            return

        raise RefreshFailedError(self._alias, original_error=error) from error

    def _apply_token(self, token: OAuthToken) -> None:
        self.token = token.access_token
        self._refresh_token = token.refresh_token
        self.expiry = _to_naive_utc(token.expires_at)


class TokenManager:
    """Stores, loads and refreshes OAuth tokens keyed by account alias.

    Attributes:
        store: Credential store holding one serialized StoredToken per alias.
        client_config: OAuth client used to refresh tokens.
        refresh_timeout: Seconds before a forced refresh is abandoned.

    Example:
        ```python
        manager = TokenManager(store, client_config)

        # Credentials for a Google API client, refreshed on demand
        credentials = manager.get_token_source("work")

        # Status without touching the network
        info = manager.get_token_info("work")
        if info.is_expired:
            token = await manager.refresh_token("work")
        ```
    """

    def __init__(
        self,
        store: CredentialStore,
        client_config: OAuthClientConfig | None = None,
        refresh_timeout: float = DEFAULT_REFRESH_TIMEOUT,
    ) -> None:
        self.store = store
        self.client_config = client_config or OAuthClientConfig()
        self.refresh_timeout = refresh_timeout

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_token(
        self,
        alias: str,
        token: OAuthToken,
        metadata: TokenMetadata | None = None,
    ) -> None:
        """Serialize and store a token for an alias, overwriting any previous one."""
        stored_token = StoredToken(
            version=1,
            metadata=metadata or TokenMetadata(),
            token=token,
        )
        self.store.set(alias, stored_token.model_dump_json().encode("utf-8"))
        logger.debug(f"Saved token for {alias}")

    def load_token(self, alias: str) -> StoredToken:
        """Load the stored token for an alias.

        Raises:
            TokenNotFoundError: If nothing is stored for the alias.
            StorageFailedError: If the stored secret cannot be parsed.
        """
        data = self.store.get(alias)
        try:
            return StoredToken.model_validate_json(data)
        except ValidationError as e:
            raise StorageFailedError(f"Stored token for {alias} is corrupted", e) from e

    def delete_token(self, alias: str) -> None:
        """Delete the stored token for an alias. Missing tokens are ignored."""
        self.store.delete(alias)
        logger.debug(f"Deleted token for {alias}")

    def copy_token(self, source_alias: str, target_alias: str) -> None:
        """Copy the raw secret of one alias to another alias.

        Raises:
            TokenNotFoundError: If the source alias has no stored token.
        """
        self.store.set(target_alias, self.store.get(source_alias))

    def _persist_credentials(self, alias: str, credentials: Credentials) -> OAuthToken:
        """Write refreshed credentials back to the store."""
        try:
            stored = self.load_token(alias)
            scopes = stored.token.scopes
            metadata = stored.metadata
        except TokenNotFoundError:
            scopes = list(credentials.scopes or [])
            metadata = TokenMetadata()

        token = credentials_to_token(credentials, scopes)
        metadata.last_refreshed = datetime.now(timezone.utc)
        self.save_token(alias, token, metadata)
        logger.info(f"Refreshed token for {alias}")
        return token

    # ------------------------------------------------------------------
    # Token sources
    # ------------------------------------------------------------------

    def _token_to_credentials(
        self,
        alias: str,
        token: OAuthToken,
        client_config: OAuthClientConfig | None = None,
    ) -> PersistingCredentials:
        config = client_config or self.client_config
        return PersistingCredentials(  # nosec B106 - token_uri is public Google OAuth endpoint
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=config.token_uri,
            client_id=config.client_id or None,
            client_secret=config.client_secret or None,
            scopes=token.scopes or None,
            expiry=_to_naive_utc(token.expires_at),
            alias=alias,
            manager=self,
        )

    def get_token_source(self, alias: str) -> PersistingCredentials:
        """Return self-refreshing credentials for an alias.

        No network call is made here. The credentials refresh lazily when a
        Google API client finds them expired, and persist the new token.

        Raises:
            TokenNotFoundError: If no token is stored for the alias.
            StorageFailedError: If the stored token cannot be read.
        """
        stored = self.load_token(alias)
        return self._token_to_credentials(alias, stored.token)

    async def refresh_token(
        self,
        alias: str,
        client_config: OAuthClientConfig | None = None,
    ) -> OAuthToken:
        """Force a refresh regardless of the current expiry.

        Args:
            alias: Account alias.
            client_config: OAuth client to refresh with. Defaults to the
                manager's client configuration.

        Returns:
            The refreshed token, already persisted.

        Raises:
            TokenNotFoundError: If no token is stored for the alias.
            RefreshFailedError: If the refresh is rejected or times out.
        """
        stored = self.load_token(alias)
        credentials = self._token_to_credentials(alias, stored.token, client_config)

        # Run refresh in executor (blocking)
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, credentials.refresh, Request()),
                timeout=self.refresh_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RefreshFailedError(
                alias,
                message=f"Token refresh for {alias} timed out after {self.refresh_timeout:g}s",
                original_error=e,
            ) from e
        except google.auth.exceptions.TransportError as e:
            raise RefreshFailedError(
                alias,
                message=f"Network error while refreshing token for {alias}: {e}",
                original_error=e,
            ) from e

        return self.load_token(alias).token

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_status(self, alias: str) -> TokenStatus:
        """Get the status of the stored token for an alias."""
        try:
            stored = self.load_token(alias)
        except TokenNotFoundError:
            return TokenStatus.MISSING
        except StorageFailedError:
            return TokenStatus.INVALID

        if stored.token.is_expired(buffer_seconds=0):
            return TokenStatus.EXPIRED

        return TokenStatus.VALID

    def get_token_info(self, alias: str) -> TokenInfo:
        """Describe the stored token without refreshing it.

        Raises:
            StorageFailedError: If the store cannot be read.
        """
        try:
            stored = self.load_token(alias)
        except TokenNotFoundError:
            return TokenInfo(alias=alias, has_token=False)

        token = stored.token
        return TokenInfo(
            alias=alias,
            has_token=True,
            is_expired=token.is_expired(buffer_seconds=0),
            expiry_time=token.expires_at.isoformat(timespec="seconds") if token.expires_at else "",
            scopes=list(token.scopes),
            token_type=token.token_type,
        )

    def get_granted_scopes(self, alias: str) -> list[str]:
        """Return the scopes recorded when the token was issued.

        Raises:
            TokenNotFoundError: If no token is stored for the alias.
        """
        return list(self.load_token(alias).token.scopes)

    def has_scope(self, alias: str, scope: str) -> bool:
        """Check whether an alias was granted a scope. False when no token exists."""
        try:
            return scope in self.get_granted_scopes(alias)
        except GoogCliError:
            return False
