"""Durable registry of named Google accounts.

The registry is a small JSON document listing every account. Each ``goog``
invocation is a separate process, so nothing is cached: every operation
reads the file first and, when it changes something, atomically replaces
it before returning.

Registry File Format:
    ```json
    {
      "version": 1,
      "accounts": [
        {
          "alias": "work",
          "email": "me@example.com",
          "is_default": true,
          "added": "2024-01-01T00:00:00Z",
          "scopes": ["https://www.googleapis.com/auth/gmail.readonly", "..."]
        }
      ]
    }
    ```

Invariants:
    - Exactly one account is the default while the registry is non-empty.
    - An account has a stored token, and a stored token has an account.
"""

import logging
from pathlib import Path

from pydantic import ValidationError

from goog_cli.accounts.models import Account, AccountList
from goog_cli.auth.credential_store import CredentialStore
from goog_cli.auth.oauth_flow import AuthorizationFlow
from goog_cli.auth.scopes import normalize_scopes
from goog_cli.auth.token_manager import TokenManager
from goog_cli.exceptions import (
    AlreadyExistsError,
    AuthorizationFailedError,
    InvalidAliasError,
    InvalidEmailError,
    NoAccountFoundError,
    NotFoundError,
    StorageFailedError,
    TokenNotFoundError,
)
from goog_cli.utils.files import atomic_write_text

logger = logging.getLogger(__name__)

DEFAULT_ALIAS = "default"


def resolve_account(
    accounts: list[Account],
    override_alias: str = "",
    config_default: str = "",
) -> Account:
    """Pick the account a command should run as.

    First match wins:

    1. ``override_alias`` (from ``--account`` or ``GOOG_ACCOUNT``). An
       unknown override is an error, never a fallback.
    2. The account flagged as default.
    3. ``config_default`` from the config file, if it names an account.
    4. The only account, when there is exactly one.

    Raises:
        NotFoundError: If ``override_alias`` is not registered.
        NoAccountFoundError: If no rule matches.
    """
    by_alias = {account.alias: account for account in accounts}

    if override_alias:
        if override_alias not in by_alias:
            raise NotFoundError(override_alias)
        return by_alias[override_alias]

    for account in accounts:
        if account.is_default:
            return account

    if config_default and config_default in by_alias:
        return by_alias[config_default]

    if len(accounts) == 1:
        return accounts[0]

    raise NoAccountFoundError()


class AccountRegistry:
    """Account lifecycle: add, remove, switch, rename, list and resolve.

    Attributes:
        config: Loaded configuration (registry path, default hint).
        store: Credential store holding the per-account tokens.
        flow: Authorization flow used by ``add``. Optional for commands
            that never authorize.
        token_manager: Token manager sharing ``store``.

    Example:
        ```python
        registry = AccountRegistry(config, store, flow=GoogleAuthorizationFlow(client))

        account = await registry.add("work", ["gmail", "calendar"])
        registry.switch("work")
        active = registry.resolve_account()
        credentials = registry.get_token_manager().get_token_source(active.alias)
        ```
    """

    def __init__(
        self,
        config,
        store: CredentialStore,
        flow: AuthorizationFlow | None = None,
        token_manager: TokenManager | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.flow = flow
        self.token_manager = token_manager or TokenManager(
            store,
            config.oauth_client_config(),
            refresh_timeout=config.refresh_timeout,
        )

    @property
    def path(self) -> Path:
        return self.config.accounts_path

    # ------------------------------------------------------------------
    # Registry file
    # ------------------------------------------------------------------

    def _load(self) -> AccountList:
        path = self.path
        if not path.exists():
            return AccountList()

        try:
            data = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageFailedError(f"Error reading account registry {path}: {e}", e) from e

        if not data.strip():
            return AccountList()

        try:
            return AccountList.model_validate_json(data)
        except (ValidationError, InvalidAliasError) as e:
            raise StorageFailedError(f"Account registry {path} is corrupted: {e}", e) from e

    def _save(self, account_list: AccountList) -> None:
        path = self.path
        try:
            atomic_write_text(path, account_list.model_dump_json(indent=2))
        except OSError as e:
            raise StorageFailedError(f"Error writing account registry {path}: {e}", e) from e
        logger.debug(f"Wrote {len(account_list.accounts)} accounts to {path}")

    @staticmethod
    def _find(account_list: AccountList, alias: str) -> Account | None:
        for account in account_list.accounts:
            if account.alias == alias:
                return account
        return None

    def _discard_token(self, alias: str) -> None:
        """Delete a token whose registry row could not be written."""
        try:
            self.token_manager.delete_token(alias)
        except StorageFailedError as e:
            logger.warning(f"Could not discard token for {alias}: {e.message}")

    def _require(self, account_list: AccountList, alias: str) -> Account:
        account = self._find(account_list, alias)
        if account is None:
            raise NotFoundError(alias)
        return account

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def list_accounts(self) -> list[Account]:
        """Return all accounts sorted by alias.

        Raises:
            StorageFailedError: If the registry file is unreadable or corrupt.
        """
        return sorted(self._load().accounts, key=lambda account: account.alias)

    async def add(self, alias: str = "", scopes: list[str] | None = None) -> Account:
        """Authorize an account and register it under ``alias``.

        Adding an alias that already exists re-authorizes it: the token and
        scopes are replaced, ``added`` and ``is_default`` are kept. The first
        account added becomes the default.

        Args:
            alias: Account alias. Empty selects ``"default"``.
            scopes: Scope shorthands or URLs. Empty selects the default set.

        Returns:
            The stored account.

        Raises:
            InvalidAliasError: If ``alias`` is whitespace only.
            AuthorizationFailedError: If authorization fails or no flow is
                configured. Nothing is persisted.
            StorageFailedError: If saving fails after authorization. The
                issued token is attached as ``token``.
        """
        if alias == "":
            alias = DEFAULT_ALIAS
        elif not alias.strip():
            raise InvalidAliasError(alias)
        alias = alias.strip()

        if self.flow is None:
            raise AuthorizationFailedError("No authorization flow configured")

        requested = normalize_scopes(scopes)
        logger.info(f"Authorizing account {alias}")
        token, email = await self.flow.authorize(requested)

        try:
            Account(alias=alias, email=email).validate_email()
        except InvalidEmailError as e:
            raise AuthorizationFailedError(
                f"Authorization returned an invalid email: {email!r}", e
            ) from e

        granted = list(token.scopes) or requested

        try:
            # Re-read: the registry may have changed while the browser was open
            account_list = self._load()
            account = self._find(account_list, alias)
            is_new = account is None
            self.token_manager.save_token(alias, token)

            if is_new:
                account = Account(
                    alias=alias,
                    email=email,
                    is_default=not account_list.accounts,
                    scopes=granted,
                )
                account_list.accounts.append(account)
            else:
                account.email = email
                account.scopes = list(dict.fromkeys(granted))

            try:
                self._save(account_list)
            except StorageFailedError:
                if is_new:
                    self._discard_token(alias)
                raise
        except StorageFailedError as e:
            raise StorageFailedError(
                f"Authorized {email} but failed to save account {alias}: {e.message}",
                e.original_error or e,
                token=token,
            ) from e

        logger.info(f"Added account {alias} ({email})")
        return account

    def remove(self, alias: str) -> None:
        """Delete an account and its stored token.

        If the removed account was the default, the remaining account added
        earliest becomes the default.

        Raises:
            NotFoundError: If ``alias`` is not registered.
        """
        account_list = self._load()
        account = self._require(account_list, alias)

        account_list.accounts = [a for a in account_list.accounts if a.alias != alias]
        if account.is_default and account_list.accounts:
            successor = min(account_list.accounts, key=lambda a: (a.added, a.alias))
            successor.is_default = True
            logger.info(f"Default account is now {successor.alias}")

        self._save(account_list)
        self.token_manager.delete_token(alias)
        logger.info(f"Removed account {alias}")

    def switch(self, alias: str) -> Account:
        """Make ``alias`` the default account.

        Raises:
            NotFoundError: If ``alias`` is not registered.
        """
        account_list = self._load()
        target = self._require(account_list, alias)

        for account in account_list.accounts:
            account.is_default = account is target

        self._save(account_list)
        logger.info(f"Switched default account to {alias}")
        return target

    def rename(self, old_alias: str, new_alias: str) -> Account:
        """Rename an account, moving its stored token to the new alias.

        The token bytes are copied unchanged to the new key before the old
        key is deleted. An account without a stored token is still renamed.

        Raises:
            InvalidAliasError: If ``new_alias`` is blank.
            NotFoundError: If ``old_alias`` is not registered.
            AlreadyExistsError: If ``new_alias`` is already registered.
        """
        if not new_alias.strip():
            raise InvalidAliasError(new_alias)
        new_alias = new_alias.strip()

        account_list = self._load()
        account = self._require(account_list, old_alias)
        if self._find(account_list, new_alias) is not None:
            raise AlreadyExistsError(new_alias)

        try:
            self.token_manager.copy_token(old_alias, new_alias)
            copied = True
        except TokenNotFoundError:
            logger.warning(f"No stored token for {old_alias}, renaming account only")
            copied = False

        account.alias = new_alias
        try:
            self._save(account_list)
        except StorageFailedError:
            if copied:
                self._discard_token(new_alias)
            raise

        if copied:
            try:
                self.token_manager.delete_token(old_alias)
            except StorageFailedError as e:
                logger.warning(f"Could not delete old token for {old_alias}: {e.message}")

        logger.info(f"Renamed account {old_alias} to {new_alias}")
        return account

    def resolve_account(self, override_alias: str = "") -> Account:
        """Resolve the active account for this invocation.

        See ``resolve_account`` for the precedence rules.
        """
        return resolve_account(
            self.list_accounts(),
            override_alias=override_alias,
            config_default=self.config.default_account,
        )

    def show(self, override_alias: str = "") -> Account:
        return self.resolve_account(override_alias)

    def get_token_manager(self) -> TokenManager:
        return self.token_manager
