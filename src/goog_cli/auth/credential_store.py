"""Secret storage for per-account OAuth tokens.

Secrets are opaque bytes keyed by ``(SERVICE_NAME, alias)``. The primary
backend is the operating system keyring (macOS Keychain, Secret Service,
Windows Credential Locker) through the ``keyring`` package. When no usable
keyring backend exists, a per-alias JSON file store is used instead.

File Store Layout:
    <config dir>/tokens/<alias>.json   (directory 0700, files 0600)

Each alias lives in its own file, so two processes writing different
aliases never touch the same file.
"""

import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import keyring
import keyring.errors
from keyring.backends import fail

from goog_cli.exceptions import StorageFailedError, TokenNotFoundError
from goog_cli.utils.files import atomic_write_text, ensure_private_dir

logger = logging.getLogger(__name__)

# Keyring service identifier shared by every account entry
SERVICE_NAME = "goog-cli"

BACKEND_AUTO = "auto"
BACKEND_KEYRING = "keyring"
BACKEND_FILE = "file"
BACKENDS = (BACKEND_AUTO, BACKEND_KEYRING, BACKEND_FILE)


class CredentialStore(Protocol):
    """Key/value secret storage keyed by account alias."""

    def get(self, alias: str) -> bytes:
        """Return the secret for ``alias``; raise TokenNotFoundError if absent."""
        ...

    def set(self, alias: str, secret: bytes) -> None:
        """Create or overwrite the secret for ``alias``."""
        ...

    def delete(self, alias: str) -> None:
        """Remove the secret for ``alias``. Deleting an absent secret is a no-op."""
        ...


class KeyringCredentialStore:
    """Credential store backed by the system keyring.

    Attributes:
        service_name: Keyring service under which all aliases are stored.
    """

    def __init__(self, service_name: str = SERVICE_NAME) -> None:
        self.service_name = service_name

    def get(self, alias: str) -> bytes:
        try:
            value = keyring.get_password(self.service_name, alias)
        except keyring.errors.KeyringError as e:
            raise StorageFailedError(f"Error reading keyring entry for {alias}: {e}", e) from e

        if value is None:
            raise TokenNotFoundError(alias)

        logger.debug(f"Read keyring entry for {alias}")
        return value.encode("utf-8")

    def set(self, alias: str, secret: bytes) -> None:
        try:
            keyring.set_password(self.service_name, alias, secret.decode("utf-8"))
        except keyring.errors.KeyringError as e:
            raise StorageFailedError(f"Error writing keyring entry for {alias}: {e}", e) from e
        logger.debug(f"Stored keyring entry for {alias}")

    def delete(self, alias: str) -> None:
        try:
            keyring.delete_password(self.service_name, alias)
        except keyring.errors.PasswordDeleteError:
            # Entry did not exist
            return
        except keyring.errors.KeyringError as e:
            raise StorageFailedError(f"Error deleting keyring entry for {alias}: {e}", e) from e
        logger.debug(f"Deleted keyring entry for {alias}")


class FileCredentialStore:
    """Credential store keeping one JSON file per alias.

    Used when the system keyring is unavailable. Files are written with
    owner-only permissions but are not encrypted.

    Attributes:
        tokens_dir: Directory holding one file per alias.

    Example:
        ```python
        store = FileCredentialStore(Path("~/.config/goog/tokens").expanduser())
        store.set("work", b'{"version": 1, ...}')
        secret = store.get("work")
        store.delete("work")
        ```
    """

    def __init__(self, tokens_dir: Path) -> None:
        """Initialize the file store.

        Args:
            tokens_dir: Directory for the per-alias files. Created with
                0700 permissions if missing.
        """
        self.tokens_dir = tokens_dir
        self._ensure_tokens_dir()

    def _ensure_tokens_dir(self) -> None:
        try:
            ensure_private_dir(self.tokens_dir)
        except OSError as e:
            raise StorageFailedError(
                f"Error creating token directory {self.tokens_dir}: {e}", e
            ) from e

    def path_for(self, alias: str) -> Path:
        """Return the file holding the secret for ``alias``."""
        return self.tokens_dir / f"{quote(alias, safe='')}.json"

    def get(self, alias: str) -> bytes:
        path = self.path_for(alias)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise TokenNotFoundError(alias) from None
        except OSError as e:
            raise StorageFailedError(f"Error reading token file {path}: {e}", e) from e

        logger.debug(f"Read token file for {alias}")
        return data

    def set(self, alias: str, secret: bytes) -> None:
        path = self.path_for(alias)
        try:
            atomic_write_text(path, secret.decode("utf-8"))
        except OSError as e:
            raise StorageFailedError(f"Error writing token file {path}: {e}", e) from e
        logger.debug(f"Stored token file for {alias}")

    def delete(self, alias: str) -> None:
        path = self.path_for(alias)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageFailedError(f"Error deleting token file {path}: {e}", e) from e
        logger.debug(f"Deleted token file for {alias}")


def keyring_available() -> bool:
    """Check whether a real keyring backend is configured."""
    return not isinstance(keyring.get_keyring(), fail.Keyring)


def open_credential_store(backend: str, tokens_dir: Path) -> CredentialStore:
    """Create the credential store selected by configuration.

    Args:
        backend: ``keyring``, ``file`` or ``auto``. ``auto`` prefers the
            system keyring and falls back to files when none is usable.
        tokens_dir: Directory used by the file store.

    Returns:
        A credential store instance.
    """
    if backend == BACKEND_FILE:
        return FileCredentialStore(tokens_dir)

    if backend == BACKEND_KEYRING:
        return KeyringCredentialStore()

    if keyring_available():
        return KeyringCredentialStore()

    logger.warning(f"No system keyring available, storing tokens in {tokens_dir}")
    return FileCredentialStore(tokens_dir)
