"""Exceptions raised by the account and credential layers.

Every failure in the account registry, token manager, credential store
and authorization flow is reported with one of these classes. The CLI
translates them into a message and a non-zero exit status.
"""


class GoogCliError(Exception):
    """Base exception class for goog-cli errors."""

    def __init__(self, message: str = "goog-cli error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(GoogCliError):
    """Raised when an alias is not registered."""

    def __init__(self, alias: str | None = None, message: str | None = None):
        if message is None:
            message = f"Account not found: {alias}" if alias else "Account not found"
        super().__init__(message)
        self.alias = alias


class TokenNotFoundError(NotFoundError):
    """Raised when no secret is stored for an alias that should have one."""

    def __init__(self, alias: str | None = None):
        message = f"Token not found for account: {alias}" if alias else "Token not found"
        super().__init__(alias, message)


class AlreadyExistsError(GoogCliError):
    """Raised when a rename target collides with an existing alias."""

    def __init__(self, alias: str):
        super().__init__(f"Account already exists: {alias}")
        self.alias = alias


class InvalidAliasError(GoogCliError):
    """Raised when an alias is blank."""

    def __init__(self, alias: str = ""):
        super().__init__(f"Invalid alias {alias!r}: alias cannot be empty")
        self.alias = alias


class AuthorizationFailedError(GoogCliError):
    """Raised when the interactive consent flow is denied, aborted or times out."""

    def __init__(self, message: str = "Authorization failed", original_error=None):
        super().__init__(message)
        self.original_error = original_error


class RefreshFailedError(GoogCliError):
    """Raised when a refresh token is missing, revoked or expired."""

    def __init__(
        self,
        alias: str | None = None,
        message: str | None = None,
        original_error=None,
    ):
        if message is None:
            message = f"Failed to refresh token for account: {alias}"
        if alias:
            message = f"{message}. Run 'goog auth login --account {alias}' to re-authorize."
        super().__init__(message)
        self.alias = alias
        self.original_error = original_error


class StorageFailedError(GoogCliError):
    """Raised when the credential store or registry file cannot be read or written.

    When persistence fails right after a successful authorization, the
    freshly issued token is attached as ``token`` so it is not lost.
    """

    def __init__(self, message: str = "Storage error", original_error=None, token=None):
        super().__init__(message)
        self.original_error = original_error
        self.token = token


class NoAccountFoundError(GoogCliError):
    """Raised when account resolution cannot pick an account."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "No account found. Run 'goog auth login' or 'goog account add' to add one, "
            "or 'goog account switch <alias>' to choose a default."
        )


class ConfigError(GoogCliError):
    """Raised for invalid configuration keys or values."""


class InvalidEmailError(GoogCliError):
    """Raised when an account email is not a plausible address."""

    def __init__(self, email: str = ""):
        super().__init__(f"Invalid email {email!r}: must be a valid email address")
        self.email = email
