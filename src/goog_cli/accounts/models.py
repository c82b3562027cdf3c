"""Account models persisted in the registry file."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from goog_cli.exceptions import InvalidAliasError, InvalidEmailError

REGISTRY_VERSION = 1


class Account(BaseModel):
    """A Google account known to the CLI under a user-chosen alias.

    Attributes:
        alias: Unique name used to select the account.
        email: Address reported by Google at authorization time.
        is_default: Whether this is the account used when none is named.
        added: When the account was first added (UTC). Never changes.
        scopes: Granted scopes, ordered and duplicate-free.
    """

    alias: str
    email: str = ""
    is_default: bool = False
    added: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    scopes: list[str] = Field(default_factory=list)

    @field_validator("alias")
    @classmethod
    def _check_alias(cls, value: str) -> str:
        if not value.strip():
            raise InvalidAliasError(value)
        return value

    @field_validator("added")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("scopes")
    @classmethod
    def _dedupe_scopes(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    def validate_email(self) -> None:
        """Check that ``email`` looks like an address.

        Raises:
            InvalidEmailError: If the address is empty, contains spaces or
                does not have exactly one ``@`` between non-empty parts.
        """
        email = self.email
        if not email or " " in email:
            raise InvalidEmailError(email)

        parts = email.split("@")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise InvalidEmailError(email)

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes

    def add_scope(self, scope: str) -> None:
        if not self.has_scope(scope):
            self.scopes.append(scope)

    def remove_scope(self, scope: str) -> None:
        if self.has_scope(scope):
            self.scopes.remove(scope)

    def missing_scopes(self, required: list[str]) -> list[str]:
        """Return the scopes in ``required`` this account was not granted."""
        return [scope for scope in required if not self.has_scope(scope)]


class AccountList(BaseModel):
    """On-disk registry document."""

    version: int = REGISTRY_VERSION
    accounts: list[Account] = Field(default_factory=list)
