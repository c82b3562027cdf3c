"""Unit tests for account models."""

from datetime import datetime, timezone

import pytest

from goog_cli.accounts.models import Account, AccountList
from goog_cli.exceptions import InvalidAliasError, InvalidEmailError


@pytest.mark.unit
class TestAccount:
    """Tests for Account model."""

    def test_should_create_account_with_defaults(self) -> None:
        """Verify defaults for a new account."""
        account = Account(alias="work", email="me@example.com")

        assert account.is_default is False
        assert account.scopes == []
        assert account.added.tzinfo is not None

    @pytest.mark.parametrize("alias", ["", "   ", "\t"])
    def test_should_reject_blank_alias(self, alias: str) -> None:
        """Verify blank aliases raise InvalidAliasError."""
        with pytest.raises(InvalidAliasError):
            Account(alias=alias)

    def test_should_make_naive_added_utc(self) -> None:
        """Verify naive timestamps are treated as UTC."""
        account = Account(alias="work", added=datetime(2024, 1, 1))

        assert account.added == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_should_deduplicate_scopes(self) -> None:
        """Verify duplicate scopes collapse keeping order."""
        account = Account(alias="work", scopes=["b", "a", "b"])

        assert account.scopes == ["b", "a"]

    @pytest.mark.parametrize("email", ["me@example.com", "first.last+tag@sub.example.org"])
    def test_should_accept_plausible_email(self, email: str) -> None:
        """Verify ordinary addresses pass validation."""
        Account(alias="work", email=email).validate_email()

    @pytest.mark.parametrize(
        "email", ["", "no-at-sign", "two@@example.com", "@example.com", "me@", "me @example.com"]
    )
    def test_should_reject_invalid_email(self, email: str) -> None:
        """Verify malformed addresses raise InvalidEmailError."""
        with pytest.raises(InvalidEmailError):
            Account(alias="work", email=email).validate_email()

    def test_should_manage_scopes(self) -> None:
        """Verify scope helpers."""
        account = Account(alias="work", scopes=["a"])

        account.add_scope("b")
        account.add_scope("a")
        assert account.scopes == ["a", "b"]
        assert account.has_scope("b") is True

        account.remove_scope("a")
        account.remove_scope("missing")
        assert account.scopes == ["b"]
        assert account.missing_scopes(["a", "b", "c"]) == ["a", "c"]


@pytest.mark.unit
class TestAccountList:
    """Tests for AccountList model."""

    def test_should_default_to_empty_version_one(self) -> None:
        """Verify an empty registry document."""
        account_list = AccountList()

        assert account_list.version == 1
        assert account_list.accounts == []
