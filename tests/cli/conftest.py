"""Fixtures for CLI tests.

Commands run against the temporary config from the root conftest, which
selects the file credential store.
"""

import asyncio
from collections.abc import Callable

import pytest

from goog_cli.accounts.models import Account
from goog_cli.accounts.registry import AccountRegistry
from goog_cli.auth.credential_store import FileCredentialStore
from goog_cli.config import Config


@pytest.fixture
def cli_registry(config: Config, fake_flow) -> AccountRegistry:
    """Registry sharing storage with the CLI under test."""
    return AccountRegistry(config, FileCredentialStore(config.tokens_dir), flow=fake_flow)


@pytest.fixture
def add_account(cli_registry: AccountRegistry) -> Callable[..., Account]:
    """Add an account through the scripted flow."""

    def add(alias: str, scopes: list[str] | None = None) -> Account:
        return asyncio.run(cli_registry.add(alias, scopes or []))

    return add
