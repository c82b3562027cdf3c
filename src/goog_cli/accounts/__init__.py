"""Named Google accounts and the registry that persists them."""

from goog_cli.accounts.models import Account, AccountList
from goog_cli.accounts.registry import AccountRegistry, resolve_account

__all__ = ["Account", "AccountList", "AccountRegistry", "resolve_account"]
