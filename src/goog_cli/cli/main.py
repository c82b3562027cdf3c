"""Command-line interface for goog-cli."""

import asyncio
import functools
import json
import logging

import click

from goog_cli.__version__ import __version__
from goog_cli.accounts.models import Account
from goog_cli.accounts.registry import AccountRegistry
from goog_cli.auth.credential_store import open_credential_store
from goog_cli.auth.oauth_flow import GoogleAuthorizationFlow
from goog_cli.auth.scopes import parse_scope_option
from goog_cli.config import CONFIG_KEYS, FORMATS, SECRET_KEYS, Config
from goog_cli.exceptions import GoogCliError

logger = logging.getLogger(__name__)


class CliContext:
    """Per-invocation state shared by all commands."""

    def __init__(self, account: str = "") -> None:
        self.account = account or ""

    def load_config(self) -> Config:
        return Config.load()

    def build_registry(self, config: Config | None = None, with_flow: bool = False) -> AccountRegistry:
        """Wire the registry and its dependencies for this invocation."""
        config = config or self.load_config()
        store = open_credential_store(config.keyring_backend, config.tokens_dir)
        flow = None
        if with_flow:
            flow = GoogleAuthorizationFlow(
                config.oauth_client_config(),
                timeout=config.auth_timeout,
            )
        return AccountRegistry(config, store, flow=flow)


def handle_errors(func):
    """Report GoogCliError as a click error with exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GoogCliError as e:
            logger.debug(f"{type(e).__name__}: {e.message}", exc_info=True)
            raise click.ClickException(e.message) from e

    return wrapper


def _format_account_details(account: Account, registry: AccountRegistry) -> list[str]:
    info = registry.get_token_manager().get_token_info(account.alias)
    lines = [
        f"Alias:       {account.alias}",
        f"Email:       {account.email}",
        f"Default:     {str(account.is_default).lower()}",
        f"Added:       {account.added.isoformat(timespec='seconds')}",
    ]
    if info.has_token:
        lines.append("Token:       Valid")
        if info.expiry_time:
            lines.append(f"Expires:     {info.expiry_time}")
        if info.is_expired:
            lines.append("Status:      EXPIRED (will auto-refresh)")
        else:
            lines.append("Status:      ACTIVE")
    else:
        lines.append("Token:       Not found")
        lines.append("Status:      NOT AUTHENTICATED")

    if account.scopes:
        lines.append("Scopes:")
        lines.extend(f"  - {scope}" for scope in account.scopes)
    return lines


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--account",
    "-a",
    envvar="GOOG_ACCOUNT",
    default="",
    help="Account alias to use (overrides the default account)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, account: str) -> None:
    """goog - work with multiple Google accounts from the command line.

    Add accounts with 'goog account add' or 'goog auth login', then pick
    one per command with --account or make it the default with
    'goog account switch'.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CliContext(account=account)


# ----------------------------------------------------------------------
# account
# ----------------------------------------------------------------------


@main.group()
def account() -> None:
    """Manage Google accounts."""


@account.command("list")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(FORMATS),
    default=None,
    help="Output format (defaults to default_format from config)",
)
@click.pass_obj
@handle_errors
def account_list(obj: CliContext, output_format: str | None) -> None:
    """List configured accounts."""
    config = obj.load_config()
    accounts = obj.build_registry(config).list_accounts()
    output_format = output_format or config.default_format

    if output_format == "json":
        click.echo(json.dumps([a.model_dump(mode="json") for a in accounts], indent=2))
        return

    if not accounts:
        click.echo("No accounts configured.")
        click.echo("Run 'goog auth login' or 'goog account add' to add an account.")
        return

    if output_format == "plain":
        for a in accounts:
            suffix = " (default)" if a.is_default else ""
            click.echo(f"{a.alias}: {a.email}{suffix}")
        return

    alias_width = max(len("ALIAS"), *(len(a.alias) for a in accounts))
    email_width = max(len("EMAIL"), *(len(a.email) for a in accounts))
    click.echo(f"{'ALIAS':<{alias_width}}  {'EMAIL':<{email_width}}  DEFAULT  ADDED")
    for a in accounts:
        marker = "*" if a.is_default else ""
        click.echo(
            f"{a.alias:<{alias_width}}  {a.email:<{email_width}}  {marker:<7}  "
            f"{a.added.strftime('%Y-%m-%d')}"
        )


@account.command("add")
@click.argument("alias", required=False, default="")
@click.option(
    "--scopes",
    "-s",
    multiple=True,
    help="Scopes to request, e.g. gmail,calendar.events (repeatable)",
)
@click.pass_obj
@handle_errors
def account_add(obj: CliContext, alias: str, scopes: tuple[str, ...]) -> None:
    """Authorize a Google account and save it under ALIAS."""
    registry = obj.build_registry(with_flow=True)

    click.echo("Starting OAuth authentication flow...")
    click.echo("Browser will open for Google consent...")
    click.echo("")

    added = asyncio.run(registry.add(alias, parse_scope_option(scopes)))

    click.echo(f"Successfully added account '{added.alias}' ({added.email})")
    if added.is_default:
        click.echo("This account is set as the default.")


@account.command("remove")
@click.argument("alias")
@click.pass_obj
@handle_errors
def account_remove(obj: CliContext, alias: str) -> None:
    """Remove ALIAS and delete its stored credentials."""
    registry = obj.build_registry()
    registry.remove(alias)
    click.echo(f"Successfully removed account '{alias}'")


@account.command("switch")
@click.argument("alias")
@click.pass_obj
@handle_errors
def account_switch(obj: CliContext, alias: str) -> None:
    """Make ALIAS the default account."""
    switched = obj.build_registry().switch(alias)
    suffix = f" ({switched.email})" if switched.email else ""
    click.echo(f"Switched to account '{alias}'{suffix}")


@account.command("show")
@click.pass_obj
@handle_errors
def account_show(obj: CliContext) -> None:
    """Show the active account."""
    registry = obj.build_registry()
    active = registry.show(obj.account)
    for line in _format_account_details(active, registry):
        click.echo(line)


@account.command("rename")
@click.argument("old_alias")
@click.argument("new_alias")
@click.pass_obj
@handle_errors
def account_rename(obj: CliContext, old_alias: str, new_alias: str) -> None:
    """Rename OLD_ALIAS to NEW_ALIAS."""
    obj.build_registry().rename(old_alias, new_alias)
    click.echo(f"Successfully renamed account '{old_alias}' to '{new_alias}'")


# ----------------------------------------------------------------------
# auth
# ----------------------------------------------------------------------


@main.group()
def auth() -> None:
    """Log in, log out and inspect credentials."""


@auth.command("login")
@click.option(
    "--scopes",
    "-s",
    multiple=True,
    help="Scopes to request, e.g. gmail,calendar.events (repeatable)",
)
@click.pass_obj
@handle_errors
def auth_login(obj: CliContext, scopes: tuple[str, ...]) -> None:
    """Log in to a Google account (uses --account as the alias)."""
    registry = obj.build_registry(with_flow=True)

    click.echo("Starting OAuth authentication flow...")
    click.echo("Browser will open for Google consent...")
    click.echo("")

    added = asyncio.run(registry.add(obj.account, parse_scope_option(scopes)))

    click.echo(f"Successfully logged in as {added.email}")
    click.echo(f"Account alias: {added.alias}")
    if added.is_default:
        click.echo("This account is set as the default.")


@auth.command("logout")
@click.pass_obj
@handle_errors
def auth_logout(obj: CliContext) -> None:
    """Log out of the active account and remove it."""
    registry = obj.build_registry()
    active = registry.resolve_account(obj.account)
    registry.remove(active.alias)
    click.echo(f"Successfully logged out from {active.alias} ({active.email})")


@auth.command("status")
@click.pass_obj
@handle_errors
def auth_status(obj: CliContext) -> None:
    """Show authentication status of the active account."""
    registry = obj.build_registry()
    active = registry.resolve_account(obj.account)
    for line in _format_account_details(active, registry):
        click.echo(line)


@auth.command("refresh")
@click.pass_obj
@handle_errors
def auth_refresh(obj: CliContext) -> None:
    """Force a token refresh for the active account."""
    registry = obj.build_registry()
    active = registry.resolve_account(obj.account)

    token = asyncio.run(registry.get_token_manager().refresh_token(active.alias))

    click.echo(f"Successfully refreshed token for {active.alias}")
    if token.expires_at:
        click.echo(f"New expiry: {token.expires_at.isoformat(timespec='seconds')}")


# ----------------------------------------------------------------------
# config
# ----------------------------------------------------------------------


@main.group("config")
def config_group() -> None:
    """View and change configuration."""


def _display_value(key: str, value) -> str:
    if key in SECRET_KEYS and value:
        return "********"
    return str(value)


@config_group.command("show")
@click.pass_obj
@handle_errors
def config_show(obj: CliContext) -> None:
    """Show all configuration values."""
    config = obj.load_config()
    click.echo(f"Config file: {config.path}")
    click.echo("")
    for key in CONFIG_KEYS:
        click.echo(f"{key}: {_display_value(key, config.get_value(key))}")


@config_group.command("path")
@click.pass_obj
@handle_errors
def config_path(obj: CliContext) -> None:
    """Print the config file location."""
    click.echo(obj.load_config().path)


@config_group.command("get")
@click.argument("key")
@click.pass_obj
@handle_errors
def config_get(obj: CliContext, key: str) -> None:
    """Print the value of KEY."""
    click.echo(obj.load_config().get_value(key))


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@handle_errors
def config_set(key: str, value: str) -> None:
    """Set KEY to VALUE in the config file."""
    # Environment overrides must not leak into the file
    config = Config.load(apply_env=False)
    config.set_value(key, value)
    config.save()
    click.echo(f"Set {key} = {_display_value(key, config.get_value(key))}")


if __name__ == "__main__":
    main()
