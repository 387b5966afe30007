"""Administrative command-line interface."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import uvicorn
from safir.asyncio import run_with_asyncio
from safir.click import display_help

from .config import Config
from .dependencies.config import config_dependency
from .exceptions import AuthenticationError, ConfigurationError, DirectoryError
from .factory import Factory
from .main import create_openapi

__all__ = [
    "check_config",
    "check_ldap",
    "help",
    "login",
    "main",
    "openapi_schema",
    "run",
]

_config_path_option = click.option(
    "--config-path",
    envvar="PORTHOR_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)


def _load_config(config_path: Path | None) -> Config:
    """Load the configuration, reporting errors as command failures."""
    try:
        if config_path:
            config_dependency.set_config_path(config_path)
        return config_dependency.config()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Administrative command-line interface for Porthor."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@_config_path_option
def check_config(*, config_path: Path | None) -> None:
    """Check that the configuration file is valid."""
    config = _load_config(config_path)
    click.echo(f"Configuration is valid (LDAP server {config.ldap.url})")


@main.command()
@_config_path_option
@run_with_asyncio
async def check_ldap(*, config_path: Path | None) -> None:
    """Check that Porthor can bind to LDAP as its administrative identity."""
    config = _load_config(config_path)
    health_check_service = Factory(config).create_health_check_service()
    try:
        await health_check_service.check()
    except DirectoryError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Bound to {config.ldap.url} as {config.ldap.bind_dn}")


@main.command()
@click.argument("username")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    help="Password of the user (prompted for if not given).",
)
@_config_path_option
@run_with_asyncio
async def login(
    *, username: str, password: str, config_path: Path | None
) -> None:
    """Log in as a user and show the resulting role and groups.

    Unlike the HTTP route, the reason for a failure is shown.
    """
    config = _load_config(config_path)
    login_service = Factory(config).create_login_service()
    try:
        result = await login_service.login(username, password)
    except AuthenticationError as e:
        msg = f"Authentication failed: {e!s}"
        if e.__cause__:
            msg += f" ({e.__cause__!s})"
        raise click.ClickException(msg) from e
    except DirectoryError as e:
        raise click.ClickException(f"Cannot retrieve groups: {e!s}") from e
    click.echo(result.role.message)
    click.echo(f"DN: {result.identity.dn}")
    click.echo("Groups: " + ", ".join(result.groups))


@main.command()
@click.option(
    "--add-back-link",
    default=False,
    is_flag=True,
    help="Add back link (used when generating application documentation).",
)
@click.option(
    "--output",
    default=None,
    type=click.Path(path_type=Path),
    help="Output path (output to stdout if not given).",
)
def openapi_schema(*, add_back_link: bool, output: Path | None) -> None:
    """Generate the OpenAPI schema."""
    schema = create_openapi(add_back_link=add_back_link)
    if output:
        output.parent.mkdir(exist_ok=True)
        output.write_text(schema)
    else:
        sys.stdout.write(schema)


@main.command()
@click.option(
    "--port", default=8080, type=int, help="Port to run the application on."
)
def run(*, port: int) -> None:
    """Run the application (for testing only)."""
    uvicorn.run(
        "porthor.main:create_app",
        factory=True,
        port=port,
        reload=True,
        reload_dirs=["src"],
    )
