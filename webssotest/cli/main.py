"""CLI entry point for WebSSOTest."""

import click

from webssotest import __version__
from webssotest.cli import config as config_commands
from webssotest.cli import suites as suites_commands
from webssotest.cli import test as test_commands


@click.group()
@click.version_option(version=__version__, prog_name="webssotest")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """WebSSOTest - SAML2 Web SSO conformance test harness."""
    ctx.ensure_object(dict)


cli.add_command(config_commands.config)
cli.add_command(suites_commands.suites)
cli.add_command(test_commands.run)
