"""Configuration management CLI commands."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml

# Common option for JSON output
json_option = click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON for scripting",
)


def output_result(data: dict[str, Any], as_json: bool = False) -> None:
    """Output result as JSON or YAML.

    Args:
        data: Data to output
        as_json: If True, output as JSON
    """
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), nl=False)


def error_result(message: str, as_json: bool = False, exit_code: int = 1) -> NoReturn:
    """Output error message and exit.

    This function never returns - it either raises ClickException or calls sys.exit.

    Args:
        message: Error message
        as_json: If True, output as JSON
        exit_code: Process exit status
    """
    if as_json:
        click.echo(json.dumps({"error": message}, indent=2), err=True)
        sys.exit(exit_code)
    error = click.ClickException(message)
    error.exit_code = exit_code
    raise error


@click.group()
def config() -> None:
    """Manage WebSSOTest configuration."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Where to write the file (default: ~/.webssotest/config.yaml)",
)
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite an existing configuration file.",
)
@json_option
def config_init(path: Path | None, force: bool, output_json: bool) -> None:
    """Write a commented default configuration file.

    Examples:

        # Create ~/.webssotest/config.yaml
        webssotest config init

        # Overwrite an existing file
        webssotest config init --force
    """
    from webssotest.core.config import DEFAULT_CONFIG_FILE, get_default_config_yaml

    config_path = path or DEFAULT_CONFIG_FILE

    if config_path.exists() and not force:
        if output_json:
            output_result({
                "status": "already_initialized",
                "config_file": str(config_path),
                "message": "Configuration file already exists. Use --force to overwrite.",
            }, as_json=True)
            return
        click.echo(f"Configuration file already exists: {config_path}")
        click.echo("Use --force to overwrite it")
        return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(get_default_config_yaml())

    if output_json:
        output_result({"status": "initialized", "config_file": str(config_path)}, as_json=True)
    else:
        click.echo(f"Configuration written to: {config_path}")


@config.command("show")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Configuration file (default: ~/.webssotest/config.yaml)",
)
@json_option
def config_show(config_file: Path | None, output_json: bool) -> None:
    """Show the effective configuration.

    Values from the configuration file are merged with defaults and
    WEBSSOTEST_* environment variables.
    """
    from webssotest.core.config import load_config

    settings = load_config(config_file)
    data = settings.to_dict()
    data["config_file"] = str(settings.config_path) if settings.config_path else None
    output_result(data, as_json=output_json)
