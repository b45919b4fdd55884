"""Test execution CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from webssotest.cli.config import error_result, json_option

# Process exit statuses
EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIGURATION = 2
EXIT_ENDPOINT = 3

_STATUS_COLORS = {
    "OK": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "magenta",
}


@click.command("run")
@click.argument("suite_name")
@click.option(
    "--target",
    "-t",
    "target_file",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    help="Target configuration file (YAML or JSON)",
)
@click.option(
    "--case",
    "-c",
    "case_names",
    multiple=True,
    help="Run only this test case (repeatable)",
)
@click.option(
    "--insecure",
    is_flag=True,
    help="Do not verify the target's TLS certificates",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Harness configuration file (default: ~/.webssotest/config.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(["ERROR", "INFO", "DEBUG", "TRACE"], case_sensitive=False),
    default=None,
    help="Log level (default: from config or INFO)",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Log full SAML messages and credentials at TRACE level",
)
@json_option
@click.option(
    "--html",
    "html_file",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Also write an HTML report to this file",
)
def run(
    suite_name: str,
    target_file: Path,
    case_names: tuple[str, ...],
    insecure: bool,
    config_file: Path | None,
    log_level: str | None,
    trace: bool,
    output_json: bool,
    html_file: Path | None,
) -> None:
    """Run a test suite against a target.

    Exits with status 1 if any test case ends in ERROR or CRITICAL, 2 on
    configuration problems and 3 if the mock endpoint cannot be started.

    Examples:

        # Run every SAML2Int test case
        webssotest run SAML2Int --target idp.yaml

        # Run two test cases against a target with a self-signed certificate
        webssotest run SAML2Int -t idp.yaml -c metadata_available -c response_by_post --insecure

        # Machine-readable output plus an HTML report
        webssotest run SAML2Int -t idp.yaml --json --html report.html
    """
    from webssotest.core.config import load_config
    from webssotest.core.errors import (
        ConfigurationError,
        EndpointError,
        UnknownSuiteError,
        UnknownTestCaseError,
    )
    from webssotest.core.logging import configure_logging
    from webssotest.core.runner import SuiteRunner
    from webssotest.core.target import load_target_configuration
    from webssotest.suites import default_registry

    settings = load_config(config_file)
    if insecure:
        settings.client.verify_tls = False

    protocol_logger = configure_logging(
        level=log_level or settings.logging.level,
        trace_enabled=trace or settings.logging.trace,
        log_file=settings.logging.log_file,
    )

    try:
        suite = default_registry().create(suite_name)
        target = load_target_configuration(target_file)
        runner = SuiteRunner(suite, target, settings, protocol_logger=protocol_logger)
        results = runner.run(case_names)
    except (ConfigurationError, UnknownSuiteError, UnknownTestCaseError) as e:
        error_result(str(e), output_json, exit_code=EXIT_CONFIGURATION)
    except EndpointError as e:
        error_result(str(e), output_json, exit_code=EXIT_ENDPOINT)

    if output_json:
        click.echo(results.to_json())
    else:
        for result in results.results:
            status = click.style(f"[{result.status}]", fg=_STATUS_COLORS[result.status.value], bold=True)
            click.echo(f"{status} {result.name}: {result.message}")
        counts = results.counts()
        click.echo("")
        click.echo(
            f"{len(results)} test case(s): "
            + ", ".join(f"{count} {status}" for status, count in counts.items())
        )

    if html_file:
        from webssotest.reports import generate_run_report

        html_file.write_text(generate_run_report(results), encoding="utf-8")
        if not output_json:
            click.echo(f"HTML report written to: {html_file}")

    if results.has_failures:
        sys.exit(EXIT_FAILURES)
