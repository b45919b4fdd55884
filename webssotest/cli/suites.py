"""Test suite CLI commands."""

from __future__ import annotations

from pathlib import Path

import click

from webssotest.cli.config import error_result, json_option, output_result


@click.group()
def suites() -> None:
    """Inspect the available test suites."""
    pass


@suites.command("list")
@json_option
def suites_list(output_json: bool) -> None:
    """List the available test suites."""
    from webssotest.suites import default_registry

    registry = default_registry()
    available = [registry.create(name) for name in registry.names()]

    if output_json:
        output_result({
            "suites": [
                {"name": suite.name, "description": suite.description, "test_cases": len(suite.test_cases)}
                for suite in available
            ],
        }, as_json=True)
        return

    for suite in available:
        click.echo(f"{suite.name}: {suite.description} ({len(suite.test_cases)} test cases)")


@suites.command("cases")
@click.argument("suite_name")
@json_option
def suites_cases(suite_name: str, output_json: bool) -> None:
    """List the test cases of a suite."""
    from webssotest.core.errors import UnknownSuiteError
    from webssotest.suites import default_registry

    try:
        suite = default_registry().create(suite_name)
    except UnknownSuiteError as e:
        error_result(str(e), output_json, exit_code=2)

    if output_json:
        output_result({
            "suite": suite.name,
            "test_cases": [
                {"name": case.name, "kind": case.kind.value, "description": case.description}
                for case in suite.test_cases
            ],
        }, as_json=True)
        return

    click.echo(f"Test cases in {suite.name}:")
    for case in suite.test_cases:
        click.echo(f"  {case.name} [{case.kind}]")
        click.echo(f"      {case.description}")


@suites.command("metadata")
@click.argument("suite_name")
@click.option(
    "--cert",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Signing certificate (PEM) to publish; a self-signed one is generated otherwise",
)
def suites_metadata(suite_name: str, cert: Path | None) -> None:
    """Print the mock entity's metadata for a suite.

    Register this metadata with the target so that it sends its messages to
    the capture endpoint.

    Examples:

        webssotest suites metadata SAML2Int > mock-sp.xml

        webssotest suites metadata SAML2Int --cert signing.pem
    """
    from urllib.parse import urlsplit

    from webssotest.core.crypto import CertificateError, SigningCredential
    from webssotest.core.errors import UnknownSuiteError
    from webssotest.suites import default_registry

    try:
        suite = default_registry().create(suite_name)
    except UnknownSuiteError as e:
        error_result(str(e), exit_code=2)

    if cert:
        try:
            credential = SigningCredential.from_pem(cert)
        except CertificateError as e:
            error_result(str(e), exit_code=2)
        summary = credential.summary()
        if summary.expired:
            click.echo(f"Warning: certificate {summary.subject} expired on {summary.not_after:%Y-%m-%d}", err=True)
    else:
        credential = SigningCredential.self_signed(urlsplit(suite.mock_endpoint_url).hostname or "localhost")

    click.echo(suite.mock_metadata(credential.certificate_b64))
