"""Command line interface entry point."""

from __future__ import annotations

import logging
import sys
from decimal import Decimal

import click

from ledger_e2e_tester.configuration import (
    DEFAULT_CONFIG_FILENAME,
    write_placeholder_configuration,
)
from ledger_e2e_tester.run_execution import (
    RunExecutionError,
    RunOutcome,
    RunRequest,
    execute_regression_suite,
)


class CliError(Exception):
    """Custom CLI error."""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="ledger-e2e-tester")
def cli() -> None:
    """Regression test harness for sharded ledger networks."""


@cli.command(name="generate-config")
@click.option(
    "--output",
    "output_path",
    required=False,
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    type=click.Path(path_type=str),
    help="Path to the YAML configuration template to write",
)
def generate_config(output_path: str) -> None:
    """Generate a placeholder YAML configuration with guidance comments."""
    try:
        resolved_output = write_placeholder_configuration(output_path)
    except (FileExistsError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved_output))


@cli.command(name="run")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(path_type=str),
    help="Path to the YAML configuration file",
)
@click.option(
    "--testcases",
    "testcases_path",
    required=False,
    type=click.Path(path_type=str),
    help="Directory of test case files, overriding framework.testcases_path",
)
@click.option(
    "--test",
    "test_target",
    required=False,
    help="Only run test case files whose relative path starts with this prefix",
)
@click.option(
    "--export-path",
    "export_path",
    required=False,
    type=click.Path(path_type=str),
    help="Directory for the exported results, overriding export.path",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Load everything and print the funding each scenario needs without network access.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def run_tests(  # pylint: disable=too-many-arguments
    config_path: str,
    testcases_path: str | None,
    test_target: str | None,
    export_path: str | None,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Execute the regression suite against the configured network."""
    _configure_logging(verbose)
    try:
        outcome = execute_regression_suite(
            RunRequest(
                config_path=config_path,
                testcases_path=testcases_path,
                test_target=test_target,
                export_path=export_path,
                dry_run=dry_run,
                verbose=verbose,
            )
        )
    except RunExecutionError as exc:
        raise CliError(str(exc)) from exc
    _echo_outcome(outcome)
    if outcome.results.has_failures:
        click.get_current_context().exit(1)


def _echo_outcome(outcome: RunOutcome) -> None:
    if outcome.dry_run:
        click.echo(click.style("Funding requirements (dry run):", bold=True))
        for requirement in outcome.funding_requirements:
            click.echo(
                f"Testcase {requirement.testcase_name} ({requirement.scenario}): "
                f"{requirement.plan.total_required}"
            )
        total = sum(
            (requirement.plan.total_required for requirement in outcome.funding_requirements),
            start=Decimal(0),
        )
        click.echo(f"Total: {total}")
    click.echo(outcome.report)
    for message in outcome.teardown_errors:
        click.echo(click.style(message, fg="red"), err=True)
    if outcome.export_path is not None:
        click.echo(str(outcome.export_path))


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for console_scripts wiring."""
    argv = argv if argv is not None else sys.argv[1:]
    try:
        status = cli.main(args=list(argv), standalone_mode=False)
    except CliError as exc:
        click.echo(str(exc), err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted.", err=True)
        return 1
    return status if isinstance(status, int) else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
