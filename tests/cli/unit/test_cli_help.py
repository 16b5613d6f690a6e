"""CLI smoke tests."""

from click.testing import CliRunner
from ledger_e2e_tester.cli import cli


def test_cli_displays_help() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "generate-config" in result.output
    assert "run" in result.output


def test_run_help_lists_dry_run() -> None:
    result = CliRunner().invoke(cli, ["run", "--help"])

    assert result.exit_code == 0
    assert "--dry-run" in result.output
    assert "--export-path" in result.output
