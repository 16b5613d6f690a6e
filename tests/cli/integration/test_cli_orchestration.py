"""CLI orchestration integration tests."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner
from ledger_e2e_tester.cli import cli, main
from ledger_e2e_tester.run_execution import RunCollaborators, suite_run_use_case
from ledger_fakes import FUNDING_ADDRESS, FakeLedger, write_suite


@pytest.fixture
def ledger(monkeypatch: pytest.MonkeyPatch) -> FakeLedger:
    fake = FakeLedger()
    for shard in (0, 1):
        fake.credit(FUNDING_ADDRESS, shard, Decimal(1000000))

    def build(_configuration, _network_context) -> RunCollaborators:
        return RunCollaborators(keyring=fake, submitter=fake, state_query=fake)

    monkeypatch.setattr(suite_run_use_case, "build_collaborators", build)
    return fake


def test_generate_config_command_writes_yaml(tmp_path: Path) -> None:
    output_path = tmp_path / "generated.yaml"

    result = CliRunner().invoke(cli, ["generate-config", "--output", str(output_path)])

    assert result.exit_code == 0
    assert str(output_path.resolve()) in result.output
    parsed = yaml.safe_load(output_path.read_text(encoding="utf-8"))
    assert {"network", "funding"} <= set(parsed)


def test_dry_run_prints_funding_requirements(tmp_path: Path, capsys) -> None:
    config_path = write_suite(tmp_path)

    exit_code = main(["run", "--config", str(config_path), "--dry-run"])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "Funding requirements (dry run):" in output
    assert "Testcase Create validator (staking/validator/create/standard): 10002" in output
    assert "Total: 10004" in output
    assert not (tmp_path / "export").exists()


def test_run_executes_suite_and_exports(tmp_path: Path, ledger: FakeLedger, capsys) -> None:
    config_path = write_suite(tmp_path)

    exit_code = main(["run", "--config", str(config_path)])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "Testcase Create validator: success" in output
    assert "Testcase Cross shard transfer: success" in output
    exports = list((tmp_path / "export").glob("results-*.csv"))
    assert len(exports) == 1
    assert str(exports[0]) in output
    assert ledger.removed


def test_run_exits_with_failure_when_a_case_fails(
    tmp_path: Path, ledger: FakeLedger, capsys
) -> None:
    config_path = write_suite(tmp_path)
    (tmp_path / "testcases" / "transactions" / "standard.yaml").write_text(
        "name: Overdrawn transfer\nscenario: transactions/standard\n"
        "parameters:\n  amount: 1\n  gas:\n    limit: 21000\n    price: 1e20\n",
        encoding="utf-8",
    )

    exit_code = main(["run", "--config", str(config_path), "--test", "transactions"])
    output = capsys.readouterr().out

    assert exit_code == 1
    assert "Testcase Overdrawn transfer: failed" in output
    assert "Create validator" not in output
