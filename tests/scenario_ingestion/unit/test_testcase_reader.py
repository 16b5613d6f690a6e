"""Test case reader tests."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from ledger_e2e_tester.network_context import Dialect
from ledger_e2e_tester.scenario_ingestion import (
    ScenarioKind,
    StakingParameters,
    TestCaseValidationError,
    TransferParameters,
    load_testcases,
    read_testcase_file,
)
from ledger_fakes import make_configuration


def _write_testcase(path: Path, contents: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")
    return path


def test_reads_transfer_testcase_with_network_defaults(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(
        tmp_path / "transfer.yaml",
        """
name: Cross shard transfer
scenario: transactions.standard
parameters:
  amount: 1.5
  from_shard: 0
  to_shard: 1
""",
    )

    testcase = read_testcase_file(path, network)

    assert testcase.name == "Cross shard transfer"
    assert testcase.kind == ScenarioKind.TRANSFER_STANDARD
    assert testcase.execute is True
    assert testcase.expected is True
    assert isinstance(testcase.parameters, TransferParameters)
    assert testcase.parameters.amount == Decimal("1.5")
    assert testcase.parameters.to_shard == 1
    assert testcase.parameters.receiver_count == 1
    assert testcase.parameters.sender_count == 1
    assert testcase.parameters.dialect == Dialect.NATIVE
    assert testcase.parameters.gas == network.gas
    assert testcase.parameters.timeout_seconds == network.timeout_seconds
    assert testcase.parameters.retry is None


def test_reads_eth_transfer_and_ignores_negative_nonce(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(
        tmp_path / "eth.yaml",
        """
name: Eth transfer
scenario: transactions/multiple_receivers
expected: false
parameters:
  amount: "2"
  receivers: 3
  rpc_prefix: ETH
  nonce: -1
  retry:
    attempts: 2
    wait: 0
""",
    )

    testcase = read_testcase_file(path, network)

    assert testcase.expected is False
    assert isinstance(testcase.parameters, TransferParameters)
    assert testcase.parameters.to_shard == 0
    assert testcase.parameters.receiver_count == 3
    assert testcase.parameters.dialect == Dialect.ETH
    assert testcase.parameters.nonce is None
    assert testcase.parameters.retry is not None
    assert testcase.parameters.retry.attempts == 2


def test_reads_multiple_senders_testcase(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(
        tmp_path / "senders.yaml",
        """
name: Many senders
scenario: transactions/multiple_senders
parameters:
  amount: 1
  senders: 4
""",
    )

    testcase = read_testcase_file(path, network)

    assert testcase.kind == ScenarioKind.TRANSFER_MULTIPLE_SENDERS
    assert isinstance(testcase.parameters, TransferParameters)
    assert testcase.parameters.sender_count == 4
    assert testcase.parameters.receiver_count == 1


def test_reads_staking_testcase_with_defaults(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(
        tmp_path / "redelegate.yaml",
        """
name: Redelegate locked tokens
scenario: staking.delegation.redelegate.locked_tokens
parameters:
  delegation_amount: 500
  edit:
    repeat: 2
    changes:
      website: "https://example.com"
      commission_rate: "0.15"
""",
    )

    testcase = read_testcase_file(path, network)

    assert testcase.kind == ScenarioKind.REDELEGATE_NEXT_EPOCH
    parameters = testcase.parameters
    assert isinstance(parameters, StakingParameters)
    assert parameters.shard == 0
    assert parameters.delegation_amount == Decimal("500")
    assert parameters.undelegation_amount == Decimal("500")
    assert parameters.initial_delegation_amount == Decimal("2000")
    assert parameters.validator.amount == Decimal("10000")
    assert parameters.validator.min_self_delegation == Decimal("10000")
    assert parameters.validator.name == "Redelegate locked tokens"
    assert parameters.edit.repeat == 2
    assert parameters.edit.changes == {
        "website": "https://example.com",
        "commission_rate": Decimal("0.15"),
    }
    assert parameters.gas == network.staking_gas
    assert parameters.reuse_existing_validator is False


def test_unknown_scenario_is_kept_without_parameters(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(
        tmp_path / "unknown.yaml",
        """
name: Not a scenario
scenario: staking/validator/delete
parameters:
  amount: "not checked"
""",
    )

    testcase = read_testcase_file(path, network)

    assert testcase.kind is None
    assert testcase.parameters is None


@pytest.mark.parametrize(
    ("parameters", "message"),
    (
        ("amount: 0", "amount"),
        ("amount: 1\n  from_shard: -1", "from_shard"),
        ("amount: 1\n  receivers: 0", "receivers"),
        ("amount: 1\n  senders: -2", "senders"),
        ("amount: 1\n  rpc_prefix: web3", "rpc_prefix"),
        ("amount: abc", "amount"),
    ),
)
def test_invalid_transfer_parameters_raise(tmp_path: Path, parameters: str, message: str) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(
        tmp_path / "invalid.yaml",
        f"""
name: Invalid
scenario: transactions/standard
parameters:
  {parameters}
""",
    )

    with pytest.raises(TestCaseValidationError, match=message):
        read_testcase_file(path, network)


def test_uneditable_validator_field_raises(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(
        tmp_path / "edit.yaml",
        """
name: Edit
scenario: staking/validator/edit/standard
parameters:
  edit:
    changes:
      max_change_rate: "0.2"
""",
    )

    with pytest.raises(TestCaseValidationError, match="max_change_rate"):
        read_testcase_file(path, network)


def test_missing_name_raises(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    path = _write_testcase(tmp_path / "nameless.yaml", "scenario: transactions/standard\n")

    with pytest.raises(TestCaseValidationError, match="name is required"):
        read_testcase_file(path, network)


def test_load_testcases_walks_directory_in_sorted_order(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    root = tmp_path / "testcases"
    _write_testcase(
        root / "transactions" / "b.yaml",
        "name: B\nscenario: transactions/standard\nparameters:\n  amount: 1\n",
    )
    _write_testcase(
        root / "transactions" / "a.yml",
        "name: A\nscenario: transactions/standard\nparameters:\n  amount: 1\n",
    )
    _write_testcase(
        root / "staking" / "c.yaml",
        "name: C\nscenario: staking/validator/create/standard\n",
    )
    (root / "notes.txt").write_text("ignored", encoding="utf-8")

    result = load_testcases(root, network)

    assert [testcase.name for testcase in result.testcases] == ["C", "A", "B"]


def test_load_testcases_filters_by_target_prefix(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    root = tmp_path / "testcases"
    _write_testcase(
        root / "transactions" / "a.yaml",
        "name: A\nscenario: transactions/standard\nparameters:\n  amount: 1\n",
    )
    _write_testcase(
        root / "staking" / "c.yaml",
        "name: C\nscenario: staking/validator/create/standard\n",
    )

    result = load_testcases(root, network, target="/staking")

    assert [testcase.name for testcase in result.testcases] == ["C"]


def test_load_testcases_rejects_duplicate_names(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network
    root = tmp_path / "testcases"
    contents = "name: Same\nscenario: staking/validator/create/standard\n"
    _write_testcase(root / "one.yaml", contents)
    _write_testcase(root / "two.yaml", contents)

    with pytest.raises(TestCaseValidationError, match="Duplicate"):
        load_testcases(root, network)


def test_load_testcases_missing_directory_raises(tmp_path: Path) -> None:
    network = make_configuration(tmp_path).network

    with pytest.raises(TestCaseValidationError, match="not found"):
        load_testcases(tmp_path / "missing", network)
