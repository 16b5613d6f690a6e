"""Configuration loader tests."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from ledger_e2e_tester.configuration.loader import ConfigurationError, load_configuration
from ledger_e2e_tester.configuration.runtime_settings import GasSettings, RetryPolicy


def _write_file(path: Path, contents: str) -> Path:
    path.write_text(contents, encoding="utf-8")
    return path


def test_loads_yaml_configuration_with_defaults(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "config.yaml",
        """
network:
  endpoints:
    0: "http://localhost:9500"
    1: "http://localhost:9501"
funding:
  address: "one1funding"
""",
    )

    configuration = load_configuration(config_path)

    assert configuration.framework.testcases_path == (tmp_path / "testcases").resolve()
    assert configuration.framework.verbose is False
    assert configuration.network.name == "localnet"
    assert configuration.network.shard_ids == (0, 1)
    assert configuration.network.timeout_seconds == 60
    assert configuration.network.gas == GasSettings(limit=21000, price=Decimal("100"))
    assert configuration.network.staking_gas.fee == Decimal("0.5")
    assert configuration.network.retry == RetryPolicy(attempts=10, wait_seconds=3)
    assert configuration.network.epoch_wait.timeout_seconds == 330
    assert configuration.account.remove_empty is True
    assert configuration.funding.shards == (0, 1)
    assert configuration.funding.fee_margin == Decimal("1")
    assert configuration.funding.retry == configuration.network.balance_retry
    assert configuration.export.format == "csv"


def test_localnet_lowers_the_minimum_funds(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "config.yaml",
        """
network:
  name: LocalNet
  endpoints: "http://localhost:9500"
funding:
  address: "one1funding"
  minimum_funds: 5000
""",
    )

    configuration = load_configuration(config_path)

    assert configuration.network.name == "localnet"
    assert configuration.funding.minimum_funds == Decimal("10")


def test_loads_full_configuration(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "config.yaml",
        """
framework:
  testcases_path: "cases"
  verbose: true
network:
  name: testnet
  endpoints:
    - "https://api.s0.b.example.net"
    - "https://api.s1.b.example.net"
  timeout_seconds: 120
  staking_wait_seconds: 5
  gas:
    limit: 25000
    price: 1
  retry:
    attempts: 4
    wait: 0.5
  balances:
    retry:
      attempts: 6
      wait: 2
  epoch_wait:
    wait_seconds: 10
    timeout_seconds: 0
account:
  passphrase: "secret"
  remove_empty: false
  keystore_path: "keys"
funding:
  address: "one1funding"
  name: "faucet"
  minimum_funds: "250.5"
  fee_margin: "0.25"
  shards: "1"
export:
  path: "/tmp/results"
  format: "CSV"
""",
    )

    configuration = load_configuration(config_path)

    assert configuration.framework.verbose is True
    assert configuration.framework.testcases_path == (tmp_path / "cases").resolve()
    assert configuration.network.endpoints == {
        0: "https://api.s0.b.example.net",
        1: "https://api.s1.b.example.net",
    }
    assert configuration.network.staking_wait_seconds == 5
    assert configuration.network.gas.limit == 25000
    assert configuration.network.retry == RetryPolicy(attempts=4, wait_seconds=0.5)
    assert configuration.network.balance_retry == RetryPolicy(attempts=6, wait_seconds=2)
    assert configuration.network.epoch_wait.timeout_seconds is None
    assert configuration.account.passphrase == "secret"
    assert configuration.account.remove_empty is False
    assert configuration.account.keystore_path == (tmp_path / "keys").resolve()
    assert configuration.funding.name == "faucet"
    assert configuration.funding.minimum_funds == Decimal("250.5")
    assert configuration.funding.fee_margin == Decimal("0.25")
    assert configuration.funding.shards == (1,)
    assert configuration.funding.gas.limit == 25000
    assert configuration.export.path == Path("/tmp/results")
    assert configuration.export.format == "csv"


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_configuration(tmp_path / "missing.yaml")


def test_missing_network_endpoints_raises(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "config.yaml",
        """
network:
  name: localnet
funding:
  address: "one1funding"
""",
    )

    with pytest.raises(ConfigurationError, match="network.endpoints"):
        load_configuration(config_path)


def test_missing_funding_address_raises(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "config.yaml",
        """
network:
  endpoints: "http://localhost:9500"
funding:
  minimum_funds: 10
""",
    )

    with pytest.raises(ConfigurationError, match="funding.address"):
        load_configuration(config_path)


def test_funding_shard_without_endpoint_raises(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "config.yaml",
        """
network:
  endpoints: "http://localhost:9500"
funding:
  address: "one1funding"
  shards: [0, 3]
""",
    )

    with pytest.raises(ConfigurationError, match="funding.shards"):
        load_configuration(config_path)


def test_negative_fee_margin_raises(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "config.yaml",
        """
network:
  endpoints: "http://localhost:9500"
funding:
  address: "one1funding"
  fee_margin: "-1"
""",
    )

    with pytest.raises(ConfigurationError, match="funding.fee_margin"):
        load_configuration(config_path)


def test_non_mapping_root_raises(tmp_path: Path) -> None:
    config_path = _write_file(tmp_path / "config.yaml", "- just\n- a list\n")

    with pytest.raises(ConfigurationError, match="mapping"):
        load_configuration(config_path)
