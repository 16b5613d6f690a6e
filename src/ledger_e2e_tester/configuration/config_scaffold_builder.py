"""Configuration scaffold generation helpers."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILENAME = "config.yaml"

_CONFIG_SCAFFOLD_TEMPLATE = """# Regression suite configuration for ledger-e2e-tester.
# Replace every <REQUIRED> placeholder before running the suite.
# Optional keys show their default values and can be removed.

framework:
  # Directory holding the YAML test case files (relative to this file).
  testcases_path: "testcases"
  verbose: false

network:
  # One of mainnet, testnet, localnet, pangaea, partner, devnet, stressnet, dryrun.
  name: "localnet"
  # Shard id -> RPC endpoint.
  endpoints:
    0: "<REQUIRED>"
  timeout_seconds: 60
  staking_wait_seconds: 0
  hmy_binary: "hmy"
  gas:
    limit: 21000
    price: 100
  staking_gas:
    limit: 5000000
    price: 100
  retry:
    attempts: 10
    wait: 3
  balances:
    retry:
      attempts: 10
      wait: 3
  epoch_wait:
    wait_seconds: 20
    # Upper bound for waiting on the next epoch; 0 waits indefinitely.
    timeout_seconds: 330

account:
  passphrase: ""
  remove_empty: true
  # keystore_path: "<OPTIONAL>"

funding:
  address: "<REQUIRED>"
  # name: "<OPTIONAL>"
  minimum_funds: "100.0"
  # Added on top of every funded amount to cover transaction fees.
  fee_margin: "1"
  timeout_seconds: 60
  shards: "all"

export:
  path: "export"
  # csv is the only implemented format; anything else skips the export.
  format: "csv"
"""


def build_placeholder_configuration() -> str:
    """Build a YAML configuration template with placeholders and inline guidance."""
    return _CONFIG_SCAFFOLD_TEMPLATE


def write_placeholder_configuration(output_path: Path | str) -> Path:
    """Write the placeholder configuration template to the requested output path.

    Args:
      output_path: Destination file path for the scaffold.

    Returns:
      The resolved destination path.

    Raises:
      FileExistsError: If the destination file already exists.
      OSError: If writing the scaffold fails.
    """
    destination = Path(output_path)
    if destination.exists():
        raise FileExistsError(f"Configuration file already exists: {destination.resolve()}")
    destination.write_text(build_placeholder_configuration(), encoding="utf-8")
    return destination.resolve()
