"""Configuration domain entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

GWEI = Decimal("0.000000001")


@dataclass(frozen=True)
class GasSettings:
    """Gas limit and price (in gwei) for one kind of transaction."""

    limit: int
    price: Decimal

    @property
    def fee(self) -> Decimal:
        """Upper bound of the fee paid for one transaction, in tokens."""
        return Decimal(self.limit) * self.price * GWEI


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and wait interval for polling loops."""

    attempts: int
    wait_seconds: float


@dataclass(frozen=True)
class EpochWaitSettings:
    """Polling settings for epoch advancement; no timeout means wait indefinitely."""

    wait_seconds: float
    timeout_seconds: float | None


@dataclass(frozen=True)
class FrameworkSettings:
    """General harness settings."""

    testcases_path: Path
    verbose: bool


@dataclass(frozen=True)
class NetworkSettings:  # pylint: disable=too-many-instance-attributes
    """Target network connectivity and polling configuration."""

    name: str
    endpoints: Mapping[int, str]
    timeout_seconds: int
    staking_wait_seconds: int
    gas: GasSettings
    staking_gas: GasSettings
    retry: RetryPolicy
    balance_retry: RetryPolicy
    epoch_wait: EpochWaitSettings
    hmy_binary: str

    @property
    def shard_ids(self) -> tuple[int, ...]:
        return tuple(sorted(self.endpoints))


@dataclass(frozen=True)
class AccountSettings:
    """Keystore settings for ephemeral accounts."""

    passphrase: str
    remove_empty: bool
    keystore_path: Path | None


@dataclass(frozen=True)
class FundingSettings:  # pylint: disable=too-many-instance-attributes
    """Shared funding account configuration."""

    address: str
    name: str | None
    minimum_funds: Decimal
    fee_margin: Decimal
    timeout_seconds: int
    shards: tuple[int, ...]
    gas: GasSettings
    retry: RetryPolicy


@dataclass(frozen=True)
class ExportSettings:
    """Result export destination."""

    path: Path
    format: str


@dataclass(frozen=True)
class Configuration:
    """Top-level configuration aggregate."""

    path: Path
    framework: FrameworkSettings
    network: NetworkSettings
    account: AccountSettings
    funding: FundingSettings
    export: ExportSettings
