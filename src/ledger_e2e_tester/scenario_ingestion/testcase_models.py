"""Scenario ingestion entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from ledger_e2e_tester.configuration.runtime_settings import GasSettings, RetryPolicy
from ledger_e2e_tester.network_context.chain_ids import Dialect

if TYPE_CHECKING:
    from ledger_e2e_tester.ledger_access.ledger_records import TransactionRecord


class ScenarioFamily(str, Enum):
    """Parameter family a scenario kind belongs to."""

    TRANSFER = "transfer"
    STAKING = "staking"


class ScenarioKind(str, Enum):
    """Closed set of scenarios the harness knows how to run."""

    TRANSFER_STANDARD = "transactions/standard"
    TRANSFER_SAME_ACCOUNT = "transactions/same_account"
    TRANSFER_MULTIPLE_RECEIVERS = "transactions/multiple_receivers"
    TRANSFER_MULTIPLE_RECEIVERS_INVALID_NONCE = "transactions/multiple_receivers_invalid_nonce"
    TRANSFER_MULTIPLE_SENDERS = "transactions/multiple_senders"
    VALIDATOR_CREATE_STANDARD = "staking/validator/create/standard"
    VALIDATOR_CREATE_INVALID_ADDRESS = "staking/validator/create/invalid_address"
    VALIDATOR_CREATE_ALREADY_EXISTS = "staking/validator/create/already_exists"
    VALIDATOR_CREATE_EXISTING_BLS_KEY = "staking/validator/create/existing_bls_key"
    VALIDATOR_EDIT_STANDARD = "staking/validator/edit/standard"
    VALIDATOR_EDIT_INVALID_ADDRESS = "staking/validator/edit/invalid_address"
    VALIDATOR_EDIT_NON_EXISTING = "staking/validator/edit/non_existing"
    DELEGATE_STANDARD = "staking/delegation/delegate/standard"
    DELEGATE_INVALID_ADDRESS = "staking/delegation/delegate/invalid_address"
    DELEGATE_NON_EXISTING = "staking/delegation/delegate/non_existing"
    UNDELEGATE_STANDARD = "staking/delegation/undelegate/standard"
    UNDELEGATE_INVALID_ADDRESS = "staking/delegation/undelegate/invalid_address"
    UNDELEGATE_NON_EXISTING = "staking/delegation/undelegate/non_existing"
    REDELEGATE_STANDARD = "staking/delegation/redelegate/standard"
    REDELEGATE_NEXT_EPOCH = "staking/delegation/redelegate/next_epoch"

    @property
    def family(self) -> ScenarioFamily:
        if self.value.startswith("transactions/"):
            return ScenarioFamily.TRANSFER
        return ScenarioFamily.STAKING


_SCENARIO_ALIASES = {
    "staking/delegation/redelegate/locked_tokens": ScenarioKind.REDELEGATE_NEXT_EPOCH,
}


def parse_scenario_kind(selector: str) -> ScenarioKind | None:
    """Resolve a dot- or slash-delimited selector; None when it names no known scenario."""
    normalized = selector.strip().strip("/").replace(".", "/").lower()
    if normalized in _SCENARIO_ALIASES:
        return _SCENARIO_ALIASES[normalized]
    try:
        return ScenarioKind(normalized)
    except ValueError:
        return None


@dataclass(frozen=True)
class TransferParameters:  # pylint: disable=too-many-instance-attributes
    """Parameters of the transfer scenario family."""

    amount: Decimal
    from_shard: int
    to_shard: int
    receiver_count: int
    sender_count: int
    dialect: Dialect
    gas: GasSettings
    nonce: int | None
    timeout_seconds: int
    payload: str
    retry: RetryPolicy | None


@dataclass(frozen=True)
class ValidatorParameters:  # pylint: disable=too-many-instance-attributes
    """Create-validator message contents; `amount` is the self delegation."""

    amount: Decimal
    name: str
    identity: str
    website: str
    security_contact: str
    details: str
    commission_rate: Decimal
    max_commission_rate: Decimal
    max_change_rate: Decimal
    min_self_delegation: Decimal
    max_total_delegation: Decimal


EDITABLE_VALIDATOR_FIELDS: tuple[str, ...] = (
    "name",
    "identity",
    "website",
    "security_contact",
    "details",
    "commission_rate",
    "min_self_delegation",
    "max_total_delegation",
)
DECIMAL_VALIDATOR_FIELDS = frozenset(
    {"commission_rate", "min_self_delegation", "max_total_delegation"}
)


@dataclass(frozen=True)
class EditParameters:
    """Edit-validator instructions: the changed fields and how often to repeat the edit."""

    repeat: int
    changes: Mapping[str, str | Decimal]


@dataclass(frozen=True)
class StakingParameters:  # pylint: disable=too-many-instance-attributes
    """Parameters of the staking scenario family."""

    shard: int
    validator: ValidatorParameters
    delegation_amount: Decimal
    undelegation_amount: Decimal
    initial_delegation_amount: Decimal
    edit: EditParameters
    reuse_existing_validator: bool
    balance_tolerance: Decimal
    gas: GasSettings
    nonce: int | None
    timeout_seconds: int
    retry: RetryPolicy | None


ScenarioParameters = TransferParameters | StakingParameters


@dataclass
class ScenarioTestCase:  # pylint: disable=too-many-instance-attributes
    """One declared scenario and its mutable run state."""

    name: str
    scenario: str
    kind: ScenarioKind | None
    execute: bool
    expected: bool
    parameters: ScenarioParameters | None
    verbose: bool = False
    source_path: Path | None = None
    executed: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None
    transactions: list[TransactionRecord] = field(default_factory=list)
    result: bool = False
    dismissal: str = ""
    errors: list[str] = field(default_factory=list)

    @property
    def successful(self) -> bool:
        """True when the scenario ran and its result matches the declared expectation."""
        return self.executed and self.result == self.expected

    @property
    def duration(self) -> timedelta | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def record_error(self, message: str) -> None:
        self.errors.append(message)

    def dismiss(self, reason: str) -> None:
        self.executed = False
        self.dismissal = reason


@dataclass(frozen=True)
class TestCaseLoadResult:
    """Result of loading the declarative test case files."""

    __test__ = False

    testcases: tuple[ScenarioTestCase, ...]
