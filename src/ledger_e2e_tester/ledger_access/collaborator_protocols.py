"""Contracts of the external collaborators that own keys, signing and network transport."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from ledger_e2e_tester.configuration.runtime_settings import GasSettings
from ledger_e2e_tester.network_context.context_switch import ContextSetting

from .ledger_records import Account, DelegationInfo, ValidatorInfo


class StateQueryError(Exception):
    """Raised when a read-only state query fails."""


class TransactionSubmissionError(Exception):
    """Raised when a transaction cannot be signed or submitted."""


class KeyringError(Exception):
    """Raised when an account cannot be created or removed."""


class StakingOperation(str, Enum):
    """Staking message types the harness submits."""

    CREATE_VALIDATOR = "create-validator"
    EDIT_VALIDATOR = "edit-validator"
    DELEGATE = "delegate"
    UNDELEGATE = "undelegate"


@dataclass(frozen=True)
class TransferRequest:  # pylint: disable=too-many-instance-attributes
    """A signed-by-sender value transfer between two shards."""

    sender: Account
    receiver_address: str
    amount: Decimal
    from_shard: int
    to_shard: int
    gas: GasSettings
    timeout_seconds: int
    nonce: int | None = None
    payload: str = ""


@dataclass(frozen=True)
class StakingRequest:  # pylint: disable=too-many-instance-attributes
    """A staking message; `validator_fields` carries create or edit contents."""

    operation: StakingOperation
    sender: Account
    validator_address: str
    shard: int
    gas: GasSettings
    timeout_seconds: int
    delegator_address: str | None = None
    amount: Decimal | None = None
    validator_fields: Mapping[str, str | Decimal] = field(default_factory=dict)
    active: bool | None = None
    nonce: int | None = None
    bls_public_key: str | None = None


class Keyring(Protocol):
    """Creates and removes locally held keys."""

    def create_account(self, name: str) -> Account: ...

    def remove_account(self, account: Account) -> None: ...


class TransactionSubmitter(Protocol):
    """Signs and submits transactions; returns the raw receipt mapping."""

    def submit_transfer(
        self, request: TransferRequest, active: ContextSetting
    ) -> Mapping[str, Any]: ...

    def submit_staking(
        self, request: StakingRequest, active: ContextSetting
    ) -> Mapping[str, Any]: ...


class StateQuery(Protocol):
    """Read-only view of balances, validators, delegations and epochs."""

    def balance(self, address: str, shard: int) -> Decimal: ...

    def validator(self, address: str) -> ValidatorInfo | None: ...

    def delegations_by_delegator(self, address: str) -> tuple[DelegationInfo, ...]: ...

    def current_epoch(self, shard: int) -> int: ...
