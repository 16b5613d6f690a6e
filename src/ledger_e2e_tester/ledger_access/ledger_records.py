"""Ledger access domain entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

_SUCCESS_STATUSES = frozenset({1, "1", "0x1"})


@dataclass
class Account:
    """Ephemeral or shared account; `balance` is the last known snapshot."""

    name: str
    address: str
    shard: int = 0
    balance: Decimal = Decimal(0)


@dataclass(frozen=True)
class TransactionRecord:  # pylint: disable=too-many-instance-attributes
    """Outcome of one submitted transfer or staking transaction."""

    sender: str
    sender_shard: int
    receiver: str
    receiver_shard: int
    success: bool
    transaction_hash: str | None = None
    error: str | None = None

    @staticmethod
    def from_receipt(
        receipt: Mapping[str, Any],
        *,
        sender: str,
        sender_shard: int,
        receiver: str,
        receiver_shard: int,
    ) -> TransactionRecord:
        """Build a record from a raw receipt; success requires a successful status and no error."""
        error = receipt.get("error")
        status = receipt.get("status")
        succeeded = status is True or (not isinstance(status, bool) and status in _SUCCESS_STATUSES)
        return TransactionRecord(
            sender=sender,
            sender_shard=sender_shard,
            receiver=receiver,
            receiver_shard=receiver_shard,
            success=succeeded and not error,
            transaction_hash=receipt.get("transactionHash") or receipt.get("hash"),
            error=str(error) if error else None,
        )

    @staticmethod
    def failed(
        *,
        sender: str,
        sender_shard: int,
        receiver: str,
        receiver_shard: int,
        error: Exception | str,
    ) -> TransactionRecord:
        return TransactionRecord(
            sender=sender,
            sender_shard=sender_shard,
            receiver=receiver,
            receiver_shard=receiver_shard,
            success=False,
            error=str(error),
        )


@dataclass(frozen=True)
class ValidatorInfo:  # pylint: disable=too-many-instance-attributes
    """Validator state as reported by the network."""

    address: str
    name: str = ""
    identity: str = ""
    website: str = ""
    security_contact: str = ""
    details: str = ""
    commission_rate: Decimal = Decimal(0)
    min_self_delegation: Decimal = Decimal(0)
    max_total_delegation: Decimal = Decimal(0)
    active: bool = True
    bls_public_keys: tuple[str, ...] = ()

    def field_value(self, field_name: str) -> str | Decimal:
        return getattr(self, field_name)


@dataclass(frozen=True)
class DelegationInfo:
    """One delegation from a delegator to a validator."""

    delegator_address: str
    validator_address: str
    amount: Decimal
    undelegations: tuple[Decimal, ...] = field(default_factory=tuple)
