"""Funding requirement computation."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_UP, Decimal

TOKEN_PRECISION = Decimal("1e-18")


class FundingValidationError(ValueError):
    """Raised when funding inputs are not positive."""


@dataclass(frozen=True)
class FundingPlan:
    """Amount each funded account receives and the total drawn from the funding account."""

    per_account_amount: Decimal
    total_required: Decimal
    multiple: int
    shard_count: int

    @property
    def shard_amount(self) -> Decimal:
        """Total sent into each shard."""
        return self.per_account_amount * self.multiple


def compute_funding_plan(
    amount: Decimal,
    multiple: int = 1,
    shard_count: int = 1,
    *,
    fee_margin: Decimal = Decimal(0),
) -> FundingPlan:
    """Compute the funds needed for `multiple` accounts per shard across `shard_count` shards.

    Each account receives `amount` plus `fee_margin`, rounded up to the ledger's
    18 decimal places, so no shard ever receives less than `amount * multiple`.

    Raises:
      FundingValidationError: If amount, multiple or shard count is not positive,
        or the fee margin is negative.
    """
    if amount <= 0:
        raise FundingValidationError(f"Funding amount must be positive, got {amount}.")
    if multiple <= 0:
        raise FundingValidationError(f"Funding multiple must be positive, got {multiple}.")
    if shard_count <= 0:
        raise FundingValidationError(f"Shard count must be positive, got {shard_count}.")
    if fee_margin < 0:
        raise FundingValidationError(f"Fee margin must not be negative, got {fee_margin}.")

    per_account = (Decimal(amount) + Decimal(fee_margin)).quantize(
        TOKEN_PRECISION, rounding=ROUND_UP
    )
    return FundingPlan(
        per_account_amount=per_account,
        total_required=per_account * multiple * shard_count,
        multiple=multiple,
        shard_count=shard_count,
    )
