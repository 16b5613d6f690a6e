"""Funding allocator tests."""

from __future__ import annotations

from decimal import Decimal

import pytest
from ledger_e2e_tester.funding import FundingValidationError, compute_funding_plan


def test_plan_for_a_single_account() -> None:
    plan = compute_funding_plan(Decimal("100"))

    assert plan.per_account_amount == Decimal("100")
    assert plan.total_required == Decimal("100")
    assert plan.shard_amount == Decimal("100")


def test_plan_multiplies_accounts_and_shards() -> None:
    plan = compute_funding_plan(Decimal("2.5"), multiple=3, shard_count=2, fee_margin=Decimal("1"))

    assert plan.per_account_amount == Decimal("3.5")
    assert plan.shard_amount == Decimal("10.5")
    assert plan.total_required == Decimal("21.0")


def test_per_account_amount_rounds_up_to_ledger_precision() -> None:
    plan = compute_funding_plan(Decimal("0.0000000000000000001"), multiple=4)

    assert plan.per_account_amount == Decimal("0.000000000000000001")
    assert plan.total_required >= Decimal("0.0000000000000000001") * 4


@pytest.mark.parametrize(
    ("amount", "multiple", "shard_count", "fee_margin"),
    (
        (Decimal(0), 1, 1, Decimal(0)),
        (Decimal(-1), 1, 1, Decimal(0)),
        (Decimal(1), 0, 1, Decimal(0)),
        (Decimal(1), 1, 0, Decimal(0)),
        (Decimal(1), 1, 1, Decimal("-0.1")),
    ),
)
def test_invalid_inputs_raise(
    amount: Decimal, multiple: int, shard_count: int, fee_margin: Decimal
) -> None:
    with pytest.raises(FundingValidationError):
        compute_funding_plan(amount, multiple, shard_count, fee_margin=fee_margin)
