"""Funding account tests."""

from __future__ import annotations

import threading
from decimal import Decimal

import pytest
from ledger_e2e_tester.funding import FundingAccount, FundingError
from ledger_e2e_tester.ledger_access import Account
from ledger_fakes import (
    FUNDING_ADDRESS,
    TRANSFER_GAS,
    FakeLedger,
    make_configuration,
    native_context,
    transaction_error,
)


def _funding_account(ledger: FakeLedger, **config_overrides: object) -> FundingAccount:
    configuration = make_configuration(**config_overrides)  # type: ignore[arg-type]
    return FundingAccount(
        configuration.funding,
        submitter=ledger,
        state_query=ledger,
        network_context=native_context(),
        sleep=lambda _seconds: None,
    )


def test_fund_transfers_and_waits_for_recipient_balance() -> None:
    ledger = FakeLedger()
    ledger.credit(FUNDING_ADDRESS, 0, Decimal(100))
    funding = _funding_account(ledger)
    recipient = Account(name="sender", address="one1sender")

    record = funding.fund(recipient, 0, Decimal("12.5"))

    assert record.success is True
    assert recipient.balance == Decimal("12.5")
    assert ledger.balance(FUNDING_ADDRESS, 0) == Decimal(100) - Decimal("12.5") - TRANSFER_GAS.fee


def test_fund_refuses_when_funds_do_not_cover_amount_and_fee() -> None:
    ledger = FakeLedger()
    ledger.credit(FUNDING_ADDRESS, 0, Decimal(10))
    funding = _funding_account(ledger)

    with pytest.raises(FundingError, match="insufficient funds") as excinfo:
        funding.fund(Account(name="sender", address="one1sender"), 0, Decimal(10))

    assert "one1sender" in str(excinfo.value)
    assert "shard 0" in str(excinfo.value)
    assert ledger.transfers == []


def test_fund_rejects_unconfigured_shard() -> None:
    ledger = FakeLedger()
    funding = _funding_account(ledger, shards=(0,))

    with pytest.raises(FundingError, match="not a configured funding shard"):
        funding.fund(Account(name="sender", address="one1sender"), 1, Decimal(1))


def test_fund_wraps_submission_errors() -> None:
    ledger = FakeLedger()
    ledger.credit(FUNDING_ADDRESS, 0, Decimal(100))
    ledger.submission_error = transaction_error("nonce too low")
    funding = _funding_account(ledger)

    with pytest.raises(FundingError, match="nonce too low"):
        funding.fund(Account(name="sender", address="one1sender"), 0, Decimal(1))


def test_concurrent_funding_never_overdraws() -> None:
    ledger = FakeLedger()
    ledger.credit(FUNDING_ADDRESS, 0, Decimal("25"))
    funding = _funding_account(ledger, shards=(0,))
    errors: list[FundingError] = []

    def fund(index: int) -> None:
        try:
            funding.fund(Account(name=f"a{index}", address=f"one1a{index}"), 0, Decimal(10))
        except FundingError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=fund, args=(index,)) for index in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(errors) == 1
    assert ledger.balance(FUNDING_ADDRESS, 0) >= 0


def test_verify_minimum_funds_lists_short_shards() -> None:
    ledger = FakeLedger()
    ledger.credit(FUNDING_ADDRESS, 0, Decimal(50))
    ledger.credit(FUNDING_ADDRESS, 1, Decimal(5))
    funding = _funding_account(ledger, minimum_funds=Decimal(10))

    with pytest.raises(FundingError, match="shard 1: 5"):
        funding.verify_minimum_funds()


def test_verify_minimum_funds_returns_balances() -> None:
    ledger = FakeLedger()
    ledger.credit(FUNDING_ADDRESS, 0, Decimal(50))
    ledger.credit(FUNDING_ADDRESS, 1, Decimal(20))
    funding = _funding_account(ledger, minimum_funds=Decimal(10))

    assert funding.verify_minimum_funds() == {0: Decimal(50), 1: Decimal(20)}


def test_sweep_returns_balance_minus_fee() -> None:
    ledger = FakeLedger()
    funding = _funding_account(ledger)
    account = Account(name="sender", address="one1sender")
    ledger.credit(account.address, 0, Decimal(3))

    record = funding.sweep(account, 0)

    assert record is not None and record.success
    assert ledger.balance(account.address, 0) == Decimal(0)
    assert ledger.balance(FUNDING_ADDRESS, 0) == Decimal(3) - TRANSFER_GAS.fee


def test_sweep_skips_balances_that_do_not_cover_the_fee() -> None:
    ledger = FakeLedger()
    funding = _funding_account(ledger)
    account = Account(name="sender", address="one1sender")
    ledger.credit(account.address, 0, TRANSFER_GAS.fee)

    assert funding.sweep(account, 0) is None
    assert ledger.transfers == []
