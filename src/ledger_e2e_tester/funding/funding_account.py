"""Shared funding account handle."""

from __future__ import annotations

import logging
import threading
import time
from decimal import Decimal

from ledger_e2e_tester.configuration.runtime_settings import FundingSettings
from ledger_e2e_tester.ledger_access.collaborator_protocols import (
    StateQuery,
    StateQueryError,
    TransactionSubmissionError,
    TransactionSubmitter,
    TransferRequest,
)
from ledger_e2e_tester.ledger_access.ledger_records import Account, TransactionRecord
from ledger_e2e_tester.network_context.context_switch import NetworkContext
from ledger_e2e_tester.state_convergence.retry_queries import (
    ConvergenceError,
    Sleeper,
    await_expected_balance,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_FUNDING_ACCOUNT_NAME = "funding"


class FundingError(Exception):
    """Raised when the funding account cannot supply or reclaim funds."""


class FundingAccount:
    """Owned handle for the shared, pre-funded account.

    Every withdrawal goes through `fund`, which serializes access so the
    balance check and the transfer are never interleaved with another one.
    """

    def __init__(
        self,
        settings: FundingSettings,
        *,
        submitter: TransactionSubmitter,
        state_query: StateQuery,
        network_context: NetworkContext,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._settings = settings
        self._submitter = submitter
        self._state_query = state_query
        self._network_context = network_context
        self._sleep = sleep
        self._lock = threading.Lock()
        self.account = Account(
            name=settings.name or DEFAULT_FUNDING_ACCOUNT_NAME,
            address=settings.address,
            shard=settings.shards[0],
        )

    @property
    def address(self) -> str:
        return self._settings.address

    @property
    def shards(self) -> tuple[int, ...]:
        return self._settings.shards

    @property
    def transfer_fee(self) -> Decimal:
        return self._settings.gas.fee

    def balance(self, shard: int) -> Decimal:
        try:
            return self._state_query.balance(self.address, shard)
        except StateQueryError as exc:
            raise FundingError(
                f"Unable to read the funding balance of {self.address} in shard {shard}: {exc}"
            ) from exc

    def verify_minimum_funds(self) -> dict[int, Decimal]:
        """Check every configured shard holds at least the configured minimum.

        Raises:
          FundingError: Listing every shard below the minimum.
        """
        balances = {shard: self.balance(shard) for shard in self.shards}
        short = [
            f"shard {shard}: {balance}"
            for shard, balance in balances.items()
            if balance < self._settings.minimum_funds
        ]
        if short:
            raise FundingError(
                f"Funding account {self.account.name} ({self.address}) holds less than the "
                f"required minimum of {self._settings.minimum_funds} ({'; '.join(short)})"
            )
        for shard, balance in balances.items():
            _LOGGER.info("Funding account %s holds %s in shard %d", self.address, balance, shard)
        return balances

    def fund(self, recipient: Account, shard: int, amount: Decimal) -> TransactionRecord:
        """Send `amount` to `recipient` in `shard` and wait until the recipient observes it."""
        if shard not in self.shards:
            raise self._funding_error(
                "shard is not a configured funding shard", recipient, shard, amount
            )
        with self._lock:
            available = self.balance(shard)
            if available < amount + self.transfer_fee:
                raise self._funding_error(
                    f"insufficient funds ({available} available)", recipient, shard, amount
                )
            try:
                starting = self._state_query.balance(recipient.address, shard)
                receipt = self._submitter.submit_transfer(
                    TransferRequest(
                        sender=self.account,
                        receiver_address=recipient.address,
                        amount=amount,
                        from_shard=shard,
                        to_shard=shard,
                        gas=self._settings.gas,
                        timeout_seconds=self._settings.timeout_seconds,
                    ),
                    self._network_context.current,
                )
            except (StateQueryError, TransactionSubmissionError) as exc:
                raise self._funding_error(str(exc), recipient, shard, amount) from exc

            record = TransactionRecord.from_receipt(
                receipt,
                sender=self.address,
                sender_shard=shard,
                receiver=recipient.address,
                receiver_shard=shard,
            )
            if not record.success:
                raise self._funding_error(
                    f"transaction {record.transaction_hash} was rejected: {record.error}",
                    recipient,
                    shard,
                    amount,
                )

        _LOGGER.info(
            "Funded %s (%s) with %s in shard %d, tx %s",
            recipient.name,
            recipient.address,
            amount,
            shard,
            record.transaction_hash,
        )
        try:
            recipient.balance = await_expected_balance(
                self._state_query,
                recipient.address,
                shard,
                starting + amount,
                self._settings.retry,
                sleep=self._sleep,
            )
        except ConvergenceError as exc:
            raise self._funding_error(str(exc), recipient, shard, amount) from exc
        return record

    def sweep(self, account: Account, shard: int) -> TransactionRecord | None:
        """Return an account's balance minus the transfer fee to the funding account.

        Returns None when the balance does not cover the fee.
        """
        fee = self.transfer_fee
        try:
            balance = self._state_query.balance(account.address, shard)
        except StateQueryError as exc:
            raise FundingError(
                f"Unable to read the balance of {account.name} ({account.address}) "
                f"in shard {shard}: {exc}"
            ) from exc
        account.balance = balance
        if balance <= fee:
            _LOGGER.debug(
                "Nothing to return from %s (%s) in shard %d: balance %s does not cover fee %s",
                account.name,
                account.address,
                shard,
                balance,
                fee,
            )
            return None

        amount = balance - fee
        try:
            receipt = self._submitter.submit_transfer(
                TransferRequest(
                    sender=account,
                    receiver_address=self.address,
                    amount=amount,
                    from_shard=shard,
                    to_shard=shard,
                    gas=self._settings.gas,
                    timeout_seconds=self._settings.timeout_seconds,
                ),
                self._network_context.current,
            )
        except TransactionSubmissionError as exc:
            raise FundingError(
                f"Failed to return {amount} from {account.name} ({account.address}) "
                f"in shard {shard}: {exc}"
            ) from exc
        record = TransactionRecord.from_receipt(
            receipt,
            sender=account.address,
            sender_shard=shard,
            receiver=self.address,
            receiver_shard=shard,
        )
        _LOGGER.info(
            "Returned %s from %s (%s) to the funding account in shard %d, tx %s",
            amount,
            account.name,
            account.address,
            shard,
            record.transaction_hash,
        )
        return record

    def _funding_error(
        self, reason: str, recipient: Account, shard: int, amount: Decimal
    ) -> FundingError:
        return FundingError(
            f"Funding account {self.account.name} ({self.address}) failed to send {amount} "
            f"to {recipient.name} ({recipient.address}) in shard {shard}: {reason}"
        )
