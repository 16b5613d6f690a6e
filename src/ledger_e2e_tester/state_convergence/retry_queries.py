"""Bounded polling of eventually consistent ledger state."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from decimal import Decimal
from typing import Any, TypeVar, cast

from ledger_e2e_tester.configuration.runtime_settings import RetryPolicy
from ledger_e2e_tester.ledger_access.collaborator_protocols import StateQuery, StateQueryError
from ledger_e2e_tester.ledger_access.ledger_records import DelegationInfo, ValidatorInfo

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], None]
Clock = Callable[[], float]


class ConvergenceError(Exception):
    """Raised when polled state does not reach the expected condition in time."""

    def __init__(
        self,
        message: str,
        *,
        last_value: Any = None,
        last_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.last_value = last_value
        self.last_error = last_error


def await_condition(
    query: Callable[[], T],
    predicate: Callable[[T], bool],
    policy: RetryPolicy,
    *,
    description: str,
    sleep: Sleeper = time.sleep,
) -> T:
    """Call `query` until `predicate` holds for its value.

    The query is called at most `policy.attempts` times with
    `policy.wait_seconds` between calls; there is no wait after the final call.
    A `StateQueryError` counts as a failed attempt.

    Raises:
      ConvergenceError: When no attempt satisfied the predicate. The last
        observed value and error are attached.
    """
    attempts = max(1, policy.attempts)
    last_value: T | None = None
    last_error: StateQueryError | None = None
    for attempt in range(1, attempts + 1):
        try:
            value = query()
        except StateQueryError as exc:
            last_error = exc
            _LOGGER.debug("%s: attempt %d/%d failed: %s", description, attempt, attempts, exc)
        else:
            last_value = value
            last_error = None
            if predicate(value):
                return value
            _LOGGER.debug(
                "%s: attempt %d/%d observed %s", description, attempt, attempts, value
            )
        if attempt < attempts:
            sleep(policy.wait_seconds)

    message = f"{description} did not converge after {attempts} attempts"
    if last_error is not None:
        message = f"{message}: {last_error}"
    raise ConvergenceError(message, last_value=last_value, last_error=last_error)


def await_non_zero_balance(
    state_query: StateQuery,
    address: str,
    shard: int,
    policy: RetryPolicy,
    *,
    sleep: Sleeper = time.sleep,
) -> Decimal:
    return await_condition(
        lambda: state_query.balance(address, shard),
        lambda balance: balance > 0,
        policy,
        description=f"Non-zero balance of {address} in shard {shard}",
        sleep=sleep,
    )


def await_expected_balance(
    state_query: StateQuery,
    address: str,
    shard: int,
    expected: Decimal,
    policy: RetryPolicy,
    *,
    sleep: Sleeper = time.sleep,
) -> Decimal:
    """Wait until the balance is non-zero and at least `expected`."""
    return await_condition(
        lambda: state_query.balance(address, shard),
        lambda balance: balance > 0 and balance >= expected,
        policy,
        description=f"Balance of at least {expected} for {address} in shard {shard}",
        sleep=sleep,
    )


def capture_epoch(
    state_query: StateQuery,
    shard: int,
    policy: RetryPolicy,
    *,
    sleep: Sleeper = time.sleep,
) -> int:
    return await_condition(
        lambda: state_query.current_epoch(shard),
        lambda epoch: epoch >= 0,
        policy,
        description=f"Epoch of shard {shard}",
        sleep=sleep,
    )


def await_next_epoch(  # pylint: disable=too-many-arguments
    state_query: StateQuery,
    shard: int,
    baseline: int,
    *,
    wait_seconds: float,
    timeout_seconds: float | None = None,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> int:
    """Poll in fixed intervals until the epoch is strictly greater than `baseline`.

    Without `timeout_seconds` the wait is unbounded; query errors are logged
    and polling continues.
    """
    deadline = None if timeout_seconds is None else clock() + timeout_seconds
    last_error: StateQueryError | None = None
    last_epoch: int | None = None
    while True:
        try:
            last_epoch = state_query.current_epoch(shard)
        except StateQueryError as exc:
            last_error = exc
            _LOGGER.debug("Epoch query on shard %d failed: %s", shard, exc)
        else:
            if last_epoch > baseline:
                _LOGGER.info("Shard %d advanced from epoch %d to %d", shard, baseline, last_epoch)
                return last_epoch
        if deadline is not None and clock() + wait_seconds > deadline:
            raise ConvergenceError(
                f"Shard {shard} did not advance past epoch {baseline} "
                f"within {timeout_seconds} seconds",
                last_value=last_epoch,
                last_error=last_error,
            )
        _LOGGER.debug(
            "Waiting %.0f seconds for shard %d to leave epoch %d", wait_seconds, shard, baseline
        )
        sleep(wait_seconds)


def await_validator(
    state_query: StateQuery,
    address: str,
    policy: RetryPolicy,
    *,
    predicate: Callable[[ValidatorInfo], bool] | None = None,
    sleep: Sleeper = time.sleep,
) -> ValidatorInfo:
    """Wait until the validator exists and, when given, satisfies `predicate`."""
    check = predicate or (lambda _info: True)
    validator = await_condition(
        lambda: state_query.validator(address),
        lambda info: info is not None and check(info),
        policy,
        description=f"Validator {address}",
        sleep=sleep,
    )
    return cast(ValidatorInfo, validator)


def await_delegation(  # pylint: disable=too-many-arguments
    state_query: StateQuery,
    delegator_address: str,
    validator_address: str,
    policy: RetryPolicy,
    *,
    predicate: Callable[[DelegationInfo], bool] | None = None,
    sleep: Sleeper = time.sleep,
) -> DelegationInfo:
    """Wait until a delegation from `delegator_address` to `validator_address` is visible."""
    check = predicate or (lambda _info: True)

    def find_delegation() -> DelegationInfo | None:
        for delegation in state_query.delegations_by_delegator(delegator_address):
            if delegation.validator_address == validator_address:
                return delegation
        return None

    delegation = await_condition(
        find_delegation,
        lambda info: info is not None and check(info),
        policy,
        description=f"Delegation from {delegator_address} to {validator_address}",
        sleep=sleep,
    )
    return cast(DelegationInfo, delegation)


def verify_balance_within(
    state_query: StateQuery,
    address: str,
    shard: int,
    expected: Decimal,
    threshold: Decimal,
) -> bool:
    """Return True when the balance lies within `expected ± threshold`, bounds included."""
    balance = state_query.balance(address, shard)
    return expected - threshold <= balance <= expected + threshold
