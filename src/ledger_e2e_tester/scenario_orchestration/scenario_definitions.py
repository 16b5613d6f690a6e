"""Scenario definitions, one per scenario kind.

Every definition provisions and funds all of its accounts before the first
submission and returns whether its verifications held.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ledger_e2e_tester.ledger_access.ledger_records import (
    Account,
    DelegationInfo,
    TransactionRecord,
)

from . import staking_steps
from .scenario_lifecycle import ScenarioRun

_LOGGER = logging.getLogger(__name__)


def standard_transfer(run: ScenarioRun) -> bool:
    parameters = run.transfer_parameters
    (sender,) = run.provision("sender", shard=parameters.from_shard)
    (receiver,) = run.provision("receiver", shard=parameters.to_shard)
    run.fund(sender, parameters.amount)

    starting = run.balance(receiver, parameters.to_shard)
    record = _send(run, sender, receiver.address)
    if not record.success:
        return False
    expected = starting + parameters.amount
    ending = run.verify_expected_balance(receiver, parameters.to_shard, expected)
    return ending == expected


def same_account_transfer(run: ScenarioRun) -> bool:
    """Send from an account to itself.

    Within one shard the ending balance drops by the fee; across shards the
    destination shard receives the full amount.
    """
    parameters = run.transfer_parameters
    (account,) = run.provision("account", shard=parameters.from_shard)
    if parameters.to_shard != parameters.from_shard:
        funding_account = run.environment.funding_account
        run.scope.set_pre_release(
            account, lambda target: funding_account.sweep(target, parameters.to_shard)
        )
    run.fund(account, parameters.amount)

    run.balance(account, parameters.from_shard)
    starting = run.balance(account, parameters.to_shard)
    record = _send(run, account, account.address)
    if not record.success:
        return False
    ending = run.verify_non_zero_balance(account, parameters.to_shard)
    if ending is None:
        return False
    expected = starting + parameters.amount
    _LOGGER.info(
        "Account %s has an ending balance of %s in shard %d, expected %s",
        account.address,
        ending,
        parameters.to_shard,
        expected,
    )
    if parameters.from_shard == parameters.to_shard:
        return ending <= expected
    return ending == expected


def multiple_receivers_transfer(run: ScenarioRun) -> bool:
    parameters = run.transfer_parameters
    (sender,) = run.provision("sender", shard=parameters.from_shard)
    receivers = run.provision(
        *(f"receiver_{index}" for index in range(1, parameters.receiver_count + 1)),
        shard=parameters.to_shard,
    )
    run.fund(sender, parameters.amount, multiple=parameters.receiver_count)

    starting = {
        receiver.address: run.balance(receiver, parameters.to_shard) for receiver in receivers
    }
    sent: list[Account] = []
    for index, receiver in enumerate(receivers):
        nonce = None if parameters.nonce is None else parameters.nonce + index
        if _send(run, sender, receiver.address, nonce=nonce).success:
            sent.append(receiver)
    if len(sent) != len(receivers):
        return False

    verified = True
    for receiver in sent:
        expected = starting[receiver.address] + parameters.amount
        ending = run.verify_expected_balance(receiver, parameters.to_shard, expected)
        verified = verified and ending == expected
    return verified


def multiple_receivers_invalid_nonce(run: ScenarioRun) -> bool:
    """Send to every receiver with one and the same nonce.

    A fresh sender starts at nonce 0, so only the first transfer can be
    valid; the result holds only when every receiver was credited.
    """
    parameters = run.transfer_parameters
    (sender,) = run.provision("sender", shard=parameters.from_shard)
    receivers = run.provision(
        *(f"receiver_{index}" for index in range(1, parameters.receiver_count + 1)),
        shard=parameters.to_shard,
    )
    run.fund(sender, parameters.amount, multiple=parameters.receiver_count)

    nonce = 0 if parameters.nonce is None else parameters.nonce
    starting = {
        receiver.address: run.balance(receiver, parameters.to_shard) for receiver in receivers
    }
    accepted = [
        receiver
        for receiver in receivers
        if _send(run, sender, receiver.address, nonce=nonce).success
    ]
    _LOGGER.info(
        "%d of %d transfers with nonce %d were accepted", len(accepted), len(receivers), nonce
    )
    if len(accepted) != len(receivers):
        return False
    for receiver in accepted:
        expected = starting[receiver.address] + parameters.amount
        if run.verify_expected_balance(receiver, parameters.to_shard, expected) != expected:
            return False
    return True


def multiple_senders_transfer(run: ScenarioRun) -> bool:
    parameters = run.transfer_parameters
    senders = run.provision(
        *(f"sender_{index}" for index in range(1, parameters.sender_count + 1)),
        shard=parameters.from_shard,
    )
    (receiver,) = run.provision("receiver", shard=parameters.to_shard)
    for sender in senders:
        run.fund(sender, parameters.amount)

    starting = run.balance(receiver, parameters.to_shard)
    records = [_send(run, sender, receiver.address) for sender in senders]
    if not all(record.success for record in records):
        return False
    expected = starting + parameters.amount * parameters.sender_count
    ending = run.verify_expected_balance(receiver, parameters.to_shard, expected)
    return ending == expected


def create_validator_standard(run: ScenarioRun) -> bool:
    parameters = run.staking_parameters
    (validator,) = run.provision("validator")
    run.fund(validator, _with_fees(run, parameters.validator.amount, transactions=2))

    starting = run.balance(validator)
    handle = staking_steps.ValidatorHandle(account=validator, reused=False)
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False
    return run.balance(validator) < starting


def create_validator_invalid_address(run: ScenarioRun) -> bool:
    """The create-validator message names an address other than its signer."""
    parameters = run.staking_parameters
    sender, validator = run.provision("invalid_sender", "invalid_validator")
    run.fund(sender, _with_fees(run, parameters.validator.amount, transactions=1))
    run.fund(validator, _with_fees(run, Decimal(0), transactions=1))

    starting = run.balance(sender)
    record = staking_steps.create_validator(run, validator, sender=sender)
    if not record.success:
        return False
    exists = run.verify_validator(validator.address) is not None
    ending = run.balance(sender)
    return exists and ending <= starting - parameters.validator.amount


def create_validator_already_exists(run: ScenarioRun) -> bool:
    """Submit a second create-validator message for a validator that already exists."""
    parameters = run.staking_parameters
    (validator,) = run.provision("validator")
    run.fund(validator, _with_fees(run, parameters.validator.amount * 2, transactions=3))

    if not staking_steps.create_validator(run, validator).success:
        return False
    if run.verify_validator(validator.address) is None:
        return False
    return staking_steps.create_validator(run, validator).success


def create_validator_existing_bls_key(run: ScenarioRun) -> bool:
    """Create a second validator with the BLS public key of the first."""
    parameters = run.staking_parameters
    first, second = run.provision("validator", "bls_validator")
    for validator in (first, second):
        run.fund(validator, _with_fees(run, parameters.validator.amount, transactions=2))

    if not staking_steps.create_validator(run, first).success:
        return False
    info = run.verify_validator(first.address)
    if info is None or not info.bls_public_keys:
        return False
    _LOGGER.info("Creating %s with the BLS key of %s", second.address, first.address)
    record = staking_steps.create_validator(
        run, second, bls_public_key=info.bls_public_keys[0]
    )
    if not record.success:
        return False
    return run.verify_validator(second.address) is not None


def edit_validator_standard(run: ScenarioRun) -> bool:
    """Edit the validator `edit.repeat` times, stopping at the first edit that does not apply."""
    parameters = run.staking_parameters
    handle = staking_steps.acquire_validator(run)
    staking_steps.fund_validator(run, handle, transactions=2 + parameters.edit.repeat)
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    changes = _edit_changes(run)
    validator = handle.account
    edited = False
    for repetition in range(1, parameters.edit.repeat + 1):
        record = staking_steps.edit_validator(run, validator, changes)
        edited = record.success and (
            run.verify_validator(validator.address, staking_steps.changes_applied(changes))
            is not None
        )
        _LOGGER.info("Edit %d of validator %s applied: %s", repetition, validator.address, edited)
        if not edited:
            break
    return edited


def edit_validator_invalid_address(run: ScenarioRun) -> bool:
    """Another account signs an edit-validator message for the validator."""
    handle = staking_steps.acquire_validator(run)
    (sender,) = run.provision("sender")
    staking_steps.fund_validator(run, handle)
    run.fund(sender, _with_fees(run, Decimal(0), transactions=1))
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    validator = handle.account
    changes = _edit_changes(run)
    if not staking_steps.edit_validator(run, validator, changes, sender=sender).success:
        return False
    predicate = staking_steps.changes_applied(changes)
    return run.verify_validator(validator.address, predicate) is not None


def edit_validator_non_existing(run: ScenarioRun) -> bool:
    (validator,) = run.provision("validator")
    run.fund(validator, _with_fees(run, Decimal(0), transactions=1))

    changes = _edit_changes(run)
    if not staking_steps.edit_validator(run, validator, changes).success:
        return False
    predicate = staking_steps.changes_applied(changes)
    return run.verify_validator(validator.address, predicate) is not None


def delegate_standard(run: ScenarioRun) -> bool:
    parameters = run.staking_parameters
    handle = staking_steps.acquire_validator(run)
    (delegator,) = run.provision("delegator")
    staking_steps.fund_validator(run, handle)
    run.fund(delegator, _with_fees(run, parameters.delegation_amount, transactions=1))
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    validator_address = handle.account.address
    record = staking_steps.delegate(run, delegator, validator_address, parameters.delegation_amount)
    if not record.success:
        return False
    return _delegation_visible(run, delegator, validator_address, parameters.delegation_amount)


def delegate_invalid_address(run: ScenarioRun) -> bool:
    """A third account signs a delegation on behalf of the delegator."""
    parameters = run.staking_parameters
    handle = staking_steps.acquire_validator(run)
    delegator, sender = run.provision("delegator", "sender")
    staking_steps.fund_validator(run, handle)
    for account in (delegator, sender):
        run.fund(account, _with_fees(run, parameters.delegation_amount, transactions=1))
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    validator_address = handle.account.address
    record = staking_steps.delegate(
        run, delegator, validator_address, parameters.delegation_amount, sender=sender
    )
    if not record.success:
        return False
    return _delegation_visible(run, delegator, validator_address, parameters.delegation_amount)


def delegate_non_existing(run: ScenarioRun) -> bool:
    """Delegate to an address that never became a validator."""
    parameters = run.staking_parameters
    validator, delegator = run.provision("validator", "delegator")
    run.fund(delegator, _with_fees(run, parameters.delegation_amount, transactions=1))

    record = staking_steps.delegate(
        run, delegator, validator.address, parameters.delegation_amount
    )
    if not record.success:
        return False
    return _delegation_visible(run, delegator, validator.address, parameters.delegation_amount)


def undelegate_standard(run: ScenarioRun) -> bool:
    parameters = run.staking_parameters
    handle = staking_steps.acquire_validator(run)
    (delegator,) = run.provision("delegator")
    staking_steps.fund_validator(run, handle)
    run.fund(delegator, _with_fees(run, parameters.delegation_amount, transactions=2))
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    validator_address = handle.account.address
    if not staking_steps.delegate(
        run, delegator, validator_address, parameters.delegation_amount
    ).success:
        return False
    if not _delegation_visible(run, delegator, validator_address, parameters.delegation_amount):
        return False
    if not staking_steps.undelegate(
        run, delegator, validator_address, parameters.undelegation_amount
    ).success:
        return False
    return _undelegation_visible(run, delegator, validator_address, parameters.undelegation_amount)


def undelegate_invalid_address(run: ScenarioRun) -> bool:
    """A third account signs an undelegation on behalf of the delegator."""
    parameters = run.staking_parameters
    handle = staking_steps.acquire_validator(run)
    delegator, sender = run.provision("delegator", "sender")
    staking_steps.fund_validator(run, handle)
    run.fund(delegator, _with_fees(run, parameters.delegation_amount, transactions=1))
    run.fund(sender, _with_fees(run, Decimal(0), transactions=1))
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    validator_address = handle.account.address
    if not staking_steps.delegate(
        run, delegator, validator_address, parameters.delegation_amount
    ).success:
        return False
    if not _delegation_visible(run, delegator, validator_address, parameters.delegation_amount):
        return False
    record = staking_steps.undelegate(
        run, delegator, validator_address, parameters.undelegation_amount, sender=sender
    )
    if not record.success:
        return False
    return _undelegation_visible(run, delegator, validator_address, parameters.undelegation_amount)


def undelegate_non_existing(run: ScenarioRun) -> bool:
    """Undelegate from an address that never became a validator."""
    parameters = run.staking_parameters
    validator, delegator = run.provision("validator", "delegator")
    run.fund(delegator, _with_fees(run, Decimal(0), transactions=1))

    record = staking_steps.undelegate(
        run, delegator, validator.address, parameters.undelegation_amount
    )
    if not record.success:
        return False
    return _undelegation_visible(
        run, delegator, validator.address, parameters.undelegation_amount
    )


def redelegate_standard(run: ScenarioRun) -> bool:
    """Delegate, undelegate and immediately delegate again from the undelegated tokens.

    The delegator is funded for the initial delegation only, so once the
    redelegation draws on the undelegated tokens its balance is back near zero.
    """
    parameters = run.staking_parameters
    handle = staking_steps.acquire_validator(run)
    (delegator,) = run.provision("delegator")
    staking_steps.fund_validator(run, handle)
    shortfall = max(Decimal(0), parameters.delegation_amount - parameters.undelegation_amount)
    reserved = run.environment.configuration.funding.fee_margin + parameters.gas.fee * 3
    run.fund(
        delegator,
        _with_fees(run, parameters.initial_delegation_amount + shortfall, transactions=3),
    )
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    validator_address = handle.account.address
    if not _delegate_then_undelegate(run, delegator, validator_address):
        return False
    record = staking_steps.delegate(run, delegator, validator_address, parameters.delegation_amount)
    if not record.success:
        return False
    if not _delegation_visible(run, delegator, validator_address, _redelegated_total(run)):
        return False
    return run.verify_balance_within(
        delegator, parameters.shard, Decimal(0), parameters.balance_tolerance + reserved
    )


def redelegate_next_epoch(run: ScenarioRun) -> bool:
    """Delegate and undelegate, wait for the next epoch, then redelegate the locked tokens."""
    parameters = run.staking_parameters
    handle = staking_steps.acquire_validator(run)
    (delegator,) = run.provision("delegator")
    staking_steps.fund_validator(run, handle)
    run.fund(delegator, _with_fees(run, parameters.initial_delegation_amount, transactions=3))
    if not staking_steps.reuse_or_create_validator(run, handle):
        return False

    validator_address = handle.account.address
    if not _delegate_then_undelegate(run, delegator, validator_address):
        return False
    if run.wait_for_next_epoch(parameters.shard) is None:
        return False
    _LOGGER.info("Reached the next epoch, redelegating from %s", delegator.address)
    record = staking_steps.delegate(run, delegator, validator_address, parameters.delegation_amount)
    if not record.success:
        return False
    return _delegation_visible(run, delegator, validator_address, _redelegated_total(run))


def _delegate_then_undelegate(run: ScenarioRun, delegator: Account, validator_address: str) -> bool:
    parameters = run.staking_parameters
    initial = parameters.initial_delegation_amount
    if not staking_steps.delegate(run, delegator, validator_address, initial).success:
        return False
    if not _delegation_visible(run, delegator, validator_address, initial):
        return False
    undelegation = staking_steps.undelegate(
        run, delegator, validator_address, parameters.undelegation_amount
    )
    if not undelegation.success:
        return False
    return _undelegation_visible(run, delegator, validator_address, parameters.undelegation_amount)


def _delegation_visible(
    run: ScenarioRun, delegator: Account, validator_address: str, minimum: Decimal
) -> bool:
    def holds(delegation: DelegationInfo) -> bool:
        return delegation.amount >= minimum

    delegation = run.verify_delegation(delegator.address, validator_address, holds)
    return delegation is not None


def _undelegation_visible(
    run: ScenarioRun, delegator: Account, validator_address: str, amount: Decimal
) -> bool:
    def holds(delegation: DelegationInfo) -> bool:
        return sum(delegation.undelegations, Decimal(0)) >= amount

    return run.verify_delegation(delegator.address, validator_address, holds) is not None


def _send(
    run: ScenarioRun,
    sender: Account,
    receiver_address: str,
    *,
    nonce: int | None = None,
) -> TransactionRecord:
    parameters = run.transfer_parameters
    return run.transfer(
        sender,
        receiver_address,
        amount=parameters.amount,
        from_shard=parameters.from_shard,
        to_shard=parameters.to_shard,
        dialect=parameters.dialect,
        gas=parameters.gas,
        nonce=parameters.nonce if nonce is None else nonce,
        timeout_seconds=parameters.timeout_seconds,
        payload=parameters.payload,
    )


def _edit_changes(run: ScenarioRun) -> dict[str, str | Decimal]:
    parameters = run.staking_parameters
    return dict(parameters.edit.changes) or {"details": f"{parameters.validator.name} edited"}


def _with_fees(run: ScenarioRun, amount: Decimal, *, transactions: int) -> Decimal:
    return amount + run.staking_parameters.gas.fee * transactions


def _redelegated_total(run: ScenarioRun) -> Decimal:
    parameters = run.staking_parameters
    return (
        parameters.initial_delegation_amount
        - parameters.undelegation_amount
        + parameters.delegation_amount
    )

