"""Staking steps shared by the staking scenario definitions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from ledger_e2e_tester.funding.funding_account import FundingError
from ledger_e2e_tester.ledger_access.collaborator_protocols import (
    KeyringError,
    StakingOperation,
    StakingRequest,
    TransactionSubmissionError,
)
from ledger_e2e_tester.ledger_access.ledger_records import Account, TransactionRecord, ValidatorInfo
from ledger_e2e_tester.scenario_ingestion.testcase_models import ValidatorParameters

from .scenario_lifecycle import ScenarioEnvironment, ScenarioRun

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatorHandle:
    """Validator account used by a scenario; `reused` when it outlives earlier scenarios."""

    account: Account
    reused: bool


def validator_fields(validator: ValidatorParameters) -> dict[str, str | Decimal]:
    return {
        "name": validator.name,
        "identity": validator.identity,
        "website": validator.website,
        "security_contact": validator.security_contact,
        "details": validator.details,
        "commission_rate": validator.commission_rate,
        "max_commission_rate": validator.max_commission_rate,
        "max_change_rate": validator.max_change_rate,
        "min_self_delegation": validator.min_self_delegation,
        "max_total_delegation": validator.max_total_delegation,
    }


def changes_applied(changes: Mapping[str, str | Decimal]) -> Callable[[ValidatorInfo], bool]:
    """Predicate that holds once every edited field reports its new value."""

    def check(info: ValidatorInfo) -> bool:
        return all(info.field_value(name) == value for name, value in changes.items())

    return check


def acquire_validator(run: ScenarioRun) -> ValidatorHandle:
    """Reuse the long-lived validator when asked to, otherwise provision a new account."""
    parameters = run.staking_parameters
    reusable = run.environment.reusable_validator
    if parameters.reuse_existing_validator and reusable is not None:
        _LOGGER.info("Reusing validator %s (%s)", reusable.name, reusable.address)
        return ValidatorHandle(account=reusable, reused=True)
    (account,) = run.provision("validator")
    return ValidatorHandle(account=account, reused=False)


def fund_validator(run: ScenarioRun, handle: ValidatorHandle, *, transactions: int = 2) -> None:
    """Fund a new validator with its self delegation plus fees for `transactions` messages.

    The first two messages (create and disable) of a reused validator were
    paid for when it was created, so it only receives fees for the rest.
    """
    parameters = run.staking_parameters
    if handle.reused:
        extra = transactions - 2
        if extra > 0:
            run.fund(handle.account, parameters.gas.fee * extra)
        return
    run.fund(handle.account, parameters.validator.amount + parameters.gas.fee * transactions)


def create_validator(
    run: ScenarioRun,
    validator: Account,
    sender: Account | None = None,
    *,
    bls_public_key: str | None = None,
) -> TransactionRecord:
    """Submit a create-validator message for `validator`, signed by `sender` when given.

    A fresh BLS key is generated unless `bls_public_key` names one.
    """
    parameters = run.staking_parameters
    record = run.stake(
        StakingRequest(
            operation=StakingOperation.CREATE_VALIDATOR,
            sender=sender or validator,
            validator_address=validator.address,
            shard=parameters.shard,
            gas=parameters.gas,
            timeout_seconds=parameters.timeout_seconds,
            amount=parameters.validator.amount,
            validator_fields=validator_fields(parameters.validator),
            nonce=parameters.nonce,
            bls_public_key=bls_public_key,
        )
    )
    if record.success and run.scope.owns(validator):
        environment = run.environment
        run.scope.set_pre_release(
            validator, lambda account: disable_validator(environment, account, parameters.shard)
        )
    return record


def reuse_or_create_validator(run: ScenarioRun, handle: ValidatorHandle) -> bool:
    """Make sure the handle's validator exists on chain; returns whether it does."""
    address = handle.account.address
    if handle.reused:
        return run.verify_validator(address) is not None

    record = create_validator(run, handle.account)
    if not record.success:
        return False
    exists = run.verify_validator(address) is not None
    keep = run.staking_parameters.reuse_existing_validator
    if exists and keep and run.environment.reusable_validator is None:
        run.scope.detach(handle.account)
        run.environment.reusable_validator = handle.account
        run.environment.reusable_validator_shard = run.staking_parameters.shard
        _LOGGER.info("Keeping validator %s for later scenarios", address)
    return exists


def delegate(
    run: ScenarioRun,
    delegator: Account,
    validator_address: str,
    amount: Decimal,
    sender: Account | None = None,
) -> TransactionRecord:
    """Delegate `amount` from `delegator` to the validator."""
    parameters = run.staking_parameters
    _LOGGER.info("Delegating %s from %s to %s", amount, delegator.address, validator_address)
    return run.stake(
        StakingRequest(
            operation=StakingOperation.DELEGATE,
            sender=sender or delegator,
            validator_address=validator_address,
            shard=parameters.shard,
            gas=parameters.gas,
            timeout_seconds=parameters.timeout_seconds,
            delegator_address=delegator.address,
            amount=amount,
            nonce=parameters.nonce,
        )
    )


def undelegate(
    run: ScenarioRun,
    delegator: Account,
    validator_address: str,
    amount: Decimal,
    sender: Account | None = None,
) -> TransactionRecord:
    parameters = run.staking_parameters
    _LOGGER.info("Undelegating %s from %s at %s", amount, delegator.address, validator_address)
    return run.stake(
        StakingRequest(
            operation=StakingOperation.UNDELEGATE,
            sender=sender or delegator,
            validator_address=validator_address,
            shard=parameters.shard,
            gas=parameters.gas,
            timeout_seconds=parameters.timeout_seconds,
            delegator_address=delegator.address,
            amount=amount,
            nonce=parameters.nonce,
        )
    )


def edit_validator(
    run: ScenarioRun,
    validator: Account,
    changes: Mapping[str, str | Decimal],
    sender: Account | None = None,
) -> TransactionRecord:
    parameters = run.staking_parameters
    return run.stake(
        StakingRequest(
            operation=StakingOperation.EDIT_VALIDATOR,
            sender=sender or validator,
            validator_address=validator.address,
            shard=parameters.shard,
            gas=parameters.gas,
            timeout_seconds=parameters.timeout_seconds,
            validator_fields=dict(changes),
            nonce=parameters.nonce,
        )
    )


def disable_validator(environment: ScenarioEnvironment, validator: Account, shard: int) -> None:
    """Mark a validator inactive; teardown transaction, not recorded on the test case."""
    network = environment.configuration.network
    receipt = environment.submitter.submit_staking(
        StakingRequest(
            operation=StakingOperation.EDIT_VALIDATOR,
            sender=validator,
            validator_address=validator.address,
            shard=shard,
            gas=network.staking_gas,
            timeout_seconds=network.timeout_seconds,
            active=False,
        ),
        environment.network_context.current,
    )
    record = TransactionRecord.from_receipt(
        receipt,
        sender=validator.address,
        sender_shard=shard,
        receiver=validator.address,
        receiver_shard=shard,
    )
    if not record.success:
        raise TransactionSubmissionError(
            f"Disabling validator {validator.address} was rejected: {record.error}"
        )
    _LOGGER.info("Disabled validator %s (%s)", validator.name, validator.address)


def release_reusable_validator(environment: ScenarioEnvironment) -> list[str]:
    """Tear down the long-lived validator kept across scenarios; returns error messages."""
    validator = environment.reusable_validator
    if validator is None:
        return []
    environment.reusable_validator = None
    shard = environment.reusable_validator_shard
    errors: list[str] = []
    steps: list[tuple[str, Callable[[], object]]] = [
        ("disabling", lambda: disable_validator(environment, validator, shard)),
        ("returning funds from", lambda: environment.funding_account.sweep(validator, shard)),
    ]
    if environment.configuration.account.remove_empty:
        steps.append(("removing", lambda: environment.keyring.remove_account(validator)))
    for description, step in steps:
        try:
            step()
        except (FundingError, KeyringError, TransactionSubmissionError) as exc:
            message = f"Teardown failed while {description} validator {validator.address}: {exc}"
            _LOGGER.error(message)
            errors.append(message)
    return errors
