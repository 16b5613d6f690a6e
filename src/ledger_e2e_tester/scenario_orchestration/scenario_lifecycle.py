"""Per-scenario lifecycle, account scoping and execution."""

from __future__ import annotations

import hashlib
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from types import TracebackType
from typing import NoReturn, TypeVar

from ledger_e2e_tester.configuration.runtime_settings import Configuration, GasSettings, RetryPolicy
from ledger_e2e_tester.funding.funding_account import FundingAccount, FundingError
from ledger_e2e_tester.funding.funding_allocator import (
    FundingPlan,
    FundingValidationError,
    compute_funding_plan,
)
from ledger_e2e_tester.ledger_access.collaborator_protocols import (
    Keyring,
    KeyringError,
    StakingRequest,
    StateQuery,
    StateQueryError,
    TransactionSubmissionError,
    TransactionSubmitter,
    TransferRequest,
)
from ledger_e2e_tester.ledger_access.ledger_records import (
    Account,
    DelegationInfo,
    TransactionRecord,
    ValidatorInfo,
)
from ledger_e2e_tester.network_context.chain_ids import Dialect, derive_chain_id
from ledger_e2e_tester.network_context.context_switch import ContextSetting, NetworkContext
from ledger_e2e_tester.scenario_ingestion.testcase_models import (
    ScenarioTestCase,
    StakingParameters,
    TransferParameters,
)
from ledger_e2e_tester.state_convergence.retry_queries import (
    ConvergenceError,
    Sleeper,
    await_delegation,
    await_expected_balance,
    await_next_epoch,
    await_non_zero_balance,
    await_validator,
    capture_epoch,
    verify_balance_within,
)

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ReleaseHook = Callable[[Account], object]
ScenarioDefinition = Callable[["ScenarioRun"], bool]


class ScenarioState(str, Enum):
    """Lifecycle states of one scenario run."""

    CREATED = "created"
    PROVISIONING = "provisioning"
    FUNDING = "funding"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    TEARING_DOWN = "tearing_down"
    FINISHED = "finished"
    ABORTED = "aborted"


_TRANSITIONS: dict[ScenarioState, frozenset[ScenarioState]] = {
    ScenarioState.CREATED: frozenset(
        {ScenarioState.PROVISIONING, ScenarioState.FUNDING, ScenarioState.TEARING_DOWN}
    ),
    ScenarioState.PROVISIONING: frozenset({ScenarioState.FUNDING, ScenarioState.TEARING_DOWN}),
    ScenarioState.FUNDING: frozenset(
        {ScenarioState.EXECUTING, ScenarioState.VERIFYING, ScenarioState.TEARING_DOWN}
    ),
    ScenarioState.EXECUTING: frozenset({ScenarioState.VERIFYING, ScenarioState.TEARING_DOWN}),
    ScenarioState.VERIFYING: frozenset({ScenarioState.EXECUTING, ScenarioState.TEARING_DOWN}),
    ScenarioState.TEARING_DOWN: frozenset({ScenarioState.FINISHED}),
    ScenarioState.FINISHED: frozenset(),
    ScenarioState.ABORTED: frozenset(),
}


class LifecycleError(Exception):
    """Raised on an illegal lifecycle transition."""


class ScenarioAborted(Exception):
    """Raised to stop a scenario after an unrecoverable error."""

    def __init__(self, message: str, account: Account | None = None) -> None:
        super().__init__(message)
        self.account = account


def account_name(testcase_name: str, role: str) -> str:
    """Deterministic keystore name for a scenario role.

    The digest of the full test case name keeps names unique when two test
    case names share the same slug.
    """
    slug = re.sub(r"[^a-z0-9]+", "_", testcase_name.lower()).strip("_")[:40] or "scenario"
    role_slug = re.sub(r"[^a-z0-9]+", "_", role.lower()).strip("_") or "account"
    digest = hashlib.sha1(testcase_name.encode("utf-8")).hexdigest()[:8]
    return f"{slug}_{role_slug}_{digest}"


@dataclass
class ScenarioEnvironment:  # pylint: disable=too-many-instance-attributes
    """Collaborators and shared state available to every scenario of a suite run."""

    configuration: Configuration
    keyring: Keyring
    submitter: TransactionSubmitter
    state_query: StateQuery
    funding_account: FundingAccount
    network_context: NetworkContext
    sleep: Sleeper = time.sleep
    reusable_validator: Account | None = None
    reusable_validator_shard: int = 0


@dataclass
class _ScopedAccount:
    account: Account
    shard: int
    pre_release: ReleaseHook | None
    released: bool = False


class AccountScope:
    """Owns the ephemeral accounts of one scenario and releases each exactly once.

    Release runs the optional pre-release hook, returns the remaining balance
    to the funding account and removes the key when configured to. A failing
    release step is logged and recorded on the test case; the remaining steps
    and accounts are still released.
    """

    def __init__(self, testcase: ScenarioTestCase, environment: ScenarioEnvironment) -> None:
        self._testcase = testcase
        self._environment = environment
        self._accounts: list[_ScopedAccount] = []

    def __enter__(self) -> AccountScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release_all()

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(entry.account for entry in self._accounts)

    def register(
        self, account: Account, shard: int, pre_release: ReleaseHook | None = None
    ) -> None:
        self._accounts.append(_ScopedAccount(account=account, shard=shard, pre_release=pre_release))

    def owns(self, account: Account) -> bool:
        return any(entry.account is account for entry in self._accounts)

    def detach(self, account: Account) -> None:
        """Stop managing `account`; it outlives this scenario."""
        self._accounts = [entry for entry in self._accounts if entry.account is not account]

    def set_pre_release(self, account: Account, pre_release: ReleaseHook) -> None:
        for entry in self._accounts:
            if entry.account is account:
                entry.pre_release = pre_release
                return
        raise LifecycleError(f"Account {account.name} is not owned by this scenario.")

    def release(self, account: Account) -> None:
        """Release one account now instead of at scope exit."""
        for entry in self._accounts:
            if entry.account is account:
                self._release(entry)
                return
        raise LifecycleError(f"Account {account.name} is not owned by this scenario.")

    def release_all(self) -> None:
        for entry in reversed(self._accounts):
            self._release(entry)

    def _release(self, entry: _ScopedAccount) -> None:
        if entry.released:
            return
        entry.released = True
        account = entry.account
        _LOGGER.info("Tearing down account %s (%s)", account.name, account.address)
        if entry.pre_release is not None:
            self._attempt(f"pre-release step for {account.name}", entry.pre_release, account)
        self._attempt(
            f"returning funds from {account.name}",
            lambda target: self._environment.funding_account.sweep(target, entry.shard),
            account,
        )
        if self._environment.configuration.account.remove_empty:
            self._attempt(
                f"removing account {account.name}",
                self._environment.keyring.remove_account,
                account,
            )

    def _attempt(
        self, description: str, step: Callable[[Account], object], account: Account
    ) -> None:
        try:
            step(account)
        except (
            FundingError,
            KeyringError,
            StateQueryError,
            TransactionSubmissionError,
        ) as exc:
            message = f"Teardown failed while {description} ({account.address}): {exc}"
            _LOGGER.error(message)
            self._testcase.record_error(message)


class ScenarioRun:
    """Drives one scenario through its lifecycle.

    Operations move the run into the matching state: `provision` into
    provisioning, `fund` into funding, submissions into executing and
    `verify_*` calls into verifying.
    """

    def __init__(self, testcase: ScenarioTestCase, environment: ScenarioEnvironment) -> None:
        self.testcase = testcase
        self.environment = environment
        self.state = ScenarioState.CREATED
        self.scope = AccountScope(testcase, environment)
        self.abort_message: str | None = None

    @property
    def transfer_parameters(self) -> TransferParameters:
        parameters = self.testcase.parameters
        if not isinstance(parameters, TransferParameters):
            raise LifecycleError(f"{self.testcase.name} has no transfer parameters.")
        return parameters

    @property
    def staking_parameters(self) -> StakingParameters:
        parameters = self.testcase.parameters
        if not isinstance(parameters, StakingParameters):
            raise LifecycleError(f"{self.testcase.name} has no staking parameters.")
        return parameters

    @property
    def balance_policy(self) -> RetryPolicy:
        return self._parameter_retry() or self.environment.configuration.network.balance_retry

    @property
    def staking_policy(self) -> RetryPolicy:
        return self._parameter_retry() or self.environment.configuration.network.retry

    def transition(self, target: ScenarioState) -> None:
        if target == ScenarioState.ABORTED:
            self.state = target
            return
        if target not in _TRANSITIONS[self.state]:
            raise LifecycleError(
                f"{self.testcase.name}: illegal transition {self.state.value} -> {target.value}"
            )
        _LOGGER.debug("%s: %s -> %s", self.testcase.name, self.state.value, target.value)
        self.state = target

    def abort(self, message: str, account: Account | None = None) -> NoReturn:
        """Record `message`, move to the aborted state and stop the scenario."""
        if account is not None:
            message = f"{message} (account {account.name}, address {account.address})"
        _LOGGER.error("%s: %s", self.testcase.name, message)
        self.testcase.record_error(message)
        self.abort_message = message
        self.transition(ScenarioState.ABORTED)
        raise ScenarioAborted(message, account)

    def provision(self, *roles: str, shard: int | None = None) -> tuple[Account, ...]:
        """Create one ephemeral account per role and register it for teardown."""
        self._enter(ScenarioState.PROVISIONING)
        target_shard = self._default_shard() if shard is None else shard
        accounts: list[Account] = []
        for role in roles:
            name = account_name(self.testcase.name, role)
            try:
                account = self.environment.keyring.create_account(name)
            except KeyringError as exc:
                self.abort(f"Failed to create the {role} account {name}: {exc}")
            account.shard = target_shard
            self.scope.register(account, target_shard)
            _LOGGER.info("Generated %s account %s (%s)", role, account.name, account.address)
            accounts.append(account)
        return tuple(accounts)

    def fund(
        self, account: Account, amount: Decimal, multiple: int = 1, *, shard: int | None = None
    ) -> FundingPlan:
        """Fund `account` with `amount × multiple` plus the fee margin."""
        self._enter(ScenarioState.FUNDING)
        target_shard = self._default_shard() if shard is None else shard
        try:
            plan = compute_funding_plan(
                amount,
                multiple,
                fee_margin=self.environment.configuration.funding.fee_margin,
            )
            self.environment.funding_account.fund(account, target_shard, plan.shard_amount)
        except (FundingValidationError, FundingError) as exc:
            self.abort(f"Funding failed: {exc}", account)
        return plan

    def balance(self, account: Account, shard: int | None = None) -> Decimal:
        target_shard = self._default_shard() if shard is None else shard
        try:
            balance = self.environment.state_query.balance(account.address, target_shard)
        except StateQueryError as exc:
            self.abort(f"Unable to read the balance in shard {target_shard}: {exc}", account)
        account.balance = balance
        _LOGGER.info(
            "Account %s (%s) has a balance of %s in shard %d",
            account.name,
            account.address,
            balance,
            target_shard,
        )
        return balance

    def transfer(  # pylint: disable=too-many-arguments
        self,
        sender: Account,
        receiver_address: str,
        *,
        amount: Decimal,
        from_shard: int,
        to_shard: int,
        dialect: Dialect = Dialect.NATIVE,
        gas: GasSettings | None = None,
        nonce: int | None = None,
        timeout_seconds: int | None = None,
        payload: str = "",
    ) -> TransactionRecord:
        """Submit a transfer; eth-dialect transfers run under the shard's eth chain id."""
        self._enter(ScenarioState.EXECUTING)
        network = self.environment.configuration.network
        request = TransferRequest(
            sender=sender,
            receiver_address=receiver_address,
            amount=amount,
            from_shard=from_shard,
            to_shard=to_shard,
            gas=gas or network.gas,
            timeout_seconds=timeout_seconds or network.timeout_seconds,
            nonce=nonce,
            payload=payload,
        )

        def submit(active: ContextSetting) -> TransactionRecord:
            receipt = self.environment.submitter.submit_transfer(request, active)
            return TransactionRecord.from_receipt(
                receipt,
                sender=sender.address,
                sender_shard=from_shard,
                receiver=receiver_address,
                receiver_shard=to_shard,
            )

        context = self.environment.network_context
        try:
            if dialect == Dialect.ETH:
                record = context.with_context(
                    Dialect.ETH, derive_chain_id(network.name, from_shard), submit
                )
            else:
                record = submit(context.current)
        except TransactionSubmissionError as exc:
            self.testcase.transactions.append(
                TransactionRecord.failed(
                    sender=sender.address,
                    sender_shard=from_shard,
                    receiver=receiver_address,
                    receiver_shard=to_shard,
                    error=exc,
                )
            )
            self.abort(f"Transfer submission failed: {exc}", sender)

        self.testcase.transactions.append(record)
        _LOGGER.info(
            "Sent %s from %s (shard %d) to %s (shard %d) - tx %s, successful: %s",
            amount,
            sender.address,
            from_shard,
            receiver_address,
            to_shard,
            record.transaction_hash,
            record.success,
        )
        return record

    def stake(self, request: StakingRequest) -> TransactionRecord:
        """Submit a staking message under the current (native) context."""
        self._enter(ScenarioState.EXECUTING)
        receiver = request.validator_address
        try:
            receipt = self.environment.submitter.submit_staking(
                request, self.environment.network_context.current
            )
        except TransactionSubmissionError as exc:
            self.testcase.transactions.append(
                TransactionRecord.failed(
                    sender=request.sender.address,
                    sender_shard=request.shard,
                    receiver=receiver,
                    receiver_shard=request.shard,
                    error=exc,
                )
            )
            self.abort(f"{request.operation.value} submission failed: {exc}", request.sender)

        record = TransactionRecord.from_receipt(
            receipt,
            sender=request.sender.address,
            sender_shard=request.shard,
            receiver=receiver,
            receiver_shard=request.shard,
        )
        self.testcase.transactions.append(record)
        _LOGGER.info(
            "Performed %s from %s for validator %s - tx %s, successful: %s",
            request.operation.value,
            request.sender.address,
            receiver,
            record.transaction_hash,
            record.success,
        )
        wait_seconds = self.environment.configuration.network.staking_wait_seconds
        if wait_seconds > 0:
            self.environment.sleep(wait_seconds)
        return record

    def verify_non_zero_balance(self, account: Account, shard: int) -> Decimal | None:
        return self._verifying(
            lambda: await_non_zero_balance(
                self.environment.state_query,
                account.address,
                shard,
                self.balance_policy,
                sleep=self.environment.sleep,
            )
        )

    def verify_expected_balance(
        self, account: Account, shard: int, expected: Decimal
    ) -> Decimal | None:
        return self._verifying(
            lambda: await_expected_balance(
                self.environment.state_query,
                account.address,
                shard,
                expected,
                self.balance_policy,
                sleep=self.environment.sleep,
            )
        )

    def verify_balance_within(
        self, account: Account, shard: int, expected: Decimal, threshold: Decimal
    ) -> bool:
        within = self._verifying(
            lambda: verify_balance_within(
                self.environment.state_query, account.address, shard, expected, threshold
            )
        )
        return bool(within)

    def verify_validator(
        self, address: str, predicate: Callable[[ValidatorInfo], bool] | None = None
    ) -> ValidatorInfo | None:
        return self._verifying(
            lambda: await_validator(
                self.environment.state_query,
                address,
                self.staking_policy,
                predicate=predicate,
                sleep=self.environment.sleep,
            )
        )

    def verify_delegation(
        self,
        delegator_address: str,
        validator_address: str,
        predicate: Callable[[DelegationInfo], bool] | None = None,
    ) -> DelegationInfo | None:
        return self._verifying(
            lambda: await_delegation(
                self.environment.state_query,
                delegator_address,
                validator_address,
                self.staking_policy,
                predicate=predicate,
                sleep=self.environment.sleep,
            )
        )

    def wait_for_next_epoch(self, shard: int) -> int | None:
        """Capture the current epoch and block until the shard moves past it."""
        epoch_wait = self.environment.configuration.network.epoch_wait

        def wait() -> int:
            baseline = capture_epoch(
                self.environment.state_query,
                shard,
                self.staking_policy,
                sleep=self.environment.sleep,
            )
            _LOGGER.info("Current epoch of shard %d: %d", shard, baseline)
            return await_next_epoch(
                self.environment.state_query,
                shard,
                baseline,
                wait_seconds=epoch_wait.wait_seconds,
                timeout_seconds=epoch_wait.timeout_seconds,
                sleep=self.environment.sleep,
            )

        return self._verifying(wait)

    def begin_teardown(self) -> None:
        if self.state != ScenarioState.ABORTED:
            self.transition(ScenarioState.TEARING_DOWN)

    def finish(self) -> None:
        if self.state != ScenarioState.ABORTED:
            self.transition(ScenarioState.FINISHED)

    def _verifying(self, check: Callable[[], T]) -> T | None:
        self._enter(ScenarioState.VERIFYING)
        try:
            return check()
        except (ConvergenceError, StateQueryError) as exc:
            message = f"Verification failed: {exc}"
            _LOGGER.warning("%s: %s", self.testcase.name, message)
            self.testcase.record_error(message)
            return None

    def _enter(self, target: ScenarioState) -> None:
        if self.state == ScenarioState.ABORTED:
            raise ScenarioAborted(self.abort_message or "Scenario was aborted.")
        if self.state != target:
            self.transition(target)

    def _default_shard(self) -> int:
        parameters = self.testcase.parameters
        if isinstance(parameters, TransferParameters):
            return parameters.from_shard
        if isinstance(parameters, StakingParameters):
            return parameters.shard
        return 0

    def _parameter_retry(self) -> RetryPolicy | None:
        parameters = self.testcase.parameters
        if isinstance(parameters, (TransferParameters, StakingParameters)):
            return parameters.retry
        return None


def execute_scenario(
    testcase: ScenarioTestCase,
    environment: ScenarioEnvironment,
    definition: ScenarioDefinition,
) -> ScenarioTestCase:
    """Run `definition` for `testcase` and record the outcome on the test case.

    The result is True only when the definition's verifications held and every
    submitted transaction succeeded. Accounts are torn down on every path.
    """
    testcase.executed = True
    testcase.started_at = datetime.now(UTC)
    _LOGGER.info("Running %s (%s)", testcase.name, testcase.scenario)
    run = ScenarioRun(testcase, environment)
    verified = False
    try:
        with run.scope:
            try:
                verified = definition(run)
            finally:
                run.begin_teardown()
        run.finish()
    except ScenarioAborted as exc:
        _LOGGER.debug("%s stopped early: %s", testcase.name, exc)
    except LifecycleError as exc:
        testcase.record_error(str(exc))
        run.transition(ScenarioState.ABORTED)

    aborted = run.state == ScenarioState.ABORTED
    testcase.result = (
        not aborted and verified and all(record.success for record in testcase.transactions)
    )
    testcase.finished_at = datetime.now(UTC)
    _LOGGER.info(
        "%s finished: result %s, expected %s%s",
        testcase.name,
        testcase.result,
        testcase.expected,
        " (aborted)" if aborted else "",
    )
    return testcase
