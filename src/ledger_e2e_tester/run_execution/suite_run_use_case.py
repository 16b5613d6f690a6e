"""Regression suite use-case service."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

from ledger_e2e_tester.configuration import ConfigurationError, load_configuration
from ledger_e2e_tester.configuration.runtime_settings import Configuration
from ledger_e2e_tester.funding import (
    FundingAccount,
    FundingError,
    FundingValidationError,
    compute_funding_plan,
)
from ledger_e2e_tester.ledger_access import (
    HmyCliKeyring,
    HmyCliTransactionSubmitter,
    JsonRpcStateQuery,
)
from ledger_e2e_tester.network_context import (
    ContextSetting,
    Dialect,
    NetworkContext,
    native_chain_id,
)
from ledger_e2e_tester.results_reporting import (
    ResultsExportError,
    aggregate_results,
    export_results,
    render_report,
)
from ledger_e2e_tester.scenario_ingestion import (
    ScenarioKind,
    ScenarioTestCase,
    StakingParameters,
    TestCaseValidationError,
    TransferParameters,
    load_testcases,
)
from ledger_e2e_tester.scenario_orchestration import (
    ScenarioEnvironment,
    definition_for,
    execute_scenario,
    release_reusable_validator,
)

from .run_contracts import (
    FundingRequirement,
    RunArtifacts,
    RunCollaborators,
    RunOutcome,
    RunRequest,
)

_LOGGER = logging.getLogger(__name__)
_PACKAGE_LOGGER = logging.getLogger("ledger_e2e_tester")

CollaboratorFactory = Callable[[Configuration, NetworkContext], RunCollaborators]


class RunExecutionError(Exception):
    """Raised when a suite run cannot be completed."""


def execute_regression_suite(
    request: RunRequest,
    *,
    collaborator_factory: CollaboratorFactory | None = None,
) -> RunOutcome:
    """Load the configuration and test cases, run every executable scenario and report.

    Scenarios run one after another; a failing scenario is recorded and the
    suite moves on. Dry runs report the funding each scenario needs without
    touching the network.
    """
    artifacts = _load_run_artifacts(request)
    configuration = artifacts.configuration
    if request.verbose or configuration.framework.verbose:
        _PACKAGE_LOGGER.setLevel(logging.DEBUG)

    executable = _dismiss_unexecutable(artifacts.testcases)
    started_at = datetime.now(UTC)
    if request.dry_run:
        requirements = _plan_dry_run(executable, configuration)
        results = aggregate_results(artifacts.testcases, started_at, datetime.now(UTC))
        return RunOutcome(
            results=results,
            report=render_report(results),
            export_path=None,
            dry_run=True,
            funding_requirements=requirements,
        )

    network_context = NetworkContext(
        ContextSetting(
            dialect=Dialect.NATIVE, chain_id=native_chain_id(configuration.network.name)
        )
    )
    factory = collaborator_factory or build_collaborators
    collaborators = factory(configuration, network_context)
    try:
        teardown_errors = _run_live(executable, configuration, collaborators, network_context)
    finally:
        collaborators.close()

    results = aggregate_results(artifacts.testcases, started_at, datetime.now(UTC))
    try:
        export_path = export_results(results, configuration.export)
    except ResultsExportError as exc:
        raise RunExecutionError(str(exc)) from exc
    return RunOutcome(
        results=results,
        report=render_report(results),
        export_path=export_path,
        dry_run=False,
        teardown_errors=tuple(teardown_errors),
    )


def build_collaborators(
    configuration: Configuration, network_context: NetworkContext
) -> RunCollaborators:
    """Wire the JSON-RPC state query and the `hmy` keyring and submitter."""
    network = configuration.network
    account = configuration.account
    state_query = JsonRpcStateQuery(
        network.endpoints, network_context, timeout_seconds=float(network.timeout_seconds)
    )
    return RunCollaborators(
        keyring=HmyCliKeyring(binary=network.hmy_binary, passphrase=account.passphrase),
        submitter=HmyCliTransactionSubmitter(
            network.endpoints,
            binary=network.hmy_binary,
            passphrase=account.passphrase,
            keystore_path=account.keystore_path,
        ),
        state_query=state_query,
        closers=(state_query.close,),
    )


def funding_requirement(testcase: ScenarioTestCase, fee_margin: Decimal) -> FundingRequirement:
    """Total funds one scenario draws from the funding account, per the allocator."""
    parameters = testcase.parameters
    if isinstance(parameters, TransferParameters):
        multiple = _transfer_multiple(testcase.kind, parameters)
        plan = compute_funding_plan(parameters.amount, multiple, fee_margin=fee_margin)
    elif isinstance(parameters, StakingParameters):
        amounts = _staking_amounts(testcase.kind, parameters)
        plan = compute_funding_plan(
            sum(amounts, Decimal(0)), fee_margin=fee_margin * len(amounts)
        )
    else:
        raise FundingValidationError(f"Test case {testcase.name} has no scenario parameters.")
    return FundingRequirement(testcase_name=testcase.name, scenario=testcase.scenario, plan=plan)


def _load_run_artifacts(request: RunRequest) -> RunArtifacts:
    try:
        configuration = load_configuration(request.config_path)
        configuration = _apply_overrides(configuration, request)
        testcases = load_testcases(
            configuration.framework.testcases_path,
            configuration.network,
            target=request.test_target,
        ).testcases
    except (ConfigurationError, TestCaseValidationError, OSError) as exc:
        raise RunExecutionError(str(exc)) from exc
    _LOGGER.info(
        "Loaded %d test case(s) from %s",
        len(testcases),
        configuration.framework.testcases_path,
    )
    return RunArtifacts(configuration=configuration, testcases=testcases)


def _apply_overrides(configuration: Configuration, request: RunRequest) -> Configuration:
    if request.testcases_path:
        configuration = dataclasses.replace(
            configuration,
            framework=dataclasses.replace(
                configuration.framework, testcases_path=Path(request.testcases_path)
            ),
        )
    if request.export_path:
        configuration = dataclasses.replace(
            configuration,
            export=dataclasses.replace(configuration.export, path=Path(request.export_path)),
        )
    return configuration


def _dismiss_unexecutable(
    testcases: tuple[ScenarioTestCase, ...],
) -> list[tuple[ScenarioTestCase, ScenarioKind]]:
    executable: list[tuple[ScenarioTestCase, ScenarioKind]] = []
    for testcase in testcases:
        kind = testcase.kind
        if kind is None:
            testcase.dismiss(f"Please specify a valid test type for your test case {testcase.name}")
        elif not testcase.execute:
            testcase.dismiss(
                f"Test case {testcase.name} has the execute attribute set to false"
            )
        else:
            executable.append((testcase, kind))
            continue
        _LOGGER.info("Dismissed %s: %s", testcase.name, testcase.dismissal)
    return executable


def _plan_dry_run(
    testcases: list[tuple[ScenarioTestCase, ScenarioKind]], configuration: Configuration
) -> tuple[FundingRequirement, ...]:
    requirements: list[FundingRequirement] = []
    for testcase, _kind in testcases:
        try:
            requirement = funding_requirement(testcase, configuration.funding.fee_margin)
        except FundingValidationError as exc:
            raise RunExecutionError(str(exc)) from exc
        _LOGGER.info(
            "%s (%s) needs %s from the funding account",
            testcase.name,
            testcase.scenario,
            requirement.plan.total_required,
        )
        testcase.dismiss(
            f"Dry run: {testcase.name} needs {requirement.plan.total_required} "
            "from the funding account"
        )
        requirements.append(requirement)
    return tuple(requirements)


def _run_live(
    testcases: list[tuple[ScenarioTestCase, ScenarioKind]],
    configuration: Configuration,
    collaborators: RunCollaborators,
    network_context: NetworkContext,
) -> list[str]:
    funding_account = FundingAccount(
        configuration.funding,
        submitter=collaborators.submitter,
        state_query=collaborators.state_query,
        network_context=network_context,
    )
    try:
        funding_account.verify_minimum_funds()
    except FundingError as exc:
        raise RunExecutionError(str(exc)) from exc

    environment = ScenarioEnvironment(
        configuration=configuration,
        keyring=collaborators.keyring,
        submitter=collaborators.submitter,
        state_query=collaborators.state_query,
        funding_account=funding_account,
        network_context=network_context,
    )
    try:
        for testcase, kind in testcases:
            _run_testcase(testcase, kind, environment)
    finally:
        teardown_errors = release_reusable_validator(environment)
    return teardown_errors


def _run_testcase(
    testcase: ScenarioTestCase, kind: ScenarioKind, environment: ScenarioEnvironment
) -> None:
    with _testcase_log_level(testcase.verbose):
        try:
            execute_scenario(testcase, environment, definition_for(kind))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            _LOGGER.exception("Unexpected failure while running %s", testcase.name)
            testcase.executed = True
            testcase.result = False
            testcase.finished_at = datetime.now(UTC)
            testcase.record_error(f"Unexpected failure: {exc}")


@contextmanager
def _testcase_log_level(verbose: bool) -> Iterator[None]:
    if not verbose:
        yield
        return
    previous = _PACKAGE_LOGGER.level
    _PACKAGE_LOGGER.setLevel(logging.DEBUG)
    try:
        yield
    finally:
        _PACKAGE_LOGGER.setLevel(previous)


def _transfer_multiple(kind: ScenarioKind | None, parameters: TransferParameters) -> int:
    if kind in {
        ScenarioKind.TRANSFER_MULTIPLE_RECEIVERS,
        ScenarioKind.TRANSFER_MULTIPLE_RECEIVERS_INVALID_NONCE,
    }:
        return parameters.receiver_count
    if kind == ScenarioKind.TRANSFER_MULTIPLE_SENDERS:
        return parameters.sender_count
    return 1


def _staking_amounts(kind: ScenarioKind | None, parameters: StakingParameters) -> list[Decimal]:
    fee = parameters.gas.fee
    validator = parameters.validator.amount
    delegation = parameters.delegation_amount
    initial = parameters.initial_delegation_amount
    shortfall = max(Decimal(0), delegation - parameters.undelegation_amount)
    amounts_by_kind = {
        ScenarioKind.VALIDATOR_CREATE_STANDARD: [validator + fee * 2],
        ScenarioKind.VALIDATOR_CREATE_INVALID_ADDRESS: [validator + fee, fee],
        ScenarioKind.VALIDATOR_CREATE_ALREADY_EXISTS: [validator * 2 + fee * 3],
        ScenarioKind.VALIDATOR_CREATE_EXISTING_BLS_KEY: [validator + fee * 2, validator + fee * 2],
        ScenarioKind.VALIDATOR_EDIT_STANDARD: [validator + fee * (2 + parameters.edit.repeat)],
        ScenarioKind.VALIDATOR_EDIT_INVALID_ADDRESS: [validator + fee * 2, fee],
        ScenarioKind.VALIDATOR_EDIT_NON_EXISTING: [fee],
        ScenarioKind.DELEGATE_STANDARD: [validator + fee * 2, delegation + fee],
        ScenarioKind.DELEGATE_INVALID_ADDRESS: [
            validator + fee * 2,
            delegation + fee,
            delegation + fee,
        ],
        ScenarioKind.DELEGATE_NON_EXISTING: [delegation + fee],
        ScenarioKind.UNDELEGATE_STANDARD: [validator + fee * 2, delegation + fee * 2],
        ScenarioKind.UNDELEGATE_INVALID_ADDRESS: [validator + fee * 2, delegation + fee, fee],
        ScenarioKind.UNDELEGATE_NON_EXISTING: [fee],
        ScenarioKind.REDELEGATE_STANDARD: [validator + fee * 2, initial + shortfall + fee * 3],
        ScenarioKind.REDELEGATE_NEXT_EPOCH: [validator + fee * 2, initial + fee * 3],
    }
    if kind is None or kind not in amounts_by_kind:
        raise FundingValidationError(f"Scenario {kind} does not use staking parameters.")
    return amounts_by_kind[kind]
