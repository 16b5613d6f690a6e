"""Mapping from scenario kind to scenario definition."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from ledger_e2e_tester.scenario_ingestion.testcase_models import ScenarioKind

from . import scenario_definitions
from .scenario_lifecycle import ScenarioDefinition

SCENARIO_REGISTRY: Mapping[ScenarioKind, ScenarioDefinition] = MappingProxyType(
    {
        ScenarioKind.TRANSFER_STANDARD: scenario_definitions.standard_transfer,
        ScenarioKind.TRANSFER_SAME_ACCOUNT: scenario_definitions.same_account_transfer,
        ScenarioKind.TRANSFER_MULTIPLE_RECEIVERS: scenario_definitions.multiple_receivers_transfer,
        ScenarioKind.TRANSFER_MULTIPLE_RECEIVERS_INVALID_NONCE: (
            scenario_definitions.multiple_receivers_invalid_nonce
        ),
        ScenarioKind.TRANSFER_MULTIPLE_SENDERS: scenario_definitions.multiple_senders_transfer,
        ScenarioKind.VALIDATOR_CREATE_STANDARD: scenario_definitions.create_validator_standard,
        ScenarioKind.VALIDATOR_CREATE_INVALID_ADDRESS: (
            scenario_definitions.create_validator_invalid_address
        ),
        ScenarioKind.VALIDATOR_CREATE_ALREADY_EXISTS: (
            scenario_definitions.create_validator_already_exists
        ),
        ScenarioKind.VALIDATOR_CREATE_EXISTING_BLS_KEY: (
            scenario_definitions.create_validator_existing_bls_key
        ),
        ScenarioKind.VALIDATOR_EDIT_STANDARD: scenario_definitions.edit_validator_standard,
        ScenarioKind.VALIDATOR_EDIT_INVALID_ADDRESS: (
            scenario_definitions.edit_validator_invalid_address
        ),
        ScenarioKind.VALIDATOR_EDIT_NON_EXISTING: scenario_definitions.edit_validator_non_existing,
        ScenarioKind.DELEGATE_STANDARD: scenario_definitions.delegate_standard,
        ScenarioKind.DELEGATE_INVALID_ADDRESS: scenario_definitions.delegate_invalid_address,
        ScenarioKind.DELEGATE_NON_EXISTING: scenario_definitions.delegate_non_existing,
        ScenarioKind.UNDELEGATE_STANDARD: scenario_definitions.undelegate_standard,
        ScenarioKind.UNDELEGATE_INVALID_ADDRESS: scenario_definitions.undelegate_invalid_address,
        ScenarioKind.UNDELEGATE_NON_EXISTING: scenario_definitions.undelegate_non_existing,
        ScenarioKind.REDELEGATE_STANDARD: scenario_definitions.redelegate_standard,
        ScenarioKind.REDELEGATE_NEXT_EPOCH: scenario_definitions.redelegate_next_epoch,
    }
)

_MISSING = set(ScenarioKind) - set(SCENARIO_REGISTRY)
if _MISSING:
    raise RuntimeError(
        f"Scenario kinds without a definition: {', '.join(sorted(kind.value for kind in _MISSING))}"
    )


def definition_for(kind: ScenarioKind) -> ScenarioDefinition:
    return SCENARIO_REGISTRY[kind]
