"""Scenario orchestration exports."""

from .scenario_lifecycle import (
    AccountScope,
    LifecycleError,
    ScenarioAborted,
    ScenarioDefinition,
    ScenarioEnvironment,
    ScenarioRun,
    ScenarioState,
    account_name,
    execute_scenario,
)
from .scenario_registry import SCENARIO_REGISTRY, definition_for
from .staking_steps import release_reusable_validator

__all__ = [
    "AccountScope",
    "LifecycleError",
    "ScenarioAborted",
    "ScenarioDefinition",
    "ScenarioEnvironment",
    "ScenarioRun",
    "ScenarioState",
    "account_name",
    "execute_scenario",
    "SCENARIO_REGISTRY",
    "definition_for",
    "release_reusable_validator",
]
