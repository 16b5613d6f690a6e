"""Scenario ingestion exports."""

from .testcase_models import (
    EditParameters,
    ScenarioFamily,
    ScenarioKind,
    ScenarioParameters,
    ScenarioTestCase,
    StakingParameters,
    TestCaseLoadResult,
    TransferParameters,
    ValidatorParameters,
    parse_scenario_kind,
)
from .testcase_reader import TestCaseValidationError, load_testcases, read_testcase_file

__all__ = [
    "EditParameters",
    "ScenarioFamily",
    "ScenarioKind",
    "ScenarioParameters",
    "ScenarioTestCase",
    "StakingParameters",
    "TestCaseLoadResult",
    "TransferParameters",
    "ValidatorParameters",
    "parse_scenario_kind",
    "TestCaseValidationError",
    "load_testcases",
    "read_testcase_file",
]
