"""Run execution entities."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ledger_e2e_tester.configuration.runtime_settings import Configuration
from ledger_e2e_tester.funding.funding_allocator import FundingPlan
from ledger_e2e_tester.ledger_access.collaborator_protocols import (
    Keyring,
    StateQuery,
    TransactionSubmitter,
)
from ledger_e2e_tester.results_reporting.report_models import SuiteResults
from ledger_e2e_tester.scenario_ingestion.testcase_models import ScenarioTestCase


@dataclass(frozen=True)
class RunRequest:  # pylint: disable=too-many-instance-attributes
    """Input contract for executing one suite run."""

    config_path: str
    testcases_path: str | None = None
    test_target: str | None = None
    export_path: str | None = None
    dry_run: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class FundingRequirement:
    """Funds a scenario draws from the funding account, reported by dry runs."""

    testcase_name: str
    scenario: str
    plan: FundingPlan


@dataclass(frozen=True)
class RunOutcome:
    """Output contract for one completed suite run."""

    results: SuiteResults
    report: str
    export_path: Path | None
    dry_run: bool
    funding_requirements: tuple[FundingRequirement, ...] = ()
    teardown_errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class RunArtifacts:
    """Loaded domain artifacts required during run execution."""

    configuration: Configuration
    testcases: tuple[ScenarioTestCase, ...]


@dataclass(frozen=True)
class RunCollaborators:
    """Ledger collaborators for one live run; `closers` release their resources."""

    keyring: Keyring
    submitter: TransactionSubmitter
    state_query: StateQuery
    closers: tuple[Callable[[], None], ...] = field(default_factory=tuple)

    def close(self) -> None:
        for closer in self.closers:
            closer()
