"""Suite result aggregation."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ledger_e2e_tester.scenario_ingestion.testcase_models import ScenarioTestCase

from .report_models import SuiteResults


def aggregate_results(
    testcases: Iterable[ScenarioTestCase],
    started_at: datetime,
    finished_at: datetime,
) -> SuiteResults:
    """Partition test cases in one pass.

    A test case that did not execute is dismissed; an executed one fails when
    its result differs from the declared expectation.
    """
    executed: list[ScenarioTestCase] = []
    dismissed: list[ScenarioTestCase] = []
    failed: list[ScenarioTestCase] = []
    for testcase in testcases:
        if not testcase.executed:
            dismissed.append(testcase)
            continue
        executed.append(testcase)
        if not testcase.successful:
            failed.append(testcase)
    return SuiteResults(
        executed=tuple(executed),
        dismissed=tuple(dismissed),
        failed=tuple(failed),
        started_at=started_at,
        finished_at=finished_at,
    )
