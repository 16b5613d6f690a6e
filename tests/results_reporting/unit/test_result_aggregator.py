"""Result aggregation tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from ledger_e2e_tester.results_reporting import aggregate_results
from ledger_fakes import transfer_testcase

STARTED = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _executed(name: str, *, result: bool, expected: bool = True):
    testcase = transfer_testcase(name, expected=expected)
    testcase.executed = True
    testcase.result = result
    return testcase


def test_test_cases_are_partitioned_in_one_pass() -> None:
    passed = _executed("passed", result=True)
    failed = _executed("failed", result=False)
    negative = _executed("negative", result=False, expected=False)
    dismissed = transfer_testcase("dismissed")
    dismissed.dismiss("Test case dismissed has the execute attribute set to false")

    results = aggregate_results(
        [passed, dismissed, failed, negative], STARTED, STARTED + timedelta(seconds=90)
    )

    assert results.executed == (passed, failed, negative)
    assert results.failed == (failed,)
    assert results.dismissed == (dismissed,)
    assert results.successful_count == 2
    assert results.failed_count == 1
    assert results.dismissed_count == 1
    assert results.total_count == 4
    assert results.duration == timedelta(seconds=90)
    assert results.has_failures is True


def test_empty_suite_has_no_failures() -> None:
    results = aggregate_results([], STARTED, STARTED)

    assert results.total_count == 0
    assert results.has_failures is False
