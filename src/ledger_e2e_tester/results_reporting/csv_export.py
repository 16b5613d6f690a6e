"""Result export to CSV."""

from __future__ import annotations

import csv
import logging
from datetime import datetime
from pathlib import Path

from ledger_e2e_tester.configuration.runtime_settings import ExportSettings
from ledger_e2e_tester.scenario_ingestion.testcase_models import ScenarioTestCase

from .report_models import SuiteResults

_LOGGER = logging.getLogger(__name__)

CSV_COLUMNS = (
    "Test Case",
    "Scenario",
    "Status",
    "Result",
    "Expected",
    "Transactions",
    "Transaction Hashes",
    "Duration",
    "Errors",
)


class ResultsExportError(Exception):
    """Raised when the result export cannot be written."""


def export_results(
    results: SuiteResults, export_settings: ExportSettings, *, timestamp: datetime | None = None
) -> Path | None:
    """Write the results in the configured format; returns None when the format is not supported.

    Raises:
      ResultsExportError: If the export file cannot be written.
    """
    if export_settings.format != "csv":
        _LOGGER.warning(
            "Export format %r is not supported, skipping the result export", export_settings.format
        )
        return None

    moment = timestamp or results.finished_at
    destination = export_settings.path / f"results-{moment.strftime('%Y-%m-%dT%H-%M-%S')}.csv"
    try:
        export_settings.path.mkdir(parents=True, exist_ok=True)
        with destination.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.writer(handle)
            writer.writerow(CSV_COLUMNS)
            for testcase in results.executed:
                writer.writerow(_executed_row(testcase))
            for testcase in results.dismissed:
                writer.writerow(_dismissed_row(testcase))
            writer.writerow(())
            writer.writerow(("Successful", results.successful_count))
            writer.writerow(("Failed", results.failed_count))
            writer.writerow(("Dismissed", results.dismissed_count))
            writer.writerow(("Duration", str(results.duration)))
    except OSError as exc:
        raise ResultsExportError(f"Failed to write results to {destination}: {exc}") from exc
    _LOGGER.info("Exported test case results to %s", destination)
    return destination


def _executed_row(testcase: ScenarioTestCase) -> tuple[str, ...]:
    duration = testcase.duration
    return (
        testcase.name,
        testcase.scenario,
        "success" if testcase.successful else "failed",
        str(testcase.result).lower(),
        str(testcase.expected).lower(),
        str(len(testcase.transactions)),
        " ".join(tx.transaction_hash or "-" for tx in testcase.transactions),
        str(duration) if duration is not None else "",
        " | ".join(testcase.errors),
    )


def _dismissed_row(testcase: ScenarioTestCase) -> tuple[str, ...]:
    return (
        testcase.name,
        testcase.scenario,
        "dismissed",
        "",
        str(testcase.expected).lower(),
        "0",
        "",
        "",
        testcase.dismissal,
    )
