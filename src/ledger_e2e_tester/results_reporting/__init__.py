"""Results reporting exports."""

from .console_report import render_report
from .csv_export import CSV_COLUMNS, ResultsExportError, export_results
from .report_models import SuiteResults
from .result_aggregator import aggregate_results

__all__ = [
    "render_report",
    "CSV_COLUMNS",
    "ResultsExportError",
    "export_results",
    "SuiteResults",
    "aggregate_results",
]
