"""Results reporting entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ledger_e2e_tester.scenario_ingestion.testcase_models import ScenarioTestCase


@dataclass(frozen=True)
class SuiteResults:
    """Partition of a suite run into executed, dismissed and failed test cases."""

    executed: tuple[ScenarioTestCase, ...]
    dismissed: tuple[ScenarioTestCase, ...]
    failed: tuple[ScenarioTestCase, ...]
    started_at: datetime
    finished_at: datetime

    @property
    def successful_count(self) -> int:
        return len(self.executed) - len(self.failed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def dismissed_count(self) -> int:
        return len(self.dismissed)

    @property
    def total_count(self) -> int:
        return len(self.executed) + len(self.dismissed)

    @property
    def duration(self) -> timedelta:
        return self.finished_at - self.started_at

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)
