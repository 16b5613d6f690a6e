"""Run contract tests."""

from __future__ import annotations

import dataclasses

import pytest
from ledger_e2e_tester.run_execution import RunCollaborators, RunRequest
from ledger_fakes import FakeLedger


def test_run_request_defaults() -> None:
    request = RunRequest(config_path="config.yaml")

    assert request.testcases_path is None
    assert request.test_target is None
    assert request.export_path is None
    assert request.dry_run is False
    assert request.verbose is False
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.dry_run = True  # type: ignore[misc]


def test_collaborators_close_every_resource_in_order() -> None:
    ledger = FakeLedger()
    closed: list[str] = []
    collaborators = RunCollaborators(
        keyring=ledger,
        submitter=ledger,
        state_query=ledger,
        closers=(lambda: closed.append("rpc"), lambda: closed.append("keystore")),
    )

    collaborators.close()

    assert closed == ["rpc", "keystore"]
