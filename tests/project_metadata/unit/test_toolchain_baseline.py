"""Tests for repository toolchain baseline configuration."""

from __future__ import annotations

import tomllib
from pathlib import Path


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _pyproject() -> dict:
    pyproject_path = _project_root() / "pyproject.toml"
    return tomllib.loads(pyproject_path.read_text(encoding="utf-8"))


def test_project_uses_python_311_baseline_in_pyproject() -> None:
    pyproject = _pyproject()

    assert pyproject["project"]["requires-python"] == ">=3.11"
    assert pyproject["tool"]["ruff"]["target-version"] == "py311"
    assert pyproject["tool"]["mypy"]["python_version"] == "3.11"


def test_project_uses_uv_style_metadata_without_poetry() -> None:
    pyproject = _pyproject()
    dev_dependencies = pyproject["dependency-groups"]["dev"]

    assert "black" not in dev_dependencies
    assert "black" not in pyproject["tool"]
    assert "poetry" not in pyproject["tool"]
    assert pyproject["build-system"]["build-backend"] != "poetry.core.masonry.api"


def test_runtime_dependencies_and_console_script_are_declared() -> None:
    pyproject = _pyproject()
    dependencies = " ".join(pyproject["project"]["dependencies"])

    for requirement in ("click", "PyYAML", "httpx"):
        assert requirement in dependencies
    assert pyproject["project"]["scripts"]["ledger-e2e-tester"] == "ledger_e2e_tester.cli:main"


def test_dry_run_is_documented() -> None:
    project_root = _project_root()

    for path in (
        project_root / "README.md",
        project_root / "src" / "ledger_e2e_tester" / "cli.py",
    ):
        assert "--dry-run" in path.read_text(encoding="utf-8")
