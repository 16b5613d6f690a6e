"""Declarative test case ingestion and validation service."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_e2e_tester.configuration.runtime_settings import (
    GasSettings,
    NetworkSettings,
    RetryPolicy,
)
from ledger_e2e_tester.network_context.chain_ids import Dialect

from .testcase_models import (
    DECIMAL_VALIDATOR_FIELDS,
    EDITABLE_VALIDATOR_FIELDS,
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

TESTCASE_SUFFIXES = (".yaml", ".yml")


class TestCaseValidationError(Exception):
    """Raised when a test case file is invalid."""

    __test__ = False


def load_testcases(
    testcases_path: Path | str,
    network: NetworkSettings,
    *,
    target: str | None = None,
) -> TestCaseLoadResult:
    """Load every test case file below `testcases_path` in sorted path order.

    Args:
      testcases_path: Directory containing YAML test case files, or a single file.
      network: Network settings supplying gas and timeout defaults.
      target: Optional relative path prefix restricting which files are loaded.

    Raises:
      TestCaseValidationError: If the directory is missing, a file is malformed
        or two test cases share a name.
    """
    root = Path(testcases_path)
    if not root.exists():
        raise TestCaseValidationError(f"Test case path not found: {root}")

    files = [root] if root.is_file() else _discover_files(root, target)
    testcases: list[ScenarioTestCase] = []
    seen_names: dict[str, Path] = {}
    for file_path in files:
        testcase = read_testcase_file(file_path, network)
        previous = seen_names.get(testcase.name)
        if previous is not None:
            raise TestCaseValidationError(
                f"Duplicate test case name '{testcase.name}' in {previous} and {file_path}."
            )
        seen_names[testcase.name] = file_path
        testcases.append(testcase)
    return TestCaseLoadResult(testcases=tuple(testcases))


def read_testcase_file(file_path: Path, network: NetworkSettings) -> ScenarioTestCase:
    """Parse one YAML test case document."""
    try:
        parsed = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise TestCaseValidationError(f"{file_path}: failed to parse YAML: {exc}") from exc
    if not isinstance(parsed, Mapping):
        raise TestCaseValidationError(f"{file_path}: test case root must be a mapping.")

    label = str(file_path)
    name = _require_text(parsed.get("name"), "name", label)
    scenario = _require_text(parsed.get("scenario"), "scenario", label)
    kind = parse_scenario_kind(scenario)
    raw_parameters = _optional_mapping(parsed.get("parameters"), "parameters", label)

    parameters: ScenarioParameters | None = None
    if kind is not None:
        if kind.family == ScenarioFamily.TRANSFER:
            parameters = _parse_transfer_parameters(raw_parameters, network, label)
        else:
            parameters = _parse_staking_parameters(raw_parameters, network, name, label, kind)

    return ScenarioTestCase(
        name=name,
        scenario=scenario,
        kind=kind,
        execute=_parse_bool(parsed.get("execute"), "execute", label, default=True),
        expected=_parse_bool(parsed.get("expected"), "expected", label, default=True),
        parameters=parameters,
        verbose=_parse_bool(parsed.get("verbose"), "verbose", label, default=False),
        source_path=file_path,
    )


def _discover_files(root: Path, target: str | None) -> list[Path]:
    files = sorted(
        path for path in root.rglob("*") if path.is_file() and path.suffix in TESTCASE_SUFFIXES
    )
    if target:
        prefix = target.strip().strip("/")
        files = [path for path in files if path.relative_to(root).as_posix().startswith(prefix)]
    return files


def _parse_transfer_parameters(
    raw: Mapping[str, Any], network: NetworkSettings, label: str
) -> TransferParameters:
    from_shard = _parse_shard(raw.get("from_shard", 0), "from_shard", label)
    dialect_raw = str(raw.get("rpc_prefix", Dialect.NATIVE.value)).strip().lower()
    try:
        dialect = Dialect(dialect_raw)
    except ValueError as exc:
        raise TestCaseValidationError(
            f"{label}: parameters.rpc_prefix must be one of "
            f"{', '.join(item.value for item in Dialect)}."
        ) from exc
    payload = raw.get("data", "")
    if payload is None:
        payload = ""
    if not isinstance(payload, str):
        raise TestCaseValidationError(f"{label}: parameters.data must be a string.")
    return TransferParameters(
        amount=_parse_decimal(raw.get("amount"), "amount", label, positive=True),
        from_shard=from_shard,
        to_shard=_parse_shard(raw.get("to_shard", from_shard), "to_shard", label),
        receiver_count=_parse_positive_int(raw.get("receivers", 1), "receivers", label),
        sender_count=_parse_positive_int(raw.get("senders", 1), "senders", label),
        dialect=dialect,
        gas=_parse_gas(raw.get("gas"), network.gas, label),
        nonce=_parse_nonce(raw.get("nonce"), label),
        timeout_seconds=_parse_positive_int(
            raw.get("timeout", network.timeout_seconds), "timeout", label
        ),
        payload=payload,
        retry=_parse_retry(raw.get("retry"), label),
    )


def _parse_staking_parameters(
    raw: Mapping[str, Any],
    network: NetworkSettings,
    testcase_name: str,
    label: str,
    kind: ScenarioKind,
) -> StakingParameters:
    validator = _parse_validator(
        _optional_mapping(raw.get("validator"), "validator", label), testcase_name, label
    )
    delegation_amount = _parse_decimal(
        raw.get("delegation_amount", "1000"), "delegation_amount", label, positive=True
    )
    return StakingParameters(
        shard=_parse_shard(raw.get("shard", raw.get("from_shard", 0)), "shard", label),
        validator=validator,
        delegation_amount=delegation_amount,
        undelegation_amount=_parse_decimal(
            raw.get("undelegation_amount", delegation_amount),
            "undelegation_amount",
            label,
            positive=True,
        ),
        initial_delegation_amount=_parse_decimal(
            raw.get(
                "initial_delegation_amount",
                "2000" if kind == ScenarioKind.REDELEGATE_NEXT_EPOCH else "1000",
            ),
            "initial_delegation_amount",
            label,
            positive=True,
        ),
        edit=_parse_edit(_optional_mapping(raw.get("edit"), "edit", label), label),
        reuse_existing_validator=_parse_bool(
            raw.get("reuse_existing_validator"), "reuse_existing_validator", label, default=False
        ),
        balance_tolerance=_parse_decimal(
            raw.get("balance_tolerance", "1"), "balance_tolerance", label
        ),
        gas=_parse_gas(raw.get("gas"), network.staking_gas, label),
        nonce=_parse_nonce(raw.get("nonce"), label),
        timeout_seconds=_parse_positive_int(
            raw.get("timeout", network.timeout_seconds), "timeout", label
        ),
        retry=_parse_retry(raw.get("retry"), label),
    )


def _parse_validator(
    raw: Mapping[str, Any], testcase_name: str, label: str
) -> ValidatorParameters:
    amount = _parse_decimal(raw.get("amount", "10000"), "validator.amount", label, positive=True)
    return ValidatorParameters(
        amount=amount,
        name=_optional_text(raw.get("name")) or testcase_name[:140],
        identity=_optional_text(raw.get("identity")),
        website=_optional_text(raw.get("website")),
        security_contact=_optional_text(raw.get("security_contact")),
        details=_optional_text(raw.get("details")),
        commission_rate=_parse_decimal(
            raw.get("commission_rate", "0.1"), "validator.commission_rate", label
        ),
        max_commission_rate=_parse_decimal(
            raw.get("max_commission_rate", "0.9"), "validator.max_commission_rate", label
        ),
        max_change_rate=_parse_decimal(
            raw.get("max_change_rate", "0.05"), "validator.max_change_rate", label
        ),
        min_self_delegation=_parse_decimal(
            raw.get("min_self_delegation", amount), "validator.min_self_delegation", label
        ),
        max_total_delegation=_parse_decimal(
            raw.get("max_total_delegation", "100000000"), "validator.max_total_delegation", label
        ),
    )


def _parse_edit(raw: Mapping[str, Any], label: str) -> EditParameters:
    changes_raw = _optional_mapping(raw.get("changes"), "edit.changes", label)
    changes: dict[str, str | Decimal] = {}
    for field_name, value in changes_raw.items():
        if field_name not in EDITABLE_VALIDATOR_FIELDS:
            raise TestCaseValidationError(
                f"{label}: edit.changes.{field_name} is not an editable validator field."
            )
        if field_name in DECIMAL_VALIDATOR_FIELDS:
            changes[field_name] = _parse_decimal(value, f"edit.changes.{field_name}", label)
        else:
            changes[field_name] = _optional_text(value)
    return EditParameters(
        repeat=_parse_positive_int(raw.get("repeat", 1), "edit.repeat", label),
        changes=changes,
    )


def _parse_gas(value: Any, default: GasSettings, label: str) -> GasSettings:
    if value is None:
        return default
    section = _optional_mapping(value, "gas", label)
    return GasSettings(
        limit=_parse_positive_int(section.get("limit", default.limit), "gas.limit", label),
        price=_parse_decimal(
            section.get("price", default.price), "gas.price", label, positive=True
        ),
    )


def _parse_retry(value: Any, label: str) -> RetryPolicy | None:
    if value is None:
        return None
    section = _optional_mapping(value, "retry", label)
    wait = section.get("wait", 3)
    if isinstance(wait, bool) or not isinstance(wait, int | float) or wait < 0:
        raise TestCaseValidationError(f"{label}: parameters.retry.wait must be a number >= 0.")
    return RetryPolicy(
        attempts=_parse_positive_int(section.get("attempts", 10), "retry.attempts", label),
        wait_seconds=float(wait),
    )


def _parse_nonce(value: Any, label: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TestCaseValidationError(f"{label}: parameters.nonce must be an integer.")
    return value if value >= 0 else None


def _parse_shard(value: Any, field_name: str, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise TestCaseValidationError(
            f"{label}: parameters.{field_name} must be a non-negative integer."
        )
    return value


def _parse_positive_int(value: Any, field_name: str, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise TestCaseValidationError(
            f"{label}: parameters.{field_name} must be a positive integer."
        )
    return value


def _parse_decimal(value: Any, field_name: str, label: str, *, positive: bool = False) -> Decimal:
    if value is None or isinstance(value, bool):
        raise TestCaseValidationError(f"{label}: parameters.{field_name} is required.")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise TestCaseValidationError(
            f"{label}: parameters.{field_name} must be a decimal number."
        ) from exc
    if not number.is_finite() or number < 0 or (positive and number == 0):
        qualifier = "greater than zero" if positive else "zero or greater"
        raise TestCaseValidationError(f"{label}: parameters.{field_name} must be {qualifier}.")
    return number


def _parse_bool(value: object, field_name: str, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    raise TestCaseValidationError(f"{label}: unable to interpret {field_name} value {value!r}.")


def _optional_mapping(value: Any, field_name: str, label: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TestCaseValidationError(f"{label}: {field_name} must be a mapping.")
    return value


def _optional_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _require_text(value: object, field_name: str, label: str) -> str:
    text = _optional_text(value)
    if not text:
        raise TestCaseValidationError(f"{label}: {field_name} is required.")
    return text
