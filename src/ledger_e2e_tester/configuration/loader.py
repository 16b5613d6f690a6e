"""Configuration loader service."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from .runtime_settings import (
    AccountSettings,
    Configuration,
    EpochWaitSettings,
    ExportSettings,
    FrameworkSettings,
    FundingSettings,
    GasSettings,
    NetworkSettings,
    RetryPolicy,
)

DEFAULT_TRANSFER_GAS = GasSettings(limit=21000, price=Decimal("100"))
DEFAULT_STAKING_GAS = GasSettings(limit=5000000, price=Decimal("100"))
LOCALNET_MINIMUM_FUNDS = Decimal("10")


class ConfigurationError(Exception):
    """Raised when the configuration file is invalid."""


def load_configuration(config_path: Path | str) -> Configuration:
    """Load and validate the configuration file."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:  # pragma: no cover - exercised indirectly
        raise ConfigurationError(f"Failed to parse configuration file: {exc}") from exc

    if parsed is None:
        parsed = {}

    if not isinstance(parsed, Mapping):
        raise ConfigurationError("Configuration root must be a mapping.")

    base_path = path.parent
    framework = _parse_framework_section(parsed.get("framework"), base_path)
    network = _parse_network_section(parsed.get("network"))
    account = _parse_account_section(parsed.get("account"), base_path)
    funding = _parse_funding_section(parsed.get("funding"), network=network)
    export = _parse_export_section(parsed.get("export"), base_path)

    return Configuration(
        path=path,
        framework=framework,
        network=network,
        account=account,
        funding=funding,
        export=export,
    )


def _parse_framework_section(value: Any, base_path: Path) -> FrameworkSettings:
    section = _optional_mapping(value, "framework")
    testcases_raw = _optional_string(section.get("testcases_path"), "framework.testcases_path")
    return FrameworkSettings(
        testcases_path=_resolve_path(base_path, testcases_raw or "testcases"),
        verbose=_require_bool(section.get("verbose", False), "framework.verbose"),
    )


def _parse_network_section(value: Any) -> NetworkSettings:
    section = _require_mapping(value, "network")
    name = _require_non_empty_string(section.get("name", "localnet"), "network.name").lower()
    endpoints = _normalize_endpoints(section.get("endpoints"))
    timeout_seconds = _require_positive_int(
        section.get("timeout_seconds", 60), "network.timeout_seconds"
    )
    staking_wait_seconds = _require_non_negative_int(
        section.get("staking_wait_seconds", 0), "network.staking_wait_seconds"
    )
    gas = _parse_gas(section.get("gas"), "network.gas", DEFAULT_TRANSFER_GAS)
    staking_gas = _parse_gas(section.get("staking_gas"), "network.staking_gas", DEFAULT_STAKING_GAS)
    retry = _parse_retry(section.get("retry"), "network.retry", RetryPolicy(10, 3))
    balances = _optional_mapping(section.get("balances"), "network.balances")
    balance_retry = _parse_retry(
        balances.get("retry"), "network.balances.retry", RetryPolicy(10, 3)
    )
    epoch_wait = _parse_epoch_wait(section.get("epoch_wait"))
    hmy_binary = _require_non_empty_string(section.get("hmy_binary", "hmy"), "network.hmy_binary")
    return NetworkSettings(
        name=name,
        endpoints=endpoints,
        timeout_seconds=timeout_seconds,
        staking_wait_seconds=staking_wait_seconds,
        gas=gas,
        staking_gas=staking_gas,
        retry=retry,
        balance_retry=balance_retry,
        epoch_wait=epoch_wait,
        hmy_binary=hmy_binary,
    )


def _parse_account_section(value: Any, base_path: Path) -> AccountSettings:
    section = _optional_mapping(value, "account")
    passphrase = section.get("passphrase", "")
    if passphrase is None:
        passphrase = ""
    if not isinstance(passphrase, str):
        raise ConfigurationError("account.passphrase must be a string.")
    keystore_raw = _optional_string(section.get("keystore_path"), "account.keystore_path")
    return AccountSettings(
        passphrase=passphrase,
        remove_empty=_require_bool(section.get("remove_empty", True), "account.remove_empty"),
        keystore_path=_resolve_path(base_path, keystore_raw) if keystore_raw else None,
    )


def _parse_funding_section(value: Any, *, network: NetworkSettings) -> FundingSettings:
    section = _require_mapping(value, "funding")
    address = _require_non_empty_string(section.get("address"), "funding.address")
    name = _optional_string(section.get("name"), "funding.name")
    minimum_funds = _require_non_negative_decimal(
        section.get("minimum_funds", "100.0"), "funding.minimum_funds"
    )
    if network.name == "localnet":
        minimum_funds = LOCALNET_MINIMUM_FUNDS
    fee_margin = _require_non_negative_decimal(
        section.get("fee_margin", "1"), "funding.fee_margin"
    )
    timeout_seconds = _require_positive_int(
        section.get("timeout_seconds", network.timeout_seconds), "funding.timeout_seconds"
    )
    shards = _normalize_shards(section.get("shards"), network.shard_ids)
    gas = _parse_gas(section.get("gas"), "funding.gas", network.gas)
    retry = _parse_retry(section.get("retry"), "funding.retry", network.balance_retry)
    return FundingSettings(
        address=address,
        name=name,
        minimum_funds=minimum_funds,
        fee_margin=fee_margin,
        timeout_seconds=timeout_seconds,
        shards=shards,
        gas=gas,
        retry=retry,
    )


def _parse_export_section(value: Any, base_path: Path) -> ExportSettings:
    section = _optional_mapping(value, "export")
    path_raw = _optional_string(section.get("path"), "export.path") or "export"
    export_format = _optional_string(section.get("format"), "export.format") or "csv"
    return ExportSettings(path=_resolve_path(base_path, path_raw), format=export_format.lower())


def _parse_gas(value: Any, field_name: str, default: GasSettings) -> GasSettings:
    if value is None:
        return default
    section = _require_mapping(value, field_name)
    limit = _require_positive_int(section.get("limit", default.limit), f"{field_name}.limit")
    price = _require_positive_decimal(section.get("price", default.price), f"{field_name}.price")
    return GasSettings(limit=limit, price=price)


def _parse_retry(value: Any, field_name: str, default: RetryPolicy) -> RetryPolicy:
    if value is None:
        return default
    section = _require_mapping(value, field_name)
    attempts = _require_positive_int(
        section.get("attempts", default.attempts), f"{field_name}.attempts"
    )
    wait_seconds = _require_non_negative_number(
        section.get("wait", default.wait_seconds), f"{field_name}.wait"
    )
    return RetryPolicy(attempts=attempts, wait_seconds=wait_seconds)


def _parse_epoch_wait(value: Any) -> EpochWaitSettings:
    section = _optional_mapping(value, "network.epoch_wait")
    wait_seconds = _require_non_negative_number(
        section.get("wait_seconds", 20), "network.epoch_wait.wait_seconds"
    )
    timeout_seconds = _require_non_negative_number(
        section.get("timeout_seconds", 330), "network.epoch_wait.timeout_seconds"
    )
    return EpochWaitSettings(
        wait_seconds=wait_seconds,
        timeout_seconds=timeout_seconds or None,
    )


def _normalize_endpoints(value: Any) -> dict[int, str]:
    if value is None:
        raise ConfigurationError("network.endpoints is required.")
    endpoints: dict[int, str] = {}
    if isinstance(value, str):
        endpoints[0] = _require_non_empty_string(value, "network.endpoints")
    elif isinstance(value, Mapping):
        for raw_shard, raw_url in value.items():
            shard = _require_shard_id(raw_shard, "network.endpoints keys")
            endpoints[shard] = _require_non_empty_string(raw_url, f"network.endpoints.{shard}")
    elif isinstance(value, Sequence):
        for shard, raw_url in enumerate(value):
            endpoints[shard] = _require_non_empty_string(raw_url, f"network.endpoints[{shard}]")
    else:
        raise ConfigurationError("network.endpoints must be a string, list or mapping.")
    if not endpoints:
        raise ConfigurationError("network.endpoints must contain at least one endpoint.")
    return endpoints


def _normalize_shards(value: Any, available: tuple[int, ...]) -> tuple[int, ...]:
    if value is None or value == "all":
        return available
    raw_items: Sequence[Any]
    if isinstance(value, str):
        raw_items = [item.strip() for item in value.split(",") if item.strip()]
    elif isinstance(value, int) and not isinstance(value, bool):
        raw_items = [value]
    elif isinstance(value, Sequence):
        raw_items = value
    else:
        raise ConfigurationError("funding.shards must be 'all', an integer or a list of integers.")
    shards = tuple(sorted({_require_shard_id(item, "funding.shards") for item in raw_items}))
    missing = [shard for shard in shards if shard not in available]
    if missing:
        raise ConfigurationError(f"funding.shards {missing} have no configured network endpoint.")
    if not shards:
        raise ConfigurationError("funding.shards must contain at least one shard.")
    return shards


def _resolve_path(base_path: Path, raw_path: str) -> Path:
    candidate = Path(raw_path)
    if not candidate.is_absolute():
        return (base_path / candidate).resolve()
    return candidate


def _require_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' is required.")
    return value


def _optional_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' must be a mapping.")
    return value


def _require_non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    if not stripped:
        raise ConfigurationError(f"{field_name} must not be empty.")
    return stripped


def _optional_string(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    return stripped or None


def _require_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be a boolean.")
    return value


def _require_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    return value


def _require_positive_int(value: Any, field_name: str) -> int:
    number = _require_int(value, field_name)
    if number <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return number


def _require_non_negative_int(value: Any, field_name: str) -> int:
    number = _require_int(value, field_name)
    if number < 0:
        raise ConfigurationError(f"{field_name} must not be negative.")
    return number


def _require_shard_id(value: Any, field_name: str) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return _require_non_negative_int(value, field_name)


def _require_non_negative_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigurationError(f"{field_name} must be a number.")
    if value < 0:
        raise ConfigurationError(f"{field_name} must not be negative.")
    return float(value)


def _require_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, int | float | str | Decimal):
        raise ConfigurationError(f"{field_name} must be a decimal number.")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ConfigurationError(f"{field_name} must be a decimal number.") from exc
    if not number.is_finite():
        raise ConfigurationError(f"{field_name} must be a finite decimal number.")
    return number


def _require_positive_decimal(value: Any, field_name: str) -> Decimal:
    number = _require_decimal(value, field_name)
    if number <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return number


def _require_non_negative_decimal(value: Any, field_name: str) -> Decimal:
    number = _require_decimal(value, field_name)
    if number < 0:
        raise ConfigurationError(f"{field_name} must not be negative.")
    return number
