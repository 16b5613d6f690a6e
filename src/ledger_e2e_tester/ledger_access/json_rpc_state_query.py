"""JSON-RPC client for read-only ledger state."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from ledger_e2e_tester.network_context.chain_ids import Dialect
from ledger_e2e_tester.network_context.context_switch import NetworkContext

from .collaborator_protocols import StateQueryError
from .ledger_records import DelegationInfo, ValidatorInfo

_LOGGER = logging.getLogger(__name__)

ATTO_PER_TOKEN = Decimal(10) ** 18
VALIDATOR_SHARD = 0

_NOT_FOUND_MARKERS = ("not found", "not exist", "no validator")


class JsonRpcStateQuery:
    """`StateQuery` backed by the shard endpoints' JSON-RPC 2.0 interface.

    Balance lookups follow the active dialect of the shared network context:
    `eth_getBalance` under the eth dialect, `hmyv2_getBalance` otherwise.
    Staking lookups always go through the native namespace on the beacon shard.
    """

    def __init__(
        self,
        endpoints: Mapping[int, str],
        network_context: NetworkContext,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not endpoints:
            raise StateQueryError("At least one shard endpoint is required.")
        self._endpoints = dict(endpoints)
        self._network_context = network_context
        self._client = client or httpx.Client(
            timeout=timeout_seconds, headers={"Content-Type": "application/json"}
        )
        self._request_ids = itertools.count(1)

    def __enter__(self) -> JsonRpcStateQuery:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def balance(self, address: str, shard: int) -> Decimal:
        if self._network_context.current.dialect == Dialect.ETH:
            raw = self._call(shard, "eth_getBalance", [address, "latest"])
        else:
            raw = self._call(shard, "hmyv2_getBalance", [address])
        return _atto_to_tokens(raw, "balance")

    def validator(self, address: str) -> ValidatorInfo | None:
        try:
            result = self._call(VALIDATOR_SHARD, "hmyv2_getValidatorInformation", [address])
        except StateQueryError as exc:
            if any(marker in str(exc).lower() for marker in _NOT_FOUND_MARKERS):
                return None
            raise
        if not result:
            return None
        return _parse_validator(result)

    def delegations_by_delegator(self, address: str) -> tuple[DelegationInfo, ...]:
        result = self._call(VALIDATOR_SHARD, "hmyv2_getDelegationsByDelegator", [address])
        if not result:
            return ()
        if not isinstance(result, list):
            raise StateQueryError("hmyv2_getDelegationsByDelegator returned a non-list result.")
        return tuple(_parse_delegation(entry) for entry in result)

    def current_epoch(self, shard: int) -> int:
        result = self._call(shard, "hmyv2_getEpoch", [])
        try:
            return int(result, 0) if isinstance(result, str) else int(result)
        except (TypeError, ValueError) as exc:
            raise StateQueryError(f"Unexpected epoch value {result!r}") from exc

    def _call(self, shard: int, method: str, params: list[Any]) -> Any:
        endpoint = self._endpoints.get(shard)
        if endpoint is None:
            raise StateQueryError(f"No RPC endpoint configured for shard {shard}")
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        _LOGGER.debug("RPC %s on shard %d (%s) params=%s", method, shard, endpoint, params)
        try:
            response = self._client.post(endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise StateQueryError(f"{method} on shard {shard} timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise StateQueryError(
                f"{method} on shard {shard} failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StateQueryError(f"Cannot reach {endpoint} for {method}: {exc}") from exc
        except ValueError as exc:
            raise StateQueryError(f"{method} on shard {shard} returned invalid JSON") from exc

        if not isinstance(body, Mapping):
            raise StateQueryError(f"{method} on shard {shard} returned a non-object response")
        error = body.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, Mapping) else error
            raise StateQueryError(f"{method} on shard {shard} failed: {message}")
        return body.get("result")


def _parse_validator(result: Mapping[str, Any]) -> ValidatorInfo:
    validator = result.get("validator") or {}
    if not isinstance(validator, Mapping):
        raise StateQueryError("hmyv2_getValidatorInformation returned a malformed validator.")
    address = validator.get("address")
    if not address:
        raise StateQueryError("hmyv2_getValidatorInformation returned no validator address.")
    status = str(result.get("active-status", "active")).lower()
    return ValidatorInfo(
        address=str(address),
        name=str(validator.get("name", "")),
        identity=str(validator.get("identity", "")),
        website=str(validator.get("website", "")),
        security_contact=str(validator.get("security-contact", "")),
        details=str(validator.get("details", "")),
        commission_rate=_to_decimal(validator.get("rate", 0), "rate"),
        min_self_delegation=_atto_to_tokens(
            validator.get("min-self-delegation", 0), "min-self-delegation"
        ),
        max_total_delegation=_atto_to_tokens(
            validator.get("max-total-delegation", 0), "max-total-delegation"
        ),
        active=status == "active",
        bls_public_keys=tuple(str(key) for key in validator.get("bls-public-keys") or ()),
    )


def _parse_delegation(entry: Any) -> DelegationInfo:
    if not isinstance(entry, Mapping):
        raise StateQueryError("hmyv2_getDelegationsByDelegator returned a malformed entry.")
    undelegations = entry.get("Undelegations") or entry.get("undelegations") or []
    return DelegationInfo(
        delegator_address=str(entry.get("delegator_address", "")),
        validator_address=str(entry.get("validator_address", "")),
        amount=_atto_to_tokens(entry.get("amount", 0), "amount"),
        undelegations=tuple(
            _atto_to_tokens(item.get("Amount", item.get("amount", 0)), "undelegation amount")
            for item in undelegations
            if isinstance(item, Mapping)
        ),
    )


def _atto_to_tokens(raw: Any, field_name: str) -> Decimal:
    if isinstance(raw, str) and raw.lower().startswith("0x"):
        try:
            raw = int(raw, 16)
        except ValueError as exc:
            raise StateQueryError(f"Unexpected {field_name} value {raw!r}") from exc
    return _to_decimal(raw, field_name) / ATTO_PER_TOKEN


def _to_decimal(raw: Any, field_name: str) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise StateQueryError(f"Missing {field_name} value")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise StateQueryError(f"Unexpected {field_name} value {raw!r}") from exc
