"""JSON-RPC state query tests."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import httpx
import pytest
from ledger_e2e_tester.ledger_access import JsonRpcStateQuery, StateQueryError
from ledger_e2e_tester.network_context import Dialect, derive_chain_id
from ledger_fakes import native_context

ENDPOINTS = {0: "http://shard0.local:9500", 1: "http://shard1.local:9500"}


class _RpcServer:
    """Records JSON-RPC requests and answers from a method table."""

    def __init__(self, responses: dict[str, Any]) -> None:
        self.responses = responses
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append((str(request.url), payload))
        answer = self.responses[payload["method"]]
        if isinstance(answer, httpx.Response):
            return answer
        if isinstance(answer, Exception):
            raise answer
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], **answer})


def _state_query(server: _RpcServer, context=None) -> JsonRpcStateQuery:
    return JsonRpcStateQuery(
        ENDPOINTS,
        context or native_context(),
        client=httpx.Client(transport=httpx.MockTransport(server)),
    )


def test_balance_uses_native_method_and_converts_atto() -> None:
    server = _RpcServer({"hmyv2_getBalance": {"result": 1500000000000000000}})

    with _state_query(server) as state_query:
        balance = state_query.balance("one1abc", 1)

    assert balance == Decimal("1.5")
    url, payload = server.requests[0]
    assert url.startswith(ENDPOINTS[1])
    assert payload["method"] == "hmyv2_getBalance"
    assert payload["params"] == ["one1abc"]


def test_balance_follows_eth_context() -> None:
    server = _RpcServer({"eth_getBalance": {"result": "0xde0b6b3a7640000"}})
    context = native_context("testnet")
    state_query = _state_query(server, context)

    balance = context.with_context(
        Dialect.ETH,
        derive_chain_id("testnet", 0),
        lambda _active: state_query.balance("0xabc", 0),
    )

    assert balance == Decimal(1)
    assert server.requests[0][1]["params"] == ["0xabc", "latest"]


def test_rpc_error_is_raised_as_state_query_error() -> None:
    server = _RpcServer({"hmyv2_getBalance": {"error": {"code": -32000, "message": "bad address"}}})

    with pytest.raises(StateQueryError, match="bad address"):
        _state_query(server).balance("one1abc", 0)


def test_http_failures_are_raised_as_state_query_errors() -> None:
    server = _RpcServer(
        {
            "hmyv2_getBalance": httpx.Response(503, text="unavailable"),
            "hmyv2_getEpoch": httpx.ConnectTimeout("timed out"),
        }
    )
    state_query = _state_query(server)

    with pytest.raises(StateQueryError, match="HTTP 503"):
        state_query.balance("one1abc", 0)
    with pytest.raises(StateQueryError, match="timed out"):
        state_query.current_epoch(0)


def test_unknown_shard_raises() -> None:
    with pytest.raises(StateQueryError, match="shard 4"):
        _state_query(_RpcServer({})).balance("one1abc", 4)


def test_validator_information_is_parsed() -> None:
    server = _RpcServer(
        {
            "hmyv2_getValidatorInformation": {
                "result": {
                    "validator": {
                        "address": "one1val",
                        "name": "Validator",
                        "details": "details",
                        "security-contact": "ops",
                        "rate": "0.100000000000000000",
                        "min-self-delegation": 10000000000000000000000,
                        "max-total-delegation": 100000000000000000000000000,
                        "bls-public-keys": ["0xblskey"],
                    },
                    "active-status": "inactive",
                }
            }
        }
    )

    info = _state_query(server).validator("one1val")

    assert info is not None
    assert info.name == "Validator"
    assert info.security_contact == "ops"
    assert info.commission_rate == Decimal("0.1")
    assert info.min_self_delegation == Decimal(10000)
    assert info.bls_public_keys == ("0xblskey",)
    assert info.max_total_delegation == Decimal(100000000)
    assert info.active is False
    assert server.requests[0][0].startswith(ENDPOINTS[0])


def test_missing_validator_returns_none() -> None:
    server = _RpcServer(
        {"hmyv2_getValidatorInformation": {"error": {"message": "validator not found"}}}
    )

    assert _state_query(server).validator("one1val") is None


def test_delegations_are_parsed() -> None:
    server = _RpcServer(
        {
            "hmyv2_getDelegationsByDelegator": {
                "result": [
                    {
                        "delegator_address": "one1del",
                        "validator_address": "one1val",
                        "amount": 1000000000000000000000,
                        "Undelegations": [{"Amount": 500000000000000000000, "Epoch": 3}],
                    }
                ]
            }
        }
    )

    (delegation,) = _state_query(server).delegations_by_delegator("one1del")

    assert delegation.validator_address == "one1val"
    assert delegation.amount == Decimal(1000)
    assert delegation.undelegations == (Decimal(500),)


def test_epoch_accepts_hex_and_integers() -> None:
    hex_server = _RpcServer({"hmyv2_getEpoch": {"result": "0x1f"}})
    int_server = _RpcServer({"hmyv2_getEpoch": {"result": 32}})

    assert _state_query(hex_server).current_epoch(0) == 31
    assert _state_query(int_server).current_epoch(1) == 32
