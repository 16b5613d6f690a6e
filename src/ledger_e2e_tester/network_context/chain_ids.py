"""Chain identifier derivation for the native and eth-compatible dialects."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Dialect(str, Enum):
    """Wire protocol dialect an operation is encoded and signed against."""

    NATIVE = "hmy"
    ETH = "eth"


@dataclass(frozen=True)
class ChainId:
    """Numeric network tag together with its display name."""

    name: str
    value: int


_ETH_MAINNET_BASE = ChainId(name="eth_mainnet", value=1666600000)

_ETH_BASE_CHAIN_IDS: dict[str, ChainId] = {
    "mainnet": _ETH_MAINNET_BASE,
    "testnet": ChainId(name="eth_testnet", value=1666700000),
    "localnet": ChainId(name="eth_testnet", value=1666700000),
    "pangaea": ChainId(name="eth_pangaea", value=1666800000),
    "devnet": ChainId(name="eth_partnernet", value=1666900000),
    "partner": ChainId(name="eth_partnernet", value=1666900000),
    "stressnet": ChainId(name="eth_stressnet", value=1661000000),
    "dryrun": ChainId(name="eth_dryrun", value=1666600000),
}

_NATIVE_MAINNET = ChainId(name="mainnet", value=1)

_NATIVE_CHAIN_IDS: dict[str, ChainId] = {
    "mainnet": _NATIVE_MAINNET,
    "testnet": ChainId(name="testnet", value=2),
    "localnet": ChainId(name="testnet", value=2),
    "pangaea": ChainId(name="pangaea", value=3),
    "devnet": ChainId(name="partner", value=4),
    "partner": ChainId(name="partner", value=4),
    "stressnet": ChainId(name="stressnet", value=5),
    "dryrun": ChainId(name="dryrun", value=1),
}


def derive_chain_id(network_name: str, shard_id: int) -> ChainId:
    """Return the eth-compatible chain id for a network and shard.

    The value is the network's base id plus the shard id. Unknown network
    names use the mainnet base, so the mapping never fails.
    """
    base = _ETH_BASE_CHAIN_IDS.get(_normalize_network_name(network_name), _ETH_MAINNET_BASE)
    return ChainId(name=base.name, value=base.value + shard_id)


def native_chain_id(network_name: str) -> ChainId:
    """Return the native-dialect chain id for a network (mainnet when unknown)."""
    return _NATIVE_CHAIN_IDS.get(_normalize_network_name(network_name), _NATIVE_MAINNET)


def chain_id_for(dialect: Dialect, network_name: str, shard_id: int) -> ChainId:
    if dialect == Dialect.ETH:
        return derive_chain_id(network_name, shard_id)
    return native_chain_id(network_name)


def _normalize_network_name(network_name: str) -> str:
    return (network_name or "").strip().lower()
