"""Network context domain exports."""

from .chain_ids import ChainId, Dialect, chain_id_for, derive_chain_id, native_chain_id
from .context_switch import ContextSetting, NetworkContext

__all__ = [
    "ChainId",
    "Dialect",
    "ContextSetting",
    "NetworkContext",
    "chain_id_for",
    "derive_chain_id",
    "native_chain_id",
]
