"""Ledger access domain exports."""

from .collaborator_protocols import (
    Keyring,
    KeyringError,
    StakingOperation,
    StakingRequest,
    StateQuery,
    StateQueryError,
    TransactionSubmissionError,
    TransactionSubmitter,
    TransferRequest,
)
from .hmy_cli_adapter import (
    HmyCliKeyring,
    HmyCliTransactionSubmitter,
    HmyCommandError,
    run_hmy_command,
)
from .json_rpc_state_query import ATTO_PER_TOKEN, JsonRpcStateQuery
from .ledger_records import Account, DelegationInfo, TransactionRecord, ValidatorInfo

__all__ = [
    "Keyring",
    "KeyringError",
    "StakingOperation",
    "StakingRequest",
    "StateQuery",
    "StateQueryError",
    "TransactionSubmissionError",
    "TransactionSubmitter",
    "TransferRequest",
    "HmyCliKeyring",
    "HmyCliTransactionSubmitter",
    "HmyCommandError",
    "run_hmy_command",
    "ATTO_PER_TOKEN",
    "JsonRpcStateQuery",
    "Account",
    "DelegationInfo",
    "TransactionRecord",
    "ValidatorInfo",
]
