"""Keyring and transaction submission through the `hmy` command line client."""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from pathlib import Path
from typing import Any

from ledger_e2e_tester.network_context.chain_ids import Dialect
from ledger_e2e_tester.network_context.context_switch import ContextSetting

from .collaborator_protocols import (
    KeyringError,
    StakingOperation,
    StakingRequest,
    TransactionSubmissionError,
    TransferRequest,
)
from .ledger_records import Account

_LOGGER = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], str | None], str]

_VALIDATOR_FLAGS = {
    "name": "--name",
    "identity": "--identity",
    "website": "--website",
    "security_contact": "--security-contact",
    "details": "--details",
    "commission_rate": "--rate",
    "max_commission_rate": "--max-rate",
    "max_change_rate": "--max-change-rate",
    "min_self_delegation": "--min-self-delegation",
    "max_total_delegation": "--max-total-delegation",
}


class HmyCommandError(Exception):
    """Raised when an `hmy` invocation fails."""


def run_hmy_command(command: Sequence[str], stdin: str | None = None) -> str:
    """Run one `hmy` command and return its standard output."""
    try:
        completed = subprocess.run(
            list(command), input=stdin, capture_output=True, text=True, check=True
        )
    except FileNotFoundError as exc:
        raise HmyCommandError(f"hmy binary not found: {command[0]}") from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        raise HmyCommandError(
            f"hmy command failed with exit code {exc.returncode}: "
            f"{_command_text(command)}{': ' + detail if detail else ''}"
        ) from exc
    return completed.stdout


class HmyCliKeyring:
    """`Keyring` that stores ephemeral keys in the local `hmy` keystore."""

    def __init__(
        self,
        *,
        binary: str = "hmy",
        passphrase: str = "",
        run_command: CommandRunner | None = None,
    ) -> None:
        self._binary = binary
        self._passphrase = passphrase
        self._run = run_command or run_hmy_command

    def create_account(self, name: str) -> Account:
        passphrase_input = f"{self._passphrase}\n{self._passphrase}\n"
        try:
            self._run([self._binary, "keys", "add", name, "--passphrase"], passphrase_input)
            listing = self._run([self._binary, "keys", "list"], None)
        except HmyCommandError as exc:
            raise KeyringError(f"Failed to create account {name}: {exc}") from exc
        address = _find_key_address(listing, name)
        if address is None:
            raise KeyringError(f"Account {name} was created but is missing from the keystore.")
        _LOGGER.debug("Created keystore entry %s (%s)", name, address)
        return Account(name=name, address=address)

    def remove_account(self, account: Account) -> None:
        try:
            self._run([self._binary, "keys", "remove", account.name], None)
        except HmyCommandError as exc:
            raise KeyringError(f"Failed to remove account {account.name}: {exc}") from exc


class HmyCliTransactionSubmitter:
    """`TransactionSubmitter` that signs with keystore keys through `hmy`.

    The sender account must live in the keystore used by the binary. A staking
    message whose sender differs from the address it names is still submitted,
    signed by the sender's key through `--signer-addr`, so the network decides
    whether to accept it.
    """

    def __init__(
        self,
        endpoints: Mapping[int, str],
        *,
        binary: str = "hmy",
        passphrase: str = "",
        keystore_path: Path | None = None,
        run_command: CommandRunner | None = None,
    ) -> None:
        self._endpoints = dict(endpoints)
        self._binary = binary
        self._passphrase = passphrase
        self._keystore_path = keystore_path
        self._run = run_command or run_hmy_command

    def submit_transfer(
        self, request: TransferRequest, active: ContextSetting
    ) -> Mapping[str, Any]:
        command = [
            *self._base_command(request.from_shard),
            "transfer",
            "--from",
            request.sender.address,
            "--to",
            request.receiver_address,
            "--from-shard",
            str(request.from_shard),
            "--to-shard",
            str(request.to_shard),
            "--amount",
            _format_amount(request.amount),
            "--chain-id",
            _chain_id_argument(active),
            "--gas-limit",
            str(request.gas.limit),
            "--gas-price",
            _format_amount(request.gas.price),
            "--timeout",
            str(request.timeout_seconds),
        ]
        if request.nonce is not None:
            command.extend(["--nonce", str(request.nonce)])
        if request.payload:
            command.extend(["--data", request.payload])
        return self._submit(command)

    def submit_staking(
        self, request: StakingRequest, active: ContextSetting
    ) -> Mapping[str, Any]:
        command = [
            *self._base_command(request.shard),
            "staking",
            request.operation.value,
            "--chain-id",
            _chain_id_argument(active),
            "--gas-limit",
            str(request.gas.limit),
            "--gas-price",
            _format_amount(request.gas.price),
            "--timeout",
            str(request.timeout_seconds),
        ]
        command.extend(self._operation_arguments(request))
        if request.sender.address != _staking_address(request):
            command.extend(["--signer-addr", request.sender.address])
        if request.nonce is not None:
            command.extend(["--nonce", str(request.nonce)])
        return self._submit(command)

    def _operation_arguments(self, request: StakingRequest) -> list[str]:
        if request.operation in {StakingOperation.DELEGATE, StakingOperation.UNDELEGATE}:
            return [
                "--delegator-addr",
                request.delegator_address or request.sender.address,
                "--validator-addr",
                request.validator_address,
                "--amount",
                _format_amount(request.amount or Decimal(0)),
            ]

        arguments = ["--validator-addr", request.validator_address]
        for field_name, value in request.validator_fields.items():
            flag = _VALIDATOR_FLAGS.get(field_name)
            if flag is None:
                continue
            arguments.extend([flag, _format_amount(value) if isinstance(value, Decimal) else value])
        if request.operation == StakingOperation.CREATE_VALIDATOR:
            arguments.extend(["--amount", _format_amount(request.amount or Decimal(0))])
            bls_key = request.bls_public_key or self._generate_bls_key(request.sender.name)
            arguments.extend(["--bls-pubkeys", bls_key])
        if request.active is not None:
            arguments.extend(["--active", "true" if request.active else "false"])
        return arguments

    def _generate_bls_key(self, account_name: str) -> str:
        command = [self._binary, "keys", "generate-bls-key", "--passphrase"]
        if self._keystore_path is not None:
            command.extend(["--bls-file-path", str(self._keystore_path / f"{account_name}.key")])
        try:
            output = self._run(command, f"{self._passphrase}\n{self._passphrase}\n")
        except HmyCommandError as exc:
            raise TransactionSubmissionError(f"Failed to generate a BLS key: {exc}") from exc
        public_key = _parse_json_output(output).get("public-key")
        if not public_key:
            raise TransactionSubmissionError("hmy did not report the generated BLS public key.")
        return str(public_key)

    def _base_command(self, shard: int) -> list[str]:
        endpoint = self._endpoints.get(shard)
        if endpoint is None:
            raise TransactionSubmissionError(f"No RPC endpoint configured for shard {shard}")
        return [self._binary, f"--node={endpoint}"]

    def _submit(self, command: list[str]) -> Mapping[str, Any]:
        command.append("--passphrase")
        _LOGGER.debug("Submitting: %s", _command_text(command))
        try:
            output = self._run(command, f"{self._passphrase}\n")
        except HmyCommandError as exc:
            raise TransactionSubmissionError(str(exc)) from exc
        return _parse_json_output(output)


def _staking_address(request: StakingRequest) -> str:
    if request.operation in {StakingOperation.DELEGATE, StakingOperation.UNDELEGATE}:
        return request.delegator_address or request.sender.address
    return request.validator_address


def _find_key_address(listing: str, name: str) -> str | None:
    for line in listing.splitlines():
        columns = line.split()
        if len(columns) >= 2 and columns[0] == name:
            return columns[-1]
    return None


def _parse_json_output(output: str) -> Mapping[str, Any]:
    start = output.find("{")
    if start < 0:
        raise TransactionSubmissionError(f"hmy returned no JSON receipt: {output.strip()!r}")
    try:
        parsed = json.loads(output[start:])
    except json.JSONDecodeError as exc:
        raise TransactionSubmissionError("hmy returned a malformed JSON receipt.") from exc
    if not isinstance(parsed, Mapping):
        raise TransactionSubmissionError("hmy returned a non-object JSON receipt.")
    return parsed


def _chain_id_argument(active: ContextSetting) -> str:
    if active.dialect == Dialect.ETH:
        return str(active.chain_id.value)
    return active.chain_id.name


def _format_amount(value: Decimal) -> str:
    return format(value.normalize(), "f")


def _command_text(command: Sequence[str]) -> str:
    return shlex.join(command)
