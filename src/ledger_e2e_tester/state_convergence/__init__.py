"""State convergence exports."""

from .retry_queries import (
    ConvergenceError,
    await_condition,
    await_delegation,
    await_expected_balance,
    await_next_epoch,
    await_non_zero_balance,
    await_validator,
    capture_epoch,
    verify_balance_within,
)

__all__ = [
    "ConvergenceError",
    "await_condition",
    "await_delegation",
    "await_expected_balance",
    "await_next_epoch",
    "await_non_zero_balance",
    "await_validator",
    "capture_epoch",
    "verify_balance_within",
]
