"""Funding domain exports."""

from .funding_account import DEFAULT_FUNDING_ACCOUNT_NAME, FundingAccount, FundingError
from .funding_allocator import FundingPlan, FundingValidationError, compute_funding_plan

__all__ = [
    "DEFAULT_FUNDING_ACCOUNT_NAME",
    "FundingAccount",
    "FundingError",
    "FundingPlan",
    "FundingValidationError",
    "compute_funding_plan",
]
