"""Run execution domain exports."""

from .run_contracts import (
    FundingRequirement,
    RunArtifacts,
    RunCollaborators,
    RunOutcome,
    RunRequest,
)
from .suite_run_use_case import (
    RunExecutionError,
    build_collaborators,
    execute_regression_suite,
    funding_requirement,
)

__all__ = [
    "RunRequest",
    "RunOutcome",
    "RunArtifacts",
    "RunCollaborators",
    "FundingRequirement",
    "RunExecutionError",
    "build_collaborators",
    "execute_regression_suite",
    "funding_requirement",
]
