"""
MLflow tracking of identifiability checks.
"""

import mlflow

from numerical_identifiability.schemas import IdentifiabilityResult
from numerical_identifiability.utils import if_logging


@if_logging
def log_identifiability_result(result: IdentifiabilityResult, prefix: str = "") -> None:
    """
    Log verdict, strategies and system sizes of a check to the active MLflow run.

    Args:
        result: Result of an identifiability check
        prefix: Prefix for all metric and parameter names
    """
    mlflow.log_params(
        {
            f"{prefix}prolongation": str(result.prolongation),
            f"{prefix}solver": str(result.solver),
        }
    )
    mlflow.log_metrics(
        {
            f"{prefix}is_identifiable": float(result.is_identifiable),
            f"{prefix}n_candidates": result.n_candidates,
            f"{prefix}n_filtered": result.n_filtered,
            f"{prefix}n_square_equations": result.n_square_equations,
            f"{prefix}n_extra_equations": result.n_extra_equations,
            f"{prefix}n_variables": len(result.variables),
        }
    )
    mlflow.set_tag(f"{prefix}status", result.status)
