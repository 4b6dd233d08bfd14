"""
Residual-based filtering of candidate solutions.
"""

from collections.abc import Sequence

import numpy as np
import sympy

from numerical_identifiability.numerics.homotopy.system import PolynomialSystem, VariableLike
from numerical_identifiability.schemas import FilterMode


def filter_solutions(
    equations: Sequence[sympy.Expr],
    candidates: np.ndarray | Sequence[np.ndarray],
    variables: Sequence[VariableLike],
    tolerance: float = 1e-6,
    keep: FilterMode = "exceeding",
) -> np.ndarray:
    """
    Select candidates by the residuals of the given equations.

    Variables are bound positionally: column i of a candidate is the value of
    `variables[i]`.

    Args:
        equations: Polynomials over `variables` (parameters already substituted)
        candidates: Candidate points (complex), shape (n_candidates, n_variables)
        variables: Positional order of the candidate coordinates
        tolerance: Residual magnitude threshold
        keep: "exceeding" keeps a candidate iff every residual magnitude exceeds
            `tolerance`; "within" keeps it iff every residual magnitude is <= `tolerance`

    Returns:
        Kept candidates, shape (n_kept, n_variables)

    Raises:
        ValueError: For an unknown `keep` or equations over other symbols
    """
    if keep not in ("exceeding", "within"):
        raise ValueError(f"Unknown filter mode: {keep}")
    candidates = np.asarray(candidates, dtype=complex).reshape(-1, len(variables))
    if not equations:
        return candidates

    system = PolynomialSystem(equations, variables)
    kept = []
    for candidate in candidates:
        residuals = np.abs(system.residuals(candidate))
        if keep == "exceeding":
            selected = np.all(residuals > tolerance)
        else:
            selected = np.all(residuals <= tolerance)
        if selected:
            kept.append(candidate)
    return np.array(kept, dtype=complex).reshape(len(kept), len(variables))
