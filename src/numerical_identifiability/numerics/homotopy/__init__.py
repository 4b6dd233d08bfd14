"""
Numerical solving of polynomial systems by homotopy continuation.

This module provides:
- PolynomialSystem: polynomial system with compiled residuals and Jacobians
- track_path: predictor-corrector path tracker
- monodromy_solve: all solutions reachable from a known one by parameter loops
- solve: all isolated solutions by a total-degree homotopy
- NumericalSolverError / DegenerateSampleError / PositiveDimensionalError: solver failures
"""

from numerical_identifiability.numerics.homotopy.monodromy import (
    SolveResult,
    check_system,
    monodromy_solve,
)
from numerical_identifiability.numerics.homotopy.system import (
    DegenerateSampleError,
    NumericalSolverError,
    PolynomialSystem,
    PositiveDimensionalError,
)
from numerical_identifiability.numerics.homotopy.total_degree import solve
from numerical_identifiability.numerics.homotopy.tracker import (
    ParameterHomotopy,
    PathResult,
    TotalDegreeHomotopy,
    newton,
    track_path,
)

__all__ = [
    "PolynomialSystem",
    "NumericalSolverError",
    "DegenerateSampleError",
    "PositiveDimensionalError",
    "ParameterHomotopy",
    "TotalDegreeHomotopy",
    "PathResult",
    "newton",
    "track_path",
    "SolveResult",
    "check_system",
    "monodromy_solve",
    "solve",
]
