"""
Numeric side of the identifiability check.

This module provides:
- build_binding / to_numeric: translation of ring polynomials to solver variables
- SamplePointGenerator: random consistent sample points
- filter_solutions: residual-based candidate filtering
- homotopy: numeric polynomial system solving
"""

from numerical_identifiability.numerics.filtering import filter_solutions
from numerical_identifiability.numerics.sampling import SamplePoint, SamplePointGenerator
from numerical_identifiability.numerics.translator import (
    BindingError,
    SolverVariable,
    VariableBinding,
    build_binding,
    sort_variables,
    to_numeric,
)

__all__ = [
    "BindingError",
    "SolverVariable",
    "VariableBinding",
    "build_binding",
    "sort_variables",
    "to_numeric",
    "SamplePoint",
    "SamplePointGenerator",
    "filter_solutions",
]
