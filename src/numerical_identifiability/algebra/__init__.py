"""
Exact algebra for the prolongation pipeline.

This module provides:
- DifferentialRing: truncated differential polynomial ring with order checks
- DerivativeOrderError: raised when a declared maximal order would be exceeded
- power_series_solution: exact truncated power series solution of an ODE model
"""

from numerical_identifiability.algebra.power_series import power_series_solution
from numerical_identifiability.algebra.ring import DerivativeOrderError, DifferentialRing

__all__ = [
    "DifferentialRing",
    "DerivativeOrderError",
    "power_series_solution",
]
