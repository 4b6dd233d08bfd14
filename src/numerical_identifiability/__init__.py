"""
Numerical Local Identifiability

Sampling-based check whether a random parameter/initial-condition assignment of a
polynomial ODE model is locally identifiable from its outputs.

Main components:
- algebra: truncated differential rings and power series solutions
- prolongation: dependency graph, order propagation, exhaustive and lazy prolongation
- numerics: translation to solver variables, sample points, homotopy solving, filtering
- identifiability: the end-to-end check
"""

from numerical_identifiability.identifiability import (
    IdentifiabilityCheck,
    check_identifiability,
    resolve_plan,
)
from numerical_identifiability.schemas import (
    FilterConfig,
    IdentifiabilityConfig,
    IdentifiabilityResult,
    ODEModel,
    ProlongationStrategy,
    SamplingConfig,
    SolvingStrategy,
    TrackerConfig,
)

__version__ = "0.1.0"
__author__ = "Markus Krecik"

VERSION = tuple(map(int, __version__.split(".")))


__all__ = [
    "__version__",
    "VERSION",
    "ODEModel",
    "ProlongationStrategy",
    "SolvingStrategy",
    "SamplingConfig",
    "TrackerConfig",
    "FilterConfig",
    "IdentifiabilityConfig",
    "IdentifiabilityResult",
    "IdentifiabilityCheck",
    "check_identifiability",
    "resolve_plan",
]
