"""
Prolongation of polynomial ODE models.

This module provides:
- build_graph: variable dependency graph of a model
- propagate_orders: prolongation orders by monotone propagation from the outputs
- build_exhaustive_system / build_lazy_system: the two prolongation strategies
- EquationSystem: square subsystem plus extra equations
"""

from numerical_identifiability.prolongation.builders import (
    PROLONGATION_BUILDERS,
    EquationSystem,
    build_exhaustive_system,
    build_lazy_system,
)
from numerical_identifiability.prolongation.graph import (
    UNCONSTRAINED,
    DependencyGraph,
    build_graph,
    propagate_orders,
)

__all__ = [
    "build_graph",
    "propagate_orders",
    "DependencyGraph",
    "UNCONSTRAINED",
    "EquationSystem",
    "build_exhaustive_system",
    "build_lazy_system",
    "PROLONGATION_BUILDERS",
]
