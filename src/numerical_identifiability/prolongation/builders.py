"""
Construction of the prolonged polynomial system of an ODE model.

Two strategies are provided:
- exhaustive: every output equation is differentiated |x| + |p| times, state
  derivatives are eliminated by substitution (Lie derivatives)
- lazy: derivative orders are propagated through the dependency graph, states keep
  explicit derivatives and their defining equations are prolonged only as needed

Both return an EquationSystem with a square subsystem and extra equations.
"""

import logging
from collections.abc import Callable

import sympy
from pydantic import BaseModel, Field

from numerical_identifiability.algebra.ring import DifferentialRing
from numerical_identifiability.prolongation.graph import build_graph, propagate_orders
from numerical_identifiability.schemas import ODEModel, ProlongationStrategy

logger = logging.getLogger(__name__)


class EquationSystem(BaseModel):
    """
    Prolonged system of a model.

    Fields:
        ring: Differential ring the equations live in
        square: Equations forming the square subsystem
        extra: Surplus equations, used only to filter candidate solutions
        strategy: Strategy that built the system
        orders: Total prolongation order per variable (lazy strategy only)
    """

    ring: DifferentialRing = Field(..., description="Differential ring of the equations")
    square: tuple[sympy.Poly, ...] = Field(..., description="Square subsystem")
    extra: tuple[sympy.Poly, ...] = Field(..., description="Extra equations")
    strategy: ProlongationStrategy = Field(..., description="Prolongation strategy")
    orders: dict[str, int] = Field(default_factory=dict, description="Total prolongation orders")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}


def _prolong_outputs(
    model: ODEModel, ring: DifferentialRing, n_derivatives: Callable[[str], int]
) -> tuple[list[sympy.Poly], list[sympy.Poly]]:
    """
    Add each output equation y - g and `n_derivatives(y)` of its derivatives to the
    square subsystem, and one more derivative to the extra equations.
    """
    square: list[sympy.Poly] = []
    extra: list[sympy.Poly] = []
    for y, rhs in model.y_equations.items():
        eq = ring.to_diffpoly(sympy.Symbol(y) - rhs)
        square.append(eq)
        for _ in range(n_derivatives(y)):
            square.append(ring.diff(square[-1]))
        extra.append(ring.diff(square[-1]))
    return square, extra


def build_exhaustive_system(model: ODEModel) -> EquationSystem:
    """
    Compute enough prolongations by Lie derivatives.

    Outputs and inputs may hold up to k = |x| + |p| derivatives, states hold none:
    the derivative of a state is replaced by its right-hand side.

    Args:
        model: ODE model

    Returns:
        EquationSystem with k square equations and one extra equation per output
    """
    prolong_count = model.prolongation_count
    ring = DifferentialRing(
        model.x_vars + model.y_vars + model.inputs,
        model.parameters,
        [0] * len(model.x_vars) + [prolong_count] * (len(model.y_vars) + len(model.inputs)),
    )
    ring.set_custom_derivations(model.x_equations)

    square, extra = _prolong_outputs(model, ring, lambda y: prolong_count - 1)

    logger.debug(f"Exhaustive prolongation: {len(square)} square, {len(extra)} extra equations")
    return EquationSystem(
        ring=ring,
        square=tuple(square),
        extra=tuple(extra),
        strategy=ProlongationStrategy.EXHAUSTIVE,
    )


def build_lazy_system(model: ODEModel) -> EquationSystem:
    """
    Compute enough prolongations by the lazy approach.

    Orders are propagated from the outputs twice: seeded with k = |x| + |p| they size
    the ring ("total" orders), seeded with k - 1 they bound the output derivatives in
    the square subsystem ("square" orders). State equations x_1 = f(x, u, p) are then
    prolonged up to the total order of x.

    States are processed in declaration order and processing stops at the first
    state whose total order is <= 0, even if later states would need prolongation.

    Args:
        model: ODE model

    Returns:
        EquationSystem with the total orders attached
    """
    prolong_count = model.prolongation_count

    graph = build_graph(model)
    total = propagate_orders(graph, {y: prolong_count for y in model.y_vars})
    square_orders = propagate_orders(graph, {y: prolong_count - 1 for y in model.y_vars})

    diff_vars = model.x_vars + model.y_vars + model.inputs
    ring = DifferentialRing(diff_vars, model.parameters, [total[v] for v in diff_vars])

    square, extra = _prolong_outputs(model, ring, lambda y: square_orders[y])

    for x, rhs in model.x_equations.items():
        if total[x] <= 0:
            logger.debug(f"Lazy prolongation stopped at state {x!r} (order {total[x]})")
            break
        eq = sympy.Poly(ring.generator(x, 1), *ring.gens, domain=sympy.QQ) - ring.to_diffpoly(rhs)
        square.append(eq)
        for _ in range(2, total[x] + 1):
            square.append(ring.diff(square[-1]))

    logger.debug(f"Lazy prolongation: {len(square)} square, {len(extra)} extra equations")
    return EquationSystem(
        ring=ring,
        square=tuple(square),
        extra=tuple(extra),
        strategy=ProlongationStrategy.LAZY,
        orders=total,
    )


PROLONGATION_BUILDERS: dict[ProlongationStrategy, Callable[[ODEModel], EquationSystem]] = {
    ProlongationStrategy.LAZY: build_lazy_system,
    ProlongationStrategy.EXHAUSTIVE: build_exhaustive_system,
}
