"""
Translation of exact ring polynomials into numeric polynomials over solver variables.
"""

from collections.abc import Collection, Sequence
from typing import NamedTuple

import sympy
from pydantic import BaseModel, Field

from numerical_identifiability.algebra.ring import DifferentialRing


class BindingError(KeyError):
    """Raised when a ring generator has no solver variable bound to it."""

    pass


class SolverVariable(NamedTuple):
    """
    Variable of the numeric solver.

    `order` is None for ring parameters and the derivative order for differential
    variables.
    """

    name: str
    order: int | None = None

    def __str__(self) -> str:
        return self.name if self.order is None else f"{self.name}[{self.order}]"

    @property
    def symbol(self) -> sympy.Symbol:
        return sympy.Symbol(str(self))

    @property
    def sort_key(self) -> tuple[str, int]:
        return self.name, -1 if self.order is None else self.order


def sort_variables(variables: Sequence[SolverVariable]) -> tuple[SolverVariable, ...]:
    """Canonical order: by name, then by derivative order (parameters first)."""
    return tuple(sorted(variables, key=lambda v: v.sort_key))


class VariableBinding(BaseModel):
    """
    Bijection between ring generators and solver variables.

    Fields:
        mapping: Ring generator -> solver variable
        parameters: Parameter-role variables (derivatives of outputs and inputs),
            fixed during solving, in canonical order
        free: Free-role variables (everything else), solved for, in canonical order
    """

    mapping: dict[sympy.Symbol, SolverVariable] = Field(..., description="Generator binding")
    parameters: tuple[SolverVariable, ...] = Field(..., description="Parameter-role variables")
    free: tuple[SolverVariable, ...] = Field(..., description="Free-role variables")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def inverse(self) -> dict[SolverVariable, sympy.Symbol]:
        """Solver variable -> ring generator."""
        return {v: g for g, v in self.mapping.items()}


def build_binding(ring: DifferentialRing, observed: Collection[str]) -> VariableBinding:
    """
    Bind every generator of `ring` to a solver variable.

    Ring parameters are bound to variables of the same name. Every derivative of a
    differential variable gets an order-tagged variable; it is parameter-role if the
    variable is observed (an output or input) and free-role otherwise.

    Args:
        ring: Differential ring of the prolonged system
        observed: Names of outputs and inputs

    Returns:
        VariableBinding with both partitions sorted canonically
    """
    mapping: dict[sympy.Symbol, SolverVariable] = {}
    parameters: list[SolverVariable] = []
    free: list[SolverVariable] = []

    for p in ring.parameters:
        var = SolverVariable(p.name)
        mapping[p] = var
        free.append(var)

    for name in ring.diff_var_names:
        for order in range(ring.max_order(name) + 1):
            var = SolverVariable(name, order)
            mapping[ring.generator(name, order)] = var
            if name in observed:
                parameters.append(var)
            else:
                free.append(var)

    return VariableBinding(
        mapping=mapping,
        parameters=sort_variables(parameters),
        free=sort_variables(free),
    )


def to_numeric(poly: sympy.Poly, binding: VariableBinding) -> sympy.Expr:
    """
    Convert an exact ring polynomial to a numeric polynomial over solver variables.

    Each term becomes float(coefficient) times the product of the bound variables
    raised to the term's exponents.

    Raises:
        BindingError: If a generator occurring in `poly` has no binding
    """
    missing = [
        g
        for g, d in zip(poly.gens, _max_degrees(poly), strict=True)
        if d > 0 and g not in binding.mapping
    ]
    if missing:
        raise BindingError(f"No solver variable bound to {[str(g) for g in missing]}")

    terms = []
    for monom, coef in poly.terms():
        term = sympy.Float(float(coef))
        for gen, exponent in zip(poly.gens, monom, strict=True):
            if exponent:
                term *= binding.mapping[gen].symbol**exponent
        terms.append(term)
    return sympy.Add(*terms)


def _max_degrees(poly: sympy.Poly) -> tuple[int, ...]:
    if poly.is_zero:
        return (0,) * len(poly.gens)
    return tuple(poly.degree_list())
