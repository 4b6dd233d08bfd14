"""
Truncated differential polynomial rings.

A ring declares differential variables with a maximal derivative order each, plus
constant parameters. Elements are sympy `Poly` objects over all generators with
rational coefficients.
"""

from collections.abc import Mapping, Sequence

import sympy

from numerical_identifiability.utils import diffvar


class DerivativeOrderError(Exception):
    """Raised when differentiation would exceed a declared maximal derivative order."""

    pass


class DifferentialRing:
    """
    Differential polynomial ring truncated at a maximal order per variable.

    Args:
        diff_var_names: Names of the differential variables
        parameter_names: Names of the constant parameters
        max_orders: Maximal derivative order for each differential variable
            (-1 declares no generator for the variable)

    Raises:
        ValueError: If lengths mismatch or generator names collide
    """

    def __init__(
        self,
        diff_var_names: Sequence[str],
        parameter_names: Sequence[str],
        max_orders: Sequence[int],
    ) -> None:
        if len(diff_var_names) != len(max_orders):
            raise ValueError(
                f"Got {len(diff_var_names)} differential variables but {len(max_orders)} orders"
            )
        if any(order < -1 for order in max_orders):
            raise ValueError(f"Maximal orders must be >= -1, got {list(max_orders)}")

        self.diff_var_names = list(diff_var_names)
        self.max_orders = dict(zip(self.diff_var_names, max_orders, strict=True))
        self.parameters = [sympy.Symbol(p) for p in parameter_names]

        self._generators: dict[tuple[str, int], sympy.Symbol] = {}
        self._origin: dict[sympy.Symbol, tuple[str, int]] = {}
        for name in self.diff_var_names:
            for order in range(self.max_orders[name] + 1):
                symbol = sympy.Symbol(diffvar(name, order))
                self._generators[(name, order)] = symbol
                self._origin[symbol] = (name, order)

        names = [s.name for s in self.gens]
        if len(set(names)) != len(names):
            raise ValueError(f"Generator names collide: {sorted(names)}")

        self._derivations: dict[sympy.Symbol, sympy.Poly] = {}

    def __repr__(self) -> str:
        orders = ", ".join(f"{v}: {o}" for v, o in self.max_orders.items())
        return f"DifferentialRing({{{orders}}}, parameters={[p.name for p in self.parameters]})"

    @property
    def gens(self) -> list[sympy.Symbol]:
        """All generators: differential variables by declaration and order, then parameters."""
        return list(self._generators.values()) + self.parameters

    def generator(self, name: str, order: int) -> sympy.Symbol:
        """
        Get the generator for the `order`-th derivative of `name`.

        Raises:
            DerivativeOrderError: If the order exceeds the declared maximum
            KeyError: If `name` is not a differential variable
        """
        if name not in self.max_orders:
            raise KeyError(f"Unknown differential variable: {name}")
        if order > self.max_orders[name]:
            raise DerivativeOrderError(
                f"Order {order} of {name!r} exceeds declared maximum {self.max_orders[name]}"
            )
        return self._generators[(name, order)]

    def max_order(self, name: str) -> int:
        """Declared maximal derivative order of `name` (-1 if it has no generators)."""
        return self.max_orders[name]

    def origin(self, gen: sympy.Symbol) -> tuple[str, int] | None:
        """(name, order) of a differential generator, None for parameters."""
        return self._origin.get(gen)

    def set_custom_derivations(self, equations: Mapping[str, sympy.Expr]) -> None:
        """
        Register first-order substitution rules: the derivative of `x_0` becomes the
        lifted right-hand side of x.
        """
        for name, rhs in equations.items():
            self._derivations[self.generator(name, 0)] = self.to_diffpoly(rhs)

    def to_diffpoly(self, expr: sympy.Expr) -> sympy.Poly:
        """
        Lift a model expression into the ring: variable v becomes v_0, parameters stay.

        Raises:
            ValueError: If the expression uses a symbol the ring does not declare
        """
        expr = sympy.sympify(expr)
        parameter_names = {p.name for p in self.parameters}
        replacements = {}
        for s in expr.free_symbols:
            if s.name in parameter_names:
                continue
            if self.max_orders.get(s.name, -1) < 0:
                raise ValueError(f"Symbol {s.name!r} is not declared in {self!r}")
            replacements[s] = self._generators[(s.name, 0)]
        return sympy.Poly(expr.xreplace(replacements), *self.gens, domain=sympy.QQ)

    def derivative_of(self, gen: sympy.Symbol) -> sympy.Poly:
        """Derivative of a single generator."""
        if gen in self._derivations:
            return self._derivations[gen]
        origin = self._origin.get(gen)
        if origin is None:
            return sympy.Poly(0, *self.gens, domain=sympy.QQ)
        name, order = origin
        return sympy.Poly(self.generator(name, order + 1), *self.gens, domain=sympy.QQ)

    def diff(self, poly: sympy.Poly) -> sympy.Poly:
        """
        Differentiate a ring element once (product rule over the occurring generators).

        Raises:
            DerivativeOrderError: If a generator of maximal order occurs without a
                registered derivation
        """
        result = sympy.Poly(0, *self.gens, domain=sympy.QQ)
        for gen in self.occurring_generators(poly):
            if gen in self.parameters:
                continue
            result += poly.diff(gen) * self.derivative_of(gen)
        return result

    def occurring_generators(self, poly: sympy.Poly) -> list[sympy.Symbol]:
        """Generators with a nonzero exponent in `poly`, in ring order."""
        degrees = poly.degree_list() if not poly.is_zero else (0,) * len(self.gens)
        return [g for g, d in zip(self.gens, degrees, strict=True) if d > 0]
