"""
Numeric polynomial systems compiled for fast complex evaluation.
"""

from collections.abc import Sequence
from typing import Any, Self

import numpy as np
import scipy.linalg
import sympy

from numerical_identifiability.numerics.translator import SolverVariable

VariableLike = SolverVariable | sympy.Symbol


class NumericalSolverError(Exception):
    """Raised when numerical polynomial system solving fails."""

    pass


class DegenerateSampleError(NumericalSolverError):
    """Raised when Newton does not converge on the known start solution."""

    pass


class PositiveDimensionalError(NumericalSolverError):
    """
    Raised when the solution set through a known solution is positive-dimensional:
    the system is underdetermined or its Jacobian is singular at that solution.
    """

    pass


def _symbol(v: VariableLike) -> sympy.Symbol:
    return v.symbol if isinstance(v, SolverVariable) else v


def _to_sympy_number(value: complex) -> sympy.Expr:
    value = complex(value)
    if value.imag == 0:
        return sympy.Float(value.real)
    return sympy.Float(value.real) + sympy.I * sympy.Float(value.imag)


class PolynomialSystem:
    """
    System of polynomial equations F(x; p) = 0 in variables x with parameters p.

    Residuals and Jacobians are compiled with `sympy.lambdify` on first use.
    Compiled functions are not pickled; they are rebuilt after unpickling, so
    systems can be shipped to joblib workers.

    Args:
        expressions: Polynomials over the variable and parameter symbols
        variables: Unknowns, in the positional order used for all vectors
        parameters: Parameters, in the positional order used for all vectors

    Raises:
        ValueError: If an expression uses a symbol that is neither a variable nor a parameter
    """

    def __init__(
        self,
        expressions: Sequence[sympy.Expr],
        variables: Sequence[VariableLike],
        parameters: Sequence[VariableLike] = (),
    ) -> None:
        self.expressions = [sympy.sympify(e) for e in expressions]
        self.variables = tuple(variables)
        self.parameters = tuple(parameters)

        self._x = [_symbol(v) for v in self.variables]
        self._p = [_symbol(v) for v in self.parameters]
        allowed = set(self._x) | set(self._p)
        for expr in self.expressions:
            unknown = expr.free_symbols - allowed
            if unknown:
                raise ValueError(f"Expression {expr} uses unbound symbols {sorted(map(str, unknown))}")

        self._compiled: dict[str, Any] | None = None

    def __repr__(self) -> str:
        return (
            f"PolynomialSystem({len(self.expressions)} equations, "
            f"{len(self.variables)} variables, {len(self.parameters)} parameters)"
        )

    def __len__(self) -> int:
        return len(self.expressions)

    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state["_compiled"] = None
        return state

    @property
    def n_variables(self) -> int:
        return len(self.variables)

    def _compile(self) -> dict[str, Any]:
        if self._compiled is None:
            args = self._x + self._p
            F = sympy.Matrix(self.expressions)
            compiled = {
                "F": sympy.lambdify(args, list(F), modules="numpy", dummify=True),
                "Jx": sympy.lambdify(args, F.jacobian(self._x).tolist(), modules="numpy", dummify=True),
            }
            if self._p:
                compiled["Jp"] = sympy.lambdify(
                    args, F.jacobian(self._p).tolist(), modules="numpy", dummify=True
                )
            self._compiled = compiled
        return self._compiled

    def _args(self, x: np.ndarray, p: np.ndarray | Sequence[complex]) -> list[complex]:
        x = np.asarray(x)
        p = np.asarray(p)
        if x.shape != (len(self._x),):
            raise ValueError(f"Expected {len(self._x)} variable values, got shape {x.shape}")
        if p.shape != (len(self._p),):
            raise ValueError(f"Expected {len(self._p)} parameter values, got shape {p.shape}")
        return [*x.tolist(), *p.tolist()]

    def residuals(self, x: np.ndarray, p: np.ndarray | Sequence[complex] = ()) -> np.ndarray:
        """F(x; p), shape (n_equations,)."""
        values = self._compile()["F"](*self._args(x, p))
        return np.array(values, dtype=complex).reshape(len(self.expressions))

    def jacobian(self, x: np.ndarray, p: np.ndarray | Sequence[complex] = ()) -> np.ndarray:
        """dF/dx, shape (n_equations, n_variables)."""
        values = self._compile()["Jx"](*self._args(x, p))
        return np.array(values, dtype=complex).reshape(len(self.expressions), len(self._x))

    def parameter_jacobian(self, x: np.ndarray, p: np.ndarray | Sequence[complex]) -> np.ndarray:
        """dF/dp, shape (n_equations, n_parameters)."""
        compiled = self._compile()
        if "Jp" not in compiled:
            return np.zeros((len(self.expressions), 0), dtype=complex)
        values = compiled["Jp"](*self._args(x, p))
        return np.array(values, dtype=complex).reshape(len(self.expressions), len(self._p))

    def condition(self, x: np.ndarray, p: np.ndarray | Sequence[complex] = ()) -> float:
        """Condition number of the variable Jacobian (inf if rank deficient)."""
        singular_values = scipy.linalg.svdvals(self.jacobian(x, p))
        if singular_values.size == 0 or singular_values[-1] == 0:
            return float("inf")
        return float(singular_values[0] / singular_values[-1])

    @property
    def degrees(self) -> list[int]:
        """Total degree of every equation in the variables."""
        degrees = []
        for expr in self.expressions:
            poly = sympy.Poly(expr, *self._x)
            degrees.append(0 if poly.is_zero else int(poly.total_degree()))
        return degrees

    def fix_parameters(self, values: np.ndarray | Sequence[complex]) -> Self:
        """
        Substitute numeric parameter values, giving a parameter-free system.

        Args:
            values: Parameter values in the order of `self.parameters`
        """
        values = np.asarray(values)
        if values.shape != (len(self._p),):
            raise ValueError(f"Expected {len(self._p)} parameter values, got shape {values.shape}")
        replacements = {s: _to_sympy_number(v) for s, v in zip(self._p, values, strict=True)}
        expressions = [sympy.expand(e.xreplace(replacements)) for e in self.expressions]
        return type(self)(expressions, self.variables)

    def squared_up(self, rng: np.random.Generator) -> Self:
        """
        Square an overdetermined system: the first n equations each get a random
        complex combination of the remaining ones added.
        """
        n, m = len(self._x), len(self.expressions)
        if m <= n:
            return self
        weights = rng.standard_normal((n, m - n)) + 1j * rng.standard_normal((n, m - n))
        head, tail = self.expressions[:n], self.expressions[n:]
        expressions = [
            sympy.expand(h + sum(_to_sympy_number(w) * t for w, t in zip(row, tail, strict=True)))
            for h, row in zip(head, weights, strict=True)
        ]
        return type(self)(expressions, self.variables, self.parameters)
