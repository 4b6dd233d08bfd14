"""
Unit tests for differential rings and power series solutions.
"""

import pytest
import sympy

from numerical_identifiability.algebra import (
    DerivativeOrderError,
    DifferentialRing,
    power_series_solution,
)
from numerical_identifiability.algebra.power_series import evaluate_series
from numerical_identifiability.schemas import ODEModel

R = sympy.Rational
p, x0, y0, y1, y2 = sympy.symbols("p x_0 y_0 y_1 y_2")


# ============================================================================
# Differential ring
# ============================================================================


class TestDifferentialRing:
    """Test suite for DifferentialRing."""

    @pytest.fixture
    def lie_ring(self) -> DifferentialRing:
        """Ring of x' = p x, y = x with state derivatives substituted."""
        ring = DifferentialRing(["x", "y"], ["p"], [0, 2])
        ring.set_custom_derivations({"x": p * sympy.Symbol("x")})
        return ring

    def test_generators(self) -> None:
        """Generators in declaration and order sequence, then parameters."""
        ring = DifferentialRing(["x", "y"], ["p"], [1, 2])
        assert [g.name for g in ring.gens] == ["x_0", "x_1", "y_0", "y_1", "y_2", "p"]
        assert ring.generator("y", 2) == y2
        assert ring.origin(y2) == ("y", 2)
        assert ring.origin(p) is None
        assert ring.max_order("x") == 1

    def test_no_generators_for_minus_one(self) -> None:
        """Order -1 declares a variable without generators."""
        ring = DifferentialRing(["x", "z"], [], [1, -1])
        assert [g.name for g in ring.gens] == ["x_0", "x_1"]
        with pytest.raises(DerivativeOrderError):
            ring.generator("z", 0)

    def test_unknown_variable_raises(self) -> None:
        """Unknown variable names raise KeyError."""
        ring = DifferentialRing(["x"], [], [1])
        with pytest.raises(KeyError):
            ring.generator("w", 0)

    def test_length_mismatch_raises(self) -> None:
        """One maximal order per variable."""
        with pytest.raises(ValueError):
            DifferentialRing(["x", "y"], [], [1])

    def test_colliding_names_raise(self) -> None:
        """A parameter named like a generator is rejected."""
        with pytest.raises(ValueError, match="collide"):
            DifferentialRing(["x"], ["x_0"], [0])

    def test_to_diffpoly(self, lie_ring: DifferentialRing) -> None:
        """Model symbols are lifted to order-zero generators."""
        poly = lie_ring.to_diffpoly(sympy.Symbol("y") - sympy.Symbol("x"))
        assert poly.as_expr() == y0 - x0
        assert poly.domain == sympy.QQ

    def test_to_diffpoly_undeclared_raises(self, lie_ring: DifferentialRing) -> None:
        """Symbols outside the ring are rejected."""
        with pytest.raises(ValueError):
            lie_ring.to_diffpoly(sympy.Symbol("q") * sympy.Symbol("x"))

    def test_diff_with_custom_derivations(self, lie_ring: DifferentialRing) -> None:
        """Lie derivatives of y - x."""
        eq = lie_ring.to_diffpoly(sympy.Symbol("y") - sympy.Symbol("x"))
        d1 = lie_ring.diff(eq)
        d2 = lie_ring.diff(d1)
        assert d1.as_expr() == y1 - p * x0
        assert d2.as_expr() == y2 - p**2 * x0

    def test_diff_beyond_max_order_raises(self, lie_ring: DifferentialRing) -> None:
        """Differentiating y_2 exceeds the declared order."""
        eq = lie_ring.to_diffpoly(sympy.Symbol("y"))
        eq = lie_ring.diff(lie_ring.diff(eq))
        with pytest.raises(DerivativeOrderError):
            lie_ring.diff(eq)

    def test_diff_product_rule(self) -> None:
        """D(x_0 * x_1) = x_1^2 + x_0 x_2, parameters are constants."""
        ring = DifferentialRing(["x"], ["p"], [2])
        x_0, x_1, x_2 = (ring.generator("x", i) for i in range(3))
        poly = sympy.Poly(p * x_0 * x_1, *ring.gens, domain=sympy.QQ)
        assert ring.diff(poly).as_expr() == sympy.expand(p * (x_1**2 + x_0 * x_2))

    def test_diff_of_constant(self) -> None:
        """Constants differentiate to zero."""
        ring = DifferentialRing(["x"], ["p"], [1])
        assert ring.diff(ring.to_diffpoly(p + 3)).is_zero

    def test_occurring_generators(self) -> None:
        """Only generators with a nonzero exponent occur."""
        ring = DifferentialRing(["x"], ["p"], [2])
        poly = ring.to_diffpoly(p * sympy.Symbol("x") ** 2)
        assert ring.occurring_generators(poly) == [ring.generator("x", 0), p]


# ============================================================================
# Power series
# ============================================================================


class TestPowerSeries:
    """Test suite for truncated power series solutions."""

    def test_exponential(self, exponential_model: ODEModel) -> None:
        """x' = p x has coefficients c p^n / n!."""
        series = power_series_solution(exponential_model, {"p": R(1, 2)}, {"x": R(1, 3)}, {}, 3)
        assert series["x"] == [R(1, 3), R(1, 6), R(1, 24), R(1, 144)]
        assert series["y"] == series["x"]

    def test_nonlinear(self) -> None:
        """x' = x^2, x(0) = 1 is 1 / (1 - t)."""
        model = ODEModel.from_equations({"x": "x**2"}, {"y": "2*x"})
        series = power_series_solution(model, {}, {"x": 1}, {}, 4)
        assert series["x"] == [1, 1, 1, 1, 1]
        assert series["y"] == [2, 2, 2, 2, 2]

    def test_coupled_states(self, product_model: ODEModel) -> None:
        """x1' = p1 x2, x2' = p2 x1."""
        series = power_series_solution(
            product_model, {"p1": 2, "p2": 3}, {"x1": 1, "x2": 1}, {}, 2
        )
        # x1' = 2 x2 -> 2, x2' = 3 x1 -> 3, x1'' = 2 * 3 = 6 -> c_2 = 3
        assert series["x1"] == [1, 2, 3]
        assert series["x2"] == [1, 3, 3]

    def test_input(self) -> None:
        """x' = u integrates the input series."""
        model = ODEModel.from_equations({"x": "u"}, {"y": "x"}, inputs=["u"])
        series = power_series_solution(model, {}, {"x": R(1, 5)}, {"u": [1, 2, 3, 4]}, 3)
        assert series["x"] == [R(1, 5), 1, 1, 1]
        assert series["u"] == [1, 2, 3, 4]

    def test_coefficients_are_exact(self, exponential_model: ODEModel) -> None:
        """All coefficients are sympy rationals."""
        series = power_series_solution(exponential_model, {"p": R(3, 7)}, {"x": R(2, 9)}, {}, 4)
        assert all(isinstance(c, sympy.Rational) for c in series["x"])

    def test_missing_value_raises(self, exponential_model: ODEModel) -> None:
        """Every parameter and initial condition needs a value."""
        with pytest.raises(ValueError, match="Missing"):
            power_series_solution(exponential_model, {}, {"x": 1}, {}, 2)

    def test_short_input_raises(self, input_model: ODEModel) -> None:
        """Input series must reach the precision."""
        with pytest.raises(ValueError, match="coefficients"):
            power_series_solution(input_model, {"a": 1}, {"x": 1}, {"u": [1, 2]}, 3)

    def test_evaluate_series(self) -> None:
        """(1 + t)^2 = 1 + 2t + t^2."""
        t = sympy.Symbol("t")
        poly = sympy.Poly(t**2, t, domain=sympy.QQ)
        assert evaluate_series(poly, {t: [1, 1, 0, 0]}, 3) == [1, 2, 1, 0]
