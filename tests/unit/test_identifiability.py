"""
Unit tests for strategy resolution and result reporting of the identifiability check.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

import numerical_identifiability.identifiability as identifiability_module
from numerical_identifiability.identifiability import (
    IdentifiabilityCheck,
    check_identifiability,
    resolve_plan,
)
from numerical_identifiability.numerics.homotopy import (
    DegenerateSampleError,
    NumericalSolverError,
    PositiveDimensionalError,
    SolveResult,
)
from numerical_identifiability.prolongation import build_exhaustive_system, build_lazy_system
from numerical_identifiability.schemas import (
    FilterConfig,
    IdentifiabilityConfig,
    ODEModel,
    ProlongationStrategy,
    SolvingStrategy,
)


class TestResolvePlan:
    """Test suite for resolve_plan."""

    def test_lazy_monodromy(self) -> None:
        plan = resolve_plan("lazy", "monodromy")
        assert plan.prolongation == ProlongationStrategy.LAZY
        assert plan.solver == SolvingStrategy.MONODROMY
        assert plan.build_system is build_lazy_system

    def test_exhaustive_homotopy(self) -> None:
        plan = resolve_plan(ProlongationStrategy.EXHAUSTIVE, SolvingStrategy.HOMOTOPY)
        assert plan.build_system is build_exhaustive_system

    def test_unknown_prolongation_raises(self) -> None:
        with pytest.raises(ValueError, match="prolongation"):
            resolve_plan("lie", "monodromy")

    def test_unknown_solver_raises(self) -> None:
        with pytest.raises(ValueError, match="solving"):
            resolve_plan("lazy", "groebner")


class TestIdentifiabilityCheck:
    """Test suite for IdentifiabilityCheck reporting."""

    def test_unknown_strategy_fails_before_computing(
        self, exponential_model: ODEModel, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Strategy errors are raised before any prolongation."""
        builder = MagicMock()
        monkeypatch.setitem(
            identifiability_module.PROLONGATION_BUILDERS, ProlongationStrategy.LAZY, builder
        )
        with pytest.raises(ValueError):
            check_identifiability(exponential_model, solver="groebner")
        builder.assert_not_called()

    def test_identifiable(self, exponential_model: ODEModel) -> None:
        """x' = p x, y = x is identifiable with a single surviving candidate."""
        result = check_identifiability(exponential_model, seed=0)
        assert result.is_identifiable
        assert result.status == "identifiable"
        assert result.n_filtered == 1
        assert result.variables == ["p", "x[0]", "x[1]", "x[2]"]
        assert result.parameter_variables == ["y[0]", "y[1]", "y[2]"]
        assert result.n_square_equations == 4
        assert result.n_extra_equations == 1

    def test_candidate_matches_sample(self, exponential_model: ODEModel) -> None:
        """The surviving candidate is the sampled point."""
        check = IdentifiabilityCheck(IdentifiabilityConfig(prolongation="exhaustive"), rng=3)
        result = check.run(exponential_model)
        p, x0 = result.filtered[0]
        assert abs(p.imag) < 1e-8 and abs(x0.imag) < 1e-8
        # sampled values are a / 100 in (0, 1]
        assert 0 < p.real <= 1 and 0 < x0.real <= 1
        assert round(p.real * 100) == pytest.approx(p.real * 100, abs=1e-6)

    def test_keep_exceeding_has_no_candidates(self, exponential_model: ODEModel) -> None:
        """With the "exceeding" rule the true solution is filtered out."""
        result = check_identifiability(
            exponential_model, seed=1, filter=FilterConfig(keep="exceeding")
        )
        assert not result.is_identifiable
        assert result.status == "no_candidates"
        assert result.n_candidates == 1
        assert result.filtered.shape == (0, len(result.variables))

    def test_positive_dimensional(self, product_model: ODEModel) -> None:
        """Only p1 * p2 is determined, so the Jacobian is singular at the sample."""
        result = check_identifiability(product_model, prolongation="exhaustive", seed=2)
        assert not result
        assert result.status == "positive_dimensional"
        assert result.message
        assert result.candidates.shape == (0, len(result.variables))

    @pytest.mark.parametrize(
        "error,status",
        [
            (PositiveDimensionalError("singular Jacobian"), "positive_dimensional"),
            (DegenerateSampleError("Newton did not converge"), "degenerate_sample"),
        ],
    )
    def test_solver_error_status(
        self,
        exponential_model: ODEModel,
        monkeypatch: pytest.MonkeyPatch,
        error: NumericalSolverError,
        status: str,
    ) -> None:
        """Singular samples and non-converging refinement are reported separately."""
        failing = MagicMock(side_effect=error)
        monkeypatch.setitem(identifiability_module.SOLVERS, SolvingStrategy.MONODROMY, failing)
        result = check_identifiability(exponential_model, seed=0)
        assert result.status == status
        assert result.message == str(error)
        assert not result.is_identifiable

    def test_solver_failure(
        self, exponential_model: ODEModel, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Other solver errors are reported, not raised."""
        failing = MagicMock(side_effect=NumericalSolverError("too many paths"))
        monkeypatch.setitem(identifiability_module.SOLVERS, SolvingStrategy.MONODROMY, failing)
        result = check_identifiability(exponential_model, seed=0)
        failing.assert_called_once()
        assert result.status == "solver_failure"
        assert result.message == "too many paths"
        assert not result.is_identifiable

    def test_multiple_candidates(
        self, exponential_model: ODEModel, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Several surviving candidates mean not identifiable."""

        def duplicate(system, start_solution, start_parameters, config, rng):
            return SolveResult(
                solutions=np.array([start_solution, start_solution], dtype=complex),
                statistics={"solutions": 2},
            )

        monkeypatch.setitem(identifiability_module.SOLVERS, SolvingStrategy.MONODROMY, duplicate)
        result = check_identifiability(exponential_model, seed=0)
        assert result.status == "not_identifiable"
        assert result.n_filtered == 2
        assert result.metadata == {"solutions": 2}
        assert result.to_frame().shape == (4, 2)
