"""
Integration tests: end-to-end identifiability checks on small models.
"""

import itertools

import pytest

from numerical_identifiability import (
    IdentifiabilityCheck,
    IdentifiabilityConfig,
    TrackerConfig,
    check_identifiability,
)
from numerical_identifiability.schemas import ODEModel

STRATEGIES = list(itertools.product(["exhaustive", "lazy"], ["monodromy", "homotopy"]))


class TestIdentifiableModels:
    """Models whose sampled points are locally identifiable."""

    @pytest.mark.parametrize("prolongation,solver", STRATEGIES)
    def test_exponential(self, exponential_model: ODEModel, prolongation: str, solver: str) -> None:
        """x' = p x, y = x."""
        result = check_identifiability(exponential_model, prolongation, solver, seed=10)
        assert result.is_identifiable, result.message
        assert result.status == "identifiable"

    @pytest.mark.parametrize("prolongation,solver", STRATEGIES)
    def test_known_input(self, input_model: ODEModel, prolongation: str, solver: str) -> None:
        """x' = a x + u, y = x."""
        result = check_identifiability(input_model, prolongation, solver, seed=11)
        assert result.is_identifiable, result.message


class TestNonIdentifiableModels:
    """Models whose sampled points are not locally identifiable."""

    @pytest.mark.parametrize(
        "prolongation,solver",
        [
            ("exhaustive", "monodromy"),
            ("exhaustive", "homotopy"),
            ("lazy", "monodromy"),
            pytest.param("lazy", "homotopy", marks=pytest.mark.slow),
        ],
    )
    def test_product_of_parameters(
        self, product_model: ODEModel, prolongation: str, solver: str
    ) -> None:
        """Only p1 * p2 is determined: a positive-dimensional solution set."""
        result = check_identifiability(product_model, prolongation, solver, seed=12)
        assert not result.is_identifiable
        assert result.status in {"not_identifiable", "no_candidates", "positive_dimensional"}

    @pytest.mark.parametrize("prolongation", ["exhaustive", "lazy"])
    def test_sign_symmetry_homotopy(self, square_output_model: ODEModel, prolongation: str) -> None:
        """y = x^2 determines x only up to sign: two isolated candidates."""
        result = check_identifiability(square_output_model, prolongation, "homotopy", seed=13)
        assert result.status == "not_identifiable"
        assert result.n_filtered == 2

    @pytest.mark.slow
    def test_sign_symmetry_monodromy(self, square_output_model: ODEModel) -> None:
        """Monodromy loops find the mirrored solution."""
        config = IdentifiabilityConfig(
            prolongation="exhaustive",
            solver="monodromy",
            tracker=TrackerConfig(max_loops_no_progress=40, target_solutions=2),
        )
        result = IdentifiabilityCheck(config, rng=14).run(square_output_model)
        assert result.status == "not_identifiable"
        assert result.n_filtered == 2


class TestStrategyAgreement:
    """Both prolongation strategies reach the same verdict."""

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_same_verdict(self, exponential_model: ODEModel, seed: int) -> None:
        exhaustive = check_identifiability(exponential_model, "exhaustive", "homotopy", seed=seed)
        lazy = check_identifiability(exponential_model, "lazy", "homotopy", seed=seed)
        assert exhaustive.is_identifiable == lazy.is_identifiable
        assert exhaustive.n_filtered == lazy.n_filtered
        assert exhaustive.status == lazy.status

    def test_same_verdict_non_identifiable(self, square_output_model: ODEModel) -> None:
        exhaustive = check_identifiability(square_output_model, "exhaustive", "homotopy", seed=3)
        lazy = check_identifiability(square_output_model, "lazy", "homotopy", seed=3)
        assert exhaustive.is_identifiable == lazy.is_identifiable is False
        assert exhaustive.n_filtered == lazy.n_filtered
        assert exhaustive.status == lazy.status
