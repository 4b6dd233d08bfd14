"""
Unit tests for residual-based candidate filtering.
"""

import numpy as np
import pytest
import sympy

from numerical_identifiability.numerics import filter_solutions

x, y = sympy.symbols("x y")


class TestFilterSolutions:
    """Test suite for filter_solutions."""

    @pytest.fixture
    def candidates(self) -> np.ndarray:
        return np.array([[1.0], [2.0], [1.0 + 1e-9]], dtype=complex)

    def test_within(self, candidates: np.ndarray) -> None:
        """Candidates with every residual within tolerance are kept."""
        kept = filter_solutions([x - 1], candidates, [x], keep="within")
        assert kept.shape == (2, 1)
        assert kept[:, 0].real == pytest.approx([1.0, 1.0])

    def test_exceeding(self, candidates: np.ndarray) -> None:
        """Candidates with every residual above tolerance are kept."""
        kept = filter_solutions([x - 1], candidates, [x])
        assert kept.shape == (1, 1)
        assert kept[0, 0] == 2.0

    def test_all_equations_must_agree(self) -> None:
        """A single violated equation decides in both modes."""
        candidates = np.array([[1.0, 5.0]])
        assert len(filter_solutions([x - 1, y - 2], candidates, [x, y], keep="within")) == 0
        assert len(filter_solutions([x - 1, y - 2], candidates, [x, y], keep="exceeding")) == 0

    @pytest.mark.parametrize("keep", ["within", "exceeding"])
    def test_idempotent(self, candidates: np.ndarray, keep: str) -> None:
        """Filtering twice equals filtering once."""
        once = filter_solutions([x - 1], candidates, [x], keep=keep)
        twice = filter_solutions([x - 1], once, [x], keep=keep)
        np.testing.assert_array_equal(once, twice)

    def test_no_equations(self, candidates: np.ndarray) -> None:
        """Without equations every candidate is kept."""
        assert len(filter_solutions([], candidates, [x])) == 3

    def test_no_candidates(self) -> None:
        """Empty input gives an empty (0, n) array."""
        kept = filter_solutions([x - 1, y], np.empty((0, 2)), [x, y], keep="within")
        assert kept.shape == (0, 2)

    def test_tolerance(self, candidates: np.ndarray) -> None:
        """A looser tolerance keeps more candidates."""
        kept = filter_solutions([x - 1], candidates, [x], tolerance=2.0, keep="within")
        assert len(kept) == 3

    def test_unknown_mode_raises(self, candidates: np.ndarray) -> None:
        with pytest.raises(ValueError, match="filter mode"):
            filter_solutions([x - 1], candidates, [x], keep="below")
