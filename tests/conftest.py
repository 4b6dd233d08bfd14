"""
Fixtures for testing.
"""

import numpy as np
import pytest

from numerical_identifiability.schemas import ODEModel

# ============================================================================
# Model fixtures
# ============================================================================


@pytest.fixture
def exponential_model() -> ODEModel:
    """x' = p x, y = x: identifiable."""
    return ODEModel.from_equations({"x": "p*x"}, {"y": "x"})


@pytest.fixture
def product_model() -> ODEModel:
    """x1' = p1 x2, x2' = p2 x1, y = x1: only p1 * p2 is identifiable."""
    return ODEModel.from_equations({"x1": "p1*x2", "x2": "p2*x1"}, {"y": "x1"})


@pytest.fixture
def square_output_model() -> ODEModel:
    """x' = p x, y = x^2: the sign of x is not identifiable (two solutions)."""
    return ODEModel.from_equations({"x": "p*x"}, {"y": "x**2"})


@pytest.fixture
def input_model() -> ODEModel:
    """x' = a x + u, y = x: identifiable with a known input."""
    return ODEModel.from_equations({"x": "a*x + u"}, {"y": "x"}, inputs=["u"])


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)
