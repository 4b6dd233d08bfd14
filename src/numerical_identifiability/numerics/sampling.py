"""
Random sample points for the numeric identifiability check.
"""

import logging
from collections.abc import Sequence

import numpy as np
import sympy
from pydantic import BaseModel, Field

from numerical_identifiability.algebra.power_series import power_series_solution
from numerical_identifiability.algebra.ring import DifferentialRing
from numerical_identifiability.numerics.translator import SolverVariable, VariableBinding
from numerical_identifiability.schemas import ODEModel, SamplingConfig
from numerical_identifiability.utils import ensure_rng

logger = logging.getLogger(__name__)


class SamplePoint(BaseModel):
    """
    Concrete point of the prolonged system, consistent with the model.

    Fields:
        parameters: Sampled parameter values
        initial_conditions: Sampled state values at t = 0
        inputs: Sampled input series coefficients
        trajectories: Truncated power series of every state, output and input
        values: Exact value of every ring generator (derivatives are k! * c_k)
        precision: Truncation order of the trajectories
    """

    parameters: dict[str, sympy.Rational] = Field(..., description="Parameter values")
    initial_conditions: dict[str, sympy.Rational] = Field(..., description="Initial conditions")
    inputs: dict[str, list[sympy.Rational]] = Field(..., description="Input series coefficients")
    trajectories: dict[str, list[sympy.Rational]] = Field(..., description="Truncated series")
    values: dict[sympy.Symbol, sympy.Rational] = Field(..., description="Value per ring generator")
    precision: int = Field(..., ge=0, description="Series truncation order")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def numeric(
        self, variables: Sequence[SolverVariable], binding: VariableBinding
    ) -> np.ndarray:
        """
        Float vector of the point, aligned to the given solver variable order.

        Raises:
            KeyError: If a variable is not bound to a generator with a value
        """
        inverse = binding.inverse()
        return np.array([float(self.values[inverse[v]]) for v in variables], dtype=float)


class SamplePointGenerator:
    """
    Generator of random sample points for a model.

    Parameters, initial conditions and input series coefficients are drawn as a/N
    with a uniform in [1, N]. A truncated power series solution then provides the
    values of all derivatives.

    Args:
        model: ODE model
        config: Sampling configuration (default: SamplingConfig())
        rng: Random generator or seed, overrides `config.seed` if given
    """

    def __init__(
        self,
        model: ODEModel,
        config: SamplingConfig | None = None,
        rng: np.random.Generator | int | None = None,
    ) -> None:
        self.model = model
        self.config = config or SamplingConfig()
        self.rng = ensure_rng(rng if rng is not None else self.config.seed)
        # must exceed every derivative order in the prolonged system
        self.precision = model.prolongation_count + self.config.precision_margin

    def _draw(self) -> sympy.Rational:
        N = self.config.denominator
        return sympy.Rational(int(self.rng.integers(1, N, endpoint=True)), N)

    def sample(self, ring: DifferentialRing) -> SamplePoint:
        """
        Draw a sample point and evaluate it at every generator of `ring`.

        Args:
            ring: Differential ring of the prolonged system

        Returns:
            SamplePoint with a value for every ring generator

        Raises:
            ValueError: If the ring holds a derivative beyond the series precision
        """
        model = self.model
        parameters = {p: self._draw() for p in model.parameters}
        initial_conditions = {x: self._draw() for x in model.x_vars}
        inputs = {u: [self._draw() for _ in range(self.precision + 1)] for u in model.inputs}

        trajectories = power_series_solution(
            model, parameters, initial_conditions, inputs, self.precision
        )

        values: dict[sympy.Symbol, sympy.Rational] = {}
        for p in ring.parameters:
            values[p] = parameters[p.name]
        for name in ring.diff_var_names:
            max_order = ring.max_order(name)
            if max_order > self.precision:
                raise ValueError(
                    f"Order {max_order} of {name!r} exceeds series precision {self.precision}"
                )
            for order in range(max_order + 1):
                values[ring.generator(name, order)] = (
                    sympy.factorial(order) * trajectories[name][order]
                )

        logger.debug(f"Sampled parameters {parameters}, initial conditions {initial_conditions}")
        return SamplePoint(
            parameters=parameters,
            initial_conditions=initial_conditions,
            inputs=inputs,
            trajectories=trajectories,
            values=values,
            precision=self.precision,
        )
