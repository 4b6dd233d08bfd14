"""
Numerical local identifiability check for polynomial ODE models.

Pipeline:
    1. Prolong the model into a square subsystem plus extra equations
    2. Sample a random point consistent with the model
    3. Translate the equations into numeric polynomials over solver variables
    4. Solve for the free-role variables (monodromy or total-degree homotopy)
    5. Filter candidates by the residuals of all equations

The sampled point is locally identifiable iff exactly one candidate survives.
"""

import logging
from collections.abc import Callable
from typing import Any, NamedTuple

import numpy as np

from numerical_identifiability.numerics.filtering import filter_solutions
from numerical_identifiability.numerics.homotopy import (
    DegenerateSampleError,
    NumericalSolverError,
    PolynomialSystem,
    PositiveDimensionalError,
    SolveResult,
    monodromy_solve,
    solve,
)
from numerical_identifiability.numerics.sampling import SamplePointGenerator
from numerical_identifiability.numerics.translator import build_binding, to_numeric
from numerical_identifiability.prolongation.builders import (
    PROLONGATION_BUILDERS,
    EquationSystem,
)
from numerical_identifiability.schemas import (
    IdentifiabilityConfig,
    IdentifiabilityResult,
    IdentifiabilityStatus,
    ODEModel,
    ProlongationStrategy,
    SamplingConfig,
    SolvingStrategy,
    TrackerConfig,
)
from numerical_identifiability.tracking import log_identifiability_result
from numerical_identifiability.utils import ensure_rng, format_complex

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SolveFn = Callable[
    [PolynomialSystem, np.ndarray, np.ndarray, TrackerConfig, np.random.Generator], SolveResult
]


def _solve_monodromy(
    system: PolynomialSystem,
    start_solution: np.ndarray,
    start_parameters: np.ndarray,
    config: TrackerConfig,
    rng: np.random.Generator,
) -> SolveResult:
    return monodromy_solve(system, start_solution, start_parameters, config, rng)


def _solve_homotopy(
    system: PolynomialSystem,
    start_solution: np.ndarray,
    start_parameters: np.ndarray,
    config: TrackerConfig,
    rng: np.random.Generator,
) -> SolveResult:
    # the known start solution is not needed, every solution is found from scratch
    return solve(system.fix_parameters(start_parameters), config, rng)


SOLVERS: dict[SolvingStrategy, SolveFn] = {
    SolvingStrategy.MONODROMY: _solve_monodromy,
    SolvingStrategy.HOMOTOPY: _solve_homotopy,
}


def _failure_status(error: NumericalSolverError) -> IdentifiabilityStatus:
    if isinstance(error, PositiveDimensionalError):
        return "positive_dimensional"
    if isinstance(error, DegenerateSampleError):
        return "degenerate_sample"
    return "solver_failure"


class CallPlan(NamedTuple):
    """Fixed sequence of calls for one strategy pair."""

    prolongation: ProlongationStrategy
    solver: SolvingStrategy
    build_system: Callable[[ODEModel], EquationSystem]
    solve: SolveFn


def resolve_plan(
    prolongation: ProlongationStrategy | str, solver: SolvingStrategy | str
) -> CallPlan:
    """
    Resolve a strategy pair into the functions to call.

    Raises:
        ValueError: If either strategy is unknown
    """
    try:
        prolongation = ProlongationStrategy(prolongation)
    except ValueError as e:
        raise ValueError(
            f"Unknown prolongation strategy {prolongation!r}, "
            f"expected one of {[s.value for s in ProlongationStrategy]}"
        ) from e
    try:
        solver = SolvingStrategy(solver)
    except ValueError as e:
        raise ValueError(
            f"Unknown solving strategy {solver!r}, "
            f"expected one of {[s.value for s in SolvingStrategy]}"
        ) from e
    return CallPlan(
        prolongation=prolongation,
        solver=solver,
        build_system=PROLONGATION_BUILDERS[prolongation],
        solve=SOLVERS[solver],
    )


class IdentifiabilityCheck:
    """
    Numerical local identifiability check.

    Args:
        config: Strategies and numerical settings (default: IdentifiabilityConfig())
        rng: Random generator or seed, overrides `config.sampling.seed` if given

    Example:
        >>> model = ODEModel.from_equations({"x": "p*x"}, {"y": "x"})
        >>> result = IdentifiabilityCheck(IdentifiabilityConfig(), rng=0).run(model)
        >>> result.is_identifiable
        True
    """

    def __init__(
        self,
        config: IdentifiabilityConfig | None = None,
        rng: np.random.Generator | int | None = None,
    ) -> None:
        self.config = config or IdentifiabilityConfig()
        self.plan = resolve_plan(self.config.prolongation, self.config.solver)
        self.rng = ensure_rng(rng if rng is not None else self.config.sampling.seed)

    def run(self, model: ODEModel) -> IdentifiabilityResult:
        """
        Run the check on a model.

        Returns:
            IdentifiabilityResult with verdict and diagnostics
        """
        plan = self.plan

        # 1. Prolonging the system
        equations = plan.build_system(model)
        ring = equations.ring

        # 2. Sampling a point
        point = SamplePointGenerator(model, self.config.sampling, self.rng).sample(ring)

        # 3. Converting the system to numeric polynomials.
        # Derivatives of outputs and inputs are the parameters of the numeric system,
        # everything else is solved for.
        binding = build_binding(ring, observed=model.y_vars + model.inputs)
        square = [to_numeric(eq, binding) for eq in equations.square]
        extended = square + [to_numeric(eq, binding) for eq in equations.extra]
        point_param = point.numeric(binding.parameters, binding)
        point_free = point.numeric(binding.free, binding)
        system = PolynomialSystem(square, binding.free, binding.parameters)

        common: dict[str, Any] = {
            "prolongation": plan.prolongation,
            "solver": plan.solver,
            "n_square_equations": len(equations.square),
            "n_extra_equations": len(equations.extra),
            "variables": [str(v) for v in binding.free],
            "parameter_variables": [str(v) for v in binding.parameters],
        }
        logger.info(
            f"Prolonged system ({plan.prolongation}): {len(square)} square and "
            f"{len(equations.extra)} extra equations in {len(binding.free)} unknowns"
        )

        # 4. Solving
        try:
            raw = plan.solve(system, point_free, point_param, self.config.tracker, self.rng)
        except NumericalSolverError as e:
            status: IdentifiabilityStatus = _failure_status(e)
            if status == "positive_dimensional":
                logger.info(f"Solution set through the sample is positive-dimensional: {e}")
            else:
                logger.warning(f"Numerical solving failed ({status}): {e}")
            result = IdentifiabilityResult(
                is_identifiable=False,
                status=status,
                candidates=[],
                filtered=[],
                message=str(e),
                **common,
            )
            log_identifiability_result(result)
            return result

        logger.info(f"Solver returned {len(raw)} candidates ({raw.statistics})")

        # 5. Filtering
        check_system = PolynomialSystem(extended, binding.free, binding.parameters)
        filtered = filter_solutions(
            check_system.fix_parameters(point_param).expressions,
            raw.solutions,
            binding.free,
            tolerance=self.config.filter.tolerance,
            keep=self.config.filter.keep,
        )

        n_filtered = len(filtered)
        logger.info(f"Number of solutions: {n_filtered}")
        if n_filtered > 1:
            for i, v in enumerate(binding.free):
                logger.info(f"{v} : {format_complex(filtered[:, i])}")

        if n_filtered == 1:
            status = "identifiable"
        elif n_filtered == 0:
            status = "no_candidates"
        else:
            status = "not_identifiable"

        result = IdentifiabilityResult(
            is_identifiable=n_filtered == 1,
            status=status,
            candidates=raw.solutions,
            filtered=filtered,
            metadata=raw.statistics,
            **common,
        )
        log_identifiability_result(result)
        return result


def check_identifiability(
    model: ODEModel,
    prolongation: ProlongationStrategy | str = ProlongationStrategy.LAZY,
    solver: SolvingStrategy | str = SolvingStrategy.MONODROMY,
    seed: int | None = None,
    **kwargs: Any,
) -> IdentifiabilityResult:
    """
    Check local identifiability of a randomly sampled point of `model`.

    Args:
        model: ODE model
        prolongation: "lazy" or "exhaustive"
        solver: "monodromy" or "homotopy"
        seed: Random seed for sampling and solving
        **kwargs: Further IdentifiabilityConfig fields (tracker, filter)

    Returns:
        IdentifiabilityResult, truthy iff the point is locally identifiable

    Raises:
        ValueError: If a strategy is unknown (before anything is computed)
    """
    config = IdentifiabilityConfig(
        prolongation=prolongation,
        solver=solver,
        sampling=kwargs.pop("sampling", SamplingConfig(seed=seed)),
        **kwargs,
    )
    return IdentifiabilityCheck(config, rng=seed).run(model)
