"""
Monodromy solving of parametric polynomial systems.
"""

import logging

import numpy as np
from numpydantic import NDArray
from pydantic import BaseModel, Field

from numerical_identifiability.numerics.homotopy.system import (
    DegenerateSampleError,
    PolynomialSystem,
    PositiveDimensionalError,
)
from numerical_identifiability.numerics.homotopy.tracker import (
    ParameterHomotopy,
    is_new,
    newton,
    run_tasks,
    track_path,
)
from numerical_identifiability.schemas import TrackerConfig
from numerical_identifiability.utils import ensure_rng

logger = logging.getLogger(__name__)


class SolveResult(BaseModel):
    """
    Solutions returned by a numeric solver.

    Fields:
        solutions: Distinct solutions, shape (n_solutions, n_variables)
        statistics: Solver statistics (paths tracked, failures, loops, ...)
    """

    solutions: NDArray = Field(..., description="Solutions (n_solutions, n_variables)")
    statistics: dict[str, int] = Field(default_factory=dict, description="Solver statistics")

    def __len__(self) -> int:
        return int(self.solutions.shape[0])


def check_system(system: object) -> PolynomialSystem:
    """
    Make sure a built PolynomialSystem was passed.

    Raises:
        TypeError: For anything else, e.g. the PolynomialSystem class itself
    """
    if not isinstance(system, PolynomialSystem):
        raise TypeError(f"Expected a PolynomialSystem instance, got {system!r}")
    return system


def _track_loop(
    system: PolynomialSystem,
    start: np.ndarray,
    nodes: list[np.ndarray],
    config: TrackerConfig,
) -> np.ndarray | None:
    """Track `start` along the closed polygon `nodes` in parameter space."""
    x = start
    for p0, p1 in zip(nodes[:-1], nodes[1:], strict=True):
        result = track_path(ParameterHomotopy(system, p0, p1), x, config)
        if not result.success:
            return None
        x = result.solution
    return x


def monodromy_solve(
    system: PolynomialSystem,
    start_solution: np.ndarray,
    start_parameters: np.ndarray,
    config: TrackerConfig | None = None,
    rng: np.random.Generator | int | None = None,
) -> SolveResult:
    """
    Find the solutions of F(x; p0) = 0 reachable from a known one by monodromy.

    Every known solution is tracked around random triangles p0 -> p1 -> p2 -> p0 in
    complex parameter space. Endpoints not seen before are new solutions. Stops
    after `config.max_loops_no_progress` loops without a new solution, or when
    `config.target_solutions` solutions are known.

    Args:
        system: Parametric system (square or overdetermined)
        start_solution: Approximate solution at `start_parameters`
        start_parameters: Parameter point p0
        config: Tracker constants (default: TrackerConfig())
        rng: Random generator or seed for the loop points and squaring up

    Returns:
        SolveResult with all solutions found at p0

    Raises:
        TypeError: If `system` is not a PolynomialSystem instance
        ValueError: If `system` has no parameters
        PositiveDimensionalError: If the system is underdetermined or the Jacobian
            is singular at the start solution
        DegenerateSampleError: If Newton refinement of the start solution does not
            converge
    """
    system = check_system(system)
    if not system.parameters:
        raise ValueError("Monodromy solving needs a parametric system")
    config = config or TrackerConfig()
    rng = ensure_rng(rng)

    if len(system) < system.n_variables:
        raise PositiveDimensionalError(
            f"Underdetermined system: {len(system)} equations in {system.n_variables} variables"
        )
    system = system.squared_up(rng)

    p0 = np.asarray(start_parameters, dtype=complex)
    x0 = np.asarray(start_solution, dtype=complex)
    # start points that already solve the system are used as given
    residual = np.linalg.norm(system.residuals(x0, p0))
    if residual > config.corrector_tolerance * (1 + np.linalg.norm(x0)):
        x0, converged = newton(
            lambda z: system.residuals(z, p0),
            lambda z: system.jacobian(z, p0),
            x0,
            config.refine_iterations,
            config.newton_tolerance,
        )
        if not converged:
            raise DegenerateSampleError(
                "Newton refinement of the start solution did not converge"
            )
    condition = system.condition(x0, p0)
    if condition > config.singular_threshold:
        raise PositiveDimensionalError(
            f"Jacobian is singular at the start solution (condition number {condition:.3g})"
        )

    solutions = [x0]
    loops = 0
    loops_no_progress = 0
    failed = 0
    while loops_no_progress < config.max_loops_no_progress:
        if config.target_solutions is not None and len(solutions) >= config.target_solutions:
            break
        shape = p0.shape
        p1 = rng.standard_normal(shape) + 1j * rng.standard_normal(shape)
        p2 = rng.standard_normal(shape) + 1j * rng.standard_normal(shape)
        nodes = [p0, p1, p2, p0]

        tasks = [(system, x, nodes, config) for x in solutions]
        endpoints = run_tasks(_track_loop, tasks, config, desc=f"Monodromy loop {loops + 1}")

        n_known = len(solutions)
        for y in endpoints:
            if y is None:
                failed += 1
            elif is_new(y, solutions, config.dedup_tolerance):
                solutions.append(y)
        loops += 1
        loops_no_progress = 0 if len(solutions) > n_known else loops_no_progress + 1
        logger.debug(f"Monodromy loop {loops}: {len(solutions)} solutions")

    return SolveResult(
        solutions=np.array(solutions),
        statistics={"loops": loops, "failed_paths": failed, "solutions": len(solutions)},
    )
