"""
Total-degree homotopy solving of parameter-free polynomial systems.
"""

import logging
import math

import numpy as np

from numerical_identifiability.numerics.homotopy.monodromy import SolveResult, check_system
from numerical_identifiability.numerics.homotopy.system import (
    NumericalSolverError,
    PolynomialSystem,
    PositiveDimensionalError,
)
from numerical_identifiability.numerics.homotopy.tracker import (
    PathResult,
    TotalDegreeHomotopy,
    is_new,
    run_tasks,
    track_path,
)
from numerical_identifiability.schemas import TrackerConfig
from numerical_identifiability.utils import ensure_rng

logger = logging.getLogger(__name__)


def solve(
    system: PolynomialSystem,
    config: TrackerConfig | None = None,
    rng: np.random.Generator | int | None = None,
) -> SolveResult:
    """
    Find all isolated nonsingular solutions of a 0-dimensional system.

    Tracks the prod(d_i) solutions of the start system x_i^{d_i} = 1 to the target
    system. Diverging and failed paths are dropped, as are singular endpoints.

    Args:
        system: Parameter-free square or overdetermined system
        config: Tracker constants (default: TrackerConfig())
        rng: Random generator or seed for γ and squaring up

    Returns:
        SolveResult with the distinct nonsingular solutions

    Raises:
        TypeError: If `system` is not a PolynomialSystem instance
        ValueError: If `system` still has parameters
        PositiveDimensionalError: If the system is underdetermined
        NumericalSolverError: If an equation is constant or there are too many paths
    """
    system = check_system(system)
    if system.parameters:
        raise ValueError(
            f"Homotopy solving needs a parameter-free system, got parameters {system.parameters}; "
            "use fix_parameters first"
        )
    config = config or TrackerConfig()
    rng = ensure_rng(rng)

    if len(system) < system.n_variables:
        raise PositiveDimensionalError(
            f"Underdetermined system: {len(system)} equations in {system.n_variables} variables"
        )
    system = system.squared_up(rng)

    degrees = system.degrees
    if any(d < 1 for d in degrees):
        raise NumericalSolverError(f"System has constant equations (degrees {degrees})")
    n_paths = math.prod(degrees)
    if n_paths > config.max_paths:
        raise NumericalSolverError(f"Total degree {n_paths} exceeds max_paths={config.max_paths}")

    gamma = np.exp(2j * np.pi * rng.uniform())
    homotopy = TotalDegreeHomotopy(system, degrees, gamma)
    tasks = [(homotopy, start, config) for start in homotopy.start_solutions()]
    logger.debug(f"Tracking {n_paths} paths (degrees {degrees})")
    results: list[PathResult] = run_tasks(track_path, tasks, config)

    solutions: list[np.ndarray] = []
    singular = 0
    for result in results:
        if not result.success:
            continue
        if system.condition(result.solution) > config.singular_threshold:
            singular += 1
            continue
        if is_new(result.solution, solutions, config.dedup_tolerance):
            solutions.append(result.solution)

    statistics = {
        "paths": n_paths,
        "success": sum(r.status == "success" for r in results),
        "diverged": sum(r.status == "diverged" for r in results),
        "failed": sum(r.status == "failed" for r in results),
        "singular": singular,
        "solutions": len(solutions),
    }
    logger.debug(f"Total-degree homotopy: {statistics}")
    return SolveResult(
        solutions=np.array(solutions).reshape(len(solutions), system.n_variables),
        statistics=statistics,
    )
