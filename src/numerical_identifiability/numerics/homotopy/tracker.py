"""
Predictor-corrector path tracking for polynomial homotopies.

A homotopy H(x, t) is tracked from t = 0 to t = 1. The predictor integrates the
Davidenko equation dx/dt = -H_x^{-1} H_t with one RK4 step, the corrector runs a few
Newton iterations at the new t. The step size halves on corrector failure and
doubles after three consecutive successes.
"""

from collections.abc import Callable, Sequence
from typing import Any, Literal, Protocol

import numpy as np
import scipy.linalg
from joblib import Parallel, delayed
from numpydantic import NDArray
from pydantic import BaseModel, Field
from tqdm import tqdm

from numerical_identifiability.numerics.homotopy.system import PolynomialSystem
from numerical_identifiability.schemas import TrackerConfig

PathStatus = Literal["success", "diverged", "failed"]


class Homotopy(Protocol):
    """
    Homotopy H(x, t) between a start system (t = 0) and a target system (t = 1).
    """

    def evaluate(self, x: np.ndarray, t: float) -> np.ndarray: ...
    def jacobian(self, x: np.ndarray, t: float) -> np.ndarray: ...
    def dt(self, x: np.ndarray, t: float) -> np.ndarray: ...


class ParameterHomotopy:
    """
    H(x, t) = F(x; (1 - t) p0 + t p1) for a parametric system F.
    """

    def __init__(
        self,
        system: PolynomialSystem,
        start_parameters: np.ndarray,
        target_parameters: np.ndarray,
    ) -> None:
        self.system = system
        self.start_parameters = np.asarray(start_parameters, dtype=complex)
        self.target_parameters = np.asarray(target_parameters, dtype=complex)

    def _p(self, t: float) -> np.ndarray:
        return (1 - t) * self.start_parameters + t * self.target_parameters

    def evaluate(self, x: np.ndarray, t: float) -> np.ndarray:
        return self.system.residuals(x, self._p(t))

    def jacobian(self, x: np.ndarray, t: float) -> np.ndarray:
        return self.system.jacobian(x, self._p(t))

    def dt(self, x: np.ndarray, t: float) -> np.ndarray:
        direction = self.target_parameters - self.start_parameters
        return self.system.parameter_jacobian(x, self._p(t)) @ direction


class TotalDegreeHomotopy:
    """
    H(x, t) = (1 - t) γ G(x) + t F(x) with start system G_i(x) = x_i^{d_i} - 1.

    The random complex γ keeps paths away from singularities for t in [0, 1).
    """

    def __init__(self, system: PolynomialSystem, degrees: Sequence[int], gamma: complex) -> None:
        self.system = system
        self.degrees = np.asarray(degrees)
        self.gamma = gamma

    def start_residuals(self, x: np.ndarray) -> np.ndarray:
        return x**self.degrees - 1

    def evaluate(self, x: np.ndarray, t: float) -> np.ndarray:
        return (1 - t) * self.gamma * self.start_residuals(x) + t * self.system.residuals(x)

    def jacobian(self, x: np.ndarray, t: float) -> np.ndarray:
        start_jacobian = np.diag(self.degrees * x ** (self.degrees - 1))
        return (1 - t) * self.gamma * start_jacobian + t * self.system.jacobian(x)

    def dt(self, x: np.ndarray, t: float) -> np.ndarray:
        return self.system.residuals(x) - self.gamma * self.start_residuals(x)

    def start_solutions(self) -> list[np.ndarray]:
        """All solutions of G: products of roots of unity."""
        roots = [np.exp(2j * np.pi * np.arange(d) / d) for d in self.degrees]
        grids = np.meshgrid(*roots, indexing="ij")
        return [np.array(point) for point in zip(*(g.ravel() for g in grids), strict=True)]


class PathResult(BaseModel):
    """
    Result of tracking a single path.

    Fields:
        status: "success" if t = 1 was reached and the endpoint refined,
            "diverged" if the solution norm exceeded the divergence threshold,
            "failed" if the step size or step budget was exhausted
        solution: Last point on the path
        t: Last value of t reached
        steps: Number of accepted and rejected steps
    """

    status: PathStatus = Field(..., description="Path outcome")
    solution: NDArray = Field(..., description="Last point on the path")
    t: float = Field(..., ge=0.0, le=1.0, description="Last value of t reached")
    steps: int = Field(..., ge=0, description="Number of steps")

    @property
    def success(self) -> bool:
        return self.status == "success"


def newton(
    evaluate: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    iterations: int,
    tolerance: float,
) -> tuple[np.ndarray, bool]:
    """
    Newton iterations on a square system.

    Converged if an update is below `tolerance * (1 + |x|)`; fails early if the
    updates stop contracting or the Jacobian is singular.

    Returns:
        Tuple of (last iterate, converged)
    """
    x = np.asarray(x, dtype=complex)
    previous = np.inf
    for _ in range(iterations):
        try:
            dx = scipy.linalg.solve(jacobian(x), -evaluate(x))
        except (np.linalg.LinAlgError, ValueError):
            return x, False
        if not np.all(np.isfinite(dx)):
            return x, False
        x = x + dx
        norm = np.linalg.norm(dx)
        if norm <= tolerance * (1 + np.linalg.norm(x)):
            return x, True
        if norm > previous:
            return x, False
        previous = norm
    return x, False


def _velocity(homotopy: Homotopy, x: np.ndarray, t: float) -> np.ndarray:
    return scipy.linalg.solve(homotopy.jacobian(x, t), -homotopy.dt(x, t))


def _predict(homotopy: Homotopy, x: np.ndarray, t: float, h: float) -> np.ndarray:
    k1 = _velocity(homotopy, x, t)
    k2 = _velocity(homotopy, x + h / 2 * k1, t + h / 2)
    k3 = _velocity(homotopy, x + h / 2 * k2, t + h / 2)
    k4 = _velocity(homotopy, x + h * k3, t + h)
    return x + h / 6 * (k1 + 2 * k2 + 2 * k3 + k4)


def track_path(
    homotopy: Homotopy, start: np.ndarray, config: TrackerConfig | None = None
) -> PathResult:
    """
    Track a solution of H(x, 0) = 0 to a solution of H(x, 1) = 0.

    Args:
        homotopy: Homotopy to track along
        start: Solution at t = 0
        config: Tracker constants (default: TrackerConfig())

    Returns:
        PathResult
    """
    config = config or TrackerConfig()
    x = np.asarray(start, dtype=complex)
    t = 0.0
    h = config.initial_step
    successes = 0
    steps = 0

    while t < 1.0:
        if steps >= config.max_steps:
            return PathResult(status="failed", solution=x, t=t, steps=steps)
        steps += 1
        last = h >= 1.0 - t
        h = min(h, 1.0 - t)
        t_next = 1.0 if last else t + h

        try:
            x_pred = _predict(homotopy, x, t, h)
            ok = bool(np.all(np.isfinite(x_pred)))
        except (np.linalg.LinAlgError, ValueError):
            ok = False
        if ok:
            x_pred, ok = newton(
                lambda z: homotopy.evaluate(z, t_next),
                lambda z: homotopy.jacobian(z, t_next),
                x_pred,
                config.corrector_iterations,
                config.corrector_tolerance,
            )

        if ok:
            x, t = x_pred, t_next
            successes += 1
            if successes >= 3:
                h = min(2 * h, config.max_step)
                successes = 0
            if np.linalg.norm(x) > config.divergence_threshold:
                return PathResult(status="diverged", solution=x, t=t, steps=steps)
        else:
            h /= 2
            successes = 0
            if h < config.min_step:
                return PathResult(status="failed", solution=x, t=t, steps=steps)

    x, converged = newton(
        lambda z: homotopy.evaluate(z, 1.0),
        lambda z: homotopy.jacobian(z, 1.0),
        x,
        config.refine_iterations,
        config.newton_tolerance,
    )
    status: PathStatus = "success" if converged else "failed"
    return PathResult(status=status, solution=x, t=1.0, steps=steps)


def run_tasks(
    fn: Callable[..., Any],
    tasks: Sequence[tuple[Any, ...]],
    config: TrackerConfig,
    desc: str = "Tracking paths",
) -> list[Any]:
    """
    Run `fn(*task)` for every task, in parallel with joblib if `config.n_jobs != 1`.
    """
    if config.n_jobs != 1:
        jobs = (delayed(fn)(*task) for task in tasks)
        iterator = Parallel(n_jobs=config.n_jobs, return_as="generator")(jobs)
    else:
        iterator = (fn(*task) for task in tasks)
    return list(tqdm(iterator, total=len(tasks), desc=desc, disable=not config.show_progress))


def is_new(x: np.ndarray, known: Sequence[np.ndarray], tolerance: float) -> bool:
    """Whether `x` differs from every known solution by more than `tolerance` (relative)."""
    return all(np.linalg.norm(x - y) > tolerance * (1 + np.linalg.norm(y)) for y in known)
