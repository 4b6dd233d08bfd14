"""
Pydantic schemas for numerical identifiability analysis.

Covers the ODE model definition, the strategy and solver configuration, and the
diagnostic report produced by an identifiability check.
"""

from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any, Literal, Self

import numpy as np
import pandas as pd
import sympy
from numpydantic import NDArray
from pydantic import BaseModel, Field, field_validator, model_validator
from sympy.parsing.sympy_parser import parse_expr

from numerical_identifiability.utils import identifiers

# ============================================================================
# ODE Model
# ============================================================================


def parse_polynomial(text: str | sympy.Expr) -> sympy.Expr:
    """
    Parse an expression string, treating every identifier as a plain symbol.

    Names such as `gamma`, `beta` or `E` would otherwise be read as sympy functions
    or constants.
    """
    if isinstance(text, sympy.Expr):
        return text
    if isinstance(text, (int, float)):
        return sympy.nsimplify(text, rational=True)
    local_dict = {name: sympy.Symbol(name) for name in identifiers(str(text))}
    return parse_expr(str(text), local_dict=local_dict)


class ODEModel(BaseModel):
    """
    Polynomial ODE model with states (x), outputs (y), inputs (u) and parameters (p).

    Structure:
        - x' = f(x, u, p) for every state x (x_equations)
        - y  = g(x, u, p) for every output y (y_equations)

    Constraints:
        - Variable sets are pairwise disjoint
        - Right-hand sides are polynomials with rational coefficients
        - Right-hand sides only reference states, inputs and parameters

    Declaration order of states and outputs is preserved and is used as the
    enumeration order during prolongation.
    """

    x_equations: dict[str, sympy.Expr] = Field(
        ..., min_length=1, description="State right-hand sides, in declaration order"
    )
    y_equations: dict[str, sympy.Expr] = Field(
        ..., min_length=1, description="Output right-hand sides, in declaration order"
    )
    inputs: list[str] = Field(default_factory=list, description="Input variable names")
    parameters: list[str] = Field(default_factory=list, description="Parameter names")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("x_equations", "y_equations", mode="before")
    @classmethod
    def parse_equations(cls, v: Mapping[str, str | sympy.Expr]) -> dict[str, sympy.Expr]:
        return {str(name): parse_polynomial(rhs) for name, rhs in dict(v).items()}

    @model_validator(mode="after")
    def validate_variables(self) -> Self:
        """Validate that variable sets are disjoint and every symbol is declared."""
        groups = {
            "state": self.x_vars,
            "output": self.y_vars,
            "input": self.inputs,
            "parameter": self.parameters,
        }
        seen: dict[str, str] = {}
        for kind, names in groups.items():
            for name in names:
                if name in seen:
                    raise ValueError(f"Variable {name!r} declared as both {seen[name]} and {kind}")
                seen[name] = kind

        allowed = set(self.x_vars) | set(self.inputs) | set(self.parameters)
        for name, rhs in self.equations.items():
            for s in rhs.free_symbols:
                if s.name in self.y_vars:
                    raise ValueError(f"Right-hand side of {name!r} references output {s.name!r}")
                if s.name not in allowed:
                    raise ValueError(f"Right-hand side of {name!r} uses undeclared symbol {s.name!r}")
        return self

    @model_validator(mode="after")
    def validate_polynomial(self) -> Self:
        """Validate that all right-hand sides are polynomials over QQ."""
        gens = self.symbols(self.x_vars + self.inputs + self.parameters)
        for name, rhs in self.equations.items():
            try:
                poly = sympy.Poly(rhs, *gens)
            except sympy.PolynomialError as e:
                raise ValueError(f"Right-hand side of {name!r} is not polynomial: {rhs}") from e
            if not (poly.domain.is_ZZ or poly.domain.is_QQ):
                raise ValueError(
                    f"Right-hand side of {name!r} must have rational coefficients, "
                    f"got domain {poly.domain}"
                )
        return self

    @classmethod
    def from_equations(
        cls,
        states: Mapping[str, str | sympy.Expr],
        outputs: Mapping[str, str | sympy.Expr],
        inputs: Sequence[str] = (),
        parameters: Sequence[str] | None = None,
    ) -> Self:
        """
        Create a model from right-hand side strings.

        Parameters default to every symbol that is neither a state nor an input,
        sorted by name.

        Example:
            >>> model = ODEModel.from_equations({"x": "p*x"}, {"y": "x"})
            >>> model.parameters
            ['p']
        """
        x_equations = {name: parse_polynomial(rhs) for name, rhs in states.items()}
        y_equations = {name: parse_polynomial(rhs) for name, rhs in outputs.items()}
        if parameters is None:
            declared = set(x_equations) | set(y_equations) | set(inputs)
            found = set()
            for rhs in [*x_equations.values(), *y_equations.values()]:
                found |= {s.name for s in rhs.free_symbols}
            parameters = sorted(found - declared)
        return cls(
            x_equations=x_equations,
            y_equations=y_equations,
            inputs=list(inputs),
            parameters=list(parameters),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "states": {k: str(v) for k, v in self.x_equations.items()},
            "outputs": {k: str(v) for k, v in self.y_equations.items()},
            "inputs": list(self.inputs),
            "parameters": list(self.parameters),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Self:
        """Create from dictionary (inverse of `to_dict`)."""
        return cls.from_equations(
            states=d["states"],
            outputs=d["outputs"],
            inputs=d.get("inputs", ()),
            parameters=d.get("parameters"),
        )

    @staticmethod
    def symbols(names: Sequence[str]) -> list[sympy.Symbol]:
        return [sympy.Symbol(name) for name in names]

    @property
    def x_vars(self) -> list[str]:
        return list(self.x_equations)

    @property
    def y_vars(self) -> list[str]:
        return list(self.y_equations)

    @property
    def equations(self) -> dict[str, sympy.Expr]:
        """All right-hand sides, states first."""
        return {**self.x_equations, **self.y_equations}

    @property
    def prolongation_count(self) -> int:
        """Number of states plus number of parameters."""
        return len(self.x_vars) + len(self.parameters)


# ============================================================================
# Strategies
# ============================================================================


class ProlongationStrategy(StrEnum):
    """How the finite prolonged system is constructed."""

    LAZY = "lazy"
    EXHAUSTIVE = "exhaustive"


class SolvingStrategy(StrEnum):
    """How the numeric polynomial system is solved."""

    MONODROMY = "monodromy"
    HOMOTOPY = "homotopy"


FilterMode = Literal["exceeding", "within"]

IdentifiabilityStatus = Literal[
    "identifiable",
    "not_identifiable",
    "positive_dimensional",
    "no_candidates",
    "degenerate_sample",
    "solver_failure",
]


# ============================================================================
# Configuration
# ============================================================================


class SamplingConfig(BaseModel):
    """
    Configuration for drawing the random sample point.

    Fields:
        denominator: N, values are drawn as a/N with a uniform in [1, N] (default: 100)
        precision_margin: Added to |x| + |p| to obtain the series truncation order (default: 2)
        seed: Random seed, None for fresh entropy (default: None)
    """

    denominator: int = Field(default=100, ge=1, description="Denominator N of sampled rationals")
    precision_margin: int = Field(
        default=2, ge=1, description="Margin added to |x| + |p| for the series precision"
    )
    seed: int | None = Field(default=None, ge=0, description="Random seed")


class TrackerConfig(BaseModel):
    """
    Numerical constants for path tracking, monodromy and total-degree solving.
    """

    initial_step: float = Field(default=0.05, gt=0, le=1, description="Initial step size")
    max_step: float = Field(default=0.2, gt=0, le=1, description="Maximal step size")
    min_step: float = Field(default=1e-9, gt=0, description="Step size below which a path fails")
    max_steps: int = Field(default=20_000, ge=1, description="Maximal number of steps per path")
    corrector_iterations: int = Field(
        default=3, ge=1, description="Newton iterations per corrector step"
    )
    refine_iterations: int = Field(
        default=8, ge=1, description="Newton iterations for endpoint refinement"
    )
    corrector_tolerance: float = Field(
        default=1e-7, gt=0, description="Relative Newton update size accepted by the corrector"
    )
    newton_tolerance: float = Field(
        default=1e-9, gt=0, description="Relative Newton update size considered converged"
    )
    max_paths: int = Field(
        default=10_000, ge=1, description="Maximal number of total-degree start paths"
    )
    divergence_threshold: float = Field(
        default=1e8, gt=0, description="Solution norm above which a path is diverging"
    )
    singular_threshold: float = Field(
        default=1e10, gt=1, description="Jacobian condition number above which a point is singular"
    )
    dedup_tolerance: float = Field(
        default=1e-6, gt=0, description="Relative distance below which two solutions coincide"
    )
    max_loops_no_progress: int = Field(
        default=5, ge=1, description="Monodromy stops after this many loops without new solutions"
    )
    target_solutions: int | None = Field(
        default=None, ge=1, description="Monodromy stops once this many solutions are known"
    )
    n_jobs: int = Field(default=1, description="Parallel jobs for path tracking (-1 = all CPUs)")
    show_progress: bool = Field(default=False, description="Show a tqdm progress bar")

    @model_validator(mode="after")
    def validate_steps(self) -> Self:
        """Validate min_step <= initial_step <= max_step."""
        if not self.min_step <= self.initial_step <= self.max_step:
            raise ValueError(
                f"Step sizes must satisfy min_step <= initial_step <= max_step, got "
                f"{self.min_step}, {self.initial_step}, {self.max_step}"
            )
        return self


class FilterConfig(BaseModel):
    """
    Candidate filtering settings.

    Fields:
        tolerance: Residual magnitude threshold (default: 1e-6)
        keep: "within" keeps candidates whose residuals are all <= tolerance,
            "exceeding" keeps candidates whose residuals all exceed it (default: "within")
    """

    tolerance: float = Field(default=1e-6, gt=0, description="Residual tolerance")
    keep: FilterMode = Field(default="within", description="Comparison direction")


class IdentifiabilityConfig(BaseModel):
    """
    Top-level configuration of an identifiability check.

    Strategy names are validated here, before any system is constructed.
    """

    prolongation: ProlongationStrategy = Field(
        default=ProlongationStrategy.LAZY, description="Prolongation strategy"
    )
    solver: SolvingStrategy = Field(
        default=SolvingStrategy.MONODROMY, description="Numeric solving strategy"
    )
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)


# ============================================================================
# Result
# ============================================================================


class IdentifiabilityResult(BaseModel):
    """
    Verdict and diagnostics of an identifiability check.

    Fields:
        is_identifiable: True iff exactly one candidate survived filtering
        status: Distinguishes multiple survivors ("not_identifiable"), a
            positive-dimensional solution set through the sample ("positive_dimensional"),
            no survivors ("no_candidates"), a start point Newton cannot refine
            ("degenerate_sample") and other solver failures ("solver_failure")
        variables: Free-role solver variable names, the column order of candidates
        candidates: Solver output, shape (n_candidates, n_variables)
        filtered: Surviving candidates, shape (n_filtered, n_variables)
    """

    is_identifiable: bool = Field(..., description="Local identifiability verdict")
    status: IdentifiabilityStatus = Field(..., description="Outcome category")
    prolongation: ProlongationStrategy = Field(..., description="Prolongation strategy used")
    solver: SolvingStrategy = Field(..., description="Solving strategy used")
    n_square_equations: int = Field(..., ge=0, description="Size of the square subsystem")
    n_extra_equations: int = Field(..., ge=0, description="Number of extra equations")
    variables: list[str] = Field(..., description="Free-role variable names in canonical order")
    parameter_variables: list[str] = Field(
        default_factory=list, description="Parameter-role variable names in canonical order"
    )
    candidates: NDArray = Field(..., description="Candidate solutions (n_candidates, n_variables)")
    filtered: NDArray = Field(..., description="Filtered solutions (n_filtered, n_variables)")
    message: str | None = Field(default=None, description="Failure details, if any")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Solver statistics (paths, loops, ...)"
    )

    @field_validator("candidates", "filtered", mode="before")
    @classmethod
    def to_array(cls, v: Any) -> NDArray:
        return np.asarray(v, dtype=complex)

    @model_validator(mode="after")
    def validate_shape(self) -> Self:
        """Validate candidate arrays are 2D with one column per free variable."""
        n = len(self.variables)
        for name in ("candidates", "filtered"):
            arr = getattr(self, name)
            if arr.size == 0:
                setattr(self, name, arr.reshape(0, n))
            elif arr.ndim != 2 or arr.shape[1] != n:
                raise ValueError(f"{name} must have shape (*, {n}), got {arr.shape}")
        if self.is_identifiable != (len(self.filtered) == 1):
            raise ValueError("is_identifiable must hold iff exactly one candidate survived")
        return self

    def __bool__(self) -> bool:
        return self.is_identifiable

    @property
    def n_candidates(self) -> int:
        return int(self.candidates.shape[0])

    @property
    def n_filtered(self) -> int:
        return int(self.filtered.shape[0])

    def to_frame(self) -> pd.DataFrame:
        """Filtered candidates as a DataFrame, one row per variable, one column per candidate."""
        return pd.DataFrame(
            self.filtered.T,
            index=pd.Index(self.variables, name="variable"),
            columns=[f"candidate_{i}" for i in range(self.n_filtered)],
        )
