"""
Command line interface: check local identifiability of a model given as JSON.

The model file has the form
    {"states": {"x": "p*x"}, "outputs": {"y": "x"}, "inputs": [], "parameters": ["p"]}
with "inputs" and "parameters" optional.
"""

import argparse
import json
import logging
from collections.abc import Sequence
from pathlib import Path

from numerical_identifiability.identifiability import IdentifiabilityCheck
from numerical_identifiability.schemas import (
    FilterConfig,
    IdentifiabilityConfig,
    IdentifiabilityResult,
    ODEModel,
    ProlongationStrategy,
    SamplingConfig,
    SolvingStrategy,
    TrackerConfig,
)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="numerical-identifiability",
        description="Numerical local identifiability check for polynomial ODE models",
    )
    parser.add_argument("model", type=Path, help="JSON model file")
    parser.add_argument(
        "--prolongation",
        choices=[s.value for s in ProlongationStrategy],
        default=ProlongationStrategy.LAZY.value,
    )
    parser.add_argument(
        "--solver",
        choices=[s.value for s in SolvingStrategy],
        default=SolvingStrategy.MONODROMY.value,
    )
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--denominator", type=int, default=100)
    parser.add_argument("--tolerance", type=float, default=1e-6)
    parser.add_argument("--keep", choices=["within", "exceeding"], default="within")
    parser.add_argument("--n-jobs", type=int, default=1)
    parser.add_argument("--progress", action="store_true")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    return parser.parse_args(argv)


def load_model(path: str | Path) -> ODEModel:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return ODEModel.from_dict(json.load(f))


def format_result(result: IdentifiabilityResult) -> str:
    verdict = "locally identifiable" if result.is_identifiable else "not identifiable"
    lines = [
        f"Verdict: {verdict} ({result.status})",
        f"Strategies: {result.prolongation} / {result.solver}",
        f"Equations: {result.n_square_equations} square, {result.n_extra_equations} extra",
        f"Candidates: {result.n_candidates}, after filtering: {result.n_filtered}",
    ]
    if result.message:
        lines.append(f"Message: {result.message}")
    if result.n_filtered:
        lines.append(result.to_frame().to_string())
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = IdentifiabilityConfig(
        prolongation=args.prolongation,
        solver=args.solver,
        sampling=SamplingConfig(denominator=args.denominator, seed=args.seed),
        tracker=TrackerConfig(n_jobs=args.n_jobs, show_progress=args.progress),
        filter=FilterConfig(tolerance=args.tolerance, keep=args.keep),
    )
    result = IdentifiabilityCheck(config).run(load_model(args.model))

    if args.json:
        print(result.model_dump_json(exclude={"candidates", "filtered"}))
    else:
        print(format_result(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
