import re
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import mlflow
import numpy as np

T = TypeVar("T")

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z_0-9]*")


def diffvar(name: str, order: int) -> str:
    """
    Name of the ring generator for the `order`-th derivative of `name`.

    Example:
        >>> diffvar("x", 2)
        'x_2'
    """
    return f"{name}_{order}"


def identifiers(text: str) -> list[str]:
    """
    Extract identifier-like tokens from an expression string, in order of appearance.

    Example:
        >>> identifiers("p*x + gamma**2")
        ['p', 'x', 'gamma']
    """
    seen: dict[str, None] = {}
    for token in _IDENTIFIER.findall(text):
        seen.setdefault(token, None)
    return list(seen)


def ensure_rng(rng: np.random.Generator | int | None) -> np.random.Generator:
    """
    Convert a seed (or None) to a numpy Generator, pass through Generator objects.

    Raises:
        TypeError: If rng is an invalid type
    """
    if isinstance(rng, np.random.Generator):
        return rng
    elif rng is None or isinstance(rng, (int, np.integer)):
        return np.random.default_rng(rng)
    raise TypeError(f"Invalid random generator type: {type(rng)}")


def format_complex(values: Iterable[complex]) -> str:
    """
    Format complex numbers for log output, e.g. "1.00 + 0.00 im  2.00 - 1.50 im".
    """
    parts = []
    for v in values:
        sign = "-" if v.imag < 0 else "+"
        parts.append(f"{v.real:.2f} {sign} {abs(v.imag):.2f} im")
    return "  ".join(parts)


def if_logging(fn: Callable[..., T]) -> Callable[..., T | None]:
    """
    Wrap a function to execute only in an active MLflow run.
    Can be used as a decorator.
    """

    def wrapper(*args: Any, **kwargs: Any) -> T | None:
        return fn(*args, **kwargs) if mlflow.active_run() else None

    return wrapper
