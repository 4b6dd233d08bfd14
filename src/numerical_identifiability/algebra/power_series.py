"""
Truncated power series solutions of polynomial ODE models.

All arithmetic is exact over the rationals: a series is the list of its coefficients
[c_0, ..., c_precision].
"""

from collections.abc import Mapping, Sequence

import sympy

from numerical_identifiability.schemas import ODEModel

Series = list[sympy.Rational]


def _zeros(precision: int) -> Series:
    return [sympy.Integer(0)] * (precision + 1)


def _multiply(a: Series, b: Series, precision: int) -> Series:
    """Product of two series, truncated at t^precision."""
    out = _zeros(precision)
    for i in range(precision + 1):
        if a[i] == 0:
            continue
        for j in range(precision + 1 - i):
            out[i + j] += a[i] * b[j]
    return out


def evaluate_series(
    poly: sympy.Poly, series: Mapping[sympy.Symbol, Series], precision: int
) -> Series:
    """
    Substitute truncated series for the generators of `poly`.

    Args:
        poly: Polynomial whose generators all have an entry in `series`
        series: Coefficient lists, at least `precision + 1` long
        precision: Truncation order

    Returns:
        Coefficients of the composed series up to t^precision
    """
    result = _zeros(precision)
    for monom, coef in poly.terms():
        term = [sympy.Rational(coef)] + _zeros(precision)[1:]
        for gen, exponent in zip(poly.gens, monom, strict=True):
            for _ in range(exponent):
                term = _multiply(term, series[gen], precision)
        result = [r + t for r, t in zip(result, term, strict=True)]
    return result


def power_series_solution(
    model: ODEModel,
    parameter_values: Mapping[str, sympy.Rational],
    initial_conditions: Mapping[str, sympy.Rational],
    input_values: Mapping[str, Sequence[sympy.Rational]],
    precision: int,
) -> dict[str, Series]:
    """
    Solve the model as truncated power series around t = 0.

    States are determined order by order from x' = f(x, u, p): the coefficient of
    t^(n+1) in x is the coefficient of t^n in f divided by n + 1. Outputs are their
    right-hand sides evaluated on the state and input series.

    Args:
        model: ODE model
        parameter_values: Value of every parameter
        initial_conditions: Value of every state at t = 0
        input_values: Coefficients [c_0, ..., c_precision] for every input
        precision: Truncation order (>= 0)

    Returns:
        Coefficient lists of length `precision + 1` for every state, output and input

    Raises:
        ValueError: If a value is missing or an input series is too short
    """
    if precision < 0:
        raise ValueError(f"precision must be >= 0, got {precision}")
    missing = [p for p in model.parameters if p not in parameter_values]
    missing += [x for x in model.x_vars if x not in initial_conditions]
    missing += [u for u in model.inputs if u not in input_values]
    if missing:
        raise ValueError(f"Missing values for {missing}")
    for u in model.inputs:
        if len(input_values[u]) < precision + 1:
            raise ValueError(
                f"Input series for {u!r} has {len(input_values[u])} coefficients, "
                f"need {precision + 1}"
            )

    params = {sympy.Symbol(p): sympy.Rational(parameter_values[p]) for p in model.parameters}
    gens = model.symbols(model.x_vars + model.inputs)

    def to_poly(rhs: sympy.Expr) -> sympy.Poly:
        return sympy.Poly(rhs.xreplace(params), *gens, domain=sympy.QQ)

    x_polys = {x: to_poly(rhs) for x, rhs in model.x_equations.items()}
    y_polys = {y: to_poly(rhs) for y, rhs in model.y_equations.items()}

    series: dict[sympy.Symbol, Series] = {}
    for u in model.inputs:
        series[sympy.Symbol(u)] = [sympy.Rational(c) for c in input_values[u][: precision + 1]]
    for x in model.x_vars:
        series[sympy.Symbol(x)] = [sympy.Rational(initial_conditions[x])] + _zeros(precision)[1:]

    for n in range(precision):
        # coefficients of f up to t^n only depend on state coefficients up to t^n
        for x, poly in x_polys.items():
            f_n = evaluate_series(poly, series, n)[n]
            series[sympy.Symbol(x)][n + 1] = f_n / (n + 1)

    result = {s.name: coeffs for s, coeffs in series.items()}
    for y, poly in y_polys.items():
        result[y] = evaluate_series(poly, series, precision)
    return result
