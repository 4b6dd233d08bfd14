"""
Variable dependency graph and prolongation order propagation.
"""

from collections import deque
from collections.abc import Mapping, Sequence

from numerical_identifiability.schemas import ODEModel

DependencyGraph = dict[str, list[str]]

UNCONSTRAINED = -1


def build_graph(model: ODEModel) -> DependencyGraph:
    """
    Convert a model into a digraph sending each left-hand side variable to the
    non-parameter variables of its right-hand side.

    Inputs are sinks (empty adjacency).

    Example:
        >>> model = ODEModel.from_equations({"x": "p*x"}, {"y": "x"})
        >>> build_graph(model)
        {'x': ['x'], 'y': ['x']}
    """
    parameters = set(model.parameters)
    graph: DependencyGraph = {}
    for z, rhs in model.equations.items():
        graph[z] = sorted(s.name for s in rhs.free_symbols if s.name not in parameters)
    for u in model.inputs:
        graph[u] = []
    return graph


def propagate_orders(graph: Mapping[str, Sequence[str]], seed_orders: Mapping[str, int]) -> dict[str, int]:
    """
    Find the prolongation order of every variable from the desired orders of the
    seeded variables.

    Seeded variables pass their order unchanged to their successors, all other
    variables pass their order minus one. Orders only increase and are bounded by
    the maximal seed, so the relaxation terminates at the same fixed point for any
    processing order.

    Args:
        graph: Adjacency lists (every successor must be a node)
        seed_orders: Desired order of the seeded variables

    Returns:
        Order for every node, UNCONSTRAINED (-1) if no seed reaches it

    Raises:
        KeyError: If a seed or successor is not a node of the graph
    """
    unknown = [v for v in seed_orders if v not in graph]
    if unknown:
        raise KeyError(f"Seeded variables not in graph: {unknown}")

    result = {v: UNCONSTRAINED for v in graph}
    result.update(seed_orders)

    queue = deque(seed_orders)
    while queue:
        v = queue.popleft()
        offset = 0 if v in seed_orders else -1
        for u in graph[v]:
            if u not in result:
                raise KeyError(f"Successor {u!r} of {v!r} is not in graph")
            if result[u] < result[v] + offset:
                result[u] = result[v] + offset
                queue.append(u)

    return result
