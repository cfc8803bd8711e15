"""
Dependency graph checks over item records.

The scheduler is handed items already annotated with their dependencies; it
never builds a graph to decide *what* to run. It does, however, need to know
up front whether the run can finish at all: a dependency cycle would
otherwise leave every item on the cycle pending forever.

Design Principles:
- Pure functions over the record list (no state, deterministic)
- Only gating dependencies count (development and self references are ignored)
- Clear error messages naming the cycle
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Collection, Sequence

from lockstep.core.errors import DuplicateItemError, UnresolvableDependenciesError

from .record import ItemRecord


def check_unique_names(records: Sequence[ItemRecord]) -> set[str]:
    """Return the set of item names.

    Raises:
        DuplicateItemError: If a name is declared more than once.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for record in records:
        if record.name in seen and record.name not in duplicates:
            duplicates.append(record.name)
        seen.add(record.name)
    if duplicates:
        raise DuplicateItemError(duplicates)
    return seen


def _adjacency(records: Sequence[ItemRecord], all_names: Collection[str]) -> dict[str, list[str]]:
    return {r.name: r.dependency_names(all_names) for r in records}


def find_cycle(records: Sequence[ItemRecord], all_names: Collection[str]) -> list[str] | None:
    """
    Find one dependency cycle, if any.

    Uses depth-first search with three-color marking:
    - WHITE (0): Unvisited
    - GRAY (1): On the current path
    - BLACK (2): Finished

    Reaching a GRAY node means the current path loops back on itself. The
    search is iterative so long dependency chains cannot exhaust the
    recursion limit.

    Returns:
        The cycle as ``[a, b, ..., a]``, or None for an acyclic graph.
    """
    WHITE, GRAY, BLACK = 0, 1, 2

    graph = _adjacency(records, all_names)
    color = {name: WHITE for name in graph}

    for root in graph:
        if color[root] != WHITE:
            continue
        path: list[str] = [root]
        stack = [iter(graph[root])]
        color[root] = GRAY
        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                color[path.pop()] = BLACK
                stack.pop()
                continue
            if color[neighbor] == GRAY:
                start = path.index(neighbor)
                return path[start:] + [neighbor]
            if color[neighbor] == WHITE:
                color[neighbor] = GRAY
                path.append(neighbor)
                stack.append(iter(graph[neighbor]))
    return None


def check_acyclic(records: Sequence[ItemRecord], all_names: Collection[str]) -> None:
    """
    Raises:
        UnresolvableDependenciesError: If the gating dependencies form a cycle.
    """
    cycle = find_cycle(records, all_names)
    if cycle:
        raise UnresolvableDependenciesError(cycle[:-1], cycle=cycle)


def topological_order(records: Sequence[ItemRecord], all_names: Collection[str]) -> list[str]:
    """
    Item names in an order that respects every gating dependency.

    Kahn's algorithm; items with no gating dependencies come first, in
    input order.

    Raises:
        UnresolvableDependenciesError: If some items can never become ready.
    """
    graph = _adjacency(records, all_names)
    dependents: dict[str, list[str]] = defaultdict(list)
    in_degree = {name: len(deps) for name, deps in graph.items()}
    for name, deps in graph.items():
        for dep in deps:
            dependents[dep].append(name)

    ready = deque(name for name in graph if in_degree[name] == 0)
    order: list[str] = []
    while ready:
        name = ready.popleft()
        order.append(name)
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)

    if len(order) != len(graph):
        placed = set(order)
        raise UnresolvableDependenciesError([name for name in graph if name not in placed])
    return order
