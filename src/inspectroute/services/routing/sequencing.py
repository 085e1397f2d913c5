"""Intra-day stop ordering: nearest neighbour seeding followed by 2-opt."""

from __future__ import annotations

from typing import Sequence

from ...config import settings

_IMPROVEMENT_EPSILON = 0.001


def route_distance(distances: Sequence[Sequence[float]], route: Sequence[int], home_index: int = 0) -> float:
    """Closed-loop distance home -> route... -> home."""

    if not route:
        return 0.0
    total = distances[home_index][route[0]]
    for origin, destination in zip(route, route[1:]):
        total += distances[origin][destination]
    total += distances[route[-1]][home_index]
    return total


def nearest_neighbor_route(
    distances: Sequence[Sequence[float]],
    indices: Sequence[int],
    start_index: int = 0,
) -> list[int]:
    """Greedy tour over ``indices`` starting from ``start_index``."""

    remaining = list(indices)
    route: list[int] = []
    current = start_index
    while remaining:
        nearest = min(remaining, key=lambda candidate: distances[current][candidate])
        route.append(nearest)
        remaining.remove(nearest)
        current = nearest
    return route


def optimize_route_order(
    distances: Sequence[Sequence[float]],
    route: Sequence[int],
    home_index: int = 0,
    max_iterations: int | None = None,
) -> list[int]:
    """Improve a closed tour with 2-opt segment reversals.

    Returns a permutation of ``route`` whose loop distance is never longer than
    the input's.
    """

    best = list(route)
    if len(best) <= 2:
        return best

    limit = settings.two_opt_max_iterations if max_iterations is None else max_iterations
    best_distance = route_distance(distances, best, home_index)
    improved = True
    iterations = 0
    while improved and iterations < limit:
        improved = False
        iterations += 1
        for i in range(len(best) - 1):
            for j in range(i + 1, len(best)):
                prev_i = home_index if i == 0 else best[i - 1]
                next_j = best[j + 1] if j + 1 < len(best) else home_index
                current = distances[prev_i][best[i]] + distances[best[j]][next_j]
                swapped = distances[prev_i][best[j]] + distances[best[i]][next_j]
                if swapped >= current - _IMPROVEMENT_EPSILON:
                    continue
                candidate = best[:i] + best[i : j + 1][::-1] + best[j + 1 :]
                candidate_distance = route_distance(distances, candidate, home_index)
                if candidate_distance < best_distance:
                    best, best_distance = candidate, candidate_distance
                    improved = True
    return best


def order_day(distances: Sequence[Sequence[float]], indices: Sequence[int], home_index: int = 0) -> list[int]:
    """Nearest neighbour from home, then 2-opt."""

    seeded = nearest_neighbor_route(distances, indices, home_index)
    return optimize_route_order(distances, seeded, home_index)
