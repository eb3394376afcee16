"""Greedy nearest-neighbour visiting order over a travel-time matrix.

This is a heuristic, not a tour solver: from the chosen start it repeatedly
moves to the cheapest unvisited stop. The walk stops early when every
remaining stop is unreachable from the current one, so the returned order can
be shorter than the matrix. Costs are integer milliseconds (``UNREACHABLE``
for missing cells) and are never rounded here.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .errors import InvalidStartIndexError
from .models import UNREACHABLE, RouteComputation

logger = logging.getLogger(__name__)


def clamp_start_index(start_index: int, size: int) -> int:
    """Bound a user-selected start into ``[0, size - 1]`` (0 for empty input)."""
    if size <= 0:
        return 0
    return min(max(start_index, 0), size - 1)


def leg_durations(cost: Sequence[Sequence[float]], order: Sequence[int]) -> tuple[float, ...]:
    return tuple(cost[order[k]][order[k + 1]] for k in range(len(order) - 1))


def compute_order(cost: Sequence[Sequence[float]], start_index: int) -> RouteComputation:
    size = len(cost)
    if size == 0:
        return RouteComputation(order=(), leg_durations=())
    if not 0 <= start_index < size:
        raise InvalidStartIndexError(start_index, size)
    for row in cost:
        if len(row) != size:
            raise ValueError(f"Cost matrix must be square; got a row of {len(row)} for {size} stops.")

    order = [start_index]
    visited = [False] * size
    visited[start_index] = True
    current = start_index

    for _ in range(size - 1):
        best = -1
        best_cost = UNREACHABLE
        row = cost[current]
        # Strict comparison keeps the lowest index on ties.
        for candidate in range(size):
            if not visited[candidate] and row[candidate] < best_cost:
                best = candidate
                best_cost = row[candidate]
        if best == -1:
            logger.debug(
                f"Greedy walk stuck at stop {current}: {size - len(order)} stops unreachable, stopping early"
            )
            break
        order.append(best)
        visited[best] = True
        current = best

    return RouteComputation(order=tuple(order), leg_durations=leg_durations(cost, order))
