import math

import pytest

from src.route_planner.services.routing.errors import InvalidStartIndexError
from src.route_planner.services.routing.ordering import clamp_start_index, compute_order, leg_durations

INF = math.inf


def _matrix(size: int) -> list[list[int]]:
    # asymmetric, all finite, with a few repeated values
    return [[0 if i == j else ((i * 7 + j * 13) % 17) + 1 for j in range(size)] for i in range(size)]


def test_fully_connected_three_stops():
    cost = [[0, 5, 9], [5, 0, 3], [9, 3, 0]]

    result = compute_order(cost, 0)

    assert result.order == (0, 1, 2)
    assert result.leg_durations == (5, 3)
    assert result.total_duration_ms == 8


def test_nearest_neighbour_picks_cheapest_next_stop():
    cost = [[0, 10, 2], [10, 0, 1], [2, 1, 0]]

    result = compute_order(cost, 0)

    assert result.order == (0, 2, 1)
    assert result.leg_durations == (2, 1)


def test_unreachable_pair_stops_walk_immediately():
    cost = [[0, INF], [INF, 0]]

    result = compute_order(cost, 0)

    assert result.order == (0,)
    assert result.leg_durations == ()


def test_tie_prefers_lower_index():
    cost = [[0, 4, 4], [4, 0, 1], [4, 1, 0]]

    result = compute_order(cost, 0)

    assert result.order[1] == 1
    assert result.order == (0, 1, 2)


def test_single_stop():
    assert compute_order([[0]], 0).order == (0,)
    assert compute_order([[0]], 0).leg_durations == ()


def test_empty_matrix():
    result = compute_order([], 0)

    assert result.order == ()
    assert result.leg_durations == ()


@pytest.mark.parametrize("start", [-1, 3, 10])
def test_out_of_range_start_is_rejected(start):
    with pytest.raises(InvalidStartIndexError) as raised:
        compute_order([[0, 1, 1], [1, 0, 1], [1, 1, 0]], start)

    assert raised.value.size == 3
    assert isinstance(raised.value, ValueError)


def test_non_square_matrix_is_rejected():
    with pytest.raises(ValueError):
        compute_order([[0, 1], [1, 0, 2]], 0)


def test_walk_ends_when_stuck_without_jumping_back():
    # Stops 2 and 3 are reachable from 0 but not from 1, where the walk lands first.
    cost = [
        [0, 1, 5, 5],
        [1, 0, INF, INF],
        [5, INF, 0, 1],
        [5, INF, 1, 0],
    ]

    result = compute_order(cost, 0)

    assert result.order == (0, 1)
    assert result.leg_durations == (1,)


def test_asymmetric_costs_use_outgoing_row():
    cost = [
        [0, 100, 50],
        [1, 0, 100],
        [100, 1, 0],
    ]

    assert compute_order(cost, 0).order == (0, 2, 1)
    assert compute_order(cost, 1).order == (1, 0, 2)


def test_greedy_result_is_not_the_optimal_tour():
    cost = [
        [0, 1, 2, 2],
        [1, 0, 100, 100],
        [2, 1, 0, 1],
        [2, 1, 1, 0],
    ]

    result = compute_order(cost, 0)

    # 0 -> 2 -> 3 -> 1 would cost 4; the greedy walk takes the cheap first hop.
    assert result.order == (0, 1, 2, 3)
    assert result.total_duration_ms == 102


@pytest.mark.parametrize("start", range(6))
def test_finite_matrix_visits_every_stop_once(start):
    cost = _matrix(6)

    result = compute_order(cost, start)

    assert result.order[0] == start
    assert sorted(result.order) == list(range(6))


@pytest.mark.parametrize("start", range(6))
def test_leg_durations_follow_the_order(start):
    cost = _matrix(6)

    result = compute_order(cost, start)

    assert len(result.leg_durations) == len(result.order) - 1
    for k, leg in enumerate(result.leg_durations):
        assert leg == cost[result.order[k]][result.order[k + 1]]


def test_same_input_gives_same_result():
    cost = _matrix(7)

    assert compute_order(cost, 3) == compute_order(cost, 3)


def test_costs_are_not_rounded():
    cost = [[0, 61234], [59999, 0]]

    assert compute_order(cost, 1).leg_durations == (59999,)


def test_leg_durations_helper():
    cost = [[0, 5, 9], [5, 0, 3], [9, 3, 0]]

    assert leg_durations(cost, [2, 0, 1]) == (9, 5)
    assert leg_durations(cost, [1]) == ()


@pytest.mark.parametrize(
    "start_index,size,expected",
    [(0, 3, 0), (2, 3, 2), (5, 3, 2), (-4, 3, 0), (3, 0, 0), (0, 1, 0)],
)
def test_clamp_start_index(start_index, size, expected):
    assert clamp_start_index(start_index, size) == expected
