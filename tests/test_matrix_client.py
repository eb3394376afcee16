import math

import httpx
import pytest

from src.route_planner.config import settings
from src.route_planner.models.domain import Coordinate, TravelMode
from src.route_planner.services.routing.errors import MatrixServiceUnavailableError
from src.route_planner.services.routing.matrix_client import GoogleDistanceMatrixClient, build_matrix_client
from src.route_planner.services.routing.osrm_client import OSRMClient

COORDS = [Coordinate(0.0, 10.0), Coordinate(1.0, 10.0), Coordinate(2.0, 10.0)]


def _element(seconds: int | None, status: str = "OK", in_traffic: int | None = None) -> dict:
    if status != "OK":
        return {"status": status}
    element = {"status": "OK", "duration": {"value": seconds, "text": f"{seconds} s"}}
    if in_traffic is not None:
        element["duration_in_traffic"] = {"value": in_traffic, "text": f"{in_traffic} s"}
    return element


def _lat_index(param: str) -> list[int]:
    return [int(float(pair.split(",")[0])) for pair in param.split("|")]


def _by_latitude(request: httpx.Request) -> httpx.Response:
    # duration i -> j is 10*i + j seconds, where i/j are the latitudes
    origins = _lat_index(request.url.params["origins"])
    destinations = _lat_index(request.url.params["destinations"])
    rows = [
        {"elements": [_element(0 if i == j else 10 * i + j) for j in destinations]}
        for i in origins
    ]
    return httpx.Response(200, json={"status": "OK", "rows": rows})


def _google(handler, **kwargs) -> GoogleDistanceMatrixClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("max_retries", 0)
    return GoogleDistanceMatrixClient(api_key="test-key", client=client, **kwargs)


@pytest.mark.asyncio
async def test_driving_request_is_traffic_aware_and_in_milliseconds():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params)
        rows = [
            {"elements": [_element(0), _element(300, in_traffic=420)]},
            {"elements": [_element(310, in_traffic=400), _element(0)]},
        ]
        return httpx.Response(200, json={"status": "OK", "rows": rows})

    matrix = await _google(handler).get_matrix(COORDS[:2], TravelMode.DRIVING)

    assert matrix.values == [[0, 420_000], [400_000, 0]]
    assert matrix.mode == TravelMode.DRIVING
    params = seen[0]
    assert params["mode"] == "driving"
    assert params["departure_time"] == "now"
    assert params["traffic_model"] == "best_guess"
    assert params["origins"] == "0.0,10.0|1.0,10.0"
    assert params["destinations"] == params["origins"]
    assert params["key"] == "test-key"


@pytest.mark.asyncio
async def test_walking_request_uses_plain_duration():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params)
        return _by_latitude(request)

    matrix = await _google(handler).get_matrix(COORDS, TravelMode.WALKING)

    assert matrix.values[0][1] == 1_000
    assert matrix.values[2][0] == 20_000
    assert seen[0]["mode"] == "walking"
    assert "departure_time" not in seen[0]
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_failed_cell_is_unreachable_for_that_pair_only():
    def handler(request: httpx.Request) -> httpx.Response:
        rows = [
            {"elements": [_element(0), _element(None, status="ZERO_RESULTS"), _element(60)]},
            {"elements": [_element(50), _element(0), _element(70)]},
            {"elements": [_element(80), _element(90), _element(0)]},
        ]
        return httpx.Response(200, json={"status": "OK", "rows": rows})

    matrix = await _google(handler).get_matrix(COORDS, TravelMode.BICYCLING)

    assert math.isinf(matrix.values[0][1])
    assert matrix.values[1][0] == 50_000
    assert matrix.values[0][2] == 60_000
    assert matrix.unreachable_pairs() == 1


@pytest.mark.asyncio
async def test_diagonal_is_zero_even_when_provider_omits_it():
    def handler(request: httpx.Request) -> httpx.Response:
        rows = [
            {"elements": [_element(None, status="NOT_FOUND"), _element(5)]},
            {"elements": [_element(6), _element(None, status="NOT_FOUND")]},
        ]
        return httpx.Response(200, json={"status": "OK", "rows": rows})

    matrix = await _google(handler).get_matrix(COORDS[:2], TravelMode.WALKING)

    assert matrix.values == [[0, 5_000], [6_000, 0]]


@pytest.mark.asyncio
async def test_denied_request_is_service_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key", "rows": []})

    with pytest.raises(MatrixServiceUnavailableError, match="REQUEST_DENIED"):
        await _google(handler).get_matrix(COORDS, TravelMode.DRIVING)


@pytest.mark.asyncio
async def test_server_error_after_retries_is_service_unavailable():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503, json={})

    client = _google(handler, max_retries=2, backoff_seconds=0)
    with pytest.raises(MatrixServiceUnavailableError):
        await client.get_matrix(COORDS, TravelMode.DRIVING)

    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_connection_failure_is_service_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MatrixServiceUnavailableError):
        await _google(handler).get_matrix(COORDS, TravelMode.DRIVING)


@pytest.mark.asyncio
async def test_malformed_response_is_service_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "OK", "rows": [{"elements": [_element(0)]}]})

    with pytest.raises(MatrixServiceUnavailableError):
        await _google(handler).get_matrix(COORDS, TravelMode.DRIVING)


@pytest.mark.asyncio
@pytest.mark.parametrize("count,expected", [(0, []), (1, [[0]])])
async def test_fewer_than_two_coordinates_make_no_request(count, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    matrix = await _google(handler).get_matrix(COORDS[:count], TravelMode.DRIVING)

    assert matrix.values == expected


@pytest.mark.asyncio
async def test_large_stop_sets_are_fetched_in_blocks():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return _by_latitude(request)

    coords = [Coordinate(float(i), 10.0) for i in range(5)]
    matrix = await _google(handler, max_coordinates_per_request=2).get_matrix(coords, TravelMode.WALKING)

    assert len(requests) == 9
    for i in range(5):
        for j in range(5):
            assert matrix.values[i][j] == (0 if i == j else (10 * i + j) * 1000)


@pytest.mark.asyncio
async def test_failed_block_marks_only_its_pairs_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        origins = _lat_index(request.url.params["origins"])
        destinations = _lat_index(request.url.params["destinations"])
        if origins == [0, 1] and destinations == [2, 3]:
            return httpx.Response(400, json={})
        return _by_latitude(request)

    coords = [Coordinate(float(i), 10.0) for i in range(4)]
    matrix = await _google(handler, max_coordinates_per_request=2).get_matrix(coords, TravelMode.WALKING)

    assert matrix.unreachable_pairs() == 4
    assert math.isinf(matrix.values[0][2]) and math.isinf(matrix.values[1][3])
    assert matrix.values[2][0] == 20_000


@pytest.mark.asyncio
async def test_majority_of_failed_blocks_is_service_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        if _lat_index(request.url.params["origins"]) == [0, 1] and _lat_index(
            request.url.params["destinations"]
        ) == [0, 1]:
            return _by_latitude(request)
        return httpx.Response(400, json={})

    coords = [Coordinate(float(i), 10.0) for i in range(4)]
    with pytest.raises(MatrixServiceUnavailableError, match="Critical failure"):
        await _google(handler, max_coordinates_per_request=2).get_matrix(coords, TravelMode.WALKING)


def test_missing_api_key_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "google_maps_api_key", None)

    with pytest.raises(ValueError, match="API key"):
        GoogleDistanceMatrixClient()


def test_build_matrix_client_selects_provider(monkeypatch):
    monkeypatch.setattr(settings, "google_maps_api_key", "k")
    monkeypatch.setattr(settings, "osrm_base_url", "http://osrm.local")

    assert isinstance(build_matrix_client("google"), GoogleDistanceMatrixClient)
    assert isinstance(build_matrix_client("osrm"), OSRMClient)
    with pytest.raises(ValueError):
        build_matrix_client("here")


def test_chunked_client_without_block_fetch_cannot_be_created():
    from src.route_planner.services.routing.matrix_client import ChunkedMatrixClient

    class NoFetch(ChunkedMatrixClient):
        service_name = "nothing"

    with pytest.raises(TypeError):
        NoFetch(max_coordinates_per_request=2)
