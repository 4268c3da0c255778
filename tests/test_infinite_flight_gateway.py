import httpx
import pytest

from app.ingestors.infinite_flight import FlightDataError, InfiniteFlightGateway

BASE_URL = "https://if.example.test/public/v2"


def _gateway(handler) -> InfiniteFlightGateway:
    return InfiniteFlightGateway(
        api_key="test-key", base_url=BASE_URL, timeout=5, transport=httpx.MockTransport(handler)
    )


@pytest.mark.anyio
async def test_list_sessions_unwraps_envelope():
    def handler(request: httpx.Request):
        assert request.url.path == "/public/v2/sessions"
        assert request.headers["Authorization"] == "Bearer test-key"
        return httpx.Response(
            200,
            json={
                "errorCode": 0,
                "result": [
                    {"id": "s-1", "name": "Casual Server", "userCount": 400, "maxUsers": 1000, "type": 0},
                    {"id": "s-2", "name": "Expert Server", "userCount": 900, "maxUsers": 1000, "type": 1},
                    {"name": "Missing id"},
                ],
            },
        )

    sessions = await _gateway(handler).list_sessions()

    assert [s.name for s in sessions] == ["Casual Server", "Expert Server"]
    assert sessions[1].user_count == 900


@pytest.mark.anyio
async def test_list_flights_normalizes_entries():
    payload = {
        "errorCode": 0,
        "result": [
            {
                "username": "Maverick",
                "callsign": "Delta 123 Heavy",
                "latitude": 40.1,
                "longitude": -73.5,
                "altitude": 34000.5,
                "speed": 480.2,
                "verticalSpeed": -12.0,
                "track": 271.0,
                "heading": 270.0,
                "lastReport": "2024-05-03T19:40:00Z",
                "flightId": "f-1",
                "userId": "u-1",
                "pilotState": 0,
                "isConnected": True,
            },
            {"id": "f-2", "username": "Goose", "pilotState": 1},
            {"username": "NoFlightId"},
        ],
    }

    sessions_seen: list[str] = []

    def handler(request: httpx.Request):
        sessions_seen.append(request.url.path)
        return httpx.Response(200, json=payload)

    flights = await _gateway(handler).list_flights("s-2")

    assert sessions_seen == ["/public/v2/sessions/s-2/flights"]
    assert [f.flight_id for f in flights] == ["f-1", "f-2"]
    first = flights[0]
    assert first.username == "Maverick"
    assert first.vertical_speed == -12.0
    assert first.is_connected is True
    assert first.last_report.year == 2024
    assert first.is_backgrounded is False
    assert flights[1].is_backgrounded is True


@pytest.mark.anyio
async def test_auth_rejection_retries_once_with_query_param():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request):
        calls.append(request)
        if "Authorization" in request.headers:
            return httpx.Response(401, json={"errorCode": 4})
        assert request.url.params["apikey"] == "test-key"
        return httpx.Response(200, json=[{"id": "s-1", "name": "Expert Server"}])

    sessions = await _gateway(handler).list_sessions()

    assert len(calls) == 2
    assert sessions[0].id == "s-1"


@pytest.mark.anyio
async def test_auth_rejection_on_both_modes_raises():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request):
        calls.append(request)
        return httpx.Response(403, text="forbidden")

    with pytest.raises(FlightDataError) as exc_info:
        await _gateway(handler).list_sessions()

    assert len(calls) == 2
    assert exc_info.value.status_code == 403


@pytest.mark.anyio
async def test_route_not_found_error_code_maps_to_empty():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={"errorCode": 6, "result": None})

    route = await _gateway(handler).get_flight_route("s-1", "gone")

    assert route == []


@pytest.mark.anyio
async def test_route_not_found_on_http_error_maps_to_empty():
    def handler(request: httpx.Request):
        return httpx.Response(404, json={"errorCode": 6})

    assert await _gateway(handler).get_flight_route("s-1", "gone") == []


@pytest.mark.anyio
async def test_route_points_are_parsed_in_order():
    def handler(request: httpx.Request):
        assert request.url.path.endswith("/sessions/s-1/flights/f-1/route")
        return httpx.Response(
            200,
            json={
                "errorCode": 0,
                "result": [
                    {"latitude": 40.0, "longitude": -73.0, "altitude": 3000, "groundSpeed": 180, "track": 40, "date": "2024-05-03T19:30:00Z"},
                    {"latitude": 40.6, "longitude": -73.7, "altitude": 20, "groundSpeed": 12, "track": 40, "date": "2024-05-03T19:40:00Z"},
                    {"altitude": 10},
                ],
            },
        )

    route = await _gateway(handler).get_flight_route("s-1", "f-1")

    assert len(route) == 2
    assert route[-1].ground_speed == 12
    assert route[-1].altitude == 20


@pytest.mark.anyio
async def test_other_api_error_codes_raise():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={"errorCode": 5, "result": None})

    with pytest.raises(FlightDataError) as exc_info:
        await _gateway(handler).list_flights("missing-session")

    assert exc_info.value.error_code == 5


@pytest.mark.anyio
async def test_server_error_raises():
    def handler(request: httpx.Request):
        return httpx.Response(503, text="unavailable")

    with pytest.raises(FlightDataError):
        await _gateway(handler).list_flights("s-1")


@pytest.mark.anyio
async def test_invalid_json_raises():
    def handler(request: httpx.Request):
        return httpx.Response(200, text="<html>nginx</html>")

    with pytest.raises(FlightDataError):
        await _gateway(handler).list_sessions()


@pytest.mark.anyio
async def test_timeout_raises_flight_data_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(FlightDataError):
        await _gateway(handler).list_sessions()


@pytest.mark.anyio
async def test_flight_plan_flattens_procedures():
    def handler(request: httpx.Request):
        assert request.url.path.endswith("/flightplan")
        return httpx.Response(
            200,
            json={
                "errorCode": 0,
                "result": {
                    "flightPlanId": "p-1",
                    "flightPlanItems": [
                        {"name": "KJFK", "identifier": "KJFK", "location": {"latitude": 40.64, "longitude": -73.78, "altitude": -1}},
                        {
                            "name": "DEEZZ5",
                            "identifier": "DEEZZ5",
                            "children": [
                                {"name": "DEEZZ", "identifier": "DEEZZ", "location": {"latitude": 40.9, "longitude": -73.2, "altitude": 10000}},
                                {"name": "CANDR", "identifier": "CANDR", "location": {"latitude": 41.0, "longitude": -72.9, "altitude": -1}},
                            ],
                        },
                        {"name": "EGLL", "identifier": "EGLL", "location": {"latitude": 51.47, "longitude": -0.46, "altitude": -1}},
                    ],
                },
            },
        )

    plan = await _gateway(handler).get_flight_plan("s-1", "f-1")

    assert [w.identifier for w in plan] == ["KJFK", "DEEZZ", "CANDR", "EGLL"]
    assert plan[0].altitude is None
    assert plan[1].altitude == 10000
