import pytest
import requests

from adv_route.errors import RoutingError, RoutingRateLimitedError
from adv_route.routing_client.graphhopper import (
    GraphHopperClient,
    build_custom_model,
)
from adv_route.routing_client.response_handling import (
    extract_error,
    parse_retry_after,
)
from adv_route.routing_client.session import create_session, get_default_session
from conftest import FakeResp, FakeSession

PATH_BODY = {
    "paths": [
        {
            "points": {"coordinates": [[10.0, 50.0, 120.0], [10.1, 50.1, 130.0]]},
            "distance": 1234.5,
            "time": 60000,
            "ascend": 12.0,
            "details": {"surface": [[0, 1, "gravel"]]},
        }
    ]
}


def _client(session, **kwargs):
    return GraphHopperClient(
        "secret", base_url="https://gh.test/route", session=session, **kwargs
    )


def test_route_posts_body_and_parses_first_path():
    session = FakeSession(FakeResp(200, PATH_BODY))
    model = build_custom_model()
    client = _client(session, custom_model=model)

    result = client.route([(10.0, 50.0), (10.1, 50.1)])

    assert result.coordinates == [(10.0, 50.0), (10.1, 50.1)]
    assert result.distance_m == 1234.5
    assert result.duration_ms == 60000.0
    assert result.ascent_m == 12.0
    assert result.details["surface"] == [[0, 1, "gravel"]]

    url, kwargs = session.posts[0]
    assert url == "https://gh.test/route"
    assert kwargs["params"] == {"key": "secret"}
    body = kwargs["json"]
    assert body["profile"] == "car"
    assert body["points"] == [[10.0, 50.0], [10.1, 50.1]]
    assert body["points_encoded"] is False
    assert body["custom_model"] is model
    assert body["ch.disable"] is True


def test_body_without_custom_model():
    client = _client(FakeSession())
    assert "custom_model" not in client.build_body([(1.0, 2.0), (3.0, 4.0)])


def test_rate_limit_raises_with_retry_after():
    session = FakeSession(FakeResp(429, {"message": "limit"}, {"Retry-After": "7"}))
    with pytest.raises(RoutingRateLimitedError) as excinfo:
        _client(session).route([(10.0, 50.0), (10.1, 50.1)])
    assert excinfo.value.retry_after == 7.0
    assert excinfo.value.status == 429


def test_error_status_carries_message_and_hints():
    body = {
        "message": "Point 0 is out of bounds",
        "hints": [{"message": "Point 0 is out of bounds"}, {"message": "see docs"}],
    }
    session = FakeSession(FakeResp(400, body))
    with pytest.raises(RoutingError) as excinfo:
        _client(session).route([(10.0, 50.0), (10.1, 50.1)])
    err = excinfo.value
    assert not isinstance(err, RoutingRateLimitedError)
    assert err.status == 400
    assert err.message == "GraphHopper error: Point 0 is out of bounds | see docs"
    assert "(status 400)" in str(err)


def test_no_paths_is_a_routing_error():
    session = FakeSession(FakeResp(200, {"paths": []}))
    with pytest.raises(RoutingError, match="No route found"):
        _client(session).route([(10.0, 50.0), (10.1, 50.1)])


def test_transport_failure_is_wrapped():
    session = FakeSession(exc=requests.ConnectionError("boom"))
    with pytest.raises(RoutingError, match="request failed") as excinfo:
        _client(session).route([(10.0, 50.0), (10.1, 50.1)])
    assert excinfo.value.status is None


def test_requires_two_points_and_api_key():
    with pytest.raises(RoutingError):
        _client(FakeSession()).route([(10.0, 50.0)])
    with pytest.raises(ValueError):
        GraphHopperClient("", session=FakeSession())


def test_custom_model_must_use_areas():
    areas = [
        {"id": "pass1", "type": "Feature", "geometry": {"type": "Polygon"}},
        {"type": "Feature", "geometry": {"type": "Polygon"}},
    ]
    model = build_custom_model(areas, distance_influence=20)
    assert model["distance_influence"] == 20
    conditions = [rule["if"] for rule in model["priority"]]
    assert any(c.startswith("in_pass1 &&") for c in conditions)
    assert [f["id"] for f in model["areas"]["features"]] == ["pass1"]
    assert any("road_class == TRACK" in rule["if"] for rule in model["speed"])


def test_parse_retry_after_variants():
    assert parse_retry_after(None) is None
    assert parse_retry_after({}) is None
    assert parse_retry_after({"Retry-After": "2.5"}) == 2.5
    assert parse_retry_after({"X-RateLimit-Reset": "40"}) == 40.0
    assert parse_retry_after({"Retry-After": "-3"}) == 0.0
    # Sun, 06 Nov 1994 08:49:37 GMT == 784111777
    delay = parse_retry_after(
        {"Retry-After": "Sun, 06 Nov 1994 08:49:37 GMT"}, now=784111770.0
    )
    assert delay == pytest.approx(7.0)
    assert parse_retry_after({"Retry-After": "soon"}) is None


def test_extract_error_falls_back_to_text():
    assert extract_error(FakeResp(502, None, text="Bad gateway")) == "Bad gateway"
    assert extract_error(FakeResp(500, None, text="  ")) is None
    assert extract_error(FakeResp(400, {"remark": "runtime error"})) == "runtime error"
    assert extract_error(None) is None


def test_session_retries_server_errors_only():
    session = create_session(retry_total=2)
    retry = session.get_adapter("https://graphhopper.com").max_retries
    assert retry.total == 2
    assert 429 not in retry.status_forcelist
    assert 503 in retry.status_forcelist
    assert session.headers["User-Agent"].startswith("adv-route-planner")
    assert get_default_session() is get_default_session()
