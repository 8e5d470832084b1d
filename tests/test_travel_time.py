import math

import pytest
import requests

from routing.geo import haversine_km, minutes_at_speed
from routing.maps_client import DistanceMatrixClient, MapsClientError
from routing.osrm_client import OSRMClient, OSRMError
from routing.travel_time import (
    TrafficLevel,
    TravelTimeProvider,
    build_travel_time_provider,
    classify_traffic,
)

HARARE_CBD = (-17.8292, 31.0522)
AVONDALE = (-17.8000, 31.0400)


class MockRoutingClient:
    """
    Anything with fetch_route_metrics can back the provider.
    """
    def __init__(self, metrics=None, error=None):
        self.metrics = metrics
        self.error = error

    def fetch_route_metrics(self, origin, destination, mode="driving", traffic_model="best_guess"):
        if self.error:
            raise self.error
        return self.metrics


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        return self.payload


def test_haversine_known_distance():
    # one degree of latitude is ~111.2 km everywhere
    assert haversine_km((0.0, 0.0), (1.0, 0.0)) == pytest.approx(111.19, abs=0.01)
    assert haversine_km(HARARE_CBD, HARARE_CBD) == 0


def test_minutes_at_speed_rounds_up():
    assert minutes_at_speed(1.0) == 2
    assert minutes_at_speed(0.3) == 1
    assert minutes_at_speed(0.0) == 0
    assert minutes_at_speed(10.0, speed_kmh=60) == 10

    with pytest.raises(ValueError):
        minutes_at_speed(1.0, speed_kmh=0)


@pytest.mark.parametrize("in_traffic, base, expected", [
    (None, 600, TrafficLevel.LOW),
    (600, 600, TrafficLevel.LOW),
    (719, 600, TrafficLevel.LOW),
    (720, 600, TrafficLevel.MEDIUM),
    (839, 600, TrafficLevel.MEDIUM),
    (840, 600, TrafficLevel.HIGH),
    (1200, 600, TrafficLevel.HIGH),
])
def test_classify_traffic_thresholds(in_traffic, base, expected):
    assert classify_traffic(in_traffic, base) == expected


def test_provider_normalizes_client_metrics():
    client = MockRoutingClient(metrics={"distance_m": 4321.0, "duration_s": 600.0,
                                        "duration_in_traffic_s": 900.0})
    travel = TravelTimeProvider(client).get_travel_time(HARARE_CBD, AVONDALE)

    assert travel.distance_km == 4.32
    # traffic-aware duration wins when present
    assert travel.duration_minutes == 15
    assert travel.traffic_level == TrafficLevel.HIGH
    assert travel.source == "MockRoutingClient"


def test_provider_without_traffic_data_uses_base_duration():
    client = MockRoutingClient(metrics={"distance_m": 2000.0, "duration_s": 301.0,
                                        "duration_in_traffic_s": None})
    travel = TravelTimeProvider(client).get_travel_time(HARARE_CBD, AVONDALE)

    assert travel.duration_minutes == 6
    assert travel.traffic_level == TrafficLevel.LOW


@pytest.mark.parametrize("error", [
    MapsClientError("OVER_QUERY_LIMIT"),
    OSRMError("NoRoute"),
    requests.ConnectionError("connection refused"),
    requests.Timeout("too slow"),
])
def test_provider_falls_back_to_haversine_on_failure(error):
    """
    Provider trouble never reaches the caller: the answer is the straight-line
    distance at 30 km/h, rounded up, with low traffic.
    """
    provider = TravelTimeProvider(MockRoutingClient(error=error))
    travel = provider.get_travel_time(HARARE_CBD, AVONDALE)

    distance = round(haversine_km(HARARE_CBD, AVONDALE), 2)
    assert travel.source == "haversine"
    assert travel.distance_km == distance
    assert travel.duration_minutes == math.ceil(round(distance / 30 * 60, 6))
    assert travel.traffic_level == TrafficLevel.LOW


def test_provider_falls_back_on_malformed_payload():
    provider = TravelTimeProvider(MockRoutingClient(metrics={"unexpected": True}))
    assert provider.get_travel_time(HARARE_CBD, AVONDALE).source == "haversine"


@pytest.mark.parametrize("client_class, kwargs", [
    (DistanceMatrixClient, {"api_key": "test-key"}),
    (OSRMClient, {"base_url": "http://osrm.local"}),
])
def test_provider_falls_back_when_body_is_not_an_object(monkeypatch, client_class, kwargs):
    monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(["unexpected", "list"]))
    provider = TravelTimeProvider(client_class(**kwargs))

    assert provider.get_travel_time(HARARE_CBD, AVONDALE).source == "haversine"


def test_provider_without_client_uses_fallback():
    assert TravelTimeProvider(None).get_travel_time(HARARE_CBD, AVONDALE).source == "haversine"


def test_distance_matrix_client_parses_element(monkeypatch):
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured["url"] = url
        captured["params"] = params
        return FakeResponse({
            "status": "OK",
            "rows": [{"elements": [{
                "status": "OK",
                "distance": {"value": 3100},
                "duration": {"value": 420},
                "duration_in_traffic": {"value": 510},
            }]}],
        })

    monkeypatch.setattr(requests, "get", fake_get)
    client = DistanceMatrixClient(api_key="test-key", base_url="https://maps.example.com/api/")

    metrics = client.fetch_route_metrics(HARARE_CBD, AVONDALE)

    assert captured["url"] == "https://maps.example.com/api/distancematrix/json"
    assert captured["params"]["origins"] == "-17.8292,31.0522"
    assert captured["params"]["departure_time"] == "now"
    assert metrics == {"distance_m": 3100.0, "duration_s": 420.0, "duration_in_traffic_s": 510.0}


@pytest.mark.parametrize("payload", [
    {"status": "REQUEST_DENIED", "error_message": "bad key"},
    {"status": "OK", "rows": []},
    {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]},
])
def test_distance_matrix_client_rejects_bad_answers(monkeypatch, payload):
    monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(payload))
    client = DistanceMatrixClient(api_key="test-key")

    with pytest.raises(MapsClientError):
        client.fetch_route_metrics(HARARE_CBD, AVONDALE)


def test_distance_matrix_client_requires_key(monkeypatch):
    monkeypatch.setattr("routing.maps_client.GOOGLE_MAPS_API_KEY", None)
    with pytest.raises(ValueError):
        DistanceMatrixClient()


def test_osrm_client_uses_lon_lat_order(monkeypatch):
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured["url"] = url
        return FakeResponse({"code": "Ok", "routes": [{"distance": 2500.0, "duration": 300.0}]})

    monkeypatch.setattr(requests, "get", fake_get)
    client = OSRMClient(base_url="http://osrm.local:5000")

    metrics = client.fetch_route_metrics(HARARE_CBD, AVONDALE)

    assert captured["url"] == "http://osrm.local:5000/route/v1/driving/31.0522,-17.8292;31.04,-17.8"
    assert metrics["duration_in_traffic_s"] is None
    assert metrics["distance_m"] == 2500.0


def test_build_provider_without_configuration_uses_haversine(monkeypatch):
    monkeypatch.setattr("routing.maps_client.GOOGLE_MAPS_API_KEY", None)
    monkeypatch.setattr("routing.osrm_client.OSRM_BASE_URL", None)

    assert build_travel_time_provider("google").client is None
    assert build_travel_time_provider("osrm").client is None


def test_build_provider_picks_osrm(monkeypatch):
    monkeypatch.setattr("routing.osrm_client.OSRM_BASE_URL", "http://osrm.local:5000")
    provider = build_travel_time_provider("osrm")
    assert isinstance(provider.client, OSRMClient)
