import pytest
from fastapi.testclient import TestClient

from conftest import FakeSerpApiClient, raw_offer

import main
from flightdesk.booking.resolver import BookingResolver
from flightdesk.errors import ProviderError
from flightdesk.search.aggregator import FlightAggregator
from flightdesk.search.service import FlightSearchService
from flightdesk.session.store import SessionStore
from flightdesk.types import IntentResult, SearchCriteria


class StubExtractor:
    def __init__(self, result):
        self.result = result

    def extract(self, query, history):
        return self.result


@pytest.fixture
def provider():
    return FakeSerpApiClient(
        search={"CDG": [raw_offer(price=900, departure_token="DEP-A")]},
        returns=[raw_offer(dep="CDG", arr="JFK", price=910, booking_token="FINAL-1"),
                 raw_offer(dep="CDG", arr="JFK", price=920)],
        booking={"booking_options": [{"link": "https://airline.example/pay"}]},
    )


@pytest.fixture
def client(provider):
    intent = IntentResult(action="search", criteria=SearchCriteria(
        origin="JFK", destination="CDG", date="2026-02-05", return_date="2026-02-08"))
    main.api.state.service = FlightSearchService(StubExtractor(intent), FlightAggregator(provider))
    main.api.state.resolver = BookingResolver(provider)
    main.api.state.sessions = SessionStore(ttl_seconds=60)
    return TestClient(main.app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_search_requires_query(client):
    r = client.post("/api/search", json={"query": "  "})
    assert r.status_code == 400


def test_search_returns_round_trip_offers(client):
    r = client.post("/api/search", json={"query": "JFK to Paris Feb 5-8", "conversationHistory": []})
    assert r.status_code == 200
    data = r.json()
    assert data["mode"] == "search"
    offer = data["results"][0]
    assert offer["booking_token"] == "DEP-A"
    assert offer["is_round_trip"] is True
    assert offer["departure_id"] == "JFK"
    assert offer["arrival_id"] == "CDG"
    assert offer["return_date"] == "2026-02-08"


def test_return_flights_missing_fields_is_400(client, provider):
    r = client.post("/api/return-flights", json={"departure_token": "DEP-A"})
    assert r.status_code == 400
    assert not any(call[0] == "return" for call in provider.calls)


def test_return_flights_drops_unbookable(client):
    r = client.post("/api/return-flights", json={
        "departure_token": "DEP-A", "departure_id": "JFK", "arrival_id": "CDG",
        "outbound_date": "2026-02-05", "return_date": "2026-02-08",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["mode"] == "return_selection"
    assert [o["booking_token"] for o in data["results"]] == ["FINAL-1"]


def test_return_flights_provider_failure_is_502(client, provider):
    provider.returns = ProviderError("expired")
    r = client.post("/api/return-flights", json={
        "departure_token": "DEP-A", "departure_id": "JFK", "arrival_id": "CDG",
        "outbound_date": "2026-02-05", "return_date": "2026-02-08",
    })
    assert r.status_code == 502


def test_booking_requires_token(client):
    assert client.get("/api/booking").status_code == 400


def test_booking_returns_airline_link(client, provider):
    r = client.get("/api/booking", params={
        "token": "FINAL-1", "departure_id": "JFK", "arrival_id": "CDG",
        "outbound_date": "2026-02-05", "return_date": "2026-02-08",
    })
    assert r.status_code == 200
    assert r.json() == {"url": "https://airline.example/pay", "source": "airline"}
    ctx = provider.calls[-1][2]
    assert ctx.arrival_id == "CDG" and ctx.return_date == "2026-02-08"


def test_booking_failure_is_never_an_http_error(client, provider):
    provider.booking = ProviderError("SerpApi request failed with HTTP 500")
    r = client.get("/api/booking", params={"token": "FINAL-1"})
    assert r.status_code == 200
    data = r.json()
    assert data["url"] == "https://www.google.com/travel/flights"
    assert data["warning"]
    assert "HTTP 500" in data["error"]


def test_session_flow(client):
    r = client.post("/api/sessions/abc/messages", json={"query": "JFK to Paris Feb 5-8"})
    assert r.status_code == 200
    assert r.json()["state"] == "outbound_selection"

    r = client.post("/api/sessions/abc/select", json={"index": 0})
    assert r.json()["state"] == "return_selection"

    r = client.post("/api/sessions/abc/select", json={"index": 0})
    data = r.json()
    assert data["state"] == "idle"
    assert data["booking"]["url"] == "https://airline.example/pay"


def test_select_on_unknown_session_is_404(client):
    r = client.post("/api/sessions/nope/select", json={"index": 0})
    assert r.status_code == 404


def test_session_reset(client):
    client.post("/api/sessions/abc/messages", json={"query": "JFK to Paris"})
    r = client.delete("/api/sessions/abc")
    assert r.status_code == 200
    assert client.post("/api/sessions/abc/select", json={"index": 0}).status_code == 404
