import os
import sys
import asyncio
import inspect

import pytest

# Ensure project root is on sys.path so `import flightdesk` works in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


def pytest_pyfunc_call(pyfuncitem):
    """Allow running async tests without pytest-asyncio.

    If the test function is a coroutine, run it in a fresh event loop.
    """
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        funcargs = pyfuncitem.funcargs
        sig = inspect.signature(testfunction)
        # Filter only the parameters that the test function expects
        allowed = {name: funcargs[name] for name in sig.parameters.keys() if name in funcargs}
        asyncio.run(testfunction(**allowed))
        return True
    return None


def raw_offer(price=500, dep="JFK", arr="CDG", airline="Air France", logo_code="AF",
              booking_token=None, departure_token=None, layovers=None, legs=None,
              total_duration=450):
    """Build one provider itinerary in the Google Flights shape."""
    if legs is None:
        legs = [{
            "departure_airport": {"id": dep, "time": "2026-02-05 18:00"},
            "arrival_airport": {"id": arr, "time": "2026-02-06 07:30"},
            "airline": airline,
            "airline_logo": f"https://www.gstatic.com/flights/airlines/{logo_code}.png" if logo_code else None,
            "airplane": "Boeing 777",
            "duration": total_duration,
        }]
    raw = {"flights": legs, "layovers": layovers or [], "total_duration": total_duration}
    if price is not None:
        raw["price"] = price
    if booking_token:
        raw["booking_token"] = booking_token
    if departure_token:
        raw["departure_token"] = departure_token
    return raw


class FakeSerpApiClient:
    """Stands in for SerpApiClient; records every call it receives."""

    def __init__(self, search=None, returns=None, booking=None):
        # search: {destination: list | Exception}
        self.search = search or {}
        self.returns = returns if returns is not None else []
        self.booking = booking if booking is not None else {}
        self.calls = []

    def search_flights(self, origin, destination, outbound_date, return_date=None):
        self.calls.append(("search", origin, destination, outbound_date, return_date))
        result = self.search.get(destination, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    def fetch_return_flights(self, departure_token, departure_id, arrival_id, outbound_date, return_date):
        self.calls.append(("return", departure_token, departure_id, arrival_id, outbound_date, return_date))
        if isinstance(self.returns, Exception):
            raise self.returns
        return list(self.returns)

    def fetch_booking_options(self, token, context=None):
        self.calls.append(("booking", token, context))
        if isinstance(self.booking, Exception):
            raise self.booking
        return self.booking


@pytest.fixture
def make_raw_offer():
    return raw_offer
