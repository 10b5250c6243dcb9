from conftest import FakeSerpApiClient, raw_offer

from flightdesk.booking.resolver import BookingResolver
from flightdesk.conversation.selection import SelectionController, SelectionState
from flightdesk.errors import IntentParseError, ProviderError
from flightdesk.search.aggregator import FlightAggregator
from flightdesk.search.service import FlightSearchService
from flightdesk.types import IntentResult, SearchCriteria


class StubExtractor:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.histories = []

    def extract(self, query, history):
        self.histories.append(list(history))
        if self.error:
            raise self.error
        return self.result


ROUND_TRIP = IntentResult(action="search", criteria=SearchCriteria(
    origin="JFK", destination="CDG", date="2026-02-05", return_date="2026-02-08"))
ONE_WAY = IntentResult(action="search", criteria=SearchCriteria(
    origin="JFK", destination="CDG", date="2026-02-05"))


def _controller(intent, client, extractor=None):
    service = FlightSearchService(extractor or StubExtractor(intent), FlightAggregator(client))
    return SelectionController(service, BookingResolver(client))


def _round_trip_client(**kw):
    return FakeSerpApiClient(
        search={"CDG": [raw_offer(price=900, departure_token="DEP-A"),
                        raw_offer(price=850, departure_token="DEP-B")]},
        returns=kw.get("returns", [
            raw_offer(dep="CDG", arr="JFK", price=910, booking_token="FINAL-1"),
            raw_offer(dep="CDG", arr="JFK", price=905),
        ]),
        booking=kw.get("booking", {"booking_options": [{"link": "https://airfrance.example/pay"}]}),
    )


async def test_round_trip_flow_from_search_to_booking():
    client = _round_trip_client()
    controller = _controller(ROUND_TRIP, client)

    turn = await controller.submit("JFK to Paris Feb 5 to 8")
    assert turn.state == SelectionState.OUTBOUND_SELECTION
    assert [o.booking_token for o in turn.offers] == ["DEP-B", "DEP-A"]

    turn = await controller.select(0)
    assert turn.state == SelectionState.RETURN_SELECTION
    assert turn.mode == "return_selection"
    assert [o.booking_token for o in turn.offers] == ["FINAL-1"]
    assert ("return", "DEP-B", "JFK", "CDG", "2026-02-05", "2026-02-08") in client.calls

    turn = await controller.select(0)
    assert turn.state == SelectionState.IDLE
    assert turn.mode == "booking"
    assert turn.booking.url == "https://airfrance.example/pay"
    booking_call = client.calls[-1]
    assert booking_call[0] == "booking" and booking_call[1] == "FINAL-1"
    assert booking_call[2].return_date == "2026-02-08"


async def test_one_way_results_are_bookable_directly():
    client = FakeSerpApiClient(
        search={"CDG": [raw_offer(price=500, booking_token="B1")]},
        booking={"search_metadata": {"google_flights_url": "https://google.example/f"}},
    )
    controller = _controller(ONE_WAY, client)

    turn = await controller.submit("JFK to Paris Feb 5")
    assert turn.state == SelectionState.IDLE
    assert turn.offers[0].booking_token == "B1"

    turn = await controller.select(0)
    assert turn.mode == "booking"
    assert turn.booking.url == "https://google.example/f"
    assert not any(call[0] == "return" for call in client.calls)


async def test_outbound_offer_cannot_be_booked_directly():
    client = _round_trip_client()
    controller = _controller(ROUND_TRIP, client)
    turn = await controller.submit("round trip")

    turn = await controller.book(turn.offers[0])

    assert turn.mode == "info"
    assert controller.state == SelectionState.OUTBOUND_SELECTION
    assert not any(call[0] == "booking" for call in client.calls)


async def test_outbound_without_context_returns_to_idle_without_provider_call():
    client = _round_trip_client()
    controller = _controller(ROUND_TRIP, client)
    turn = await controller.submit("round trip")
    calls_before = len(client.calls)

    broken = turn.offers[0].model_copy(update={"arrival_id": None})
    turn = await controller.choose_outbound(broken)

    assert turn.state == SelectionState.IDLE
    assert turn.mode == "error"
    assert len(client.calls) == calls_before


async def test_return_lookup_failure_stays_in_outbound_selection():
    client = _round_trip_client(returns=ProviderError("token expired"))
    controller = _controller(ROUND_TRIP, client)
    await controller.submit("round trip")

    turn = await controller.select(0)

    assert turn.mode == "error"
    assert controller.state == SelectionState.OUTBOUND_SELECTION
    assert len(turn.offers) == 2
    assert sum(1 for call in client.calls if call[0] == "return") == 1


async def test_no_return_flights_stays_in_outbound_selection():
    client = _round_trip_client(returns=[])
    controller = _controller(ROUND_TRIP, client)
    await controller.submit("round trip")

    turn = await controller.select(1)

    assert controller.state == SelectionState.OUTBOUND_SELECTION
    assert turn.mode == "info"


async def test_booking_failure_still_returns_a_url():
    client = _round_trip_client(booking=ProviderError("HTTP 500"))
    controller = _controller(ROUND_TRIP, client)
    await controller.submit("round trip")
    await controller.select(0)

    turn = await controller.select(0)

    assert turn.mode == "booking"
    assert turn.booking.url == "https://www.google.com/travel/flights"
    assert turn.booking.warning
    assert controller.state == SelectionState.IDLE


async def test_intent_failure_moves_to_error_and_next_search_recovers():
    extractor = StubExtractor(error=IntentParseError("garbage"))
    client = FakeSerpApiClient(search={"CDG": [raw_offer(booking_token="B1")]})
    controller = _controller(None, client, extractor)

    turn = await controller.submit("asdf")
    assert turn.state == SelectionState.ERROR

    extractor.error = None
    extractor.result = ONE_WAY
    turn = await controller.submit("JFK to CDG Feb 5")
    assert turn.state == SelectionState.IDLE
    assert turn.offers


async def test_out_of_range_selection_is_rejected():
    controller = _controller(ONE_WAY, FakeSerpApiClient())
    turn = await controller.select(3)
    assert turn.mode == "info"
    assert controller.state == SelectionState.IDLE


async def test_choose_return_requires_return_selection_state():
    client = _round_trip_client()
    controller = _controller(ROUND_TRIP, client)
    turn = await controller.submit("round trip")

    turn = await controller.choose_return(turn.offers[0])

    assert turn.mode == "info"
    assert controller.state == SelectionState.OUTBOUND_SELECTION


async def test_transcript_feeds_next_turn():
    extractor = StubExtractor(IntentResult(action="clarify", message="Which dates?"))
    controller = _controller(None, FakeSerpApiClient(), extractor)

    await controller.submit("JFK to Paris")
    await controller.submit("Feb 5")

    assert extractor.histories[0] == []
    assert extractor.histories[1] == [
        {"role": "user", "content": "JFK to Paris"},
        {"role": "assistant", "content": "Which dates?"},
    ]
