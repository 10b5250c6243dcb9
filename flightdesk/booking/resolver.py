"""
Booking-token resolution.

Two lookups replay a provider continuation token:

- return-leg lookup: a round-trip outbound ``departure_token`` plus the
  original route context yields the paired return offers, each carrying a
  final bookable token;
- booking-link lookup: a bookable token yields a redirect URL.

The booking-link lookup never raises. When the provider gives nothing
usable, or the call fails outright, the caller still gets a generic flight
search URL with a warning attached.
"""

from typing import Any, Callable, Dict, List, Optional

from flightdesk.config import settings
from flightdesk.errors import MissingContextError, ProviderError
from flightdesk.obs.logger import log_event
from flightdesk.obs.metrics import inc_counter
from flightdesk.serpapi.client import SerpApiClient
from flightdesk.serpapi.transform import normalize_offers
from flightdesk.types import BookingLink, FlightOffer, RouteContext


LinkStrategy = Callable[[Dict[str, Any]], Optional[str]]


def _nested_booking_request_url(option: Dict[str, Any]) -> Optional[str]:
    for key in ("together", "separate"):
        info = option.get(key)
        if not isinstance(info, dict):
            continue
        request = info.get("booking_request")
        if isinstance(request, dict) and request.get("url"):
            return request["url"]
    return None


# Booking options name their deep link differently from response to response.
LINK_STRATEGIES: List[LinkStrategy] = [
    lambda option: option.get("link"),
    lambda option: option.get("book_on_google_link"),
    lambda option: option.get("url"),
    _nested_booking_request_url,
]


def extract_airline_link(payload: Dict[str, Any]) -> Optional[str]:
    options = payload.get("booking_options")
    if not isinstance(options, list) or not options or not isinstance(options[0], dict):
        return None
    for strategy in LINK_STRATEGIES:
        link = strategy(options[0])
        if link:
            return str(link)
    return None


def extract_search_page_url(payload: Dict[str, Any]) -> Optional[str]:
    metadata = payload.get("search_metadata")
    if not isinstance(metadata, dict):
        return None
    return metadata.get("google_flights_url") or None


class BookingResolver:
    """Resolve continuation tokens into return offers or booking URLs"""

    def __init__(self, client: SerpApiClient, fallback_url: Optional[str] = None):
        self.client = client
        self.fallback_url = fallback_url or settings.FALLBACK_BOOKING_URL

    def resolve_return_offers(self, departure_token: str, departure_id: str, arrival_id: str,
                              outbound_date: str, return_date: str) -> List[FlightOffer]:
        """Fetch the return options paired with an outbound leg.

        All five arguments are required; the provider rejects continuation
        lookups whose route context does not match the original search.
        Offers without a bookable token are dropped.
        """
        missing = [name for name, value in (
            ("departure_token", departure_token),
            ("departure_id", departure_id),
            ("arrival_id", arrival_id),
            ("outbound_date", outbound_date),
            ("return_date", return_date),
        ) if not value]
        if missing:
            raise MissingContextError(f"{', '.join(missing)} required for return flight lookup")

        raws = self.client.fetch_return_flights(
            departure_token, departure_id, arrival_id, outbound_date, return_date
        )
        offers = normalize_offers(raws, departure_id, arrival_id, outbound_date,
                                  return_date, return_leg=True)
        offers = [o for o in offers if o.booking_token]
        log_event("return_offers_resolved", raw_count=len(raws), offer_count=len(offers))
        return offers

    def resolve_booking_url(self, token: str, context: Optional[RouteContext] = None) -> BookingLink:
        """Return a redirect URL for a bookable token. Never raises."""
        try:
            payload = self.client.fetch_booking_options(token, context)
            if not isinstance(payload, dict):
                return self._fallback(token, error=f"Unexpected booking payload: {type(payload).__name__}")
            link = extract_airline_link(payload)
            search_page = extract_search_page_url(payload)
        except ProviderError as e:
            return self._fallback(token, error=str(e))
        except Exception as e:
            return self._fallback(token, error=f"{type(e).__name__}: {e}")

        if link:
            return self._done(token, BookingLink(url=link, source="airline"))
        if search_page:
            log_event("booking_link_search_page", token=token)
            return self._done(token, BookingLink(url=search_page, source="search_page"))

        return self._fallback(token)

    def _fallback(self, token: str, error: Optional[str] = None) -> BookingLink:
        log_event("booking_link_fallback", level="WARNING", token=token, error=error)
        return self._done(token, BookingLink(
            url=self.fallback_url,
            source="fallback",
            warning="No direct booking link was available; opening a general flight search instead.",
            error=error,
        ))

    def _done(self, token: str, link: BookingLink) -> BookingLink:
        inc_counter("booking_links_total", {"source": link.source})
        log_event("booking_link_resolved", token=token, source=link.source)
        return link
