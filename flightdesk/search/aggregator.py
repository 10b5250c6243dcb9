"""
Multi-destination flight aggregation.

Fans one origin/date query out across candidate destination airports,
normalizes every destination's offers, and merges them into a single
price-ranked list. A destination that fails or returns nothing is dropped
without failing the search.
"""

import asyncio
from typing import List, Optional

from flightdesk.config import settings
from flightdesk.errors import ProviderError
from flightdesk.obs.logger import log_event
from flightdesk.serpapi.client import SerpApiClient
from flightdesk.serpapi.transform import normalize_offers
from flightdesk.types import DestinationGroup, FlightOffer


def merge_groups(groups: List[DestinationGroup]) -> List[FlightOffer]:
    """Flatten groups in the order given and stable-sort by price."""
    merged: List[FlightOffer] = []
    for group in groups:
        merged.extend(group.offers)
    return sorted(merged, key=lambda o: o.price)


class FlightAggregator:
    """Query the provider for one or many destinations"""

    def __init__(self, client: SerpApiClient, max_destinations: Optional[int] = None):
        self.client = client
        self.max_destinations = settings.MAX_DESTINATIONS if max_destinations is None else max_destinations

    def search_single(self, origin: str, destination: str, date: str,
                      return_date: Optional[str] = None) -> List[FlightOffer]:
        """Single-destination search; ProviderError propagates to the caller."""
        raws = self.client.search_flights(origin, destination, date, return_date)
        offers = normalize_offers(raws, origin, destination, date, return_date)
        log_event("search_single", origin=origin, destination=destination,
                  raw_count=len(raws), offer_count=len(offers))
        return sorted(offers, key=lambda o: o.price)

    def _search_destination(self, origin: str, destination: str, date: str,
                            return_date: Optional[str]) -> Optional[DestinationGroup]:
        raws = self.client.search_flights(origin, destination, date, return_date)
        offers = normalize_offers(raws, origin, destination, date, return_date)
        if not offers:
            return None
        for offer in offers:
            offer.destination = destination
        return DestinationGroup(
            destination=destination,
            offers=offers,
            cheapest_price=min(o.price for o in offers),
        )

    async def search_multiple(self, origin: str, destinations: List[str], date: str,
                              return_date: Optional[str] = None,
                              max_destinations: Optional[int] = None) -> List[DestinationGroup]:
        """Search every destination concurrently and rank the groups by cheapest price.

        Destinations beyond ``max_destinations`` are never queried. Failed or
        empty destinations are left out; if none yield offers the result is
        an empty list.
        """
        limit = self.max_destinations if max_destinations is None else max_destinations
        to_search = list(destinations)[:limit]
        log_event("search_multiple", origin=origin, requested=len(destinations),
                  searching=len(to_search))

        loop = asyncio.get_running_loop()
        tasks = [
            loop.run_in_executor(None, self._search_destination, origin, dest, date, return_date)
            for dest in to_search
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        groups: List[DestinationGroup] = []
        for dest, outcome in zip(to_search, outcomes):
            if isinstance(outcome, ProviderError):
                log_event("destination_failed", level="WARNING", destination=dest, error=str(outcome))
                continue
            if isinstance(outcome, Exception):
                log_event("destination_failed", level="WARNING", destination=dest,
                          error=f"{type(outcome).__name__}: {outcome}")
                continue
            if outcome is None:
                log_event("destination_empty", destination=dest)
                continue
            groups.append(outcome)

        if not groups:
            log_event("search_multiple_empty", origin=origin, searched=to_search)
        return sorted(groups, key=lambda g: g.cheapest_price)
