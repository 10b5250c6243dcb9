"""
Conversational flight search.

Turns one user message plus the recent transcript into a SearchResponse:
clarification and error intents pass straight through, search intents run
a single- or multi-destination provider search.
"""

import asyncio
from typing import Dict, List, Optional

from flightdesk.config import settings
from flightdesk.errors import IntentParseError, ProviderError
from flightdesk.formatters.messages import (
    format_no_flights,
    format_search_message,
    searched_airports,
)
from flightdesk.llm.extract_intent import IntentExtractor
from flightdesk.obs.logger import log_event
from flightdesk.search.aggregator import FlightAggregator, merge_groups
from flightdesk.types import FlightOffer, SearchCriteria, SearchResponse


def filter_excluded_airlines(offers: List[FlightOffer], excluded: List[str]) -> List[FlightOffer]:
    if not excluded:
        return offers
    banned = {a.strip().lower() for a in excluded if a.strip()}
    return [o for o in offers
            if o.airline.lower() not in banned and o.airline_code.lower() not in banned]


class FlightSearchService:
    def __init__(self, extractor: IntentExtractor, aggregator: FlightAggregator,
                 max_results: Optional[int] = None):
        self.extractor = extractor
        self.aggregator = aggregator
        self.max_results = max_results or settings.MAX_RESULTS

    async def handle_query(self, query: str, history: List[Dict[str, str]]) -> SearchResponse:
        log_event("search_query", query_length=len(query or ""), history_turns=len(history or []))
        try:
            intent = self.extractor.extract(query, history or [])
        except IntentParseError as e:
            log_event("intent_parse_failed", level="ERROR", error=str(e))
            return SearchResponse(mode="error", message="Sorry, I couldn't understand that request. Could you rephrase it?")

        if intent.action != "search" or intent.criteria is None:
            mode = "clarify" if intent.action == "clarify" else "error"
            return SearchResponse(mode=mode, message=intent.message or "Could you tell me more about your trip?")

        return await self.search(intent.criteria)

    async def search(self, criteria: SearchCriteria) -> SearchResponse:
        destinations = criteria.destinations()
        airports: List[str] = []

        if len(destinations) > 1:
            groups = await self.aggregator.search_multiple(
                criteria.origin, destinations, criteria.date, criteria.return_date
            )
            if not groups:
                return SearchResponse(mode="clarify", message=format_no_flights(criteria))
            offers = merge_groups(groups)
            airports = searched_airports(groups)
        else:
            loop = asyncio.get_running_loop()
            try:
                offers = await loop.run_in_executor(
                    None, self.aggregator.search_single,
                    criteria.origin, destinations[0], criteria.date, criteria.return_date,
                )
            except ProviderError as e:
                log_event("search_failed", level="ERROR", origin=criteria.origin,
                          destination=destinations[0], error=str(e))
                return SearchResponse(mode="error", message=f"Search failed: {e}")

        offers = filter_excluded_airlines(offers, criteria.exclude_airlines)
        if not offers:
            return SearchResponse(mode="search", message=format_no_flights(criteria),
                                  search_criteria=criteria)

        log_event("search_completed", offer_count=len(offers), round_trip=criteria.is_round_trip,
                  destinations=len(destinations))
        return SearchResponse(
            mode="search",
            message=format_search_message(criteria, airports),
            results=offers[:self.max_results],
            search_criteria=criteria,
            searched_airports=airports or None,
        )
