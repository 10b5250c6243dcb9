"""
Outbound/return selection flow for one chat session.

States:
    IDLE -> SEARCHING -> OUTBOUND_SELECTION -> RETURN_SELECTION -> BOOKING -> IDLE
                      +-> IDLE (one-way results, bookable directly)
                      +-> ERROR (intent or search failure)

Every transition is triggered by the user; nothing is retried. A failed
step reports a message and leaves the session where it was, except for an
outbound offer missing its continuation context, which drops back to IDLE
without calling the provider.
"""

import asyncio
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from flightdesk.booking.resolver import BookingResolver
from flightdesk.errors import MissingContextError, ProviderError
from flightdesk.formatters.messages import format_offer_line, format_return_options
from flightdesk.obs.logger import log_event
from flightdesk.search.service import FlightSearchService
from flightdesk.types import BookingLink, FlightOffer


class SelectionState(Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    OUTBOUND_SELECTION = "outbound_selection"
    RETURN_SELECTION = "return_selection"
    BOOKING = "booking"
    ERROR = "error"


class TurnResult(BaseModel):
    state: SelectionState
    mode: Literal["search", "clarify", "error", "return_selection", "booking", "info"]
    message: str
    offers: List[FlightOffer] = Field(default_factory=list)
    booking: Optional[BookingLink] = None


class SelectionController:
    """Drive one session's search, outbound pick, return pick and booking."""

    def __init__(self, service: FlightSearchService, resolver: BookingResolver):
        self.service = service
        self.resolver = resolver
        self.state = SelectionState.IDLE
        self.offers: List[FlightOffer] = []
        self.outbound: Optional[FlightOffer] = None
        self.transcript: List[Dict[str, str]] = []

    def _transition(self, new_state: SelectionState) -> None:
        log_event("selection_transition", from_state=self.state.value, to_state=new_state.value)
        self.state = new_state

    def _reply(self, mode: str, message: str, booking: Optional[BookingLink] = None) -> TurnResult:
        self.transcript.append({"role": "assistant", "content": message})
        return TurnResult(state=self.state, mode=mode, message=message,
                          offers=list(self.offers), booking=booking)

    async def submit(self, query: str) -> TurnResult:
        """Start a new search from any state."""
        history = list(self.transcript)
        self.transcript.append({"role": "user", "content": query})
        self.outbound = None
        self._transition(SelectionState.SEARCHING)

        response = await self.service.handle_query(query, history)

        if response.mode == "error":
            self.offers = []
            self._transition(SelectionState.ERROR)
            return self._reply("error", response.message)
        if response.mode == "clarify":
            self.offers = []
            self._transition(SelectionState.IDLE)
            return self._reply("clarify", response.message)

        self.offers = list(response.results)
        if any(o.is_round_trip for o in self.offers):
            self._transition(SelectionState.OUTBOUND_SELECTION)
        else:
            self._transition(SelectionState.IDLE)
        return self._reply("search", response.message)

    async def choose_outbound(self, offer: FlightOffer) -> TurnResult:
        if self.state != SelectionState.OUTBOUND_SELECTION:
            return self._reply("info", "There is no round trip waiting for an outbound choice.")

        context = offer.route_context()
        if not offer.booking_token or not offer.requires_return_selection or context is None \
                or not context.return_date:
            log_event("outbound_missing_context", level="WARNING", token=offer.booking_token)
            self.offers = []
            self._transition(SelectionState.IDLE)
            return self._reply("error", "That flight is missing the details needed to look up return flights. Please search again.")

        loop = asyncio.get_running_loop()
        try:
            returns = await loop.run_in_executor(
                None, self.resolver.resolve_return_offers,
                offer.booking_token, context.departure_id, context.arrival_id,
                context.outbound_date, context.return_date,
            )
        except (ProviderError, MissingContextError) as e:
            log_event("return_lookup_failed", level="ERROR", error=str(e))
            return self._reply("error", f"Couldn't load return flights: {e}. Pick another outbound flight or try again.")

        if not returns:
            return self._reply("info", format_return_options(returns))

        self.outbound = offer
        self.offers = returns
        self._transition(SelectionState.RETURN_SELECTION)
        return self._reply("return_selection",
                           f"Outbound: {format_offer_line(offer)}\n\n{format_return_options(returns)}")

    async def choose_return(self, offer: FlightOffer) -> TurnResult:
        if self.state != SelectionState.RETURN_SELECTION or self.outbound is None:
            return self._reply("info", "Pick an outbound flight first.")
        if not offer.booking_token or offer.requires_return_selection:
            return self._reply("error", "That return flight can't be booked. Please pick another one.")
        return await self._book(offer, self.outbound.route_context())

    async def book(self, offer: FlightOffer) -> TurnResult:
        """Book a one-way offer shown after a search."""
        if offer.requires_return_selection:
            return self._reply("info", "Pick this outbound flight first to see return options.")
        if self.state != SelectionState.IDLE or not offer.booking_token:
            return self._reply("info", "There is nothing to book right now.")
        return await self._book(offer, offer.route_context())

    async def _book(self, offer: FlightOffer, context) -> TurnResult:
        self._transition(SelectionState.BOOKING)
        loop = asyncio.get_running_loop()
        link = await loop.run_in_executor(
            None, self.resolver.resolve_booking_url, offer.booking_token, context
        )
        self.offers = []
        self.outbound = None
        self._transition(SelectionState.IDLE)
        message = f"Booking {offer.airline}: {link.url}"
        if link.warning:
            message += f"\n{link.warning}"
        return self._reply("booking", message, booking=link)

    async def select(self, index: int) -> TurnResult:
        """Pick the offer at ``index`` from the list currently shown."""
        if not 0 <= index < len(self.offers):
            return self._reply("info", "That option isn't in the current list.")
        offer = self.offers[index]
        if self.state == SelectionState.OUTBOUND_SELECTION:
            return await self.choose_outbound(offer)
        if self.state == SelectionState.RETURN_SELECTION:
            return await self.choose_return(offer)
        return await self.book(offer)
