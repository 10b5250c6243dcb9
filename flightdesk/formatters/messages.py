from typing import List

from flightdesk.types import DestinationGroup, FlightOffer, SearchCriteria
from flightdesk.utils.dates import format_duration_minutes

MAX_LISTED_AIRPORTS = 8

def searched_airports(groups: List[DestinationGroup]) -> List[str]:
    return [f"{g.destination} (${g.cheapest_price:g})" for g in groups]

def _airport_summary(labels: List[str]) -> str:
    shown = ", ".join(labels[:MAX_LISTED_AIRPORTS])
    extra = len(labels) - MAX_LISTED_AIRPORTS
    return f"{shown} +{extra} more" if extra > 0 else shown

def format_search_message(criteria: SearchCriteria, airports: List[str]) -> str:
    """Header shown above a result list."""
    dests = criteria.destinations()
    route = f"{criteria.origin} → {dests[0] if len(dests) == 1 else 'multiple airports'}"

    if criteria.is_round_trip:
        message = (f"Round trip flights: {route}\n"
                   f"Outbound: {criteria.date} | Return: {criteria.return_date}")
    else:
        message = f"One-way flights: {route} on {criteria.date}"

    if len(airports) > 1:
        message += f"\n\n🔍 Searched {len(airports)} airports: {_airport_summary(airports)}"
    if criteria.is_round_trip:
        message += "\n\nComplete packages (price includes return):"
    return message

def format_no_flights(criteria: SearchCriteria) -> str:
    dests = criteria.destinations()
    if len(dests) > 1:
        return (f"I checked {', '.join(dests)} but couldn't find any flights. "
                "Would you like to try different dates or destinations?")
    kind = "round-trip flights" if criteria.is_round_trip else "flights"
    return f"No {kind} found for {criteria.origin} → {dests[0]}."

def format_return_options(offers: List[FlightOffer]) -> str:
    if not offers:
        return "No return flights are available for that outbound flight. Try another one?"
    return (f"Found {len(offers)} return flight options. "
            "Prices shown are total round trip.")

def format_offer_line(offer: FlightOffer) -> str:
    stops = "nonstop" if offer.stop_count == 0 else f"{offer.stop_count} stop{'s' if offer.stop_count != 1 else ''}"
    return (f"• {offer.airline} | {offer.departure_airport}→{offer.arrival_airport} | "
            f"{format_duration_minutes(offer.duration_minutes)} | {stops} | ${offer.price:g}")
