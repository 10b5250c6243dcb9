import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from flightdesk.types import FlightOffer, Layover

AIRLINE_LOGO_RE = re.compile(r"airlines/([A-Za-z0-9]{2})")

def raw_offers(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    # "best" first, then "other"; ranking happens later
    if not isinstance(payload, dict):
        return []
    items = []
    for key in ("best_flights", "other_flights"):
        group = payload.get(key)
        if isinstance(group, list):
            items.extend(group)
    return items

def extract_airline_code(logo_url: Optional[str]) -> str:
    if not logo_url:
        return ""
    m = AIRLINE_LOGO_RE.search(str(logo_url))
    return m.group(1) if m else ""

def _to_minutes(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0

def _to_price(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0

def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}

def _layovers(raw: Dict[str, Any]) -> List[Layover]:
    items = []
    layovers = raw.get("layovers")
    if not isinstance(layovers, list):
        return items
    for lay in layovers:
        if not isinstance(lay, dict):
            continue
        items.append(Layover(
            id=lay.get("id"),
            name=lay.get("name"),
            duration=_to_minutes(lay.get("duration")),
            overnight=bool(lay.get("overnight", False)),
        ))
    return items

def select_token(raw: Dict[str, Any], return_date: Optional[str], return_leg: bool) -> tuple[str, str]:
    """Return (token, kind) for an offer.

    Return-leg offers and one-way offers are bookable as-is and carry
    ``booking_token``. Outbound legs of a round-trip search only carry a
    ``departure_token`` that has to be replayed to fetch the return options.
    """
    if return_leg or not return_date:
        return raw.get("booking_token") or "", "booking"
    return raw.get("departure_token") or "", "departure"

def normalize_offer(raw: Dict[str, Any], fallback_origin: str, fallback_destination: str,
                    search_date: str, return_date: Optional[str] = None,
                    return_leg: bool = False) -> Optional[FlightOffer]:
    """Convert one provider itinerary into a FlightOffer.

    Returns None for offers without legs or without a usable token; the
    caller filters those out. Missing price and duration become 0.
    """
    if not isinstance(raw, dict):
        return None
    legs = raw.get("flights")
    if not isinstance(legs, list) or not legs:
        return None
    first, last = legs[0], legs[-1]
    if not isinstance(first, dict) or not isinstance(last, dict):
        return None

    token, kind = select_token(raw, return_date, return_leg)
    if not token:
        return None

    dep = _as_dict(first.get("departure_airport"))
    arr = _as_dict(last.get("arrival_airport"))
    round_trip = return_leg or bool(return_date)

    try:
        layovers = _layovers(raw)
        offer = FlightOffer(
            airline=first.get("airline") or "Unknown",
            airline_code=extract_airline_code(first.get("airline_logo")),
            price=_to_price(raw.get("price")),
            duration_minutes=_to_minutes(raw.get("total_duration") or first.get("duration")),
            stop_count=len(layovers),
            layovers=layovers,
            departure_airport=dep.get("id") or fallback_origin,
            arrival_airport=arr.get("id") or fallback_destination,
            departure_time=dep.get("time") or "",
            arrival_time=arr.get("time") or "",
            booking_token=token,
            token_kind=kind,
            is_round_trip=round_trip,
            aircraft=first.get("airplane") or None,
        )
    except ValidationError:
        return None

    if not return_leg:
        # echo the search context verbatim; continuation lookups fail on any mismatch
        offer.departure_id = fallback_origin
        offer.arrival_id = fallback_destination
        offer.outbound_date = search_date
        offer.return_date = return_date
    return offer

def normalize_offers(raws: List[Dict[str, Any]], fallback_origin: str, fallback_destination: str,
                     search_date: str, return_date: Optional[str] = None,
                     return_leg: bool = False) -> List[FlightOffer]:
    items = []
    for raw in raws:
        offer = normalize_offer(raw, fallback_origin, fallback_destination,
                                search_date, return_date, return_leg)
        if offer is not None:
            items.append(offer)
    return items
