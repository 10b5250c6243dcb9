from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal, Union

class SearchCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    origin: str = Field(..., description="Origin airport code")
    destination: Union[str, List[str]] = Field(..., description="Airport code or list of codes")
    date: str = Field(..., description="YYYY-MM-DD")
    return_date: Optional[str] = None
    exclude_airlines: List[str] = Field(default_factory=list)

    @property
    def is_round_trip(self) -> bool:
        return bool(self.return_date)

    def destinations(self) -> List[str]:
        if isinstance(self.destination, list):
            return list(self.destination)
        return [self.destination]

class Layover(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    duration: int = 0  # minutes
    overnight: bool = False

class RouteContext(BaseModel):
    """Original search context replayed on continuation lookups."""
    departure_id: str
    arrival_id: str
    outbound_date: str
    return_date: Optional[str] = None

class FlightOffer(BaseModel):
    airline: str
    airline_code: str = ""
    price: float = 0
    duration_minutes: int = 0
    stop_count: int = 0
    layovers: List[Layover] = Field(default_factory=list)
    departure_airport: str
    arrival_airport: str
    departure_time: str = ""
    arrival_time: str = ""
    booking_token: str
    token_kind: Literal["booking", "departure"] = "booking"
    is_round_trip: bool = False
    aircraft: Optional[str] = None
    # echoed search context, needed verbatim by the continuation lookups
    departure_id: Optional[str] = None
    arrival_id: Optional[str] = None
    outbound_date: Optional[str] = None
    return_date: Optional[str] = None
    # destination queried when the offer came from a multi-airport search
    destination: Optional[str] = None

    @property
    def requires_return_selection(self) -> bool:
        """Outbound legs of a round trip carry a departure token, not a bookable one."""
        return self.is_round_trip and self.token_kind == "departure"

    def route_context(self) -> Optional[RouteContext]:
        if not (self.departure_id and self.arrival_id and self.outbound_date):
            return None
        return RouteContext(
            departure_id=self.departure_id,
            arrival_id=self.arrival_id,
            outbound_date=self.outbound_date,
            return_date=self.return_date,
        )

class DestinationGroup(BaseModel):
    destination: str
    offers: List[FlightOffer]
    cheapest_price: float

class BookingLink(BaseModel):
    url: str
    source: Literal["airline", "search_page", "fallback"]
    warning: Optional[str] = None
    error: Optional[str] = None

class IntentResult(BaseModel):
    action: Literal["search", "clarify", "error"]
    criteria: Optional[SearchCriteria] = None
    message: Optional[str] = None
    search_type: Optional[str] = None  # "standard" or "multi_airport"
    checked_airports: List[str] = Field(default_factory=list)

class SearchResponse(BaseModel):
    mode: Literal["search", "clarify", "error", "return_selection"]
    message: str
    results: List[FlightOffer] = Field(default_factory=list)
    search_criteria: Optional[SearchCriteria] = None
    searched_airports: Optional[List[str]] = None
