import httpx
from typing import Dict, Any, List, Optional

from flightdesk.config import settings
from flightdesk.errors import ProviderError
from flightdesk.obs.logger import log_event
from flightdesk.obs.metrics import inc_counter, timed
from flightdesk.serpapi.transform import raw_offers
from flightdesk.types import RouteContext

ROUND_TRIP = "1"
ONE_WAY = "2"

class SerpApiClient:
    """Google Flights engine over SerpApi.

    Every call is attempted exactly once. Failures surface as ProviderError
    and callers decide whether that is fatal, skippable or degradable.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.SERP_API_KEY
        self.base_url = base_url or settings.SERPAPI_BASE_URL
        # Persistent HTTP client with HTTP/2 and sensible timeouts
        self._http = httpx.Client(
            http2=True,
            timeout=httpx.Timeout(connect=3.0, read=30.0, write=12.0, pool=12.0),
        )

    def _base_params(self) -> Dict[str, str]:
        return {
            "engine": "google_flights",
            "api_key": self.api_key or "",
            "currency": "USD",
            "hl": "en",
            "gl": "us",
        }

    def _get(self, call: str, params: Dict[str, str]) -> Dict[str, Any]:
        query = {**self._base_params(), **{k: v for k, v in params.items() if v}}
        try:
            with timed("provider_latency_ms", {"call": call}):
                r = self._http.get(self.base_url, params=query)
        except httpx.HTTPError as e:
            inc_counter("provider_calls_total", {"call": call, "outcome": "transport_error"})
            log_event("provider_transport_error", level="ERROR", call=call,
                      error=f"{type(e).__name__}: {e}")
            raise ProviderError(f"{type(e).__name__}: {e}") from e

        if r.status_code != 200:
            inc_counter("provider_calls_total", {"call": call, "outcome": "http_error"})
            log_event("provider_http_error", level="ERROR", call=call, status=r.status_code)
            raise ProviderError(f"SerpApi request failed with HTTP {r.status_code}",
                                status_code=r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            inc_counter("provider_calls_total", {"call": call, "outcome": "bad_body"})
            raise ProviderError("SerpApi returned a malformed body") from e

        if not isinstance(data, dict):
            inc_counter("provider_calls_total", {"call": call, "outcome": "bad_body"})
            raise ProviderError("SerpApi returned a malformed body")
        if data.get("error"):
            inc_counter("provider_calls_total", {"call": call, "outcome": "api_error"})
            log_event("provider_api_error", level="ERROR", call=call, error=data["error"])
            raise ProviderError(str(data["error"]))

        inc_counter("provider_calls_total", {"call": call, "outcome": "ok"})
        return data

    def search_flights(self, origin: str, destination: str, outbound_date: str,
                       return_date: Optional[str] = None) -> List[Dict[str, Any]]:
        log_event("provider_search", origin=origin, destination=destination,
                  outbound_date=outbound_date, return_date=return_date)
        params = {
            "departure_id": origin,
            "arrival_id": destination,
            "outbound_date": outbound_date,
            "type": ROUND_TRIP if return_date else ONE_WAY,
        }
        if return_date:
            params["return_date"] = return_date
        return raw_offers(self._get("search", params))

    def fetch_return_flights(self, departure_token: str, departure_id: str, arrival_id: str,
                             outbound_date: str, return_date: str) -> List[Dict[str, Any]]:
        log_event("provider_return_flights", departure_token=departure_token,
                  departure_id=departure_id, arrival_id=arrival_id)
        params = {
            "departure_token": departure_token,
            "departure_id": departure_id,
            "arrival_id": arrival_id,
            "outbound_date": outbound_date,
            "return_date": return_date,
            "type": ROUND_TRIP,
        }
        return raw_offers(self._get("return_flights", params))

    def fetch_booking_options(self, token: str, context: Optional[RouteContext] = None) -> Dict[str, Any]:
        log_event("provider_booking_options", token=token, has_context=context is not None)
        params = {"booking_token": token}
        if context is not None:
            params.update({
                "departure_id": context.departure_id,
                "arrival_id": context.arrival_id,
                "outbound_date": context.outbound_date,
            })
            if context.return_date:
                params["return_date"] = context.return_date
                params["type"] = ROUND_TRIP
            else:
                # one-way mode avoids a "return_date required" rejection
                params["type"] = ONE_WAY
        return self._get("booking_options", params)

    def close(self) -> None:
        self._http.close()
