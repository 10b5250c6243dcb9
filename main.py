from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ConfigDict, Field

from flightdesk.config import settings
from flightdesk.booking.resolver import BookingResolver
from flightdesk.conversation.selection import SelectionController
from flightdesk.errors import MissingContextError, ProviderError
from flightdesk.formatters.messages import format_return_options
from flightdesk.iata.lookup import AirportResolver
from flightdesk.llm.extract_intent import LLMIntentExtractor
from flightdesk.obs.logger import log_event
from flightdesk.obs.metrics import get_metrics_snapshot
from flightdesk.obs.middleware import ObservabilityMiddleware
from flightdesk.search.aggregator import FlightAggregator
from flightdesk.search.service import FlightSearchService
from flightdesk.serpapi.client import SerpApiClient
from flightdesk.session.store import SessionStore
from flightdesk.types import RouteContext

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_event("startup", env=settings.APP_ENV)

    client = SerpApiClient()
    llm = ChatOpenAI(
        model=settings.OPENAI_MODEL,
        temperature=0,
        api_key=settings.OPENAI_API_KEY,
    )
    app.state.resolver = BookingResolver(client)
    app.state.service = FlightSearchService(
        extractor=LLMIntentExtractor(llm, AirportResolver()),
        aggregator=FlightAggregator(client),
    )
    app.state.sessions = SessionStore(ttl_seconds=settings.SESSION_TTL_SECONDS)

    yield

    client.close()
    log_event("shutdown")


api = FastAPI(
    title="Conversational Flight Search",
    version="1.0.0",
    lifespan=lifespan,
)


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    conversation_history: List[Dict[str, str]] = Field(default_factory=list, alias="conversationHistory")


class ReturnFlightsRequest(BaseModel):
    departure_token: Optional[str] = None
    departure_id: Optional[str] = None
    arrival_id: Optional[str] = None
    outbound_date: Optional[str] = None
    return_date: Optional[str] = None


class MessageRequest(BaseModel):
    query: str = ""


class SelectRequest(BaseModel):
    index: int


@api.get("/")
async def root():
    return {"service": "Conversational Flight Search", "version": "1.0.0", "status": "running"}


@api.get("/health")
async def health():
    return {"status": "healthy", "service": "flightdesk"}


@api.get("/metrics")
async def metrics():
    return get_metrics_snapshot()


@api.post("/api/search")
async def search(request: Request, body: SearchRequest):
    if not body.query.strip():
        raise HTTPException(status_code=400, detail="query is required")
    response = await request.app.state.service.handle_query(body.query, body.conversation_history)
    return response.model_dump(exclude_none=True)


@api.post("/api/return-flights")
def return_flights(request: Request, body: ReturnFlightsRequest):
    try:
        offers = request.app.state.resolver.resolve_return_offers(
            body.departure_token, body.departure_id, body.arrival_id,
            body.outbound_date, body.return_date,
        )
    except MissingContextError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch return flights: {e}")

    return {
        "mode": "return_selection",
        "results": [o.model_dump(exclude_none=True) for o in offers],
        "message": format_return_options(offers),
    }


@api.get("/api/booking")
def booking(
    request: Request,
    token: Optional[str] = None,
    departure_id: Optional[str] = None,
    arrival_id: Optional[str] = None,
    outbound_date: Optional[str] = None,
    return_date: Optional[str] = None,
):
    if not token:
        raise HTTPException(status_code=400, detail="booking token is required")
    context = None
    if departure_id and arrival_id and outbound_date:
        context = RouteContext(
            departure_id=departure_id,
            arrival_id=arrival_id,
            outbound_date=outbound_date,
            return_date=return_date,
        )
    link = request.app.state.resolver.resolve_booking_url(token, context)
    return link.model_dump(exclude_none=True)


def _controller(request: Request, session_id: str) -> SelectionController:
    sessions: SessionStore = request.app.state.sessions
    sessions.purge_expired()
    return sessions.get_or_create(
        session_id,
        lambda: SelectionController(request.app.state.service, request.app.state.resolver),
    )


@api.post("/api/sessions/{session_id}/messages")
async def session_message(request: Request, session_id: str, body: MessageRequest):
    if not body.query.strip():
        raise HTTPException(status_code=400, detail="query is required")
    result = await _controller(request, session_id).submit(body.query)
    return JSONResponse(result.model_dump(mode="json", exclude_none=True))


@api.post("/api/sessions/{session_id}/select")
async def session_select(request: Request, session_id: str, body: SelectRequest):
    controller = request.app.state.sessions.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Unknown or expired session")
    result = await controller.select(body.index)
    return JSONResponse(result.model_dump(mode="json", exclude_none=True))


@api.delete("/api/sessions/{session_id}")
async def session_reset(request: Request, session_id: str):
    request.app.state.sessions.clear(session_id)
    return {"status": "reset", "session_id": session_id}


# Apply middleware
app = ObservabilityMiddleware(api)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
        log_level="info",
    )
