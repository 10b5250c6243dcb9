from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from typing import Any, Dict, List, Optional, Protocol
import json

from flightdesk.config import settings
from flightdesk.errors import IntentParseError
from flightdesk.iata.lookup import AirportResolver, REGION_AIRPORTS
from flightdesk.obs.logger import log_event
from flightdesk.types import IntentResult, SearchCriteria
from flightdesk.utils.dates import get_current_datetime, to_iso_date, tomorrow_iso


class IntentExtractor(Protocol):
    def extract(self, query: str, history: List[Dict[str, str]]) -> IntentResult: ...


SYSTEM = """You are a flight search assistant with deep knowledge of airports and geography.

TODAY'S DATE: {today}

CONVERSATION:
{history}

ROUND TRIP DETECTION:
Look for "round trip", "return", "coming back", two dates (2/5-2/8) or date ranges.
If detected, set BOTH "date" AND "return_date".

REGIONAL SEARCH:
When the user asks about a region rather than a city, search several major airports.
{regions}

CITY MAPPINGS:
New York -> JFK,EWR,LGA | Paris -> CDG,ORY | London -> LHR,LGW,STN,LTN
San Francisco -> SFO,OAK,SJC | Washington -> DCA,IAD,BWI | Miami -> MIA,FLL

If the user asks about your search process or is unhappy with results, answer
conversationally with the clarify mode.

OUTPUT MODES:
1) search:
{{"action": "search", "search_type": "standard" or "multi_airport", "origin": "JFK",
  "destination": "CDG" or ["CDG", "LHR", "AMS"], "date": "YYYY-MM-DD",
  "return_date": "YYYY-MM-DD" or null, "exclude_airlines": [], "checked_airports": []}}
2) clarify:
{{"action": "clarify", "message": "..."}}
3) error:
{{"action": "error", "message": "I need more information about..."}}

Return ONLY valid JSON, no markdown.
"""

USER = """{text}"""


def format_history(history: List[Dict[str, str]], turns: Optional[int] = None) -> str:
    turns = turns or settings.HISTORY_TURNS
    lines = [f"{m.get('role', 'user')}: {m.get('content', '')}" for m in (history or [])[-turns:]]
    return "\n".join(lines) or "No prior context"


def _format_regions() -> str:
    return "\n".join(f"- {name}: {', '.join(codes)}" for name, codes in REGION_AIRPORTS.items())


def parse_intent_payload(text: str) -> Dict[str, Any]:
    """Pull the outermost JSON object out of a model reply.

    Tolerates markdown fences and chatter around the object. Anything that
    still does not parse as a JSON object raises IntentParseError.
    """
    content = (text or "").replace("```json", "").replace("```", "").strip()
    start, end = content.find("{"), content.rfind("}")
    if start == -1 or end <= start:
        raise IntentParseError("No JSON object found in intent response")
    try:
        data = json.loads(content[start:end + 1])
    except json.JSONDecodeError as e:
        raise IntentParseError(f"Invalid JSON in intent response: {e}") from e
    if not isinstance(data, dict):
        raise IntentParseError("Intent response is not a JSON object")
    return data


def _as_list(value: Any) -> List[str]:
    # the model sometimes answers a single name instead of a list
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if v]
    return [str(value)]


def build_intent(data: Dict[str, Any], resolver: Optional[AirportResolver] = None,
                 tz: str = "UTC") -> IntentResult:
    """Turn a parsed payload into an IntentResult, validating search fields."""
    resolver = resolver or AirportResolver()
    action = data.get("action")

    if action in ("clarify", "error"):
        return IntentResult(action=action, message=data.get("message") or "")
    if action != "search":
        raise IntentParseError(f"Unknown intent action: {action!r}")

    origin_codes = resolver.resolve(str(data.get("origin") or ""))
    raw_dest = data.get("destination")
    dest_values = raw_dest if isinstance(raw_dest, list) else [raw_dest] if raw_dest else []
    dest_codes = resolver.resolve_many([str(d) for d in dest_values])

    if not origin_codes or not dest_codes:
        missing = [name for name, ok in (("origin", origin_codes), ("destination", dest_codes)) if not ok]
        return IntentResult(
            action="error",
            message=f"I need a valid {' and '.join(missing)} airport to search flights.",
        )

    return_date = to_iso_date(data.get("return_date") or "", tz) or None
    criteria = SearchCriteria(
        origin=origin_codes[0],
        destination=dest_codes if len(dest_codes) > 1 else dest_codes[0],
        date=to_iso_date(data.get("date") or "", tz) or tomorrow_iso(tz),
        return_date=return_date,
        exclude_airlines=_as_list(data.get("exclude_airlines")),
    )
    return IntentResult(
        action="search",
        criteria=criteria,
        search_type=data.get("search_type") or ("multi_airport" if len(dest_codes) > 1 else "standard"),
        checked_airports=_as_list(data.get("checked_airports")),
    )


class LLMIntentExtractor:
    """Extract search criteria from free text with a chat model."""

    def __init__(self, llm: BaseChatModel, resolver: Optional[AirportResolver] = None,
                 tz: Optional[str] = None):
        self.llm = llm
        self.resolver = resolver or AirportResolver()
        self.tz = tz or settings.TZ
        self.prompt = ChatPromptTemplate.from_messages([("system", SYSTEM), ("user", USER)])

    def extract(self, query: str, history: List[Dict[str, str]]) -> IntentResult:
        msg = self.prompt.format_messages(
            text=query,
            today=get_current_datetime(self.tz).strftime("%B %d, %Y"),
            history=format_history(history),
            regions=_format_regions(),
        )
        res = self.llm.invoke(msg)
        content = res.content if isinstance(res.content, str) else str(res.content)
        data = parse_intent_payload(content)
        log_event("intent_extracted", action=data.get("action"), search_type=data.get("search_type"))
        return build_intent(data, self.resolver, self.tz)
