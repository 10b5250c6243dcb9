import dateparser
from datetime import datetime, timedelta
import pytz
import re

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

def get_current_datetime(tz: str = "UTC") -> datetime:
    return datetime.now(pytz.timezone(tz))

def tomorrow_iso(tz: str = "UTC") -> str:
    """Default outbound date when the user gives none."""
    return (get_current_datetime(tz) + timedelta(days=1)).date().isoformat()

def _next_weekday(text: str, base_date: datetime) -> datetime | None:
    text_lower = text.lower()
    for day_num, day_name in enumerate(WEEKDAYS):
        if day_name not in text_lower:
            continue
        days_until = (day_num - base_date.weekday()) % 7
        # "this friday" on a friday is today; "friday" or "next friday" is a week out
        if days_until == 0 and "this" not in text_lower:
            days_until = 7
        return base_date + timedelta(days=days_until)
    return None

def to_iso_date(text: str, tz: str = "UTC") -> str:
    """Normalize an LLM- or user-supplied date to YYYY-MM-DD, or "" if unparseable."""
    if not text:
        return ""
    text = str(text).strip()
    if ISO_DATE.match(text):
        return text

    base_date = get_current_datetime(tz)
    text_lower = text.lower()
    if text_lower == "today":
        return base_date.date().isoformat()
    if text_lower == "tomorrow":
        return (base_date + timedelta(days=1)).date().isoformat()

    if re.search(r"\b(next|this)?\s*(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", text_lower):
        dt = _next_weekday(text_lower, base_date)
        if dt:
            return dt.date().isoformat()

    dt = dateparser.parse(text, settings={"RELATIVE_BASE": base_date.replace(tzinfo=None),
                                          "PREFER_DATES_FROM": "future"})
    if dt:
        return dt.date().isoformat()
    return ""


def format_duration_minutes(total_minutes: int) -> str:
    """
    Convert duration in minutes to a compact human string, e.g. 85 -> "1h 25min".
    """
    if total_minutes is None or total_minutes < 0:
        return ""
    h = total_minutes // 60
    m = total_minutes % 60
    if h and m:
        return f"{h}h {m}min"
    if h:
        return f"{h}h"
    return f"{m}min"
