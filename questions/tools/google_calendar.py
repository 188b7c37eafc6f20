import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional

from googleapiclient.discovery import build

from questions.errors import ConfigurationError
from questions.tools.google_drive import get_account_config, get_credentials
from workflow.core.formatters import format_duration
from workflow.core.validators import parse_timestamp

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]

EVENT_TYPE_KEYWORDS = [
    ("meeting", ["meeting", "call", "zoom"]),
    ("deadline", ["deadline", "due", "submit"]),
    ("personal", ["personal", "family", "lunch"]),
]


def classify_event(summary: str, description: str) -> str:
    """meeting / deadline / personal / other, first keyword match wins"""
    text = f"{summary} {description}".lower()
    for event_type, keywords in EVENT_TYPE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return event_type
    return "other"


def _event_time(value: Dict[str, Any]) -> Optional[datetime]:
    raw = (value or {}).get("dateTime") or (value or {}).get("date")
    if not raw:
        return None
    return parse_timestamp(raw if "T" in raw else f"{raw}T00:00:00Z")


def structure_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Google Calendar event -> {title, time, duration, type, description}"""
    start = _event_time(event.get("start"))
    end = _event_time(event.get("end"))
    summary = event.get("summary") or ""
    description = event.get("description") or ""

    seconds = (end - start).total_seconds() if start and end else 0
    return {
        "title": summary,
        "time": start.strftime("%Y-%m-%d %H:%M") if start else "",
        "duration": format_duration(seconds),
        "type": classify_event(summary, description),
        "description": description or "No description",
    }


def _calendar_config(context: Optional[str]) -> Dict[str, str]:
    if context:
        return get_account_config(context)

    email = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "")
    private_key = os.getenv("GOOGLE_PRIVATE_KEY", "").replace("\\n", "\n")
    if not email or not private_key:
        raise ConfigurationError("Google service account not configured")
    return {
        "service_account_email": email,
        "private_key": private_key,
        "calendar_id": os.getenv("GOOGLE_CALENDAR_ID") or "primary",
    }


def get_upcoming_events(
    days_ahead: int = 3,
    context: Optional[str] = None,
    service=None,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Structured events for the next few days.

    Args:
        days_ahead: Window length in days
        context: "personal" or "work" account; the shared account when None
        service: Prebuilt calendar service (tests)

    Returns:
        Structured events; an empty list on any calendar failure
    """
    try:
        account_config = _calendar_config(context)
        if service is None:
            credentials = get_credentials(account_config, CALENDAR_SCOPES)
            service = build("calendar", "v3", credentials=credentials, cache_discovery=False)

        start = now or datetime.now(timezone.utc)
        end = start + timedelta(days=days_ahead)
        response = service.events().list(
            calendarId=account_config.get("calendar_id") or os.getenv("GOOGLE_CALENDAR_ID") or "primary",
            timeMin=start.isoformat().replace("+00:00", "Z"),
            timeMax=end.isoformat().replace("+00:00", "Z"),
            singleEvents=True,
            orderBy="startTime",
            maxResults=50
        ).execute()

        events = [structure_event(item) for item in response.get("items") or []]
        logger.info(f"Fetched {len(events)} calendar events for the next {days_ahead} days")
        return events

    except Exception as e:
        logger.error(f"Error fetching calendar events: {e}")
        return []
