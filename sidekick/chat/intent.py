import re
from typing import Callable, Dict, List, Tuple

from sidekick.chat.types import Intent, IntentKind


DATE_HINT_PATTERN = re.compile(
    r"(?:on|for)\s+"
    r"(tomorrow|today|monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
    r"january|february|march|april|may|june|july|august|september|october|november|december|"
    r"jan|feb|mar|apr|jun|jul|aug|sep|oct|nov|dec)"
    r"(?:\s+(\d{1,2})(?:st|nd|rd|th)?)?",
    re.IGNORECASE,
)

TIME_HINT_PATTERN = re.compile(r"(?:at|from)\s+(\d{1,2}(?::\d{2})?)\s*(?:am|pm)?", re.IGNORECASE)

TITLE_PATTERN = re.compile(r"about\s+([^,.]+)", re.IGNORECASE)

CREATE_PHRASES = ("schedule", "create meeting", "add event")


def _wants_create(text: str) -> bool:
    if any(phrase in text for phrase in CREATE_PHRASES):
        return True
    return "set up" in text and ("meeting" in text or "call" in text)


def _wants_list(text: str) -> bool:
    return (
        ("show" in text and "calendar" in text)
        or ("list" in text and "events" in text)
        or ("what" in text and ("schedule" in text or "meetings" in text))
        or ("events" in text and ("today" in text or "tomorrow" in text or "this week" in text))
    )


# Evaluated top to bottom; the first matching predicate decides the intent.
INTENT_RULES: List[Tuple[Callable[[str], bool], IntentKind]] = [
    (_wants_create, IntentKind.CREATE_EVENT),
    (_wants_list, IntentKind.LIST_EVENTS),
]


def extract_create_params(text: str) -> Dict[str, str]:
    """Pull date, time and title hints out of a scheduling request."""
    params: Dict[str, str] = {}

    date_match = DATE_HINT_PATTERN.search(text)
    if date_match:
        params["dateHint"] = date_match.group(0)

    time_match = TIME_HINT_PATTERN.search(text)
    if time_match:
        params["timeHint"] = time_match.group(0)

    if "about" in text.lower():
        title_match = TITLE_PATTERN.search(text)
        if title_match and title_match.group(1).strip():
            params["title"] = title_match.group(1).strip()

    return params


def extract_list_params(text: str) -> Dict[str, str]:
    lowered = text.lower()
    if "today" in lowered:
        return {"period": "today"}
    if "tomorrow" in lowered:
        return {"period": "tomorrow"}
    if "this week" in lowered:
        return {"period": "week"}
    return {}


PARAM_EXTRACTORS: Dict[IntentKind, Callable[[str], Dict[str, str]]] = {
    IntentKind.CREATE_EVENT: extract_create_params,
    IntentKind.LIST_EVENTS: extract_list_params,
}


def classify(text: str) -> Intent:
    """
    Classify a chat message into create_event, list_events or query.

    Matching is case-insensitive substring matching. Text that matches no
    rule is a plain query with no params.
    """
    lowered = (text or "").lower()
    for predicate, kind in INTENT_RULES:
        if predicate(lowered):
            return Intent(kind=kind, params=PARAM_EXTRACTORS[kind](text))
    return Intent(kind=IntentKind.QUERY, params={})
