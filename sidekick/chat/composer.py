"""
Reply generation for chat turns.

Replies come from local templates, optionally replaced by a remote generative
backend. Any backend result other than Ok falls back to the local templates,
so a usable reply is always produced.
"""

import random
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence
from zoneinfo import ZoneInfo

from sidekick.calendar.types import StoredEvent
from sidekick.calendar.window import period_label
from sidekick.chat.types import BackendError, IntentKind
from sidekick.llm.service import BackendResult, BackendStatus, LLMClient
from sidekick.observability.logger import log_warning


SYSTEM_PROMPT = (
    "You are a friendly, concise scheduling assistant inside a calendar app. "
    "You help users schedule meetings and review their agenda. "
    "Never invent events, dates or times that are not given to you. "
    "Reply in plain text without markdown headings."
)

CREATE_PHRASES = [
    "I'd be happy to help you schedule {title}. I see you want it {date} {time}. "
    "Let me set that up for you. Can you confirm this works for you, or would you like to adjust any details?",
    "Sure, let's get {title} on your calendar {date} {time}. "
    "Does that look right, or should I change anything before I add it?",
    "Got it: {title}, {date} {time}. "
    "Shall I go ahead and add it, or would you like to tweak the details first?",
]

EMPTY_PERIOD_PHRASES = [
    "Looking at your calendar, you don't have any events scheduled for {period}. Your schedule is clear!",
    "Good news: nothing is on your calendar for {period}. You're all clear!",
    "Your calendar is clear for {period}. There are no events scheduled.",
]

WEATHER_REPLY = (
    "I'm a scheduling assistant and don't have access to current weather data. "
    "I can help you manage your calendar though!"
)

HELP_REPLY = (
    "I can help you manage your schedule! You can ask me to:\n"
    "- Schedule meetings or events\n"
    "- Show your calendar for today, tomorrow, or this week\n"
    "- Check specific time slots\n"
    "- Manage your appointments\n"
    "\n"
    "Just let me know what you need!"
)

THANKS_REPLY = "You're welcome! Let me know if there's anything else I can do for your schedule."

IDENTITY_REPLY = (
    "I'm your scheduling assistant. I can set up meetings for you and tell you "
    "what's on your calendar today, tomorrow or this week."
)

FALLBACK_REPLY = (
    "I'm your scheduling assistant, ready to help with your calendar! You can ask me to "
    "schedule meetings, check your agenda, or manage your events. What would you like to do today?"
)

QUOTA_NOTICE = "The AI service quota has been exceeded. Using built-in responses for now."
TRANSIENT_NOTICE = "The AI service is temporarily unavailable. Using built-in responses."

GREETING_PATTERN = re.compile(r"\b(hello|hi|hey)\b")
IDENTITY_PHRASES = ("who are you", "your name", "what are you")


@dataclass
class Composition:
    text: str
    error: Optional[BackendError] = None


def format_time_range(event: StoredEvent, tz: Optional[ZoneInfo] = None) -> str:
    start, end = _localize(event.start_time, tz), _localize(event.end_time, tz)
    return f"{start.strftime('%I:%M %p')} - {end.strftime('%I:%M %p')}"


def format_event_date(event: StoredEvent, tz: Optional[ZoneInfo] = None) -> str:
    start = _localize(event.start_time, tz)
    return f"{start.strftime('%A, %b')} {start.day}"


def _localize(moment: datetime, tz: Optional[ZoneInfo]) -> datetime:
    if tz is not None and moment.tzinfo is not None:
        return moment.astimezone(tz)
    return moment


class ResponseComposer:
    """Builds reply text for a classified turn."""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz: Optional[ZoneInfo] = None,
    ):
        self.llm_client = llm_client
        self.rng = rng or random.Random()
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(tz))

    def compose(
        self,
        intent: IntentKind,
        params: Dict[str, str],
        events: Sequence[StoredEvent] = (),
    ) -> Composition:
        """
        Produce the reply for one turn.

        Args:
            intent: The classified intent
            params: Intent params; query turns carry the raw text under 'query'
            events: Fetched events for list_events, already sorted by start time

        Returns:
            Composition with the reply text and, when the remote backend
            failed, the error to surface to the caller
        """
        if self.llm_client is None:
            return Composition(text=self.compose_local(intent, params, events))

        result = self._call_backend(intent, params, events)
        if result.is_ok:
            return Composition(text=result.text)

        text = self.compose_local(intent, params, events)
        if result.status == BackendStatus.QUOTA_EXCEEDED:
            return Composition(text=text, error=BackendError(type="quota_exceeded", message=QUOTA_NOTICE))
        return Composition(text=text, error=BackendError(type="api_error", message=TRANSIENT_NOTICE))

    def compose_local(
        self,
        intent: IntentKind,
        params: Dict[str, str],
        events: Sequence[StoredEvent] = (),
    ) -> str:
        if intent == IntentKind.CREATE_EVENT:
            return self._create_reply(params)
        if intent == IntentKind.LIST_EVENTS:
            return self._list_reply(params, events)
        return self._query_reply(params.get("query", ""))

    def _create_reply(self, params: Dict[str, str]) -> str:
        phrase = self.rng.choice(CREATE_PHRASES)
        return phrase.format(
            title=params.get("title") or "your event",
            date=params.get("dateHint") or "tomorrow",
            time=params.get("timeHint") or "in the morning",
        )

    def _list_reply(self, params: Dict[str, str], events: Sequence[StoredEvent]) -> str:
        period = period_label(params.get("period"))
        if not events:
            return self.rng.choice(EMPTY_PERIOD_PHRASES).format(period=period)

        lines = [f"Here's what you have scheduled for {period}:", ""]
        for idx, event in enumerate(events, start=1):
            lines.append(
                f'{idx}. "{event.title}" at {format_time_range(event, self.tz)} '
                f"on {format_event_date(event, self.tz)}"
            )
        return "\n".join(lines)

    def _query_reply(self, query: str) -> str:
        text = query.lower()
        now = self.clock()
        date_string = f"{now.strftime('%A, %B')} {now.day}, {now.year}"
        time_string = now.strftime("%I:%M %p")

        if GREETING_PATTERN.search(text):
            return (
                f"Hello! I'm your scheduling assistant. Today is {date_string} and the current time "
                f"is {time_string}. How can I help you with your calendar today?"
            )
        if "time" in text:
            return f"The current time is {time_string} on {date_string}."
        if "weather" in text:
            return WEATHER_REPLY
        if "help" in text:
            return HELP_REPLY
        if "thank" in text:
            return THANKS_REPLY
        if any(phrase in text for phrase in IDENTITY_PHRASES):
            return IDENTITY_REPLY
        return FALLBACK_REPLY

    def _call_backend(
        self,
        intent: IntentKind,
        params: Dict[str, str],
        events: Sequence[StoredEvent],
    ) -> BackendResult:
        prompt = self.build_user_prompt(intent, params, events)
        try:
            return self.llm_client.generate_reply(SYSTEM_PROMPT, prompt)
        except Exception as e:
            log_warning("LLM client raised instead of returning a result", {"intent": IntentKind(intent).value, "error": str(e)})
            return BackendResult.transient_failure(str(e))

    def build_user_prompt(
        self,
        intent: IntentKind,
        params: Dict[str, str],
        events: Sequence[StoredEvent] = (),
    ) -> str:
        """Build the task-specific instruction sent alongside the system prompt."""
        now = self.clock()
        header = f"Current date and time: {now.strftime('%A, %B')} {now.day}, {now.year} {now.strftime('%I:%M %p')}."

        if intent == IntentKind.CREATE_EVENT:
            return f"""{header}

The user wants to schedule {params.get("title") or "an event"}.
Requested day: {params.get("dateHint") or "not specified (assume tomorrow)"}
Requested time: {params.get("timeHint") or "not specified (assume the morning)"}

Ask the user to confirm the proposed event or adjust its details. Keep it to two sentences."""

        if intent == IntentKind.LIST_EVENTS:
            period = period_label(params.get("period"))
            if events:
                listing = "\n".join(
                    f'- "{e.title}" at {format_time_range(e, self.tz)} on {format_event_date(e, self.tz)}'
                    for e in events
                )
            else:
                listing = "(no events)"
            return f"""{header}

The user asked what is on their calendar for {period}. Their events, in order:
{listing}

Summarize these for the user. Keep every title, time and date exactly as given and keep the order.
If there are no events, tell them their schedule is clear."""

        return f"""{header}

The user said: "{params.get("query", "")}"

Reply helpfully as a scheduling assistant in at most three sentences."""
