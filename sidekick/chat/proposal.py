from datetime import datetime, timedelta
from typing import Optional

from sidekick.calendar.types import EventDraft
from sidekick.chat.dates import resolve_relative_date
from sidekick.chat.types import Intent, IntentKind


DEFAULT_TITLE = "New Meeting"
DEFAULT_DURATION = timedelta(minutes=60)


def build_draft(intent: Intent, reference_now: datetime) -> Optional[EventDraft]:
    """
    Turn a create_event intent into a draft event for the user to confirm.

    The draft always starts at 09:00 on the resolved day. The time hint is
    only echoed back in the reply text and is not applied here.
    """
    if intent.kind != IntentKind.CREATE_EVENT:
        return None

    params = intent.params
    start_time = resolve_relative_date(params.get("dateHint", "tomorrow"), reference_now)

    return EventDraft(
        title=params.get("title") or DEFAULT_TITLE,
        start_time=start_time,
        end_time=start_time + DEFAULT_DURATION,
        attendees=[],
        description="",
        is_virtual=False,
    )
