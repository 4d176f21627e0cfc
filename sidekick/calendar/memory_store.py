import json
import threading
import uuid
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from sidekick.calendar.types import EventDraft, StoredEvent


def _aware(moment: datetime, tz: tzinfo) -> datetime:
    """Naive datetimes are read as wall-clock time in `tz`."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment


def _parse_events(raw_list, tz: tzinfo) -> List[StoredEvent]:
    events: List[StoredEvent] = []
    for e in raw_list or []:
        event = StoredEvent(
            id=e.get("id") or str(uuid.uuid4()),
            title=e.get("title", ""),
            start_time=e["start_time"],
            end_time=e["end_time"],
            is_virtual=bool(e.get("is_virtual", False)),
            attendees=e.get("attendees") or [],
            description=e.get("description"),
            location=e.get("location"),
        )
        events.append(event.model_copy(update={
            "start_time": _aware(event.start_time, tz),
            "end_time": _aware(event.end_time, tz),
        }))
    return events


class InMemoryEventStore:
    """
    Process-local event store, keyed by user id.

    Every stored time is timezone-aware. Naive values coming from seed files,
    drafts or window bounds are pinned to the store's timezone.
    """

    def __init__(
        self,
        events: Optional[Dict[str, List[StoredEvent]]] = None,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self.tz = tz or ZoneInfo("UTC")
        self._events: Dict[str, List[StoredEvent]] = {
            user_id: list(items) for user_id, items in (events or {}).items()
        }
        self._lock = threading.Lock()

    @classmethod
    def from_seed_file(cls, path: Optional[str], tz: Optional[tzinfo] = None) -> "InMemoryEventStore":
        """
        Build a store from a JSON file shaped like {"users": {"<id>": [event, ...]}}.

        A missing path or file yields an empty store.
        """
        tz = tz or ZoneInfo("UTC")
        if not path:
            return cls(tz=tz)
        seed_path = Path(path)
        if not seed_path.exists():
            return cls(tz=tz)
        raw = json.loads(seed_path.read_text(encoding="utf-8"))
        users = raw.get("users", {})
        return cls({user_id: _parse_events(items, tz) for user_id, items in users.items()}, tz=tz)

    def read(self, user_id: str, start: datetime, end: datetime) -> List[StoredEvent]:
        start, end = _aware(start, self.tz), _aware(end, self.tz)
        with self._lock:
            candidates = list(self._events.get(user_id, []))
        matching = [e for e in candidates if e.start_time >= start and e.end_time <= end]
        return sorted(matching, key=lambda e: e.start_time)

    def write(self, user_id: str, draft: EventDraft) -> StoredEvent:
        event = StoredEvent(
            id=str(uuid.uuid4()),
            title=draft.title,
            start_time=_aware(draft.start_time, self.tz),
            end_time=_aware(draft.end_time, self.tz),
            is_virtual=draft.is_virtual,
            attendees=list(draft.attendees),
            description=draft.description or None,
            location=draft.location,
        )
        with self._lock:
            self._events.setdefault(user_id, []).append(event)
        return event
