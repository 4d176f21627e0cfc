from datetime import datetime
from typing import List, Optional, Protocol
from zoneinfo import ZoneInfo

from sidekick.calendar.types import EventDraft, StoredEvent
from sidekick.core.config import AppConfig, load_config


class EventStoreError(Exception):
    """Raised when the event store cannot be read from or written to."""


class EventStore(Protocol):
    def read(self, user_id: str, start: datetime, end: datetime) -> List[StoredEvent]:
        """
        Return the user's events that start at or after `start` and end at or
        before `end`, ordered by start time ascending.

        Raises EventStoreError when the store is unreachable.
        """
        ...

    def write(self, user_id: str, draft: EventDraft) -> StoredEvent:
        """Persist a confirmed draft. Raises EventStoreError on failure."""
        ...


def select_event_store(config: Optional[AppConfig] = None) -> EventStore:
    """Factory function to select the event store based on EVENT_STORE env var."""
    cfg = config or load_config()
    store = cfg.event_store

    if store == "memory":
        from sidekick.calendar.memory_store import InMemoryEventStore
        return InMemoryEventStore.from_seed_file(cfg.event_store_seed_path, tz=ZoneInfo(cfg.timezone))
    elif store == "supabase":
        from sidekick.calendar.supabase_store import create_supabase_store
        return create_supabase_store(cfg)
    else:
        raise ValueError(f"Unsupported EVENT_STORE: {store}")
