from datetime import datetime, timezone
from typing import Any, Dict, List

import httpx
from pydantic import ValidationError

from sidekick.calendar.store import EventStoreError
from sidekick.calendar.types import EventDraft, StoredEvent
from sidekick.core.config import AppConfig
from sidekick.observability.logger import log_warning


class SupabaseEventStore:
    """Event store backed by the `meetings` table of a Supabase project (PostgREST API)."""

    def __init__(self, base_url: str, api_key: str, table: str = "meetings", timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _table_url(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _normalize_row(self, row: Dict[str, Any]) -> StoredEvent:
        """Build a StoredEvent from a PostgREST row. Offset-less timestamps are UTC."""
        try:
            event = StoredEvent(
                id=str(row["id"]) if row.get("id") is not None else None,
                title=row.get("title", ""),
                start_time=row["start_time"],
                end_time=row["end_time"],
                is_virtual=bool(row.get("is_virtual", False)),
                attendees=row.get("attendees") or [],
                description=row.get("description"),
                location=row.get("location"),
            )
        except (KeyError, ValidationError) as exc:
            log_warning("Supabase returned an unreadable meetings row", {"row_id": row.get("id"), "error": str(exc)})
            raise EventStoreError(f"Event store returned an invalid row: {exc}") from exc

        if event.start_time.tzinfo is None or event.end_time.tzinfo is None:
            event = event.model_copy(update={
                "start_time": event.start_time.replace(tzinfo=event.start_time.tzinfo or timezone.utc),
                "end_time": event.end_time.replace(tzinfo=event.end_time.tzinfo or timezone.utc),
            })
        return event

    def read(self, user_id: str, start: datetime, end: datetime) -> List[StoredEvent]:
        params = [
            ("select", "*"),
            ("user_id", f"eq.{user_id}"),
            ("start_time", f"gte.{start.isoformat()}"),
            ("end_time", f"lte.{end.isoformat()}"),
            ("order", "start_time.asc"),
        ]

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.get(self._table_url(), headers=self._headers(), params=params)
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            log_warning("Supabase read failed", {"status_code": exc.response.status_code, "user_id": user_id})
            raise EventStoreError(f"Event store read failed: {exc.response.status_code}") from exc
        except Exception as exc:
            log_warning("Supabase read failed", {"error": str(exc), "user_id": user_id})
            raise EventStoreError(f"Event store read failed: {exc}") from exc

        return [self._normalize_row(row) for row in rows or []]

    def write(self, user_id: str, draft: EventDraft) -> StoredEvent:
        payload = {
            "user_id": user_id,
            "title": draft.title,
            "description": draft.description,
            "start_time": draft.start_time.isoformat(),
            "end_time": draft.end_time.isoformat(),
            "attendees": draft.attendees,
            "location": draft.location,
            "is_virtual": draft.is_virtual,
        }
        headers = {**self._headers(), "Prefer": "return=representation"}

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(self._table_url(), headers=headers, json=payload)
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            log_warning("Supabase write failed", {"status_code": exc.response.status_code, "user_id": user_id})
            raise EventStoreError(f"Event store write failed: {exc.response.status_code}") from exc
        except Exception as exc:
            log_warning("Supabase write failed", {"error": str(exc), "user_id": user_id})
            raise EventStoreError(f"Event store write failed: {exc}") from exc

        if not rows:
            raise EventStoreError("Event store write returned no row")
        return self._normalize_row(rows[0])


def create_supabase_store(config: AppConfig) -> SupabaseEventStore:
    """Factory function to create a SupabaseEventStore from configuration."""
    if not config.supabase_url or not config.supabase_key:
        raise ValueError("Missing required Supabase configuration: SUPABASE_URL, SUPABASE_KEY")
    return SupabaseEventStore(base_url=config.supabase_url, api_key=config.supabase_key)
