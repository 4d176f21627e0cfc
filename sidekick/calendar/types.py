from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, model_validator


class TimeWindow(BaseModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "TimeWindow":
        if self.start > self.end:
            raise ValueError("window start must not be after its end")
        return self


class EventDraft(BaseModel):
    """Proposed event awaiting user confirmation. Never persisted directly."""

    title: str
    start_time: datetime
    end_time: datetime
    attendees: List[str] = []
    description: str = ""
    is_virtual: bool = False
    location: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self) -> "EventDraft":
        if (self.start_time.tzinfo is None) != (self.end_time.tzinfo is None):
            raise ValueError("start and end must both carry a UTC offset or both omit it")
        if self.start_time >= self.end_time:
            raise ValueError("event must end after it starts")
        return self


class StoredEvent(BaseModel):
    id: Optional[str] = None
    title: str
    start_time: datetime
    end_time: datetime
    is_virtual: bool = False
    attendees: List[str] = []
    description: Optional[str] = None
    location: Optional[str] = None
