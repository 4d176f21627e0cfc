from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AwareDatetime, BaseModel, field_validator

from sidekick.calendar.types import EventDraft


class ChatRequest(BaseModel):
    message: str
    userId: Optional[str] = None

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Message is required")
        return value


class ChatError(BaseModel):
    type: Literal["quota_exceeded", "api_error"]
    message: str


class ChatResponse(BaseModel):
    response: str
    calendarData: Optional[Dict[str, Any]] = None
    error: Optional[ChatError] = None


class MeetingModel(BaseModel):
    title: str
    time: str
    date: str
    isVirtual: bool = False


class DraftModel(BaseModel):
    title: str
    startTime: AwareDatetime
    endTime: AwareDatetime
    attendees: List[str] = []
    description: str = ""
    isVirtual: bool = False
    location: Optional[str] = None

    @classmethod
    def from_draft(cls, draft: EventDraft) -> "DraftModel":
        return cls(
            title=draft.title,
            startTime=draft.start_time,
            endTime=draft.end_time,
            attendees=list(draft.attendees),
            description=draft.description,
            isVirtual=draft.is_virtual,
            location=draft.location,
        )

    def to_draft(self) -> EventDraft:
        return EventDraft(
            title=self.title,
            start_time=self.startTime,
            end_time=self.endTime,
            attendees=self.attendees,
            description=self.description,
            is_virtual=self.isVirtual,
            location=self.location,
        )


class ConfirmRequest(BaseModel):
    userId: str
    draft: DraftModel


class StoredEventModel(BaseModel):
    id: Optional[str] = None
    title: str
    startTime: datetime
    endTime: datetime
    isVirtual: bool = False
    attendees: List[str] = []
    description: Optional[str] = None
    location: Optional[str] = None


class ConfirmResponse(BaseModel):
    ok: bool = True
    event: StoredEventModel
