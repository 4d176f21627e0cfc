import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel

from sidekick.calendar.types import EventDraft, StoredEvent, TimeWindow


class IntentKind(str, Enum):
    CREATE_EVENT = "create_event"
    LIST_EVENTS = "list_events"
    QUERY = "query"


@dataclass(frozen=True)
class Intent:
    """A classified chat turn. Missing params are omitted, never set to None."""

    kind: IntentKind
    params: Dict[str, str] = field(default_factory=dict)


MessageRole = Literal["user", "assistant", "assistant-typing"]

WELCOME_MESSAGE = "Hi there! I'm your scheduling assistant. How can I help you today?"


class Message(BaseModel):
    id: str
    content: str
    role: MessageRole
    timestamp: datetime

    model_config = {"frozen": True}

    @classmethod
    def create(cls, content: str, role: MessageRole) -> "Message":
        return cls(
            id=str(uuid.uuid4()),
            content=content,
            role=role,
            timestamp=datetime.now(timezone.utc),
        )


class Transcript:
    """Ordered messages of a single conversation, with at most one typing placeholder."""

    def __init__(self, welcome: Optional[str] = WELCOME_MESSAGE):
        self._messages: List[Message] = []
        if welcome:
            self._messages.append(Message.create(welcome, "assistant"))

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def is_typing(self) -> bool:
        return any(m.role == "assistant-typing" for m in self._messages)

    def add_user(self, content: str) -> Message:
        message = Message.create(content, "user")
        self._messages.append(message)
        return message

    def begin_typing(self) -> Message:
        for message in self._messages:
            if message.role == "assistant-typing":
                return message
        placeholder = Message.create("", "assistant-typing")
        self._messages.append(placeholder)
        return placeholder

    def discard_typing(self) -> None:
        self._messages = [m for m in self._messages if m.role != "assistant-typing"]

    def resolve_typing(self, reply: str) -> Message:
        self.discard_typing()
        message = Message.create(reply, "assistant")
        self._messages.append(message)
        return message


@dataclass
class CreateEventAction:
    draft: EventDraft
    params: Dict[str, str]
    kind: str = "create_event"


@dataclass
class ListEventsAction:
    window: TimeWindow
    events: List[StoredEvent]
    period: Optional[str] = None
    kind: str = "list_events"


@dataclass
class BackendError:
    type: Literal["quota_exceeded", "api_error"]
    message: str


@dataclass
class ChatOutcome:
    """Everything one inbound message produced."""

    intent: Intent
    response: str
    action: Optional[Union[CreateEventAction, ListEventsAction]] = None
    error: Optional[BackendError] = None
