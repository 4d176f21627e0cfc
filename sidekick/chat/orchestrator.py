from datetime import datetime
from typing import Callable, Optional

from sidekick.calendar.store import EventStore
from sidekick.calendar.types import EventDraft, StoredEvent
from sidekick.calendar.window import window_for
from sidekick.chat.composer import ResponseComposer
from sidekick.chat.intent import classify
from sidekick.chat.proposal import build_draft
from sidekick.chat.types import ChatOutcome, CreateEventAction, IntentKind, ListEventsAction


class ConversationOrchestrator:
    """
    Runs one inbound message through classify -> fetch/propose -> compose.

    The orchestrator only reads from the event store. Drafts are persisted
    through `confirm`, which the caller invokes after explicit user approval.
    """

    def __init__(
        self,
        store: EventStore,
        composer: ResponseComposer,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.composer = composer
        self.clock = clock or datetime.now

    def handle(self, message: str, user_id: str) -> ChatOutcome:
        now = self.clock()
        intent = classify(message)

        if intent.kind == IntentKind.LIST_EVENTS:
            period = intent.params.get("period")
            window = window_for(period, now)
            events = self.store.read(user_id, window.start, window.end)
            composition = self.composer.compose(intent.kind, intent.params, events)
            action = ListEventsAction(window=window, events=events, period=period)
            return ChatOutcome(intent=intent, response=composition.text, action=action, error=composition.error)

        if intent.kind == IntentKind.CREATE_EVENT:
            draft = build_draft(intent, now)
            composition = self.composer.compose(intent.kind, intent.params)
            action = CreateEventAction(draft=draft, params=dict(intent.params))
            return ChatOutcome(intent=intent, response=composition.text, action=action, error=composition.error)

        composition = self.composer.compose(intent.kind, {"query": message})
        return ChatOutcome(intent=intent, response=composition.text, error=composition.error)

    def confirm(self, user_id: str, draft: EventDraft) -> StoredEvent:
        return self.store.write(user_id, draft)
