import logging
import random
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo
from datetime import datetime

from fastapi import APIRouter, Request, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from sidekick.calendar.store import EventStoreError, select_event_store
from sidekick.chat.composer import ResponseComposer, format_event_date, format_time_range
from sidekick.chat.orchestrator import ConversationOrchestrator
from sidekick.chat.types import ChatOutcome, CreateEventAction, ListEventsAction
from sidekick.core.config import load_config
from sidekick.llm.service import select_llm_client
from sidekick.observability.logger import log_event, log_error, timing
from sidekick.routes.health import update_last_turn
from sidekick.schemas.chat import (
    ChatError,
    ChatRequest,
    ChatResponse,
    ConfirmRequest,
    ConfirmResponse,
    DraftModel,
    MeetingModel,
    StoredEventModel,
)

logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_FAILURE_REPLY = "I'm sorry, but something went wrong. Please try again later."

_orchestrator: Optional[ConversationOrchestrator] = None


def get_orchestrator() -> ConversationOrchestrator:
    """Get the process-wide orchestrator, built from configuration on first use."""
    global _orchestrator
    if _orchestrator is None:
        cfg = load_config()
        tz = ZoneInfo(cfg.timezone)
        rng = random.Random(cfg.phrase_seed) if cfg.phrase_seed is not None else random.Random()
        composer = ResponseComposer(
            llm_client=select_llm_client(cfg),
            rng=rng,
            clock=lambda: datetime.now(tz),
            tz=tz,
        )
        _orchestrator = ConversationOrchestrator(
            store=select_event_store(cfg),
            composer=composer,
            clock=lambda: datetime.now(tz),
        )
    return _orchestrator


def reset_orchestrator() -> None:
    """Reset the global orchestrator instance."""
    global _orchestrator
    _orchestrator = None


def _require_api_key_if_configured(request: Request) -> None:
    cfg = load_config()
    if not cfg.api_key:
        return
    provided = request.headers.get("x-api-key") or request.headers.get("X-API-Key")
    if provided != cfg.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def _calendar_data(outcome: ChatOutcome, tz: Optional[ZoneInfo]) -> Optional[Dict[str, Any]]:
    action = outcome.action
    if isinstance(action, ListEventsAction):
        meetings = [
            MeetingModel(
                title=e.title,
                time=format_time_range(e, tz),
                date=format_event_date(e, tz),
                isVirtual=e.is_virtual,
            ).model_dump()
            for e in action.events
        ]
        return {
            "intent": "list_events",
            "meetings": meetings,
            "period": action.period or "this week",
            "window": {
                "start": action.window.start.isoformat(),
                "end": action.window.end.isoformat(),
            },
        }
    if isinstance(action, CreateEventAction):
        return {
            "intent": "create_event",
            "proposedDetails": action.params,
            "draft": DraftModel.from_draft(action.draft).model_dump(mode="json"),
        }
    return None


async def _parse_body(request: Request) -> Any:
    try:
        return await request.json()
    except Exception:
        return None


def _request_error_message(error: ValidationError) -> str:
    failed_fields = {str(err["loc"][0]) for err in error.errors() if err.get("loc")}
    if "message" in failed_fields or not failed_fields:
        return "Message is required"
    if "userId" in failed_fields:
        return "userId must be a string"
    return "Invalid request body"


@router.post("")
async def chat(request: Request):
    """
    Handle one chat message.

    Returns the reply text, any structured calendar data for the UI, and an
    `error` block when the generative backend failed and a built-in reply was
    used instead.
    """
    _require_api_key_if_configured(request)

    body = await _parse_body(request)
    if not isinstance(body, dict):
        return JSONResponse(status_code=400, content={"error": "Failed to parse request body"})

    try:
        chat_request = ChatRequest(**body)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": _request_error_message(e)})

    user_id = chat_request.userId or ""

    try:
        orchestrator = get_orchestrator()
        with timing("chat_turn") as timer:
            outcome = await run_in_threadpool(orchestrator.handle, chat_request.message, user_id)
    except EventStoreError as e:
        log_error(e, {"user_id": user_id, "stage": "event_store_read"})
        update_last_turn(intent="list_events", user_id=user_id, success=False, error="event_store")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch calendar data"})
    except Exception as e:
        log_error(e, {"user_id": user_id, "stage": "chat_turn"})
        update_last_turn(intent="unknown", user_id=user_id, success=False, error="internal")
        return JSONResponse(
            status_code=500,
            content={"error": "An unexpected error occurred", "response": GENERIC_FAILURE_REPLY},
        )

    log_event(
        action="replied",
        intent=outcome.intent.kind.value,
        user_id=user_id,
        message=chat_request.message,
        duration_ms=timer.get_duration_ms(),
        backend_error=outcome.error.type if outcome.error else None,
    )
    update_last_turn(
        intent=outcome.intent.kind.value,
        user_id=user_id,
        success=True,
        duration_ms=timer.get_duration_ms(),
        error=outcome.error.type if outcome.error else None,
    )

    response = ChatResponse(
        response=outcome.response,
        calendarData=_calendar_data(outcome, orchestrator.composer.tz),
        error=ChatError(type=outcome.error.type, message=outcome.error.message) if outcome.error else None,
    )
    content = response.model_dump(mode="json")
    if content.get("error") is None:
        content.pop("error", None)
    return JSONResponse(status_code=200, content=content)


@router.post("/confirm")
async def confirm_draft(request: Request):
    """
    Persist a draft the user has explicitly confirmed.

    Draft times must carry a UTC offset. Any malformed body or draft is a 400.
    """
    _require_api_key_if_configured(request)

    raw = await _parse_body(request)
    if not isinstance(raw, dict):
        return JSONResponse(status_code=400, content={"ok": False, "error": "Failed to parse request body"})

    try:
        body = ConfirmRequest(**raw)
        draft = body.draft.to_draft()
    except ValidationError:
        return JSONResponse(status_code=400, content={"ok": False, "error": "Invalid event draft"})

    orchestrator = get_orchestrator()
    try:
        event = await run_in_threadpool(orchestrator.confirm, body.userId, draft)
    except EventStoreError as e:
        log_error(e, {"user_id": body.userId, "stage": "event_store_write"})
        return JSONResponse(status_code=500, content={"ok": False, "error": "Failed to save event"})

    log_event(action="confirmed", intent="create_event", user_id=body.userId, message=draft.title)

    response = ConfirmResponse(
        event=StoredEventModel(
            id=event.id,
            title=event.title,
            startTime=event.start_time,
            endTime=event.end_time,
            isVirtual=event.is_virtual,
            attendees=event.attendees,
            description=event.description,
            location=event.location,
        )
    )
    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
