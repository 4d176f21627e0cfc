import os
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from sidekick.core.config import load_config
from sidekick.observability.logger import init_sentry

router = APIRouter()

# Global state for last chat turn tracking
_last_turn: Optional[Dict[str, Any]] = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def update_last_turn(
    intent: str,
    user_id: str,
    success: bool = True,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
) -> None:
    """
    Update the last chat turn information.

    Args:
        intent: The classified intent (or 'unknown' if classification never ran)
        user_id: The user the turn belonged to
        success: Whether the turn produced a reply
        duration_ms: Optional duration in milliseconds
        error: Optional error type
    """
    global _last_turn

    _last_turn = {
        "time": _utc_now(),
        "intent": intent,
        "user_id": user_id or "anonymous",
        "success": success,
    }

    if duration_ms is not None:
        _last_turn["duration_ms"] = round(duration_ms, 2)

    if error is not None:
        _last_turn["error"] = error


def get_last_turn() -> Optional[Dict[str, Any]]:
    """Get the last chat turn information."""
    return _last_turn


@router.get("/healthz")
async def health_check() -> JSONResponse:
    """
    Health check endpoint with last chat turn information.

    Returns:
        JSON response with status and last turn metadata
    """
    cfg = load_config()
    response = {
        "status": "ok",
        "timestamp": _utc_now(),
        "event_store": cfg.event_store,
        "llm_enabled": bool(cfg.llm_enabled and cfg.openai_api_key),
    }

    last_turn = get_last_turn()
    if last_turn:
        response["last_turn"] = last_turn

    obs_enabled = os.getenv("OBS_ENABLED", "false").lower() == "true"
    response["observability"] = {
        "enabled": obs_enabled,
        "sentry_configured": bool(os.getenv("SENTRY_DSN")),
    }

    return JSONResponse(status_code=200, content=response)


@router.get("/healthz/live")
async def liveness_check() -> JSONResponse:
    """Liveness check endpoint for container orchestration."""
    response = {
        "status": "alive",
        "timestamp": _utc_now(),
    }

    return JSONResponse(status_code=200, content=response)


# Initialize Sentry on module import if enabled
init_sentry()
