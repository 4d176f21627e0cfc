import os
from typing import Optional

from pydantic import BaseModel


class AppConfig(BaseModel):
    timezone: str = "America/New_York"
    api_key: Optional[str] = None
    llm_enabled: bool = False
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_timeout_ms: int = 8000
    event_store: str = "memory"
    event_store_seed_path: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    phrase_seed: Optional[int] = None


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip().lstrip("-").isdigit():
        return default
    return int(raw.strip())


def load_config() -> AppConfig:
    return AppConfig(
        timezone=os.getenv("TIMEZONE", "America/New_York"),
        api_key=os.getenv("API_KEY") or None,
        llm_enabled=os.getenv("LLM_ENABLED", "false").lower() == "true",
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        llm_timeout_ms=_int_env("LLM_TIMEOUT_MS", 8000),
        event_store=os.getenv("EVENT_STORE", "memory").lower(),
        event_store_seed_path=os.getenv("EVENT_STORE_SEED_PATH") or None,
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_key=os.getenv("SUPABASE_KEY") or None,
        phrase_seed=_int_env("PHRASE_SEED", None),
    )
