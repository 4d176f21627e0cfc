from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from sidekick.core.config import AppConfig, load_config
from sidekick.observability.logger import log_info, log_warning


class BackendStatus(str, Enum):
    OK = "ok"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class BackendResult:
    """Outcome of one generative call: Ok(text), QuotaExceeded or TransientFailure."""

    status: BackendStatus
    text: str = ""
    detail: str = ""

    @classmethod
    def ok(cls, text: str) -> "BackendResult":
        return cls(BackendStatus.OK, text=text)

    @classmethod
    def quota_exceeded(cls, detail: str) -> "BackendResult":
        return cls(BackendStatus.QUOTA_EXCEEDED, detail=detail)

    @classmethod
    def transient_failure(cls, detail: str) -> "BackendResult":
        return cls(BackendStatus.TRANSIENT_FAILURE, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.status == BackendStatus.OK


class LLMClient(ABC):
    """Abstract base class for generative reply backends."""

    @abstractmethod
    def generate_reply(self, system_prompt: str, user_prompt: str) -> BackendResult:
        """Generate a chat reply. Must not raise; failures are reported in the result."""
        pass


class OpenAIClient(LLMClient):
    """OpenAI chat-completions client."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout_ms: int = 8000):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_ms / 1000.0
        self.base_url = "https://api.openai.com/v1"

    def generate_reply(self, system_prompt: str, user_prompt: str) -> BackendResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        data = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            "max_tokens": 400,
            "temperature": 0.7
        }

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=data
                )

                if response.status_code == 200:
                    result = response.json()
                    content = (result["choices"][0]["message"]["content"] or "").strip()
                    if not content:
                        return BackendResult.transient_failure("OpenAI returned an empty reply")
                    return BackendResult.ok(content)
                elif response.status_code == 429 or self._is_quota_error(response):
                    log_warning("OpenAI quota or rate limit exceeded", {"status_code": response.status_code, "model": self.model})
                    return BackendResult.quota_exceeded(
                        f"OpenAI API quota exceeded: {response.status_code}"
                    )
                else:
                    log_warning("OpenAI API error", {"status_code": response.status_code, "body": response.text[:200], "model": self.model})
                    return BackendResult.transient_failure(
                        f"OpenAI API error: {response.status_code}"
                    )
        except httpx.TimeoutException:
            log_warning("OpenAI API timeout", {"timeout_seconds": self.timeout_seconds, "model": self.model})
            return BackendResult.transient_failure(
                f"OpenAI API timeout after {self.timeout_seconds}s"
            )
        except Exception as e:
            log_warning("OpenAI API error", {"error": str(e), "error_type": type(e).__name__, "model": self.model})
            return BackendResult.transient_failure(f"OpenAI API error: {str(e)}")

    def _is_quota_error(self, response) -> bool:
        """OpenAI reports exhausted billing quota as an error code in the body."""
        try:
            body = response.json()
        except Exception:
            return False
        if not isinstance(body, dict):
            return False
        error = body.get("error")
        return isinstance(error, dict) and error.get("code") == "insufficient_quota"


def select_llm_client(config: Optional[AppConfig] = None) -> Optional[LLMClient]:
    """Factory function to select the remote backend. None means local templates only."""
    cfg = config or load_config()

    if not cfg.llm_enabled:
        return None

    if not cfg.openai_api_key:
        log_info("LLM enabled but OPENAI_API_KEY missing; using local templates", {"model": cfg.llm_model})
        return None

    return OpenAIClient(api_key=cfg.openai_api_key, model=cfg.llm_model, timeout_ms=cfg.llm_timeout_ms)
