import os
import json
import random
from datetime import datetime
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from sidekick.calendar.memory_store import InMemoryEventStore
from sidekick.chat.composer import ResponseComposer
from sidekick.chat.orchestrator import ConversationOrchestrator
from sidekick.main import app
from sidekick.routes.health import update_last_turn, get_last_turn
from sidekick.observability.logger import log_event, log_error, timing, _sanitize_message, init_sentry


class TestHealthEndpoints:
    """Test health check endpoints."""

    def setup_method(self):
        """Clear last turn data before each test."""
        import sidekick.routes.health
        sidekick.routes.health._last_turn = None

    def test_root(self):
        client = TestClient(app)
        assert client.get("/").json() == {"status": "ok"}

    def test_healthz_basic(self):
        """Test basic health check without a last turn."""
        client = TestClient(app)

        with patch.dict(os.environ, {"OBS_ENABLED": "false", "SENTRY_DSN": "", "LLM_ENABLED": "false"}):
            response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "timestamp" in data
        assert data["llm_enabled"] is False
        assert data["observability"]["enabled"] is False
        assert data["observability"]["sentry_configured"] is False
        assert "last_turn" not in data

    def test_healthz_with_last_turn(self):
        """Test health check with last turn information."""
        client = TestClient(app)

        update_last_turn(
            intent="list_events",
            user_id="user-1",
            success=True,
            duration_ms=12.5,
        )

        response = client.get("/healthz")

        assert response.status_code == 200
        last_turn = response.json()["last_turn"]
        assert last_turn["intent"] == "list_events"
        assert last_turn["user_id"] == "user-1"
        assert last_turn["duration_ms"] == 12.5
        assert last_turn["success"] is True
        assert "error" not in last_turn

    def test_healthz_observability_enabled(self):
        """Test health check with observability enabled."""
        client = TestClient(app)

        with patch.dict(os.environ, {"OBS_ENABLED": "true", "SENTRY_DSN": "https://test@sentry.io/123"}):
            response = client.get("/healthz")

            assert response.status_code == 200
            data = response.json()
            assert data["observability"]["enabled"] is True
            assert data["observability"]["sentry_configured"] is True

    def test_liveness_check(self):
        """Test liveness check."""
        client = TestClient(app)

        response = client.get("/healthz/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestLastTurnTracking:
    """Test last turn tracking functionality."""

    def test_update_last_turn_failure(self):
        """Test updating last turn with a failure."""
        update_last_turn(intent="unknown", user_id="", success=False, error="internal")

        last_turn = get_last_turn()
        assert last_turn is not None
        assert last_turn["user_id"] == "anonymous"
        assert last_turn["success"] is False
        assert last_turn["error"] == "internal"
        assert "time" in last_turn

    def test_chat_turn_updates_last_turn(self):
        """Test that a chat turn is visible through /healthz."""
        client = TestClient(app)
        tz = ZoneInfo("America/New_York")
        now = datetime(2025, 9, 8, 15, 42, tzinfo=tz)
        orchestrator = ConversationOrchestrator(
            store=InMemoryEventStore(),
            composer=ResponseComposer(rng=random.Random(0), clock=lambda: now, tz=tz),
            clock=lambda: now,
        )

        with patch('sidekick.routes.chat.get_orchestrator', return_value=orchestrator):
            response = client.post("/chat", json={"message": "show my calendar", "userId": "user-9"})
        assert response.status_code == 200

        last_turn = client.get("/healthz").json()["last_turn"]
        assert last_turn["intent"] == "list_events"
        assert last_turn["user_id"] == "user-9"
        assert "duration_ms" in last_turn


class TestStructuredLogging:
    """Test structured logging functionality."""

    def test_log_event_basic(self):
        """Test basic log event."""
        with patch('sidekick.observability.logger.logger') as mock_logger:
            log_event(
                action="replied",
                intent="query",
                user_id="user-1",
                message="hello",
            )

            mock_logger.info.assert_called_once()
            log_data = json.loads(mock_logger.info.call_args[0][0])

            assert log_data["action"] == "replied"
            assert log_data["intent"] == "query"
            assert log_data["user_id"] == "user-1"
            assert log_data["message"] == "hello"
            assert "timestamp" in log_data

    def test_log_event_with_optional_fields(self):
        """Test log event with optional fields."""
        with patch('sidekick.observability.logger.logger') as mock_logger:
            log_event(
                action="replied",
                intent="create_event",
                user_id=None,
                message="schedule lunch",
                duration_ms=150.456,
                backend_error="quota_exceeded",
            )

            log_data = json.loads(mock_logger.info.call_args[0][0])

            assert log_data["user_id"] == "anonymous"
            assert log_data["duration_ms"] == 150.46
            assert log_data["backend_error"] == "quota_exceeded"

    def test_log_event_truncates_long_message(self):
        """Test that log event truncates very long messages."""
        with patch('sidekick.observability.logger.logger') as mock_logger:
            log_event(action="replied", intent="query", user_id="u", message="A" * 150)

            log_data = json.loads(mock_logger.info.call_args[0][0])
            assert log_data["message"] == "A" * 97 + "..."

    @pytest.mark.parametrize("message", [
        "my password is hunter2",
        "Secret plans",
        "here is my api key",
        "reset token please",
    ])
    def test_sanitize_message_redacts_sensitive_text(self, message):
        """Test message sanitization removes sensitive text."""
        assert _sanitize_message(message) == "[REDACTED]"

    def test_sanitize_message_preserves_normal_text(self):
        for message in ["Schedule a team meeting", "What meetings do I have?"]:
            assert _sanitize_message(message) == message

    def test_log_error(self):
        """Test error logging includes type and context."""
        with patch('sidekick.observability.logger.logger') as mock_logger:
            log_error(ValueError("bad"), {"stage": "chat_turn"})

            log_data = json.loads(mock_logger.error.call_args[0][0])
            assert log_data["error"] == "bad"
            assert log_data["error_type"] == "ValueError"
            assert log_data["stage"] == "chat_turn"


class TestTimingContext:
    """Test timing context manager."""

    def test_timing_context_success(self):
        """Test timing context with successful operation."""
        with timing("test_operation") as timer:
            import time
            time.sleep(0.01)

        duration = timer.get_duration_ms()
        assert duration is not None
        assert duration >= 10

    def test_timing_context_exception(self):
        """Test timing context with exception."""
        with pytest.raises(ValueError):
            with timing("test_operation") as timer:
                raise ValueError("Test error")

        assert timer.get_duration_ms() is not None


class TestSentryIntegration:
    """Test Sentry integration."""

    def test_init_sentry_disabled(self):
        """Test Sentry initialization when disabled."""
        with patch.dict(os.environ, {"OBS_ENABLED": "false"}):
            assert init_sentry() is False

    def test_init_sentry_no_dsn(self):
        """Test Sentry initialization without DSN."""
        with patch.dict(os.environ, {"OBS_ENABLED": "true", "SENTRY_DSN": ""}):
            assert init_sentry() is False

    def test_init_sentry_with_dsn(self):
        """Test Sentry initialization with DSN."""
        with patch.dict(os.environ, {"OBS_ENABLED": "true", "SENTRY_DSN": "https://test@sentry.io/123"}):
            with patch('sidekick.observability.logger.sentry_sdk') as mock_sentry:
                assert init_sentry() is True
                mock_sentry.init.assert_called_once()
                assert mock_sentry.init.call_args.kwargs["dsn"] == "https://test@sentry.io/123"

    def test_init_sentry_failure(self):
        """Test Sentry initialization failure is reported, not raised."""
        with patch.dict(os.environ, {"OBS_ENABLED": "true", "SENTRY_DSN": "https://test@sentry.io/123"}):
            with patch('sidekick.observability.logger.sentry_sdk') as mock_sentry:
                mock_sentry.init.side_effect = RuntimeError("bad dsn")
                assert init_sentry() is False
