import random
import re
from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from sidekick.calendar.types import StoredEvent
from sidekick.chat.composer import (
    ResponseComposer,
    SYSTEM_PROMPT,
    HELP_REPLY,
    FALLBACK_REPLY,
    WEATHER_REPLY,
    format_event_date,
    format_time_range,
)
from sidekick.chat.types import IntentKind
from sidekick.llm.service import BackendResult


ET = ZoneInfo("America/New_York")
NOW = datetime(2025, 9, 8, 15, 42, tzinfo=ET)

ENUMERATED_LINE = re.compile(r"^\d+\. ", re.MULTILINE)


def _composer(llm_client=None, seed=7):
    return ResponseComposer(llm_client=llm_client, rng=random.Random(seed), clock=lambda: NOW, tz=ET)


def _event(title, day, hour, virtual=False):
    return StoredEvent(
        title=title,
        start_time=datetime(2025, 9, day, hour, 0, tzinfo=ET),
        end_time=datetime(2025, 9, day, hour + 1, 0, tzinfo=ET),
        is_virtual=virtual,
    )


class TestCreateEventReply:
    """Test confirmation-seeking replies for create_event."""

    def test_includes_hints(self):
        """Test the reply names the date, time and title."""
        params = {"dateHint": "for tomorrow", "timeHint": "at 2pm", "title": "design review"}
        for seed in range(10):
            text = _composer(seed=seed).compose_local(IntentKind.CREATE_EVENT, params)
            assert "for tomorrow" in text
            assert "at 2pm" in text
            assert "design review" in text

    def test_defaults(self):
        """Test defaults when no hints were extracted."""
        text = _composer().compose_local(IntentKind.CREATE_EVENT, {})
        assert "tomorrow" in text
        assert "in the morning" in text
        assert "your event" in text

    def test_seeded_phrasing_is_deterministic(self):
        """Test a pinned seed gives identical phrasing."""
        params = {"dateHint": "on friday"}
        first = _composer(seed=3).compose_local(IntentKind.CREATE_EVENT, params)
        second = _composer(seed=3).compose_local(IntentKind.CREATE_EVENT, params)
        assert first == second


class TestListEventsReply:
    """Test agenda replies."""

    def test_empty_today(self):
        """Test an empty schedule reports a clear day without enumerated lines."""
        text = _composer().compose_local(IntentKind.LIST_EVENTS, {"period": "today"}, [])
        assert "today" in text
        assert "clear" in text.lower()
        assert not ENUMERATED_LINE.search(text)

    def test_empty_defaults_to_this_week(self):
        """Test a missing period reads as 'this week'."""
        text = _composer().compose_local(IntentKind.LIST_EVENTS, {}, [])
        assert "this week" in text

    def test_lines_follow_input_order(self):
        """Test one line per event, in the order given."""
        events = [_event("Standup", 9, 9), _event("Roadmap", 8, 14)]
        text = _composer().compose_local(IntentKind.LIST_EVENTS, {"period": "week"}, events)

        lines = ENUMERATED_LINE.findall(text)
        assert len(lines) == 2
        enumerated = [line for line in text.splitlines() if ENUMERATED_LINE.match(line)]
        assert "Standup" in enumerated[0]
        assert "Roadmap" in enumerated[1]

    def test_line_format(self):
        """Test the time range and date rendering."""
        text = _composer().compose_local(IntentKind.LIST_EVENTS, {"period": "today"}, [_event("Roadmap", 8, 14)])
        assert '1. "Roadmap" at 02:00 PM - 03:00 PM on Monday, Sep 8' in text
        assert text.startswith("Here's what you have scheduled for today:")

    def test_formatters_convert_to_local_zone(self):
        """Test UTC events are rendered in the configured zone."""
        event = StoredEvent(
            title="Call",
            start_time=datetime(2025, 9, 8, 18, 0, tzinfo=ZoneInfo("UTC")),
            end_time=datetime(2025, 9, 8, 18, 30, tzinfo=ZoneInfo("UTC")),
        )
        assert format_time_range(event, ET) == "02:00 PM - 02:30 PM"
        assert format_event_date(event, ET) == "Monday, Sep 8"


class TestQueryReply:
    """Test keyword-branched replies for general queries."""

    def test_greeting_mentions_date(self):
        """Test greetings include today's date and time."""
        text = _composer().compose_local(IntentKind.QUERY, {"query": "Hi!"})
        assert text.startswith("Hello!")
        assert "Monday, September 8, 2025" in text
        assert "03:42 PM" in text

    def test_greeting_needs_whole_word(self):
        """Test 'hi' inside another word is not a greeting."""
        text = _composer().compose_local(IntentKind.QUERY, {"query": "which way to the exit"})
        assert not text.startswith("Hello!")

    def test_time(self):
        text = _composer().compose_local(IntentKind.QUERY, {"query": "what time is it"})
        assert text == "The current time is 03:42 PM on Monday, September 8, 2025."

    def test_weather(self):
        assert _composer().compose_local(IntentKind.QUERY, {"query": "weather?"}) == WEATHER_REPLY

    def test_help(self):
        assert _composer().compose_local(IntentKind.QUERY, {"query": "help me"}) == HELP_REPLY

    def test_thanks(self):
        text = _composer().compose_local(IntentKind.QUERY, {"query": "thank you"})
        assert "welcome" in text.lower()

    def test_identity(self):
        text = _composer().compose_local(IntentKind.QUERY, {"query": "who are you?"})
        assert "scheduling assistant" in text

    def test_fallback(self):
        assert _composer().compose_local(IntentKind.QUERY, {"query": "blorp"}) == FALLBACK_REPLY


class TestRemoteCascade:
    """Test the remote backend and its fallback to local templates."""

    def test_no_client_uses_local_templates(self):
        """Test that without a client no error is reported."""
        composition = _composer().compose(IntentKind.QUERY, {"query": "help"})
        assert composition.text == HELP_REPLY
        assert composition.error is None

    def test_ok_result_is_used(self):
        """Test a successful backend reply replaces the template."""
        client = MagicMock()
        client.generate_reply.return_value = BackendResult.ok("Remote says hi")

        composition = _composer(client).compose(IntentKind.QUERY, {"query": "hello"})

        assert composition.text == "Remote says hi"
        assert composition.error is None
        system_prompt, user_prompt = client.generate_reply.call_args[0]
        assert system_prompt == SYSTEM_PROMPT
        assert 'The user said: "hello"' in user_prompt

    @pytest.mark.parametrize("intent,params", [
        (IntentKind.CREATE_EVENT, {"dateHint": "for tomorrow"}),
        (IntentKind.LIST_EVENTS, {"period": "today"}),
        (IntentKind.QUERY, {"query": "help"}),
    ])
    def test_quota_exceeded_falls_back(self, intent, params):
        """Test quota failures yield a local reply and a quota_exceeded error."""
        client = MagicMock()
        client.generate_reply.return_value = BackendResult.quota_exceeded("429")

        composer = _composer(client)
        composition = composer.compose(intent, params, [])

        assert composition.text
        assert composition.text == _composer().compose_local(intent, params, [])
        assert composition.error.type == "quota_exceeded"

    def test_transient_failure_falls_back(self):
        """Test transport failures yield a local reply and an api_error."""
        client = MagicMock()
        client.generate_reply.return_value = BackendResult.transient_failure("timeout")

        composition = _composer(client).compose(IntentKind.QUERY, {"query": "weather"})

        assert composition.text == WEATHER_REPLY
        assert composition.error.type == "api_error"

    def test_raising_client_is_treated_as_transient(self):
        """Test a client that raises never propagates to the caller."""
        client = MagicMock()
        client.generate_reply.side_effect = RuntimeError("boom")

        composition = _composer(client).compose(IntentKind.QUERY, {"query": "help"})

        assert composition.text == HELP_REPLY
        assert composition.error.type == "api_error"

    def test_list_prompt_carries_events(self):
        """Test the list prompt embeds each event line."""
        prompt = _composer().build_user_prompt(
            IntentKind.LIST_EVENTS, {"period": "week"}, [_event("Standup", 9, 9)]
        )
        assert '"Standup" at 09:00 AM - 10:00 AM on Tuesday, Sep 9' in prompt
        assert "this week" in prompt

    def test_create_prompt_carries_hints(self):
        prompt = _composer().build_user_prompt(IntentKind.CREATE_EVENT, {"timeHint": "at 3pm"})
        assert "at 3pm" in prompt
        assert "assume tomorrow" in prompt
