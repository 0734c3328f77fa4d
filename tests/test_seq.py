from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from backends import SEQ_PATH, ScriptedBackend, seq_events
from otelstack import seq
from otelstack.errors import InsufficientResultsError, NonRetryableResponseError


def _events(body):
    return seq.normalize(seq.EVENTS.decode(body))


def test_event_normalization():
    ev = _events(seq_events(1))[0]

    assert ev.id == "event-0"
    assert ev.timestamp == datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert ev.level == "Error"
    assert ev.message_tokens == ("test message",)
    assert ev.message == "test message"
    assert ev.properties == {"attempt": 0}
    assert ev.trace_id == "0af7651916cd43dd8448eb211c80319c"
    assert ev.span_id == "b7ad6b7169203331"


def test_property_tokens_render_their_value():
    body = [
        {
            "Timestamp": "2025-01-02T03:04:05Z",
            "MessageTemplateTokens": [
                {"Text": "user "},
                {"PropertyName": "user", "RawText": "{user}", "FormattedValue": "alice"},
                {"Text": " logged in"},
            ],
            "Properties": [{"Name": "user", "Value": "alice"}],
        }
    ]
    ev = _events(body)[0]
    assert ev.message_tokens == ("user ", "alice", " logged in")
    assert ev.message == "user alice logged in"
    assert ev.trace_id is None
    assert ev.span_id is None


def test_missing_token_text_falls_back_to_raw_text():
    body = [{"Timestamp": "2025-01-02T03:04:05Z", "MessageTemplateTokens": [{"PropertyName": "x", "RawText": "{x}"}]}]
    assert _events(body)[0].message_tokens == ("{x}",)


def test_events_endpoint(seq_instance):
    assert seq.events_endpoint(seq_instance, 4) == "http://localhost:42001/api/events?count=4"


def test_get_events_waits_for_count(seq_instance, fast_settings):
    backend = ScriptedBackend(SEQ_PATH, [(200, []), (200, seq_events(1)), (200, seq_events(3))])

    result = seq.get_events(seq_instance, 3, 5, http=TestClient(backend.app), settings=fast_settings, sleep=lambda s: None)

    assert result.attempts == 3
    assert len(result.records) == 3
    assert result.endpoint == "http://localhost:42001/api/events?count=3"


def test_get_events_gives_up(seq_instance, fast_settings):
    backend = ScriptedBackend(SEQ_PATH, [(200, seq_events(1))])
    with pytest.raises(InsufficientResultsError) as ei:
        seq.get_events(seq_instance, 2, 3, http=TestClient(backend.app), settings=fast_settings, sleep=lambda s: None)
    assert ei.value.attempts == 3
    assert ei.value.received == 1


def test_get_events_unauthorized_is_not_retried(seq_instance, fast_settings):
    backend = ScriptedBackend(SEQ_PATH, [(401, {"Error": "login required"})])
    with pytest.raises(NonRetryableResponseError):
        seq.get_events(seq_instance, 1, 3, http=TestClient(backend.app), settings=fast_settings, sleep=lambda s: None)
    assert len(backend.requests) == 1
