import asyncio
import logging

import httpx
import pytest

from conftest import gemini_error, gemini_text
from relay.core.prompt import NOT_JSON_CORRECTION_PROMPT
from relay.errors import UpstreamRequestError, UpstreamUnavailableError
from relay.messages import ChatMessage
from relay.reliability import (
    FORMAT_APOLOGY,
    UNREADABLE_REPLY,
    ChatService,
    backoff_seconds,
)

VALID = '{"narration": "You step into the torchlit hall."}'
HISTORY = [
    ChatMessage(role="user", content="I open the door"),
    ChatMessage(role="assistant", content='{"narration": "It is locked."}'),
    ChatMessage(role="user", content="I pick the lock"),
]


def _reply(make_client, sleep, responses, history=HISTORY):
    client, upstream = make_client(responses)
    service = ChatService(client, sleep=sleep)
    return asyncio.run(service.get_reply(list(history))), upstream


def test_backoff_doubles_from_one_second():
    assert [backoff_seconds(3, left) for left in (3, 2, 1)] == [1.0, 2.0, 4.0]


def test_transient_failures_retry_with_growing_delays(make_client, sleep):
    reply, upstream = _reply(
        make_client,
        sleep,
        [gemini_error(503), gemini_error(503), gemini_error(503), gemini_text(VALID)],
    )

    assert reply.role == "assistant"
    assert reply.content == VALID
    assert upstream.calls == 4
    assert sleep.delays == [1.0, 2.0, 4.0]
    # transport retries resend the same history
    assert all(upstream.texts(i) == [m.content for m in HISTORY] for i in range(4))


def test_transient_budget_exhaustion_raises_gateway_error(make_client, sleep):
    client, upstream = make_client([gemini_error(503, f"overloaded #{i}") for i in range(4)])
    service = ChatService(client, sleep=sleep)

    with pytest.raises(UpstreamUnavailableError) as excinfo:
        asyncio.run(service.get_reply(HISTORY))

    assert upstream.calls == 4
    assert excinfo.value.status_code == 502
    assert excinfo.value.upstream_status == 503
    assert excinfo.value.message == "overloaded #3"
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_fatal_failure_is_not_retried(make_client, sleep):
    client, upstream = make_client([gemini_error(400, "Invalid argument")])
    service = ChatService(client, sleep=sleep)

    with pytest.raises(UpstreamRequestError) as excinfo:
        asyncio.run(service.get_reply(HISTORY))

    assert upstream.calls == 1
    assert sleep.delays == []
    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Invalid argument"


def test_correction_instruction_is_appended_exactly_once(make_client, sleep):
    reply, upstream = _reply(
        make_client,
        sleep,
        [gemini_text("The hall is dark."), gemini_text("Still prose."), gemini_text(VALID)],
    )

    assert reply.content == VALID
    assert upstream.calls == 3
    assert sleep.delays == [1.0, 1.0]
    original = [m.content for m in HISTORY]
    assert upstream.texts(0) == original
    for attempt in (1, 2):
        assert upstream.texts(attempt) == original + [NOT_JSON_CORRECTION_PROMPT]
        assert upstream.body(attempt)["contents"][-1]["role"] == "user"


def test_caller_history_is_not_mutated(make_client, sleep):
    history = list(HISTORY)
    client, _ = make_client([gemini_text("prose"), gemini_text(VALID)])
    asyncio.run(ChatService(client, sleep=sleep).get_reply(history))
    assert history == HISTORY


def test_correction_budget_exhaustion_degrades_to_apology(make_client, sleep):
    reply, upstream = _reply(make_client, sleep, [gemini_text("prose") for _ in range(4)])

    assert reply.content == FORMAT_APOLOGY
    assert upstream.calls == 4
    assert sleep.delays == [1.0, 1.0, 1.0]
    assert upstream.texts(3).count(NOT_JSON_CORRECTION_PROMPT) == 1


def test_budgets_are_independent(make_client, sleep):
    reply, upstream = _reply(
        make_client,
        sleep,
        [
            gemini_text("prose"),
            gemini_error(500),
            gemini_text("more prose"),
            gemini_error(429),
            gemini_text(VALID),
        ],
    )

    assert reply.content == VALID
    assert upstream.calls == 5
    assert sleep.delays == [1.0, 1.0, 1.0, 2.0]
    # the correction stays in the history across the transport retry
    for attempt in range(1, 5):
        assert upstream.texts(attempt).count(NOT_JSON_CORRECTION_PROMPT) == 1


def test_blocked_reply_returns_immediately(make_client, sleep):
    reply, upstream = _reply(
        make_client,
        sleep,
        [httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})],
    )

    assert reply.content == "My response was blocked. Reason: SAFETY."
    assert upstream.calls == 1
    assert sleep.delays == []


def test_malformed_envelope_is_not_retried(make_client, sleep):
    reply, upstream = _reply(make_client, sleep, [httpx.Response(200, json={})])

    assert reply.content == UNREADABLE_REPLY
    assert upstream.calls == 1


def test_fenced_json_triggers_a_correction(make_client, sleep):
    fenced = f"```json\n{VALID}\n```"
    reply, upstream = _reply(make_client, sleep, [gemini_text(fenced), gemini_text(VALID)])

    assert reply.content == VALID
    assert upstream.calls == 2
    assert sleep.delays == [1.0]
    assert upstream.texts(1)[-1] == NOT_JSON_CORRECTION_PROMPT


def test_valid_reply_is_returned_verbatim(make_client, sleep):
    padded = f"  {VALID}\n"
    reply, upstream = _reply(make_client, sleep, [gemini_text(padded)])

    assert reply.content == padded
    assert upstream.calls == 1


def test_api_key_never_reaches_the_logs(make_client, sleep, caplog):
    with caplog.at_level(logging.DEBUG):
        _reply(make_client, sleep, [gemini_error(503), gemini_text("prose"), gemini_text(VALID)])

    assert caplog.records
    assert all("test-key" not in record.getMessage() for record in caplog.records)
    assert "test-key" not in caplog.text
