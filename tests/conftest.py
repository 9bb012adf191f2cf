"""Shared fixtures: settings, a scripted Gemini upstream, and a recording sleep."""

import json
from typing import Any, Dict, List

import httpx
import pytest

from config.settings import Settings
from relay.gemini_client import GeminiClient


def gemini_text(text: str, finish_reason: str = "STOP") -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "candidates": [
                {
                    "content": {"role": "model", "parts": [{"text": text}]},
                    "finishReason": finish_reason,
                }
            ]
        },
    )


def gemini_error(status: int, message: str = "boom") -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": status, "message": message}})


class ScriptedUpstream:
    """Replays queued responses and records each request body it receives."""

    def __init__(self, responses: List[httpx.Response]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("upstream called more times than scripted")
        return self.responses.pop(0)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def body(self, index: int) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)

    def texts(self, index: int) -> List[str]:
        return [turn["parts"][0]["text"] for turn in self.body(index)["contents"]]


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings() -> Settings:
    return Settings(google_api_key="test-key", max_retries=3)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client(settings):
    def _make(responses: List[httpx.Response]):
        upstream = ScriptedUpstream(responses)
        client = GeminiClient(settings, transport=httpx.MockTransport(upstream))
        return client, upstream

    return _make
