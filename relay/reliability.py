from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List

from relay.core.prompt import DUNGEON_MASTER_PROMPT, NOT_JSON_CORRECTION_PROMPT
from relay.errors import UpstreamRequestError, UpstreamUnavailableError
from relay.extraction import is_json_object
from relay.gemini_client import GeminiClient
from relay.messages import ChatMessage, ChatReply
from relay.outcomes import Blocked, FatalFailure, MalformedShape, TransientFailure


logger = logging.getLogger("rpg_relay.chat")

Sleep = Callable[[float], Awaitable[None]]

CORRECTION_DELAY_SECONDS = 1.0
UNREADABLE_REPLY = "Sorry, I couldn't understand the AI's response."
FORMAT_APOLOGY = (
    "Sorry, I'm having trouble formatting my response right now. "
    "Please try again in a moment."
)


def backoff_seconds(ceiling: int, attempts_left: int) -> float:
    """1s, 2s, 4s, ... as ``attempts_left`` counts down from ``ceiling``."""
    return float(2 ** (ceiling - attempts_left))


def blocked_reply(reason: str) -> str:
    return f"My response was blocked. Reason: {reason}."


@dataclass
class RetryState:
    conversation: List[ChatMessage]
    transient_attempts_left: int
    correction_attempts_left: int
    correction_pending: bool = False
    correction_appended: bool = False


class ChatService:
    """Turns a conversation into one Dungeon Master reply.

    Transport failures (429/5xx) are retried with exponential
    backoff and surface as errors once the budget is spent. Replies that are
    not a JSON object are retried with a correction instruction appended to
    the history and degrade to an apology once that budget is spent.
    """

    def __init__(self, client: GeminiClient, sleep: Sleep = asyncio.sleep):
        self.client = client
        self.ceiling = client.settings.max_retries
        self._sleep = sleep

    async def get_reply(self, messages: List[ChatMessage]) -> ChatReply:
        state = RetryState(
            conversation=list(messages),
            transient_attempts_left=self.ceiling,
            correction_attempts_left=self.ceiling,
        )

        while True:
            if state.correction_pending and not state.correction_appended:
                state.conversation.append(
                    ChatMessage(role="user", content=NOT_JSON_CORRECTION_PROMPT)
                )
                state.correction_appended = True

            request = self.client.build_request(state.conversation, DUNGEON_MASTER_PROMPT)
            outcome = await self.client.generate(request)

            if isinstance(outcome, TransientFailure):
                if state.transient_attempts_left <= 0:
                    logger.error(
                        "Gemini API still failing after %s retries (Status: %s)",
                        self.ceiling,
                        outcome.status_code,
                    )
                    raise UpstreamUnavailableError(
                        outcome.message,
                        upstream_status=outcome.status_code,
                        details=outcome.body,
                    )
                wait = backoff_seconds(self.ceiling, state.transient_attempts_left)
                logger.warning(
                    "Rate limit or server error. Retrying in %.0fms... (%s retries left)",
                    wait * 1000,
                    state.transient_attempts_left,
                )
                await self._sleep(wait)
                state.transient_attempts_left -= 1
                state.correction_pending = False
                continue

            if isinstance(outcome, FatalFailure):
                raise UpstreamRequestError(
                    outcome.message, upstream_status=outcome.status_code, details=outcome.body
                )

            if isinstance(outcome, Blocked):
                return ChatReply(content=blocked_reply(outcome.reason))

            if isinstance(outcome, MalformedShape):
                return ChatReply(content=UNREADABLE_REPLY)

            if is_json_object(outcome.text):
                logger.info("AI response is a valid JSON.")
                return ChatReply(content=outcome.text)

            logger.warning('Failed to parse AI response as JSON. Raw response: "%s"', outcome.text)
            if state.correction_attempts_left <= 0:
                logger.error("Failed to get a valid JSON response from AI after multiple retries.")
                return ChatReply(content=FORMAT_APOLOGY)

            logger.warning(
                "Retrying with a correction instruction... (%s retries left)",
                state.correction_attempts_left,
            )
            await self._sleep(CORRECTION_DELAY_SECONDS)
            state.correction_attempts_left -= 1
            state.correction_pending = True
