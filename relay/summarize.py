from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from relay.core.prompt import NO_PREVIOUS_SUMMARY, SUMMARIZE_HISTORY_PROMPT
from relay.errors import UpstreamRequestError, UpstreamUnavailableError
from relay.gemini_client import GeminiClient
from relay.messages import ChatMessage
from relay.outcomes import Blocked, FatalFailure, MalformedShape, Success, TransientFailure
from relay.reliability import Sleep, backoff_seconds


logger = logging.getLogger("rpg_relay.summarize")


class SummarizeService:
    """Folds recent turns into the running story summary.

    Shares the transient-retry policy of the chat path. Content problems
    never fail the caller: an empty reply keeps the existing summary.
    """

    def __init__(self, client: GeminiClient, sleep: Sleep = asyncio.sleep):
        self.client = client
        self.ceiling = client.settings.max_retries
        self._sleep = sleep

    async def summarize(
        self, messages: List[ChatMessage], existing_summary: Optional[str] = None
    ) -> str:
        conversation = [
            ChatMessage(role="system", content=existing_summary or NO_PREVIOUS_SUMMARY),
            *messages,
        ]
        attempts_left = self.ceiling

        while True:
            logger.info(
                "Sending request to Gemini API for summarization. Retries left: %s",
                attempts_left,
            )
            request = self.client.build_request(conversation, SUMMARIZE_HISTORY_PROMPT)
            outcome = await self.client.generate(request)

            if isinstance(outcome, TransientFailure):
                if attempts_left <= 0:
                    raise UpstreamUnavailableError(
                        outcome.message,
                        upstream_status=outcome.status_code,
                        details=outcome.body,
                    )
                wait = backoff_seconds(self.ceiling, attempts_left)
                logger.warning(
                    "Rate limit/server error on summary. Retrying in %.0fms...", wait * 1000
                )
                await self._sleep(wait)
                attempts_left -= 1
                continue

            if isinstance(outcome, FatalFailure):
                raise UpstreamRequestError(
                    f"Failed to generate summary (Status: {outcome.status_code}): {outcome.message}",
                    upstream_status=outcome.status_code,
                    details=outcome.body,
                )

            # A block reason wins over candidate text for summaries.
            if isinstance(outcome, Blocked):
                block_reason = outcome.reason
            elif isinstance(outcome, Success):
                block_reason = outcome.block_reason
            else:
                block_reason = None
            if block_reason:
                logger.warning("Summarization blocked. Reason: %s", block_reason)
                return f"[Summarization was blocked by the safety filter: {block_reason}]"

            if isinstance(outcome, MalformedShape):
                logger.warning("Could not generate summary, received empty response from AI.")
                return existing_summary or ""

            if outcome.finish_reason == "MAX_TOKENS":
                logger.warning("Summarization stopped due to MAX_TOKENS.")
            return outcome.text
