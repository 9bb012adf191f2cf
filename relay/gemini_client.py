from __future__ import annotations

import json
import logging
from typing import List, Optional

import httpx

from config.settings import Settings
from relay.errors import UpstreamConnectionError
from relay.extraction import classify_error, extract_outcome
from relay.messages import (
    ChatMessage,
    GeminiGenerationConfig,
    GeminiPart,
    GeminiRequest,
    GeminiSystemInstruction,
    to_gemini_turns,
)
from relay.outcomes import Blocked, MalformedShape, UpstreamOutcome


logger = logging.getLogger("rpg_relay.gemini")

# httpx logs the full request URL at INFO, and the URL carries the API key.
logging.getLogger("httpx").setLevel(logging.WARNING)


class GeminiClient:
    """Issues single ``generateContent`` calls and classifies what comes back.

    The client never retries on its own; retry policy lives in the services
    that own a request's budget.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._http = httpx.AsyncClient(timeout=settings.request_timeout, transport=transport)

    def build_request(
        self,
        messages: List[ChatMessage],
        system_instruction: str,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> GeminiRequest:
        return GeminiRequest(
            contents=to_gemini_turns(messages),
            systemInstruction=GeminiSystemInstruction(parts=[GeminiPart(text=system_instruction)]),
            generationConfig=GeminiGenerationConfig(
                temperature=self.settings.temperature if temperature is None else temperature,
                maxOutputTokens=(
                    self.settings.max_output_tokens
                    if max_output_tokens is None
                    else max_output_tokens
                ),
            ),
        )

    async def generate(self, request: GeminiRequest) -> UpstreamOutcome:
        endpoint = self.settings.generate_url
        logger.info(
            "Sending request to Gemini API: %s turns=%s", endpoint, len(request.contents)
        )

        try:
            response = await self._http.post(
                endpoint,
                params={"key": self.settings.google_api_key},
                json=request.model_dump(),
            )
        except httpx.TransportError as exc:
            logger.error("Critical error during Gemini API call: %s", type(exc).__name__)
            raise UpstreamConnectionError(
                f"Failed to contact AI service: {type(exc).__name__}"
            ) from exc

        if not response.is_success:
            body = response.text
            logger.error(
                "Error from Gemini API (Status: %s): %s", response.status_code, body[:500]
            )
            return classify_error(response.status_code, body)

        try:
            envelope = response.json()
        except json.JSONDecodeError:
            logger.warning("Gemini API returned a non-JSON body: %s", response.text[:500])
            return MalformedShape()

        logger.info("Received response from Gemini API.")
        outcome = extract_outcome(envelope)
        if isinstance(outcome, Blocked):
            logger.warning("Gemini API response blocked: %s", envelope.get("promptFeedback"))
        elif isinstance(outcome, MalformedShape):
            logger.warning("Unexpected response structure from Gemini API: %s", envelope)
        return outcome

    async def aclose(self) -> None:
        await self._http.aclose()
