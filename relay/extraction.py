from __future__ import annotations

import json
from typing import Any, Union

from relay.outcomes import Blocked, FatalFailure, MalformedShape, Success, TransientFailure


def extract_outcome(envelope: Any) -> Union[Success, Blocked, MalformedShape]:
    """Reduce a 2xx ``generateContent`` envelope to a closed outcome.

    Every level is checked before it is dereferenced; the envelope shape is
    not guaranteed by the upstream, so anything unexpected becomes
    ``MalformedShape`` instead of raising.
    """
    if not isinstance(envelope, dict):
        return MalformedShape()

    feedback = envelope.get("promptFeedback")
    block_reason = None
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        block_reason = str(feedback["blockReason"])

    candidates = envelope.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        candidate = candidates[0]
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if isinstance(parts, list) and parts and isinstance(parts[0], dict):
            text = parts[0].get("text")
            if isinstance(text, str) and text:
                finish_reason = candidate.get("finishReason")
                return Success(
                    text=text,
                    finish_reason=finish_reason if isinstance(finish_reason, str) else None,
                    block_reason=block_reason,
                )

    if block_reason:
        return Blocked(reason=block_reason)

    return MalformedShape()


def parse_error_message(status_code: int, body: str) -> str:
    fallback = f"AI service request failed (Status: {status_code})."
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return fallback
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
    return fallback


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def classify_error(status_code: int, body: str) -> Union[TransientFailure, FatalFailure]:
    message = parse_error_message(status_code, body)
    if is_transient_status(status_code):
        return TransientFailure(status_code=status_code, body=body, message=message)
    return FatalFailure(status_code=status_code, body=body, message=message)


def is_json_object(text: str) -> bool:
    """True when ``text`` parses, exactly as received, to a JSON object."""
    try:
        return isinstance(json.loads(text), dict)
    except json.JSONDecodeError:
        return False
