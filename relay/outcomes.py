from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Success:
    text: str
    finish_reason: Optional[str] = None
    # Set when the envelope also carries promptFeedback.blockReason.
    block_reason: Optional[str] = None


@dataclass(frozen=True)
class Blocked:
    reason: str


@dataclass(frozen=True)
class MalformedShape:
    """2xx envelope with neither candidate text nor a block reason."""


@dataclass(frozen=True)
class TransientFailure:
    status_code: int
    body: str
    message: str


@dataclass(frozen=True)
class FatalFailure:
    status_code: int
    body: str
    message: str


UpstreamOutcome = Union[Success, Blocked, MalformedShape, TransientFailure, FatalFailure]
