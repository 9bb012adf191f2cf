from __future__ import annotations

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for upstream failures that must reach the caller as an HTTP error."""

    status_code: int = 500

    def __init__(self, message: str, upstream_status: Optional[int] = None, details: str = ""):
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status
        self.details = details

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message, "status": self.upstream_status, "details": self.details}


class UpstreamUnavailableError(RelayError):
    """Transient upstream failures (429/5xx, network) outlived the retry budget."""

    status_code = 502

    def to_detail(self) -> Dict[str, Any]:
        return {
            "message": "The AI service is currently unavailable.",
            "upstreamStatus": self.upstream_status,
            "upstreamError": self.message,
        }


class UpstreamRequestError(RelayError):
    """The upstream rejected the request with a non-retryable status."""

    def __init__(self, message: str, upstream_status: int, details: str = ""):
        super().__init__(message, upstream_status=upstream_status, details=details)
        self.status_code = upstream_status


class UpstreamConnectionError(RelayError):
    """No HTTP response came back at all (refused connection, timeout)."""

    status_code = 500

    def to_detail(self) -> Dict[str, Any]:
        return {"error": "An internal error occurred while contacting the AI service."}
