"""Error taxonomy shared by the provider boundary and its callers."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    PROVIDER_UNAVAILABLE = "provider-unavailable"
    PROVIDER_FORBIDDEN = "provider-forbidden"
    EMPTY_RESULT = "empty-result"
    TIMEOUT = "timeout"
    TRANSCODE_FAILURE = "transcode-failure"
    GENERIC = "generic"


USER_MESSAGES = {
    ErrorKind.PROVIDER_UNAVAILABLE: "Veo API not available. Make sure your API key has Veo access enabled.",
    ErrorKind.PROVIDER_FORBIDDEN: "Your API key doesn't have permission to use Veo. Enable it in Google AI Studio.",
    ErrorKind.TIMEOUT: "Video generation timed out. Please try again.",
}


class ProviderError(RuntimeError):
    """Raised at the provider boundary with a kind decided once at the call site."""

    def __init__(self, kind: ErrorKind, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class TranscodeError(RuntimeError):
    """Raised when an image cannot be converted into a provider-supported encoding."""

    kind = ErrorKind.TRANSCODE_FAILURE


def classify_status(status_code: Optional[int]) -> Optional[ErrorKind]:
    if status_code == 404:
        return ErrorKind.PROVIDER_UNAVAILABLE
    if status_code == 403:
        return ErrorKind.PROVIDER_FORBIDDEN
    return None


def classify_message(message: str) -> ErrorKind:
    """Fallback classification for failures that carry no HTTP status."""
    lowered = (message or "").lower()
    if "not found" in lowered or "404" in lowered:
        return ErrorKind.PROVIDER_UNAVAILABLE
    if "permission" in lowered or "403" in lowered:
        return ErrorKind.PROVIDER_FORBIDDEN
    return ErrorKind.GENERIC


def classify(status_code: Optional[int], message: str) -> ErrorKind:
    return classify_status(status_code) or classify_message(message)


__all__ = [
    "ErrorKind",
    "ProviderError",
    "TranscodeError",
    "USER_MESSAGES",
    "classify",
    "classify_message",
    "classify_status",
]
