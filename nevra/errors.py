"""
Error taxonomy for the generation pipeline.

Upstream errors carry a structured category so that retry and fallback
decisions never depend on the wording of an upstream message. The only
place that reads raw status codes and detail strings is
classify_upstream_error().
"""

from typing import List, Optional


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================

class UpstreamError(Exception):
    """Base class for failures talking to an AI backend."""

    category = "upstream"
    recoverable = True

    def __init__(self, message: str, provider_id: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.provider_id = provider_id
        self.status = status
        self.attempts: List = []

    def __str__(self) -> str:
        return self.message


class NetworkError(UpstreamError):
    """Connectivity failure or an upstream outage."""
    category = "network"


class UpstreamTimeoutError(UpstreamError):
    """The call exceeded the provider's fixed timeout and was aborted."""
    category = "timeout"


class UpstreamQuotaError(UpstreamError):
    """Credit, rate or prompt-size rejection. Recoverable via retry or fallback."""

    category = "quota"

    CREDIT = "credit"
    PROMPT_TOO_LONG = "prompt_too_long"
    RATE_LIMIT = "rate_limit"

    def __init__(self, message: str, kind: str = CREDIT, provider_id: Optional[str] = None,
                 status: Optional[int] = None):
        super().__init__(message, provider_id=provider_id, status=status)
        self.kind = kind


class UpstreamMalformedResponseError(UpstreamError):
    """Response was not JSON or was missing its content field."""
    category = "malformed"


class EmptyResponseError(UpstreamError):
    """Backend answered with an empty body."""
    category = "empty"


class UpstreamRejectedError(UpstreamError):
    """Hard rejection such as an invalid key or a bad request. Not worth retrying."""
    category = "rejected"
    recoverable = False


class GenerationCancelledError(Exception):
    """The caller cancelled the generation between attempts."""

    def __init__(self, message: str = "Generation was cancelled"):
        super().__init__(message)
        self.attempts: List = []


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================

class ExtractionError(Exception):
    """Base class for normalizer failures. Always absorbed into a TextReply."""
    failure = "empty_artifact"


class EmptyArtifactError(ExtractionError):
    """No valid code could be found in the backend output."""
    failure = "empty_artifact"


class ErrorSignatureDetected(ExtractionError):
    """The backend emitted an error-styled fragment instead of an artifact."""
    failure = "error_signature"


# =============================================================================
# SESSION / STORE ERRORS
# =============================================================================

class ProjectStoreError(Exception):
    """Raised when an operation would break the project store's invariants."""
    pass


class TurnInProgressError(Exception):
    """Raised when a turn is submitted while another is still running."""
    pass


# =============================================================================
# BOUNDARY CLASSIFICATION
# =============================================================================

_PROMPT_TOO_LONG_HINTS = ("prompt tokens", "token limit", "context length", "maximum context", "too long")
_CREDIT_HINTS = ("credit", "afford", "insufficient", "quota")
_TIMEOUT_HINTS = ("timed out", "timeout", "operation was aborted")


def classify_upstream_error(status: Optional[int], detail: str,
                            provider_id: Optional[str] = None) -> UpstreamError:
    """
    Map an upstream HTTP status and detail string to a structured error.

    Args:
        status: HTTP status code, or None when no response was received
        detail: Human-readable detail from the upstream API
        provider_id: Provider that produced the failure

    Returns:
        An UpstreamError subclass instance (not raised)
    """
    text = (detail or "").lower()
    message = detail or f"Upstream error (status {status})"

    if any(hint in text for hint in _PROMPT_TOO_LONG_HINTS) or status == 413:
        return UpstreamQuotaError(message, kind=UpstreamQuotaError.PROMPT_TOO_LONG,
                                  provider_id=provider_id, status=status)
    if status == 402 or any(hint in text for hint in _CREDIT_HINTS):
        return UpstreamQuotaError(message, kind=UpstreamQuotaError.CREDIT,
                                  provider_id=provider_id, status=status)
    if status == 429:
        return UpstreamQuotaError(message, kind=UpstreamQuotaError.RATE_LIMIT,
                                  provider_id=provider_id, status=status)
    if status in (408, 504) or any(hint in text for hint in _TIMEOUT_HINTS):
        return UpstreamTimeoutError(message, provider_id=provider_id, status=status)
    if status is None or status >= 500:
        return NetworkError(message, provider_id=provider_id, status=status)
    return UpstreamRejectedError(message, provider_id=provider_id, status=status)
