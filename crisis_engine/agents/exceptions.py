"""
AI provider error taxonomy

Error codes:
- AI4xxx: the provider refused or returned unusable output
- AI5xxx: the provider could not be reached in time

None of these are surfaced to trainers verbatim; callers log them with the
session/inject/stage context and retry on the next eligible cycle.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class AIErrorCode:
    """AI error codes"""
    PROVIDER_REJECTED = "AI4001"
    MALFORMED_OUTPUT = "AI4002"
    GENERATION_FAILED = "AI4003"

    PROVIDER_UNAVAILABLE = "AI5001"
    PROVIDER_TIMEOUT = "AI5002"


class ProviderError(Exception):
    """Base class for every failure at the AI provider boundary"""

    error_code: str = AIErrorCode.PROVIDER_UNAVAILABLE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProviderUnavailable(ProviderError):
    """Network or authentication failure reaching the AI backend"""
    error_code = AIErrorCode.PROVIDER_UNAVAILABLE


class ProviderTimeout(ProviderError):
    """The provider did not answer within the configured timeout"""
    error_code = AIErrorCode.PROVIDER_TIMEOUT

    def __init__(self, task: str, timeout: float) -> None:
        super().__init__(
            f"Provider call [{task}] timed out after {timeout:.1f}s",
            details={"task": task, "timeout": timeout},
        )
        self.task = task
        self.timeout = timeout


class ProviderRejected(ProviderError):
    """The provider refused the request (content policy, invalid request)"""
    error_code = AIErrorCode.PROVIDER_REJECTED


class MalformedProviderOutput(ProviderError):
    """Output failed JSON parsing, schema validation or bounds checks"""
    error_code = AIErrorCode.MALFORMED_OUTPUT

    def __init__(self, message: str, raw: Optional[str] = None) -> None:
        super().__init__(message, details={"raw": (raw or "")[:500]})
        self.raw = raw


class GenerationFailed(ProviderError):
    """Inject content could not be produced"""
    error_code = AIErrorCode.GENERATION_FAILED

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message, details={"cause": type(cause).__name__} if cause else None)
        self.cause = cause


__all__ = [
    "AIErrorCode",
    "ProviderError",
    "ProviderUnavailable",
    "ProviderTimeout",
    "ProviderRejected",
    "MalformedProviderOutput",
    "GenerationFailed",
]
