"""
Error taxonomy for LLM calls.

Every adapter translates failures into one of these classes so the provider
manager can decide whether a call is worth retrying:

  - ``ConfigurationError`` -- nothing to call; never retried.
  - ``TransportError`` -- connection refused, timeouts, broken streams.
  - ``APIError`` subclasses -- non-2xx responses, classified by status code.
    Only ``RateLimitError`` and ``ServiceUnavailableError`` are retried.
  - ``DecodeError`` -- a response that could not be understood at all.
"""

from __future__ import annotations

import httpx


class LLMError(Exception):
    """Base class.  ``retryable`` is a class-level policy flag."""

    retryable = False

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} ({self.hint})"
        return self.message


class ConfigurationError(LLMError):
    pass


class TransportError(LLMError):
    retryable = True


class DecodeError(LLMError):
    pass


class APIError(LLMError):
    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthenticationError(APIError):
    pass


class PermissionDeniedError(APIError):
    pass


class NotFoundError(APIError):
    pass


class RateLimitError(APIError):
    retryable = True


class ServiceUnavailableError(APIError):
    retryable = True


class RetriesExhaustedError(LLMError):
    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"failed after {attempts} retries: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def truncate_body(body: str, limit: int = 200) -> str:
    if len(body) > limit:
        return body[:limit] + "..."
    return body


def classify_api_error(status_code: int, body: str = "") -> APIError:
    """Map a non-2xx HTTP status to the matching ``APIError`` subclass."""
    detail = truncate_body(body)
    if status_code == 401:
        return AuthenticationError(
            "authentication failed: API key is invalid or expired",
            status_code, body,
        )
    if status_code == 403:
        return PermissionDeniedError(
            f"permission denied for this model or API: {detail}",
            status_code, body,
        )
    if status_code == 404:
        return NotFoundError(
            f"model not found, check the model name: {detail}",
            status_code, body,
        )
    if status_code == 429:
        return RateLimitError(
            f"rate limited, retry later: {detail}", status_code, body
        )
    if 500 <= status_code < 600:
        return ServiceUnavailableError(
            f"service unavailable (HTTP {status_code}), retry later",
            status_code, body,
        )
    return APIError(f"API error (HTTP {status_code}): {detail}", status_code, body)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, LLMError):
        return exc.retryable
    return isinstance(exc, httpx.TransportError)
