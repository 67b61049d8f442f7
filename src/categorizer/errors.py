"""
Custom exceptions for the stars categorizer.

The classifier errors carry an explicit ``retryable`` flag so the retry
wrapper can tell transient failures (rate limits, overloaded endpoints,
malformed model output) from permanent ones (auth, bad requests).
"""

from __future__ import annotations

from typing import Any

import openai

RETRYABLE_STATUS_CODES = {429, 503}
RETRYABLE_MARKERS = ("503", "overloaded", "UNAVAILABLE")


class CategorizerError(Exception):
    """Base exception for all categorizer errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(CategorizerError):
    """Raised when settings are missing or invalid."""


class CacheError(CategorizerError):
    """Raised when a cache entry cannot be written."""


class ClassifierAPIError(CategorizerError):
    """A failed call to the classification endpoint."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.cause = cause


class MalformedResponseError(ClassifierAPIError):
    """The model answered, but not with a usable JSON categorization."""

    def __init__(self, message: str):
        super().__init__(message, retryable=True)


class GitHubAPIError(CategorizerError):
    """A failed GitHub REST or GraphQL call."""

    def __init__(self, message: str, status_code: int | None = None):
        details = {"status_code": status_code} if status_code is not None else None
        super().__init__(message, details)
        self.status_code = status_code


def extract_status_code(error: BaseException) -> int | None:
    """Best-effort HTTP status code from an SDK exception."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        code = inner.get("code") if isinstance(inner, dict) else None
        if isinstance(code, int):
            return code
    return None


def _extract_status_string(error: BaseException) -> str | None:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        status = inner.get("status") if isinstance(inner, dict) else None
        if isinstance(status, str):
            return status
    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a classifier failure is worth another attempt.

    Errors that already carry a verdict (``ClassifierAPIError``) keep it.
    Otherwise rate limits, unavailable/overloaded services and transport
    failures (connection errors, timeouts) are retryable; anything else is not.
    """
    if isinstance(error, ClassifierAPIError):
        return error.retryable
    if isinstance(error, (openai.APIConnectionError, TimeoutError, ConnectionError)):
        return True

    if extract_status_code(error) in RETRYABLE_STATUS_CODES:
        return True
    if _extract_status_string(error) == "UNAVAILABLE":
        return True
    message = str(error)
    return any(marker in message for marker in RETRYABLE_MARKERS)
