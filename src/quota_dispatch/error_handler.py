# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import re
import json
import time
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

lib_logger = logging.getLogger("quota_dispatch")


# =============================================================================
# ERROR VOCABULARY
# =============================================================================

AUTH_STATUS_CODES = frozenset({401, 403})
QUOTA_STATUS_CODES = frozenset({429})
TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504})

# Message fragments (lowercase) that identify each class when the upstream
# does not give a usable status code
AUTH_ERROR_PATTERNS = (
    "permission denied",
    "permission_denied",
    "api key not valid",
    "invalid api key",
    "unauthenticated",
    "unauthorized",
)

QUOTA_ERROR_PATTERNS = (
    "quota",
    "rate limit",
    "rate_limit",
    "resource_exhausted",
    "resource has been exhausted",
    "too many requests",
)

TRANSIENT_ERROR_PATTERNS = (
    "service unavailable",
    "temporarily unavailable",
    "overloaded",
)


class ErrorType(str, Enum):
    """Classification applied to an upstream failure."""

    AUTH_FAILURE = "auth_failure"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT_FAILURE = "transient_failure"
    UNCLASSIFIED = "unclassified"


# =============================================================================
# DURATION PARSING
# =============================================================================


def _parse_duration_string(duration_str: str) -> Optional[int]:
    """
    Parse duration strings in various formats to total seconds.

    Handles:
    - Milliseconds: '290.979975ms' -> 1 second (rounds up for sub-second values)
    - Compound durations: '156h14m36.752463453s', '2h30m', '45m30s'
    - Simple durations: '42.5s', '3600s', '60m', '2h'
    - Plain seconds (no unit): '562476'

    Args:
        duration_str: Duration string to parse

    Returns:
        Total seconds as integer, or None if parsing fails.
        For sub-second values, returns at least 1 to avoid retry floods.
    """
    if not duration_str:
        return None

    total_seconds = 0.0
    remaining = duration_str.strip().lower()

    # Plain number first (no units)
    try:
        value = float(remaining)
        return max(1, int(value)) if value > 0 else 0
    except ValueError:
        pass

    # Must be checked before 'm' for minutes
    ms_match = re.match(r"^([\d.]+)ms$", remaining)
    if ms_match:
        seconds = float(ms_match.group(1)) / 1000.0
        return max(1, int(seconds)) if seconds > 0 else 0

    hour_match = re.match(r"(\d+)h", remaining)
    if hour_match:
        total_seconds += int(hour_match.group(1)) * 3600
        remaining = remaining[hour_match.end() :]

    min_match = re.match(r"(\d+)m(?!s)", remaining)
    if min_match:
        total_seconds += int(min_match.group(1)) * 60
        remaining = remaining[min_match.end() :]

    sec_match = re.match(r"([\d.]+)s", remaining)
    if sec_match:
        try:
            total_seconds += float(sec_match.group(1))
        except ValueError:
            return None

    if total_seconds > 0:
        return max(1, int(total_seconds))
    return None


def _retry_from_details(details: List[Dict[str, Any]]) -> Optional[int]:
    """
    Extract a retry delay from a Google RPC style details list.

    Checks every entry for:
    - RetryInfo with retryDelay: "42s" or {"seconds": "42"}
    - ErrorInfo metadata with quotaResetDelay: "1h2m3s"
    """
    for detail in details:
        if not isinstance(detail, dict):
            continue
        detail_type = detail.get("@type", "")

        if "google.rpc.RetryInfo" in detail_type:
            delay = detail.get("retryDelay")
            if isinstance(delay, dict):
                seconds = delay.get("seconds")
                if seconds:
                    return int(float(seconds))
            elif isinstance(delay, str):
                result = _parse_duration_string(delay)
                if result is not None:
                    return result

        if "google.rpc.ErrorInfo" in detail_type:
            metadata = detail.get("metadata") or {}
            reset_delay = metadata.get("quotaResetDelay") or metadata.get(
                "quotaresetdelay"
            )
            if reset_delay:
                result = _parse_duration_string(str(reset_delay))
                if result is not None:
                    return result

    return None


def _extract_retry_from_json_body(json_text: str) -> Optional[int]:
    """
    Extract retry delay from a JSON error response body.

    Args:
        json_text: JSON string (original case, not lowercased)

    Returns:
        Retry delay in seconds, or None if not found
    """
    try:
        json_match = re.search(r"(\{.*\})", json_text, re.DOTALL)
        if not json_match:
            return None

        error_json = json.loads(json_match.group(1))
        error_obj = error_json.get("error", error_json)
        if not isinstance(error_obj, dict):
            return None
        details = error_obj.get("details") or []
        if isinstance(details, list):
            return _retry_from_details(details)
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
        pass

    return None


def extract_retry_after_from_body(error_body: Optional[str]) -> Optional[int]:
    """
    Extract the retry-after time from free text.

    Handles:
    - "Please retry in 42.5s."
    - "retry after 60s", "retry-after: 60"
    - "try again in 30 seconds"
    - "Your quota will reset after 1h2m3s."

    Args:
        error_body: The raw error text

    Returns:
        The retry time in seconds, or None if not found
    """
    if not error_body:
        return None

    patterns = [
        r"retry in\s*([\d.]+\s*(?:ms|s)?)",
        r"quota will reset after\s*([\dhms.]+)",
        r"reset after\s*([\dhms.]+)",
        r"retry[-_\s]after:?\s*([\dhms.]+)",
        r"try again in\s*(\d+)\s*seconds?",
        r"wait for\s*(\d+)\s*seconds?",
    ]

    for pattern in patterns:
        match = re.search(pattern, error_body, re.IGNORECASE)
        if match:
            duration_str = match.group(1).replace(" ", "").rstrip(".")
            result = _parse_duration_string(duration_str)
            if result is not None:
                return result

    return None


# =============================================================================
# EXCEPTIONS
# =============================================================================


class UpstreamFailure(Exception):
    """
    Failure reported by an operation after calling the upstream API.

    This is the canonical way for a hand-written operation to tell the
    dispatcher what went wrong. Operations that use httpx can simply let
    httpx.HTTPStatusError propagate instead.

    Attributes:
        status_code: HTTP status or equivalent numeric category
        message: Human-readable message from the upstream
        retry_after: Explicit retry interval in seconds, if the upstream gave one
        details: Structured error details (Google RPC shape), if any
    """

    def __init__(
        self,
        status_code: Optional[int],
        message: str = "",
        retry_after: Optional[float] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.status_code = status_code
        self.message = message or f"Upstream call failed with status {status_code}"
        self.retry_after = retry_after
        self.details = details or []
        super().__init__(self.message)


class DispatchError(Exception):
    """Base class for every error raised by the dispatch core itself."""

    pass


class NoCredentialsError(DispatchError):
    """Raised when the pool has no credentials configured."""

    def __init__(self, message: str = "No credentials configured"):
        self.message = message
        super().__init__(message)


class ExhaustedError(DispatchError):
    """
    Raised when no credential is usable right now.

    Attributes:
        eta: Epoch seconds when the earliest quota-limited credential resumes,
             or None if no credential is quota-limited
        retry_after: Seconds from now until eta (None when eta is None)
        last_error: ClassifiedError that led here, if any
    """

    def __init__(
        self,
        eta: Optional[float] = None,
        retry_after: Optional[float] = None,
        last_error: Optional["ClassifiedError"] = None,
        message: str = "",
    ):
        self.eta = eta
        self.retry_after = retry_after
        self.last_error = last_error
        if not message:
            if retry_after is not None:
                message = (
                    f"[exhausted] All credentials exhausted, "
                    f"retry after {retry_after:.0f}s"
                )
            else:
                message = "[exhausted] No usable credential available"
        self.message = message
        super().__init__(message)


class CapacityError(DispatchError):
    """
    Raised when a credential's dispatch queue is full.

    Attributes:
        credential: Masked credential whose queue is full
        max_size: Configured queue bound
    """

    def __init__(self, credential: str, max_size: int):
        self.credential = credential
        self.max_size = max_size
        self.message = (
            f"[capacity] Queue for {credential} is full ({max_size} waiting)"
        )
        super().__init__(self.message)


class QueueClearedError(DispatchError):
    """Raised to a waiting operation removed by an explicit queue clear."""

    def __init__(self, credential: str = ""):
        self.credential = credential
        self.message = (
            f"[cancelled] Queue for {credential} was cleared"
            if credential
            else "[cancelled] Queue was cleared"
        )
        super().__init__(self.message)


class UpstreamCallError(DispatchError):
    """
    Raised when retries are exhausted for a classified upstream failure.

    Always raised from the original exception.

    Attributes:
        classified: The ClassifiedError of the last failure
        credential: Masked credential that was tried last
        status_code: Status of the last failure
        retry_after: Seconds until a retry can succeed: the interval reported
                     by the last failure, or the time left until the
                     earliest known quota reset
        eta: Epoch seconds of the earliest known quota reset, if any
    """

    def __init__(
        self,
        classified: "ClassifiedError",
        credential: str,
        retry_after: Optional[float] = None,
        eta: Optional[float] = None,
    ):
        self.classified = classified
        self.credential = credential
        self.status_code = classified.status_code
        self.retry_after = (
            retry_after if retry_after is not None else classified.retry_after
        )
        self.eta = eta
        parts = [
            f"[{classified.error_type.value}]",
            f"last credential {credential}",
        ]
        if classified.status_code is not None:
            parts.append(f"status {classified.status_code}")
        if self.retry_after is not None:
            parts.append(f"retry after {self.retry_after:.0f}s")
        self.message = ", ".join(parts) + f": {classified.message}"
        super().__init__(self.message)


class AuthFailureError(UpstreamCallError):
    """Last failure was an authorization/permission failure."""

    pass


class QuotaExceededError(UpstreamCallError):
    """Last failure was a quota/rate-limit failure."""

    pass


class TransientFailureError(UpstreamCallError):
    """Last failure was a temporary upstream or network failure."""

    pass


# =============================================================================
# CLASSIFICATION
# =============================================================================


class ClassifiedError:
    """A structured representation of a classified error."""

    def __init__(
        self,
        error_type: ErrorType,
        original_exception: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        message: str = "",
    ):
        self.error_type = error_type
        self.original_exception = original_exception
        self.status_code = status_code
        self.retry_after = retry_after
        self.message = message

    def to_call_error(
        self,
        credential: str,
        retry_after: Optional[float] = None,
        eta: Optional[float] = None,
    ) -> UpstreamCallError:
        """Build the UpstreamCallError subclass matching this classification."""
        error_class = {
            ErrorType.AUTH_FAILURE: AuthFailureError,
            ErrorType.QUOTA_EXCEEDED: QuotaExceededError,
            ErrorType.TRANSIENT_FAILURE: TransientFailureError,
        }.get(self.error_type, UpstreamCallError)
        return error_class(self, credential, retry_after=retry_after, eta=eta)

    def __str__(self):
        parts = [
            f"type={self.error_type.value}",
            f"status={self.status_code}",
            f"retry_after={self.retry_after}",
            f"original_exc={self.original_exception!r}",
        ]
        return f"ClassifiedError({', '.join(parts)})"


def _status_of(error: BaseException) -> Optional[int]:
    """Find a numeric status on an arbitrary exception object."""
    if isinstance(error, UpstreamFailure):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _message_of(error: BaseException) -> str:
    """Best human-readable text for an exception, including an httpx body."""
    if isinstance(error, httpx.HTTPStatusError):
        try:
            body = error.response.text
        except httpx.ResponseNotRead:
            body = ""
        return f"{error} {body}".strip() if body else str(error)
    return str(error)


def get_retry_after(error: BaseException, now: Optional[float] = None) -> Optional[float]:
    """
    Extract the retry-after duration in seconds from an upstream failure.

    Structured sources are checked before free text:
    1. UpstreamFailure.retry_after, then its details list
    2. httpx response body (RetryInfo / quotaResetDelay), Retry-After header,
       X-RateLimit-Reset header (epoch seconds)
    3. JSON embedded in the error text
    4. Free-text patterns ("retry in 42s", "quota will reset after 1h2m3s")

    Args:
        error: The exception raised by the operation
        now: Current epoch time for X-RateLimit-Reset (defaults to time.time())

    Returns:
        Seconds to wait, or None if the error carries no retry hint
    """
    if isinstance(error, UpstreamFailure):
        if error.retry_after is not None:
            return float(error.retry_after)
        result = _retry_from_details(error.details)
        if result is not None:
            return float(result)

    if isinstance(error, httpx.HTTPStatusError):
        try:
            response_text = error.response.text
        except httpx.ResponseNotRead:
            response_text = ""
        if response_text:
            result = _extract_retry_from_json_body(response_text)
            if result is not None:
                return float(result)

        headers = error.response.headers
        retry_header = headers.get("retry-after")
        if retry_header:
            try:
                return float(int(retry_header))
            except ValueError:
                pass  # HTTP date format is not supported

        reset_header = headers.get("x-ratelimit-reset")
        if reset_header:
            try:
                current = now if now is not None else time.time()
                wait_seconds = int(reset_header) - int(current)
                if wait_seconds > 0:
                    return float(wait_seconds)
            except (ValueError, TypeError):
                pass

        if response_text:
            result = extract_retry_after_from_body(response_text)
            if result is not None:
                return float(result)

    error_str = str(error)
    result = _extract_retry_from_json_body(error_str)
    if result is not None:
        return float(result)

    result = extract_retry_after_from_body(error_str)
    if result is not None:
        return float(result)

    return None


def _matches(text: str, patterns) -> bool:
    return any(pattern in text for pattern in patterns)


def classify_error(e: BaseException, now: Optional[float] = None) -> ClassifiedError:
    """
    Classifies an exception into a structured ClassifiedError object.

    Explicit status codes win. When the status is missing or not one of the
    recognized codes, the message text is matched against the vocabulary of
    each class, in the same priority order:
    - auth_failure (401/403, "permission denied", "api key not valid")
    - quota_exceeded (429, "quota", "rate limit", "resource_exhausted")
    - transient_failure (500/502/503/504, httpx transport errors,
      "service unavailable", "overloaded")
    - unclassified (anything else)

    A retry interval is only extracted for quota_exceeded errors.

    Args:
        e: The exception raised by the operation
        now: Current epoch time, forwarded to get_retry_after

    Returns:
        ClassifiedError with error_type, status_code, retry_after, message
    """
    status_code = _status_of(e)
    message = _message_of(e)
    text = message.lower()

    if status_code in AUTH_STATUS_CODES:
        error_type = ErrorType.AUTH_FAILURE
    elif status_code in QUOTA_STATUS_CODES:
        error_type = ErrorType.QUOTA_EXCEEDED
    elif status_code in TRANSIENT_STATUS_CODES:
        error_type = ErrorType.TRANSIENT_FAILURE
    elif isinstance(e, httpx.TransportError):
        error_type = ErrorType.TRANSIENT_FAILURE
    elif _matches(text, AUTH_ERROR_PATTERNS):
        error_type = ErrorType.AUTH_FAILURE
    elif _matches(text, QUOTA_ERROR_PATTERNS):
        error_type = ErrorType.QUOTA_EXCEEDED
    elif _matches(text, TRANSIENT_ERROR_PATTERNS):
        error_type = ErrorType.TRANSIENT_FAILURE
    else:
        error_type = ErrorType.UNCLASSIFIED

    retry_after = None
    if error_type == ErrorType.QUOTA_EXCEEDED:
        retry_after = get_retry_after(e, now=now)

    lib_logger.debug(
        f"Classified {type(e).__name__} as {error_type.value} "
        f"(status={status_code}, retry_after={retry_after})"
    )
    return ClassifiedError(
        error_type=error_type,
        original_exception=e,
        status_code=status_code,
        retry_after=retry_after,
        message=message,
    )


def should_rotate_on_error(classified_error: ClassifiedError) -> bool:
    """
    Determines if an error should trigger failover to another credential.

    Auth and quota failures make the current credential unusable, so the
    next attempt must use a different one. Transient failures retry the
    same credential first; unclassified errors are never retried.
    """
    return classified_error.error_type in (
        ErrorType.AUTH_FAILURE,
        ErrorType.QUOTA_EXCEEDED,
    )


def should_retry_same_key(classified_error: ClassifiedError) -> bool:
    """
    Determines if an error should retry with the same credential (with backoff).

    Returns:
        True if should retry same credential, False otherwise
    """
    return classified_error.error_type == ErrorType.TRANSIENT_FAILURE


def mask_credential(credential: str) -> str:
    """
    Mask a credential for safe display in logs and error messages.

    Shows the last 6 characters (e.g., "...xyz123"), or "***" for short secrets.
    """
    if credential and len(credential) > 6:
        return f"...{credential[-6:]}"
    return "***"
