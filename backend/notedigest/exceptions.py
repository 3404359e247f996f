"""
NoteDigest Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure class of the
       ingestion pipeline and the note endpoints.
How:   Each exception carries a user-facing message, a context dict for logs,
       an HTTP status code and a machine-readable error code. Global handlers
       registered in main.py turn them into JSON error responses.
Who:   Raised by services, extractors and dependencies; caught by global handlers.

Exception Hierarchy:
    NoteDigestError (base)                 → 500
    ├── UnauthenticatedError              → 401 Unauthorized
    ├── ValidationError                   → 400 Bad Request
    ├── ForbiddenError                    → 403 Forbidden
    ├── NotFoundError                     → 404 Not Found
    ├── DuplicateContentError             → 409 Conflict
    ├── ExtractionError                   → 422 Unprocessable Entity
    ├── RateLimitExceededError            → 429 Too Many Requests
    ├── SummarizationUnavailableError     → 503 Service Unavailable
    │   └── CircuitBreakerOpenError       → 503 Service Unavailable
    ├── PersistenceError                  → 500 Internal Server Error
    └── FileStorageError                  → 500 Internal Server Error

    Anything else is an unexpected error and maps to 500 in the catch-all handler.
"""

from typing import Any, Dict, Optional


class NoteDigestError(Exception):
    """
    Base exception for all NoteDigest application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500
    code: str = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class UnauthenticatedError(NoteDigestError):
    """No authenticated session accompanies the request."""

    status_code = 401
    code = "unauthorized"

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(NoteDigestError):
    """
    Raised when client input fails validation.

    When:    Missing file, wrong MIME type, oversized upload, empty text,
             non-http(s) URL, unparseable YouTube id.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "File is too large. Max size is 10MB.",
            "code": "validation_error",
            "requestId": "a1b2c3d4"
        }
    """

    status_code = 400
    code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ForbiddenError(NoteDigestError):
    """
    The record exists but belongs to another user.

    HTTP: 403 Forbidden (not 404 — the caller learns the record exists, but
    never its content).
    """

    status_code = 403
    code = "forbidden"

    def __init__(
        self,
        message: str = "Unauthorized to access this note.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NoteDigestError):
    """
    Raised when a requested resource does not exist.

    The store returns None for missing records; the service layer converts
    None into this exception.
    """

    status_code = 404
    code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found."
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DuplicateContentError(NoteDigestError):
    """
    Two uploads of byte-identical content raced to create the same Source.

    When:    The fingerprint uniqueness constraint rejected a Source insert
             that the dedup lookup had not seen yet.
    HTTP:    409 Conflict
    """

    status_code = 409
    code = "duplicate_content"

    def __init__(
        self,
        message: str = (
            "This document is already being saved. "
            "Please wait a moment and try again."
        ),
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExtractionError(NoteDigestError):
    """
    Source content could not be turned into text.

    When:    Image-only or encrypted PDF, scrape returned nothing, transcript
             disabled, private video.
    HTTP:    422 Unprocessable Entity
    """

    status_code = 422
    code = "extraction_error"

    def __init__(
        self,
        message: str = "Could not extract text from the provided content.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(NoteDigestError):
    """
    Raised when a client exceeds the per-IP ingestion rate limit.

    Response includes a Retry-After header.
    """

    status_code = 429
    code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class SummarizationUnavailableError(NoteDigestError):
    """
    The text-generation service failed: timeout, outage, quota, or empty output.

    When:    After tenacity retries are exhausted or on a non-retryable error.
    HTTP:    503 Service Unavailable — always safe for the user to retry.
    """

    status_code = 503
    code = "summarization_unavailable"

    def __init__(
        self,
        message: str = (
            "Failed to generate summary. The AI service may be unavailable. "
            "Please try again later."
        ),
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(SummarizationUnavailableError):
    """
    Raised when the circuit breaker is in OPEN state.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After threshold failures → OPEN (reject all calls for recovery_time)
        → After recovery_time → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    code = "service_unavailable"

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"Please try again in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, retry_after=recovery_time, context=ctx)
        self.recovery_time = recovery_time


class PersistenceError(NoteDigestError):
    """
    Raised when the record store fails.

    The message returned to the client is always generic; the SQL error,
    constraint name and parameters go to the server log only.
    """

    status_code = 500
    code = "persistence_error"

    def __init__(
        self,
        message: str = "Failed to save note to database. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(NoteDigestError):
    """
    Raised when writing the transient upload file fails.

    When:    Disk full, permission denied, temp directory not writable.
    HTTP:    500 Internal Server Error
    """

    status_code = 500
    code = "server_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
