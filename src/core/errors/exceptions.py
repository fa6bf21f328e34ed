"""
Unified exception hierarchy for the Kusto query and ingestion clients.

Every error raised by this library derives from KustoClientError and carries
an ErrorCategory so callers can make retry decisions without inspecting
messages.
"""

from core.types import ErrorCategory


class KustoClientError(Exception):
    """
    Base exception for all client errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.AUTH)

    @property
    def should_refresh_auth(self) -> bool:
        return self.category == ErrorCategory.AUTH

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Category base classes
# =============================================================================


class AuthError(KustoClientError):
    """Authentication failed or the token was rejected."""

    category = ErrorCategory.AUTH


class TransientError(KustoClientError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class ThrottlingError(TransientError):
    """Rate limited (429) - should back off."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.retry_after = retry_after  # Seconds to wait if provided


class PermanentError(KustoClientError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Domain-Specific Errors
# =============================================================================


class MalformedResourceUriError(PermanentError):
    """A storage resource locator does not have the expected shape."""

    def __init__(self, uri: str, reason: str | None = None):
        message = f"Failed to parse storage resource URI ({uri})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, context={"resource": uri})
        self.uri = uri


class IngestionPropertiesValidationError(PermanentError):
    """Ingestion properties are incomplete or inconsistent."""

    pass


class UnknownStorageAccountError(PermanentError):
    """Storage account was never registered with the ranked account set."""

    def __init__(self, account_name: str):
        super().__init__(
            f"Storage account '{account_name}' does not exist in the set",
            context={"account_name": account_name},
        )
        self.account_name = account_name


class RetriesExceededError(PermanentError):
    """The backoff budget is exhausted."""

    pass


class EmptyResultError(PermanentError):
    """The service returned no rows where one was required."""

    pass


class KustoServiceError(KustoClientError):
    """
    The service rejected a request or returned an unparseable response.

    Category follows the HTTP status: 5xx responses are transient, everything
    else is permanent.
    """

    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        activity_id: str | None = None,
        permanent: bool | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.http_status = http_status
        self.activity_id = activity_id
        if permanent is None:
            permanent = not (
                http_status is not None
                and classify_http_status(http_status) == ErrorCategory.TRANSIENT
            )
        self.category = ErrorCategory.PERMANENT if permanent else ErrorCategory.TRANSIENT

    @property
    def is_permanent(self) -> bool:
        return self.category == ErrorCategory.PERMANENT


class PartialQueryFailureError(PermanentError):
    """
    The request completed but the completion-status table reported errors.

    Attributes:
        exceptions: Human-readable description per erroneous status row
        dataset: The parsed response, for callers that still want the rows
    """

    def __init__(self, exceptions: list[str], dataset=None):
        super().__init__(
            f"Kusto request had errors. {' '.join(exceptions)}",
            context={"errors_count": len(exceptions)},
        )
        self.exceptions = exceptions
        self.dataset = dataset


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    if isinstance(exc, KustoClientError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "clientconnectorerror",
        "serverdisconnectederror",
        "name resolution",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    if "429" in exc_str or "throttl" in exc_str or "serverbusy" in exc_str:
        return ErrorCategory.TRANSIENT

    if "401" in exc_str or "unauthorized" in exc_str or "authenticationfailed" in exc_str:
        return ErrorCategory.AUTH

    if "403" in exc_str or "forbidden" in exc_str or "404" in exc_str or "not found" in exc_str:
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    default_class: type = KustoClientError,
    context: dict | None = None,
) -> KustoClientError:
    """Wrap a generic exception in the matching KustoClientError subclass."""
    if isinstance(exc, KustoClientError):
        if context:
            exc.context.update(context)
        return exc

    category = classify_exception(exc)
    exc_str = str(exc).lower()
    context = context or {}

    if category == ErrorCategory.AUTH:
        return AuthError(str(exc), cause=exc, context=context)

    if category == ErrorCategory.TRANSIENT:
        if "429" in exc_str or "throttl" in exc_str or "serverbusy" in exc_str:
            return ThrottlingError(str(exc), cause=exc, context=context)
        return TransientError(str(exc), cause=exc, context=context)

    if category == ErrorCategory.PERMANENT:
        return PermanentError(str(exc), cause=exc, context=context)

    return default_class(str(exc), cause=exc, context=context)
