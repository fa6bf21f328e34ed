"""
Centralized error classification for service and storage responses.

Turns raw HTTP failures from the Kusto REST endpoints and exceptions from the
Azure Storage SDK into the typed KustoClientError hierarchy.
"""

import json
from typing import Any, Mapping, Optional

from core.errors.exceptions import (
    AuthError,
    KustoClientError,
    KustoServiceError,
    PermanentError,
    ThrottlingError,
    TransientError,
    wrap_exception,
)


AZURE_ERROR_CODES = {
    # Azure Storage error codes (x-ms-error-code)
    "storage_errors": {
        "InternalError": "transient",
        "OperationTimedOut": "transient",
        "ServerBusy": "throttling",
        "ServiceUnavailable": "transient",
        "AuthenticationFailed": "auth",
        "AccountIsDisabled": "permanent",
        "InsufficientAccountPermissions": "auth",
        "ContainerNotFound": "permanent",
        "QueueNotFound": "permanent",
        "BlobNotFound": "permanent",
    },
    # Kusto error codes found in the error body
    "kusto_errors": {
        "General_BadRequest": "permanent",
        "BadRequest_SyntaxError": "permanent",
        "BadRequest_EntityNotFound": "permanent",
        "BadRequest_DatabaseNotExist": "permanent",
        "Forbidden": "permanent",
        "Unauthorized": "auth",
        "LimitsExceeded": "throttling",
        "Throttled": "throttling",
        "ServiceUnavailable": "transient",
    },
}

ACTIVITY_ID_HEADER = "x-ms-activity-id"
RETRY_AFTER_HEADERS = ("x-ms-retry-after-ms", "retry-after")


def classify_azure_error_code(error_code: str) -> Optional[str]:
    """
    Classify an Azure Storage or Kusto error code.

    Returns:
        "auth", "throttling", "transient", "permanent", or None
    """
    error_code = str(error_code).strip()

    if error_code in AZURE_ERROR_CODES["storage_errors"]:
        return AZURE_ERROR_CODES["storage_errors"][error_code]

    if error_code in AZURE_ERROR_CODES["kusto_errors"]:
        return AZURE_ERROR_CODES["kusto_errors"][error_code]

    return None


def _retry_after_seconds(headers: Mapping[str, str]) -> Optional[float]:
    lowered = {k.lower(): v for k, v in headers.items()}
    if "x-ms-retry-after-ms" in lowered:
        try:
            return int(lowered["x-ms-retry-after-ms"]) / 1000.0
        except (ValueError, TypeError):
            return None
    if "retry-after" in lowered:
        try:
            return float(lowered["retry-after"])
        except (ValueError, TypeError):
            return None
    return None


def _extract_error(body: Any) -> tuple[str | None, str | None, bool | None]:
    """Return (code, message, permanent) from a Kusto error body."""
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except (ValueError, TypeError):
            text = body.decode("utf-8", "replace") if isinstance(body, bytes) else body
            return None, text.strip() or None, None

    if not isinstance(body, dict):
        return None, None, None

    error = body.get("error", body)
    if not isinstance(error, dict):
        return None, str(error), None

    code = error.get("code")
    message = error.get("@message") or error.get("message")
    permanent = error.get("@permanent")
    return code, message, permanent


class KustoResponseClassifier:
    """
    Classification of failed Kusto REST responses and storage SDK errors.
    """

    @staticmethod
    def classify_http_error(
        status: int,
        body: Any,
        headers: Optional[Mapping[str, str]] = None,
        context: Optional[dict] = None,
    ) -> KustoClientError:
        """
        Classify a non-2xx response from the query/management endpoints.

        Args:
            status: HTTP status code
            body: Decoded JSON body, raw text, or bytes
            headers: Response headers
            context: Additional context (merged with {"service": "kusto"})
        """
        headers = headers or {}
        ctx = {"service": "kusto", "http_status": status}
        if context:
            ctx.update(context)

        code, message, permanent = _extract_error(body)
        activity_id = {k.lower(): v for k, v in headers.items()}.get(ACTIVITY_ID_HEADER)
        if activity_id:
            ctx["activity_id"] = activity_id
        if code:
            ctx["error_code"] = code

        description = message or f"HTTP {status}"
        mapped = classify_azure_error_code(code) if code else None

        if status == 429 or mapped == "throttling":
            return ThrottlingError(
                f"Kusto throttled the request: {description}",
                retry_after=_retry_after_seconds(headers),
                context=ctx,
            )

        if status == 401 or mapped == "auth":
            return AuthError(
                f"Kusto authentication failed: {description}",
                context=ctx,
            )

        return KustoServiceError(
            f"Kusto request failed ({status}): {description}",
            http_status=status,
            activity_id=activity_id,
            permanent=permanent,
            context=ctx,
        )

    @staticmethod
    def classify_storage_error(
        error: Exception, context: Optional[dict] = None
    ) -> KustoClientError:
        """
        Classify an Azure Storage SDK exception.

        Uses the SDK's error_code / status_code attributes when present and
        falls back to message-based classification.
        """
        if isinstance(error, KustoClientError):
            return error

        ctx = {"service": "storage"}
        if context:
            ctx.update(context)

        error_code = getattr(error, "error_code", None)
        status_code = getattr(error, "status_code", None)
        if error_code:
            ctx["error_code"] = str(error_code)
        if status_code:
            ctx["status_code"] = status_code

        mapped = classify_azure_error_code(str(error_code)) if error_code else None
        if mapped is None and isinstance(status_code, int):
            if status_code == 429 or status_code == 503:
                mapped = "throttling" if status_code == 429 else "transient"
            elif status_code in (401, 403):
                mapped = "auth"
            elif 400 <= status_code < 500:
                mapped = "permanent"
            elif status_code >= 500:
                mapped = "transient"

        if mapped == "throttling":
            return ThrottlingError(f"Storage throttled: {error}", cause=error, context=ctx)
        if mapped == "auth":
            return AuthError(f"Storage authentication failed: {error}", cause=error, context=ctx)
        if mapped == "transient":
            return TransientError(f"Storage error: {error}", cause=error, context=ctx)
        if mapped == "permanent":
            return PermanentError(f"Storage error: {error}", cause=error, context=ctx)

        return wrap_exception(error, context=ctx)
