"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- KustoClientError hierarchy for typed exceptions
- Classification utilities for HTTP and storage failures
"""

from core.errors.classifiers import (
    AZURE_ERROR_CODES,
    KustoResponseClassifier,
    classify_azure_error_code,
)
from core.errors.exceptions import (
    AuthError,
    EmptyResultError,
    ErrorCategory,
    IngestionPropertiesValidationError,
    KustoClientError,
    KustoServiceError,
    MalformedResourceUriError,
    PartialQueryFailureError,
    PermanentError,
    RetriesExceededError,
    ThrottlingError,
    TransientError,
    UnknownStorageAccountError,
    classify_exception,
    classify_http_status,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "KustoClientError",
    "AuthError",
    "TransientError",
    "PermanentError",
    # Domain errors
    "ThrottlingError",
    "KustoServiceError",
    "PartialQueryFailureError",
    "MalformedResourceUriError",
    "IngestionPropertiesValidationError",
    "UnknownStorageAccountError",
    "RetriesExceededError",
    "EmptyResultError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
    "wrap_exception",
    "AZURE_ERROR_CODES",
    "classify_azure_error_code",
    "KustoResponseClassifier",
]
