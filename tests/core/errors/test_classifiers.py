"""
Tests for HTTP response and storage error classification.
"""

import json

import pytest

from core.errors import (
    AZURE_ERROR_CODES,
    AuthError,
    KustoResponseClassifier,
    KustoServiceError,
    PermanentError,
    ThrottlingError,
    TransientError,
    classify_azure_error_code,
)


class TestAzureErrorCodeClassification:

    def test_storage_codes(self):
        for code, expected in AZURE_ERROR_CODES["storage_errors"].items():
            assert classify_azure_error_code(code) == expected

    def test_kusto_codes(self):
        assert classify_azure_error_code("Throttled") == "throttling"
        assert classify_azure_error_code("BadRequest_SyntaxError") == "permanent"

    def test_unknown_code(self):
        assert classify_azure_error_code("SomethingElse") is None

    def test_strips_whitespace(self):
        assert classify_azure_error_code("  ServerBusy ") == "throttling"


class TestClassifyHttpError:

    def test_429_is_throttling_with_retry_after_ms(self):
        error = KustoResponseClassifier.classify_http_error(
            429, "", {"x-ms-retry-after-ms": "1500"}
        )
        assert isinstance(error, ThrottlingError)
        assert error.retry_after == 1.5

    def test_retry_after_seconds_header(self):
        error = KustoResponseClassifier.classify_http_error(429, "", {"Retry-After": "3"})
        assert error.retry_after == 3.0

    def test_throttled_code_in_body(self):
        body = json.dumps({"error": {"code": "Throttled", "@message": "too many requests"}})
        error = KustoResponseClassifier.classify_http_error(400, body)
        assert isinstance(error, ThrottlingError)
        assert "too many requests" in error.message

    def test_401_is_auth(self):
        error = KustoResponseClassifier.classify_http_error(401, "Unauthorized")
        assert isinstance(error, AuthError)

    def test_bad_request_is_permanent_service_error(self):
        body = {
            "error": {
                "code": "BadRequest_SyntaxError",
                "@message": "Syntax error",
                "@permanent": True,
            }
        }
        error = KustoResponseClassifier.classify_http_error(
            400, body, {"x-ms-activity-id": "act-1"}, context={"endpoint": "mgmt"}
        )
        assert isinstance(error, KustoServiceError)
        assert error.is_permanent
        assert error.http_status == 400
        assert error.activity_id == "act-1"
        assert error.context["error_code"] == "BadRequest_SyntaxError"
        assert error.context["endpoint"] == "mgmt"

    def test_server_error_is_transient(self):
        error = KustoResponseClassifier.classify_http_error(503, "unavailable")
        assert isinstance(error, KustoServiceError)
        assert not error.is_permanent
        assert "unavailable" in error.message

    def test_permanent_flag_overrides_status(self):
        body = {"error": {"code": "General", "message": "boom", "@permanent": True}}
        error = KustoResponseClassifier.classify_http_error(500, body)
        assert error.is_permanent

    def test_empty_body_uses_status(self):
        error = KustoResponseClassifier.classify_http_error(404, "")
        assert "HTTP 404" in error.message


class _StorageError(Exception):
    def __init__(self, message, error_code=None, status_code=None):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


class TestClassifyStorageError:

    @pytest.mark.parametrize(
        "error,expected",
        [
            (_StorageError("busy", error_code="ServerBusy"), ThrottlingError),
            (_StorageError("auth", error_code="AuthenticationFailed"), AuthError),
            (_StorageError("gone", error_code="QueueNotFound"), PermanentError),
            (_StorageError("oops", error_code="InternalError"), TransientError),
            (_StorageError("slow", status_code=429), ThrottlingError),
            (_StorageError("denied", status_code=403), AuthError),
            (_StorageError("bad", status_code=400), PermanentError),
            (_StorageError("down", status_code=502), TransientError),
        ],
    )
    def test_classification(self, error, expected):
        classified = KustoResponseClassifier.classify_storage_error(error)
        assert isinstance(classified, expected)
        assert classified.cause is error
        assert classified.context["service"] == "storage"

    def test_client_errors_pass_through(self):
        error = TransientError("already typed")
        assert KustoResponseClassifier.classify_storage_error(error) is error

    def test_context_merged(self):
        classified = KustoResponseClassifier.classify_storage_error(
            _StorageError("busy", error_code="ServerBusy"), context={"queue_name": "q1"}
        )
        assert classified.context["queue_name"] == "q1"
        assert classified.context["error_code"] == "ServerBusy"
