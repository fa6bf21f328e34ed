"""Per-request options, query parameters and tracing identifiers."""

import json
from datetime import timedelta
from typing import Any, Optional

from core.utils.json_serializers import format_timespan, json_serializer
from kusto_data.models import parse_timespan

OPTION_SERVER_TIMEOUT = "servertimeout"
OPTION_DEFER_PARTIAL_QUERY_FAILURES = "deferpartialqueryfailures"
OPTION_NO_TRUNCATION = "notruncation"


class ClientRequestProperties:
    """
    Options and parameters sent in the ``properties`` field of a request.

    Only ``options`` and ``parameters`` go over the wire in the body;
    ``client_request_id``, ``application`` and ``user`` become headers and
    ``client_timeout`` and ``raw`` only affect the client.

    Example:
        >>> props = ClientRequestProperties()
        >>> props.set_option(OPTION_DEFER_PARTIAL_QUERY_FAILURES, True)
        >>> props.set_parameter("since", "ago(1h)")
        >>> props.server_timeout = timedelta(minutes=2)
    """

    def __init__(
        self,
        options: Optional[dict[str, Any]] = None,
        parameters: Optional[dict[str, Any]] = None,
        client_request_id: Optional[str] = None,
        application: Optional[str] = None,
        user: Optional[str] = None,
    ):
        self._options: dict[str, Any] = dict(options or {})
        self._parameters: dict[str, Any] = dict(parameters or {})
        self.client_request_id = client_request_id
        self.application = application
        self.user = user
        self.client_timeout: Optional[timedelta] = None
        # Return the decoded JSON body instead of a dataset
        self.raw = False

    def set_option(self, name: str, value: Any) -> None:
        self._options[name] = value

    def get_option(self, name: str, default: Any = None) -> Any:
        return self._options.get(name, default)

    def has_option(self, name: str) -> bool:
        return name in self._options

    def clear_options(self) -> None:
        self._options = {}

    def set_parameter(self, name: str, value: Any) -> None:
        self._parameters[name] = value

    def get_parameter(self, name: str, default: Any = None) -> Any:
        return self._parameters.get(name, default)

    def clear_parameters(self) -> None:
        self._parameters = {}

    @property
    def server_timeout(self) -> Optional[timedelta]:
        value = self._options.get(OPTION_SERVER_TIMEOUT)
        if value is None:
            return None
        return parse_timespan(value)

    @server_timeout.setter
    def server_timeout(self, value: Optional[timedelta]) -> None:
        if value is None:
            self._options.pop(OPTION_SERVER_TIMEOUT, None)
        else:
            self._options[OPTION_SERVER_TIMEOUT] = format_timespan(value)

    @property
    def defer_partial_query_failures(self) -> bool:
        return bool(self._options.get(OPTION_DEFER_PARTIAL_QUERY_FAILURES, False))

    def to_dict(self) -> Optional[dict[str, Any]]:
        """``{"Options": ..., "Parameters": ...}`` with empty bags omitted, or None."""
        result: dict[str, Any] = {}
        if self._options:
            result["Options"] = dict(self._options)
        if self._parameters:
            result["Parameters"] = dict(self._parameters)
        return result or None

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=json_serializer)

    def __str__(self) -> str:
        return self.to_json()


__all__ = [
    "ClientRequestProperties",
    "OPTION_SERVER_TIMEOUT",
    "OPTION_DEFER_PARTIAL_QUERY_FAILURES",
    "OPTION_NO_TRUNCATION",
]
