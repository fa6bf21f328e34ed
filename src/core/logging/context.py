"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_client_request_id: ContextVar[str] = ContextVar("client_request_id", default="")
_database: ContextVar[str] = ContextVar("database", default="")
_operation: ContextVar[str] = ContextVar("operation", default="")
_cluster: ContextVar[str] = ContextVar("cluster", default="")


def set_log_context(
    client_request_id: Optional[str] = None,
    database: Optional[str] = None,
    operation: Optional[str] = None,
    cluster: Optional[str] = None,
) -> None:
    if client_request_id is not None:
        _client_request_id.set(client_request_id)
    if database is not None:
        _database.set(database)
    if operation is not None:
        _operation.set(operation)
    if cluster is not None:
        _cluster.set(cluster)


def get_log_context() -> Dict[str, str]:
    return {
        "client_request_id": _client_request_id.get(),
        "database": _database.get(),
        "operation": _operation.get(),
        "cluster": _cluster.get(),
    }


def clear_log_context() -> None:
    _client_request_id.set("")
    _database.set("")
    _operation.set("")
    _cluster.set("")
