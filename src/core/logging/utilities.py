"""Logging utility functions."""

import logging
from typing import Any

# Reserved LogRecord attribute names that cannot be used in extra dict
_RESERVED_LOG_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "asctime",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Example:
        log_with_context(
            logger, logging.INFO, "Query complete",
            client_request_id=request_id,
            duration_ms=elapsed,
            http_status=200,
        )
    """
    exc_info = kwargs.pop("exc_info", None)

    # Filter out reserved keys to prevent LogRecord conflicts
    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    logger.log(level, msg, exc_info=exc_info, extra=extra)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Adds error_type, error_category (for KustoClientError subclasses) and
    the first 200 characters of the message.

    Example:
        try:
            await storage.upload_blob(container, name, data)
        except KustoClientError as e:
            log_exception(
                logger, e, "Upload failed", level=logging.WARNING,
                include_traceback=False, storage_account=container.storage_account_name,
            )
    """
    kwargs.setdefault("error_type", type(exc).__name__)
    category = getattr(exc, "category", None)
    if category is not None and "error_category" not in kwargs:
        kwargs["error_category"] = getattr(category, "value", str(category))

    kwargs["error_message"] = str(exc)[:200]

    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=extra)
    else:
        logger.log(level, msg, extra=extra)
