"""Shared JSON serialization utilities for result tables and log lines."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any


def format_timespan(value: timedelta) -> str:
    """
    Render a timedelta in Kusto timespan literal form: ``[-][d.]hh:mm:ss[.fffffff]``.
    """
    total_us = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    days, rem = divmod(total_us, 86400 * 1_000_000)
    hours, rem = divmod(rem, 3600 * 1_000_000)
    minutes, rem = divmod(rem, 60 * 1_000_000)
    seconds, micros = divmod(rem, 1_000_000)

    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if days:
        text = f"{days}.{text}"
    if micros:
        # Kusto ticks are 100ns, so seven fractional digits
        text = f"{text}.{micros * 10:07d}"
    return sign + text


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, (datetime, date)):
        return True, obj.isoformat()
    if isinstance(obj, timedelta):
        return True, format_timespan(obj)
    if isinstance(obj, Decimal):
        return True, float(obj)
    if isinstance(obj, Path):
        return True, str(obj)
    if isinstance(obj, Enum):
        return True, obj.value
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    Type-safe JSON serializer for ``json.dumps(default=...)``.

    - datetime/date → ISO 8601 string
    - timedelta → Kusto timespan literal
    - Decimal → float
    - Path → string
    - Enums → value
    - Everything else → string (fallback)
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return str(obj)


__all__ = ["json_serializer", "format_timespan"]
