"""
Tabular result model: columns, rows and tables of a Kusto response.

Rows are explicit ordered mappings from column name to decoded value.
Only temporal column types are coerced:

    datetime / DateTime  -> timezone-aware datetime.datetime
    timespan / TimeSpan  -> datetime.timedelta

Every other type keeps its decoded JSON value.
"""

import json
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from core.utils.json_serializers import json_serializer


class WellKnownDataSet(str, Enum):
    """Role of a table within a response."""

    PRIMARY_RESULT = "PrimaryResult"
    QUERY_COMPLETION_INFORMATION = "QueryCompletionInformation"
    TABLE_OF_CONTENTS = "TableOfContents"
    QUERY_PROPERTIES = "QueryProperties"

    @classmethod
    def from_kind(cls, kind: Any) -> "WellKnownDataSet | str | None":
        """Known kinds become members; anything else is kept as-is."""
        if kind is None or isinstance(kind, cls):
            return kind
        try:
            return cls(kind)
        except ValueError:
            return kind


# Kusto emits up to seven fractional digits (100ns ticks)
_DATETIME_FRACTION = re.compile(r"\.(\d+)")
_TIMESPAN = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{2}):(?P<seconds>\d{2})"
    r"(?:\.(?P<fraction>\d{1,7}))?$"
)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Decode a Kusto datetime cell.

    Strings are ISO 8601 (``2016-06-06T15:35:00.1234567Z``); fractions beyond
    microseconds are truncated and naive values are taken as UTC. Numbers are
    epoch milliseconds.
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid datetime value: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _DATETIME_FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_timespan(value: Any) -> Optional[timedelta]:
    """
    Decode a Kusto timespan cell.

    Strings use the ``[-][d.]hh:mm:ss[.fffffff]`` literal form. Numbers are
    milliseconds.
    """
    if value is None or isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(milliseconds=value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid timespan value: {value!r}")

    match = _TIMESPAN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid timespan value: {value!r}")

    fraction = match.group("fraction") or "0"
    ticks = int(fraction.ljust(7, "0"))
    result = timedelta(
        days=int(match.group("days") or 0),
        hours=int(match.group("hours")),
        minutes=int(match.group("minutes")),
        seconds=int(match.group("seconds")),
        microseconds=ticks // 10,
    )
    return -result if match.group("sign") else result


@dataclass
class KustoResultColumn:
    """Column metadata: wire type name and 0-based position."""

    name: Optional[str]
    type: Optional[str]
    ordinal: int

    @classmethod
    def from_json(cls, column: dict, ordinal: int) -> "KustoResultColumn":
        # V1 payloads carry DataType alongside ColumnType
        column_type = column.get("ColumnType") or column.get("DataType")
        return cls(name=column.get("ColumnName"), type=column_type, ordinal=ordinal)


def _one_api_messages(payload: dict) -> list[str]:
    """Messages of a ``{"OneApiErrors": [{"error": {...}}]}`` object."""
    messages = []
    for api_error in payload.get("OneApiErrors") or []:
        error = api_error.get("error") or {}
        message = error.get("@message") or error.get("message")
        if message:
            messages.append(message)
    return messages


DateTimeParser = Callable[[Any], Any]
TimeSpanParser = Callable[[Any], Any]


class KustoResultRow:
    """
    One decoded row.

    Values are decoded once at construction. Access by name with
    ``row["Name"]`` / ``row.get("Name")`` or by position with ``row[0]`` /
    ``row.value_at(0)``.
    """

    def __init__(
        self,
        columns: list[KustoResultColumn],
        raw: list[Any],
        date_parser: DateTimeParser = parse_datetime,
        timespan_parser: TimeSpanParser = parse_timespan,
    ):
        self.columns = sorted(columns, key=lambda c: c.ordinal)
        self.raw = raw

        parsers = {
            "datetime": date_parser,
            "DateTime": date_parser,
            "timespan": timespan_parser,
            "TimeSpan": timespan_parser,
        }

        self._ordered: list[Any] = []
        self._values: dict[Optional[str], Any] = {}
        for column in self.columns:
            value = raw[column.ordinal] if column.ordinal < len(raw) else None
            parser = parsers.get(column.type or "")
            if parser is not None and value is not None:
                value = parser(value)
            self._ordered.append(value)
            self._values[column.name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def value_at(self, index: int) -> Any:
        return self._ordered[index]

    def values(self) -> Iterator[Any]:
        yield from self._ordered

    def keys(self) -> list[Optional[str]]:
        return [column.name for column in self.columns]

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, int):
            return self._ordered[key]
        return self._values[key]

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._ordered)

    def __iter__(self) -> Iterator[Any]:
        return self.values()

    def to_dict(self) -> dict[Optional[str], Any]:
        return dict(self._values)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=json_serializer)

    def __str__(self) -> str:
        return self.to_json()

    def __repr__(self) -> str:
        return f"KustoResultRow({self.to_dict()!r})"


class KustoResultTable:
    """
    One table of a response.

    ``rows()`` returns a new generator on every call; the raw rows are kept
    so the table can be iterated any number of times.
    """

    def __init__(
        self,
        table: dict,
        date_parser: DateTimeParser = parse_datetime,
        timespan_parser: TimeSpanParser = parse_timespan,
    ):
        self.name: Optional[str] = table.get("TableName")
        self.id: Optional[int] = table.get("TableId")
        self.kind = WellKnownDataSet.from_kind(table.get("TableKind"))
        self.columns = [
            KustoResultColumn.from_json(column, ordinal)
            for ordinal, column in enumerate(table.get("Columns") or [])
        ]
        self.raw_rows: list[list[Any]] = []
        # A V2 table that fails partway ends with {"OneApiErrors": [...]} in place of a row
        self.row_errors: list[str] = []
        for raw in table.get("Rows") or []:
            if isinstance(raw, dict):
                self.row_errors.extend(_one_api_messages(raw))
            else:
                self.raw_rows.append(raw)
        self.date_parser = date_parser
        self.timespan_parser = timespan_parser

    def _make_row(self, raw: list[Any]) -> KustoResultRow:
        return KustoResultRow(self.columns, raw, self.date_parser, self.timespan_parser)

    def rows(self) -> Iterator[KustoResultRow]:
        for raw in self.raw_rows:
            yield self._make_row(raw)

    @property
    def row_count(self) -> int:
        return len(self.raw_rows)

    @property
    def column_names(self) -> list[Optional[str]]:
        return [column.name for column in self.columns]

    def __getitem__(self, index: int) -> KustoResultRow:
        return self._make_row(self.raw_rows[index])

    def __len__(self) -> int:
        return len(self.raw_rows)

    def __iter__(self) -> Iterator[KustoResultRow]:
        return self.rows()

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "data": [row.to_dict() for row in self.rows()]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=json_serializer)

    def __str__(self) -> str:
        return self.to_json()

    def __repr__(self) -> str:
        kind = self.kind.value if isinstance(self.kind, WellKnownDataSet) else self.kind
        return f"KustoResultTable(name={self.name!r}, id={self.id!r}, kind={kind!r}, rows={len(self)})"


__all__ = [
    "WellKnownDataSet",
    "KustoResultColumn",
    "KustoResultRow",
    "KustoResultTable",
    "parse_datetime",
    "parse_timespan",
]
