"""
Response datasets for the V1 (``{"Tables": [...]}``) and V2 (frame array)
wire formats.

Both formats produce a KustoResponseDataSet. What differs between them is
the set of status-table column names, carried as a ProtocolDescriptor.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from kusto_data.models import KustoResultTable, WellKnownDataSet

logger = logging.getLogger(__name__)

# Status rows with a severity below this value are errors (0 is the most severe)
ERROR_SEVERITY_THRESHOLD = 4


@dataclass(frozen=True)
class ProtocolDescriptor:
    """Status-table column names for one protocol version."""

    version: str
    status_column: str
    severity_column: str
    correlation_column: str


V1_PROTOCOL = ProtocolDescriptor(
    version="1.0",
    status_column="StatusDescription",
    severity_column="Severity",
    correlation_column="ClientActivityId",
)

V2_PROTOCOL = ProtocolDescriptor(
    version="2.0",
    status_column="Payload",
    severity_column="Level",
    correlation_column="ClientRequestId",
)

# Table-of-contents "Kind" values in V1 responses
V1_TABLE_KINDS = {
    "QueryResult": WellKnownDataSet.PRIMARY_RESULT,
    "QueryProperties": WellKnownDataSet.QUERY_PROPERTIES,
    "QueryStatus": WellKnownDataSet.QUERY_COMPLETION_INFORMATION,
}


def _is_error_severity(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value < ERROR_SEVERITY_THRESHOLD
    )


class KustoResponseDataSet:
    """
    All tables of one response, classified by role.

    Attributes:
        tables: Every table, in wire order
        table_names: Name of each table, in wire order
        primary_results: Tables holding the query output
        status_table: The QueryCompletionInformation table, if any
        protocol: Status-table column names for this response's version
        data_set_header: V2 DataSetHeader frame
        data_set_completion: V2 DataSetCompletion frame
    """

    def __init__(
        self,
        tables: list[KustoResultTable],
        protocol: ProtocolDescriptor,
        data_set_header: Optional[dict] = None,
        data_set_completion: Optional[dict] = None,
    ):
        self.tables = tables
        self.protocol = protocol
        self.data_set_header = data_set_header
        self.data_set_completion = data_set_completion

        self.table_names = [table.name for table in tables]
        self.primary_results = [
            table for table in tables if table.kind == WellKnownDataSet.PRIMARY_RESULT
        ]
        self.status_table: Optional[KustoResultTable] = next(
            (
                table
                for table in tables
                if table.kind == WellKnownDataSet.QUERY_COMPLETION_INFORMATION
            ),
            None,
        )

    @property
    def version(self) -> str:
        return self.protocol.version

    def _completion_has_errors(self) -> bool:
        return bool(self.data_set_completion and self.data_set_completion.get("HasErrors"))

    def get_errors_count(self) -> int:
        """
        Number of status rows at the most severe error level present.

        Rows at lower-priority error levels are not counted: severities
        [0, 1, 1] count as 1. A V2 completion frame with HasErrors adds one,
        and each inline error ending a V2 table adds one more.
        """
        errors = 0
        if self.status_table is not None and self.status_table.row_count:
            min_level = ERROR_SEVERITY_THRESHOLD
            for row in self.status_table.rows():
                level = row.get(self.protocol.severity_column)
                if not _is_error_severity(level):
                    continue
                if level < min_level:
                    min_level = level
                    errors = 1
                elif level == min_level:
                    errors += 1

        if self._completion_has_errors():
            errors += 1
        errors += sum(len(table.row_errors) for table in self.tables)
        return errors

    def get_exceptions(self) -> list[str]:
        """One support-ready description per error row."""
        result = []
        if self.status_table is not None and self.status_table.row_count:
            for row in self.status_table.rows():
                if not _is_error_severity(row.get(self.protocol.severity_column)):
                    continue
                result.append(
                    "Please provide the following data to Kusto: "
                    f"CRID={row.get(self.protocol.correlation_column)} "
                    f"Description: {row.get(self.protocol.status_column)}"
                )

        for table in self.tables:
            result.extend(table.row_errors)

        if self._completion_has_errors():
            for api_error in self.data_set_completion.get("OneApiErrors") or []:
                message = (api_error.get("error") or {}).get("@message")
                if message:
                    result.append(message)
        return result

    def __repr__(self) -> str:
        return (
            f"KustoResponseDataSet(version={self.version!r}, tables={self.table_names!r}, "
            f"primary_results={len(self.primary_results)})"
        )


def parse_v1(payload: dict | list) -> KustoResponseDataSet:
    """
    Build a dataset from a V1 response body.

    With one or two tables, table 0 is the primary result and table 1 holds
    query properties. With more, the last table is a table of contents whose
    rows give the name, id and kind of every other table.
    """
    raw_tables = payload.get("Tables", []) if isinstance(payload, dict) else payload
    if isinstance(raw_tables, dict):
        raw_tables = [raw_tables]
    tables = [KustoResultTable(raw) for raw in raw_tables]

    if 0 < len(tables) <= 2:
        if tables[0].kind is None:
            tables[0].kind = WellKnownDataSet.PRIMARY_RESULT
        tables[0].id = 0
        if len(tables) == 2:
            tables[1].kind = WellKnownDataSet.QUERY_PROPERTIES
            tables[1].id = 1
    elif len(tables) > 2:
        toc = tables[-1]
        toc.kind = WellKnownDataSet.TABLE_OF_CONTENTS
        toc.id = len(tables) - 1
        if toc.row_count < len(tables) - 1:
            logger.warning(
                "Table of contents lists fewer tables than the response holds",
                extra={"table_count": len(tables), "row_count": toc.row_count},
            )
        for table, entry in zip(tables[:-1], toc.rows()):
            table.name = entry.get("Name")
            table.id = entry.get("Id")
            table.kind = V1_TABLE_KINDS.get(entry.get("Kind"))

    return KustoResponseDataSet(tables, V1_PROTOCOL)


def parse_v2(frames: list[dict]) -> KustoResponseDataSet:
    """Build a dataset from a V2 frame array; only DataTable frames become tables."""
    tables = []
    header = None
    completion = None
    for frame in frames:
        frame_type = frame.get("FrameType")
        if frame_type == "DataTable":
            tables.append(KustoResultTable(frame))
        elif frame_type == "DataSetHeader":
            header = frame
        elif frame_type == "DataSetCompletion":
            completion = frame

    return KustoResponseDataSet(
        tables, V2_PROTOCOL, data_set_header=header, data_set_completion=completion
    )


def parse_response(payload: Any, version: str) -> KustoResponseDataSet:
    """Dispatch on protocol version ("1.0" or "2.0")."""
    if version == V2_PROTOCOL.version:
        return parse_v2(payload)
    if version == V1_PROTOCOL.version:
        return parse_v1(payload)
    raise ValueError(f"Unsupported response protocol version: {version}")


__all__ = [
    "ProtocolDescriptor",
    "V1_PROTOCOL",
    "V2_PROTOCOL",
    "ERROR_SEVERITY_THRESHOLD",
    "KustoResponseDataSet",
    "parse_v1",
    "parse_v2",
    "parse_response",
]
