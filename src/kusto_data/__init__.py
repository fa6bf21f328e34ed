"""
Async Kusto query client.

Components:
    - KustoClient: REST client for queries, management commands and streaming ingest
    - ClientRequestProperties: Per-request options, parameters and tracing ids
    - KustoResponseDataSet: Parsed V1/V2 responses with error extraction
    - KustoResultTable / KustoResultRow / KustoResultColumn: Tabular result model
"""

from kusto_data.client import KustoClient
from kusto_data.models import (
    KustoResultColumn,
    KustoResultRow,
    KustoResultTable,
    WellKnownDataSet,
)
from kusto_data.request_properties import (
    OPTION_DEFER_PARTIAL_QUERY_FAILURES,
    OPTION_SERVER_TIMEOUT,
    ClientRequestProperties,
)
from kusto_data.response import (
    V1_PROTOCOL,
    V2_PROTOCOL,
    KustoResponseDataSet,
    ProtocolDescriptor,
    parse_v1,
    parse_v2,
)

__all__ = [
    "KustoClient",
    "ClientRequestProperties",
    "OPTION_SERVER_TIMEOUT",
    "OPTION_DEFER_PARTIAL_QUERY_FAILURES",
    "KustoResponseDataSet",
    "ProtocolDescriptor",
    "V1_PROTOCOL",
    "V2_PROTOCOL",
    "parse_v1",
    "parse_v2",
    "KustoResultTable",
    "KustoResultRow",
    "KustoResultColumn",
    "WellKnownDataSet",
]
