"""Shared response payloads for the query client tests."""

import pytest


def v2_frames(status_levels=(), has_errors=False, one_api_errors=None):
    """A V2 frame array: header, primary result, query properties, completion info, completion."""
    completion = {"FrameType": "DataSetCompletion", "HasErrors": has_errors, "Cancelled": False}
    if one_api_errors is not None:
        completion["OneApiErrors"] = one_api_errors

    status_rows = [
        ["2024-01-01T00:00:00Z", level, "Error" if level < 4 else "Info", f"payload {i}", "crid-1"]
        for i, level in enumerate(status_levels)
    ]

    return [
        {"FrameType": "DataSetHeader", "IsProgressive": False, "Version": "v2.0"},
        {
            "FrameType": "DataTable",
            "TableId": 0,
            "TableKind": "QueryProperties",
            "TableName": "@ExtendedProperties",
            "Columns": [
                {"ColumnName": "TableId", "ColumnType": "int"},
                {"ColumnName": "Key", "ColumnType": "string"},
                {"ColumnName": "Value", "ColumnType": "dynamic"},
            ],
            "Rows": [[1, "Visualization", "{}"]],
        },
        {
            "FrameType": "DataTable",
            "TableId": 1,
            "TableKind": "PrimaryResult",
            "TableName": "PrimaryResult",
            "Columns": [
                {"ColumnName": "State", "ColumnType": "string"},
                {"ColumnName": "StartTime", "ColumnType": "datetime"},
                {"ColumnName": "Duration", "ColumnType": "timespan"},
                {"ColumnName": "Count", "ColumnType": "long"},
            ],
            "Rows": [
                ["TEXAS", "2007-01-01T00:00:00Z", "01:30:00", 10],
                ["KANSAS", "2007-02-01T12:00:00.1234567Z", "1.00:00:00", 5],
            ],
        },
        {
            "FrameType": "DataTable",
            "TableId": 2,
            "TableKind": "QueryCompletionInformation",
            "TableName": "QueryCompletionInformation",
            "Columns": [
                {"ColumnName": "Timestamp", "ColumnType": "datetime"},
                {"ColumnName": "Level", "ColumnType": "int"},
                {"ColumnName": "LevelName", "ColumnType": "string"},
                {"ColumnName": "Payload", "ColumnType": "string"},
                {"ColumnName": "ClientRequestId", "ColumnType": "string"},
            ],
            "Rows": status_rows,
        },
        completion,
    ]


def v1_table(columns, rows, name="Table_0"):
    return {
        "TableName": name,
        "Columns": [
            {"ColumnName": column, "DataType": data_type, "ColumnType": column_type}
            for column, data_type, column_type in columns
        ],
        "Rows": rows,
    }


def v1_response_with_toc(status_severities=()):
    """V1 body with result, properties and status tables followed by a table of contents."""
    result = v1_table(
        [("Name", "String", "string"), ("Value", "Int64", "long")],
        [["a", 1], ["b", 2]],
    )
    properties = v1_table([("Value", "String", "string")], [["{}"]], name="Table_1")
    status = v1_table(
        [
            ("Severity", "Int32", "int"),
            ("StatusDescription", "String", "string"),
            ("ClientActivityId", "String", "string"),
        ],
        [[severity, f"status {i}", "activity-1"] for i, severity in enumerate(status_severities)],
        name="Table_2",
    )
    toc = v1_table(
        [
            ("Ordinal", "Int64", "long"),
            ("Kind", "String", "string"),
            ("Name", "String", "string"),
            ("Id", "String", "string"),
            ("PrettyName", "String", "string"),
        ],
        [
            [0, "QueryResult", "PrimaryResult", "id-0", ""],
            [1, "QueryProperties", "@ExtendedProperties", "id-1", ""],
            [2, "QueryStatus", "QueryStatus", "id-2", ""],
        ],
        name="Table_3",
    )
    return {"Tables": [result, properties, status, toc]}


@pytest.fixture
def v2_payload():
    return v2_frames()


@pytest.fixture
def v1_mgmt_payload():
    return {
        "Tables": [
            v1_table(
                [("ResourceTypeName", "String", "string"), ("StorageRoot", "String", "string")],
                [["TempStorage", "https://acct.blob.core.windows.net/c1?sas"]],
            )
        ]
    }


@pytest.fixture
def make_v2_frames():
    return v2_frames


@pytest.fixture
def make_v1_with_toc():
    return v1_response_with_toc
