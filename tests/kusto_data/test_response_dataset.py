"""
Tests for V1 and V2 response parsing and error counting.
"""

import pytest

from kusto_data.models import WellKnownDataSet
from kusto_data.response import (
    V1_PROTOCOL,
    V2_PROTOCOL,
    parse_response,
    parse_v1,
    parse_v2,
)


class TestParseV2:

    def test_tables_classified(self, v2_payload):
        dataset = parse_v2(v2_payload)

        assert dataset.version == "2.0"
        assert len(dataset.tables) == 3
        assert len(dataset.primary_results) == 1
        assert dataset.status_table is not None
        assert dataset.table_names == [
            "@ExtendedProperties",
            "PrimaryResult",
            "QueryCompletionInformation",
        ]

    def test_header_and_completion_frames_kept(self, v2_payload):
        dataset = parse_v2(v2_payload)
        assert dataset.data_set_header["Version"] == "v2.0"
        assert dataset.data_set_completion["FrameType"] == "DataSetCompletion"

    def test_primary_rows_decoded(self, v2_payload):
        rows = list(parse_v2(v2_payload).primary_results[0].rows())
        assert rows[0]["State"] == "TEXAS"
        assert rows[0]["Duration"].total_seconds() == 5400
        assert rows[1]["StartTime"].microsecond == 123456

    def test_no_errors(self, v2_payload):
        dataset = parse_v2(v2_payload)
        assert dataset.get_errors_count() == 0
        assert dataset.get_exceptions() == []

    def test_only_most_severe_level_counted(self, make_v2_frames):
        dataset = parse_v2(make_v2_frames(status_levels=[0, 1, 1]))
        assert dataset.get_errors_count() == 1

    def test_same_level_errors_summed(self, make_v2_frames):
        dataset = parse_v2(make_v2_frames(status_levels=[2, 4, 2]))
        assert dataset.get_errors_count() == 2

    def test_informational_rows_ignored(self, make_v2_frames):
        dataset = parse_v2(make_v2_frames(status_levels=[4, 5]))
        assert dataset.get_errors_count() == 0

    def test_has_errors_adds_one(self, make_v2_frames):
        dataset = parse_v2(make_v2_frames(status_levels=[1], has_errors=True))
        assert dataset.get_errors_count() == 2

    def test_exceptions_describe_error_rows(self, make_v2_frames):
        dataset = parse_v2(make_v2_frames(status_levels=[2, 4]))
        assert dataset.get_exceptions() == [
            "Please provide the following data to Kusto: CRID=crid-1 Description: payload 0"
        ]

    def test_one_api_errors_reported(self, make_v2_frames):
        frames = make_v2_frames(
            has_errors=True,
            one_api_errors=[{"error": {"code": "LimitsExceeded", "@message": "Too many rows"}}],
        )
        dataset = parse_v2(frames)
        assert dataset.get_errors_count() == 1
        assert dataset.get_exceptions() == ["Too many rows"]

    def test_inline_table_error_kept_out_of_rows(self, make_v2_frames):
        frames = make_v2_frames(has_errors=True)
        primary = frames[2]
        primary["Rows"].append(
            {"OneApiErrors": [{"error": {"code": "LimitsExceeded", "@message": "Query aborted"}}]}
        )

        dataset = parse_v2(frames)
        table = dataset.primary_results[0]

        assert [row["State"] for row in table.rows()] == ["TEXAS", "KANSAS"]
        assert table.row_count == 2
        assert table.row_errors == ["Query aborted"]
        assert dataset.get_errors_count() == 2
        assert dataset.get_exceptions() == ["Query aborted"]

    def test_unknown_table_kind_not_primary(self):
        dataset = parse_v2(
            [{"FrameType": "DataTable", "TableKind": "QueryTraceLog", "TableName": "Log"}]
        )
        assert dataset.primary_results == []
        assert dataset.status_table is None


class TestParseV1:

    def test_single_table_is_primary(self, v1_mgmt_payload):
        dataset = parse_v1(v1_mgmt_payload)

        assert dataset.version == "1.0"
        assert len(dataset.primary_results) == 1
        assert dataset.primary_results[0].id == 0
        row = dataset.primary_results[0][0]
        assert row["ResourceTypeName"] == "TempStorage"

    def test_second_table_is_query_properties(self, v1_mgmt_payload):
        payload = {"Tables": v1_mgmt_payload["Tables"] * 2}
        dataset = parse_v1(payload)

        assert dataset.tables[1].kind is WellKnownDataSet.QUERY_PROPERTIES
        assert dataset.tables[1].id == 1
        assert len(dataset.primary_results) == 1

    def test_accepts_table_list(self, v1_mgmt_payload):
        dataset = parse_v1(v1_mgmt_payload["Tables"])
        assert len(dataset.primary_results) == 1

    def test_table_of_contents_names_tables(self, make_v1_with_toc):
        dataset = parse_v1(make_v1_with_toc())

        assert dataset.table_names == [
            "PrimaryResult",
            "@ExtendedProperties",
            "QueryStatus",
            "Table_3",
        ]
        assert dataset.tables[0].id == "id-0"
        assert dataset.tables[-1].kind is WellKnownDataSet.TABLE_OF_CONTENTS
        assert len(dataset.primary_results) == 1
        assert dataset.status_table is dataset.tables[2]

    def test_status_rows_use_v1_columns(self, make_v1_with_toc):
        dataset = parse_v1(make_v1_with_toc(status_severities=[0, 4, 0]))

        assert dataset.get_errors_count() == 2
        assert dataset.get_exceptions() == [
            "Please provide the following data to Kusto: CRID=activity-1 Description: status 0",
            "Please provide the following data to Kusto: CRID=activity-1 Description: status 2",
        ]

    def test_empty_response(self):
        dataset = parse_v1({"Tables": []})
        assert dataset.tables == []
        assert dataset.get_errors_count() == 0


class TestParseResponse:

    def test_dispatch(self, v2_payload, v1_mgmt_payload):
        assert parse_response(v2_payload, "2.0").protocol == V2_PROTOCOL
        assert parse_response(v1_mgmt_payload, "1.0").protocol == V1_PROTOCOL

    def test_unknown_version(self):
        with pytest.raises(ValueError, match="Unsupported response protocol version"):
            parse_response({}, "3.0")
