"""
Tests for the ingestion queue message.
"""

import base64
import json
import uuid

from kusto_ingest.blob_info import IngestionBlobInfo, build_additional_properties
from kusto_ingest.descriptors import BlobDescriptor
from kusto_ingest.ingestion_properties import (
    ColumnMapping,
    DataFormat,
    IngestionProperties,
    ReportLevel,
    ValidationPolicy,
)

BLOB_URL = "https://acct.blob.core.windows.net/tempstorage/db__t__id.csv.gz?sig=s"


class TestBuildAdditionalProperties:

    def test_minimal(self):
        props = IngestionProperties(database="db", table="t")
        assert build_additional_properties(props, "ctx") == {
            "authorizationContext": "ctx",
            "format": "csv",
        }

    def test_tags(self):
        props = IngestionProperties(
            database="db",
            table="t",
            additional_tags=["t1"],
            drop_by_tags=["d1"],
            ingest_by_tags=["i1", "i2"],
            ingest_if_not_exists=["i1"],
        )
        additional = build_additional_properties(props, "ctx")

        assert additional["tags"] == ["t1", "drop-by:d1", "ingest-by:i1", "ingest-by:i2"]
        assert additional["ingestIfNotExists"] == ["i1"]

    def test_inline_mapping_serialized_as_string(self):
        props = IngestionProperties(
            database="db",
            table="t",
            format=DataFormat.JSON,
            ingestion_mapping_columns=[ColumnMapping.json_with_path("A", "$.a", "string")],
        )
        additional = build_additional_properties(props, None)

        assert json.loads(additional["ingestionMapping"]) == [
            {"Column": "A", "DataType": "string", "Properties": {"Path": "$.a"}}
        ]
        assert additional["ingestionMappingType"] == "Json"
        assert "ingestionMappingReference" not in additional

    def test_mapping_reference(self):
        props = IngestionProperties(
            database="db", table="t", format=DataFormat.PARQUET, ingestion_mapping_reference="m"
        )
        additional = build_additional_properties(props, None)
        assert additional["ingestionMappingReference"] == "m"
        assert additional["ingestionMappingType"] == "Parquet"

    def test_validation_policy(self):
        props = IngestionProperties(database="db", table="t", validation_policy=ValidationPolicy())
        additional = build_additional_properties(props, None)
        assert json.loads(additional["ValidationPolicy"]) == {
            "ValidationOptions": 0,
            "ValidationImplications": 1,
        }

    def test_pass_through_properties_kept(self):
        props = IngestionProperties(
            database="db", table="t", additional_properties={"creationTime": "2024-01-01"}
        )
        assert build_additional_properties(props, None)["creationTime"] == "2024-01-01"


class TestIngestionBlobInfo:

    def test_from_descriptor(self):
        source_id = str(uuid.uuid4())
        blob = BlobDescriptor(BLOB_URL, size=1234, source_id=source_id)
        props = IngestionProperties(
            database="db",
            table="t",
            flush_immediately=True,
            report_level=ReportLevel.FAILURES_AND_SUCCESSES,
        )

        message = json.loads(IngestionBlobInfo.from_descriptor(blob, props, "ctx").to_json())

        assert message["BlobPath"] == BLOB_URL
        assert message["RawDataSize"] == 1234
        assert message["DatabaseName"] == "db"
        assert message["TableName"] == "t"
        assert message["RetainBlobOnSuccess"] is True
        assert message["FlushImmediately"] is True
        assert message["IgnoreSizeLimit"] is False
        assert message["ReportLevel"] == 2
        assert message["ReportMethod"] == 0
        assert message["Id"] == source_id
        assert message["AdditionalProperties"]["authorizationContext"] == "ctx"
        assert "+00:00" in message["SourceMessageCreationTime"]

    def test_queue_message_is_base64_json(self):
        info = IngestionBlobInfo(blob_path=BLOB_URL)

        decoded = json.loads(base64.b64decode(info.to_queue_message()))

        assert decoded["BlobPath"] == BLOB_URL
        assert decoded["ReportLevel"] is None
        assert uuid.UUID(decoded["Id"]).version == 4
