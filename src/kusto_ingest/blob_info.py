"""
Queue message that tells the ingestion service to pick up a staged blob.
"""

import base64
import json
import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_serializer

from kusto_ingest.descriptors import BlobDescriptor
from kusto_ingest.ingestion_properties import IngestionProperties, ReportLevel, ReportMethod


def build_additional_properties(
    properties: IngestionProperties, authorization_context: str | None
) -> dict[str, Any]:
    """Service-side ingestion options carried in ``AdditionalProperties``."""
    additional: dict[str, Any] = dict(properties.additional_properties or {})
    additional["authorizationContext"] = authorization_context

    tags: list[str] = list(properties.additional_tags or [])
    tags.extend(f"drop-by:{tag}" for tag in properties.drop_by_tags or [])
    tags.extend(f"ingest-by:{tag}" for tag in properties.ingest_by_tags or [])
    if tags:
        additional["tags"] = tags

    if properties.ingest_if_not_exists:
        additional["ingestIfNotExists"] = list(properties.ingest_if_not_exists)

    if properties.ingestion_mapping_columns:
        # The service expects the inline mapping as a JSON string
        additional["ingestionMapping"] = json.dumps(
            [column.to_api_mapping() for column in properties.ingestion_mapping_columns]
        )
    if properties.ingestion_mapping_reference:
        additional["ingestionMappingReference"] = properties.ingestion_mapping_reference
    if properties.ingestion_mapping_columns or properties.ingestion_mapping_reference:
        kind = properties.effective_mapping_kind
        if kind is not None:
            additional["ingestionMappingType"] = kind.value

    if properties.validation_policy is not None:
        additional["ValidationPolicy"] = json.dumps(properties.validation_policy.to_dict())

    if properties.format:
        additional["format"] = properties.format.value

    return additional


class IngestionBlobInfo(BaseModel):
    """Schema for the ingestion queue message.

    Field names serialize to the service's PascalCase property names.

    Example:
        >>> info = IngestionBlobInfo.from_descriptor(blob, props, auth_context)
        >>> await storage.send_queue_message(queue, info.to_queue_message())
    """

    model_config = {"populate_by_name": True}

    blob_path: str = Field(..., alias="BlobPath", min_length=1)
    raw_data_size: int | None = Field(default=None, alias="RawDataSize")
    database_name: str | None = Field(default=None, alias="DatabaseName")
    table_name: str | None = Field(default=None, alias="TableName")
    retain_blob_on_success: bool = Field(default=True, alias="RetainBlobOnSuccess")
    flush_immediately: bool = Field(default=False, alias="FlushImmediately")
    ignore_size_limit: bool = Field(default=False, alias="IgnoreSizeLimit")
    report_level: ReportLevel | None = Field(default=None, alias="ReportLevel")
    report_method: ReportMethod | None = Field(default=None, alias="ReportMethod")
    source_message_creation_time: datetime = Field(
        default_factory=lambda: datetime.now(UTC), alias="SourceMessageCreationTime"
    )
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="Id")
    additional_properties: dict[str, Any] = Field(
        default_factory=dict, alias="AdditionalProperties"
    )

    @field_serializer("source_message_creation_time")
    def serialize_creation_time(self, value: datetime) -> str:
        return value.isoformat()

    @field_serializer("report_level", "report_method")
    def serialize_enum(self, value: ReportLevel | ReportMethod | None) -> int | None:
        return int(value) if value is not None else None

    @classmethod
    def from_descriptor(
        cls,
        blob: BlobDescriptor,
        properties: IngestionProperties,
        authorization_context: str | None = None,
    ) -> "IngestionBlobInfo":
        return cls(
            blob_path=blob.path,
            raw_data_size=blob.size,
            database_name=properties.database,
            table_name=properties.table,
            flush_immediately=bool(properties.flush_immediately),
            report_level=properties.report_level,
            report_method=properties.report_method,
            id=blob.source_id,
            additional_properties=build_additional_properties(properties, authorization_context),
        )

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True))

    def to_queue_message(self) -> str:
        """Base64-encoded JSON, the form the ingestion queues expect."""
        return base64.b64encode(self.to_json().encode("utf-8")).decode("ascii")


__all__ = ["IngestionBlobInfo", "build_additional_properties"]
