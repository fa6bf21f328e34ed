"""
Async Kusto ingestion clients.

Components:
    - QueuedIngestClient: Stage data in blob storage and post ingestion messages
    - StreamingIngestClient / ManagedStreamingIngestClient: Streaming ingestion
      with a queued fallback
    - ResourceManager: Cached ingestion queues, containers and auth context
    - RankedStorageAccountSet: Storage-account health ranking
    - IngestionProperties: Target, format, mappings and reporting options
    - IngestionStatusQueues: Success / failure reports
"""

from kusto_ingest.blob_info import IngestionBlobInfo
from kusto_ingest.descriptors import (
    BlobDescriptor,
    CompressionType,
    FileDescriptor,
    StreamDescriptor,
)
from kusto_ingest.ingest_client import QueuedIngestClient
from kusto_ingest.ingestion_properties import (
    ColumnMapping,
    DataFormat,
    IngestionMappingKind,
    IngestionProperties,
    ReportLevel,
    ReportMethod,
    ValidationImplications,
    ValidationOptions,
    ValidationPolicy,
)
from kusto_ingest.ranked_storage import RankedStorageAccount, RankedStorageAccountSet
from kusto_ingest.resource_manager import IngestClientResources, ResourceManager
from kusto_ingest.resource_uri import ResourceURI
from kusto_ingest.status import (
    FailureMessage,
    IngestionStatusQueues,
    StatusQueue,
    SuccessMessage,
)
from kusto_ingest.storage import AzureStorageClient, QueueMessage, StorageClient
from kusto_ingest.streaming_ingest_client import (
    ManagedStreamingIngestClient,
    StreamingIngestClient,
)

__all__ = [
    "QueuedIngestClient",
    "StreamingIngestClient",
    "ManagedStreamingIngestClient",
    "ResourceManager",
    "IngestClientResources",
    "ResourceURI",
    "RankedStorageAccount",
    "RankedStorageAccountSet",
    "IngestionProperties",
    "DataFormat",
    "IngestionMappingKind",
    "ColumnMapping",
    "ReportLevel",
    "ReportMethod",
    "ValidationOptions",
    "ValidationImplications",
    "ValidationPolicy",
    "BlobDescriptor",
    "StreamDescriptor",
    "FileDescriptor",
    "CompressionType",
    "IngestionBlobInfo",
    "StorageClient",
    "AzureStorageClient",
    "QueueMessage",
    "StatusQueue",
    "IngestionStatusQueues",
    "SuccessMessage",
    "FailureMessage",
]
