"""
Queued ingestion: stage data in a blob, then post an ingestion message.

The ResourceManager supplies containers and queues ordered by storage
account health. Each upload or enqueue is tried against the candidates in
order; every outcome is fed back into the account ranking so failing
accounts drift to the end of the list.
"""

import logging
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional, TypeVar, Union

from config.config import KustoConfig
from core.errors.exceptions import EmptyResultError, KustoClientError
from core.logging.utilities import log_exception
from core.resilience.retry import DEFAULT_THROTTLING_RETRY, RetryConfig
from kusto_ingest.blob_info import IngestionBlobInfo
from kusto_ingest.descriptors import BlobDescriptor, CompressionType, FileDescriptor, StreamDescriptor
from kusto_ingest.ingestion_properties import IngestionProperties
from kusto_ingest.resource_manager import DEFAULT_REFRESH_PERIOD, CommandExecutor, ResourceManager
from kusto_ingest.resource_uri import ResourceURI
from kusto_ingest.storage import StorageClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseIngestClient:
    """Default ingestion properties shared by every ingest client."""

    def __init__(self, default_properties: Optional[IngestionProperties] = None):
        self.default_properties = default_properties or IngestionProperties()

    def _merged_properties(
        self, properties: Optional[IngestionProperties] = None
    ) -> IngestionProperties:
        merged = self.default_properties.merge(properties)
        merged.validate_for_ingestion()
        return merged


def blob_name_for(
    properties: IngestionProperties, source_id: str, compression: CompressionType
) -> str:
    """``{db}__{table}__{source_id}.{format}{compression}``"""
    format_suffix = f".{properties.format.value}" if properties.format else ""
    return (
        f"{properties.database}__{properties.table}__{source_id}"
        f"{format_suffix}{compression.value}"
    )


class QueuedIngestClient(BaseIngestClient):
    """
    Ingest through the data-management endpoint's storage queues.

    Args:
        kusto_client: Client for the data-management (``ingest-``) endpoint
        storage_client: Blob upload / queue access
        default_properties: Properties merged under every call's properties
        resource_manager: Shared resource cache; created when omitted
        refresh_period: Cache lifetime for a created resource manager
        retry_config: Throttling retry for a created resource manager
    """

    def __init__(
        self,
        kusto_client: CommandExecutor,
        storage_client: StorageClient,
        default_properties: Optional[IngestionProperties] = None,
        resource_manager: Optional[ResourceManager] = None,
        refresh_period: timedelta = DEFAULT_REFRESH_PERIOD,
        retry_config: RetryConfig = DEFAULT_THROTTLING_RETRY,
    ):
        super().__init__(default_properties)
        self.storage_client = storage_client
        self.resource_manager = resource_manager or ResourceManager(
            kusto_client, refresh_period=refresh_period, retry_config=retry_config
        )

    @classmethod
    def from_config(
        cls,
        config: KustoConfig,
        kusto_client: CommandExecutor,
        storage_client: StorageClient,
        default_properties: Optional[IngestionProperties] = None,
    ) -> "QueuedIngestClient":
        """Client whose resource cache follows the refresh and retry settings in ``config``."""
        if default_properties is None and config.database:
            default_properties = IngestionProperties(database=config.database)
        return cls(
            kusto_client,
            storage_client,
            default_properties=default_properties,
            refresh_period=config.resource_refresh_period,
            retry_config=config.throttle_retry_config(),
        )

    async def _try_each(
        self,
        resources: List[ResourceURI],
        action: Callable[[ResourceURI], Awaitable[T]],
        what: str,
    ) -> T:
        if not resources:
            raise EmptyResultError(f"No {what} available for ingestion")

        last_error: Optional[KustoClientError] = None
        for resource in resources:
            try:
                result = await action(resource)
            except KustoClientError as e:
                self.resource_manager.report_resource_usage_result(
                    resource.storage_account_name, False
                )
                log_exception(
                    logger,
                    e,
                    f"Storage operation on {what} failed, trying the next one",
                    level=logging.WARNING,
                    include_traceback=False,
                    storage_account=resource.storage_account_name,
                )
                last_error = e
                continue

            self.resource_manager.report_resource_usage_result(
                resource.storage_account_name, True
            )
            return result

        raise last_error

    async def ingest_from_blob(
        self,
        blob: Union[BlobDescriptor, str],
        properties: Optional[IngestionProperties] = None,
    ) -> str:
        """Post an ingestion message for a blob already in storage; returns the message id."""
        props = self._merged_properties(properties)
        descriptor = blob if isinstance(blob, BlobDescriptor) else BlobDescriptor(blob)

        queues = await self.resource_manager.get_ingestion_queues()
        authorization_context = await self.resource_manager.get_authorization_context()
        message = IngestionBlobInfo.from_descriptor(descriptor, props, authorization_context)
        payload = message.to_queue_message()

        message_id = await self._try_each(
            queues,
            lambda queue: self.storage_client.send_queue_message(queue, payload),
            "ingestion queues",
        )
        logger.info(
            "Queued blob for ingestion",
            extra={
                "database": props.database,
                "table": props.table,
                "source_id": descriptor.source_id,
            },
        )
        return message_id

    async def _upload(self, blob_name: str, data: bytes) -> str:
        containers = await self.resource_manager.get_containers()
        return await self._try_each(
            containers,
            lambda container: self.storage_client.upload_blob(container, blob_name, data),
            "containers",
        )

    async def ingest_from_stream(
        self,
        stream: Union[StreamDescriptor, bytes],
        properties: Optional[IngestionProperties] = None,
    ) -> str:
        props = self._merged_properties(properties)
        descriptor = stream if isinstance(stream, StreamDescriptor) else StreamDescriptor(stream)

        data, compression = descriptor.prepare(compress=props.format.compressible)
        blob_name = blob_name_for(props, descriptor.source_id, compression)
        url = await self._upload(blob_name, data)

        return await self.ingest_from_blob(
            BlobDescriptor(url, descriptor.size, descriptor.source_id), props
        )

    async def ingest_from_file(
        self,
        file: Union[FileDescriptor, str],
        properties: Optional[IngestionProperties] = None,
    ) -> str:
        props = self._merged_properties(properties)
        descriptor = file if isinstance(file, FileDescriptor) else FileDescriptor(file)

        data, compression = await descriptor.prepare(compress=props.format.compressible)
        blob_name = blob_name_for(props, descriptor.source_id, compression)
        url = await self._upload(blob_name, data)

        return await self.ingest_from_blob(
            BlobDescriptor(url, descriptor.size, descriptor.source_id), props
        )


__all__ = ["BaseIngestClient", "QueuedIngestClient", "blob_name_for"]
