"""
Streaming ingestion straight into the engine, and the managed variant that
falls back to queued ingestion.
"""

import logging
from typing import Awaitable, Callable, Optional, Union

from core.errors.exceptions import PermanentError, RetriesExceededError
from core.logging.utilities import log_exception
from core.resilience.retry import RetryConfig, is_transient_failure, retry_async
from kusto_data.client import KustoClient
from kusto_data.request_properties import ClientRequestProperties
from kusto_data.response import KustoResponseDataSet
from kusto_ingest.descriptors import BlobDescriptor, FileDescriptor, StreamDescriptor
from kusto_ingest.ingest_client import BaseIngestClient, QueuedIngestClient
from kusto_ingest.ingestion_properties import IngestionProperties

logger = logging.getLogger(__name__)

MAX_STREAMING_SIZE_BYTES = 4 * 1024 * 1024
STREAMING_RETRY = RetryConfig(max_attempts=3, base_delay=1.0, max_jitter=1.0)


class StreamingIngestClient(BaseIngestClient):
    """Ingest small payloads through the engine's streaming endpoint."""

    def __init__(
        self,
        kusto_client: KustoClient,
        default_properties: Optional[IngestionProperties] = None,
    ):
        super().__init__(default_properties)
        self.kusto_client = kusto_client

    async def ingest_from_stream(
        self,
        stream: Union[StreamDescriptor, bytes],
        properties: Optional[IngestionProperties] = None,
        request_properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        props = self._merged_properties(properties)
        descriptor = stream if isinstance(stream, StreamDescriptor) else StreamDescriptor(stream)

        # The endpoint takes gzip bodies only
        data, _ = descriptor.prepare(compress=True)
        return await self.kusto_client.execute_streaming_ingest(
            props.database,
            props.table,
            data,
            props.format.value,
            mapping_name=props.ingestion_mapping_reference,
            properties=request_properties,
        )

    async def ingest_from_file(
        self,
        file: Union[FileDescriptor, str],
        properties: Optional[IngestionProperties] = None,
        request_properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        descriptor = file if isinstance(file, FileDescriptor) else FileDescriptor(file)
        data, compression = await descriptor.prepare(compress=True)
        stream = StreamDescriptor(
            data, descriptor.source_id, compression_type=compression, size=descriptor.size
        )
        return await self.ingest_from_stream(stream, properties, request_properties)


    async def ingest_from_blob(
        self,
        blob: Union[BlobDescriptor, str],
        properties: Optional[IngestionProperties] = None,
        request_properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        """The engine reads the blob itself; ``blob`` must carry a SAS or be otherwise readable."""
        props = self._merged_properties(properties)
        descriptor = blob if isinstance(blob, BlobDescriptor) else BlobDescriptor(blob)
        return await self.kusto_client.execute_streaming_ingest_from_blob(
            props.database,
            props.table,
            descriptor.path,
            props.format.value,
            mapping_name=props.ingestion_mapping_reference,
            properties=request_properties,
        )


class ManagedStreamingIngestClient(BaseIngestClient):
    """
    Streaming ingestion with a queued fallback.

    Payloads up to ``max_streaming_size`` bytes are streamed, retrying
    transient failures with exponential backoff; permanent failures
    propagate at once. When retries run out, or the payload is too big to
    stream, the data goes through queued ingestion instead.
    """

    def __init__(
        self,
        streaming_client: StreamingIngestClient,
        queued_client: QueuedIngestClient,
        default_properties: Optional[IngestionProperties] = None,
        retry_config: RetryConfig = STREAMING_RETRY,
        max_streaming_size: int = MAX_STREAMING_SIZE_BYTES,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        super().__init__(default_properties)
        self.streaming_client = streaming_client
        self.queued_client = queued_client
        self.retry_config = retry_config
        self.max_streaming_size = max_streaming_size
        self._sleep = sleep

    async def ingest_from_stream(
        self,
        stream: Union[StreamDescriptor, bytes],
        properties: Optional[IngestionProperties] = None,
    ) -> Union[KustoResponseDataSet, str]:
        props = self._merged_properties(properties)
        descriptor = stream if isinstance(stream, StreamDescriptor) else StreamDescriptor(stream)

        data = descriptor.read()
        buffered = StreamDescriptor(
            data,
            descriptor.source_id,
            compression_type=descriptor.compression_type,
            size=descriptor.size,
        )
        ctx = {"database": props.database, "table": props.table, "size_bytes": len(data)}

        if len(data) > self.max_streaming_size:
            logger.info("Payload too large for streaming, using queued ingestion", extra=ctx)
            return await self.queued_client.ingest_from_stream(buffered, props)

        result = await self._stream_with_retry(
            "FromStream",
            buffered.source_id,
            lambda request_props: self.streaming_client.ingest_from_stream(
                buffered, props, request_props
            ),
            ctx,
        )
        if result is not None:
            return result
        return await self.queued_client.ingest_from_stream(buffered, props)

    async def ingest_from_blob(
        self,
        blob: Union[BlobDescriptor, str],
        properties: Optional[IngestionProperties] = None,
    ) -> Union[KustoResponseDataSet, str]:
        """Stream a blob when it is small enough, otherwise queue it."""
        props = self._merged_properties(properties)
        descriptor = blob if isinstance(blob, BlobDescriptor) else BlobDescriptor(blob)

        if not descriptor.size:
            descriptor.size = await self.queued_client.storage_client.get_blob_size(
                descriptor.path
            )
            if not descriptor.size:
                raise PermanentError(
                    "Empty blob", context={"blob": descriptor.path.split("?", 1)[0]}
                )

        ctx = {"database": props.database, "table": props.table, "size_bytes": descriptor.size}
        if descriptor.size > self.max_streaming_size:
            logger.info("Blob too large for streaming, using queued ingestion", extra=ctx)
            return await self.queued_client.ingest_from_blob(descriptor, props)

        result = await self._stream_with_retry(
            "FromBlob",
            descriptor.source_id,
            lambda request_props: self.streaming_client.ingest_from_blob(
                descriptor, props, request_props
            ),
            ctx,
        )
        if result is not None:
            return result
        return await self.queued_client.ingest_from_blob(descriptor, props)

    async def _stream_with_retry(
        self,
        source_kind: str,
        source_id: str,
        attempt: Callable[[ClientRequestProperties], Awaitable[KustoResponseDataSet]],
        ctx: dict,
    ) -> Optional[KustoResponseDataSet]:
        """
        Run ``attempt`` under the retry policy. Returns None once retries run
        out; permanent errors propagate. Each attempt gets its own request id.
        """
        retry = (
            self.retry_config.new_retry(self._sleep)
            if self._sleep
            else self.retry_config.new_retry()
        )

        def request_properties() -> ClientRequestProperties:
            return ClientRequestProperties(
                client_request_id=(
                    f"KPC.executeManagedStreamingIngest{source_kind};"
                    f"{source_id};{retry.current_attempt}"
                )
            )

        try:
            return await retry_async(
                lambda: attempt(request_properties()),
                retry,
                operation_name="streaming ingest",
                should_retry=is_transient_failure,
            )
        except RetriesExceededError as e:
            log_exception(
                logger,
                e,
                "Streaming ingestion failed, falling back to queued ingestion",
                level=logging.WARNING,
                include_traceback=False,
                **ctx,
            )
        return None

    async def ingest_from_file(
        self,
        file: Union[FileDescriptor, str],
        properties: Optional[IngestionProperties] = None,
    ) -> Union[KustoResponseDataSet, str]:
        descriptor = file if isinstance(file, FileDescriptor) else FileDescriptor(file)
        data, compression = await descriptor.prepare(compress=False)
        stream = StreamDescriptor(
            data, descriptor.source_id, compression_type=compression, size=descriptor.size
        )
        return await self.ingest_from_stream(stream, properties)


__all__ = [
    "StreamingIngestClient",
    "ManagedStreamingIngestClient",
    "MAX_STREAMING_SIZE_BYTES",
    "STREAMING_RETRY",
]
