"""
Storage access for queued ingestion.

StorageClient is the seam between the ingest clients and Azure Storage;
tests substitute an AsyncMock. AzureStorageClient talks to the SAS-signed
containers and queues handed out by the ResourceManager.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol
from urllib.parse import quote

from azure.core.exceptions import AzureError
from azure.storage.blob.aio import BlobClient, ContainerClient
from azure.storage.queue.aio import QueueClient

from core.errors.classifiers import KustoResponseClassifier
from kusto_ingest.resource_uri import ResourceURI

logger = logging.getLogger(__name__)

# Azure Storage queues hand out at most this many messages per call
MAX_MESSAGES_PER_REQUEST = 32


@dataclass
class QueueMessage:
    """A message read from a status queue. ``content`` is the raw (base64) text."""

    id: str
    content: str
    pop_receipt: Optional[str] = None


class StorageClient(Protocol):
    async def upload_blob(self, container: ResourceURI, blob_name: str, data: bytes) -> str:
        """Upload ``data`` and return the SAS-signed blob URL."""
        ...

    async def get_blob_size(self, blob_uri: str) -> int:
        """Size in bytes of the blob at ``blob_uri``."""
        ...

    async def send_queue_message(self, queue: ResourceURI, payload: str) -> str:
        """Enqueue ``payload`` and return the message id."""
        ...

    async def peek_queue_messages(self, queue: ResourceURI, max_messages: int) -> List[QueueMessage]:
        ...

    async def receive_queue_messages(
        self, queue: ResourceURI, max_messages: int
    ) -> List[QueueMessage]:
        ...

    async def delete_queue_message(self, queue: ResourceURI, message: QueueMessage) -> None:
        ...


def blob_url(container: ResourceURI, blob_name: str) -> str:
    """SAS-signed URL of ``blob_name`` inside ``container``; the name is percent-encoded."""
    return f"{container.account_url}/{container.object_name}/{quote(blob_name)}?{container.sas}"


class AzureStorageClient:
    """StorageClient over azure-storage-blob / azure-storage-queue (async)."""

    def __init__(self, max_single_put_size: Optional[int] = None):
        self.max_single_put_size = max_single_put_size

    async def upload_blob(self, container: ResourceURI, blob_name: str, data: bytes) -> str:
        ctx = {"storage_account": container.storage_account_name, "blob_name": blob_name}
        client_kwargs = {}
        if self.max_single_put_size:
            client_kwargs["max_single_put_size"] = self.max_single_put_size
        try:
            async with ContainerClient.from_container_url(
                container.to_uri(), **client_kwargs
            ) as container_client:
                await container_client.upload_blob(blob_name, data, overwrite=True)
        except AzureError as e:
            raise KustoResponseClassifier.classify_storage_error(e, context=ctx) from e

        logger.debug("Uploaded blob", extra={**ctx, "size_bytes": len(data)})
        return blob_url(container, blob_name)

    async def get_blob_size(self, blob_uri: str) -> int:
        ctx = {"blob": blob_uri.split("?", 1)[0]}
        try:
            async with BlobClient.from_blob_url(blob_uri) as blob_client:
                blob_properties = await blob_client.get_blob_properties()
        except AzureError as e:
            raise KustoResponseClassifier.classify_storage_error(e, context=ctx) from e
        return blob_properties.size

    async def send_queue_message(self, queue: ResourceURI, payload: str) -> str:
        ctx = {"storage_account": queue.storage_account_name, "queue_name": queue.object_name}
        try:
            async with QueueClient.from_queue_url(queue.to_uri()) as queue_client:
                message = await queue_client.send_message(payload)
        except AzureError as e:
            raise KustoResponseClassifier.classify_storage_error(e, context=ctx) from e

        logger.debug("Enqueued ingestion message", extra={**ctx, "message_id": message.id})
        return message.id

    async def peek_queue_messages(self, queue: ResourceURI, max_messages: int) -> List[QueueMessage]:
        """Messages at the head of the queue; only the first 32 can be peeked."""
        max_messages = min(max_messages, MAX_MESSAGES_PER_REQUEST)
        ctx = {"storage_account": queue.storage_account_name, "queue_name": queue.object_name}
        try:
            async with QueueClient.from_queue_url(queue.to_uri()) as queue_client:
                messages = await queue_client.peek_messages(max_messages=max_messages)
        except AzureError as e:
            raise KustoResponseClassifier.classify_storage_error(e, context=ctx) from e
        return [QueueMessage(id=m.id, content=m.content) for m in messages]

    async def receive_queue_messages(
        self, queue: ResourceURI, max_messages: int
    ) -> List[QueueMessage]:
        ctx = {"storage_account": queue.storage_account_name, "queue_name": queue.object_name}
        result: List[QueueMessage] = []
        try:
            async with QueueClient.from_queue_url(queue.to_uri()) as queue_client:
                async for m in queue_client.receive_messages(
                    messages_per_page=min(max_messages, MAX_MESSAGES_PER_REQUEST),
                    max_messages=max_messages,
                ):
                    result.append(
                        QueueMessage(id=m.id, content=m.content, pop_receipt=m.pop_receipt)
                    )
        except AzureError as e:
            raise KustoResponseClassifier.classify_storage_error(e, context=ctx) from e
        return result

    async def delete_queue_message(self, queue: ResourceURI, message: QueueMessage) -> None:
        ctx = {"storage_account": queue.storage_account_name, "queue_name": queue.object_name}
        try:
            async with QueueClient.from_queue_url(queue.to_uri()) as queue_client:
                await queue_client.delete_message(message.id, message.pop_receipt)
        except AzureError as e:
            raise KustoResponseClassifier.classify_storage_error(e, context=ctx) from e


__all__ = [
    "MAX_MESSAGES_PER_REQUEST",
    "StorageClient",
    "AzureStorageClient",
    "QueueMessage",
    "blob_url",
]
