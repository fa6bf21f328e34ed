"""
Ingestion status queues.

When ingestion properties ask for reporting, the service posts a message per
source to the successful / failed ingestions queues. Messages are spread
across several queues; reads sample the queues in random order so no single
queue is drained first.
"""

import base64
import json
import logging
import random
from typing import Awaitable, Callable, Dict, Generic, List, Tuple, Type, TypeVar

from pydantic import BaseModel, Field

from kusto_ingest.resource_manager import ResourceManager
from kusto_ingest.resource_uri import ResourceURI
from kusto_ingest.storage import MAX_MESSAGES_PER_REQUEST, QueueMessage, StorageClient

logger = logging.getLogger(__name__)


class StatusMessage(BaseModel):
    """Fields common to success and failure reports."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    operation_id: str | None = Field(default=None, alias="OperationId")
    database: str | None = Field(default=None, alias="Database")
    table: str | None = Field(default=None, alias="Table")
    ingestion_source_id: str | None = Field(default=None, alias="IngestionSourceId")
    ingestion_source_path: str | None = Field(default=None, alias="IngestionSourcePath")
    root_activity_id: str | None = Field(default=None, alias="RootActivityId")

    @classmethod
    def from_queue_content(cls, content: str):
        """Decode a base64 queue payload."""
        return cls.model_validate(json.loads(base64.b64decode(content).decode("utf-8")))


class SuccessMessage(StatusMessage):
    succeeded_on: str | None = Field(default=None, alias="SucceededOn")


class FailureMessage(StatusMessage):
    failed_on: str | None = Field(default=None, alias="FailedOn")
    details: str | None = Field(default=None, alias="Details")
    error_code: str | None = Field(default=None, alias="ErrorCode")
    failure_status: str | None = Field(default=None, alias="FailureStatus")
    originates_from_update_policy: bool | None = Field(
        default=None, alias="OriginatesFromUpdatePolicy"
    )
    should_retry: bool | None = Field(default=None, alias="ShouldRetry")


M = TypeVar("M", bound=StatusMessage)

QueueReader = Callable[[ResourceURI, int], Awaitable[List[QueueMessage]]]


class StatusQueue(Generic[M]):
    """
    One logical status queue backed by several storage queues.

    Args:
        get_queues: Coroutine returning the current queue locators
        message_cls: Model the messages decode to
        storage_client: Queue access
    """

    def __init__(
        self,
        get_queues: Callable[[], Awaitable[List[ResourceURI]]],
        message_cls: Type[M],
        storage_client: StorageClient,
    ):
        self.get_queues = get_queues
        self.message_cls = message_cls
        self.storage_client = storage_client

    def decode(self, message: QueueMessage) -> M:
        return self.message_cls.from_queue_content(message.content)

    async def _collect(
        self,
        queues: List[ResourceURI],
        per_queue: int,
        limit: int,
        read: QueueReader,
        remove: bool,
        skip: Dict[str, int],
    ) -> Tuple[List[M], List[ResourceURI]]:
        """
        Read up to ``per_queue`` from each queue until ``limit`` messages are
        gathered. ``skip`` counts messages already peeked per queue and is
        updated in place. Returns the messages and the queues that filled
        their share (and may hold more).
        """
        result: List[M] = []
        full: List[ResourceURI] = []

        for queue in queues:
            wanted = min(per_queue, limit - len(result))
            if wanted <= 0:
                break
            key = queue.to_uri()
            if remove:
                messages = await self._receive(queue, wanted, read)
            else:
                messages = await self._peek(queue, skip.get(key, 0), wanted, read)
            if len(messages) == wanted:
                full.append(queue)
            result.extend(self.decode(message) for message in messages)
            skip[key] = skip.get(key, 0) + len(messages)

        return result, full

    async def _peek(
        self, queue: ResourceURI, already: int, wanted: int, read: QueueReader
    ) -> List[QueueMessage]:
        # Peeking always starts at the head of the queue and sees at most
        # MAX_MESSAGES_PER_REQUEST messages
        size = min(already + wanted, MAX_MESSAGES_PER_REQUEST)
        if size <= already:
            return []
        return (await read(queue, size))[already:size]

    async def _receive(self, queue: ResourceURI, wanted: int, read: QueueReader) -> List[QueueMessage]:
        # Received messages are deleted batch by batch so the next call sees new ones
        messages: List[QueueMessage] = []
        while len(messages) < wanted:
            size = min(wanted - len(messages), MAX_MESSAGES_PER_REQUEST)
            batch = await read(queue, size)
            for message in batch:
                await self.storage_client.delete_queue_message(queue, message)
            messages.extend(batch)
            if len(batch) < size:
                break
        return messages

    async def _read(self, n: int, read: QueueReader, remove: bool) -> List[M]:
        if n <= 0:
            return []
        queues = list(await self.get_queues())
        if not queues:
            return []
        random.shuffle(queues)

        # First pass spreads the request evenly, second pass tops up from
        # whichever queues still had messages
        skip: Dict[str, int] = {}
        per_queue = max(1, n // len(queues))
        result, full = await self._collect(queues, per_queue, n, read, remove, skip)

        remaining = n - len(result)
        if remaining > 0 and full:
            more, _ = await self._collect(full, remaining, remaining, read, remove, skip)
            result.extend(more)

        logger.debug(
            "Read status messages",
            extra={
                "message_type": self.message_cls.__name__,
                "requested": n,
                "returned": len(result),
                "removed": remove,
            },
        )
        return result

    async def peek(self, n: int = 1) -> List[M]:
        """Up to ``n`` messages, left on the queues."""
        return await self._read(n, self.storage_client.peek_queue_messages, remove=False)

    async def pop(self, n: int = 1) -> List[M]:
        """Up to ``n`` messages, deleted from the queues once read."""
        return await self._read(n, self.storage_client.receive_queue_messages, remove=True)

    async def is_empty(self) -> bool:
        queues = await self.get_queues()
        for queue in queues:
            if await self.storage_client.peek_queue_messages(queue, 1):
                return False
        return True


class IngestionStatusQueues:
    """Success and failure status queues of one ingest client's resources."""

    def __init__(self, resource_manager: ResourceManager, storage_client: StorageClient):
        self.success: StatusQueue[SuccessMessage] = StatusQueue(
            resource_manager.get_successful_ingestions_queues, SuccessMessage, storage_client
        )
        self.failure: StatusQueue[FailureMessage] = StatusQueue(
            resource_manager.get_failed_ingestions_queues, FailureMessage, storage_client
        )


__all__ = [
    "StatusMessage",
    "SuccessMessage",
    "FailureMessage",
    "StatusQueue",
    "IngestionStatusQueues",
]
