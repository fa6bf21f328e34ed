"""Shared fakes for the ingestion tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from kusto_data.response import parse_v1
from kusto_ingest.resource_manager import (
    IDENTITY_TOKEN_COMMAND,
    INGESTION_RESOURCES_COMMAND,
    ResourceManager,
)
from kusto_ingest.resource_uri import ResourceURI
from kusto_ingest.storage import blob_url


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def resources_dataset(rows):
    """V1 dataset shaped like the ``.get ingestion resources`` answer."""
    return parse_v1(
        {
            "Tables": [
                {
                    "TableName": "Table_0",
                    "Columns": [
                        {"ColumnName": "ResourceTypeName", "DataType": "String"},
                        {"ColumnName": "StorageRoot", "DataType": "String"},
                    ],
                    "Rows": [list(row) for row in rows],
                }
            ]
        }
    )


def identity_dataset(token="auth-context-token"):
    return parse_v1(
        {
            "Tables": [
                {
                    "TableName": "Table_0",
                    "Columns": [{"ColumnName": "AuthorizationContext", "DataType": "String"}],
                    "Rows": [[token]] if token is not None else [],
                }
            ]
        }
    )


DEFAULT_RESOURCE_ROWS = [
    ("SecuredReadyForAggregationQueue", "https://acct1.queue.core.windows.net/readyforaggregation?sas=q1"),
    ("SecuredReadyForAggregationQueue", "https://acct2.queue.core.windows.net/readyforaggregation?sas=q2"),
    ("FailedIngestionsQueue", "https://acct1.queue.core.windows.net/failedingestions?sas=f1"),
    ("SuccessfulIngestionsQueue", "https://acct1.queue.core.windows.net/successfulingestions?sas=s1"),
    ("TempStorage", "https://acct1.blob.core.windows.net/tempstorage?sas=c1"),
    ("TempStorage", "https://acct2.blob.core.windows.net/tempstorage?sas=c2"),
]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_resources_dataset():
    return resources_dataset


@pytest.fixture
def make_identity_dataset():
    return identity_dataset


@pytest.fixture
def dm_client():
    """Data-management client answering both resource commands."""

    async def execute(database, command):
        if command == INGESTION_RESOURCES_COMMAND:
            return resources_dataset(DEFAULT_RESOURCE_ROWS)
        if command == IDENTITY_TOKEN_COMMAND:
            return identity_dataset()
        raise AssertionError(f"unexpected command {command}")

    client = MagicMock()
    client.execute = AsyncMock(side_effect=execute)
    return client


@pytest.fixture
def resource_manager(dm_client, clock):
    return ResourceManager(dm_client, time_provider=clock, sleep=AsyncMock())


@pytest.fixture
def storage_client():
    client = MagicMock()
    client.upload_blob = AsyncMock(
        side_effect=lambda container, name, data: blob_url(container, name)
    )
    client.send_queue_message = AsyncMock(return_value="message-id")
    client.peek_queue_messages = AsyncMock(return_value=[])
    client.receive_queue_messages = AsyncMock(return_value=[])
    client.delete_queue_message = AsyncMock()
    client.get_blob_size = AsyncMock(return_value=0)
    return client


@pytest.fixture
def queue_uri():
    return ResourceURI.parse("https://acct1.queue.core.windows.net/readyforaggregation?sas=q1")
