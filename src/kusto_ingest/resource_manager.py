"""
Cached ingestion resources from the data-management endpoint.

The service hands out SAS-signed queue and container locators plus an
authorization context that goes into every ingestion message. Both are
fetched lazily, cached for ``refresh_period`` and re-fetched when stale.
Fetches that are throttled are retried with exponential backoff.

Resources are ordered for use by storage-account health: accounts that have
recently failed uploads or enqueues sink to lower tiers.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from core.errors.exceptions import EmptyResultError
from core.resilience.retry import DEFAULT_THROTTLING_RETRY, RetryConfig, retry_async
from kusto_data.response import KustoResponseDataSet
from kusto_ingest.ranked_storage import RankedStorageAccountSet
from kusto_ingest.resource_uri import ResourceURI

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "NetDefaultDB"
INGESTION_RESOURCES_COMMAND = ".get ingestion resources"
IDENTITY_TOKEN_COMMAND = ".get kusto identity token"
DEFAULT_REFRESH_PERIOD = timedelta(hours=1)

RESOURCE_TYPE_COLUMN = "ResourceTypeName"
STORAGE_ROOT_COLUMN = "StorageRoot"
AUTHORIZATION_CONTEXT_COLUMN = "AuthorizationContext"

SECURED_READY_FOR_AGGREGATION_QUEUE = "SecuredReadyForAggregationQueue"
FAILED_INGESTIONS_QUEUE = "FailedIngestionsQueue"
SUCCESSFUL_INGESTIONS_QUEUE = "SuccessfulIngestionsQueue"
TEMP_STORAGE = "TempStorage"


class CommandExecutor(Protocol):
    """Anything that can run a management command (KustoClient)."""

    async def execute(self, database: str, query: str) -> KustoResponseDataSet:
        ...


@dataclass
class IngestClientResources:
    """
    Locators returned by ``.get ingestion resources``.

    None means "never fetched"; an empty list is a valid answer.
    """

    secured_ready_for_aggregation_queues: Optional[List[ResourceURI]] = None
    failed_ingestions_queues: Optional[List[ResourceURI]] = None
    successful_ingestions_queues: Optional[List[ResourceURI]] = None
    containers: Optional[List[ResourceURI]] = None

    def valid(self) -> bool:
        return all(
            resources is not None
            for resources in (
                self.secured_ready_for_aggregation_queues,
                self.failed_ingestions_queues,
                self.successful_ingestions_queues,
                self.containers,
            )
        )


class ResourceManager:
    """
    Lazily refreshed cache of ingestion resources, owned by one ingest client.

    Concurrent callers that find the cache stale may each fetch; the last
    fetch to complete wins.

    Args:
        kusto_client: Client for the data-management endpoint
        refresh_period: Cache lifetime for resources and authorization context
        retry_config: Throttling retry settings for the fetches
        time_provider: Clock in epoch seconds (injectable for tests)
        sleep: Backoff sleep coroutine (injectable for tests)
        ranked_accounts: Storage-account ranking; created when omitted
    """

    def __init__(
        self,
        kusto_client: CommandExecutor,
        refresh_period: timedelta = DEFAULT_REFRESH_PERIOD,
        retry_config: RetryConfig = DEFAULT_THROTTLING_RETRY,
        time_provider: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        ranked_accounts: Optional[RankedStorageAccountSet] = None,
    ):
        self.kusto_client = kusto_client
        self.refresh_period = refresh_period
        self.retry_config = retry_config
        self._time = time_provider
        self._sleep = sleep
        self.ranked_accounts = ranked_accounts or RankedStorageAccountSet(
            time_provider=time_provider
        )

        self.ingest_client_resources: Optional[IngestClientResources] = None
        self.ingest_client_resources_last_update: Optional[float] = None
        self.authorization_context: Optional[str] = None
        self.authorization_context_last_update: Optional[float] = None

    def _is_stale(self, last_update: Optional[float]) -> bool:
        if last_update is None:
            return True
        return self._time() - last_update >= self.refresh_period.total_seconds()

    async def _execute_with_retry(self, command: str) -> KustoResponseDataSet:
        retry = (
            self.retry_config.new_retry(self._sleep)
            if self._sleep
            else self.retry_config.new_retry()
        )
        return await retry_async(
            lambda: self.kusto_client.execute(DEFAULT_DATABASE, command),
            retry,
            operation_name=command,
        )

    # =========================================================================
    # Ingestion resources
    # =========================================================================

    async def refresh_ingest_client_resources(self) -> IngestClientResources:
        if (
            self.ingest_client_resources is None
            or self._is_stale(self.ingest_client_resources_last_update)
            or not self.ingest_client_resources.valid()
        ):
            resources = await self.get_ingest_client_resources_from_service()
            self.ingest_client_resources = resources
            self.ingest_client_resources_last_update = self._time()
            self._register_storage_accounts(resources)

        return self.ingest_client_resources

    async def get_ingest_client_resources_from_service(self) -> IngestClientResources:
        response = await self._execute_with_retry(INGESTION_RESOURCES_COMMAND)
        if not response.primary_results:
            raise EmptyResultError(
                "Ingestion resources command returned no result table",
                context={"command": INGESTION_RESOURCES_COMMAND},
            )
        table = response.primary_results[0]

        by_type: Dict[str, List[ResourceURI]] = {
            SECURED_READY_FOR_AGGREGATION_QUEUE: [],
            FAILED_INGESTIONS_QUEUE: [],
            SUCCESSFUL_INGESTIONS_QUEUE: [],
            TEMP_STORAGE: [],
        }
        for row in table.rows():
            resource_type = row.get(RESOURCE_TYPE_COLUMN)
            if resource_type in by_type:
                by_type[resource_type].append(ResourceURI.parse(row.get(STORAGE_ROOT_COLUMN)))

        resources = IngestClientResources(
            secured_ready_for_aggregation_queues=by_type[SECURED_READY_FOR_AGGREGATION_QUEUE],
            failed_ingestions_queues=by_type[FAILED_INGESTIONS_QUEUE],
            successful_ingestions_queues=by_type[SUCCESSFUL_INGESTIONS_QUEUE],
            containers=by_type[TEMP_STORAGE],
        )
        logger.info(
            "Refreshed ingestion resources",
            extra={
                "queue_count": len(resources.secured_ready_for_aggregation_queues),
                "container_count": len(resources.containers),
            },
        )
        return resources

    def _register_storage_accounts(self, resources: IngestClientResources) -> None:
        for resource in (resources.containers or []) + (
            resources.secured_ready_for_aggregation_queues or []
        ):
            self.ranked_accounts.register_storage_account(resource.storage_account_name)

    # =========================================================================
    # Authorization context
    # =========================================================================

    async def refresh_authorization_context(self) -> str:
        if (
            not self.authorization_context
            or not self.authorization_context.strip()
            or self._is_stale(self.authorization_context_last_update)
        ):
            context = await self.get_authorization_context_from_service()
            self.authorization_context = context
            self.authorization_context_last_update = self._time()

        return self.authorization_context

    async def get_authorization_context_from_service(self) -> str:
        response = await self._execute_with_retry(IDENTITY_TOKEN_COMMAND)
        table = response.primary_results[0] if response.primary_results else None
        if table is None or table.row_count == 0:
            raise EmptyResultError(
                "Identity token command returned no rows",
                context={"command": IDENTITY_TOKEN_COMMAND},
            )

        context = table[0].get(AUTHORIZATION_CONTEXT_COLUMN)
        if not context or not str(context).strip():
            raise EmptyResultError(
                "Authorization context is empty",
                context={"command": IDENTITY_TOKEN_COMMAND},
            )
        return context

    # =========================================================================
    # Accessors
    # =========================================================================

    def _group_by_account(self, resources: List[ResourceURI]) -> Dict[str, List[ResourceURI]]:
        grouped: Dict[str, List[ResourceURI]] = {}
        for resource in resources:
            grouped.setdefault(resource.storage_account_name, []).append(resource)
        return grouped

    def _rank_and_round_robin(self, resources: List[ResourceURI]) -> List[ResourceURI]:
        """
        Order resources by account rank, taking one resource per account per
        round so consecutive picks land on different accounts.
        """
        grouped = self._group_by_account(resources)
        ranked_groups = [
            list(grouped[account.account_name])
            for account in self.ranked_accounts.get_ranked_shuffled_accounts()
            if account.account_name in grouped
        ]

        result: List[ResourceURI] = []
        while any(ranked_groups):
            for group in ranked_groups:
                if group:
                    result.append(group.pop(0))
        return result

    async def get_ingestion_queues(self) -> List[ResourceURI]:
        resources = await self.refresh_ingest_client_resources()
        return self._rank_and_round_robin(resources.secured_ready_for_aggregation_queues)

    async def get_failed_ingestions_queues(self) -> List[ResourceURI]:
        resources = await self.refresh_ingest_client_resources()
        return resources.failed_ingestions_queues

    async def get_successful_ingestions_queues(self) -> List[ResourceURI]:
        resources = await self.refresh_ingest_client_resources()
        return resources.successful_ingestions_queues

    async def get_containers(self) -> List[ResourceURI]:
        resources = await self.refresh_ingest_client_resources()
        return self._rank_and_round_robin(resources.containers)

    async def get_authorization_context(self) -> str:
        return await self.refresh_authorization_context()

    def report_resource_usage_result(self, storage_account_name: str, success: bool) -> None:
        """Feed an upload / enqueue outcome into the account ranking."""
        self.ranked_accounts.log_result_to_account(storage_account_name, success)
        if not success:
            logger.debug(
                "Storage account reported failure",
                extra={"account_name": storage_account_name},
            )


__all__ = [
    "ResourceManager",
    "IngestClientResources",
    "CommandExecutor",
    "DEFAULT_DATABASE",
    "DEFAULT_REFRESH_PERIOD",
    "INGESTION_RESOURCES_COMMAND",
    "IDENTITY_TOKEN_COMMAND",
]
