"""
Async client for the Kusto query, management and streaming-ingest endpoints.

Requests go over a shared aiohttp session with a bearer token from an
injected TokenProvider. Responses are parsed into KustoResponseDataSet
(V2 for queries, V1 for management commands and V1 queries).

Example:
    config = KustoConfig.load_config()
    async with KustoClient(config, AzureTokenProvider()) as client:
        response = await client.execute("Samples", "StormEvents | take 10")
        for row in response.primary_results[0].rows():
            logger.debug("Row", extra={"row": row.to_dict()})
"""

import asyncio
import json
import logging
import time
import uuid
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from config.config import KustoConfig
from core.auth.credentials import kusto_scope
from core.errors.classifiers import KustoResponseClassifier
from core.errors.exceptions import (
    AuthError,
    KustoServiceError,
    PartialQueryFailureError,
    TransientError,
)
from core.logging.context import set_log_context
from core.types import TokenProvider
from kusto_data.request_properties import ClientRequestProperties
from kusto_data.response import KustoResponseDataSet, parse_v1, parse_v2

logger = logging.getLogger(__name__)

CLIENT_VERSION = "Kusto.Python.AsyncClient:0.1.0"
MGMT_PREFIX = "."


class ExecutionType(Enum):
    MGMT = "mgmt"
    QUERY = "query"
    QUERY_V1 = "query_v1"
    INGEST = "ingest"


class KustoClient:
    """
    Async Kusto REST client.

    Creates its own aiohttp session lazily unless one is injected; an
    injected session is never closed by the client.
    """

    def __init__(
        self,
        config: KustoConfig,
        token_provider: TokenProvider,
        session: Optional[aiohttp.ClientSession] = None,
        cluster_url: Optional[str] = None,
    ):
        self.config = config
        self.cluster_url = (cluster_url or config.cluster_url).rstrip("/")
        self._token_provider = token_provider
        self._scopes = [kusto_scope(self.cluster_url)]

        self._session = session
        self._owns_session = session is None
        self._closed = False

        self.endpoints = {
            ExecutionType.MGMT: f"{self.cluster_url}/v1/rest/mgmt",
            ExecutionType.QUERY: f"{self.cluster_url}/v2/rest/query",
            ExecutionType.QUERY_V1: f"{self.cluster_url}/v1/rest/query",
            ExecutionType.INGEST: f"{self.cluster_url}/v1/rest/ingest",
        }
        self.headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip,deflate",
            "x-ms-client-version": CLIENT_VERSION,
        }

    async def __aenter__(self) -> "KustoClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("KustoClient is closed, cannot create new session")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        self._closed = True
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)
        self._session = None

    async def execute(
        self,
        database: str,
        query: str,
        properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        """Run a management command (text starting with ".") or a query."""
        query = query.strip()
        if query.startswith(MGMT_PREFIX):
            return await self.execute_mgmt(database, query, properties)
        return await self.execute_query(database, query, properties)

    async def execute_query(
        self,
        database: str,
        query: str,
        properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        return await self._execute(ExecutionType.QUERY, database, query=query, properties=properties)

    async def execute_query_v1(
        self,
        database: str,
        query: str,
        properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        return await self._execute(
            ExecutionType.QUERY_V1, database, query=query, properties=properties
        )

    async def execute_mgmt(
        self,
        database: str,
        command: str,
        properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        return await self._execute(ExecutionType.MGMT, database, query=command, properties=properties)

    async def execute_streaming_ingest(
        self,
        database: str,
        table: str,
        data: bytes,
        stream_format: str,
        mapping_name: Optional[str] = None,
        properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        """
        Push a gzip-compressed payload to the streaming ingestion endpoint.

        ``data`` must already be gzip-compressed.
        """
        endpoint = (
            f"{self.endpoints[ExecutionType.INGEST]}/{quote(database)}/{quote(table)}"
            f"?streamFormat={quote(stream_format)}"
        )
        if mapping_name is not None:
            endpoint += f"&mappingName={quote(mapping_name)}"

        return await self._execute(
            ExecutionType.INGEST,
            database,
            data=data,
            properties=properties,
            endpoint=endpoint,
        )

    async def execute_streaming_ingest_from_blob(
        self,
        database: str,
        table: str,
        blob_uri: str,
        stream_format: str,
        mapping_name: Optional[str] = None,
        properties: Optional[ClientRequestProperties] = None,
    ) -> KustoResponseDataSet:
        """Have the engine stream-ingest a blob it reads from ``blob_uri`` (SAS-signed)."""
        endpoint = (
            f"{self.endpoints[ExecutionType.INGEST]}/{quote(database)}/{quote(table)}"
            f"?streamFormat={quote(stream_format)}&sourceKind=uri"
        )
        if mapping_name is not None:
            endpoint += f"&mappingName={quote(mapping_name)}"

        return await self._execute(
            ExecutionType.INGEST,
            database,
            blob_uri=blob_uri,
            properties=properties,
            endpoint=endpoint,
        )

    def _get_client_timeout(
        self,
        execution_type: ExecutionType,
        properties: Optional[ClientRequestProperties],
    ) -> float:
        if properties is not None:
            if properties.client_timeout:
                return properties.client_timeout.total_seconds()
            server_timeout = properties.server_timeout
            if server_timeout:
                return server_timeout.total_seconds() + self.config.server_timeout_padding_seconds

        if execution_type in (ExecutionType.QUERY, ExecutionType.QUERY_V1):
            return self.config.query_timeout_seconds
        return self.config.command_timeout_seconds

    async def _execute(
        self,
        execution_type: ExecutionType,
        database: str,
        query: Optional[str] = None,
        data: Optional[bytes] = None,
        properties: Optional[ClientRequestProperties] = None,
        endpoint: Optional[str] = None,
        blob_uri: Optional[str] = None,
    ) -> Any:
        endpoint = endpoint or self.endpoints[execution_type]
        headers = dict(self.headers)

        if query is not None:
            payload: dict[str, Any] = {"db": database, "csl": query}
            if properties is not None:
                payload["properties"] = properties.to_dict()
            body: bytes = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json; charset=utf-8"
            request_prefix = "KPC.execute;"
        elif blob_uri is not None:
            body = json.dumps({"sourceUri": blob_uri}).encode("utf-8")
            headers["Content-Type"] = "application/json"
            request_prefix = "KPC.executeStreamingIngestFromBlob;"
        else:
            body = data or b""
            headers["Content-Encoding"] = "gzip"
            headers["Content-Type"] = "multipart/form-data"
            request_prefix = "KPC.executeStreamingIngest;"

        client_request_id = (
            properties.client_request_id if properties and properties.client_request_id else None
        ) or f"{request_prefix}{uuid.uuid4()}"
        headers["x-ms-client-request-id"] = client_request_id

        application = (properties.application if properties else None) or self.config.application
        user = (properties.user if properties else None) or self.config.user
        if application:
            headers["x-ms-app"] = application
        if user:
            headers["x-ms-user"] = user

        set_log_context(
            client_request_id=client_request_id,
            database=database,
            operation=execution_type.value,
            cluster=self.cluster_url,
        )

        timeout = self._get_client_timeout(execution_type, properties)
        response_payload, status = await self._do_request(endpoint, headers, body, timeout)
        return self._parse_response(response_payload, execution_type, properties, status)

    async def _do_request(
        self,
        endpoint: str,
        headers: dict[str, str],
        body: bytes,
        timeout: float,
        _auth_retry: bool = False,
    ) -> tuple[Any, int]:
        session = await self._ensure_session()
        ctx = {
            "client_request_id": headers.get("x-ms-client-request-id"),
            "endpoint": endpoint,
        }

        token = await self._token_provider.get_token(self._scopes)
        request_headers = {**headers, "Authorization": f"Bearer {token}"}

        logger.debug("Kusto request starting", extra={**ctx, "timeout_seconds": timeout})
        start_time = time.perf_counter()
        try:
            async with session.post(
                endpoint,
                data=body,
                headers=request_headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                status = response.status
                text = await response.text()
                duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

                if status != 200:
                    error = KustoResponseClassifier.classify_http_error(
                        status, text, response.headers, context=ctx
                    )
                    logger.warning(
                        "Kusto request failed",
                        extra={
                            **ctx,
                            "http_status": status,
                            "error_category": error.category.value,
                            "duration_ms": duration_ms,
                        },
                    )
                    raise error

                logger.debug(
                    "Kusto request succeeded",
                    extra={**ctx, "http_status": status, "duration_ms": duration_ms},
                )

        except AuthError:
            if _auth_retry:
                raise
            logger.info("Auth error detected, refreshing token", extra=ctx)
            await self._token_provider.refresh_token()
            return await self._do_request(endpoint, headers, body, timeout, _auth_retry=True)

        except TimeoutError as e:
            raise TransientError(
                f"Kusto request timed out after {timeout}s: {endpoint}",
                cause=e,
                context=ctx,
            ) from e

        except aiohttp.ClientError as e:
            raise TransientError(
                f"Connection error: {e}",
                cause=e,
                context=ctx,
            ) from e

        try:
            return json.loads(text), status
        except ValueError as e:
            raise KustoServiceError(
                f"Failed to parse response ({status}) with the following error [{e}].",
                http_status=status,
                permanent=True,
                cause=e,
                context=ctx,
            ) from e

    def _parse_response(
        self,
        payload: Any,
        execution_type: ExecutionType,
        properties: Optional[ClientRequestProperties],
        status: int,
    ) -> Any:
        if properties is not None and properties.raw:
            return payload

        try:
            if execution_type == ExecutionType.QUERY:
                dataset = parse_v2(payload)
            else:
                dataset = parse_v1(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise KustoServiceError(
                f"Failed to parse response ({status}) with the following error [{e}].",
                http_status=status,
                permanent=True,
                cause=e,
            ) from e

        if dataset.get_errors_count() > 0:
            if properties is not None and properties.defer_partial_query_failures:
                logger.warning(
                    "Kusto request returned partial results",
                    extra={"errors_count": dataset.get_errors_count()},
                )
                return dataset
            raise PartialQueryFailureError(dataset.get_exceptions(), dataset)

        return dataset


__all__ = ["KustoClient", "ExecutionType", "CLIENT_VERSION", "MGMT_PREFIX"]
