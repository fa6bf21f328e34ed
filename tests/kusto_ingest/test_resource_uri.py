"""
Tests for ResourceURI parsing and rendering.
"""

import pytest

from core.errors.exceptions import MalformedResourceUriError
from kusto_ingest.resource_uri import ResourceURI


class TestParse:

    def test_queue_uri(self):
        uri = ResourceURI.parse(
            "https://myaccount.queue.core.windows.net/readyforaggregation-secured?sv=2020&sig=abc"
        )
        assert uri.storage_account_name == "myaccount"
        assert uri.object_type == "queue"
        assert uri.object_name == "readyforaggregation-secured"
        assert uri.sas == "sv=2020&sig=abc"
        assert uri.endpoint_suffix == "core.windows.net"

    def test_sovereign_cloud_domain(self):
        uri = ResourceURI.parse("https://acct.blob.core.chinacloudapi.cn/tempstorage?sig=x")
        assert uri.object_type == "blob"
        assert uri.endpoint_suffix == "core.chinacloudapi.cn"

    def test_object_type_case_insensitive(self):
        assert ResourceURI.parse("https://acct.QUEUE.core.windows.net/q?s").object_type == "queue"

    @pytest.mark.parametrize(
        "uri",
        [
            "http://acct.queue.core.windows.net/q?sas",
            "https://acct.file.core.windows.net/q?sas",
            "https://acct.queue.core.windows.net/q",
            "https://acct.queue.core.windows.net/?sas",
            "",
            None,
        ],
    )
    def test_malformed(self, uri):
        with pytest.raises(MalformedResourceUriError):
            ResourceURI.parse(uri)


class TestRender:

    @pytest.fixture
    def blob(self):
        return ResourceURI.parse("https://acct.blob.core.windows.net/tempstorage?sig=secret")

    def test_round_trip(self, blob):
        assert blob.to_uri() == "https://acct.blob.core.windows.net/tempstorage?sig=secret"

    def test_str_hides_sas(self, blob):
        assert str(blob) == "https://acct.blob.core.windows.net/tempstorage"
        assert "secret" not in str(blob)

    def test_blob_connection_string(self, blob):
        assert blob.to_connection_string() == (
            "BlobEndpoint=https://acct.blob.core.windows.net/;SharedAccessSignature=sig=secret"
        )

    def test_queue_connection_string(self):
        uri = ResourceURI.parse("https://acct.queue.core.windows.net/q?sig=s")
        assert uri.to_connection_string().startswith("QueueEndpoint=https://acct.queue.")

    def test_table_has_no_connection_string(self):
        uri = ResourceURI.parse("https://acct.table.core.windows.net/t?sig=s")
        with pytest.raises(MalformedResourceUriError):
            uri.to_connection_string()

    def test_hashable(self, blob):
        assert {blob, ResourceURI.parse(blob.to_uri())} == {blob}
