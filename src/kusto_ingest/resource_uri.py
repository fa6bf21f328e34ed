"""
Storage resource locators handed out by the ingestion service.

The data-management endpoint returns SAS-signed URIs of the form

    https://{account}.{queue|blob|table}.{domain}/{object}?{sas}

where ``domain`` is ``core.windows.net`` in the public cloud and something
else in sovereign clouds.
"""

import re
from dataclasses import dataclass

from core.errors.exceptions import MalformedResourceUriError

_URI_FORMAT = re.compile(
    r"^https://(?P<account>\w+)\.(?P<object_type>queue|blob|table)\."
    r"(?P<domain>[\w-]+(?:\.[\w-]+)*)/(?P<object_name>[\w,-]+)\?(?P<sas>.+)$",
    re.IGNORECASE,
)

OBJECT_TYPES = ("queue", "blob", "table")


@dataclass(frozen=True)
class ResourceURI:
    """A parsed storage locator. All fields are non-empty."""

    storage_account_name: str
    object_type: str
    object_name: str
    sas: str
    endpoint_suffix: str = "core.windows.net"

    @classmethod
    def parse(cls, uri: str) -> "ResourceURI":
        match = _URI_FORMAT.match(uri.strip()) if isinstance(uri, str) else None
        if match is None:
            raise MalformedResourceUriError(
                uri, "expected https://{account}.{queue|blob|table}.{domain}/{name}?{sas}"
            )
        return cls(
            storage_account_name=match.group("account"),
            object_type=match.group("object_type").lower(),
            object_name=match.group("object_name"),
            sas=match.group("sas"),
            endpoint_suffix=match.group("domain"),
        )

    @property
    def account_url(self) -> str:
        """Service endpoint without the object path, e.g. ``https://acct.queue.core.windows.net``."""
        return f"https://{self.storage_account_name}.{self.object_type}.{self.endpoint_suffix}"

    def to_connection_string(self) -> str:
        if self.object_type == "queue":
            return f"QueueEndpoint={self.account_url}/;SharedAccessSignature={self.sas}"
        if self.object_type == "blob":
            return f"BlobEndpoint={self.account_url}/;SharedAccessSignature={self.sas}"
        raise MalformedResourceUriError(
            self.to_uri(),
            f"can't make a connection string for object type '{self.object_type}'",
        )

    def to_uri(self) -> str:
        return f"{self.account_url}/{self.object_name}?{self.sas}"

    def __str__(self) -> str:
        # Never render the SAS token
        return f"{self.account_url}/{self.object_name}"


__all__ = ["ResourceURI", "OBJECT_TYPES"]
