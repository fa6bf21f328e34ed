"""
Descriptors for ingestion sources: blobs, in-memory streams and local files.

Every descriptor carries a source id (a random UUID4 unless one is supplied)
that ends up in the blob name and the ingestion message, so the service can
report status per source.
"""

import asyncio
import gzip
import io
import os
import uuid
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from core.errors.exceptions import IngestionPropertiesValidationError

# Rough expansion ratio of compressed text data, used as the raw size hint
COMPRESSED_SIZE_FACTOR = 11


class CompressionType(str, Enum):
    GZIP = ".gz"
    ZIP = ".zip"
    NONE = ""


def get_source_id(source_id: Optional[Union[str, uuid.UUID]] = None) -> str:
    """Return ``source_id`` if it is a UUID4, a fresh UUID4 if it is empty."""
    if not source_id:
        return str(uuid.uuid4())

    try:
        parsed = uuid.UUID(str(source_id))
    except ValueError:
        parsed = None
    if parsed is None or parsed.version != 4:
        raise IngestionPropertiesValidationError(
            f"source_id is not a valid uuid/v4: {source_id}"
        )
    return str(parsed)


class BlobDescriptor:
    """A blob that is already in storage, addressed by a SAS-signed URI."""

    def __init__(
        self,
        path: str,
        size: Optional[int] = None,
        source_id: Optional[Union[str, uuid.UUID]] = None,
    ):
        self.path = path
        self.size = size
        self.source_id = get_source_id(source_id)

    def __repr__(self) -> str:
        # Strip the SAS query string
        return f"BlobDescriptor(path={self.path.split('?', 1)[0]!r}, source_id={self.source_id!r})"


class StreamDescriptor:
    """
    In-memory or file-like source.

    Args:
        stream: Bytes, or a binary file-like object read to the end on use
        source_id: UUID4; generated when omitted
        compression_type: Compression already applied to the stream
        size: Uncompressed size hint, if known
    """

    def __init__(
        self,
        stream: Union[bytes, bytearray, BinaryIO],
        source_id: Optional[Union[str, uuid.UUID]] = None,
        compression_type: CompressionType = CompressionType.NONE,
        size: Optional[int] = None,
    ):
        self.stream = stream
        self.name = "stream"
        self.source_id = get_source_id(source_id)
        self.compression_type = compression_type
        self.size = size

    @property
    def is_compressed(self) -> bool:
        return self.compression_type != CompressionType.NONE

    def read(self) -> bytes:
        if isinstance(self.stream, (bytes, bytearray)):
            return bytes(self.stream)
        return self.stream.read()

    def prepare(self, compress: bool = True) -> Tuple[bytes, CompressionType]:
        """Return the payload gzipped (unless already compressed) and its compression."""
        data = self.read()
        if self.size is None:
            self.size = len(data) * COMPRESSED_SIZE_FACTOR if self.is_compressed else len(data)
        if self.is_compressed or not compress:
            return data, self.compression_type
        return gzip.compress(data), CompressionType.GZIP


class FileDescriptor:
    """
    Local file source. ``.gz`` and ``.zip`` files are treated as compressed.

    Attributes:
        file_path: Path to the file
        name: Base name of the file
        extension: Lower-cased extension including the dot
        zipped: Whether the file is already compressed
        size: Raw data size hint; estimated on prepare() when not supplied
    """

    def __init__(
        self,
        file_path: Union[str, os.PathLike],
        source_id: Optional[Union[str, uuid.UUID]] = None,
        size: Optional[int] = None,
    ):
        self.file_path = Path(file_path)
        self.name = self.file_path.name
        self.extension = self.file_path.suffix.lower()
        self.size = size
        self.zipped = self.extension in (CompressionType.GZIP.value, CompressionType.ZIP.value)
        self.source_id = get_source_id(source_id)

    @property
    def compression_type(self) -> CompressionType:
        if self.zipped:
            return CompressionType(self.extension)
        return CompressionType.NONE

    def _prepare_sync(self, compress: bool) -> Tuple[bytes, CompressionType]:
        data = self.file_path.read_bytes()
        if self.zipped:
            if not self.size or self.size <= 0:
                self.size = len(data) * COMPRESSED_SIZE_FACTOR
            return data, self.compression_type

        if not self.size or self.size <= 0:
            self.size = len(data)
        if not compress:
            return data, CompressionType.NONE

        buffer = io.BytesIO()
        with gzip.GzipFile(filename=self.name, mode="wb", fileobj=buffer) as zipper:
            zipper.write(data)
        return buffer.getvalue(), CompressionType.GZIP

    async def prepare(self, compress: bool = True) -> Tuple[bytes, CompressionType]:
        """
        Read the file and gzip it in memory unless it is already compressed.

        File I/O runs in a worker thread. Returns the payload and the
        compression applied to it.
        """
        return await asyncio.to_thread(self._prepare_sync, compress)

    def __repr__(self) -> str:
        return f"FileDescriptor(file_path={str(self.file_path)!r}, source_id={self.source_id!r})"


__all__ = [
    "CompressionType",
    "COMPRESSED_SIZE_FACTOR",
    "get_source_id",
    "BlobDescriptor",
    "StreamDescriptor",
    "FileDescriptor",
]
