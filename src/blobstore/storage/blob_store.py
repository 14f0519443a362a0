"""
Abstract blob store interface shared by every storage backend.

This module defines the capability contract (list, read, write, delete,
describe and address objects), the value types that flow through it and
the storage exception hierarchy. Concrete backends resolve location strings
into their own key space but always report metadata in the shapes below.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, BinaryIO

import structlog

logger = structlog.get_logger(__name__)

Content = BinaryIO | bytes


class StoreKind(str, Enum):
    """Supported backend kinds. The value is also the backend's URI scheme."""

    LOCAL = "file"
    S3 = "s3"


@dataclass(frozen=True)
class ListOption:
    """Query parameters for a listing call."""

    # Only immediate child directories (local) or common prefixes (s3)
    directory_only: bool = False
    # s3 only; 0 means the backend default
    max_keys: int = 0
    # s3 only; a previously seen canonical key
    start_after: str = ""


@dataclass(frozen=True)
class BlobMeta:
    """Read-only description of one stored object."""

    name: str
    size: int
    url_path: str
    content_type: str = ""
    last_modified: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the wire field names."""
        return {
            "name": self.name,
            "contentType": self.content_type,
            "size": self.size,
            "urlPath": self.url_path,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
        }


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class StoreConstructionError(StorageError):
    """A store could not be built from its endpoint and configuration."""

    pass


class PathResolutionError(StorageError):
    """A location string could not be resolved to a canonical location."""

    pass


class UnsupportedSchemeError(PathResolutionError):
    """Location string uses a scheme the backend does not understand."""

    pass


class PathOutOfScopeError(PathResolutionError):
    """Resolved location lies outside the store's root."""

    pass


class StorageFileNotFoundError(StorageError):
    """Object not found in storage."""

    pass


class StorageTypeMismatchError(StorageError):
    """Directory found where a file was expected, or the other way round."""

    pass


class StoragePermissionError(StorageError):
    """Permission denied for storage operation."""

    pass


class NetworkError(StorageError):
    """Network-related storage error."""

    pass


class UnsupportedOperationError(StorageError):
    """Operation is not available on this backend."""

    pass


class SourceRequiredError(StorageError):
    """A copy was requested without a source store."""

    pass


class BlobStore(ABC):
    """
    Abstract base class for blob store implementations.

    Every location argument accepts one of the forms ``""``,
    ``relative/path``, ``/absolute/path`` or ``<scheme>://host/path`` where
    the scheme matches the backend kind. A constructed store never changes
    its root binding.
    """

    kind: StoreKind

    def __init__(self, config: Mapping[str, str] | None = None):
        """Initialize the store with its raw configuration bag."""
        self._config = dict(config or {})

    @property
    def config(self) -> dict[str, str]:
        """Copy of the configuration the store was built with."""
        return dict(self._config)

    @abstractmethod
    def list_meta(self, path: str, option: ListOption | None = None) -> list[BlobMeta]:
        """
        List object metadata under a directory or prefix.

        Args:
            path: Location string of the directory to list
            option: Listing parameters, defaults to a full recursive listing

        Returns:
            List of BlobMeta entries named relative to the store root
        """
        pass

    @abstractmethod
    def get_meta(self, path: str) -> BlobMeta:
        """
        Describe a single object.

        Args:
            path: Location string of the object

        Returns:
            BlobMeta with content type, size and modification time
        """
        pass

    @abstractmethod
    def read_raw(self, path: str) -> BinaryIO:
        """
        Open a byte stream over an object.

        The caller owns the returned stream and must close it.

        Args:
            path: Location string of the object

        Returns:
            Readable binary stream
        """
        pass

    @abstractmethod
    def write_raw(self, path: str, content: Content) -> None:
        """
        Store a raw byte stream.

        Args:
            path: Location string of the object
            content: Readable binary stream or bytes
        """
        pass

    @abstractmethod
    def delete_raw(self, path: str) -> None:
        """
        Delete an object.

        Args:
            path: Location string of the object
        """
        pass

    @abstractmethod
    def get_signed_url(self, path: str, expire: timedelta | float | None = None) -> str:
        """
        Generate a time-limited, credential-bearing URL for an object.

        Args:
            path: Location string of the object
            expire: URL lifetime, zero or None for the backend default

        Returns:
            Signed URL string
        """
        pass

    @abstractmethod
    def build_url(self, path: str) -> str:
        """
        Build the canonical, unsigned address of a location.

        Args:
            path: Location string

        Returns:
            Backend-addressable URL string
        """
        pass


def copy_raw(
    source: BlobStore | None,
    destination: BlobStore | None,
    source_path: str,
    dest_path: str,
) -> None:
    """
    Copy one object between two stores, or within one store.

    The read stream is always closed, whether the write succeeds or not.
    No retry and no size or checksum verification are performed.

    Args:
        source: Store to read from, required
        destination: Store to write to, defaults to ``source``
        source_path: Location string in the source store
        dest_path: Location string in the destination store
    """
    if source is None:
        raise SourceRequiredError("source blobstore is required")
    if destination is None:
        destination = source

    with source.read_raw(source_path) as stream:
        destination.write_raw(dest_path, stream)
    logger.debug("copied object", source_path=source_path, dest_path=dest_path)


__all__ = [
    "BlobMeta",
    "BlobStore",
    "Content",
    "ListOption",
    "NetworkError",
    "PathOutOfScopeError",
    "PathResolutionError",
    "SourceRequiredError",
    "StorageError",
    "StorageFileNotFoundError",
    "StoragePermissionError",
    "StorageTypeMismatchError",
    "StoreConstructionError",
    "StoreKind",
    "UnsupportedOperationError",
    "UnsupportedSchemeError",
    "copy_raw",
]
