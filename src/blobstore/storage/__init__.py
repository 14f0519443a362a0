"""
Blob storage backends for local and S3-compatible object storage.

This module exposes one capability contract, ``BlobStore``, with a local
filesystem implementation and a universal S3-compatible implementation,
plus the shared value types, exceptions and the cross-store copy helper.
"""

from .blob_store import (
    BlobMeta,
    BlobStore,
    ListOption,
    NetworkError,
    PathOutOfScopeError,
    PathResolutionError,
    SourceRequiredError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StorageTypeMismatchError,
    StoreConstructionError,
    StoreKind,
    UnsupportedOperationError,
    UnsupportedSchemeError,
    copy_raw,
)
from .file_utils import FileUtils, file_utils
from .local_storage import LocalBlobStore
from .s3_storage import S3BlobStore, S3StoreConfig

__all__ = [
    # Abstract interface
    "BlobStore",
    # Concrete implementations
    "LocalBlobStore",
    "S3BlobStore",
    "S3StoreConfig",
    # Data models and enums
    "BlobMeta",
    "ListOption",
    "StoreKind",
    # Operations
    "copy_raw",
    # Exceptions
    "StorageError",
    "StoreConstructionError",
    "PathResolutionError",
    "UnsupportedSchemeError",
    "PathOutOfScopeError",
    "StorageFileNotFoundError",
    "StorageTypeMismatchError",
    "StoragePermissionError",
    "NetworkError",
    "UnsupportedOperationError",
    "SourceRequiredError",
    # Utilities
    "FileUtils",
    "file_utils",
]
