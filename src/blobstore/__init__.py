"""
Uniform blob storage over the local filesystem and S3-compatible services.
"""

from blobstore.factories.storage_factory import create_blob_store, register_blob_store
from blobstore.storage import (
    BlobMeta,
    BlobStore,
    ListOption,
    LocalBlobStore,
    S3BlobStore,
    StorageError,
    StoreKind,
    copy_raw,
)

__version__ = "0.1.0"

__all__ = [
    "BlobMeta",
    "BlobStore",
    "ListOption",
    "LocalBlobStore",
    "S3BlobStore",
    "StorageError",
    "StoreKind",
    "copy_raw",
    "create_blob_store",
    "register_blob_store",
]
