"""
Factory for creating blob store instances.
"""

from collections.abc import Callable, Mapping

import structlog

from blobstore.storage.blob_store import BlobStore, StoreConstructionError, StoreKind
from blobstore.storage.local_storage import LocalBlobStore
from blobstore.storage.s3_storage import S3BlobStore

logger = structlog.get_logger(__name__)

StoreBuilder = Callable[[str, Mapping[str, str]], BlobStore]

# Extra names accepted for a kind
KIND_ALIASES = {"local": StoreKind.LOCAL.value}

_builders: dict[str, StoreBuilder] = {
    StoreKind.LOCAL.value: LocalBlobStore,
    StoreKind.S3.value: S3BlobStore,
}


def register_blob_store(kind: str, builder: StoreBuilder) -> None:
    """Register a builder for a new backend kind, e.g. ``"nfs"``."""
    name = str(getattr(kind, "value", kind)).lower()
    _builders[name] = builder
    logger.debug("registered blob store kind", kind=name)


def create_blob_store(
    kind: StoreKind | str,
    endpoint: str,
    config: Mapping[str, str] | None = None,
) -> BlobStore:
    """
    Create a blob store of the given kind.

    Args:
        kind: Backend kind, a StoreKind or one of "file", "local", "s3"
        endpoint: Root directory (local) or "bucket/sub/path" (s3)
        config: Flat string configuration bag, interpreted per kind

    Returns:
        Constructed BlobStore
    """
    name = str(getattr(kind, "value", kind)).lower()
    name = KIND_ALIASES.get(name, name)
    builder = _builders.get(name)
    if builder is None:
        raise StoreConstructionError(f"kind {kind} unsupported")
    return builder(endpoint, config or {})
