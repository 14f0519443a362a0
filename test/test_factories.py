from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from blobstore.factories import storage_factory
from blobstore.factories.storage_factory import create_blob_store, register_blob_store
from blobstore.storage.blob_store import StoreConstructionError, StoreKind
from blobstore.storage.local_storage import LocalBlobStore
from blobstore.storage.s3_storage import S3BlobStore


class TestStorageFactory:
    """Test suite for blob store factory."""

    def test_create_local_store(self, temp_dir: Path) -> None:
        """Test creating a local store from its kind enum."""
        store = create_blob_store(StoreKind.LOCAL, str(temp_dir))

        assert isinstance(store, LocalBlobStore)
        assert store.build_url("") == store.root

    @pytest.mark.parametrize("kind", ["file", "local", "LOCAL"])
    def test_local_kind_names(self, temp_dir: Path, kind: str) -> None:
        """Test that the local kind is accepted under its string names."""
        assert isinstance(create_blob_store(kind, str(temp_dir)), LocalBlobStore)

    def test_create_s3_store(self, boto_session: MagicMock, s3_config: dict[str, str]) -> None:
        """Test creating an S3 store with a configuration bag."""
        store = create_blob_store("s3", "bkt/sub", s3_config)

        assert isinstance(store, S3BlobStore)
        assert store.bucket == "bkt"
        assert store.sub_path == "/sub"

    def test_s3_store_missing_config(self, boto_session: MagicMock) -> None:
        """Test that an S3 store without configuration fails to build."""
        with pytest.raises(StoreConstructionError):
            create_blob_store(StoreKind.S3, "bkt")

    def test_unsupported_kind(self) -> None:
        """Test that unknown kinds are rejected."""
        with pytest.raises(StoreConstructionError, match="kind nfs unsupported"):
            create_blob_store("nfs", "/mnt/share")

    def test_register_new_kind(self) -> None:
        """Test that new backends plug in without changing the factory."""
        builder = MagicMock()

        with patch.dict(storage_factory._builders, clear=False):
            register_blob_store("nfs", builder)
            result = create_blob_store("nfs", "/mnt/share", {"opt": "1"})

        assert result is builder.return_value
        builder.assert_called_once_with("/mnt/share", {"opt": "1"})
        assert "nfs" not in storage_factory._builders

    def test_config_passed_through(self, temp_dir: Path) -> None:
        """Test that the configuration bag reaches the backend."""
        store = create_blob_store(StoreKind.LOCAL, str(temp_dir), {"unused": "value"})

        assert store.config == {"unused": "value"}
