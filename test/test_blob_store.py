import io
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from blobstore.storage.blob_store import (
    BlobMeta,
    BlobStore,
    ListOption,
    SourceRequiredError,
    StorageError,
    copy_raw,
)
from blobstore.storage.local_storage import LocalBlobStore


class TestModels:
    """Test suite for the shared value types."""

    def test_list_option_defaults(self) -> None:
        """Test that the default listing is a full recursive one."""
        option = ListOption()

        assert option.directory_only is False
        assert option.max_keys == 0
        assert option.start_after == ""

    def test_blob_meta_value_equality(self) -> None:
        """Test that metadata compares by value."""
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        assert BlobMeta("a", 1, "/r/a", "text/plain", when) == BlobMeta("a", 1, "/r/a", "text/plain", when)

    def test_blob_meta_is_read_only(self) -> None:
        """Test that metadata cannot be mutated."""
        meta = BlobMeta(name="a", size=1, url_path="/r/a")

        with pytest.raises(AttributeError):
            meta.size = 2  # type: ignore[misc]

    def test_blob_meta_to_dict(self) -> None:
        """Test serialization with wire field names."""
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        meta = BlobMeta(name="a/b", size=3, url_path="s3://bkt/a/b", content_type="text/plain", last_modified=when)

        assert meta.to_dict() == {
            "name": "a/b",
            "contentType": "text/plain",
            "size": 3,
            "urlPath": "s3://bkt/a/b",
            "lastModified": "2024-01-02T03:04:05+00:00",
        }
        assert BlobMeta(name="d", size=0, url_path="s3://bkt/d").to_dict()["lastModified"] is None

    def test_storage_error_fields(self) -> None:
        """Test that storage errors carry their code and details."""
        error = StorageError("boom", error_code="X", status_code=500, details={"k": "v"})

        assert str(error) == "boom"
        assert error.error_code == "X"
        assert error.status_code == 500
        assert error.details == {"k": "v"}


class TestCopyRaw:
    """Test suite for copying between stores."""

    def test_source_required(self) -> None:
        """Test that a missing source fails before any read."""
        destination = MagicMock(spec=BlobStore)

        with pytest.raises(SourceRequiredError, match="source blobstore is required"):
            copy_raw(None, destination, "src/file", "dst/file")
        destination.write_raw.assert_not_called()

    def test_copy_between_stores(self, temp_dir) -> None:
        """Test that bytes are copied unchanged between two stores."""
        (temp_dir / "src").mkdir()
        (temp_dir / "dst").mkdir()
        source = LocalBlobStore(str(temp_dir / "src"))
        destination = LocalBlobStore(str(temp_dir / "dst"))
        source.write_raw("src/file", b"payload")

        copy_raw(source, destination, "src/file", "dst/file")

        with destination.read_raw("dst/file") as stream:
            assert stream.read() == b"payload"

    def test_destination_defaults_to_source(self, local_store: LocalBlobStore) -> None:
        """Test that an unset destination copies within the source store."""
        local_store.write_raw("a", b"same-store")

        copy_raw(local_store, None, "a", "b")

        with local_store.read_raw("b") as stream:
            assert stream.read() == b"same-store"

    def test_stream_closed_on_success(self) -> None:
        """Test that the read stream is closed after a successful copy."""
        stream = io.BytesIO(b"data")
        source = MagicMock(spec=BlobStore)
        source.read_raw.return_value = stream
        destination = MagicMock(spec=BlobStore)

        copy_raw(source, destination, "s", "d")

        destination.write_raw.assert_called_once_with("d", stream)
        assert stream.closed

    def test_stream_closed_on_failure(self) -> None:
        """Test that the read stream is closed when the write fails."""
        stream = io.BytesIO(b"data")
        source = MagicMock(spec=BlobStore)
        source.read_raw.return_value = stream
        destination = MagicMock(spec=BlobStore)
        destination.write_raw.side_effect = StorageError("write failed")

        with pytest.raises(StorageError, match="write failed"):
            copy_raw(source, destination, "s", "d")
        assert stream.closed

    def test_read_failure_propagates(self) -> None:
        """Test that a failed read aborts without writing."""
        source = MagicMock(spec=BlobStore)
        source.read_raw.side_effect = StorageError("read failed")
        destination = MagicMock(spec=BlobStore)

        with pytest.raises(StorageError, match="read failed"):
            copy_raw(source, destination, "s", "d")
        destination.write_raw.assert_not_called()
