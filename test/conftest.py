import io
import tempfile
from collections.abc import Callable, Generator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import structlog
from botocore.exceptions import ClientError

from blobstore.storage.local_storage import LocalBlobStore
from blobstore.storage.s3_storage import S3BlobStore


def make_client_error(code: str, status: int, operation: str = "Operation") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": f"{code} error"}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self) -> None:
        self.buckets: set[str] = set()
        self.objects: dict[tuple[str, str], dict[str, Any]] = {}
        self.list_calls: list[dict[str, Any]] = []
        self.presign_calls: list[dict[str, Any]] = []
        self.create_bucket_error: ClientError | None = None

    def list_buckets(self) -> dict[str, Any]:
        return {"Buckets": [{"Name": name} for name in sorted(self.buckets)]}

    def create_bucket(self, Bucket: str, **kwargs: Any) -> dict[str, Any]:
        if self.create_bucket_error is not None:
            raise self.create_bucket_error
        if Bucket in self.buckets:
            raise make_client_error("BucketAlreadyOwnedByYou", 409, "CreateBucket")
        self.buckets.add(Bucket)
        return {}

    def upload_fileobj(self, Fileobj: Any, Bucket: str, Key: str, ExtraArgs: Any = None, Config: Any = None) -> None:
        if Bucket not in self.buckets:
            raise make_client_error("NoSuchBucket", 404, "PutObject")
        self.objects[(Bucket, Key)] = {
            "data": Fileobj.read(),
            "content_type": (ExtraArgs or {}).get("ContentType", "binary/octet-stream"),
            "last_modified": datetime.now(timezone.utc),
        }

    def _get(self, bucket: str, key: str, operation: str) -> dict[str, Any]:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            code = "404" if operation == "HeadObject" else "NoSuchKey"
            raise make_client_error(code, 404, operation) from None

    def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        obj = self._get(Bucket, Key, "GetObject")
        return {"Body": io.BytesIO(obj["data"])}

    def head_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        obj = self._get(Bucket, Key, "HeadObject")
        return {
            "ContentType": obj["content_type"],
            "ContentLength": len(obj["data"]),
            "LastModified": obj["last_modified"],
        }

    def delete_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        self.objects.pop((Bucket, Key), None)
        return {}

    def list_objects_v2(self, **params: Any) -> dict[str, Any]:
        self.list_calls.append(params)
        bucket, prefix = params["Bucket"], params.get("Prefix", "")
        delimiter, start_after = params.get("Delimiter"), params.get("StartAfter", "")
        keys = sorted(
            key for (b, key) in self.objects if b == bucket and key.startswith(prefix) and key > start_after
        )

        contents: list[dict[str, Any]] = []
        prefixes: list[str] = []
        for key in keys:
            rest = key[len(prefix) :]
            if delimiter and delimiter in rest:
                common = prefix + rest[: rest.index(delimiter) + 1]
                if common not in prefixes:
                    prefixes.append(common)
                continue
            obj = self.objects[(bucket, key)]
            contents.append({"Key": key, "Size": len(obj["data"]), "LastModified": obj["last_modified"]})

        max_keys = params.get("MaxKeys", 1000)
        return {
            "Contents": contents[:max_keys],
            "CommonPrefixes": [{"Prefix": p} for p in prefixes[:max_keys]],
        }

    def generate_presigned_url(self, ClientMethod: str, Params: dict[str, str], ExpiresIn: int) -> str:
        self.presign_calls.append({"ClientMethod": ClientMethod, "Params": Params, "ExpiresIn": ExpiresIn})
        return f"https://display.example.com/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture
def temp_dir() -> Generator[Path]:
    with tempfile.TemporaryDirectory() as tmpdirname:
        yield Path(tmpdirname)


@pytest.fixture
def local_store(temp_dir: Path) -> LocalBlobStore:
    return LocalBlobStore(str(temp_dir))


@pytest.fixture
def s3_config() -> dict[str, str]:
    return {
        "host": "play.min.io",
        "ak": "test-access-key",
        "sk": "test-secret-key",
        "region": "us-east-1",
        "disableSSL": "true",
    }


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def boto_session(mocker: Any, fake_s3: FakeS3Client) -> MagicMock:
    session_cls = mocker.patch("blobstore.storage.s3_storage.boto3.Session")
    session_cls.return_value.client.return_value = fake_s3
    return session_cls


@pytest.fixture
def s3_store(boto_session: MagicMock, s3_config: dict[str, str]) -> S3BlobStore:
    return S3BlobStore("bkt", s3_config)


@pytest.fixture
def client_error() -> Callable[..., ClientError]:
    return make_client_error


@pytest.fixture(autouse=True)
def mock_logger(mocker: Any) -> MagicMock:
    return mocker.patch.object(structlog, "get_logger", return_value=MagicMock())
