"""
S3-compatible blob store implementation.

This module provides a concrete implementation of the BlobStore interface
for any S3-compatible storage service (AWS S3, MinIO, CloudFlare R2 and
others). A store is bound to a bucket and a sub-path prefix inside it;
relative location strings live under that prefix while ``s3://bucket/key``
URIs address any bucket directly.
"""

import io
import posixpath
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, BinaryIO, NoReturn
from urllib.parse import urlsplit

import boto3
import structlog
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    ParamValidationError,
    PartialCredentialsError,
)
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .blob_store import (
    BlobMeta,
    BlobStore,
    Content,
    ListOption,
    NetworkError,
    PathOutOfScopeError,
    PathResolutionError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StoreConstructionError,
    StoreKind,
    UnsupportedSchemeError,
)
from .file_utils import file_utils

logger = structlog.get_logger(__name__)

# Configuration bag keys
CONFIG_HOST = "host"
CONFIG_AK = "ak"
CONFIG_SK = "sk"
CONFIG_TOKEN = "token"
CONFIG_REGION = "region"
CONFIG_DISABLE_SSL = "disableSSL"
CONFIG_DISPLAY_HOST = "displayHost"

DEFAULT_REGION = "us-east-1"
DEFAULT_EXPIRE = timedelta(hours=12)

MAX_KEYS = 1000
DELIMITER = "/"

BUCKET_EXISTS_CODES = ("BucketAlreadyExists", "BucketAlreadyOwnedByYou")
NOT_FOUND_CODES = ("NoSuchKey", "NoSuchBucket", "NotFound", "404")
ACCESS_DENIED_CODES = ("AccessDenied", "Forbidden", "403", "InvalidAccessKeyId", "SignatureDoesNotMatch")
TRANSIENT_CODES = ("RequestTimeout", "ServiceUnavailable", "SlowDown", "InternalError")


class S3StoreConfig(BaseModel):
    """Connection settings for an S3-compatible store, parsed from a config bag."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    host: str = Field(min_length=1)
    access_key: str = Field(alias=CONFIG_AK, min_length=1)
    secret_key: str = Field(alias=CONFIG_SK, min_length=1)
    token: str | None = None
    region: str = DEFAULT_REGION
    disable_ssl: bool = Field(default=False, alias=CONFIG_DISABLE_SSL)
    # Public-facing host used only when presigning URLs
    display_host: str | None = Field(default=None, alias=CONFIG_DISPLAY_HOST)

    # Upload settings
    multipart_threshold: int = Field(default=64 * 1024 * 1024, ge=5 * 1024 * 1024)  # 64MB
    max_concurrency: int = Field(default=10, ge=1, le=50)
    chunk_size: int = Field(default=8 * 1024 * 1024, ge=5 * 1024 * 1024)  # 8MB

    @field_validator("host", "access_key", "secret_key", mode="before")
    @classmethod
    def strip_required(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("disable_ssl", mode="before")
    @classmethod
    def parse_disable_ssl(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return bool(v)

    @field_validator("token", "display_host", mode="before")
    @classmethod
    def empty_as_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("region", mode="before")
    @classmethod
    def default_region(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_REGION
        return v

    def endpoint_url(self, host: str | None = None) -> str:
        """Full endpoint URL for a host, adding a scheme to bare host names."""
        host = host or self.host
        if "://" in host:
            return host
        scheme = "http" if self.disable_ssl else "https"
        return f"{scheme}://{host}"


def parse_s3_endpoint(endpoint: str) -> tuple[str, str]:
    """
    Split a store endpoint into bucket and sub-path.

    ``"bucket/a/b"`` gives ``("bucket", "/a/b")`` and ``"bucket"`` gives
    ``("bucket", "/")``.
    """
    endpoint = endpoint.strip(DELIMITER)
    if not endpoint:
        raise StoreConstructionError("bucket cannot be empty")
    bucket, sep, sub_path = endpoint.partition(DELIMITER)
    if not sep:
        return bucket, DELIMITER
    return bucket, DELIMITER + sub_path


class S3BlobStore(BlobStore):
    """
    Blob store backed by an S3-compatible object storage service.

    Relative location strings (with or without a leading ``/``) are keys
    under the bound sub-path of the bound bucket. ``s3://bucket/key`` names
    a bucket and key explicitly and bypasses the sub-path; pass
    ``allow_cross_bucket=False`` to restrict such URIs to the bound bucket.
    """

    kind = StoreKind.S3

    def __init__(
        self,
        endpoint: str,
        config: Mapping[str, str] | None = None,
        *,
        allow_cross_bucket: bool = True,
    ):
        """Validate configuration, connect and probe the service."""
        super().__init__(config)
        self._bucket, self._sub_path = parse_s3_endpoint(endpoint or "")
        self._prefix = self._sub_path.strip(DELIMITER)
        self._allow_cross_bucket = allow_cross_bucket

        try:
            self.s3_config = S3StoreConfig.model_validate(self._config)
        except ValidationError as e:
            problems = ", ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise StoreConstructionError(f"invalid s3 config: {problems}") from e

        self._transfer_config = TransferConfig(
            multipart_threshold=self.s3_config.multipart_threshold,
            multipart_chunksize=self.s3_config.chunk_size,
            max_concurrency=self.s3_config.max_concurrency,
        )
        self.file_utils = file_utils

        self._s3_client = self._create_client(self.s3_config.host)
        self._check_health()
        self._signed_client = self._create_client(self.s3_config.display_host or self.s3_config.host)

        logger.info(
            "s3 blob store ready",
            endpoint=self.s3_config.endpoint_url(),
            bucket=self._bucket,
            sub_path=self._sub_path,
        )

    @property
    def bucket(self) -> str:
        """Bucket the store is bound to."""
        return self._bucket

    @property
    def sub_path(self) -> str:
        """Prefix inside the bucket, always starting with ``/``."""
        return self._sub_path

    def resolve(self, path: str) -> tuple[str, str]:
        """
        Resolve a location string to a bucket and object key.

        Args:
            path: Location string

        Returns:
            Tuple of bucket name and key (no leading slash)
        """
        try:
            parsed = urlsplit(path)
        except ValueError as e:
            raise PathResolutionError(f"malformed path {path!r}: {e}") from e

        if parsed.scheme == "":
            key = posixpath.normpath(f"/{self._prefix}/{path}").lstrip(DELIMITER)
            if self._prefix and key != self._prefix and not key.startswith(self._prefix + DELIMITER):
                raise PathOutOfScopeError(f"path {path} escapes sub path {self._sub_path}")
            return self._bucket, key

        if parsed.scheme != self.kind.value:
            raise UnsupportedSchemeError(f"scheme should be {self.kind.value}, got {parsed.scheme!r}")

        bucket = parsed.netloc
        if not bucket:
            raise PathResolutionError(f"bucket cannot be empty in {path}")
        if not self._allow_cross_bucket and bucket != self._bucket:
            raise PathOutOfScopeError(f"bucket {bucket} is not the bound bucket {self._bucket}")
        return bucket, parsed.path.lstrip(DELIMITER)

    def list_meta(self, path: str, option: ListOption | None = None) -> list[BlobMeta]:
        """List objects, or one level of common prefixes, under a key prefix."""
        option = option or ListOption()
        bucket, key = self.resolve(path)

        prefix = key
        if prefix and not prefix.endswith(DELIMITER):
            prefix += DELIMITER

        params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": MAX_KEYS}
        if option.directory_only:
            params["Delimiter"] = DELIMITER
        if 0 < option.max_keys < MAX_KEYS:
            params["MaxKeys"] = option.max_keys
        if option.start_after:
            params["StartAfter"] = option.start_after

        try:
            response = self._s3_client.list_objects_v2(**params)
        except ClientError as e:
            self._handle_client_error(e, f"list {path}")
        except BotoCoreError as e:
            self._handle_botocore_error(e, f"list {path}")

        if option.directory_only:
            return [
                BlobMeta(
                    name=self._logical_name(common["Prefix"].strip(DELIMITER)).strip(DELIMITER),
                    size=0,
                    url_path=self._url(bucket, common["Prefix"]),
                )
                for common in response.get("CommonPrefixes", [])
            ]

        return [
            BlobMeta(
                name=self._logical_name(obj["Key"]),
                size=obj["Size"],
                url_path=self._url(bucket, obj["Key"]),
                last_modified=obj["LastModified"],
            )
            for obj in response.get("Contents", [])
        ]

    def get_meta(self, path: str) -> BlobMeta:
        """Fetch object metadata without transferring the body."""
        bucket, key = self._resolve_object(path)
        try:
            response = self._s3_client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            self._handle_client_error(e, f"get meta for {path}")
        except BotoCoreError as e:
            self._handle_botocore_error(e, f"get meta for {path}")

        return BlobMeta(
            name=self._logical_name(key),
            content_type=response.get("ContentType", ""),
            size=response["ContentLength"],
            url_path=self._url(bucket, key),
            last_modified=response["LastModified"],
        )

    def read_raw(self, path: str) -> BinaryIO:
        bucket, key = self._resolve_object(path)
        try:
            response = self._s3_client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            self._handle_client_error(e, f"read {path}")
        except BotoCoreError as e:
            self._handle_botocore_error(e, f"read {path}")
        return response["Body"]

    def write_raw(self, path: str, content: Content) -> None:
        """
        Upload content, creating the bucket first when it does not exist.

        The managed uploader switches to multipart transfers above the
        configured threshold, so streams of any size are accepted.
        """
        bucket, key = self._resolve_object(path)
        self._ensure_bucket(bucket)

        if isinstance(content, (bytes, bytearray, memoryview)):
            content = io.BytesIO(content)

        extra_args = {}
        content_type = self.file_utils.get_content_type(key)
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self._s3_client.upload_fileobj(
                content,
                bucket,
                key,
                ExtraArgs=extra_args or None,
                Config=self._transfer_config,
            )
        except ClientError as e:
            self._handle_client_error(e, f"write {path}")
        except S3UploadFailedError as e:
            raise StorageError(f"Failed to upload {path}: {e}") from e
        except BotoCoreError as e:
            self._handle_botocore_error(e, f"write {path}")
        logger.debug("uploaded object", bucket=bucket, key=key)

    def delete_raw(self, path: str) -> None:
        """
        Delete an object.

        Whether deleting a missing key is an error is left to the service;
        most S3 implementations report success.
        """
        bucket, key = self._resolve_object(path)
        try:
            self._s3_client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            self._handle_client_error(e, f"delete {path}")
        except BotoCoreError as e:
            self._handle_botocore_error(e, f"delete {path}")
        logger.debug("deleted object", bucket=bucket, key=key)

    def get_signed_url(self, path: str, expire: timedelta | float | None = None) -> str:
        """Presign a GET URL with the display client. Zero expiry means 12 hours."""
        bucket, key = self._resolve_object(path)
        if not expire:
            expire = DEFAULT_EXPIRE
        expires_in = int(expire.total_seconds()) if isinstance(expire, timedelta) else int(expire)

        try:
            return self._signed_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except ClientError as e:
            self._handle_client_error(e, f"generate presigned URL for {path}")
        except BotoCoreError as e:
            self._handle_botocore_error(e, f"generate presigned URL for {path}")

    def build_url(self, path: str) -> str:
        bucket, key = self.resolve(path)
        return self._url(bucket, key)

    # Private helper methods

    def _create_client(self, host: str):
        session = boto3.Session(
            aws_access_key_id=self.s3_config.access_key,
            aws_secret_access_key=self.s3_config.secret_key,
            aws_session_token=self.s3_config.token,
            region_name=self.s3_config.region,
        )

        boto_config = Config(
            max_pool_connections=self.s3_config.max_concurrency,
            retries={"max_attempts": 3, "mode": "standard"},
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )

        return session.client(
            "s3",
            endpoint_url=self.s3_config.endpoint_url(host),
            use_ssl=not self.s3_config.disable_ssl,
            config=boto_config,
        )

    def _check_health(self) -> None:
        """Fail fast when the service is unreachable or rejects the credentials."""
        endpoint = self.s3_config.endpoint_url()
        try:
            self._s3_client.list_buckets()
        except ClientError as e:
            error = e.response.get("Error", {})
            raise StoreConstructionError(
                f"health check against {endpoint} failed: {error.get('Message', e)}",
                error_code=error.get("Code"),
                status_code=e.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            ) from e
        except BotoCoreError as e:
            raise StoreConstructionError(f"cannot reach {endpoint}: {e}") from e

    def _ensure_bucket(self, bucket: str) -> None:
        params: dict[str, Any] = {"Bucket": bucket}
        if self.s3_config.region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.s3_config.region}
        try:
            self._s3_client.create_bucket(**params)
            logger.info("created bucket", bucket=bucket)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in BUCKET_EXISTS_CODES:
                logger.debug("bucket already exists", bucket=bucket)
                return
            self._handle_client_error(e, f"create bucket {bucket}")
        except BotoCoreError as e:
            self._handle_botocore_error(e, f"create bucket {bucket}")

    def _resolve_object(self, path: str) -> tuple[str, str]:
        bucket, key = self.resolve(path)
        if not key:
            raise PathResolutionError(f"object key cannot be empty for path {path!r}")
        # The sub-path itself is the store root, not an object
        if self._prefix and key == self._prefix and not urlsplit(path).scheme:
            raise PathResolutionError(f"path {path!r} addresses the sub path {self._sub_path}, not an object")
        return bucket, key

    def _logical_name(self, key: str) -> str:
        """Strip the bound sub-path from a key."""
        if not self._prefix:
            return key
        if key == self._prefix:
            return ""
        if key.startswith(self._prefix + DELIMITER):
            return key[len(self._prefix) + 1 :]
        return key

    def _url(self, bucket: str, key: str) -> str:
        return f"{self.kind.value}://" + f"{bucket}/{key}".strip(DELIMITER)

    def _handle_client_error(self, error: ClientError, operation: str) -> NoReturn:
        """Handle S3 client errors and convert to appropriate exceptions."""
        error_code = error.response.get("Error", {}).get("Code", "UNKNOWN")
        status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        message = error.response.get("Error", {}).get("Message", str(error))

        if error_code in NOT_FOUND_CODES:
            raise StorageFileNotFoundError(
                f"Not found during {operation}",
                error_code=error_code,
                status_code=status_code,
            ) from error
        elif error_code in ACCESS_DENIED_CODES:
            raise StoragePermissionError(
                f"Access denied during {operation}",
                error_code=error_code,
                status_code=status_code,
            ) from error
        elif error_code in TRANSIENT_CODES or (status_code or 0) >= 500:
            raise NetworkError(
                f"Network error during {operation}: {message}",
                error_code=error_code,
                status_code=status_code,
            ) from error
        else:
            raise StorageError(
                f"S3 error during {operation}: {message}",
                error_code=error_code,
                status_code=status_code,
            ) from error

    def _handle_botocore_error(self, error: BotoCoreError, operation: str) -> NoReturn:
        """Handle client-side botocore failures."""
        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            raise StoragePermissionError(f"Credentials missing during {operation}: {error}") from error
        elif isinstance(error, ParamValidationError):
            raise StorageError(f"Invalid request during {operation}: {error}") from error
        else:
            raise NetworkError(f"Network error during {operation}: {error}") from error
