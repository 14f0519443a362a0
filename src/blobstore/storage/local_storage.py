"""
Local filesystem blob store implementation.

Objects are plain files under a fixed root directory. Every location
string is resolved to an absolute path and must stay under that root.
"""

import errno
import os
import shutil
import stat
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, NoReturn
from urllib.parse import urlsplit

import structlog

from .blob_store import (
    BlobMeta,
    BlobStore,
    Content,
    ListOption,
    PathOutOfScopeError,
    PathResolutionError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StorageTypeMismatchError,
    StoreConstructionError,
    StoreKind,
    UnsupportedOperationError,
    UnsupportedSchemeError,
)
from .file_utils import file_utils

logger = structlog.get_logger(__name__)

# Mode for auto-created parent directories, before umask
DIRECTORY_MODE = 0o777


class LocalBlobStore(BlobStore):
    """
    Blob store backed by a directory tree on the local filesystem.

    Accepted location strings, for a store rooted at ``/data``:

    - ``sub/path`` resolves to ``/data/sub/path``
    - ``/data/sub/path`` is used as-is
    - ``file:///data/sub/path`` and ``file://data/sub/path`` resolve to
      ``/data/sub/path``

    Anything that resolves outside ``/data`` is rejected.
    """

    kind = StoreKind.LOCAL

    def __init__(self, root: str, config: Mapping[str, str] | None = None):
        """Bind the store to an existing root directory."""
        super().__init__(config)
        try:
            info = os.stat(root)
        except OSError as e:
            raise StoreConstructionError(
                f"cannot access root {root}: {e.strerror or e}",
                error_code=errno.errorcode.get(e.errno or 0),
            ) from e
        if not stat.S_ISDIR(info.st_mode):
            raise StoreConstructionError(f"root: {root} must be directory")

        self._root = os.path.normpath(os.path.abspath(root))
        self.file_utils = file_utils
        logger.info("local blob store ready", root=self._root)

    @property
    def root(self) -> str:
        """Absolute path of the store root."""
        return self._root

    def resolve(self, path: str) -> str:
        """
        Resolve a location string to an absolute filesystem path.

        Args:
            path: Location string

        Returns:
            Normalized absolute path under the store root
        """
        try:
            parsed = urlsplit(path)
        except ValueError as e:
            raise PathResolutionError(f"malformed path {path!r}: {e}") from e

        if parsed.scheme == "":
            if os.path.isabs(path):
                full_path = os.path.normpath(path)
            else:
                full_path = os.path.normpath(os.path.join(self._root, path))
        elif parsed.scheme == self.kind.value:
            parts = [part.strip("/") for part in (parsed.netloc, parsed.path)]
            full_path = os.path.normpath("/" + "/".join(part for part in parts if part))
        else:
            raise UnsupportedSchemeError(
                f"scheme should be empty or {self.kind.value}, got {parsed.scheme!r}"
            )

        if not self._is_within_root(full_path):
            raise PathOutOfScopeError(f"path {full_path} does not begin with basePath {self._root}")
        return full_path

    def list_meta(self, path: str, option: ListOption | None = None) -> list[BlobMeta]:
        """List sub-directories or, recursively, all files under a directory."""
        option = option or ListOption()
        full_path = self.resolve(path)

        try:
            info = os.stat(full_path)
        except OSError as e:
            self._handle_os_error(e, f"list {path}")
        if not stat.S_ISDIR(info.st_mode):
            raise StorageTypeMismatchError("list meta must operate a dir")

        try:
            if option.directory_only:
                return self._dir_metas(full_path)
            return self._file_metas(full_path, [])
        except OSError as e:
            self._handle_os_error(e, f"list {path}")

    def get_meta(self, path: str) -> BlobMeta:
        """Describe a file, sniffing its content type from its first bytes."""
        full_path = self.resolve(path)
        try:
            info = os.stat(full_path)
            if stat.S_ISDIR(info.st_mode):
                raise StorageTypeMismatchError("cannot get meta from a dir")
            content_type = self.file_utils.sniff_file(full_path)
        except OSError as e:
            self._handle_os_error(e, f"get meta for {path}")
        return self._meta_from_stat(full_path, info, content_type)

    def read_raw(self, path: str) -> BinaryIO:
        full_path = self.resolve(path)
        try:
            return open(full_path, "rb")
        except OSError as e:
            self._handle_os_error(e, f"read {path}")

    def write_raw(self, path: str, content: Content) -> None:
        """Write content to a file, creating parent directories on demand."""
        full_path = self.resolve(path)
        if full_path == self._root:
            raise StorageTypeMismatchError("cannot write to the store root")

        try:
            os.makedirs(os.path.dirname(full_path), mode=DIRECTORY_MODE, exist_ok=True)
            with open(full_path, "wb") as f:
                if isinstance(content, (bytes, bytearray, memoryview)):
                    f.write(content)
                else:
                    shutil.copyfileobj(content, f)
        except OSError as e:
            self._handle_os_error(e, f"write {path}")
        logger.debug("wrote file", path=full_path)

    def delete_raw(self, path: str) -> None:
        """Remove exactly one file. Missing files are an error."""
        full_path = self.resolve(path)
        if os.path.isdir(full_path):
            raise StorageTypeMismatchError(f"cannot delete a dir: {full_path}")
        try:
            os.remove(full_path)
        except OSError as e:
            self._handle_os_error(e, f"delete {path}")
        logger.debug("deleted file", path=full_path)

    def get_signed_url(self, path: str, expire: timedelta | float | None = None) -> str:
        raise UnsupportedOperationError("local blob store do not support GetSignedURL")

    def build_url(self, path: str) -> str:
        return self.resolve(path)

    # Private helper methods

    def _is_within_root(self, full_path: str) -> bool:
        if full_path == self._root:
            return True
        return full_path.startswith(self._root.rstrip(os.sep) + os.sep)

    def _logical_name(self, full_path: str) -> str:
        name = os.path.relpath(full_path, self._root)
        if name == os.curdir:
            return ""
        return name.replace(os.sep, "/")

    def _meta_from_stat(self, full_path: str, info: os.stat_result, content_type: str = "") -> BlobMeta:
        return BlobMeta(
            name=self._logical_name(full_path),
            content_type=content_type,
            size=info.st_size,
            url_path=full_path,
            last_modified=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
        )

    def _dir_metas(self, full_path: str) -> list[BlobMeta]:
        """Immediate child directories only."""
        metas = []
        with os.scandir(full_path) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                if entry.is_dir(follow_symlinks=False):
                    info = entry.stat(follow_symlinks=False)
                    metas.append(self._meta_from_stat(entry.path, info))
        return metas

    def _file_metas(self, full_path: str, metas: list[BlobMeta]) -> list[BlobMeta]:
        """Depth-first walk collecting every file; directories are dropped."""
        with os.scandir(full_path) as entries:
            children = sorted(entries, key=lambda e: e.name)
        for entry in children:
            if entry.is_dir(follow_symlinks=False):
                self._file_metas(entry.path, metas)
                continue
            info = entry.stat(follow_symlinks=False)
            metas.append(self._meta_from_stat(entry.path, info))
        return metas

    def _handle_os_error(self, error: OSError, operation: str) -> NoReturn:
        """Convert filesystem errors to storage exceptions."""
        error_code = errno.errorcode.get(error.errno or 0)
        message = f"{operation} failed: {error.strerror or error}"

        if isinstance(error, FileNotFoundError):
            raise StorageFileNotFoundError(message, error_code=error_code) from error
        elif isinstance(error, (IsADirectoryError, NotADirectoryError)):
            raise StorageTypeMismatchError(message, error_code=error_code) from error
        elif isinstance(error, PermissionError):
            raise StoragePermissionError(message, error_code=error_code) from error
        else:
            raise StorageError(message, error_code=error_code) from error
