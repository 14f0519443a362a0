"""
Copy a local directory tree into a blob store, one file at a time.
"""

import os
import posixpath
import stat
import time
from pathlib import Path

import structlog

from blobstore.storage.blob_store import BlobStore, StorageTypeMismatchError, copy_raw

logger = structlog.get_logger(__name__)


class TreeCopier:
    """Walks a local tree and copies every regular file to a destination store."""

    def __init__(self, source: BlobStore, destination: BlobStore):
        """
        Args:
            source: Store that can read the walked files by their path
                relative to the walk root (normally a LocalBlobStore rooted there)
            destination: Store the files are written to
        """
        self.source = source
        self.destination = destination

    def iter_files(self, local_dir: str | Path):
        """Yield paths of regular files under ``local_dir``, relative and sorted."""
        root = Path(local_dir)
        if not root.is_dir():
            raise StorageTypeMismatchError(f"{root} is not a directory")

        def on_error(error: OSError) -> None:
            raise error

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            dirnames.sort()
            for filename in sorted(filenames):
                full_path = Path(dirpath) / filename
                if stat.S_ISREG(full_path.lstat().st_mode):
                    yield full_path.relative_to(root).as_posix()

    def copy_dir(self, local_dir: str | Path, remote_dir: str) -> int:
        """
        Copy every file under ``local_dir`` to ``remote_dir`` on the destination.

        Files are copied strictly in sequence and the first failure aborts
        the walk.

        Returns:
            Number of files copied
        """
        started = time.monotonic()
        copied = 0
        for relative_path in self.iter_files(local_dir):
            dest_path = posixpath.join(remote_dir, relative_path)
            copy_raw(self.source, self.destination, relative_path, dest_path)
            copied += 1
            logger.debug("copied file", source=relative_path, destination=dest_path)

        logger.info(
            "copied directory",
            local_dir=str(local_dir),
            remote_dir=remote_dir,
            files=copied,
            seconds=round(time.monotonic() - started, 3),
        )
        return copied
