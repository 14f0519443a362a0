#!/usr/bin/env python3
"""
Entry point for the ``blobstore-copydir`` tool.

Copies a local directory tree into an S3-compatible store whose
credentials come from a named profile. Any error aborts the run.
"""

import argparse
import sys

import structlog

from blobstore.core.tree_copy import TreeCopier
from blobstore.factories.storage_factory import create_blob_store
from blobstore.storage.blob_store import StoreKind
from blobstore.utils.env_config import get_settings
from blobstore.utils.logging_config import setup_logging
from blobstore.utils.profile_config import load_profile, profile_to_store_config

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="blobstore-copydir",
        description="Copy a local directory tree into an S3-compatible blob store.",
    )
    parser.add_argument("-l", "--local", required=True, help="local directory to copy")
    parser.add_argument("-r", "--remote", required=True, help="destination path prefix")
    parser.add_argument("-a", "--alias", default=settings.alias, help="profile name in the config file")
    parser.add_argument("-c", "--config", default=settings.config_path, help="profile config file")
    parser.add_argument("-b", "--bucket", default=settings.bucket, help="destination bucket[/sub/path]")
    parser.add_argument("--log-level", default=settings.log_level, help="logging level")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=settings.log_json_format,
        help="render logs as JSON",
    )
    return parser


def run(args: argparse.Namespace) -> int:
    """Build both stores and copy the tree. Returns the number of files copied."""
    settings = get_settings()
    if not args.alias or not args.config:
        raise ValueError("both a profile alias (-a) and a config file (-c) are required")

    store_config = profile_to_store_config(load_profile(args.config, args.alias), disable_ssl=settings.disable_ssl)
    source = create_blob_store(StoreKind.LOCAL, args.local)
    destination = create_blob_store(StoreKind.S3, args.bucket, store_config)
    return TreeCopier(source, destination).copy_dir(args.local, args.remote)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the tool."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.json_logs)

    try:
        run(args)
    except KeyboardInterrupt:
        logger.info("copy interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error("copy failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
