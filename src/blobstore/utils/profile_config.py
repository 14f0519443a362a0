"""
Named-profile loader for S3 credentials.

Profiles live in an rclone-style INI file, one section per alias:

    [minio]
    type = s3
    access_key_id = ...
    secret_access_key = ...
    endpoint = play.min.io
    region = us-east-1

The loader turns a section into the flat configuration bag that
``S3BlobStore`` expects. It is a bootstrap helper for the command line and
is never used by the stores themselves.
"""

import configparser
from pathlib import Path

import structlog

from blobstore.storage.s3_storage import (
    CONFIG_AK,
    CONFIG_DISABLE_SSL,
    CONFIG_HOST,
    CONFIG_REGION,
    CONFIG_SK,
    CONFIG_TOKEN,
)

logger = structlog.get_logger(__name__)

# rclone profile key -> store configuration key
_PROFILE_KEYS = (
    ("access_key_id", CONFIG_AK),
    ("secret_access_key", CONFIG_SK),
    ("endpoint", CONFIG_HOST),
    ("region", CONFIG_REGION),
    ("session_token", CONFIG_TOKEN),
)


class ProfileNotFoundError(Exception):
    """The profile file or the requested alias does not exist."""

    pass


def load_profile(config_path: str | Path, alias: str) -> dict[str, str]:
    """
    Read one named profile.

    Args:
        config_path: Path of the INI profile file
        alias: Section name of the profile

    Returns:
        The profile's keys and values
    """
    config_path = Path(config_path).expanduser()
    if not config_path.is_file():
        raise ProfileNotFoundError(f"profile file not found: {config_path}")

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_path, encoding="utf-8")
    if not parser.has_section(alias):
        raise ProfileNotFoundError(f"alias {alias!r} not found in {config_path}")

    logger.debug("loaded profile", alias=alias, path=str(config_path))
    return dict(parser.items(alias))


def profile_to_store_config(profile: dict[str, str], disable_ssl: bool = True) -> dict[str, str]:
    """Map rclone profile keys onto the S3 store configuration bag."""
    # Absent keys stay absent so the store reports them as missing
    config = {CONFIG_DISABLE_SSL: "true" if disable_ssl else "false"}
    for profile_key, config_key in _PROFILE_KEYS:
        value = profile.get(profile_key)
        if value:
            config[config_key] = value
    return config
