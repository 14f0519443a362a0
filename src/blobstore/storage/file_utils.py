"""
File utility functions for blob store operations.

This module provides content type detection: sniffing from the leading
bytes of a file (used for local metadata) and guessing from a key's
extension (used to label uploads).
"""

import mimetypes
from pathlib import Path

# Only this many leading bytes are considered when sniffing
SNIFF_LENGTH = 512

DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_HTML_TAGS = (
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
)

# Exact prefix signatures, checked in order
_MAGIC_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", TEXT_CONTENT_TYPE),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"BM", "image/bmp"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x00\x01\x00\x00", "font/ttf"),
    (b"OTTO", "font/otf"),
    (b"ttcf", "font/collection"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    (b"OggS\x00", "application/ogg"),
    (b"MThd\x00\x00\x00\x06", "audio/midi"),
    (b"ID3", "audio/mpeg"),
    (b".snd", "audio/basic"),
    (b"\x1a\x45\xdf\xa3", "video/webm"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    (b"7z\xbc\xaf\x27\x1c", "application/x-7z-compressed"),
    (b"\x00asm", "application/wasm"),
)

_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)

_WHITESPACE = b"\t\n\x0c\r "


class FileUtils:
    """Utility class for content type detection."""

    def __init__(self):
        """Initialize file utilities."""
        mimetypes.init()

    def detect_content_type(self, data: bytes) -> str:
        """
        Sniff the MIME type of a byte buffer.

        At most the first 512 bytes are inspected. Text without control
        bytes is reported as UTF-8 plain text, anything unrecognized as
        ``application/octet-stream``.

        Args:
            data: Leading bytes of the content

        Returns:
            MIME content type string
        """
        data = data[:SNIFF_LENGTH]

        stripped = data.lstrip(_WHITESPACE)
        html = self._match_html(stripped)
        if html:
            return html
        if stripped.startswith(b"<?xml"):
            return "text/xml; charset=utf-8"

        for signature, content_type in _MAGIC_SIGNATURES:
            if data.startswith(signature):
                return content_type

        if len(data) >= 12 and data[:4] == b"RIFF":
            if data[8:12] == b"WAVE":
                return "audio/wave"
            if data[8:12] == b"AVI ":
                return "video/avi"
            if data[8:14] == b"WEBPVP":
                return "image/webp"
        if len(data) >= 12 and data[:4] == b"FORM" and data[8:12] == b"AIFF":
            return "audio/aiff"
        if self._is_mp4(data):
            return "video/mp4"

        if any(byte in _BINARY_BYTES for byte in data):
            return DEFAULT_CONTENT_TYPE
        return TEXT_CONTENT_TYPE

    def sniff_file(self, file_path: str | Path) -> str:
        """Sniff the MIME type of a file from its first 512 bytes."""
        with open(file_path, "rb") as f:
            head = f.read(SNIFF_LENGTH)
        return self.detect_content_type(head)

    def get_content_type(self, name: str) -> str | None:
        """
        Guess a MIME type from a file or key name.

        Args:
            name: File name, path or object key

        Returns:
            MIME content type string, or None when the extension is unknown
        """
        content_type, _ = mimetypes.guess_type(name)
        return content_type

    @staticmethod
    def _match_html(data: bytes) -> str | None:
        for tag in _HTML_TAGS:
            if len(data) <= len(tag):
                continue
            if data[: len(tag)].upper() != tag:
                continue
            # The tag must be terminated by a space or '>'
            if data[len(tag)] in b" >":
                return "text/html; charset=utf-8"
        return None

    @staticmethod
    def _is_mp4(data: bytes) -> bool:
        # ISO base media file: an 'ftyp' box whose brands include mp4*
        if len(data) < 12 or data[4:8] != b"ftyp":
            return False
        box_size = int.from_bytes(data[:4], "big")
        if len(data) < box_size or box_size % 4 != 0:
            return False
        # Offset 12 holds the minor version, not a brand
        return any(data[start : start + 3] == b"mp4" for start in range(8, box_size, 4) if start != 12)


# Global file utilities instance
file_utils = FileUtils()
