"""
Integrity verification of downloaded archives.

This module provides:
- SHA-256 digest computation of in-memory archives
- Case-insensitive, timing-attack resistant digest comparison
- Checksum table parsing (``<archive> <digest>`` per line)
- The explicit, logged opt-out used for local development only
"""

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Dict

from .exceptions import IntegrityError, ManifestError

logger = logging.getLogger(__name__)

SHA256_HEX_LENGTH = 64


def sha256_hex(data: bytes) -> str:
    """
    Compute the SHA-256 digest of a byte buffer.

    Args:
        data: Bytes to hash

    Returns:
        Lower-case hex digest

    Example:
        >>> sha256_hex(b"")
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    return hashlib.sha256(data).hexdigest()


def digests_match(actual: str, expected: str) -> bool:
    """
    Compare two hex digests case-insensitively in constant time.

    Args:
        actual: Computed digest
        expected: Expected digest

    Returns:
        True if the digests are equal
    """
    return secrets.compare_digest(
        actual.strip().lower().encode(), expected.strip().lower().encode()
    )


def verify_digest(
    data: bytes, expected: str, archive_name: str = "archive", skip: bool = False
) -> str:
    """
    Verify fetched bytes against the manifest checksum.

    Args:
        data: Fetched archive bytes
        expected: Expected SHA-256 hex digest (any case)
        archive_name: Name used in error messages
        skip: Skip verification (SHERPA_SKIP_CHECKSUM); logs a warning

    Returns:
        The computed digest

    Raises:
        IntegrityError: If the digest does not match and skip is False

    Example:
        >>> verify_digest(b"abc", sha256_hex(b"abc").upper())
        'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'
    """
    actual = sha256_hex(data)

    if digests_match(actual, expected):
        logger.info(f"Checksum verified successfully: {archive_name}")
        return actual

    if skip:
        logger.warning(
            f"CHECKSUM VERIFICATION DISABLED (SHERPA_SKIP_CHECKSUM=1): "
            f"{archive_name} expected {expected}, got {actual}. "
            "Do not use this setting outside local development."
        )
        return actual

    raise IntegrityError(archive_name, expected, actual)


def parse_checksum_table(content: str, source: str = "checksum table") -> Dict[str, str]:
    """
    Parse a checksum table.

    Supports lines of the form ``<archive> <digest>``; blank lines and lines
    starting with ``#`` are ignored.

    Args:
        content: Table text
        source: Name used in error messages

    Returns:
        Dict of archive name -> hex digest

    Raises:
        ManifestError: If a line is malformed or a digest is not SHA-256 hex

    Example:
        >>> table = parse_checksum_table("a.tar.bz2 " + "AB" * 32)
        >>> list(table)
        ['a.tar.bz2']
    """
    checksums: Dict[str, str] = {}

    for line_num, line in enumerate(content.splitlines(), 1):
        line = line.strip()

        if not line or line.startswith("#"):
            continue

        parts = line.split()
        if len(parts) != 2:
            raise ManifestError(f"Invalid line {line_num} in {source}: {line}")

        archive, digest = parts
        if len(digest) != SHA256_HEX_LENGTH or not _is_hex(digest):
            raise ManifestError(
                f"Invalid SHA-256 digest for {archive} at line {line_num} in {source}"
            )

        checksums[archive] = digest

    return checksums


def load_checksum_table(path: Path) -> Dict[str, str]:
    """Load and parse a checksum table file."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Failed to read checksum table {path}: {e}") from e
    return parse_checksum_table(content, source=path.name)


def format_checksum_table(checksums: Dict[str, str]) -> str:
    """Serialize a checksum table (sorted by archive name)."""
    return "".join(f"{name} {digest}\n" for name, digest in sorted(checksums.items()))


def _is_hex(value: str) -> bool:
    try:
        int(value, 16)
    except ValueError:
        return False
    return True


__all__ = [
    "sha256_hex",
    "digests_match",
    "verify_digest",
    "parse_checksum_table",
    "load_checksum_table",
    "format_checksum_table",
]
