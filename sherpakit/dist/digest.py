"""
Checksum table maintenance for new sherpa-onnx releases.

Re-fetches every archive referenced by the manifest, hashes it and writes a
fresh checksum table. Digests are written in upper-case hex; verification
compares case-insensitively.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from sherpakit.core.download import fetch_bytes
from sherpakit.core.exceptions import NetworkError
from sherpakit.core.verification import format_checksum_table, sha256_hex
from sherpakit.dist.manifest import DistributionManifest

logger = logging.getLogger(__name__)


def compute_checksums(
    manifest: DistributionManifest,
    fetch: Callable[[str], bytes] = fetch_bytes,
    keep_going: bool = False,
) -> Dict[str, str]:
    """
    Download and hash every archive of the manifest.

    Args:
        manifest: Manifest (already retagged if needed)
        fetch: Callable returning the bytes of a URL
        keep_going: Log and skip archives that fail to download instead of
            aborting; skipped archives keep no checksum

    Returns:
        Archive name -> upper-case SHA-256 hex digest

    Raises:
        NetworkError: If a download fails and keep_going is False
    """
    checksums: Dict[str, str] = {}
    archives = manifest.archives()

    for index, archive in enumerate(archives, 1):
        url = manifest.archive_url(archive)
        logger.info(f"[{index}/{len(archives)}] {archive}")
        try:
            data = fetch(url)
        except NetworkError as e:
            if not keep_going:
                raise
            logger.error(f"Skipping {archive}: {e}")
            continue

        checksums[archive] = sha256_hex(data).upper()
        logger.debug(f"{archive} {checksums[archive]} ({len(data) / 1048576:.0f} MB)")

    return checksums


def write_checksum_table(checksums: Dict[str, str], path: Path) -> None:
    """Write a checksum table file."""
    path.write_text(format_checksum_table(checksums), encoding="utf-8")
    logger.info(f"Wrote {len(checksums)} checksums to {path}")


def refresh_manifest(
    dist_path: Path,
    new_tag: Optional[str] = None,
    checksum_path: Optional[Path] = None,
    fetch: Callable[[str], bytes] = fetch_bytes,
    keep_going: bool = False,
) -> Dict[str, str]:
    """
    Retag a manifest file and rewrite its checksum table.

    Args:
        dist_path: dist.json to update
        new_tag: Release tag to switch to (None keeps the current tag)
        checksum_path: Checksum table (defaults to checksum.txt next to dist_path)
        fetch: Callable returning the bytes of a URL
        keep_going: See compute_checksums

    Returns:
        The new checksum table
    """
    checksum_path = checksum_path or dist_path.parent / "checksum.txt"
    manifest = DistributionManifest.load(dist_path, checksum_path)

    if new_tag and new_tag != manifest.tag:
        logger.info(f"Replace {manifest.tag} with {new_tag}")
        manifest = manifest.with_tag(new_tag)
        dist_path.write_text(
            json.dumps(manifest.to_data(), indent=2) + "\n", encoding="utf-8"
        )

    checksums = compute_checksums(manifest, fetch=fetch, keep_going=keep_going)
    write_checksum_table(checksums, checksum_path)
    return checksums


__all__ = ["compute_checksums", "write_checksum_table", "refresh_manifest"]
