"""
Cache directory management for SherpaKit.

This module resolves the persistent cache root shared by every build
invocation on the host, and degrades to a build-scoped directory when the
persistent location cannot be used.

Directory Structure:
    Cache root (platformdirs user cache dir, e.g. ~/.cache/sherpa-rs/):
        - <target>/<checksum>/           : Extracted prebuilt archive (one slot)
        - <target>/.<checksum>.tmp-*/    : In-progress extraction (renamed on success)
        - .locks/                        : Cross-process slot locks
"""

import logging
from pathlib import Path
from typing import Optional

from platformdirs import user_cache_dir

logger = logging.getLogger(__name__)

# Shared with the Rust bindings so both reuse the same downloaded archives
CACHE_APP_NAME = "sherpa-rs"


def get_global_cache_dir() -> Optional[Path]:
    """
    Get the platform-specific persistent cache directory path.

    Returns:
        Path to the cache root, or None if the platform has no well-known
        per-user cache directory.

    Example:
        >>> get_global_cache_dir()
        PosixPath('/home/user/.cache/sherpa-rs')  # on Linux
    """
    try:
        cache_dir = user_cache_dir(CACHE_APP_NAME, appauthor=False)
    except (KeyError, OSError, RuntimeError) as e:
        logger.debug(f"No user cache directory available: {e}")
        return None
    if not cache_dir:
        return None
    return Path(cache_dir)


def verify_directory_writable(path: Path) -> bool:
    """
    Verify that a directory exists and is writable.

    Args:
        path: Directory path to verify.

    Returns:
        bool: True if directory exists and is writable, False otherwise.
    """
    if not path.is_dir():
        return False

    try:
        test_file = path / ".write_test"
        test_file.touch()
        test_file.unlink()
        return True
    except OSError:
        return False


def ensure_cache_root(preferred: Optional[Path], fallback: Path) -> Path:
    """
    Create the cache root, degrading to a build-scoped directory on failure.

    Args:
        preferred: Persistent cache root (None if unknown)
        fallback: Build-scoped directory used when the persistent root is
            unavailable

    Returns:
        The cache root actually in use

    Raises:
        OSError: If even the fallback directory cannot be created
    """
    if preferred is None:
        logger.warning(
            f"Could not determine cache directory, using {fallback} instead"
        )
    else:
        try:
            preferred.mkdir(parents=True, exist_ok=True)
            if verify_directory_writable(preferred):
                return preferred
            logger.warning(
                f"Cache directory {preferred} is not writable, using {fallback} instead"
            )
        except OSError as e:
            logger.warning(
                f"Could not create cache directory {preferred} ({e}), "
                f"using {fallback} instead"
            )

    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


__all__ = [
    "CACHE_APP_NAME",
    "get_global_cache_dir",
    "verify_directory_writable",
    "ensure_cache_root",
]
