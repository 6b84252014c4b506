"""
Concurrent access control for the SherpaKit artifact cache.

Independent build invocations (one per dependent package, parallel CI jobs)
share the same cache root. A file lock per cache slot serialises the
"check, fetch, extract" sequence for identical (target, checksum) keys, so
only one invocation downloads a given archive.

Usage:
    from sherpakit.core.locking import LockManager

    lock_manager = LockManager(cache_root / ".locks")
    with lock_manager.slot_lock("x86_64-unknown-linux-gnu", checksum):
        if not slot.exists():
            populate(slot)
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from .exceptions import CacheLockTimeout

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages cross-process locks for cache slots.

    Uses file-based locking with the `filelock` library for cross-platform
    compatibility and automatic cleanup on process death.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        """
        Initialize lock manager.

        Args:
            lock_dir: Directory for lock files (created if missing)
        """
        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def slot_lock_path(self, target: str, checksum: str) -> Path:
        """Lock file path for one cache slot."""
        safe_target = target.replace("/", "-").replace("\\", "-").replace(":", "-")
        return self.lock_dir / f"{safe_target}-{checksum.lower()[:16]}.lock"

    @contextmanager
    def slot_lock(self, target: str, checksum: str, timeout: int = 1800):
        """
        Acquire the lock for one (target, checksum) cache slot.

        Args:
            target: Target identifier
            checksum: Archive checksum
            timeout: Maximum wait time in seconds (default covers a full
                download by another process)

        Yields:
            None

        Raises:
            CacheLockTimeout: If lock can't be acquired within timeout
        """
        lock_path = self.slot_lock_path(target, checksum)
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired cache slot lock: {lock_path}")
                yield
                logger.debug(f"Released cache slot lock: {lock_path}")
        except Timeout as e:
            raise CacheLockTimeout(
                f"Could not acquire cache lock for {target} after {timeout}s. "
                "Another build may be downloading this archive."
            ) from e


__all__ = ["LockManager"]
