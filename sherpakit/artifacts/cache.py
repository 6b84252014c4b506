"""
Content-addressed cache of extracted prebuilt archives.

A cache slot is ``<root>/<target>/<checksum>/``. A slot that exists is a
permanent hit and is trusted without re-verification; slots are only ever
created by an atomic rename after a verified download has been fully
extracted, so a partially-populated slot is never visible.

Directory Structure:
    <root>/
        x86_64-unknown-linux-gnu/
            <checksum>/
                sherpa-onnx-v1.12.9-linux-x64-shared/{lib,include,...}
        aarch64-linux-android/
            <checksum>/
                jniLibs/arm64-v8a/*.so
        .locks/
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from sherpakit.artifacts.artifact import ResolvedArtifact
from sherpakit.core.directory import ensure_cache_root, get_global_cache_dir
from sherpakit.core.download import DEFAULT_TIMEOUT, fetch_bytes
from sherpakit.core.filesystem import (
    directory_size,
    extract_archive_bytes,
    populate_atomically,
    safe_rmtree,
)
from sherpakit.core.locking import LockManager
from sherpakit.core.platform import TargetInfo
from sherpakit.core.verification import verify_digest
from sherpakit.dist.manifest import DistributionEntry
from sherpakit.link.names import extract_lib_names, names_from_paths

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = ".locks"
EPHEMERAL_DIR_NAME = "prebuilt"


@dataclass(frozen=True)
class CacheSlot:
    """One populated cache slot, as listed by ``ArtifactCache.slots``."""

    target: str
    checksum: str
    path: Path
    size_bytes: int


class ArtifactCache:
    """
    Obtain prebuilt archives through the on-disk cache.

    Example:
        >>> cache = ArtifactCache(Path("~/.cache/sherpa-rs").expanduser())
        >>> artifact = cache.obtain(entry, TargetInfo.parse(entry.target))
        >>> artifact.library_names
        ('onnxruntime', 'sherpa-onnx-c-api')
    """

    def __init__(
        self,
        root: Path,
        fetch: Callable[..., bytes] = fetch_bytes,
        skip_checksum: bool = False,
        download_retries: int = 1,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the cache.

        Args:
            root: Cache root directory (must exist or be creatable)
            fetch: Download function, called as ``fetch(url, max_retries=...)``
            skip_checksum: Skip checksum verification (logged loudly)
            download_retries: Total download attempts
            timeout: Download timeout in seconds; also bounds the wait for
                another process populating the same slot
        """
        self.root = Path(root)
        self.fetch = fetch
        self.skip_checksum = skip_checksum
        self.download_retries = download_retries
        self.timeout = timeout
        self.lock_manager = LockManager(self.root / LOCK_DIR_NAME)

    @classmethod
    def from_settings(cls, settings, fetch: Callable[..., bytes] = fetch_bytes) -> "ArtifactCache":
        """
        Create the cache configured by BuildSettings.

        The root is SHERPA_CACHE_DIR, else the per-user cache directory; if
        neither can be used, ``<out_dir>/prebuilt`` is used with a warning.
        """
        preferred = settings.cache_dir or get_global_cache_dir()
        root = ensure_cache_root(preferred, settings.out_dir / EPHEMERAL_DIR_NAME)
        return cls(
            root,
            fetch=fetch,
            skip_checksum=settings.skip_checksum,
            download_retries=settings.download_retries,
        )

    def slot_path(self, entry: DistributionEntry) -> Path:
        return self.root / entry.target / entry.checksum

    def library_directory(self, entry: DistributionEntry, target: TargetInfo) -> Path:
        """
        Library tree root inside a slot.

        Mobile archives use their own layout (jniLibs, xcframeworks) and are
        addressed from the slot itself.
        """
        slot = self.slot_path(entry)
        return slot if target.is_mobile else slot / entry.name

    def is_cached(self, entry: DistributionEntry) -> bool:
        return self.slot_path(entry).is_dir()

    def obtain(self, entry: DistributionEntry, target: TargetInfo) -> ResolvedArtifact:
        """
        Return the artifact for an entry, downloading it on a cache miss.

        Args:
            entry: Manifest entry
            target: Compilation target

        Returns:
            ResolvedArtifact built from the cache slot

        Raises:
            NetworkError: If the download fails or is truncated
            IntegrityError: If the checksum does not match
            ArchiveExtractionError: If the archive cannot be extracted
            CacheLockTimeout: If another process holds the slot too long
        """
        slot = self.slot_path(entry)
        origin = "cache"

        if slot.is_dir():
            logger.debug(f"Skip fetch file. Using cache from {slot}")
        else:
            with self.lock_manager.slot_lock(entry.target, entry.checksum, self.timeout):
                if slot.is_dir():
                    logger.info(f"{entry.archive_name} was cached by another build")
                else:
                    self._populate(entry, slot)
                    origin = "download"

        return self._artifact(entry, target, origin)

    def _populate(self, entry: DistributionEntry, slot: Path) -> None:
        data = self.fetch(entry.url, max_retries=self.download_retries)
        verify_digest(
            data, entry.checksum, archive_name=entry.archive_name, skip=self.skip_checksum
        )
        populate_atomically(
            slot, lambda tmp: extract_archive_bytes(data, entry.archive_name, tmp)
        )
        logger.info(f"Cached {entry.archive_name} in {slot}")

    def _artifact(
        self, entry: DistributionEntry, target: TargetInfo, origin: str
    ) -> ResolvedArtifact:
        slot = self.slot_path(entry)
        library_directory = self.library_directory(entry, target)

        if entry.explicit_libraries is not None:
            assets = tuple(slot / p for p in entry.explicit_libraries)
            search_paths = []
            for asset in assets:
                if asset.parent not in search_paths:
                    search_paths.append(asset.parent)
            names = names_from_paths(entry.explicit_libraries)
        else:
            assets = ()
            search_paths = []
            names = extract_lib_names(library_directory, entry.is_dynamic, target)

        return ResolvedArtifact(
            library_directory=library_directory,
            is_dynamic=entry.is_dynamic,
            library_names=tuple(names),
            search_paths=tuple(search_paths),
            assets=assets,
            origin=origin,
            checksum=entry.checksum,
        )

    def slots(self) -> List[CacheSlot]:
        """List populated cache slots."""
        result = []
        if not self.root.is_dir():
            return result
        for target_dir in sorted(self.root.iterdir()):
            if not target_dir.is_dir() or target_dir.name.startswith("."):
                continue
            for slot in sorted(target_dir.iterdir()):
                if not slot.is_dir() or slot.name.startswith("."):
                    continue
                result.append(
                    CacheSlot(
                        target=target_dir.name,
                        checksum=slot.name,
                        path=slot,
                        size_bytes=directory_size(slot),
                    )
                )
        return result

    def clean(self, target: Optional[str] = None) -> int:
        """
        Delete cache slots.

        Only invoked on user request; the pipeline never deletes entries.

        Args:
            target: Only delete slots of this target (all targets if None)

        Returns:
            Number of slots removed
        """
        removed = 0
        for slot in self.slots():
            if target is not None and slot.target != target:
                continue
            with self.lock_manager.slot_lock(slot.target, slot.checksum, self.timeout):
                safe_rmtree(slot.path, require_prefix=self.root)
            logger.info(f"Removed {slot.target}/{slot.checksum}")
            removed += 1
        return removed


__all__ = ["ArtifactCache", "CacheSlot"]
