"""
Cross-platform file system utilities for SherpaKit.

This module provides the filesystem operations of the pipeline:
- Archive extraction (tar.bz2, tar.gz) from memory, with traversal checks
- Atomic directory population (extract to a temporary sibling, then rename)
- Source tree copying with exclusions
- Hard-link-or-copy of single files
- Safe deletion
"""

import io
import logging
import os
import shutil
import sys
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from .exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"

# Archive suffix -> tarfile mode
TAR_MODES = {
    ".tar.bz2": "r:bz2",
    ".tbz2": "r:bz2",
    ".tbz": "r:bz2",
    ".tar.gz": "r:gz",
    ".tgz": "r:gz",
}


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to parent.

    Args:
        path: Path to check
        parent: Potential parent path

    Returns:
        True if path is under parent
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def archive_stem(archive_name: str) -> str:
    """
    Strip a known archive suffix from a file name.

    Example:
        >>> archive_stem("sherpa-onnx-v1.12.9-linux-x64-shared.tar.bz2")
        'sherpa-onnx-v1.12.9-linux-x64-shared'
    """
    lowered = archive_name.lower()
    for suffix in sorted(TAR_MODES, key=len, reverse=True):
        if lowered.endswith(suffix):
            return archive_name[: -len(suffix)]
    return archive_name


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def _validate_archive_link(member: tarfile.TarInfo, destination: Path) -> None:
    """
    Validate that a link member points inside the extraction directory.

    Symlink targets are relative to the member's directory; hard link
    targets are relative to the archive root.

    Raises:
        InsecureArchiveError: If the link target is absolute or escapes
    """
    if not (member.issym() or member.islnk()):
        return

    if os.path.isabs(member.linkname):
        raise InsecureArchiveError(
            f"Archive member '{member.name}' links to absolute path "
            f"'{member.linkname}'. Extraction has been blocked."
        )

    if member.issym():
        link_target = (destination / member.name).parent / member.linkname
    else:
        link_target = destination / member.linkname

    if not is_relative_to(link_target.resolve(), destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{member.name}' links outside the archive "
            f"('{member.linkname}'). Extraction has been blocked."
        )


def extract_archive_bytes(
    data: bytes,
    archive_name: str,
    destination: Union[str, Path],
) -> None:
    """
    Extract an in-memory compressed tar archive to a directory.

    Supported formats:
    - .tar.bz2, .tbz2
    - .tar.gz, .tgz

    Args:
        data: Archive bytes
        archive_name: Archive file name (selects the decompressor)
        destination: Directory to extract to

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths

    Example:
        >>> extract_archive_bytes(payload, "sherpa-onnx.tar.bz2", Path("/tmp/out"))
    """
    destination = Path(destination)
    lowered = archive_name.lower()
    mode = next(
        (m for suffix, m in TAR_MODES.items() if lowered.endswith(suffix)), None
    )
    if mode is None:
        raise UnsupportedArchiveFormat(
            f"Unsupported archive format: {archive_name}. "
            f"Supported: {', '.join(TAR_MODES)}"
        )

    destination.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Extracting {archive_name} to {destination}")

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode=mode) as tar:
            members = tar.getmembers()

            # Validate all paths first
            for member in members:
                _validate_archive_path(member.name, destination)
                _validate_archive_link(member, destination)

            if sys.version_info >= (3, 12):
                # Keep links inside the archive (versioned .so symlinks)
                tar.extractall(destination, filter="tar")
            else:
                tar.extractall(destination)
    except InsecureArchiveError:
        raise
    except (tarfile.TarError, OSError, EOFError) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_name}: {e}") from e


def populate_atomically(
    final_dir: Path, populate: Callable[[Path], None]
) -> bool:
    """
    Populate a directory so readers never observe a partial state.

    ``populate`` fills a temporary sibling of ``final_dir``; on success the
    sibling is renamed into place. If another process renamed its own copy
    into place first, the local copy is discarded.

    Args:
        final_dir: Directory that must appear fully populated or not at all
        populate: Callable receiving the temporary directory to fill

    Returns:
        True if this call created final_dir, False if it already existed

    Raises:
        Whatever ``populate`` raises; the temporary directory is removed.
    """
    if final_dir.exists():
        return False

    final_dir.parent.mkdir(parents=True, exist_ok=True)
    temp_dir = Path(
        tempfile.mkdtemp(dir=final_dir.parent, prefix=f".{final_dir.name}.tmp-")
    )

    try:
        populate(temp_dir)
        try:
            temp_dir.rename(final_dir)
        except OSError:
            if final_dir.exists():
                logger.info(f"{final_dir} was populated by another process")
                return False
            raise
        return True
    finally:
        if temp_dir.exists():
            safe_rmtree(temp_dir)


# ============================================================================
# Copy Operations
# ============================================================================


def copy_source_tree(
    source: Union[str, Path],
    destination: Union[str, Path],
    exclude: Iterable[str] = (),
) -> None:
    """
    Recursively copy a source tree, skipping excluded relative paths.

    Symlinks are copied as symlinks.

    Args:
        source: Source directory
        destination: Destination directory (must not exist)
        exclude: POSIX-style paths relative to source to leave out

    Raises:
        FilesystemError: If the source is missing or the copy fails

    Example:
        >>> copy_source_tree("sherpa-onnx", "build/sherpa-onnx", ["scripts/run.sh"])
    """
    source = Path(source)
    destination = Path(destination)

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    excluded = {Path(p) for p in exclude}

    def ignore(directory: str, names: list) -> set:
        rel_dir = Path(directory).relative_to(source)
        return {name for name in names if rel_dir / name in excluded}

    try:
        shutil.copytree(source, destination, symlinks=True, ignore=ignore)
    except (shutil.Error, OSError) as e:
        raise FilesystemError(
            f"Failed to copy sources from {source} into {destination}: {e}"
        ) from e


def link_or_copy(source: Path, destination: Path) -> str:
    """
    Hard-link a file, falling back to a byte copy.

    Args:
        source: Existing file
        destination: New path (must not exist)

    Returns:
        'hardlink', 'copy', or 'exists' when another process created the
        destination first (it is left untouched)

    Raises:
        FilesystemError: If both the hard link and the copy fail
    """
    try:
        os.link(source, destination)
        return "hardlink"
    except FileExistsError:
        return "exists"
    except OSError as e:
        logger.debug(f"Failed to hardlink {source} ({e}). fallback to copy.")

    # Exclusive create: never overwrite a file placed by a concurrent build
    try:
        src = open(source, "rb")
    except OSError as e:
        raise FilesystemError(f"Failed to copy {source} to {destination}: {e}") from e
    with src:
        try:
            dst = open(destination, "xb")
        except FileExistsError:
            return "exists"
        except OSError as e:
            raise FilesystemError(
                f"Failed to copy {source} to {destination}: {e}"
            ) from e
        try:
            with dst:
                shutil.copyfileobj(src, dst)
        except OSError as e:
            destination.unlink(missing_ok=True)
            raise FilesystemError(
                f"Failed to copy {source} to {destination}: {e}"
            ) from e
    try:
        shutil.copystat(source, destination)
    except OSError as e:
        logger.debug(f"Failed to copy metadata to {destination}: {e}")
    return "copy"


# ============================================================================
# Safe Deletion
# ============================================================================


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/tmp/build', require_prefix='/tmp')
        >>> safe_rmtree('/usr/bin', require_prefix='/home')  # ValueError
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(path, os.W_OK):
                    os.chmod(path, 0o777)
                    func(path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}")


def directory_size(path: Union[str, Path]) -> int:
    """
    Calculate total size of a directory in bytes.

    Example:
        >>> size = directory_size('/tmp/mydir')
        >>> print(f"Directory is {size / 1024 / 1024:.2f} MB")
    """
    return sum(item.stat().st_size for item in Path(path).rglob("*") if item.is_file())


__all__ = [
    "TAR_MODES",
    "is_relative_to",
    "archive_stem",
    "extract_archive_bytes",
    "populate_atomically",
    "copy_source_tree",
    "link_or_copy",
    "safe_rmtree",
    "directory_size",
]
