"""
Core functionality for SherpaKit.

This package contains the foundational modules that other components depend on.
"""

from .platform import (
    TargetInfo,
    detect_host_target,
    clear_target_cache,
)

from .directory import (
    get_global_cache_dir,
    ensure_cache_root,
    verify_directory_writable,
)

from .locking import LockManager

from .exceptions import (
    SherpaKitError,
    ConfigurationError,
    ManifestError,
    NetworkError,
    IntegrityError,
    FilesystemError,
    ArchiveExtractionError,
    UnsupportedArchiveFormat,
    InsecureArchiveError,
    CacheLockTimeout,
    NativeBuildError,
)

__all__ = [
    # Platform
    "TargetInfo",
    "detect_host_target",
    "clear_target_cache",
    # Directory
    "get_global_cache_dir",
    "ensure_cache_root",
    "verify_directory_writable",
    # Locking
    "LockManager",
    # Exceptions
    "SherpaKitError",
    "ConfigurationError",
    "ManifestError",
    "NetworkError",
    "IntegrityError",
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "CacheLockTimeout",
    "NativeBuildError",
]
