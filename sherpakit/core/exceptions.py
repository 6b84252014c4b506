"""
Centralized exception hierarchy for SherpaKit.

Every failure of the native dependency pipeline surfaces as one of these
exceptions and aborts the build. A manifest lookup miss is not an exception:
the resolver returns None and the pipeline falls back to a native build.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class SherpaKitError(Exception):
    """Base exception for all SherpaKit errors."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(SherpaKitError):
    """Invalid or mutually exclusive build options, detected before any I/O."""

    pass


class ManifestError(SherpaKitError):
    """Distribution manifest or checksum table cannot be loaded or parsed."""

    pass


# ============================================================================
# Download Exceptions
# ============================================================================


class NetworkError(SherpaKitError):
    """Fetch failed or the transfer was truncated."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class IntegrityError(SherpaKitError):
    """Downloaded bytes do not match the manifest checksum."""

    def __init__(self, archive: str, expected: str, actual: str):
        self.archive = archive
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {archive}:\n"
            f"  expected: {expected}\n"
            f"  actual:   {actual}\n"
            "Clear the SherpaKit cache directory and retry. If you trust the "
            "source (local development only), set SHERPA_SKIP_CHECKSUM=1."
        )


# ============================================================================
# Filesystem Exceptions
# ============================================================================


class FilesystemError(SherpaKitError):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


class CacheLockTimeout(FilesystemError):
    """Raised when a cache slot lock cannot be acquired within timeout."""

    pass


# ============================================================================
# Native Build Exceptions
# ============================================================================


class NativeBuildError(SherpaKitError):
    """The external native build system reported a failure."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        if output:
            message = f"{message}\n--- build output (tail) ---\n{output}"
        super().__init__(message)


__all__ = [
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
