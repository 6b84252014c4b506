"""
C API header staging for the FFI binding layer.

The binding generator reads ``sherpa-onnx/c-api/c-api.h`` from
``<out_dir>/include``. The header is taken from the native source tree when
one exists, else from the ``include`` directory of a prebuilt artifact.
"""

import logging
import shutil
from pathlib import Path
from typing import Iterable, Optional

from sherpakit.core.exceptions import FilesystemError

logger = logging.getLogger(__name__)

C_API_HEADER = Path("sherpa-onnx") / "c-api" / "c-api.h"


def find_c_api_header(roots: Iterable[Path]) -> Optional[Path]:
    """
    First C API header found under the given roots.

    Each root is searched as a source tree (``<root>/sherpa-onnx/c-api``)
    and as an install tree (``<root>/include/sherpa-onnx/c-api``).
    """
    for root in roots:
        for candidate in (root / C_API_HEADER, root / "include" / C_API_HEADER):
            if candidate.is_file():
                return candidate
    return None


def stage_c_api_header(settings, roots: Iterable[Path]) -> Optional[Path]:
    """
    Copy the C API header into ``<out_dir>/include``.

    Args:
        settings: BuildSettings (out_dir and skip_generate_bindings are used)
        roots: Directories to search, in priority order

    Returns:
        The staged header, or None when staging was skipped or no header was
        found

    Raises:
        FilesystemError: If the header cannot be copied
    """
    destination = settings.out_dir / "include" / C_API_HEADER

    if settings.skip_generate_bindings:
        logger.debug("Skip generate bindings")
        return destination if destination.is_file() else None

    source = find_c_api_header(roots)
    if source is None:
        logger.warning(
            f"C API header {C_API_HEADER.as_posix()} not found; "
            "bindings cannot be regenerated"
        )
        return None

    if destination.is_file() and source.resolve() == destination.resolve():
        # Installed by the native build
        return destination

    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        shutil.copy2(source, destination)
    except OSError as e:
        raise FilesystemError(f"Failed to stage {source} into {destination}: {e}") from e

    logger.debug(f"Staged C API header {source} -> {destination}")
    return destination


__all__ = ["C_API_HEADER", "find_c_api_header", "stage_c_api_header"]
