"""
Library name extraction.

Turns library files into bare link names: ``libfoo.so`` -> ``foo``,
``foo.lib`` -> ``foo``. The same rule applies to prebuilt and natively built
library trees.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Union

from sherpakit.core.platform import TargetInfo
from sherpakit.core.platform_capabilities import get_capabilities, link_suffix

logger = logging.getLogger(__name__)

# Helper libraries bundled with sherpa-onnx that are not meant to be linked
UNLINKABLE_MARKER = "cxx"

C_API_LIBRARY = "sherpa-onnx-c-api"
SHERPA_PREFIX = "sherpa-onnx"
ONNXRUNTIME_LIBRARY = "onnxruntime"

_LIBRARY_SUFFIX = re.compile(r"(\.so(\.\d+)*|\.dylib|\.a|\.lib|\.dll)$")


def is_linkable(name: str) -> bool:
    return UNLINKABLE_MARKER not in name


def lib_name_from_path(path: Union[str, Path]) -> str:
    """
    Link name of an explicitly listed library file.

    Example:
        >>> lib_name_from_path("jniLibs/arm64-v8a/libonnxruntime.so")
        'onnxruntime'
        >>> lib_name_from_path("build-ios/ios-onnxruntime/onnxruntime.a")
        'onnxruntime'
    """
    name = Path(path).name
    if name.startswith("lib"):
        name = name[3:]
    return _LIBRARY_SUFFIX.sub("", name)


def names_from_paths(paths: Iterable[Union[str, Path]]) -> List[str]:
    """Linkable names of an explicit library list, in list order."""
    names = []
    for path in paths:
        name = lib_name_from_path(path)
        if not is_linkable(name):
            logger.debug(f"Skipping unlinkable library {path}")
            continue
        if name not in names:
            names.append(name)
    return names


def extract_lib_names(lib_root: Path, is_dynamic: bool, target: TargetInfo) -> List[str]:
    """
    Scan ``<lib_root>/lib`` for libraries of the current linkage mode.

    Args:
        lib_root: Library tree root
        is_dynamic: Linkage mode (selects the file suffix)
        target: Compilation target (selects the naming convention)

    Returns:
        Sorted link names, unlinkable helpers excluded

    Example:
        >>> extract_lib_names(Path("sherpa-onnx-v1.12.9-linux-x64-shared"), True,
        ...                   TargetInfo.parse("x86_64-unknown-linux-gnu"))
        ['onnxruntime', 'sherpa-onnx-c-api']
    """
    prefix = get_capabilities(target)["lib_prefix"]
    suffix = link_suffix(target, is_dynamic)
    libs_dir = lib_root / "lib"
    logger.debug(f"Extract libs {libs_dir / ('*' + suffix)}")

    if not libs_dir.is_dir():
        logger.debug(f"Library directory does not exist: {libs_dir}")
        return []

    names = []
    for path in sorted(libs_dir.glob(f"*{suffix}")):
        if not path.is_file():
            continue
        name = path.name[: -len(suffix)]
        if prefix and name.startswith(prefix):
            name = name[len(prefix):]
        if not is_linkable(name):
            logger.debug(f"Skipping unlinkable library {path.name}")
            continue
        names.append(name)
    return names


def _static_rank(name: str) -> int:
    if name == C_API_LIBRARY:
        return 0
    if name.startswith(SHERPA_PREFIX):
        return 1
    if name == ONNXRUNTIME_LIBRARY:
        return 3
    return 2


def static_link_order(names: Iterable[str]) -> List[str]:
    """
    Order link names so that dependents precede their dependencies.

    Static linkers resolve symbols left to right: the C API comes first, then
    the other sherpa-onnx libraries, then third-party libraries, with
    onnxruntime last. Names of equal rank keep their relative order.

    Example:
        >>> static_link_order(["kaldi-native-fbank-core", "onnxruntime",
        ...                    "sherpa-onnx-c-api", "sherpa-onnx-core"])
        ['sherpa-onnx-c-api', 'sherpa-onnx-core', 'kaldi-native-fbank-core', 'onnxruntime']
    """
    return sorted(names, key=_static_rank)


__all__ = [
    "UNLINKABLE_MARKER",
    "static_link_order",
    "is_linkable",
    "lib_name_from_path",
    "names_from_paths",
    "extract_lib_names",
]
