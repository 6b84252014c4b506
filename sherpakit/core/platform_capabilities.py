"""Platform capability matrix and helper functions.

This module provides a centralized database of per-OS link and build
capabilities. The pipeline selects one capability record from the target
once, instead of branching on the OS at every call site.

Capabilities:
- lib_prefix: File name prefix stripped to get a bare link name
- static_suffix: Suffix of static libraries in a library directory
- dynamic_link_suffix: Suffix of the files linked against for dynamic linkage
- runtime_suffix: Suffix of shared libraries the loader needs at run time
- frameworks: System frameworks linked unconditionally
- cxx_runtime: C++ standard library linked unconditionally (or None)
- static_crt_toggle: Whether the C runtime linkage can be selected
- audio_io: Whether the audio I/O subsystem (PortAudio) builds on this OS
- clang_runtime_probe: Whether the compiler runtime search path is probed
- debug_crt: Runtime library linked in debug profiles (or None)
"""

from typing import Any, Dict

from .platform import TargetInfo

# Platform capability database
PLATFORM_CAPABILITIES: Dict[str, Dict[str, Any]] = {
    "linux": {
        "lib_prefix": "lib",
        "static_suffix": ".a",
        "dynamic_link_suffix": ".so",
        "runtime_suffix": ".so",
        "frameworks": [],
        "cxx_runtime": "stdc++",
        "static_crt_toggle": False,
        "audio_io": True,
        "clang_runtime_probe": False,
        "debug_crt": None,
    },
    "android": {
        "lib_prefix": "lib",
        "static_suffix": ".a",
        "dynamic_link_suffix": ".so",
        "runtime_suffix": ".so",
        "frameworks": [],
        "cxx_runtime": "stdc++",
        "static_crt_toggle": False,
        "audio_io": False,
        "clang_runtime_probe": False,
        "debug_crt": None,
    },
    "windows": {
        "lib_prefix": "",
        # Import libraries and static libraries share the .lib suffix
        "static_suffix": ".lib",
        "dynamic_link_suffix": ".lib",
        "runtime_suffix": ".dll",
        "frameworks": [],
        "cxx_runtime": None,
        "static_crt_toggle": True,
        "audio_io": True,
        "clang_runtime_probe": False,
        "debug_crt": "msvcrtd",
    },
    "macos": {
        "lib_prefix": "lib",
        "static_suffix": ".a",
        "dynamic_link_suffix": ".dylib",
        "runtime_suffix": ".dylib",
        "frameworks": ["CoreML", "Foundation"],
        "cxx_runtime": "c++",
        "static_crt_toggle": False,
        "audio_io": False,
        "clang_runtime_probe": True,
        "debug_crt": None,
    },
    "ios": {
        "lib_prefix": "lib",
        "static_suffix": ".a",
        "dynamic_link_suffix": ".dylib",
        "runtime_suffix": ".dylib",
        "frameworks": ["CoreML", "Foundation"],
        "cxx_runtime": "c++",
        "static_crt_toggle": False,
        "audio_io": False,
        "clang_runtime_probe": False,
        "debug_crt": None,
    },
}


def get_capabilities(target: TargetInfo) -> Dict[str, Any]:
    """
    Get the capability record for a target.

    Args:
        target: Parsed target

    Returns:
        Capability dictionary (see module docstring)

    Raises:
        KeyError: If the target OS has no capability record

    Example:
        >>> get_capabilities(TargetInfo.parse("aarch64-apple-darwin"))["cxx_runtime"]
        'c++'
    """
    return PLATFORM_CAPABILITIES[target.os]


def supports_feature(target: TargetInfo, feature: str) -> bool:
    """
    Check if a target supports a boolean capability.

    Returns False for unknown operating systems or capabilities.

    Example:
        >>> supports_feature(TargetInfo.parse("x86_64-pc-windows-msvc"), "static_crt_toggle")
        True
    """
    capabilities = PLATFORM_CAPABILITIES.get(target.os, {})
    return bool(capabilities.get(feature, False))


def link_suffix(target: TargetInfo, is_dynamic: bool) -> str:
    """Suffix of the files to link against for the given linkage."""
    capabilities = get_capabilities(target)
    return capabilities["dynamic_link_suffix" if is_dynamic else "static_suffix"]


def runtime_suffix(target: TargetInfo) -> str:
    """Suffix of the shared libraries needed at load time."""
    return get_capabilities(target)["runtime_suffix"]


__all__ = [
    "PLATFORM_CAPABILITIES",
    "get_capabilities",
    "supports_feature",
    "link_suffix",
    "runtime_suffix",
]
