"""
Target detection and parsing for SherpaKit.

Compilation targets are identified by target triples such as
``x86_64-unknown-linux-gnu`` or ``aarch64-apple-ios-sim``. The triple is the
primary manifest lookup key and a cache path component, so it is computed once
per build invocation and never mutated.

Usage:
    from sherpakit.core.platform import TargetInfo, detect_host_target

    target = TargetInfo.parse(detect_host_target())
    print(f"OS: {target.os}")
    print(f"Architecture: {target.arch}")
    if target.is_mobile:
        print("Mobile target")
"""

import functools
import platform
from dataclasses import dataclass

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class TargetInfo:
    """
    Parsed target triple.

    Attributes:
        triple: Original target triple (the target identifier)
        arch: CPU architecture ('x86_64', 'aarch64', 'i686', 'armv7', ...)
        os: Normalized OS ('linux', 'macos', 'windows', 'android', 'ios')
        abi: ABI/environment component ('gnu', 'musl', 'msvc', 'sim', ...) or empty
    """

    triple: str
    arch: str
    os: str
    abi: str = ""

    @classmethod
    def parse(cls, triple: str) -> "TargetInfo":
        """
        Parse a target triple.

        Args:
            triple: Target triple (e.g., 'aarch64-apple-darwin')

        Returns:
            TargetInfo for the triple

        Raises:
            ConfigurationError: If the triple names no supported OS

        Example:
            >>> TargetInfo.parse("x86_64-pc-windows-msvc").os
            'windows'
        """
        triple = triple.strip()
        parts = triple.split("-")
        if len(parts) < 2 or not all(parts):
            raise ConfigurationError(f"Invalid target triple: {triple!r}")

        arch = parts[0]
        rest = parts[1:]

        if "android" in rest or any(p.startswith("androideabi") for p in rest):
            os_name = "android"
        elif "ios" in rest:
            os_name = "ios"
        elif "darwin" in rest:
            os_name = "macos"
        elif "windows" in rest:
            os_name = "windows"
        elif "linux" in rest:
            os_name = "linux"
        else:
            raise ConfigurationError(
                f"Unsupported target triple: {triple!r} "
                "(expected a linux, windows, darwin, android or ios target)"
            )

        abi = ""
        last = parts[-1]
        if last not in ("linux", "darwin", "ios", "windows", "android") and len(parts) > 2:
            abi = last

        return cls(triple=triple, arch=arch, os=os_name, abi=abi)

    @property
    def family(self) -> str:
        """Platform family used for manifest entries shared by all variants."""
        if self.os in ("android", "ios"):
            return self.os
        return self.triple

    @property
    def is_mobile(self) -> bool:
        return self.os in ("android", "ios")

    @property
    def is_apple(self) -> bool:
        return self.os in ("macos", "ios")

    @property
    def is_simulator(self) -> bool:
        return self.os == "ios" and (self.abi == "sim" or self.arch == "x86_64")

    def __str__(self) -> str:
        return self.triple


_ARCH_MAP = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "i386": "i686",
    "i686": "i686",
    "x86": "i686",
}


@functools.lru_cache(maxsize=1)
def detect_host_target() -> str:
    """
    Detect the target triple of the running host.

    This function is cached - it only runs detection once per process.

    Returns:
        Target triple string

    Raises:
        ConfigurationError: If the host OS is not supported

    Example:
        >>> detect_host_target()
        'x86_64-unknown-linux-gnu'
    """
    system = platform.system().lower()
    machine = platform.machine().lower()
    arch = _ARCH_MAP.get(machine, machine)
    if arch.startswith("armv7") or arch == "arm":
        arch = "armv7"

    if system == "linux":
        libc, _ = platform.libc_ver()
        abi = "gnu" if libc == "glibc" or not libc else "musl"
        if arch == "armv7":
            abi += "eabihf"
        return f"{arch}-unknown-linux-{abi}"
    elif system == "darwin":
        return f"{arch}-apple-darwin"
    elif system == "windows":
        return f"{arch}-pc-windows-msvc"
    else:
        raise ConfigurationError(f"Unsupported host operating system: {system}")


def clear_target_cache():
    """
    Clear the host target detection cache.

    Useful for testing.
    """
    detect_host_target.cache_clear()


__all__ = [
    "TargetInfo",
    "detect_host_target",
    "clear_target_cache",
]
