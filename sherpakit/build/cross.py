"""
Cross-compilation variables for native sherpa-onnx builds.

Translates a target triple into the CMake variables needed to build for it:
the Android NDK toolchain file and ABI, the iOS SDK and architectures, or the
macOS architecture. Linux and Windows targets use the host toolchain.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from sherpakit.core.exceptions import ConfigurationError
from sherpakit.core.platform import TargetInfo

logger = logging.getLogger(__name__)

ANDROID_ABI_MAP = {
    "aarch64": "arm64-v8a",
    "armv7": "armeabi-v7a",
    "x86_64": "x86_64",
    "i686": "x86",
}

APPLE_ARCH_MAP = {
    "aarch64": "arm64",
    "x86_64": "x86_64",
}

DEFAULT_ANDROID_API_LEVEL = 21
DEFAULT_IOS_DEPLOYMENT_TARGET = "13.0"


@dataclass
class CrossCompileTarget:
    """
    Cross-compilation target description.

    Attributes:
        system_name: CMake system name ('Android', 'iOS', 'Darwin')
        system_processor: Target CPU architecture as CMake expects it
        variables: Additional CMake cache variables
    """

    system_name: str
    system_processor: str
    variables: Dict[str, str] = field(default_factory=dict)

    def cmake_variables(self) -> Dict[str, str]:
        result = {"CMAKE_SYSTEM_NAME": self.system_name}
        result.update(self.variables)
        return result


def configure_android(
    target: TargetInfo, ndk_path: Optional[Path], api_level: int = DEFAULT_ANDROID_API_LEVEL
) -> CrossCompileTarget:
    """
    Configure an Android NDK build.

    Args:
        target: Android target
        ndk_path: NDK root (from ANDROID_NDK_HOME or ANDROID_NDK)
        api_level: Minimum Android API level

    Raises:
        ConfigurationError: If no NDK is configured or the ABI is unsupported

    Example:
        >>> t = configure_android(TargetInfo.parse("aarch64-linux-android"), Path("/ndk"))
        >>> t.variables["ANDROID_ABI"]
        'arm64-v8a'
    """
    abi = ANDROID_ABI_MAP.get(target.arch)
    if abi is None:
        raise ConfigurationError(
            f"Unsupported Android architecture: {target.arch}. "
            f"Supported: {', '.join(ANDROID_ABI_MAP)}"
        )
    if ndk_path is None:
        raise ConfigurationError(
            f"Building sherpa-onnx for {target} needs the Android NDK.\n"
            "Set ANDROID_NDK_HOME (or ANDROID_NDK) to the NDK root."
        )

    toolchain_file = ndk_path / "build" / "cmake" / "android.toolchain.cmake"
    return CrossCompileTarget(
        system_name="Android",
        system_processor=abi,
        variables={
            "CMAKE_TOOLCHAIN_FILE": str(toolchain_file),
            "ANDROID_ABI": abi,
            "ANDROID_PLATFORM": f"android-{api_level}",
        },
    )


def configure_ios(
    target: TargetInfo, deployment_target: str = DEFAULT_IOS_DEPLOYMENT_TARGET
) -> CrossCompileTarget:
    """
    Configure an iOS device or simulator build.

    Example:
        >>> t = configure_ios(TargetInfo.parse("aarch64-apple-ios-sim"))
        >>> t.variables["CMAKE_OSX_SYSROOT"]
        'iphonesimulator'
    """
    arch = APPLE_ARCH_MAP.get(target.arch)
    if arch is None:
        raise ConfigurationError(f"Unsupported iOS architecture: {target.arch}")
    sdk = "iphonesimulator" if target.is_simulator else "iphoneos"

    return CrossCompileTarget(
        system_name="iOS",
        system_processor=arch,
        variables={
            "CMAKE_OSX_ARCHITECTURES": arch,
            "CMAKE_OSX_SYSROOT": sdk,
            "CMAKE_OSX_DEPLOYMENT_TARGET": deployment_target,
        },
    )


def cross_compile_variables(
    target: TargetInfo, host: TargetInfo, ndk_path: Optional[Path] = None
) -> Dict[str, str]:
    """
    CMake variables for building the target on the host.

    Args:
        target: Compilation target
        host: Build host
        ndk_path: Android NDK root, needed for Android targets

    Returns:
        Variables to pass as ``-D`` definitions (empty for native builds)
    """
    if target.os == "android":
        return configure_android(target, ndk_path).cmake_variables()
    if target.os == "ios":
        return configure_ios(target).cmake_variables()
    if target.os == "macos":
        arch = APPLE_ARCH_MAP.get(target.arch, target.arch)
        return {"CMAKE_OSX_ARCHITECTURES": arch}

    if target.triple != host.triple:
        logger.warning(
            f"Building for {target} on {host} with the host toolchain; "
            "configure a cross toolchain if the build fails"
        )
    return {}


__all__ = [
    "CrossCompileTarget",
    "configure_android",
    "configure_ios",
    "cross_compile_variables",
]
