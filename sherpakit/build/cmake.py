"""
Native sherpa-onnx build through CMake.

Used when no prebuilt archive matches, when the caller forces a source build,
or (when enabled) after a failed download. The vendored source tree is copied
into the build output directory first, so the original tree is never
modified, then configured, built and installed into ``out_dir``.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional

from sherpakit.artifacts.artifact import ResolvedArtifact
from sherpakit.build.cross import cross_compile_variables
from sherpakit.config.features import CUDA, DIRECTML, TTS
from sherpakit.core.exceptions import NativeBuildError
from sherpakit.core.filesystem import copy_source_tree
from sherpakit.core.platform import TargetInfo, detect_host_target
from sherpakit.core.platform_capabilities import supports_feature
from sherpakit.link.names import extract_lib_names

logger = logging.getLogger(__name__)

# Vendored files that cannot be copied and are not needed by the build
EXCLUDED_SOURCE_FILES = (
    "scripts/go/_internal/vad-spoken-language-identification/run.sh",
    "scripts/go/_internal/vad-spoken-language-identification/main.go",
)

SOURCE_COPY_DIR = "sherpa-onnx"
BUILD_DIR = "build"
OUTPUT_TAIL_LINES = 60


def _on_off(flag: bool) -> str:
    return "ON" if flag else "OFF"


def cmake_definitions(settings, target: TargetInfo, is_dynamic: bool) -> Dict[str, str]:
    """
    Translate build settings into sherpa-onnx CMake definitions.

    Args:
        settings: BuildSettings
        target: Compilation target
        is_dynamic: Requested linkage (GPU backends force shared libraries)

    Returns:
        Ordered mapping of CMake cache variables

    Example:
        >>> defs = cmake_definitions(settings, TargetInfo.parse("x86_64-pc-windows-msvc"), False)
        >>> defs["SHERPA_ONNX_ENABLE_PORTAUDIO"]
        'ON'
    """
    features = settings.features
    definitions = {
        "SHERPA_ONNX_ENABLE_C_API": "ON",
        "SHERPA_ONNX_ENABLE_BINARY": "OFF",
        "BUILD_SHARED_LIBS": _on_off(is_dynamic),
        "SHERPA_ONNX_ENABLE_WEBSOCKET": "OFF",
        "SHERPA_ONNX_ENABLE_TTS": _on_off(TTS in features),
        "SHERPA_ONNX_BUILD_C_API_EXAMPLES": "OFF",
    }

    if CUDA in features:
        logger.debug("Cuda enabled")
        definitions["SHERPA_ONNX_ENABLE_GPU"] = "ON"
        definitions["BUILD_SHARED_LIBS"] = "ON"

    if DIRECTML in features:
        logger.debug("DirectML enabled")
        definitions["SHERPA_ONNX_ENABLE_DIRECTML"] = "ON"
        definitions["BUILD_SHARED_LIBS"] = "ON"

    if supports_feature(target, "audio_io"):
        definitions["SHERPA_ONNX_ENABLE_PORTAUDIO"] = "ON"

    if supports_feature(target, "static_crt_toggle"):
        runtime = "MultiThreaded$<$<CONFIG:Debug>:Debug>"
        if not settings.static_crt:
            runtime += "DLL"
        definitions["CMAKE_POLICY_DEFAULT_CMP0091"] = "NEW"
        definitions["CMAKE_MSVC_RUNTIME_LIBRARY"] = runtime

    definitions["CMAKE_BUILD_TYPE"] = settings.profile
    if settings.verbose_build:
        definitions["CMAKE_VERBOSE_MAKEFILE"] = "ON"

    return definitions


def find_cmake() -> Optional[Path]:
    """Path to cmake on PATH, or None."""
    cmake_path = shutil.which("cmake")
    return Path(cmake_path) if cmake_path else None


def find_ninja() -> Optional[Path]:
    """Path to ninja on PATH, or None."""
    ninja_path = shutil.which("ninja")
    return Path(ninja_path) if ninja_path else None


def _tail(text: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    return "\n".join(text.splitlines()[-lines:])


class NativeBuilder:
    """
    Drive a sherpa-onnx CMake build.

    Example:
        >>> builder = NativeBuilder(settings)
        >>> artifact = builder.build(settings.native_source_dir, target, is_dynamic=True)
        >>> artifact.library_names
        ('onnxruntime', 'sherpa-onnx-c-api')
    """

    def __init__(
        self,
        settings,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        cmake: Optional[Path] = None,
        ninja: Optional[Path] = None,
    ):
        """
        Initialize the builder.

        Args:
            settings: BuildSettings
            runner: subprocess.run compatible callable
            cmake: cmake executable (looked up on PATH if None)
            ninja: ninja executable (looked up on PATH if None; used as the
                generator when found)
        """
        self.settings = settings
        self.runner = runner
        self.cmake = cmake if cmake is not None else find_cmake()
        self.ninja = ninja if ninja is not None else find_ninja()

    @property
    def source_copy(self) -> Path:
        return self.settings.out_dir / SOURCE_COPY_DIR

    @property
    def build_dir(self) -> Path:
        return self.settings.out_dir / BUILD_DIR

    def prepare_source(self, source_dir: Path) -> Path:
        """Copy the source tree into out_dir once."""
        if self.source_copy.exists():
            logger.debug(f"Reusing source copy {self.source_copy}")
            return self.source_copy

        logger.debug(f"Copy {source_dir} to {self.source_copy}")
        self.settings.out_dir.mkdir(parents=True, exist_ok=True)
        copy_source_tree(source_dir, self.source_copy, exclude=EXCLUDED_SOURCE_FILES)
        return self.source_copy

    def configure_command(self, source: Path, definitions: Dict[str, str]) -> List[str]:
        command = [str(self.cmake), "-S", str(source), "-B", str(self.build_dir)]
        if self.ninja is not None:
            command.extend(["-G", "Ninja"])
        command.append(f"-DCMAKE_INSTALL_PREFIX={self.settings.out_dir}")
        command.extend(f"-D{key}={value}" for key, value in definitions.items())
        return command

    def build_command(self) -> List[str]:
        command = [
            str(self.cmake),
            "--build",
            str(self.build_dir),
            "--config",
            self.settings.profile,
            "--parallel",
            str(self.settings.parallel_jobs),
        ]
        if self.settings.verbose_build:
            command.append("--verbose")
        return command

    def install_command(self) -> List[str]:
        return [
            str(self.cmake),
            "--install",
            str(self.build_dir),
            "--config",
            self.settings.profile,
            "--prefix",
            str(self.settings.out_dir),
        ]

    def build(self, source_dir: Path, target: TargetInfo, is_dynamic: bool) -> ResolvedArtifact:
        """
        Build and install sherpa-onnx, then scan the installed libraries.

        Configuration is skipped when the build directory already holds a
        CMake cache.

        Args:
            source_dir: sherpa-onnx source tree
            target: Compilation target
            is_dynamic: Requested linkage

        Returns:
            ResolvedArtifact rooted at out_dir

        Raises:
            NativeBuildError: If CMake is missing or a step fails
            FilesystemError: If the source tree cannot be copied
        """
        if self.cmake is None:
            raise NativeBuildError(
                "CMake not found in PATH. Install CMake (https://cmake.org/download/) "
                "or enable download-binaries for a supported target."
            )

        definitions = cmake_definitions(self.settings, target, is_dynamic)
        definitions.update(
            cross_compile_variables(
                target, TargetInfo.parse(detect_host_target()), self.settings.android_ndk
            )
        )
        is_dynamic = definitions["BUILD_SHARED_LIBS"] == "ON"

        source = self.prepare_source(source_dir)
        self.build_dir.mkdir(parents=True, exist_ok=True)

        if (self.build_dir / "CMakeCache.txt").exists():
            logger.debug("CMake cache present, skipping configure")
        else:
            self._run(self.configure_command(source, definitions), "configuration")
        self._run(self.build_command(), "build")
        self._run(self.install_command(), "install")

        names = extract_lib_names(self.settings.out_dir, is_dynamic, target)
        logger.info(f"Built sherpa-onnx from source: {', '.join(names) or '(no libraries)'}")
        return ResolvedArtifact(
            library_directory=self.settings.out_dir,
            is_dynamic=is_dynamic,
            library_names=tuple(names),
            origin="native",
        )

    def _run(self, command: List[str], step: str) -> None:
        logger.info(f"Running CMake {step}")
        logger.debug(f"CMake command: {' '.join(command)}")

        try:
            result = self.runner(command, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise NativeBuildError(f"CMake not found: {e}") from e

        output = (result.stdout or "") + (result.stderr or "")
        if self.settings.verbose_build and output:
            logger.info(output)

        if result.returncode != 0:
            raise NativeBuildError(
                f"CMake {step} failed with exit code {result.returncode}",
                output=_tail(output),
            )


__all__ = [
    "EXCLUDED_SOURCE_FILES",
    "cmake_definitions",
    "find_cmake",
    "find_ninja",
    "NativeBuilder",
]
