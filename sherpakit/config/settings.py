"""Build settings for SherpaKit.

``BuildSettings`` is the explicit configuration of one pipeline invocation.
It is assembled once by ``load_settings`` from three layers (built-in
defaults, the optional ``sherpakit.yaml`` project file, then environment
variables) and passed by parameter to every component. Nothing downstream
reads ``os.environ``.

Example sherpakit.yaml:

    version: 1
    features: [download-binaries, tts]
    profile: Release
    out_dir: build/sherpa
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from sherpakit.config.features import FeatureSet, initial_is_dynamic
from sherpakit.core.exceptions import ConfigurationError
from sherpakit.core.platform import TargetInfo, detect_host_target

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "sherpakit.yaml"
SUPPORTED_CONFIG_VERSION = 1

DEFAULT_PROFILE = "Release"
DEFAULT_OUT_DIR = "build"
VENDORED_SOURCE_DIR = "sherpa-onnx"

# Every variable that changes the pipeline's outcome. The outer build system
# re-runs the pipeline when one of them changes.
WATCHED_ENV = [
    "SHERPA_LIB_PATH",
    "SHERPA_BUILD_SHARED_LIBS",
    "CMAKE_BUILD_PARALLEL_LEVEL",
    "CMAKE_VERBOSE",
    "SHERPA_LIB_PROFILE",
    "SHERPA_OUTPUT_PROFILE",
    "SHERPA_STATIC_CRT",
    "SHERPA_SKIP_CHECKSUM",
    "SHERPA_SKIP_GENERATE_BINDINGS",
    "SHERPA_BUILD_DEBUG",
    "SHERPA_BUILD_FROM_SOURCE",
    "SHERPA_SOURCE_DIR",
    "SHERPA_CACHE_DIR",
    "SHERPA_FEATURES",
    "SHERPA_TARGET",
    "SHERPA_OUT_DIR",
    "SHERPA_TARGET_DIR",
    "SHERPA_FALLBACK_TO_SOURCE",
    "SHERPA_DOWNLOAD_RETRIES",
    "SHERPA_DOCS_ONLY",
    "ANDROID_NDK_HOME",
    "ANDROID_NDK",
]

_FILE_KEYS = {
    "version",
    "features",
    "target",
    "source_dir",
    "out_dir",
    "target_dir",
    "profile",
    "output_profile",
    "cache_dir",
    "lib_path",
}


@dataclass(frozen=True)
class BuildSettings:
    """Explicit configuration of one pipeline invocation."""

    target: str
    features: FeatureSet
    out_dir: Path
    project_root: Path
    target_dir: Optional[Path] = None
    profile: str = DEFAULT_PROFILE
    output_profile: Optional[str] = None
    lib_path: Optional[Path] = None
    source_dir: Optional[Path] = None
    cache_dir: Optional[Path] = None
    shared_libs_env: Optional[str] = None
    parallel_jobs: int = 1
    verbose_build: bool = False
    static_crt: bool = True
    skip_checksum: bool = False
    skip_generate_bindings: bool = False
    debug: bool = False
    build_from_source: bool = False
    fallback_to_source: bool = False
    download_retries: int = 1
    docs_only: bool = False
    android_ndk: Optional[Path] = None
    config_file: Optional[Path] = field(default=None, compare=False)

    @property
    def target_info(self) -> TargetInfo:
        return TargetInfo.parse(self.target)

    @property
    def is_dynamic_hint(self) -> bool:
        """Linkage derived from features and SHERPA_BUILD_SHARED_LIBS."""
        return initial_is_dynamic(self.features, self.shared_libs_env)

    @property
    def force_native_build(self) -> bool:
        """True when the caller asked to compile from source."""
        return self.build_from_source or self.source_dir is not None

    @property
    def native_source_dir(self) -> Path:
        """Source tree used for native builds (override or vendored copy)."""
        if self.source_dir is not None:
            return self.source_dir
        return self.project_root / VENDORED_SOURCE_DIR

    @property
    def is_debug_profile(self) -> bool:
        return self.profile.lower() == "debug"

    @property
    def consumer_profile(self) -> str:
        """
        Profile of the consuming build.

        Selects the output directory that receives shared libraries and the
        Windows debug C runtime. Defaults to the native library profile.
        """
        return self.output_profile or self.profile

    def resolve_target_dir(self) -> Path:
        """
        Primary output directory that receives shared libraries.

        Uses target_dir when configured; otherwise the first ancestor of
        out_dir named after the consumer profile, else out_dir itself.
        """
        if self.target_dir is not None:
            return self.target_dir
        found = find_profile_dir(self.out_dir, self.consumer_profile)
        return found if found is not None else self.out_dir

    @staticmethod
    def watched_env() -> List[str]:
        return list(WATCHED_ENV)

    def describe(self) -> Dict[str, Any]:
        """Plain dictionary view, used by the CLI."""
        return {
            "target": self.target,
            "features": list(self.features),
            "profile": self.profile,
            "output_profile": self.consumer_profile,
            "is_dynamic_hint": self.is_dynamic_hint,
            "out_dir": str(self.out_dir),
            "target_dir": str(self.resolve_target_dir()),
            "lib_path": str(self.lib_path) if self.lib_path else None,
            "source_dir": str(self.native_source_dir),
            "force_native_build": self.force_native_build,
            "cache_dir": str(self.cache_dir) if self.cache_dir else None,
            "parallel_jobs": self.parallel_jobs,
            "static_crt": self.static_crt,
            "skip_checksum": self.skip_checksum,
            "fallback_to_source": self.fallback_to_source,
            "download_retries": self.download_retries,
            "docs_only": self.docs_only,
            "config_file": str(self.config_file) if self.config_file else None,
        }


def find_profile_dir(out_dir: Path, profile: str) -> Optional[Path]:
    """
    Walk up from out_dir to the first ancestor named after the profile.

    The comparison ignores case so that a ``Release`` profile matches a
    ``release`` output directory.

    Example:
        >>> find_profile_dir(Path("/w/target/release/build/x/out"), "Release")
        PosixPath('/w/target/release')
    """
    wanted = profile.lower()
    for parent in out_dir.parents:
        if parent.name.lower() == wanted:
            return parent
    return None


def load_config_file(config_path: Path) -> Dict[str, Any]:
    """
    Load and validate a sherpakit.yaml project file.

    Args:
        config_path: Path to the file

    Returns:
        The validated mapping

    Raises:
        ConfigurationError: If the file is unreadable, not valid YAML, has an
            unsupported version or unknown keys
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: top level must be a mapping")

    version = data.get("version", SUPPORTED_CONFIG_VERSION)
    if version != SUPPORTED_CONFIG_VERSION:
        raise ConfigurationError(
            f"{config_path}: unsupported version: {version} "
            f"(expected {SUPPORTED_CONFIG_VERSION})"
        )

    unknown = sorted(set(data) - _FILE_KEYS)
    if unknown:
        raise ConfigurationError(
            f"{config_path}: unknown keys: {', '.join(map(str, unknown))}"
        )

    return data


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> BuildSettings:
    """
    Build the settings of one pipeline invocation.

    Args:
        config_path: Project file; defaults to ``sherpakit.yaml`` in cwd if
            it exists
        environ: Environment mapping (defaults to a snapshot of os.environ)
        cwd: Directory that relative environment paths resolve against

    Returns:
        Frozen BuildSettings

    Raises:
        ConfigurationError: On invalid file contents or environment values
    """
    env = dict(os.environ if environ is None else environ)
    cwd = Path(cwd) if cwd is not None else Path.cwd()

    if config_path is None and (cwd / CONFIG_FILE_NAME).is_file():
        config_path = cwd / CONFIG_FILE_NAME

    data: Dict[str, Any] = {}
    project_root = cwd
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        data = load_config_file(config_path)
        project_root = config_path.resolve().parent
        logger.debug(f"Loaded configuration from {config_path}")

    def path_option(env_name: str, key: str) -> Optional[Path]:
        if env.get(env_name):
            return _absolute(Path(env[env_name]), cwd)
        if data.get(key):
            return _absolute(Path(str(data[key])), project_root)
        return None

    target = env.get("SHERPA_TARGET") or data.get("target") or detect_host_target()
    # Fail before any I/O on a malformed triple
    TargetInfo.parse(str(target))

    if env.get("SHERPA_FEATURES") is not None:
        features = FeatureSet.parse(env["SHERPA_FEATURES"].split(","))
    elif "features" in data:
        features = FeatureSet.parse(_as_list(data["features"], "features"))
    else:
        features = FeatureSet()

    out_dir = path_option("SHERPA_OUT_DIR", "out_dir") or project_root / DEFAULT_OUT_DIR

    return BuildSettings(
        target=str(target),
        features=features,
        out_dir=out_dir,
        project_root=project_root,
        target_dir=path_option("SHERPA_TARGET_DIR", "target_dir"),
        profile=env.get("SHERPA_LIB_PROFILE") or str(data.get("profile") or DEFAULT_PROFILE),
        output_profile=(
            env.get("SHERPA_OUTPUT_PROFILE") or _optional_str(data.get("output_profile"))
        ),
        lib_path=path_option("SHERPA_LIB_PATH", "lib_path"),
        source_dir=path_option("SHERPA_SOURCE_DIR", "source_dir"),
        cache_dir=path_option("SHERPA_CACHE_DIR", "cache_dir"),
        shared_libs_env=env.get("SHERPA_BUILD_SHARED_LIBS"),
        parallel_jobs=_positive_int(
            env, "CMAKE_BUILD_PARALLEL_LEVEL", available_cpus()
        ),
        verbose_build="CMAKE_VERBOSE" in env,
        static_crt=env.get("SHERPA_STATIC_CRT", "1") == "1",
        skip_checksum=env.get("SHERPA_SKIP_CHECKSUM") == "1",
        skip_generate_bindings="SHERPA_SKIP_GENERATE_BINDINGS" in env,
        debug=env.get("SHERPA_BUILD_DEBUG") == "1",
        build_from_source=env.get("SHERPA_BUILD_FROM_SOURCE") == "1",
        fallback_to_source=env.get("SHERPA_FALLBACK_TO_SOURCE") == "1",
        download_retries=_positive_int(env, "SHERPA_DOWNLOAD_RETRIES", 1),
        docs_only=env.get("SHERPA_DOCS_ONLY") == "1",
        android_ndk=_ndk_path(env, cwd),
        config_file=config_path,
    )


def available_cpus() -> int:
    """Processing units this process may run on (honours CPU affinity)."""
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value else None


def _absolute(path: Path, base: Path) -> Path:
    path = path.expanduser()
    return path if path.is_absolute() else base / path


def _ndk_path(env: Mapping[str, str], cwd: Path) -> Optional[Path]:
    for name in ("ANDROID_NDK_HOME", "ANDROID_NDK"):
        if env.get(name):
            return _absolute(Path(env[name]), cwd)
    return None


def _as_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, list):
        return [str(item) for item in value]
    raise ConfigurationError(f"'{key}' must be a list or a comma separated string")


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return value


__all__ = [
    "CONFIG_FILE_NAME",
    "WATCHED_ENV",
    "available_cpus",
    "BuildSettings",
    "find_profile_dir",
    "load_config_file",
    "load_settings",
]
