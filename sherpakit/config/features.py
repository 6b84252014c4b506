"""Build feature set normalization and validation.

A feature set is the normalized set of enabled build options that decides
which native artifact is required. Two builds with the same feature set
resolve identically.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, Optional, Protocol

from sherpakit.core.exceptions import ConfigurationError
from sherpakit.core.platform import TargetInfo

DOWNLOAD_BINARIES = "download-binaries"
STATIC = "static"
CUDA = "cuda"
DIRECTML = "directml"
TTS = "tts"

KNOWN_FEATURES = frozenset({DOWNLOAD_BINARIES, STATIC, CUDA, DIRECTML, TTS})
GPU_FEATURES = frozenset({CUDA, DIRECTML})
DEFAULT_FEATURES = frozenset({DOWNLOAD_BINARIES})


class VariantLookup(Protocol):
    """The part of the manifest feature validation needs."""

    def has_variant(self, target: TargetInfo, key: str) -> bool: ...


@dataclass(frozen=True)
class FeatureSet:
    """Immutable, normalized set of enabled features."""

    features: FrozenSet[str] = DEFAULT_FEATURES

    @classmethod
    def parse(cls, values: Iterable[str]) -> "FeatureSet":
        """
        Build a feature set from user input.

        Names are stripped and lower-cased; underscores are accepted for
        dashes. Empty items are ignored.

        Raises:
            ConfigurationError: If a feature name is unknown

        Example:
            >>> FeatureSet.parse(["TTS", "download_binaries"]).key()
            ''
        """
        normalized = set()
        for value in values:
            name = value.strip().lower().replace("_", "-")
            if not name:
                continue
            if name not in KNOWN_FEATURES:
                raise ConfigurationError(
                    f"Unknown feature: {value!r} "
                    f"(expected one of {', '.join(sorted(KNOWN_FEATURES))})"
                )
            normalized.add(name)
        return cls(frozenset(normalized))

    def __contains__(self, name: object) -> bool:
        return name in self.features

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.features))

    def __len__(self) -> int:
        return len(self.features)

    @property
    def gpu_backends(self) -> FrozenSet[str]:
        return self.features & GPU_FEATURES

    def key(self) -> str:
        """
        Manifest variant key: the archive-affecting features, sorted.

        Only GPU backends select a different prebuilt archive; an empty key
        means the default archive for the target.
        """
        return "+".join(sorted(self.gpu_backends))

    def __str__(self) -> str:
        return ",".join(self) or "(none)"


def initial_is_dynamic(features: FeatureSet, shared_libs_env: Optional[str]) -> bool:
    """
    Derive the caller's linkage hint from features and environment.

    The manifest may still override the result.

    Args:
        features: Enabled features
        shared_libs_env: Value of SHERPA_BUILD_SHARED_LIBS, or None if unset

    Returns:
        True for dynamic linkage
    """
    if STATIC in features:
        return False
    if features.gpu_backends:
        return True
    if shared_libs_env is not None:
        return shared_libs_env == "1"
    return True


def validate_features(
    features: FeatureSet, target: TargetInfo, manifest: Optional[VariantLookup] = None
) -> None:
    """
    Reject mutually exclusive feature combinations before any I/O.

    Args:
        features: Enabled features
        target: Compilation target
        manifest: Manifest used to check that prebuilt GPU variants exist

    Raises:
        ConfigurationError: Naming the conflicting options and the fix
    """
    if DIRECTML in features and target.os != "windows":
        raise ConfigurationError(
            f"The '{DIRECTML}' feature is only available on Windows targets "
            f"(target: {target}).\n"
            f"To resolve this, remove '{DIRECTML}' from the enabled features."
        )

    if DOWNLOAD_BINARIES in features and features.gpu_backends and manifest is not None:
        key = features.key()
        if not manifest.has_variant(target, key):
            raise ConfigurationError(
                f"The '{DOWNLOAD_BINARIES}' and '{key}' features cannot be enabled "
                f"at the same time for {target}: no prebuilt binary ships "
                f"{key} support.\n"
                f"To resolve this, disable '{DOWNLOAD_BINARIES}' when using "
                f"'{key}', for example SHERPA_FEATURES={key}"
            )

    if (
        target.os == "windows"
        and DOWNLOAD_BINARIES in features
        and STATIC in features
        and TTS in features
    ):
        raise ConfigurationError(
            f"The '{DOWNLOAD_BINARIES}', '{STATIC}', and '{TTS}' features cannot be "
            "enabled at the same time: prebuilt static Windows libraries do not "
            "include TTS.\n"
            f"To resolve this, disable '{TTS}' or build from source without "
            f"'{DOWNLOAD_BINARIES}'."
        )


__all__ = [
    "DOWNLOAD_BINARIES",
    "STATIC",
    "CUDA",
    "DIRECTML",
    "TTS",
    "KNOWN_FEATURES",
    "GPU_FEATURES",
    "DEFAULT_FEATURES",
    "FeatureSet",
    "initial_is_dynamic",
    "validate_features",
]
