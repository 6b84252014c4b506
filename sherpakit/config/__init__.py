"""Configuration module for SherpaKit.

This module provides the build settings of one pipeline invocation and the
normalized feature set that selects the native artifact.
"""

from sherpakit.config.features import (
    DEFAULT_FEATURES,
    KNOWN_FEATURES,
    FeatureSet,
    initial_is_dynamic,
    validate_features,
)
from sherpakit.config.settings import (
    CONFIG_FILE_NAME,
    WATCHED_ENV,
    BuildSettings,
    find_profile_dir,
    load_settings,
)

__all__ = [
    "DEFAULT_FEATURES",
    "KNOWN_FEATURES",
    "FeatureSet",
    "initial_is_dynamic",
    "validate_features",
    "CONFIG_FILE_NAME",
    "WATCHED_ENV",
    "BuildSettings",
    "find_profile_dir",
    "load_settings",
]
