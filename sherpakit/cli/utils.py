"""
Shared utilities for CLI commands.

Provides settings loading from command-line overrides, logging setup and
consistent output helpers.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from sherpakit.config.settings import BuildSettings, load_settings

logger = logging.getLogger(__name__)

# Command-line option -> environment variable it overrides
OPTION_ENV = {
    "target": "SHERPA_TARGET",
    "features": "SHERPA_FEATURES",
    "out_dir": "SHERPA_OUT_DIR",
    "target_dir": "SHERPA_TARGET_DIR",
    "profile": "SHERPA_LIB_PROFILE",
    "output_profile": "SHERPA_OUTPUT_PROFILE",
    "lib_path": "SHERPA_LIB_PATH",
    "source_dir": "SHERPA_SOURCE_DIR",
    "cache_dir": "SHERPA_CACHE_DIR",
}


# ============================================================================
# Settings
# ============================================================================


def environ_with_overrides(args) -> Dict[str, str]:
    """
    Snapshot of the environment with command-line options applied.

    Options that were not given leave the environment untouched.
    """
    environ = dict(os.environ)
    for option, variable in OPTION_ENV.items():
        value = getattr(args, option, None)
        if value is not None:
            environ[variable] = str(value)
    if getattr(args, "from_source", False):
        environ["SHERPA_BUILD_FROM_SOURCE"] = "1"
    return environ


def settings_from_args(args) -> BuildSettings:
    """Load BuildSettings for a parsed command line."""
    return load_settings(
        config_path=args.config,
        environ=environ_with_overrides(args),
        cwd=Path(args.project_root).resolve(),
    )


def add_settings_arguments(parser) -> None:
    """Add the options shared by commands that load build settings."""
    parser.add_argument(
        "--target",
        metavar="TRIPLE",
        help="Target triple (default: SHERPA_TARGET or the host)",
    )
    parser.add_argument(
        "--features",
        metavar="LIST",
        help="Comma separated features, e.g. download-binaries,tts",
    )
    parser.add_argument(
        "--profile",
        metavar="NAME",
        help="Native library build profile (default: Release)",
    )
    parser.add_argument(
        "--output-profile",
        metavar="NAME",
        help="Profile of the consuming build (default: the library profile)",
    )
    parser.add_argument("--out-dir", type=Path, metavar="DIR", help="Build output directory")
    parser.add_argument(
        "--target-dir",
        type=Path,
        metavar="DIR",
        help="Directory that receives shared libraries",
    )
    parser.add_argument(
        "--lib-path", type=Path, metavar="DIR", help="Use this prebuilt library tree"
    )
    parser.add_argument(
        "--source-dir",
        type=Path,
        metavar="DIR",
        help="sherpa-onnx source tree (forces a native build)",
    )
    parser.add_argument("--cache-dir", type=Path, metavar="DIR", help="Cache root")


# ============================================================================
# Logging
# ============================================================================


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging based on verbose/quiet flags.

    Log records go to stderr so that directives on stdout stay parseable.
    """
    if verbose:
        level = logging.DEBUG
        format_str = "%(levelname)s [%(name)s] %(message)s"
    elif quiet:
        level = logging.ERROR
        format_str = "%(levelname)s: %(message)s"
    else:
        level = logging.INFO
        format_str = "%(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        stream=sys.stderr,
        force=True,  # Reconfigure if already configured
    )


def enable_debug_logging() -> None:
    """Turn on DEBUG output for sherpakit loggers (SHERPA_BUILD_DEBUG=1)."""
    logging.getLogger("sherpakit").setLevel(logging.DEBUG)


# ============================================================================
# Output
# ============================================================================


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_json(data: Any, file=None) -> None:
    """Print data as indented JSON."""
    print(json.dumps(data, indent=2, sort_keys=True), file=file or sys.stdout)


def format_size(size_bytes: int) -> str:
    return f"{size_bytes / 1024 / 1024:.1f} MB"
