"""
Link plan derivation.

A link plan lists the search paths, libraries (with their linkage kind) and
platform extras the outer compiler driver needs to link against sherpa-onnx.
Order is significant: for static linkage, dependents precede their
dependencies.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from sherpakit.artifacts.artifact import ResolvedArtifact
from sherpakit.core.platform import TargetInfo
from sherpakit.core.platform_capabilities import get_capabilities
from sherpakit.link.names import is_linkable, static_link_order

logger = logging.getLogger(__name__)

DYLIB = "dylib"
STATIC = "static"
FRAMEWORK = "framework"

CLANG_RUNTIME_LIBRARY = "clang_rt.osx"


@dataclass(frozen=True)
class LinkLibrary:
    """A library to link and how to link it."""

    name: str
    kind: str  # 'dylib' or 'static'


@dataclass
class LinkPlan:
    """Ordered link instructions for one target."""

    search_paths: List[Path] = field(default_factory=list)
    libraries: List[LinkLibrary] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)
    extra_libraries: List[LinkLibrary] = field(default_factory=list)

    def add_search_path(self, path: Path) -> None:
        if path not in self.search_paths:
            self.search_paths.append(path)

    def is_empty(self) -> bool:
        return not (self.libraries or self.frameworks or self.extra_libraries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_paths": [str(p) for p in self.search_paths],
            "libraries": [{"name": lib.name, "kind": lib.kind} for lib in self.libraries],
            "frameworks": list(self.frameworks),
            "extra_libraries": [
                {"name": lib.name, "kind": lib.kind} for lib in self.extra_libraries
            ],
        }


def probe_clang_runtime_dir() -> Optional[Path]:
    """
    Locate the clang runtime library directory on macOS.

    Older macOS toolchains keep the compiler runtime in a non-default path,
    reported by ``clang --print-search-dirs`` on its ``libraries: =`` line.

    Returns:
        ``<path>/lib/darwin``, or None if clang is unavailable or the line
        is missing
    """
    try:
        result = subprocess.run(
            ["clang", "--print-search-dirs"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.info(
            f"failed to run 'clang --print-search-dirs' ({e}), "
            "continuing without a link search path"
        )
        return None

    if result.returncode != 0:
        logger.info(
            "failed to run 'clang --print-search-dirs', continuing without a link search path"
        )
        return None

    for line in result.stdout.splitlines():
        if "libraries: =" in line:
            path = line.split("=", 1)[1].split(":")[0].strip()
            if path:
                return Path(path) / "lib" / "darwin"

    logger.info("failed to determine link search path, continuing without it")
    return None


class LinkPlanner:
    """
    Derive link plans from resolved artifacts.

    Example:
        >>> planner = LinkPlanner()
        >>> plan = planner.plan(artifact, TargetInfo.parse("aarch64-apple-darwin"),
        ...                     Path("build"), "Release")
        >>> plan.frameworks
        ['CoreML', 'Foundation']
    """

    def __init__(self, clang_probe: Callable[[], Optional[Path]] = probe_clang_runtime_dir):
        """
        Initialize the planner.

        Args:
            clang_probe: Returns the clang runtime directory (macOS only)
        """
        self.clang_probe = clang_probe

    def plan(
        self,
        artifact: ResolvedArtifact,
        target: TargetInfo,
        out_dir: Path,
        profile: str = "Release",
    ) -> LinkPlan:
        """
        Build the link plan for an artifact.

        Args:
            artifact: Library tree to link against
            target: Compilation target
            out_dir: Consumer build output directory
            profile: Consumer build profile (Debug adds the debug C runtime on
                Windows)

        Returns:
            LinkPlan
        """
        capabilities = get_capabilities(target)
        kind = DYLIB if artifact.is_dynamic else STATIC
        plan = LinkPlan()

        for path in artifact.search_paths:
            plan.add_search_path(path)
        plan.add_search_path(artifact.lib_dir)
        plan.add_search_path(out_dir / "lib")

        names = [name for name in artifact.library_names if is_linkable(name)]
        if not artifact.is_dynamic:
            names = static_link_order(names)
        for name in names:
            plan.libraries.append(LinkLibrary(name, kind))

        if capabilities["debug_crt"] and profile.lower() == "debug":
            plan.extra_libraries.append(LinkLibrary(capabilities["debug_crt"], DYLIB))

        plan.frameworks.extend(capabilities["frameworks"])

        if capabilities["cxx_runtime"]:
            plan.extra_libraries.append(LinkLibrary(capabilities["cxx_runtime"], DYLIB))

        if capabilities["clang_runtime_probe"]:
            runtime_dir = self.clang_probe()
            if runtime_dir is not None:
                plan.add_search_path(runtime_dir)
                plan.extra_libraries.append(LinkLibrary(CLANG_RUNTIME_LIBRARY, kind))

        logger.debug(f"Link plan for {target}: {plan.to_dict()}")
        return plan


__all__ = [
    "DYLIB",
    "STATIC",
    "FRAMEWORK",
    "LinkLibrary",
    "LinkPlan",
    "LinkPlanner",
    "probe_clang_runtime_dir",
]
