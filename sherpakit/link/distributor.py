"""
Runtime distribution of shared libraries.

With dynamic linkage the loader must find the sherpa-onnx shared libraries
next to the binaries that use them. The distributor places every shared
library in:

- the primary output directory (``target_dir``)
- ``target_dir/examples``, only if that directory already exists
- ``target_dir/deps``, where test binaries are written

Files are hard-linked when possible and copied otherwise. A destination that
already exists is never touched, so repeated runs are cheap and safe.
"""

import logging
from pathlib import Path
from typing import Iterable, List

from sherpakit.artifacts.artifact import ResolvedArtifact
from sherpakit.core.filesystem import link_or_copy
from sherpakit.core.platform import TargetInfo
from sherpakit.core.platform_capabilities import runtime_suffix

logger = logging.getLogger(__name__)

EXAMPLES_DIR = "examples"
DEPS_DIR = "deps"


class RuntimeArtifactDistributor:
    """
    Copy shared libraries to where the loader looks for them.

    Example:
        >>> distributor = RuntimeArtifactDistributor(settings, target)
        >>> created = distributor.distribute(artifact)
    """

    def __init__(self, settings, target: TargetInfo):
        """
        Initialize the distributor.

        Args:
            settings: BuildSettings (out_dir, lib_path and target_dir are used)
            target: Compilation target (selects the shared library suffix)
        """
        self.out_dir = settings.out_dir
        self.lib_path = settings.lib_path
        self.target_dir = settings.resolve_target_dir()
        self.suffix = runtime_suffix(target)

    def _scan(self, root: Path) -> List[Path]:
        libs_dir = root / "lib"
        if not libs_dir.is_dir():
            return []
        return sorted(p for p in libs_dir.glob(f"*{self.suffix}") if p.is_file())

    def collect_sources(self, artifact: ResolvedArtifact) -> List[Path]:
        """
        Shared libraries to distribute, in priority order.

        Sources are the consumer output directory, the artifact tree, the
        library path override and the artifact's explicit library files.
        """
        roots = [self.out_dir, artifact.library_directory]
        if self.lib_path is not None:
            roots.append(self.lib_path)

        sources: List[Path] = []
        for root in roots:
            sources.extend(self._scan(root))
        sources.extend(p for p in artifact.assets if p.is_file())

        unique: List[Path] = []
        for source in sources:
            if source not in unique:
                unique.append(source)
        logger.debug(f"Extract lib assets: {[str(p) for p in unique]}")
        return unique

    def destination_dirs(self) -> List[Path]:
        dirs = [self.target_dir]
        examples = self.target_dir / EXAMPLES_DIR
        if examples.is_dir():
            dirs.append(examples)
        dirs.append(self.target_dir / DEPS_DIR)
        return dirs

    def distribute(self, artifact: ResolvedArtifact) -> List[Path]:
        """
        Place every shared library of the artifact in the output directories.

        Args:
            artifact: Resolved artifact (expected to be dynamic)

        Returns:
            Destination files created by this call (empty when everything
            was already in place)

        Raises:
            FilesystemError: If a file can be neither linked nor copied
        """
        return self.place(self.collect_sources(artifact))

    def place(self, sources: Iterable[Path]) -> List[Path]:
        created: List[Path] = []
        destination_dirs = self.destination_dirs()
        for directory in destination_dirs:
            directory.mkdir(parents=True, exist_ok=True)

        for source in sources:
            for directory in destination_dirs:
                destination = directory / source.name
                if destination.exists():
                    continue
                method = link_or_copy(source, destination)
                logger.debug(f"{method} {source} -> {destination}")
                if method != "exists":
                    created.append(destination)

        if created:
            logger.info(f"Distributed {len(created)} shared library files to {self.target_dir}")
        return created


__all__ = ["RuntimeArtifactDistributor"]
