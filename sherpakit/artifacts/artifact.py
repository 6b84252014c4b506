"""Resolved native artifact handed to link planning."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ResolvedArtifact:
    """
    A library tree ready to link against.

    Produced by the cache path, the native build path or an explicit library
    path override, and recomputed on every invocation.

    Attributes:
        library_directory: Root of the library tree (libraries live in ``lib/``
            below it unless explicit paths are listed)
        is_dynamic: Final linkage mode
        library_names: Link names without platform prefix or suffix, in link
            order
        search_paths: Extra link search paths (parents of explicit libraries)
        assets: Explicit library files shipped with the artifact
        origin: 'cache', 'download', 'native' or 'lib_path'
        checksum: Cache slot checksum, if the artifact came from the cache
    """

    library_directory: Path
    is_dynamic: bool
    library_names: Tuple[str, ...]
    search_paths: Tuple[Path, ...] = ()
    assets: Tuple[Path, ...] = ()
    origin: str = field(default="cache", compare=False)
    checksum: Optional[str] = None

    @property
    def lib_dir(self) -> Path:
        return self.library_directory / "lib"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "library_directory": str(self.library_directory),
            "is_dynamic": self.is_dynamic,
            "library_names": list(self.library_names),
            "search_paths": [str(p) for p in self.search_paths],
            "assets": [str(p) for p in self.assets],
            "origin": self.origin,
            "checksum": self.checksum,
        }
