"""
Distribution manifest of prebuilt sherpa-onnx archives.

The manifest maps a compilation target and feature set to a downloadable
archive: its name, URL, expected checksum, an optional explicit library list
and an optional linkage override. It is loaded once, never mutated, and
resolving against it touches neither the network nor the filesystem.

The packaged manifest lives in ``sherpakit/data/dist.json`` with its
companion checksum table ``sherpakit/data/checksum.txt``.
"""

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sherpakit.config.features import FeatureSet
from sherpakit.core.exceptions import ManifestError
from sherpakit.core.filesystem import archive_stem
from sherpakit.core.platform import TargetInfo
from sherpakit.core.verification import load_checksum_table

logger = logging.getLogger(__name__)

_ARCHIVE_KEYS = ("archive", "static", "dynamic")
_RECORD_KEYS = set(_ARCHIVE_KEYS) | {"is_dynamic", "targets", "variants"}


@dataclass(frozen=True)
class DistributionEntry:
    """One prebuilt archive selected for a (target, feature set) pair."""

    target: str
    """Target triple the entry was resolved for"""

    archive_name: str
    """Archive file name, e.g. sherpa-onnx-v1.12.9-linux-x64-shared.tar.bz2"""

    url: str
    """Download URL"""

    checksum: str
    """Expected SHA-256 hex digest, as written in the checksum table"""

    is_dynamic: bool
    """Final linkage; the manifest override wins over the caller's hint"""

    explicit_libraries: Optional[Tuple[str, ...]] = None
    """Library paths relative to the cache slot, used instead of scanning"""

    dynamic_override: Optional[bool] = None
    """Linkage forced by the manifest, if any"""

    variant: str = ""
    """Feature variant key ('' for the default archive)"""

    @property
    def name(self) -> str:
        """Archive name without extension (top-level directory inside it)."""
        return archive_stem(self.archive_name)


class DistributionManifest:
    """
    Immutable table of prebuilt archives.

    Example:
        >>> manifest = DistributionManifest.load()
        >>> target = TargetInfo.parse("x86_64-unknown-linux-gnu")
        >>> entry = manifest.resolve(target, FeatureSet(), is_dynamic=True)
        >>> if entry:
        ...     print(entry.url)
    """

    def __init__(
        self,
        tag: str,
        url_template: str,
        targets: Dict[str, Dict[str, Any]],
        checksums: Dict[str, str],
        source: str = "dist.json",
    ):
        """
        Initialize the manifest from already parsed data.

        Args:
            tag: Release tag substituted for ``{tag}``
            url_template: URL with ``{tag}`` and ``{archive}`` placeholders
            targets: Per-target records keyed by triple or platform family
            checksums: Archive name -> hex digest
            source: Name used in error messages

        Raises:
            ManifestError: If a record is malformed
        """
        if "{archive}" not in url_template:
            raise ManifestError(f"{source}: 'url' must contain an {{archive}} placeholder")

        self.tag = tag
        self.source = source
        self._raw_url = url_template
        self._raw_targets = copy.deepcopy(targets)
        for key, record in self._raw_targets.items():
            _validate_record(record, f"{source}: targets.{key}", allow_variants=True)

        self.url_template = url_template.replace("{tag}", tag)
        self.targets = {
            key: _expand_record(record, tag) for key, record in self._raw_targets.items()
        }
        self.checksums = dict(checksums)

    @classmethod
    def default_dist_path(cls) -> Path:
        return Path(__file__).parent.parent / "data" / "dist.json"

    @classmethod
    def default_checksum_path(cls) -> Path:
        return Path(__file__).parent.parent / "data" / "checksum.txt"

    @classmethod
    def from_data(
        cls, data: Any, checksums: Dict[str, str], source: str = "dist.json"
    ) -> "DistributionManifest":
        """Build a manifest from a decoded dist.json document."""
        if not isinstance(data, dict):
            raise ManifestError(f"{source}: top level must be an object")
        for key in ("tag", "url", "targets"):
            if key not in data:
                raise ManifestError(f"{source}: missing required key '{key}'")
        if not isinstance(data["targets"], dict):
            raise ManifestError(f"{source}: 'targets' must be an object")

        return cls(
            tag=str(data["tag"]),
            url_template=str(data["url"]),
            targets=data["targets"],
            checksums=checksums,
            source=source,
        )

    @classmethod
    def load(
        cls, dist_path: Optional[Path] = None, checksum_path: Optional[Path] = None
    ) -> "DistributionManifest":
        """
        Load a manifest and its checksum table.

        Args:
            dist_path: dist.json path (defaults to the packaged manifest)
            checksum_path: checksum table path (defaults to checksum.txt next
                to dist_path)

        Raises:
            ManifestError: If either file is missing or malformed
        """
        dist_path = Path(dist_path) if dist_path else cls.default_dist_path()
        if checksum_path is None:
            checksum_path = dist_path.parent / "checksum.txt"
        checksum_path = Path(checksum_path)

        if not dist_path.exists():
            raise ManifestError(f"Distribution manifest not found: {dist_path}")

        try:
            with open(dist_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid JSON in {dist_path}: {e}") from e
        except OSError as e:
            raise ManifestError(f"Failed to read {dist_path}: {e}") from e

        checksums = load_checksum_table(checksum_path) if checksum_path.exists() else {}
        manifest = cls.from_data(data, checksums, source=dist_path.name)
        logger.debug(
            f"Loaded manifest {manifest.tag} with {len(manifest.targets)} targets "
            f"and {len(checksums)} checksums"
        )
        return manifest

    def with_tag(self, new_tag: str) -> "DistributionManifest":
        """
        Copy of this manifest for another release tag.

        Checksums are carried over unchanged; refresh them with the digest
        command before use.
        """
        return DistributionManifest(
            tag=new_tag,
            url_template=self._raw_url,
            targets=self._raw_targets,
            checksums=self.checksums,
            source=self.source,
        )

    def to_data(self) -> Dict[str, Any]:
        """Unexpanded document, suitable for writing back to dist.json."""
        return {
            "tag": self.tag,
            "url": self._raw_url,
            "targets": copy.deepcopy(self._raw_targets),
        }

    def archive_url(self, archive: str) -> str:
        return self.url_template.replace("{archive}", archive)

    def archives(self) -> List[str]:
        """Every archive name referenced by the manifest, sorted."""
        names = set()
        for record in self.targets.values():
            for variant in [record, *record.get("variants", {}).values()]:
                names.update(variant[k] for k in _ARCHIVE_KEYS if k in variant)
        return sorted(names)

    def _target_record(self, target: TargetInfo) -> Optional[Dict[str, Any]]:
        # Android and iOS variants share one record per platform family
        return self.targets.get(target.family)

    def has_variant(self, target: TargetInfo, key: str) -> bool:
        """Whether the manifest ships an archive for the feature key."""
        record = self._target_record(target)
        if record is None:
            return False
        if not key:
            return True
        return key in record.get("variants", {})

    def resolve(
        self, target: TargetInfo, features: FeatureSet, is_dynamic: bool
    ) -> Optional[DistributionEntry]:
        """
        Select the archive for a target and feature set.

        Pure function of its arguments and the loaded tables.

        Args:
            target: Compilation target
            features: Enabled features
            is_dynamic: Caller's linkage hint

        Returns:
            The entry, or None when the combination has no archive or the
            archive has no checksum (a lookup miss, not an error)
        """
        record = self._target_record(target)
        if record is None:
            logger.debug(f"No manifest record for {target.triple} ({target.family})")
            return None

        key = features.key()
        if key:
            variants = record.get("variants", {})
            if key not in variants:
                logger.debug(f"No '{key}' variant for {target.triple}")
                return None
            record = variants[key]

        if "archive" in record:
            archive = record["archive"]
        else:
            archive = record.get("dynamic" if is_dynamic else "static")
        if not archive:
            logger.debug(
                f"No {'dynamic' if is_dynamic else 'static'} archive for {target.triple}"
            )
            return None

        checksum = self.checksums.get(archive)
        if checksum is None:
            logger.debug(f"No checksum recorded for {archive}")
            return None

        libraries = record.get("targets", {}).get(target.triple)
        override = record.get("is_dynamic")

        return DistributionEntry(
            target=target.triple,
            archive_name=archive,
            url=self.archive_url(archive),
            checksum=checksum,
            is_dynamic=override if override is not None else is_dynamic,
            explicit_libraries=tuple(libraries) if libraries is not None else None,
            dynamic_override=override,
            variant=key,
        )


def _validate_record(record: Any, where: str, allow_variants: bool) -> None:
    if not isinstance(record, dict):
        raise ManifestError(f"{where}: must be an object")

    unknown = set(record) - _RECORD_KEYS
    if unknown:
        raise ManifestError(f"{where}: unknown keys {sorted(unknown)}")

    if not any(k in record for k in _ARCHIVE_KEYS):
        raise ManifestError(f"{where}: needs 'archive' or 'static'/'dynamic'")
    for k in _ARCHIVE_KEYS:
        if k in record and not isinstance(record[k], str):
            raise ManifestError(f"{where}.{k}: must be a string")

    if "is_dynamic" in record and not isinstance(record["is_dynamic"], bool):
        raise ManifestError(f"{where}.is_dynamic: must be true or false")

    libraries = record.get("targets", {})
    if not isinstance(libraries, dict):
        raise ManifestError(f"{where}.targets: must be an object")
    for triple, paths in libraries.items():
        if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
            raise ManifestError(f"{where}.targets.{triple}: must be a list of paths")

    if "variants" in record:
        if not allow_variants:
            raise ManifestError(f"{where}: variants cannot be nested")
        if not isinstance(record["variants"], dict):
            raise ManifestError(f"{where}.variants: must be an object")
        for key, variant in record["variants"].items():
            _validate_record(variant, f"{where}.variants.{key}", allow_variants=False)


def _expand_record(record: Dict[str, Any], tag: str) -> Dict[str, Any]:
    expanded = dict(record)
    for k in _ARCHIVE_KEYS:
        if k in expanded:
            expanded[k] = expanded[k].replace("{tag}", tag)
    if "variants" in expanded:
        expanded["variants"] = {
            key: _expand_record(variant, tag)
            for key, variant in expanded["variants"].items()
        }
    return expanded


__all__ = ["DistributionEntry", "DistributionManifest"]
