"""
Native dependency pipeline.

One invocation resolves the sherpa-onnx library for a target and feature
set, then tells the surrounding build system how to link it:

    settings -> feature validation
             -> SHERPA_LIB_PATH override
              | manifest lookup -> cache hit | download, verify, extract
              | native CMake build (lookup miss or forced)
             -> C API header staging
             -> link plan -> directives
             -> shared library distribution (dynamic linkage only)

Each stage completes before the next starts; any error aborts the run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from sherpakit.artifacts.artifact import ResolvedArtifact
from sherpakit.artifacts.cache import ArtifactCache
from sherpakit.bindings import stage_c_api_header
from sherpakit.build.cmake import NativeBuilder
from sherpakit.config.features import DOWNLOAD_BINARIES, FeatureSet, validate_features
from sherpakit.config.settings import BuildSettings
from sherpakit.core.exceptions import ArchiveExtractionError, NetworkError
from sherpakit.core.platform import TargetInfo
from sherpakit.dist.manifest import DistributionEntry, DistributionManifest
from sherpakit.link.distributor import RuntimeArtifactDistributor
from sherpakit.link.names import extract_lib_names
from sherpakit.link.planner import LinkPlan, LinkPlanner
from sherpakit.link.sink import DirectiveSink, emit_plan

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    target: TargetInfo
    features: FeatureSet
    path: str  # 'lib_path', 'cache', 'download', 'native' or 'docs_only'
    artifact: Optional[ResolvedArtifact] = None
    entry: Optional[DistributionEntry] = None
    plan: Optional[LinkPlan] = None
    header: Optional[Path] = None
    distributed: List[Path] = field(default_factory=list)

    @property
    def is_dynamic(self) -> Optional[bool]:
        return self.artifact.is_dynamic if self.artifact else None


def lib_path_artifact(settings: BuildSettings, target: TargetInfo, is_dynamic: bool) -> ResolvedArtifact:
    """Artifact for an explicit SHERPA_LIB_PATH library tree."""
    lib_path = settings.lib_path
    logger.debug(f"SHERPA_LIB_PATH: {lib_path}")
    return ResolvedArtifact(
        library_directory=lib_path,
        is_dynamic=is_dynamic,
        library_names=tuple(extract_lib_names(lib_path, is_dynamic, target)),
        origin="lib_path",
    )


def _warn(sink: DirectiveSink, message: str) -> None:
    logger.warning(message)
    sink.warning(message)


def run_pipeline(
    settings: BuildSettings,
    sink: DirectiveSink,
    manifest: Optional[DistributionManifest] = None,
    cache: Optional[ArtifactCache] = None,
    builder: Optional[NativeBuilder] = None,
    planner: Optional[LinkPlanner] = None,
) -> PipelineResult:
    """
    Resolve, link and distribute sherpa-onnx for one build invocation.

    Args:
        settings: Build settings
        sink: Receives the build directives
        manifest: Distribution manifest (the packaged one if None)
        cache: Artifact cache (configured from settings if None)
        builder: Native builder (configured from settings if None)
        planner: Link planner

    Returns:
        PipelineResult

    Raises:
        ConfigurationError: On conflicting features, before any I/O
        NetworkError: If a download fails (unless falling back to source)
        IntegrityError: If a download does not match its checksum
        FilesystemError: If extraction or distribution fails
        NativeBuildError: If the native build fails
    """
    target = settings.target_info
    features = settings.features
    use_download = DOWNLOAD_BINARIES in features

    for variable in settings.watched_env():
        sink.rerun_if_env_changed(variable)

    if use_download and manifest is None:
        manifest = DistributionManifest.load()
    validate_features(features, target, manifest if use_download else None)

    is_dynamic = settings.is_dynamic_hint
    logger.debug(f"Target {target}, features {features}, is_dynamic {is_dynamic}")

    if settings.docs_only:
        logger.info("Detected SHERPA_DOCS_ONLY. Skipping build / fetch.")
        header = stage_c_api_header(settings, [settings.native_source_dir])
        return PipelineResult(target, features, path="docs_only", header=header)

    artifact: Optional[ResolvedArtifact] = None
    entry: Optional[DistributionEntry] = None

    if settings.lib_path is not None:
        artifact = lib_path_artifact(settings, target, is_dynamic)
    elif settings.force_native_build:
        logger.info(f"Building sherpa-onnx from source in {settings.native_source_dir}")
    elif use_download:
        entry = manifest.resolve(target, features, is_dynamic)
        if entry is None:
            _warn(
                sink,
                f"No prebuilt sherpa-onnx for {target} ({features}). "
                "fallback to manual build.",
            )
            if not manifest.checksums:
                _warn(
                    sink,
                    "The checksum table is empty; run `sherpakit digest` to enable "
                    "prebuilt downloads.",
                )
        else:
            if entry.is_dynamic != is_dynamic:
                logger.info(
                    f"{entry.archive_name} is "
                    f"{'dynamic' if entry.is_dynamic else 'static'} only; "
                    "using that linkage"
                )
            is_dynamic = entry.is_dynamic
            cache = cache or ArtifactCache.from_settings(settings)
            try:
                artifact = cache.obtain(entry, target)
            except (NetworkError, ArchiveExtractionError) as e:
                if not settings.fallback_to_source:
                    raise
                _warn(sink, f"Failed to download binaries ({e}). fallback to manual build.")

    if artifact is None:
        builder = builder or NativeBuilder(settings)
        artifact = builder.build(settings.native_source_dir, target, is_dynamic)

    header_roots = [settings.native_source_dir, artifact.library_directory]
    if settings.lib_path is not None:
        header_roots.append(settings.lib_path)
    header = stage_c_api_header(settings, header_roots)

    planner = planner or LinkPlanner()
    plan = planner.plan(artifact, target, settings.out_dir, settings.consumer_profile)
    emit_plan(plan, sink)

    distributed: List[Path] = []
    if artifact.is_dynamic:
        distributed = RuntimeArtifactDistributor(settings, target).distribute(artifact)

    return PipelineResult(
        target=target,
        features=features,
        path=artifact.origin,
        artifact=artifact,
        entry=entry,
        plan=plan,
        header=header,
        distributed=distributed,
    )


__all__ = ["PipelineResult", "lib_path_artifact", "run_pipeline"]
