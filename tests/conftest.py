"""
Pytest configuration and shared fixtures for SherpaKit tests.
"""

import io
import tarfile
from pathlib import Path
from typing import Callable, Dict

import pytest

from sherpakit.config.features import FeatureSet
from sherpakit.config.settings import BuildSettings
from sherpakit.core.verification import sha256_hex
from sherpakit.dist.manifest import DistributionManifest


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def make_archive() -> Callable[..., bytes]:
    """
    Build an in-memory tar archive.

    Usage:
        data = make_archive({"pkg/lib/libfoo.so": b"..."})
    """

    def _make(files: Dict[str, bytes], mode: str = "w:bz2") -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode=mode) as tar:
            for name, content in files.items():
                info = tarfile.TarInfo(name)
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., BuildSettings]:
    """
    Build settings rooted in a temporary workspace.

    Keyword arguments override BuildSettings fields; ``features`` may be a
    list of names.
    """

    def _make(**overrides) -> BuildSettings:
        features = overrides.pop("features", None)
        if features is None:
            features = FeatureSet()
        elif not isinstance(features, FeatureSet):
            features = FeatureSet.parse(features)

        values = {
            "target": "x86_64-unknown-linux-gnu",
            "features": features,
            "out_dir": tmp_path / "target" / "release" / "build" / "sys" / "out",
            "project_root": tmp_path / "project",
            "cache_dir": tmp_path / "cache",
            "parallel_jobs": 2,
        }
        values.update(overrides)
        return BuildSettings(**values)

    return _make


LINUX_SHARED_ARCHIVE = "sherpa-onnx-v1.0.0-linux-x64-shared.tar.bz2"
LINUX_STATIC_ARCHIVE = "sherpa-onnx-v1.0.0-linux-x64-static.tar.bz2"
LINUX_CUDA_ARCHIVE = "sherpa-onnx-v1.0.0-cuda-linux-x64-gpu.tar.bz2"
ANDROID_ARCHIVE = "sherpa-onnx-v1.0.0-android.tar.bz2"


@pytest.fixture
def manifest_data() -> dict:
    """Small dist.json document covering desktop, variant and mobile records."""
    return {
        "tag": "v1.0.0",
        "url": "https://example.com/releases/{tag}/{archive}",
        "targets": {
            "x86_64-unknown-linux-gnu": {
                "static": "sherpa-onnx-{tag}-linux-x64-static.tar.bz2",
                "dynamic": "sherpa-onnx-{tag}-linux-x64-shared.tar.bz2",
                "variants": {
                    "cuda": {
                        "archive": "sherpa-onnx-{tag}-cuda-linux-x64-gpu.tar.bz2",
                        "is_dynamic": True,
                    }
                },
            },
            "android": {
                "archive": "sherpa-onnx-{tag}-android.tar.bz2",
                "is_dynamic": True,
                "targets": {
                    "aarch64-linux-android": [
                        "jniLibs/arm64-v8a/libsherpa-onnx-c-api.so",
                        "jniLibs/arm64-v8a/libonnxruntime.so",
                    ]
                },
            },
        },
    }


@pytest.fixture
def archive_payloads(make_archive) -> Dict[str, bytes]:
    """Archive bytes for every archive named by ``manifest_data``."""
    shared_root = "sherpa-onnx-v1.0.0-linux-x64-shared"
    static_root = "sherpa-onnx-v1.0.0-linux-x64-static"
    gpu_root = "sherpa-onnx-v1.0.0-cuda-linux-x64-gpu"
    return {
        LINUX_SHARED_ARCHIVE: make_archive(
            {
                f"{shared_root}/lib/libsherpa-onnx-c-api.so": b"c-api",
                f"{shared_root}/lib/libonnxruntime.so": b"ort",
                f"{shared_root}/lib/libsherpa-onnx-cxx-api.so": b"cxx",
                f"{shared_root}/include/sherpa-onnx/c-api/c-api.h": b"// c api\n",
            }
        ),
        LINUX_STATIC_ARCHIVE: make_archive(
            {
                f"{static_root}/lib/libsherpa-onnx-c-api.a": b"a",
                f"{static_root}/lib/libonnxruntime.a": b"b",
            }
        ),
        LINUX_CUDA_ARCHIVE: make_archive(
            {
                f"{gpu_root}/lib/libsherpa-onnx-c-api.so": b"gpu-c-api",
                f"{gpu_root}/lib/libonnxruntime.so": b"gpu-ort",
                f"{gpu_root}/lib/libonnxruntime_providers_cuda.so": b"cuda",
            }
        ),
        ANDROID_ARCHIVE: make_archive(
            {
                "jniLibs/arm64-v8a/libsherpa-onnx-c-api.so": b"android-c-api",
                "jniLibs/arm64-v8a/libonnxruntime.so": b"android-ort",
            }
        ),
    }


@pytest.fixture
def manifest(manifest_data, archive_payloads) -> DistributionManifest:
    """Manifest whose checksum table matches ``archive_payloads``."""
    checksums = {name: sha256_hex(data).upper() for name, data in archive_payloads.items()}
    return DistributionManifest.from_data(manifest_data, checksums)


@pytest.fixture
def fake_fetch(manifest, archive_payloads):
    """
    Offline replacement for fetch_bytes serving ``archive_payloads``.

    Records every requested URL in ``fake_fetch.calls``.
    """

    def _fetch(url: str, max_retries: int = 1, **kwargs) -> bytes:
        _fetch.calls.append(url)
        archive = url.rsplit("/", 1)[-1]
        return archive_payloads[archive]

    _fetch.calls = []
    return _fetch


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset module-level caches between tests."""
    from sherpakit.core import platform

    platform.clear_target_cache()
    yield
