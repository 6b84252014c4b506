"""
Tests for the prebuilt archive cache.

Tests cover:
- Miss then hit yields the same artifact without a second download
- Checksum mismatch leaves no cache entry
- Mobile slots with explicit library lists
- Listing and cleaning slots
"""

import pytest

from sherpakit.artifacts.cache import ArtifactCache, EPHEMERAL_DIR_NAME
from sherpakit.config.features import FeatureSet
from sherpakit.core.exceptions import IntegrityError, NetworkError
from sherpakit.core.platform import TargetInfo
from sherpakit.dist.manifest import DistributionEntry

LINUX = TargetInfo.parse("x86_64-unknown-linux-gnu")
ANDROID = TargetInfo.parse("aarch64-linux-android")


@pytest.fixture
def cache(tmp_path, fake_fetch):
    return ArtifactCache(tmp_path / "cache", fetch=fake_fetch)


class TestObtain:
    """Tests for ArtifactCache.obtain."""

    def test_miss_then_hit(self, cache, manifest, fake_fetch):
        """Test the second lookup is served from disk with an equal artifact."""
        entry = manifest.resolve(LINUX, FeatureSet(), True)

        first = cache.obtain(entry, LINUX)
        second = cache.obtain(entry, LINUX)

        assert first == second
        assert first.origin == "download"
        assert second.origin == "cache"
        assert len(fake_fetch.calls) == 1
        assert fake_fetch.calls[0] == entry.url

    def test_artifact_from_scan(self, cache, manifest):
        """Test desktop artifacts scan lib/ and drop unlinkable helpers."""
        entry = manifest.resolve(LINUX, FeatureSet(), True)

        artifact = cache.obtain(entry, LINUX)

        slot = cache.root / LINUX.triple / entry.checksum
        assert artifact.library_directory == slot / "sherpa-onnx-v1.0.0-linux-x64-shared"
        assert artifact.library_names == ("onnxruntime", "sherpa-onnx-c-api")
        assert artifact.is_dynamic is True
        assert artifact.checksum == entry.checksum
        assert (artifact.lib_dir / "libonnxruntime.so").read_bytes() == b"ort"

    def test_static_archive(self, cache, manifest):
        entry = manifest.resolve(LINUX, FeatureSet.parse(["static"]), False)

        artifact = cache.obtain(entry, LINUX)

        assert artifact.is_dynamic is False
        assert artifact.library_names == ("onnxruntime", "sherpa-onnx-c-api")

    def test_mobile_explicit_libraries(self, cache, manifest):
        """Test mobile slots use the manifest's library list."""
        entry = manifest.resolve(ANDROID, FeatureSet(), False)

        artifact = cache.obtain(entry, ANDROID)

        slot = cache.slot_path(entry)
        jni = slot / "jniLibs" / "arm64-v8a"
        assert artifact.library_directory == slot
        assert artifact.library_names == ("sherpa-onnx-c-api", "onnxruntime")
        assert artifact.search_paths == (jni,)
        assert artifact.assets == (
            jni / "libsherpa-onnx-c-api.so",
            jni / "libonnxruntime.so",
        )
        assert artifact.is_dynamic is True

    def test_checksum_mismatch_leaves_no_entry(self, tmp_path, manifest, archive_payloads):
        """Test corrupted downloads are never cached."""
        entry = manifest.resolve(LINUX, FeatureSet(), True)
        corrupted = bytearray(archive_payloads[entry.archive_name])
        corrupted[-1] ^= 0xFF

        cache = ArtifactCache(tmp_path / "cache", fetch=lambda url, **kw: bytes(corrupted))

        with pytest.raises(IntegrityError):
            cache.obtain(entry, LINUX)
        assert not cache.is_cached(entry)
        assert not (cache.root / LINUX.triple / entry.checksum).exists()

    def test_network_error_propagates(self, tmp_path, manifest):
        def offline(url, **kwargs):
            raise NetworkError("offline", url=url)

        cache = ArtifactCache(tmp_path / "cache", fetch=offline)
        entry = manifest.resolve(LINUX, FeatureSet(), True)

        with pytest.raises(NetworkError):
            cache.obtain(entry, LINUX)
        assert not cache.is_cached(entry)

    def test_retries_passed_to_fetch(self, tmp_path, manifest, archive_payloads):
        seen = {}

        def fetch(url, max_retries=1):
            seen["max_retries"] = max_retries
            return archive_payloads[url.rsplit("/", 1)[-1]]

        cache = ArtifactCache(tmp_path / "cache", fetch=fetch, download_retries=3)
        cache.obtain(manifest.resolve(LINUX, FeatureSet(), True), LINUX)

        assert seen["max_retries"] == 3

    def test_existing_slot_trusted(self, cache, fake_fetch):
        """Test a populated slot is used without fetching."""
        entry = DistributionEntry(
            target=LINUX.triple,
            archive_name="pkg.tar.bz2",
            url="https://example.com/pkg.tar.bz2",
            checksum="F" * 64,
            is_dynamic=True,
        )
        lib = cache.slot_path(entry) / "pkg" / "lib"
        lib.mkdir(parents=True)
        (lib / "libsherpa-onnx-c-api.so").write_bytes(b"x")

        artifact = cache.obtain(entry, LINUX)

        assert fake_fetch.calls == []
        assert artifact.library_names == ("sherpa-onnx-c-api",)
        assert artifact.origin == "cache"


class TestFromSettings:
    """Tests for ArtifactCache.from_settings."""

    def test_configured_root(self, make_settings, tmp_path):
        settings = make_settings(cache_dir=tmp_path / "shared", download_retries=2)

        cache = ArtifactCache.from_settings(settings)

        assert cache.root == tmp_path / "shared"
        assert cache.download_retries == 2

    def test_unusable_root_falls_back(self, make_settings, tmp_path):
        """Test an unusable root degrades to a build-scoped cache."""
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        settings = make_settings(cache_dir=blocker / "cache")

        cache = ArtifactCache.from_settings(settings)

        assert cache.root == settings.out_dir / EPHEMERAL_DIR_NAME


class TestMaintenance:
    """Tests for slot listing and cleaning."""

    def test_slots_and_clean(self, cache, manifest):
        linux = manifest.resolve(LINUX, FeatureSet(), True)
        android = manifest.resolve(ANDROID, FeatureSet(), True)
        cache.obtain(linux, LINUX)
        cache.obtain(android, ANDROID)

        slots = cache.slots()
        assert {(s.target, s.checksum) for s in slots} == {
            (LINUX.triple, linux.checksum),
            (ANDROID.triple, android.checksum),
        }
        assert all(s.size_bytes > 0 for s in slots)

        assert cache.clean(target=ANDROID.triple) == 1
        assert not cache.is_cached(android)
        assert cache.is_cached(linux)

        assert cache.clean() == 1
        assert cache.slots() == []

    def test_empty_root(self, tmp_path):
        assert ArtifactCache(tmp_path / "empty").slots() == []
