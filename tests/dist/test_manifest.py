"""
Tests for the distribution manifest.

Tests cover:
- Loading dist.json and the checksum table
- Record validation
- Resolution for desktop, variant and mobile targets
- Lookup misses
"""

import json

import pytest

from sherpakit.config.features import FeatureSet
from sherpakit.core.exceptions import ManifestError
from sherpakit.core.platform import TargetInfo
from sherpakit.dist.manifest import DistributionManifest

LINUX = TargetInfo.parse("x86_64-unknown-linux-gnu")
ANDROID = TargetInfo.parse("aarch64-linux-android")


class TestResolve:
    """Tests for DistributionManifest.resolve."""

    def test_dynamic_desktop(self, manifest):
        """Test the dynamic archive is selected with its expanded URL."""
        entry = manifest.resolve(LINUX, FeatureSet(), is_dynamic=True)

        assert entry.archive_name == "sherpa-onnx-v1.0.0-linux-x64-shared.tar.bz2"
        assert entry.url == (
            "https://example.com/releases/v1.0.0/"
            "sherpa-onnx-v1.0.0-linux-x64-shared.tar.bz2"
        )
        assert entry.is_dynamic is True
        assert entry.dynamic_override is None
        assert entry.explicit_libraries is None
        assert entry.name == "sherpa-onnx-v1.0.0-linux-x64-shared"
        assert entry.checksum == manifest.checksums[entry.archive_name]

    def test_static_desktop(self, manifest):
        entry = manifest.resolve(LINUX, FeatureSet.parse(["static"]), is_dynamic=False)
        assert entry.archive_name == "sherpa-onnx-v1.0.0-linux-x64-static.tar.bz2"
        assert entry.is_dynamic is False

    def test_gpu_variant_overrides_linkage(self, manifest):
        """Test a variant forcing dynamic linkage wins over the hint."""
        entry = manifest.resolve(LINUX, FeatureSet.parse(["cuda"]), is_dynamic=False)

        assert entry.archive_name == "sherpa-onnx-v1.0.0-cuda-linux-x64-gpu.tar.bz2"
        assert entry.is_dynamic is True
        assert entry.dynamic_override is True
        assert entry.variant == "cuda"

    def test_mobile_family(self, manifest):
        """Test Android targets resolve through the family record."""
        entry = manifest.resolve(ANDROID, FeatureSet(), is_dynamic=False)

        assert entry.archive_name == "sherpa-onnx-v1.0.0-android.tar.bz2"
        assert entry.target == "aarch64-linux-android"
        assert entry.is_dynamic is True
        assert entry.explicit_libraries == (
            "jniLibs/arm64-v8a/libsherpa-onnx-c-api.so",
            "jniLibs/arm64-v8a/libonnxruntime.so",
        )

    def test_deterministic(self, manifest):
        """Test identical inputs resolve to identical entries."""
        features = FeatureSet.parse(["tts"])
        assert manifest.resolve(LINUX, features, True) == manifest.resolve(LINUX, features, True)

    def test_unknown_target_is_miss(self, manifest):
        target = TargetInfo.parse("riscv64gc-unknown-linux-gnu")
        assert manifest.resolve(target, FeatureSet(), True) is None

    def test_missing_variant_is_miss(self, manifest):
        assert manifest.resolve(LINUX, FeatureSet.parse(["directml"]), True) is None

    def test_missing_checksum_is_miss(self, manifest_data):
        """Test archives without a checksum are never selected."""
        manifest = DistributionManifest.from_data(manifest_data, {})
        assert manifest.resolve(LINUX, FeatureSet(), True) is None

    def test_missing_linkage_is_miss(self, manifest_data):
        manifest_data["targets"]["x86_64-unknown-linux-gnu"].pop("static")
        manifest = DistributionManifest.from_data(manifest_data, {"x": "0" * 64})
        assert manifest.resolve(LINUX, FeatureSet(), False) is None


class TestManifestQueries:
    """Tests for helper queries."""

    def test_has_variant(self, manifest):
        assert manifest.has_variant(LINUX, "")
        assert manifest.has_variant(LINUX, "cuda")
        assert not manifest.has_variant(LINUX, "directml")
        assert not manifest.has_variant(ANDROID, "cuda")
        assert not manifest.has_variant(TargetInfo.parse("x86_64-pc-windows-msvc"), "")

    def test_archives(self, manifest):
        """Test every archive including variants is listed once."""
        assert manifest.archives() == [
            "sherpa-onnx-v1.0.0-android.tar.bz2",
            "sherpa-onnx-v1.0.0-cuda-linux-x64-gpu.tar.bz2",
            "sherpa-onnx-v1.0.0-linux-x64-shared.tar.bz2",
            "sherpa-onnx-v1.0.0-linux-x64-static.tar.bz2",
        ]

    def test_with_tag(self, manifest):
        """Test retagging expands the new tag everywhere."""
        retagged = manifest.with_tag("v2.0.0")

        assert retagged.tag == "v2.0.0"
        assert "sherpa-onnx-v2.0.0-android.tar.bz2" in retagged.archives()
        assert retagged.archive_url("a.tar.bz2") == "https://example.com/releases/v2.0.0/a.tar.bz2"
        assert retagged.to_data()["url"] == "https://example.com/releases/{tag}/{archive}"
        assert manifest.tag == "v1.0.0"

    def test_to_data_keeps_placeholders(self, manifest, manifest_data):
        assert manifest.to_data() == manifest_data


class TestValidation:
    """Tests for manifest validation."""

    def test_missing_key(self, manifest_data):
        del manifest_data["url"]
        with pytest.raises(ManifestError, match="url"):
            DistributionManifest.from_data(manifest_data, {})

    def test_url_without_archive(self, manifest_data):
        manifest_data["url"] = "https://example.com/{tag}"
        with pytest.raises(ManifestError, match="archive"):
            DistributionManifest.from_data(manifest_data, {})

    def test_record_without_archive(self, manifest_data):
        manifest_data["targets"]["x86_64-pc-windows-msvc"] = {"is_dynamic": True}
        with pytest.raises(ManifestError, match="x86_64-pc-windows-msvc"):
            DistributionManifest.from_data(manifest_data, {})

    def test_unknown_record_key(self, manifest_data):
        manifest_data["targets"]["android"]["checksum"] = "abc"
        with pytest.raises(ManifestError, match="unknown keys"):
            DistributionManifest.from_data(manifest_data, {})

    def test_bad_is_dynamic(self, manifest_data):
        manifest_data["targets"]["android"]["is_dynamic"] = "yes"
        with pytest.raises(ManifestError, match="is_dynamic"):
            DistributionManifest.from_data(manifest_data, {})

    def test_nested_variants(self, manifest_data):
        variant = manifest_data["targets"]["x86_64-unknown-linux-gnu"]["variants"]["cuda"]
        variant["variants"] = {"x": {"archive": "x.tar.bz2"}}
        with pytest.raises(ManifestError, match="nested"):
            DistributionManifest.from_data(manifest_data, {})

    def test_bad_library_list(self, manifest_data):
        manifest_data["targets"]["android"]["targets"]["aarch64-linux-android"] = "lib.so"
        with pytest.raises(ManifestError, match="list of paths"):
            DistributionManifest.from_data(manifest_data, {})


class TestLoad:
    """Tests for loading manifest files."""

    def test_load_with_checksums(self, tmp_path, manifest_data):
        """Test checksum.txt next to dist.json is used."""
        (tmp_path / "dist.json").write_text(json.dumps(manifest_data))
        (tmp_path / "checksum.txt").write_text(
            "sherpa-onnx-v1.0.0-android.tar.bz2 " + "A" * 64 + "\n"
        )

        manifest = DistributionManifest.load(tmp_path / "dist.json")

        assert manifest.tag == "v1.0.0"
        assert manifest.resolve(ANDROID, FeatureSet(), True).checksum == "A" * 64

    def test_load_without_checksums(self, tmp_path, manifest_data):
        """Test a missing table means every lookup misses."""
        (tmp_path / "dist.json").write_text(json.dumps(manifest_data))

        manifest = DistributionManifest.load(tmp_path / "dist.json")

        assert manifest.checksums == {}
        assert manifest.resolve(ANDROID, FeatureSet(), True) is None

    def test_load_missing(self, tmp_path):
        with pytest.raises(ManifestError, match="not found"):
            DistributionManifest.load(tmp_path / "dist.json")

    def test_load_invalid_json(self, tmp_path):
        (tmp_path / "dist.json").write_text("{")
        with pytest.raises(ManifestError, match="Invalid JSON"):
            DistributionManifest.load(tmp_path / "dist.json")

    def test_packaged_manifest(self):
        """Test the packaged manifest loads and covers the main targets."""
        manifest = DistributionManifest.load()

        for key in (
            "x86_64-unknown-linux-gnu",
            "aarch64-apple-darwin",
            "x86_64-pc-windows-msvc",
            "android",
            "ios",
        ):
            assert key in manifest.targets
        assert manifest.has_variant(TargetInfo.parse("x86_64-unknown-linux-gnu"), "cuda")
        for archive in manifest.archives():
            assert manifest.tag in archive
        assert set(manifest.checksums) <= set(manifest.archives())
