"""
Unit tests for the target triple module.

Tests cover:
- Triple parsing for desktop and mobile targets
- Platform families shared by mobile variants
- Host target detection with mocking
- Cache behavior
"""

import pytest
from unittest.mock import patch

from sherpakit.core.exceptions import ConfigurationError
from sherpakit.core.platform import (
    TargetInfo,
    clear_target_cache,
    detect_host_target,
)


class TestTargetInfoParse:
    """Tests for TargetInfo.parse."""

    @pytest.mark.parametrize(
        "triple,arch,os_name,abi",
        [
            ("x86_64-unknown-linux-gnu", "x86_64", "linux", "gnu"),
            ("aarch64-unknown-linux-musl", "aarch64", "linux", "musl"),
            ("x86_64-pc-windows-msvc", "x86_64", "windows", "msvc"),
            ("aarch64-apple-darwin", "aarch64", "macos", ""),
            ("aarch64-linux-android", "aarch64", "android", ""),
            ("armv7-linux-androideabi", "armv7", "android", "androideabi"),
            ("aarch64-apple-ios", "aarch64", "ios", ""),
            ("aarch64-apple-ios-sim", "aarch64", "ios", "sim"),
        ],
    )
    def test_parse_components(self, triple, arch, os_name, abi):
        """Test that each triple component is normalized."""
        target = TargetInfo.parse(triple)
        assert target.triple == triple
        assert target.arch == arch
        assert target.os == os_name
        assert target.abi == abi

    def test_parse_strips_whitespace(self):
        """Test surrounding whitespace is ignored."""
        assert TargetInfo.parse("  aarch64-apple-darwin\n").triple == "aarch64-apple-darwin"

    @pytest.mark.parametrize("triple", ["", "x86_64", "x86_64--linux", "riscv64-unknown-none"])
    def test_parse_invalid(self, triple):
        """Test malformed or unsupported triples are configuration errors."""
        with pytest.raises(ConfigurationError):
            TargetInfo.parse(triple)

    def test_str_is_triple(self):
        """Test string form is the original triple."""
        assert str(TargetInfo.parse("x86_64-pc-windows-msvc")) == "x86_64-pc-windows-msvc"


class TestTargetInfoProperties:
    """Tests for derived TargetInfo properties."""

    def test_family_desktop_is_triple(self):
        """Test desktop targets are their own family."""
        target = TargetInfo.parse("x86_64-unknown-linux-gnu")
        assert target.family == "x86_64-unknown-linux-gnu"
        assert not target.is_mobile

    def test_family_mobile(self):
        """Test mobile variants share a platform family."""
        assert TargetInfo.parse("aarch64-linux-android").family == "android"
        assert TargetInfo.parse("i686-linux-android").family == "android"
        assert TargetInfo.parse("aarch64-apple-ios-sim").family == "ios"
        assert TargetInfo.parse("aarch64-apple-ios").is_mobile

    def test_is_apple(self):
        """Test Apple detection."""
        assert TargetInfo.parse("aarch64-apple-darwin").is_apple
        assert TargetInfo.parse("aarch64-apple-ios").is_apple
        assert not TargetInfo.parse("x86_64-pc-windows-msvc").is_apple

    def test_is_simulator(self):
        """Test iOS simulator detection."""
        assert TargetInfo.parse("aarch64-apple-ios-sim").is_simulator
        assert TargetInfo.parse("x86_64-apple-ios").is_simulator
        assert not TargetInfo.parse("aarch64-apple-ios").is_simulator
        assert not TargetInfo.parse("x86_64-apple-darwin").is_simulator

    def test_immutable(self):
        """Test targets cannot be mutated."""
        target = TargetInfo.parse("x86_64-unknown-linux-gnu")
        with pytest.raises(AttributeError):
            target.os = "windows"


class TestDetectHostTarget:
    """Tests for host target detection."""

    def setup_method(self):
        clear_target_cache()

    def teardown_method(self):
        clear_target_cache()

    @patch("sherpakit.core.platform.platform.libc_ver", return_value=("glibc", "2.35"))
    @patch("sherpakit.core.platform.platform.machine", return_value="x86_64")
    @patch("sherpakit.core.platform.platform.system", return_value="Linux")
    def test_linux_glibc(self, mock_system, mock_machine, mock_libc):
        """Test Linux glibc host."""
        assert detect_host_target() == "x86_64-unknown-linux-gnu"

    @patch("sherpakit.core.platform.platform.libc_ver", return_value=("", ""))
    @patch("sherpakit.core.platform.platform.machine", return_value="armv7l")
    @patch("sherpakit.core.platform.platform.system", return_value="Linux")
    def test_linux_armv7(self, mock_system, mock_machine, mock_libc):
        """Test 32-bit ARM Linux host."""
        assert detect_host_target() == "armv7-unknown-linux-gnueabihf"

    @patch("sherpakit.core.platform.platform.machine", return_value="arm64")
    @patch("sherpakit.core.platform.platform.system", return_value="Darwin")
    def test_macos_arm64(self, mock_system, mock_machine):
        """Test Apple Silicon host."""
        assert detect_host_target() == "aarch64-apple-darwin"

    @patch("sherpakit.core.platform.platform.machine", return_value="AMD64")
    @patch("sherpakit.core.platform.platform.system", return_value="Windows")
    def test_windows_amd64(self, mock_system, mock_machine):
        """Test Windows x64 host."""
        assert detect_host_target() == "x86_64-pc-windows-msvc"

    @patch("sherpakit.core.platform.platform.machine", return_value="x86_64")
    @patch("sherpakit.core.platform.platform.system", return_value="FreeBSD")
    def test_unsupported_host(self, mock_system, mock_machine):
        """Test unsupported host OS."""
        with pytest.raises(ConfigurationError, match="Unsupported host"):
            detect_host_target()

    def test_detection_is_cached(self):
        """Test detection runs once per process."""
        with patch(
            "sherpakit.core.platform.platform.system", return_value="Darwin"
        ) as mock_system, patch(
            "sherpakit.core.platform.platform.machine", return_value="x86_64"
        ):
            detect_host_target()
            detect_host_target()
        assert mock_system.call_count == 1
