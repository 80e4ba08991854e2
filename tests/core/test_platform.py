"""
Tests for platform detection module.
"""

from unittest.mock import patch

import pytest

from runtimekit.core.platform import (
    PlatformInfo,
    _detect_distribution,
    _parse_image_os,
    detect_architecture,
    get_virtual_environment_name,
)


class TestImageOS:
    """Test translation of the runner's ImageOS variable."""

    @pytest.mark.parametrize(
        "image_os,expected",
        [
            ("ubuntu20", "ubuntu-20.04"),
            ("ubuntu22", "ubuntu-22.04"),
            ("ubuntu24", "ubuntu-24.04"),
            ("macos1015", "macos-10.15"),
            ("macos13", "macos-13"),
            ("macos14", "macos-14"),
            ("win19", "windows-2019"),
            ("win22", "windows-2022"),
        ],
    )
    def test_known_images(self, image_os, expected):
        assert _parse_image_os(image_os) == expected

    def test_unknown_image(self):
        with pytest.raises(RuntimeError, match="Unknown ImageOS"):
            _parse_image_os("solaris11")

    def test_image_os_wins_over_host(self):
        """Test ImageOS is used without consulting the host."""
        with patch("runtimekit.core.platform._detect_os") as mock_os:
            assert get_virtual_environment_name({"ImageOS": "ubuntu22"}) == "ubuntu-22.04"
            mock_os.assert_not_called()


class TestHostDetection:
    """Test image names derived from the host."""

    def test_linux_from_os_release(self):
        with patch(
            "runtimekit.core.platform._detect_distribution",
            return_value=("ubuntu", "22.04"),
        ):
            assert get_virtual_environment_name({}, "linux") == "ubuntu-22.04"

    def test_linux_unknown_distribution(self):
        with patch(
            "runtimekit.core.platform._detect_distribution", return_value=("", "")
        ):
            with pytest.raises(RuntimeError, match="Linux distribution"):
                get_virtual_environment_name({}, "linux")

    def test_macos_major_version(self):
        with patch(
            "runtimekit.core.platform.platform.mac_ver",
            return_value=("14.5", ("", "", ""), "arm64"),
        ):
            assert get_virtual_environment_name({}, "macos") == "macos-14"

    def test_windows_release(self):
        with patch(
            "runtimekit.core.platform.platform.version", return_value="10.0.20348"
        ):
            assert get_virtual_environment_name({}, "windows") == "windows-2022"

    def test_os_release_parsing(self, tmp_path):
        os_release = tmp_path / "os-release"
        os_release.write_text('NAME="Ubuntu"\nID=ubuntu\nVERSION_ID="24.04"\n')

        assert _detect_distribution(os_release) == ("ubuntu", "24.04")

    def test_missing_os_release(self, tmp_path):
        assert _detect_distribution(tmp_path / "missing") == ("", "")

    @pytest.mark.parametrize(
        "machine,expected",
        [("x86_64", "x64"), ("AMD64", "x64"), ("aarch64", "arm64"), ("i686", "x86")],
    )
    def test_architecture(self, machine, expected):
        with patch("runtimekit.core.platform.platform.machine", return_value=machine):
            assert detect_architecture() == expected


class TestPlatformInfo:
    """Test PlatformInfo helpers."""

    def test_windows_flags(self):
        info = PlatformInfo("windows", "x64", "windows-2022")
        assert info.is_windows
        assert not info.is_macos

    def test_str(self):
        info = PlatformInfo("linux", "x64", "ubuntu-22.04")
        assert str(info) == "ubuntu-22.04 (linux-x64)"
