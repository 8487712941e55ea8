"""Tests for platform detection and the installer factory."""

import pytest

from tests.conftest import FakeRunner
from unifiwatch.service.backends import Platform, create_installer, detect_platform
from unifiwatch.service.backends.launchd import LaunchdServiceInstaller
from unifiwatch.service.backends.systemd import SystemdServiceInstaller
from unifiwatch.service.backends.windows import WindowsServiceInstaller
from unifiwatch.service.base import ServiceErrorKind, UnsupportedPlatformError


class TestDetectPlatform:
    @pytest.mark.parametrize(
        ("sys_platform", "expected"),
        [
            ("win32", Platform.WINDOWS),
            ("linux", Platform.LINUX),
            ("darwin", Platform.MACOS),
        ],
    )
    def test_known(self, sys_platform, expected):
        assert detect_platform(sys_platform) == expected

    @pytest.mark.parametrize("sys_platform", ["freebsd14", "aix", "cygwin"])
    def test_unsupported(self, sys_platform):
        with pytest.raises(UnsupportedPlatformError) as exc_info:
            detect_platform(sys_platform)
        assert exc_info.value.kind == ServiceErrorKind.UNSUPPORTED_PLATFORM

    def test_uses_running_platform(self, monkeypatch):
        monkeypatch.setattr("unifiwatch.service.backends.sys.platform", "darwin")
        assert detect_platform() == Platform.MACOS


class TestCreateInstaller:
    @pytest.mark.parametrize(
        ("platform", "cls", "name"),
        [
            (Platform.WINDOWS, WindowsServiceInstaller, "windows"),
            (Platform.LINUX, SystemdServiceInstaller, "systemd"),
            (Platform.MACOS, LaunchdServiceInstaller, "launchd"),
        ],
    )
    def test_each_platform(self, platform, cls, name):
        installer = create_installer(platform, service_name="Watcher", runner=FakeRunner())
        assert isinstance(installer, cls)
        assert installer.name == name
        assert installer.service_name == "Watcher"

    def test_accepts_platform_value(self):
        installer = create_installer("MacOS")
        assert isinstance(installer, LaunchdServiceInstaller)

    def test_unknown_platform_name(self):
        with pytest.raises(UnsupportedPlatformError, match="Unknown platform"):
            create_installer("beos")

    def test_auto_detects(self, monkeypatch):
        monkeypatch.setattr("unifiwatch.service.backends.sys.platform", "win32")
        assert isinstance(create_installer(), WindowsServiceInstaller)

    def test_reuse_defaults(self):
        assert create_installer(Platform.WINDOWS).reuses_existing_by_default is True
        assert create_installer(Platform.LINUX).reuses_existing_by_default is False
        assert create_installer(Platform.MACOS).reuses_existing_by_default is False

    def test_rejects_empty_service_name(self):
        with pytest.raises(ValueError):
            create_installer(Platform.LINUX, service_name="")
