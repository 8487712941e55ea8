"""Tests for the service model and install options."""

import pytest

from unifiwatch.service.base import (
    DEFAULT_SERVICE_NAME,
    ServiceErrorKind,
    ServiceInstallOptions,
    ServiceResult,
    ServiceState,
    ServiceStatus,
    StartupType,
    UnsupportedPlatformError,
)


class TestServiceInstallOptions:
    def test_defaults(self):
        options = ServiceInstallOptions(executable_path="/opt/unifiwatch/app.py")

        assert options.service_name == DEFAULT_SERVICE_NAME
        assert options.startup_type == StartupType.AUTOMATIC
        assert options.delayed_auto_start is True
        assert options.restart_attempts_on_failure == 3
        assert options.restart_delay_seconds == 10
        assert options.dependencies == ()
        assert options.allow_reuse_existing is None

    def test_immutable(self):
        options = ServiceInstallOptions(executable_path="/opt/unifiwatch/app.py")
        with pytest.raises(AttributeError):
            options.service_name = "Other"  # type: ignore[misc]

    @pytest.mark.parametrize("path", ["", "app.py", "relative/app.py"])
    def test_rejects_relative_executable(self, path):
        with pytest.raises(ValueError, match="absolute"):
            ServiceInstallOptions(executable_path=path)

    def test_accepts_windows_path(self):
        options = ServiceInstallOptions(executable_path=r"C:\UnifiWatch\unifiwatch.exe")
        assert options.working_directory == "C:\\UnifiWatch"

    def test_working_directory_posix(self):
        options = ServiceInstallOptions(executable_path="/opt/unifiwatch/app.py")
        assert options.working_directory == "/opt/unifiwatch"

    def test_rejects_empty_name(self):
        with pytest.raises(ValueError, match="service_name"):
            ServiceInstallOptions(executable_path="/opt/app.py", service_name="  ")

    @pytest.mark.parametrize(
        "field", ["restart_attempts_on_failure", "restart_delay_seconds"]
    )
    def test_rejects_non_positive_restart_settings(self, field):
        with pytest.raises(ValueError, match=field):
            ServiceInstallOptions(executable_path="/opt/app.py", **{field: 0})

    def test_parses_startup_type_string(self):
        options = ServiceInstallOptions(
            executable_path="/opt/app.py",
            startup_type="manual",  # type: ignore[arg-type]
        )
        assert options.startup_type == StartupType.MANUAL

    def test_dependencies_deduplicated_in_order(self):
        options = ServiceInstallOptions(
            executable_path="/opt/app.py",
            dependencies=("b.service", "a.service", "b.service", ""),
        )
        assert options.dependencies == ("b.service", "a.service")

    def test_str(self):
        options = ServiceInstallOptions(
            executable_path="/opt/app.py", service_name="Watcher", display_name="Watch"
        )
        assert str(options) == "Watch (Watcher)"


class TestStartupType:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("Automatic", StartupType.AUTOMATIC),
            ("DISABLED", StartupType.DISABLED),
            (" manual ", StartupType.MANUAL),
            (StartupType.MANUAL, StartupType.MANUAL),
        ],
    )
    def test_parse(self, value, expected):
        assert StartupType.parse(value) == expected

    def test_parse_invalid(self):
        with pytest.raises(ValueError, match="Unknown startup type"):
            StartupType.parse("sometimes")


class TestServiceResult:
    def test_ok_is_truthy(self):
        result = ServiceResult.ok("done")
        assert result
        assert result.error_kind is None
        assert result.detail == "done"

    def test_fail_is_falsy(self):
        result = ServiceResult.fail(ServiceErrorKind.PRIVILEGE_DENIED, "denied")
        assert not result
        assert result.error_kind == ServiceErrorKind.PRIVILEGE_DENIED


class TestServiceStatus:
    @pytest.mark.parametrize(
        ("state", "installed"),
        [
            (ServiceState.RUNNING, True),
            (ServiceState.STOPPED, True),
            (ServiceState.INSTALLED, True),
            (ServiceState.NOT_INSTALLED, False),
            (ServiceState.UNKNOWN, False),
        ],
    )
    def test_is_installed(self, state, installed):
        assert ServiceStatus(state=state).is_installed is installed

    def test_registered_unknown_is_installed(self):
        status = ServiceStatus(state=ServiceState.UNKNOWN, registered=True)
        assert status.is_installed

    def test_defaults(self):
        status = ServiceStatus(state=ServiceState.UNKNOWN)
        assert status.process_id is None
        assert status.last_start_time is None
        assert status.message == ""
        assert not status.registered


def test_unsupported_platform_error_kind():
    error = UnsupportedPlatformError("nope")
    assert error.kind == ServiceErrorKind.UNSUPPORTED_PLATFORM
