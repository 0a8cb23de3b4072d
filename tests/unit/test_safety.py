"""
Tests for configsync.core.safety module.
"""

from pathlib import Path
from unittest.mock import Mock, patch

from configsync.core.config import ConfigSyncConfig
from configsync.core.models import STORE_FILE, SafetyCheck
from configsync.core.safety import (
    PreflightCheck,
    PreflightReport,
    SafetyGuard,
    check_owner_process,
    check_store_readable,
    run_preflight,
    validate_store_header,
)


def _processes(*names: str) -> list[Mock]:
    procs = []
    for name in names:
        proc = Mock()
        proc.info = {"name": name}
        procs.append(proc)
    return procs


class TestValidateStoreHeader:
    """Tests for the structural store check."""

    def test_valid(self, store_blob: bytes) -> None:
        assert validate_store_header(store_blob) is True

    def test_header_only_is_rejected(self) -> None:
        assert validate_store_header(b"SQLite format 3\x00") is False

    def test_empty_is_rejected(self) -> None:
        assert validate_store_header(b"") is False

    def test_wrong_magic(self) -> None:
        assert validate_store_header(b"SQLite format 2\x00" + bytes(100)) is False


class TestSafetyGuard:
    """Tests for SafetyGuard."""

    def test_owner_process_detected(self) -> None:
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            return_value=_processes("bash", "SteelSeriesGG.exe"),
        ):
            assert guard.owner_process_running() is True

    def test_owner_process_not_running(self) -> None:
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            return_value=_processes("bash", "python"),
        ):
            assert guard.owner_process_running() is False

    def test_match_is_case_sensitive(self) -> None:
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            return_value=_processes("steelseriesgg"),
        ):
            assert guard.owner_process_running() is False

    def test_nameless_processes_ignored(self) -> None:
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            return_value=_processes(None, ""),  # type: ignore[arg-type]
        ):
            assert guard.owner_process_running() is False

    def test_safe_to_read_missing(self, temp_dir: Path) -> None:
        guard = SafetyGuard([])
        assert guard.safe_to_read(temp_dir) == SafetyCheck.MISSING

    def test_safe_to_read_present(self, temp_dir: Path, write_store) -> None:
        write_store(temp_dir)
        guard = SafetyGuard([])
        assert guard.safe_to_read(temp_dir) == SafetyCheck.SAFE

    def test_safe_to_read_ignores_owner(self, temp_dir: Path, write_store) -> None:
        write_store(temp_dir)
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            return_value=_processes("SteelSeriesGG"),
        ):
            assert guard.safe_to_read(temp_dir) == SafetyCheck.SAFE

    def test_safe_to_write_blocked_by_owner(self, temp_dir: Path, write_store) -> None:
        write_store(temp_dir)
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            return_value=_processes("SteelSeriesGG"),
        ):
            assert guard.safe_to_write(temp_dir) == SafetyCheck.OWNER_PROCESS_RUNNING

    def test_safe_to_write_missing_store_is_safe(self, temp_dir: Path) -> None:
        guard = SafetyGuard(["SteelSeriesGG"])
        assert guard.safe_to_write(temp_dir) == SafetyCheck.SAFE

    def test_locked_store(self, temp_dir: Path, write_store) -> None:
        write_store(temp_dir)
        guard = SafetyGuard([])
        with patch("configsync.core.safety.can_read_file", return_value=False):
            assert guard.safe_to_read(temp_dir) == SafetyCheck.LOCKED
            assert guard.safe_to_write(temp_dir) == SafetyCheck.LOCKED

    def test_process_list_refreshed_each_write_check(self, temp_dir: Path) -> None:
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            side_effect=[_processes("SteelSeriesGG"), _processes()],
        ):
            assert guard.safe_to_write(temp_dir) == SafetyCheck.OWNER_PROCESS_RUNNING
            assert guard.safe_to_write(temp_dir) == SafetyCheck.SAFE


class TestPreflightReport:
    """Tests for PreflightReport."""

    def test_all_passed(self) -> None:
        report = PreflightReport(
            checks=[
                PreflightCheck(name="Check 1", passed=True, message="OK"),
                PreflightCheck(name="Check 2", passed=True, message="OK"),
            ]
        )
        assert report.all_passed is True
        assert report.has_errors is False
        assert report.has_warnings is False

    def test_has_warnings(self) -> None:
        report = PreflightReport(
            checks=[
                PreflightCheck(name="Check 1", passed=False, message="Hmm", severity="warning"),
            ]
        )
        assert report.has_warnings is True
        assert report.has_errors is False

    def test_summary(self) -> None:
        report = PreflightReport(
            checks=[PreflightCheck(name="Store", passed=True, message="OK")]
        )
        summary = report.get_summary()
        assert "1/1 checks passed" in summary
        assert "Store: OK" in summary


class TestPreflightChecks:
    """Tests for individual preflight checks."""

    def test_missing_store_is_warning(self, sample_config: ConfigSyncConfig) -> None:
        guard = SafetyGuard([])
        check = check_store_readable(sample_config.sync, guard)
        assert check.passed is False
        assert check.severity == "warning"

    def test_owner_running_is_warning(self, sample_config: ConfigSyncConfig) -> None:
        guard = SafetyGuard(["SteelSeriesGG"])
        with patch(
            "configsync.core.safety.psutil.process_iter",
            return_value=_processes("SteelSeriesGG"),
        ):
            check = check_owner_process(sample_config.sync, guard)
        assert check.passed is False
        assert check.severity == "warning"

    def test_run_preflight_healthy(self, sample_config: ConfigSyncConfig, write_store) -> None:
        write_store(sample_config.sync.store_directory)
        report = run_preflight(sample_config.sync)
        assert report.all_passed is True
        assert len(report.checks) == 4

    def test_run_preflight_missing_store_directory(
        self, sample_config: ConfigSyncConfig
    ) -> None:
        (sample_config.sync.store_directory / STORE_FILE).unlink(missing_ok=True)
        sample_config.sync.store_directory.rmdir()
        report = run_preflight(sample_config.sync)
        assert report.has_errors is True

    def test_failing_check_is_reported(self, sample_config: ConfigSyncConfig) -> None:
        guard = SafetyGuard([])
        with patch.object(guard, "safe_to_read", side_effect=RuntimeError("boom")):
            report = run_preflight(sample_config.sync, guard)
        failed = [c for c in report.checks if not c.passed and "boom" in c.message]
        assert len(failed) == 1
