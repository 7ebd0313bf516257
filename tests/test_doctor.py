"""Tests for doctor module configuration checks."""

from __future__ import annotations

import sys
from io import StringIO

import pytest

from vindex.cli import doctor_cmd, main
from vindex.core.config import VindexConfig
from vindex.core.doctor import ConfigCheck, DoctorResult, check_configuration


def make_config(**overrides) -> VindexConfig:
    values = {"twelvelabs_api_key": "tlk_key", "database_path": ":memory:"}
    values.update(overrides)
    return VindexConfig(_env_file=None, **values)


def check_named(result: DoctorResult, name: str) -> ConfigCheck:
    return next(check for check in result.checks if check.name == name)


class TestCheckConfiguration:
    """Tests for check_configuration function."""

    def test_all_settings_present(self) -> None:
        result = check_configuration(make_config())

        assert [check.name for check in result.checks] == [
            "twelvelabs_api_key",
            "store",
            "max_poll_attempts",
        ]
        assert result.all_ok is True

    def test_api_key_missing(self) -> None:
        result = check_configuration(make_config(twelvelabs_api_key=""))

        check = check_named(result, "twelvelabs_api_key")
        assert check.ok is False
        assert "VINDEX_TWELVELABS_API_KEY" in check.detail
        assert result.all_ok is False

    def test_postgrest_missing_settings(self) -> None:
        result = check_configuration(
            make_config(store_provider="postgrest", supabase_url="https://abc.supabase.co")
        )

        check = check_named(result, "store")
        assert check.ok is False
        assert "VINDEX_SUPABASE_SERVICE_KEY" in check.detail
        assert "VINDEX_SUPABASE_URL" not in check.detail

    def test_postgrest_configured(self) -> None:
        result = check_configuration(
            make_config(
                store_provider="postgrest",
                supabase_url="https://abc.supabase.co",
                supabase_service_key="service",
            )
        )
        assert check_named(result, "store").ok is True

    def test_sqlite_parent_not_a_directory(self, tmp_path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        result = check_configuration(make_config(database_path=str(blocker / "vindex.db")))

        assert check_named(result, "store").ok is False
        assert result.all_ok is False

    def test_sqlite_missing_directory_is_fine(self, tmp_path) -> None:
        result = check_configuration(
            make_config(database_path=str(tmp_path / "new" / "vindex.db"))
        )
        assert check_named(result, "store").ok is True

    def test_unlimited_polling_is_a_warning(self) -> None:
        """Test an unlimited poll budget warns without failing."""
        result = check_configuration(make_config(max_poll_attempts=0))

        check = check_named(result, "max_poll_attempts")
        assert check.ok is False
        assert check.required is False
        assert result.all_ok is True

    def test_poll_budget_detail(self) -> None:
        result = check_configuration(make_config())
        assert check_named(result, "max_poll_attempts").detail == "360 checks (~60 min)"


class TestDoctorResult:
    """Tests for DoctorResult dataclass."""

    def test_all_ok_false_when_required_check_fails(self) -> None:
        result = DoctorResult(checks=[ConfigCheck("a", True, ""), ConfigCheck("b", False, "")])
        assert result.all_ok is False

    def test_all_ok_ignores_optional_failures(self) -> None:
        result = DoctorResult(checks=[ConfigCheck("a", False, "", required=False)])
        assert result.all_ok is True

    def test_all_ok_true_when_empty(self) -> None:
        assert DoctorResult().all_ok is True


class TestDoctorCLI:
    """Tests for doctor CLI command."""

    @pytest.fixture(autouse=True)
    def isolated_env(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("VINDEX_DATABASE_PATH", ":memory:")

    def test_doctor_command_registered(self, monkeypatch) -> None:
        """Test that doctor command is registered in argparse."""
        old_stdout = sys.stdout
        sys.stdout = StringIO()
        monkeypatch.setattr(sys, "argv", ["vindex", "--help"])
        try:
            with pytest.raises(SystemExit) as exc_info:
                main()
            output = sys.stdout.getvalue()
        finally:
            sys.stdout = old_stdout

        assert "doctor" in output.lower()
        assert exc_info.value.code == 0

    def test_doctor_passes_when_configured(self, monkeypatch) -> None:
        monkeypatch.setenv("VINDEX_TWELVELABS_API_KEY", "tlk_key")
        doctor_cmd()

    def test_doctor_exit_code_1_missing_key(self, monkeypatch) -> None:
        monkeypatch.delenv("VINDEX_TWELVELABS_API_KEY", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            doctor_cmd()

        assert exc_info.value.code == 1
