"""Tests for volume free space queries."""

from collections import namedtuple

from mssql_db_cloner.engine.protocols import EngineError
from mssql_db_cloner.engine.volumes import (
    EngineShellVolumeQuery,
    LocalVolumeQuery,
    bytes_to_mb,
)


DiskUsage = namedtuple("DiskUsage", ["total", "used", "free"])


class TestBytesToMb:
    def test_conversion(self):
        assert bytes_to_mb(5 * 1024 * 1024 + 10) == 5

    def test_none(self):
        assert bytes_to_mb(None) is None


class TestEngineShellVolumeQuery:
    """Test free space via xp_cmdshell."""

    def test_needs_engine_shell(self, engine):
        assert EngineShellVolumeQuery(engine).requires_engine_shell

    def test_command(self, engine):
        command = EngineShellVolumeQuery(engine).build_command("D:\\SQLData\\")
        assert command.startswith("powershell.exe -NoProfile")
        assert "Get-Volume -FilePath 'D:\\SQLData\\'" in command
        assert "SizeRemaining" in command

    def test_parses_value(self, make_engine):
        engine = make_engine(shell_output=["", "  536870912000  "])
        assert EngineShellVolumeQuery(engine).free_bytes("D:\\") == 536870912000
        assert len(engine.called("run_shell")) == 1

    def test_no_value(self, make_engine, log_records):
        engine = make_engine(shell_output=["Get-Volume : No MSFT_Volume objects found"])
        assert EngineShellVolumeQuery(engine).free_bytes("Q:\\") is None
        assert any(record["level"].name == "WARNING" for record in log_records)

    def test_engine_error(self, make_engine):
        engine = make_engine(
            errors={"run_shell": EngineError(15281, "SQL Server blocked access to xp_cmdshell")}
        )
        assert EngineShellVolumeQuery(engine).free_bytes("D:\\") is None


class TestLocalVolumeQuery:
    """Test free space via the local filesystem."""

    def test_does_not_need_engine_shell(self):
        assert not LocalVolumeQuery().requires_engine_shell

    def test_free_bytes(self, mocker):
        mocker.patch(
            "mssql_db_cloner.engine.volumes.shutil.disk_usage",
            return_value=DiskUsage(100, 40, 60),
        )
        assert LocalVolumeQuery().free_bytes("/var/opt/mssql/data/") == 60

    def test_missing_path(self, tmp_path):
        assert LocalVolumeQuery().free_bytes(str(tmp_path / "missing")) is None
