"""Free space queries for the volumes behind the instance's default directories."""

from __future__ import annotations

import shutil
from typing import Optional

from mssql_db_cloner.logging import get_logger

from .protocols import EngineAdmin, EngineError


log = get_logger(source=__name__)

BYTES_PER_MB = 1024 * 1024


def bytes_to_mb(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    return value // BYTES_PER_MB


def _powershell_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class EngineShellVolumeQuery:
    """Ask the engine host for free space through xp_cmdshell and PowerShell.

    Requires ``xp_cmdshell`` (and ``show advanced options``) to be enabled
    while it runs; the capacity assessor takes care of that.
    """

    requires_engine_shell = True

    def __init__(self, engine: EngineAdmin):
        self.engine = engine

    def build_command(self, path: str) -> str:
        return (
            'powershell.exe -NoProfile -c "Get-Volume -FilePath '
            f"{_powershell_literal(path)} | Select -ExpandProperty SizeRemaining\""
        )

    def free_bytes(self, path: str) -> Optional[int]:
        try:
            lines = self.engine.run_shell(self.build_command(path))
        except EngineError as error:
            log.warning(f"Free space query failed for {path}: {error}")
            return None
        for line in lines:
            value = line.strip()
            if value.isdigit():
                return int(value)
        log.warning(f"Free space query returned no value for {path}: {lines}")
        return None


class LocalVolumeQuery:
    """Read free space directly, for runs on the database host itself."""

    requires_engine_shell = False

    def free_bytes(self, path: str) -> Optional[int]:
        try:
            return shutil.disk_usage(path).free
        except OSError as error:
            log.warning(f"Free space query failed for {path}: {error}")
            return None
