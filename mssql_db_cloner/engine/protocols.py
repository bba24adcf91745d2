"""Collaborator interfaces consumed by the clone pipeline.

The pipeline never talks to SQL Server or the operating system directly; it
goes through these protocols. ``engine.server`` and ``engine.volumes`` hold
the concrete bindings, tests use in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from mssql_db_cloner.domain.models import (
    BackupCatalogEntry,
    FileDescriptor,
    FileKind,
    HaRole,
    RestorePlan,
)


class EngineError(Exception):
    """A statement failed inside the database engine.

    Carries the engine's own error number and message so callers can report
    them verbatim.
    """

    def __init__(self, number: Optional[int], message: str):
        self.number = number
        self.message = message
        if number is None:
            super().__init__(message)
        else:
            super().__init__(f"Msg {number}: {message}")


class EngineAdmin(Protocol):
    """Administrative surface of the database engine."""

    def current_time(self) -> datetime:
        """Engine-local clock. Backup history and file names use this time."""
        ...

    def database_exists(self, name: str) -> bool: ...

    def is_hadr_enabled(self) -> bool: ...

    def replica_role(self, name: str) -> HaRole:
        """Role of ``name`` in its availability group.

        NOT_APPLICABLE when the database is not part of one.
        """
        ...

    def allocated_size_mb(self, name: str, kind: FileKind) -> int: ...

    def used_size_mb(self, name: str) -> int: ...

    def vlf_count(self, name: str) -> int: ...

    def default_data_path(self) -> str: ...

    def default_log_path(self) -> str: ...

    def get_configuration(self, option: str) -> int: ...

    def set_configuration(self, option: str, value: int) -> None: ...

    def run_shell(self, command: str) -> list[str]:
        """Run an operating system command on the engine host (xp_cmdshell)."""
        ...

    def backup_database(self, name: str, path: str) -> None:
        """Take a copy-only, compressed full backup of ``name`` to ``path``."""
        ...

    def list_backup_history(
        self, database_name: str, since: datetime
    ) -> list[BackupCatalogEntry]:
        """Backups of ``database_name`` finished at or after ``since``, newest first."""
        ...

    def verify_backup(self, path: str) -> None: ...

    def read_file_list(self, path: str) -> list[FileDescriptor]: ...

    def restore_database(self, plan: RestorePlan, path: str) -> None: ...


class VolumeQuery(Protocol):
    """Free space lookup for the volume that holds a directory."""

    #: True when the lookup shells out through the engine (needs xp_cmdshell)
    requires_engine_shell: bool

    def free_bytes(self, path: str) -> Optional[int]:
        """Return free bytes, or None when the query fails."""
        ...
