"""Custom exceptions for database clone operations.

Every terminal failure of the clone pipeline is one of these exceptions, and
every exception maps to exactly one result code. Stage functions raise them;
only the pipeline converts them into an ``ExecutionResult``.

Exception Hierarchy:
    CloneError (base)
        ├── ValidationError
        │   ├── SourceNotFoundError        (10)
        │   ├── TargetExistsError          (15)
        │   └── SecondaryReplicaError      (17)
        ├── CapacityError
        │   └── InsufficientDiskError
        │       ├── InsufficientDataDiskError  (20)
        │       └── InsufficientLogDiskError   (21)
        └── ExecutionError
            ├── BackupFailedError          (30)
            ├── FileListReadError          (40)
            └── RestoreFailedError         (41)

Usage:
    from mssql_db_cloner.clone.exceptions import SourceNotFoundError

    if not engine.database_exists(name):
        raise SourceNotFoundError(name)
"""

from __future__ import annotations

from typing import Optional

from mssql_db_cloner.domain.models import ResultCode


class CloneError(Exception):
    """Base exception for all clone operations.

    Concrete subclasses set ``result_code``. The base classes leave it unset;
    the pipeline then reports the code of the stage that raised.
    """

    result_code: Optional[ResultCode] = None


class ValidationError(CloneError):
    """Base exception for preflight failures. Nothing has been changed yet."""


class SourceNotFoundError(ValidationError):
    """Source database is not registered with the engine."""

    result_code = ResultCode.SOURCE_NOT_FOUND

    def __init__(self, database_name: str):
        self.database_name = database_name
        super().__init__(f"Database not found: {database_name}")


class TargetExistsError(ValidationError):
    """A database with the requested target name already exists."""

    result_code = ResultCode.TARGET_EXISTS

    def __init__(self, database_name: str):
        self.database_name = database_name
        super().__init__(f"Target database already exists: {database_name}")


class SecondaryReplicaError(ValidationError):
    """Source database is on a secondary availability replica."""

    result_code = ResultCode.SECONDARY_REPLICA

    def __init__(self, database_name: str):
        self.database_name = database_name
        super().__init__(
            f"Database {database_name} is running on a secondary replica"
        )


class CapacityError(CloneError):
    """Base exception for disk capacity failures."""


class InsufficientDiskError(CapacityError):
    """A volume does not have room for the restored files."""

    volume_label = "disk"

    def __init__(self, path: str, free_mb: Optional[int], required_mb: int):
        self.path = path
        self.free_mb = free_mb
        self.required_mb = required_mb
        free_label = "unknown" if free_mb is None else f"{free_mb} MB"
        super().__init__(
            f"Not enough disk space on {self.volume_label} drive {path} "
            f"(free: {free_label}, required: more than {required_mb} MB)"
        )


class InsufficientDataDiskError(InsufficientDiskError):
    result_code = ResultCode.INSUFFICIENT_DATA_DISK
    volume_label = "data"


class InsufficientLogDiskError(InsufficientDiskError):
    result_code = ResultCode.INSUFFICIENT_LOG_DISK
    volume_label = "log"


class ExecutionError(CloneError):
    """Base exception for failures after a mutation may have started.

    Carries the engine's error number and message when one was reported.
    """

    def __init__(
        self,
        message: str,
        engine_error_number: Optional[int] = None,
        engine_error_message: Optional[str] = None,
    ):
        self.engine_error_number = engine_error_number
        self.engine_error_message = engine_error_message
        details = [message]
        if engine_error_number is not None:
            details.append(f"Error no: {engine_error_number}")
        if engine_error_message:
            details.append(f"Message: {engine_error_message}")
        super().__init__("\n".join(details))


class BackupFailedError(ExecutionError):
    """Copy-only backup to the dump directory failed."""

    result_code = ResultCode.BACKUP_FAILED

    POSSIBLE_CAUSES = (
        "Cannot access SQL Dump directory",
        "Not enough disk space on SQL Dump directory",
    )

    def __init__(
        self,
        database_name: str,
        path: str,
        engine_error_number: Optional[int] = None,
        engine_error_message: Optional[str] = None,
    ):
        self.database_name = database_name
        self.path = path
        super().__init__(
            f"Full backup of database {database_name} to {path} failed",
            engine_error_number,
            engine_error_message,
        )


class FileListReadError(ExecutionError):
    """The file list of a backup artifact could not be read."""

    result_code = ResultCode.FILE_LIST_READ_FAILED

    def __init__(
        self,
        path: str,
        engine_error_number: Optional[int] = None,
        engine_error_message: Optional[str] = None,
    ):
        self.path = path
        super().__init__(
            f"Could not read database file configuration from file: {path}",
            engine_error_number,
            engine_error_message,
        )


class RestoreFailedError(ExecutionError):
    """RESTORE DATABASE failed. The engine leaves no partial database."""

    result_code = ResultCode.RESTORE_FAILED

    def __init__(
        self,
        target_name: str,
        engine_error_number: Optional[int] = None,
        engine_error_message: Optional[str] = None,
    ):
        self.target_name = target_name
        super().__init__(
            f"Restore of database {target_name} failed",
            engine_error_number,
            engine_error_message,
        )
