"""Clone a SQL Server database onto the same instance.

Main entry point:
    - clone_database: run the whole pipeline and return an ExecutionResult

Stages:
    - validate_clone_request: preflight checks (codes 10, 15, 17)
    - assess_capacity: disk space on the default data/log volumes (20, 21)
    - select_backup_source: reuse a verified native backup or take a fresh one
    - resolve_backup_artifact: fresh backup when nothing is reusable (30)
    - read_file_manifest, build_restore_plan: file list and relocation plan (40)
    - execute_restore: the restore itself (41)
"""

from .capacity import assess_capacity, elevated_configuration
from .exceptions import (
    BackupFailedError,
    CapacityError,
    CloneError,
    ExecutionError,
    FileListReadError,
    InsufficientDataDiskError,
    InsufficientDiskError,
    InsufficientLogDiskError,
    RestoreFailedError,
    SecondaryReplicaError,
    SourceNotFoundError,
    TargetExistsError,
    ValidationError,
)
from .execution import execute_restore
from .pipeline import clone_database
from .restore_plan import build_restore_plan, read_file_manifest, resolve_backup_artifact
from .selection import select_backup_source
from .validation import default_target_name, validate_clone_request

__all__ = [
    "BackupFailedError",
    "CapacityError",
    "CloneError",
    "ExecutionError",
    "FileListReadError",
    "InsufficientDataDiskError",
    "InsufficientDiskError",
    "InsufficientLogDiskError",
    "RestoreFailedError",
    "SecondaryReplicaError",
    "SourceNotFoundError",
    "TargetExistsError",
    "ValidationError",
    "assess_capacity",
    "build_restore_plan",
    "clone_database",
    "default_target_name",
    "elevated_configuration",
    "execute_restore",
    "read_file_manifest",
    "resolve_backup_artifact",
    "select_backup_source",
    "validate_clone_request",
]
