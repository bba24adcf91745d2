"""Build the file relocation plan for a restore under a new name.

Every physical file in the backup gets a new path derived only from the
target database name, so two copies of one source never collide:

    data, n = 1   <data_dir><target>_1.mdf
    data, n > 1   <data_dir><target>_<n>.ndf
    log           <log_dir><target>_log_<n>.ldf

Data and log files are numbered independently, in ascending file id order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from mssql_db_cloner.domain.models import (
    BackupCandidate,
    CloneRequest,
    FileDescriptor,
    FileKind,
    FileMapping,
    RestorePlan,
)
from mssql_db_cloner.engine.protocols import EngineAdmin, EngineError
from mssql_db_cloner.logging import LoggerFactory

from .exceptions import BackupFailedError, FileListReadError


log = LoggerFactory.for_clone()

PRIMARY_DATA_EXTENSION = ".mdf"
SECONDARY_DATA_EXTENSION = ".ndf"
LOG_EXTENSION = ".ldf"


def normalize_directory(path: str) -> str:
    """Trim a directory path and make sure it ends with a separator.

    Uses ``/`` only when the path already uses it exclusively (SQL Server on
    Linux), ``\\`` otherwise.
    """
    path = (path or "").strip()
    if not path:
        return path
    separator = "/" if "/" in path and "\\" not in path else "\\"
    if not path.endswith(separator):
        path += separator
    return path


def backup_file_path(dump_dir: str, source_name: str, now: datetime) -> str:
    """``<dump_dir><source>_FULL_<yyyyMMdd>_<HHmmss>.bak``"""
    return (
        f"{normalize_directory(dump_dir)}{source_name}_FULL_"
        f"{now:%Y%m%d}_{now:%H%M%S}.bak"
    )


def take_fresh_backup(request: CloneRequest, engine: EngineAdmin, now: datetime) -> str:
    """Take a copy-only full backup of the source into the dump directory.

    Returns:
        Path of the backup file

    Raises:
        BackupFailedError: If the engine rejected the backup
    """
    path = backup_file_path(request.dump_dir, request.source_name, now)
    log.info(f"Taking copy-only full backup of {request.source_name} to {path}")
    try:
        engine.backup_database(request.source_name, path)
    except EngineError as error:
        log.error(
            "Possible causes: "
            + "; ".join(BackupFailedError.POSSIBLE_CAUSES)
        )
        raise BackupFailedError(
            request.source_name, path, error.number, error.message
        ) from error
    log.info(f"Backup of {request.source_name} written to {path}")
    return path


def read_file_manifest(engine: EngineAdmin, artifact_path: str) -> list[FileDescriptor]:
    """Read the list of files contained in a backup.

    Raises:
        FileListReadError: If the list cannot be read or is empty
    """
    log.info(f"Reading database file configuration from {artifact_path}")
    try:
        descriptors = list(engine.read_file_list(artifact_path))
    except EngineError as error:
        raise FileListReadError(artifact_path, error.number, error.message) from error
    if not descriptors:
        raise FileListReadError(
            artifact_path, engine_error_message="Backup contains no database files"
        )
    return descriptors


def _numbered_paths(
    descriptors: list[FileDescriptor], directory: str, name_for
) -> list[FileMapping]:
    mappings = []
    ordered = sorted(descriptors, key=lambda descriptor: descriptor.file_id)
    for number, descriptor in enumerate(ordered, start=1):
        mappings.append(
            FileMapping(
                logical_name=descriptor.logical_name,
                kind=descriptor.kind,
                physical_path=f"{directory}{name_for(number)}",
            )
        )
    return mappings


def build_restore_plan(
    target_name: str,
    descriptors: Iterable[FileDescriptor],
    data_dir: str,
    log_dir: str,
) -> RestorePlan:
    """Map every file of a backup to its new location.

    Pure: the plan depends only on the arguments.
    """
    data_files: list[FileDescriptor] = []
    log_files: list[FileDescriptor] = []
    for descriptor in descriptors:
        if descriptor.kind is FileKind.DATA:
            data_files.append(descriptor)
        else:
            log_files.append(descriptor)

    def data_name(number: int) -> str:
        extension = PRIMARY_DATA_EXTENSION if number == 1 else SECONDARY_DATA_EXTENSION
        return f"{target_name}_{number}{extension}"

    def log_name(number: int) -> str:
        return f"{target_name}_log_{number}{LOG_EXTENSION}"

    mappings = _numbered_paths(data_files, normalize_directory(data_dir), data_name)
    mappings += _numbered_paths(log_files, normalize_directory(log_dir), log_name)
    return RestorePlan(target_name=target_name, mappings=tuple(mappings))



def resolve_backup_artifact(
    candidate: BackupCandidate,
    request: CloneRequest,
    engine: EngineAdmin,
    now: datetime,
) -> str:
    """Return the backup file to restore from.

    Takes the fresh backup unless the candidate is a verified native backup.

    Raises:
        BackupFailedError: Fresh backup failed
    """
    if candidate.is_reusable:
        log.info(f"Restoring from existing backup {candidate.artifact_path}")
        return candidate.artifact_path
    return take_fresh_backup(request, engine, now)
