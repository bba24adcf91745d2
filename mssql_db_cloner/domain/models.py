"""Domain model for database copy operations.

Every object here is created fresh for one clone run and discarded at the
end of it. Nothing is persisted except what the engine itself keeps (backup
files on disk and the restored database).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum

from mssql_db_cloner.config.settings import DEFAULT_BACKUP_AGE_DAYS, DEFAULT_DUMP_DIR


# ==============================================================================
# Result Codes
# ==============================================================================


class ResultCode(IntEnum):
    """Terminal result of a clone run.

    The numeric values are a stable external contract: schedulers and
    wrapper scripts branch on them.
    """

    SUCCESS = 0
    SOURCE_NOT_FOUND = 10
    TARGET_EXISTS = 15
    SECONDARY_REPLICA = 17
    INSUFFICIENT_DATA_DISK = 20
    INSUFFICIENT_LOG_DISK = 21
    BACKUP_FAILED = 30
    FILE_LIST_READ_FAILED = 40
    RESTORE_FAILED = 41


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a whole clone run.

    ``code`` is the only value that drives control flow; the other fields
    exist so callers can report without parsing the log.
    """

    code: ResultCode
    target_name: str | None = None
    artifact_path: str | None = None  # Backup file the restore read from
    message: str = ""
    engine_error_number: int | None = None
    engine_error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.code is ResultCode.SUCCESS


# ==============================================================================
# Request / Database Domain
# ==============================================================================


class HaRole(Enum):
    """Availability group role of a database on this instance."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    NOT_APPLICABLE = "not_applicable"  # HADR disabled on the instance


@dataclass(frozen=True)
class DatabaseRef:
    """Snapshot of a database taken during preflight validation."""

    name: str
    exists: bool
    ha_role: HaRole = HaRole.NOT_APPLICABLE


@dataclass(frozen=True)
class CloneRequest:
    """Input to the clone pipeline.

    Blank ``target_name`` or ``backup_software_name`` values are treated the
    same as ``None``.
    """

    source_name: str
    dump_dir: str = DEFAULT_DUMP_DIR
    backup_software_name: str | None = None
    backup_age_days: int = DEFAULT_BACKUP_AGE_DAYS
    target_name: str | None = None

    @property
    def has_explicit_target(self) -> bool:
        return bool(self.target_name and self.target_name.strip())

    @property
    def has_backup_software(self) -> bool:
        return bool(self.backup_software_name and self.backup_software_name.strip())


# ==============================================================================
# Capacity Domain
# ==============================================================================


class VolumeRole(Enum):
    """Which class of database files a volume hosts."""

    DATA = "data"
    LOG = "log"


@dataclass(frozen=True)
class DiskVolume:
    """Free space reading for the volume behind a default directory."""

    role: VolumeRole
    path: str
    free_mb: int | None  # None when the free-space query failed

    def has_room_for(self, size_mb: int) -> bool:
        """Free space must strictly exceed ``size_mb``; unknown never passes."""
        if self.free_mb is None:
            return False
        return self.free_mb > size_mb


@dataclass(frozen=True)
class SourceSizes:
    """Footprint of the source database, in MB."""

    data_mb: int  # Allocated size of all data files
    log_mb: int  # Allocated size of all log files
    used_mb: int  # Content actually in use across all files
    vlf_count: int  # Virtual log file count of the transaction log


@dataclass(frozen=True)
class CapacityReport:
    """Result of a successful capacity assessment."""

    sizes: SourceSizes
    data_volume: DiskVolume
    log_volume: DiskVolume

    @property
    def volumes(self) -> list[DiskVolume]:
        return [self.data_volume, self.log_volume]


# ==============================================================================
# Backup Domain
# ==============================================================================


@dataclass(frozen=True)
class BackupCatalogEntry:
    """One row of the engine's backup history."""

    database_name: str
    backup_type: str  # "D" full, "I" differential, "L" log
    finished_at: datetime
    software_name: str | None  # Tool that wrote the media set
    physical_device_name: str

    @property
    def is_full(self) -> bool:
        return self.backup_type.upper() == "D"


class BackupMethod(Enum):
    """How the clone obtains the backup it restores from."""

    REUSE_NATIVE = "ReuseNative"  # Restore from an existing, verified native backup
    FRESH_COPY_ONLY = "FreshCopyOnly"  # Take a new copy-only backup to the dump dir


@dataclass(frozen=True)
class BackupCandidate:
    """Decision made by the backup source selector.

    A ``REUSE_NATIVE`` candidate always carries the artifact path and is only
    ever handed out with ``verified=True``. A ``FRESH_COPY_ONLY`` candidate has
    no artifact yet; the path is decided when the backup is taken.
    """

    method: BackupMethod
    artifact_path: str | None = None
    finished_at: datetime | None = None
    verified: bool = False

    @classmethod
    def fresh(cls) -> BackupCandidate:
        return cls(method=BackupMethod.FRESH_COPY_ONLY)

    @property
    def is_reusable(self) -> bool:
        return (
            self.method is BackupMethod.REUSE_NATIVE
            and self.verified
            and bool(self.artifact_path)
        )


# ==============================================================================
# Restore Domain
# ==============================================================================


class FileKind(Enum):
    """Kind of physical file recorded in a backup's file list."""

    DATA = "data"
    LOG = "log"

    @classmethod
    def from_engine_type(cls, code: str) -> FileKind:
        """Map the single-letter ``Type`` column of RESTORE FILELISTONLY.

        Raises:
            ValueError: For file types this tool does not relocate
                (FILESTREAM ``S``, full-text ``F``)
        """
        normalized = (code or "").strip().upper()
        if normalized == "D":
            return cls.DATA
        if normalized == "L":
            return cls.LOG
        raise ValueError(f"Unsupported database file type: {code!r}")


@dataclass(frozen=True)
class FileDescriptor:
    """A physical file contained in a backup artifact."""

    logical_name: str
    kind: FileKind
    file_id: int  # Ordering key
    size_bytes: int = 0


@dataclass(frozen=True)
class FileMapping:
    """Where one logical file of the backup is restored to."""

    logical_name: str
    kind: FileKind
    physical_path: str


@dataclass(frozen=True)
class RestorePlan:
    """File relocation plan for restoring a backup under a new name."""

    target_name: str
    mappings: tuple[FileMapping, ...] = field(default_factory=tuple)

    @property
    def data_files(self) -> list[FileMapping]:
        return [m for m in self.mappings if m.kind is FileKind.DATA]

    @property
    def log_files(self) -> list[FileMapping]:
        return [m for m in self.mappings if m.kind is FileKind.LOG]
