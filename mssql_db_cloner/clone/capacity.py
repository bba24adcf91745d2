"""Disk capacity assessment for the target database files.

The restored copy lands in the instance's default data and log directories,
so those two volumes must have room for the source's allocated file sizes.
The dump directory is not pre-checked; a backup that does not fit there fails
on its own.

Free space is read through a ``VolumeQuery``. The engine-side implementation
shells out through ``xp_cmdshell``, so with that query the whole step runs
inside ``elevated_configuration``. Those flags are instance-wide: two such runs
against the same instance must not overlap. A local query leaves the server
configuration untouched.
"""

from __future__ import annotations

from contextlib import contextmanager, nullcontext
from typing import Generator, Iterable, Optional

from mssql_db_cloner.config import settings
from mssql_db_cloner.domain.models import (
    CapacityReport,
    DatabaseRef,
    DiskVolume,
    FileKind,
    SourceSizes,
    VolumeRole,
)
from mssql_db_cloner.engine.protocols import EngineAdmin, EngineError, VolumeQuery
from mssql_db_cloner.engine.volumes import bytes_to_mb
from mssql_db_cloner.logging import LoggerFactory

from .exceptions import InsufficientDataDiskError, InsufficientLogDiskError
from .restore_plan import normalize_directory


log = LoggerFactory.for_clone()

ELEVATED_OPTIONS = ("show advanced options", "xp_cmdshell")


@contextmanager
def elevated_configuration(
    engine: EngineAdmin, options: Iterable[str] = ELEVATED_OPTIONS
) -> Generator[None, None, None]:
    """Enable server configuration options for the duration of a block.

    Options already enabled are left alone. Options this context enabled are
    switched back in reverse order on every exit path; a failure to restore
    one option is logged and the rest are still restored.

    Args:
        engine: Engine whose configuration is changed
        options: Option names, enabled in the given order

    Example:
        with elevated_configuration(engine):
            free = volumes.free_bytes(path)
    """
    changed: list[tuple[str, int]] = []
    try:
        for option in options:
            prior = engine.get_configuration(option)
            if prior:
                log.debug(f"Configuration option '{option}' already enabled")
                continue
            log.debug(f"Enabling configuration option '{option}'")
            engine.set_configuration(option, 1)
            changed.append((option, prior))
        yield
    finally:
        for option, prior in reversed(changed):
            try:
                engine.set_configuration(option, prior)
                log.debug(f"Restored configuration option '{option}' to {prior}")
            except EngineError as error:
                log.error(
                    f"Could not restore configuration option '{option}' "
                    f"to {prior}: {error}"
                )


def measure_source_sizes(engine: EngineAdmin, source_name: str) -> SourceSizes:
    sizes = SourceSizes(
        data_mb=engine.allocated_size_mb(source_name, FileKind.DATA),
        log_mb=engine.allocated_size_mb(source_name, FileKind.LOG),
        used_mb=engine.used_size_mb(source_name),
        vlf_count=engine.vlf_count(source_name),
    )
    log.info(
        f"Database {source_name}: data {sizes.data_mb} MB, log {sizes.log_mb} MB, "
        f"used {sizes.used_mb} MB"
    )
    return sizes


def warn_on_vlf_count(
    source_name: str, vlf_count: int, threshold: Optional[int] = None
) -> bool:
    """Log an advisory when the log has too many virtual log files.

    Returns:
        True if the advisory was emitted
    """
    if threshold is None:
        threshold = settings.get_int(
            "vlf_warning_threshold", settings.DEFAULT_VLF_WARNING_THRESHOLD
        )
    if vlf_count > threshold:
        log.warning(
            f"Database {source_name} has {vlf_count} virtual log files "
            f"(more than {threshold}); backup and restore will be slow"
        )
        return True
    log.debug(f"Database {source_name} has {vlf_count} virtual log files")
    return False


def read_volumes(
    engine: EngineAdmin, volumes: VolumeQuery
) -> tuple[DiskVolume, DiskVolume]:
    """Read free space behind the default data and log directories."""
    data_path = normalize_directory(engine.default_data_path())
    log_path = normalize_directory(engine.default_log_path())

    data_volume = DiskVolume(
        role=VolumeRole.DATA,
        path=data_path,
        free_mb=bytes_to_mb(volumes.free_bytes(data_path)),
    )
    log_volume = DiskVolume(
        role=VolumeRole.LOG,
        path=log_path,
        free_mb=bytes_to_mb(volumes.free_bytes(log_path)),
    )
    log.info(f"Free space on data drive {data_path}: {data_volume.free_mb} MB")
    log.info(f"Free space on log drive {log_path}: {log_volume.free_mb} MB")
    return data_volume, log_volume


def assess_capacity(
    source: DatabaseRef,
    engine: EngineAdmin,
    volumes: VolumeQuery,
    *,
    vlf_threshold: Optional[int] = None,
) -> CapacityReport:
    """Check that the default data and log volumes can hold a copy of ``source``.

    Data is checked before log. Free space must strictly exceed the measured
    size; an unknown reading fails.

    Raises:
        InsufficientDataDiskError: Data volume too small or unreadable
        InsufficientLogDiskError: Log volume too small or unreadable
        EngineError: A size or path query failed
    """
    if volumes.requires_engine_shell:
        configuration = elevated_configuration(engine)
    else:
        configuration = nullcontext()
    with configuration:
        sizes = measure_source_sizes(engine, source.name)
        warn_on_vlf_count(source.name, sizes.vlf_count, vlf_threshold)
        data_volume, log_volume = read_volumes(engine, volumes)

        if not data_volume.has_room_for(sizes.data_mb):
            raise InsufficientDataDiskError(
                data_volume.path, data_volume.free_mb, sizes.data_mb
            )
        if not log_volume.has_room_for(sizes.log_mb):
            raise InsufficientLogDiskError(
                log_volume.path, log_volume.free_mb, sizes.log_mb
            )

    return CapacityReport(sizes=sizes, data_volume=data_volume, log_volume=log_volume)
