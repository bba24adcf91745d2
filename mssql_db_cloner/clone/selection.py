"""Choose the backup a clone is restored from.

One decision per run:

    Start -> ThirdPartyCheck -> NativeCheck -> NativeVerify -> Decided

- ThirdPartyCheck (only with a backup tool name): a recent full backup written
  by that tool means the database is managed externally. Its media cannot be
  restored here, so a fresh copy-only backup is taken instead.
- NativeCheck: the most recent full backup of the source in the age window is
  the tentative artifact.
- NativeVerify: ``RESTORE VERIFYONLY`` on that artifact. A failure quietly
  demotes the decision to a fresh backup.

Catalog lookups that fail are treated as "no backup found".
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from mssql_db_cloner.domain.models import (
    BackupCandidate,
    BackupCatalogEntry,
    BackupMethod,
    CloneRequest,
)
from mssql_db_cloner.engine.protocols import EngineAdmin, EngineError
from mssql_db_cloner.logging import LoggerFactory


log = LoggerFactory.for_clone()


def backup_window_start(now: datetime, age_days: int) -> datetime:
    return now - timedelta(days=age_days)


def _recent_full_backups(
    engine: EngineAdmin, database_name: str, since: datetime, now: datetime
) -> list[BackupCatalogEntry]:
    """Full backups finished in ``[since, now]``, newest first."""
    try:
        history = engine.list_backup_history(database_name, since)
    except EngineError as error:
        log.warning(f"Could not read backup history for {database_name}: {error}")
        return []
    entries = [
        entry
        for entry in history
        if entry.is_full and since <= entry.finished_at <= now
    ]
    return sorted(entries, key=lambda entry: entry.finished_at, reverse=True)


def find_third_party_backup(
    engine: EngineAdmin,
    database_name: str,
    software_name: str,
    since: datetime,
    now: datetime,
) -> Optional[BackupCatalogEntry]:
    software_name = software_name.strip()
    for entry in _recent_full_backups(engine, database_name, since, now):
        if entry.software_name and entry.software_name.strip() == software_name:
            return entry
    return None


def find_native_backup(
    engine: EngineAdmin, database_name: str, since: datetime, now: datetime
) -> Optional[BackupCatalogEntry]:
    """Most recent full backup with a device path, whatever tool wrote it."""
    for entry in _recent_full_backups(engine, database_name, since, now):
        if entry.physical_device_name:
            return entry
    return None


def verify_candidate(
    engine: EngineAdmin, candidate: BackupCandidate
) -> BackupCandidate:
    """Confirm a tentative ReuseNative candidate, or fall back to a fresh backup."""
    try:
        engine.verify_backup(candidate.artifact_path)
    except EngineError as error:
        log.info(
            f"Backup file {candidate.artifact_path} failed verification ({error}); "
            "a fresh backup will be taken"
        )
        return BackupCandidate.fresh()
    log.info(f"Backup file {candidate.artifact_path} verified")
    return BackupCandidate(
        method=BackupMethod.REUSE_NATIVE,
        artifact_path=candidate.artifact_path,
        finished_at=candidate.finished_at,
        verified=True,
    )


def select_backup_source(
    request: CloneRequest, engine: EngineAdmin, now: datetime
) -> BackupCandidate:
    """Decide between reusing a verified native backup and taking a fresh one.

    Returns:
        Exactly one candidate; ``verified`` is True whenever it is ReuseNative
    """
    source_name = request.source_name
    since = backup_window_start(now, request.backup_age_days)

    if request.has_backup_software:
        software_name = request.backup_software_name.strip()
        log.info(
            f"Checking for full backups of {source_name} by {software_name} "
            f"since {since:%Y-%m-%d %H:%M:%S}"
        )
        entry = find_third_party_backup(engine, source_name, software_name, since, now)
        if entry is not None:
            log.info(
                f"Database {source_name} is backed up by {software_name} "
                f"(last full backup {entry.finished_at:%Y-%m-%d %H:%M:%S}); "
                "taking a copy-only backup"
            )
            return BackupCandidate.fresh()

    log.info(f"Checking for native full backups of {source_name}")
    entry = find_native_backup(engine, source_name, since, now)
    if entry is None:
        log.info(f"No recent full backup of {source_name}; taking a copy-only backup")
        return BackupCandidate.fresh()

    log.info(
        f"Found full backup of {source_name} from "
        f"{entry.finished_at:%Y-%m-%d %H:%M:%S}: {entry.physical_device_name}"
    )
    tentative = BackupCandidate(
        method=BackupMethod.REUSE_NATIVE,
        artifact_path=entry.physical_device_name,
        finished_at=entry.finished_at,
    )
    return verify_candidate(engine, tentative)
