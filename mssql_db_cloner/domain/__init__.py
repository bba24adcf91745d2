"""Domain models for database copy operations."""

from __future__ import annotations

from .models import (
    BackupCandidate,
    BackupCatalogEntry,
    BackupMethod,
    CapacityReport,
    CloneRequest,
    DatabaseRef,
    DiskVolume,
    ExecutionResult,
    FileDescriptor,
    FileKind,
    FileMapping,
    HaRole,
    RestorePlan,
    ResultCode,
    SourceSizes,
    VolumeRole,
)


__all__ = [
    "BackupCandidate",
    "BackupCatalogEntry",
    "BackupMethod",
    "CapacityReport",
    "CloneRequest",
    "DatabaseRef",
    "DiskVolume",
    "ExecutionResult",
    "FileDescriptor",
    "FileKind",
    "FileMapping",
    "HaRole",
    "RestorePlan",
    "ResultCode",
    "SourceSizes",
    "VolumeRole",
]
