"""
Pytest configuration and shared fixtures for mssql-db-cloner tests.

This module provides an in-memory stand-in for the database engine and the
volume free-space query, so no SQL Server instance is needed.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from mssql_db_cloner.config import settings
from mssql_db_cloner.domain.models import (
    BackupCatalogEntry,
    FileDescriptor,
    FileKind,
    HaRole,
    RestorePlan,
)
from mssql_db_cloner.logging import logger


GB = 1024 * 1024 * 1024

SERVER_TIME = datetime(2024, 3, 15, 14, 30, 45)

MUTATING_CALLS = {"set_configuration", "backup_database", "restore_database"}


class FakeEngine:
    """In-memory EngineAdmin.

    ``errors`` maps a method name to the exception that method raises. Every
    call is recorded in ``calls`` as ``(method, *args)``.
    """

    def __init__(
        self,
        databases=("Orders",),
        *,
        hadr_enabled: bool = False,
        roles: Optional[Dict[str, HaRole]] = None,
        data_mb: int = 100,
        log_mb: int = 50,
        used_mb: int = 80,
        vlf_count: int = 10,
        data_path: str = "D:\\SQLData\\",
        log_path: str = "L:\\SQLLog\\",
        configuration: Optional[Dict[str, int]] = None,
        history: Optional[List[BackupCatalogEntry]] = None,
        file_lists: Optional[Dict[str, List[FileDescriptor]]] = None,
        shell_output: Optional[List[str]] = None,
        server_time: datetime = SERVER_TIME,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.databases = set(databases)
        self.hadr_enabled = hadr_enabled
        self.roles = dict(roles or {})
        self.data_mb = data_mb
        self.log_mb = log_mb
        self.used_mb = used_mb
        self.vlf = vlf_count
        self.data_path = data_path
        self.log_path = log_path
        self.configuration = {"show advanced options": 0, "xp_cmdshell": 0}
        self.configuration.update(configuration or {})
        self.history = list(history or [])
        self.file_lists = dict(file_lists or {})
        self.default_file_list = [
            FileDescriptor("Orders", FileKind.DATA, file_id=1, size_bytes=100 * 1024 * 1024),
            FileDescriptor("Orders_log", FileKind.LOG, file_id=2, size_bytes=50 * 1024 * 1024),
        ]
        self.shell_output = list(shell_output or [])
        self.server_time = server_time
        self.errors = dict(errors or {})
        self.calls: List[tuple] = []
        self.backups: List[tuple] = []
        self.restores: List[tuple] = []

    def _call(self, method, *args):
        self.calls.append((method, *args))
        error = self.errors.get(method)
        if error is not None:
            raise error

    def called(self, method) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    @property
    def mutations(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in MUTATING_CALLS]

    def current_time(self):
        self._call("current_time")
        return self.server_time

    def database_exists(self, name):
        self._call("database_exists", name)
        return name in self.databases

    def is_hadr_enabled(self):
        self._call("is_hadr_enabled")
        return self.hadr_enabled

    def replica_role(self, name):
        self._call("replica_role", name)
        return self.roles.get(name, HaRole.PRIMARY)

    def allocated_size_mb(self, name, kind):
        self._call("allocated_size_mb", name, kind)
        return self.data_mb if kind is FileKind.DATA else self.log_mb

    def used_size_mb(self, name):
        self._call("used_size_mb", name)
        return self.used_mb

    def vlf_count(self, name):
        self._call("vlf_count", name)
        return self.vlf

    def default_data_path(self):
        self._call("default_data_path")
        return self.data_path

    def default_log_path(self):
        self._call("default_log_path")
        return self.log_path

    def get_configuration(self, option):
        self._call("get_configuration", option)
        return self.configuration.get(option, 0)

    def set_configuration(self, option, value):
        self._call("set_configuration", option, value)
        self.configuration[option] = value

    def run_shell(self, command):
        self._call("run_shell", command)
        return list(self.shell_output)

    def backup_database(self, name, path):
        self._call("backup_database", name, path)
        self.backups.append((name, path))

    def list_backup_history(self, database_name, since):
        self._call("list_backup_history", database_name, since)
        entries = [
            entry
            for entry in self.history
            if entry.database_name == database_name and entry.finished_at >= since
        ]
        return sorted(entries, key=lambda entry: entry.finished_at, reverse=True)

    def verify_backup(self, path):
        self._call("verify_backup", path)

    def read_file_list(self, path):
        self._call("read_file_list", path)
        return list(self.file_lists.get(path, self.default_file_list))

    def restore_database(self, plan: RestorePlan, path):
        self._call("restore_database", plan, path)
        self.restores.append((plan, path))
        self.databases.add(plan.target_name)


class FakeVolumeQuery:
    """VolumeQuery returning fixed free space per path."""

    def __init__(
        self,
        free: Optional[Dict[str, Optional[int]]] = None,
        default=10 * GB,
        *,
        requires_engine_shell: bool = True,
    ):
        self.free = dict(free or {})
        self.default = default
        self.requires_engine_shell = requires_engine_shell
        self.paths: List[str] = []

    def free_bytes(self, path):
        self.paths.append(path)
        return self.free.get(path, self.default)


def make_history_entry(
    finished_at: datetime,
    *,
    database_name: str = "Orders",
    backup_type: str = "D",
    software_name: Optional[str] = "Microsoft SQL Server",
    physical_device_name: str = "B:\\Backup\\Orders_FULL.bak",
) -> BackupCatalogEntry:
    return BackupCatalogEntry(
        database_name=database_name,
        backup_type=backup_type,
        finished_at=finished_at,
        software_name=software_name,
        physical_device_name=physical_device_name,
    )


# ==============================================================================
# Engine Fixtures
# ==============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed clock reading used across tests."""
    return SERVER_TIME


@pytest.fixture
def engine() -> FakeEngine:
    """Fixture providing an engine hosting a single ``Orders`` database."""
    return FakeEngine()


@pytest.fixture
def volumes() -> FakeVolumeQuery:
    """Fixture providing 10 GB free on every volume."""
    return FakeVolumeQuery()


@pytest.fixture
def make_engine():
    """Fixture providing the FakeEngine class for custom setups."""
    return FakeEngine


@pytest.fixture
def make_volumes():
    """Fixture providing the FakeVolumeQuery class for custom setups."""
    return FakeVolumeQuery


@pytest.fixture
def history_entry():
    """Fixture providing a factory for backup history rows."""
    return make_history_entry


# ==============================================================================
# Settings / Logging Fixtures
# ==============================================================================


@pytest.fixture
def temp_settings_file(tmp_path) -> Path:
    """
    Fixture providing a temporary settings file path.

    Args:
        tmp_path: pytest's built-in temporary directory fixture.

    Returns:
        Path to a temporary settings file.
    """
    settings_dir = tmp_path / ".config" / "mssql-db-cloner"
    settings_dir.mkdir(parents=True, exist_ok=True)
    return settings_dir / "settings.json"


@pytest.fixture(autouse=True)
def default_settings():
    """
    Auto-use fixture that resets the settings store to defaults for each test.
    """
    saved = dict(settings.settings_store.values)
    settings.settings_store.values = dict(settings.DEFAULT_SETTINGS)
    yield
    settings.settings_store.values = saved


@pytest.fixture
def log_records():
    """
    Fixture capturing loguru records emitted during a test.

    Returns:
        List that receives each record dict.
    """
    records: list = []
    handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    logger.remove(handler_id)
