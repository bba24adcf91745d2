"""SQL Server engine binding over the pymssql DB-API driver.

One autocommit connection to ``master`` is opened on first use and kept for
the life of the engine; BACKUP, RESTORE and sp_configure refuse to run inside
a user transaction. Catalog and name lookups are parameterized; statements
that take identifiers or backup devices are rendered by ``engine.tsql``.

Authentication uses Windows integrated security when no ``username`` is
given. For SQL logins the password is read from ``MSSQL_DB_CLONER_PASSWORD``.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Optional

import pymssql

from mssql_db_cloner.config import settings
from mssql_db_cloner.domain.models import (
    BackupCatalogEntry,
    FileDescriptor,
    FileKind,
    HaRole,
    RestorePlan,
)
from mssql_db_cloner.logging import LoggerFactory

from . import tsql
from .protocols import EngineError


log = LoggerFactory.for_engine()

PASSWORD_ENV_VAR = "MSSQL_DB_CLONER_PASSWORD"
APP_NAME = "mssql-db-cloner"

_FILE_TYPE_CODES = {FileKind.DATA: 0, FileKind.LOG: 1}

# Trailer lines DB-Library appends after the server's own messages
_DRIVER_NOISE = ("DB-Lib error message", "General SQL Server error", "Net-Lib error")


def engine_error_from(error: Exception) -> EngineError:
    """Build an EngineError from a pymssql exception.

    The driver raises with ``args = (number, message)``, or wraps that pair in
    a one-element tuple for connection failures. BACKUP and RESTORE report a
    specific error followed by a generic "terminating abnormally" one; both
    are kept in the message.
    """
    args = error.args
    if len(args) == 1 and isinstance(args[0], tuple):
        args = args[0]
    if len(args) >= 2 and isinstance(args[0], int):
        number: Optional[int] = args[0]
        raw = args[1]
    else:
        number = None
        raw = args[0] if args else str(error)
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    lines = [
        line.strip()
        for line in str(raw).splitlines()
        if line.strip() and not line.strip().startswith(_DRIVER_NOISE)
    ]
    return EngineError(number, " ".join(lines) or str(error))


class SqlServerEngine:
    """EngineAdmin implementation backed by a pymssql connection."""

    def __init__(
        self,
        server: str = "localhost",
        *,
        port: int = 1433,
        trusted_connection: bool = True,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ):
        self.server = server
        self.port = port
        self.trusted_connection = trusted_connection
        self.username = username
        self.password = password
        self.timeout_seconds = timeout_seconds
        self._connection = None

    @classmethod
    def from_settings(cls, server: Optional[str] = None) -> SqlServerEngine:
        return cls(
            server or settings.get_setting("server", "localhost"),
            port=settings.get_int("port", settings.DEFAULT_PORT),
            trusted_connection=settings.get_bool("trusted_connection", True),
            username=settings.get_setting("username"),
            password=os.environ.get(PASSWORD_ENV_VAR),
            timeout_seconds=settings.get_int("query_timeout_seconds"),
        )

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "server": self.server,
            "port": str(self.port),
            "database": "master",
            "autocommit": True,
            "as_dict": True,
            "appname": APP_NAME,
            "timeout": self.timeout_seconds or 0,
        }
        if self.username and not self.trusted_connection:
            kwargs["user"] = self.username
            kwargs["password"] = self.password or ""
        return kwargs

    def connect(self):
        """Open the connection on first use.

        Raises:
            EngineError: If the server cannot be reached or the login fails
        """
        if self._connection is None:
            log.debug(f"Connecting to {self.server}:{self.port}")
            try:
                self._connection = pymssql.connect(**self.connect_kwargs())
            except pymssql.Error as error:
                raise engine_error_from(error) from error
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def execute(self, statement: str, params: Optional[tuple] = None) -> list[dict]:
        """Run one batch and return the rows of its first result set.

        Remaining result sets are drained so that errors raised late in a
        BACKUP or RESTORE still surface here.

        Raises:
            EngineError: If the batch failed
        """
        log.debug(f"Running statement on {self.server}: {statement}")
        connection = self.connect()
        rows: Optional[list[dict]] = None
        try:
            with connection.cursor() as cursor:
                cursor.execute(statement, params)
                while True:
                    if rows is None and cursor.description is not None:
                        rows = cursor.fetchall()
                    if not cursor.nextset():
                        break
        except pymssql.Error as error:
            raise engine_error_from(error) from error
        log.trace(f"{len(rows or [])} row(s) returned")
        return rows or []

    def _scalar(self, statement: str, params: Optional[tuple] = None) -> Any:
        rows = self.execute(statement, params)
        if not rows:
            return None
        return rows[0].get("value")

    def _scalar_int(
        self, statement: str, params: Optional[tuple] = None, default: int = 0
    ) -> int:
        value = self._scalar(statement, params)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError) as error:
            raise EngineError(None, f"Expected an integer result, got {value!r}") from error

    # ------------------------------------------------------------------
    # Read queries
    # ------------------------------------------------------------------

    def current_time(self) -> datetime:
        value = self._scalar("SELECT GETDATE() AS value")
        if not isinstance(value, datetime):
            raise EngineError(None, f"Expected the server time, got {value!r}")
        return value

    def database_exists(self, name: str) -> bool:
        return (
            self._scalar_int(
                "SELECT COUNT(1) AS value FROM sys.databases WHERE name = %s", (name,)
            )
            > 0
        )

    def is_hadr_enabled(self) -> bool:
        return (
            self._scalar_int("SELECT CONVERT(INT, SERVERPROPERTY('IsHadrEnabled')) AS value")
            == 1
        )

    def replica_role(self, name: str) -> HaRole:
        value = self._scalar(
            "SELECT CONVERT(INT, sys.fn_hadr_is_primary_replica(%s)) AS value", (name,)
        )
        if value is None:
            return HaRole.NOT_APPLICABLE
        return HaRole.PRIMARY if int(value) == 1 else HaRole.SECONDARY

    def allocated_size_mb(self, name: str, kind: FileKind) -> int:
        return self._scalar_int(
            "SELECT SUM(CAST(size AS BIGINT)) * 8 / 1024 AS value FROM sys.master_files "
            "WHERE database_id = DB_ID(%s) AND type = %s",
            (name, _FILE_TYPE_CODES[kind]),
        )

    def used_size_mb(self, name: str) -> int:
        # FILEPROPERTY only answers for the current database
        return self._scalar_int(
            f"EXEC {tsql.quote_identifier(name)}.sys.sp_executesql "
            "N'SELECT SUM(CAST(FILEPROPERTY(name, ''SpaceUsed'') AS BIGINT) / 128) AS value "
            "FROM sys.database_files'"
        )

    def vlf_count(self, name: str) -> int:
        return self._scalar_int(
            "SELECT COUNT(1) AS value FROM sys.dm_db_log_info(DB_ID(%s))", (name,)
        )

    def default_data_path(self) -> str:
        return self._scalar(
            "SELECT CONVERT(NVARCHAR(4000), SERVERPROPERTY('InstanceDefaultDataPath')) AS value"
        ) or ""

    def default_log_path(self) -> str:
        return self._scalar(
            "SELECT CONVERT(NVARCHAR(4000), SERVERPROPERTY('InstanceDefaultLogPath')) AS value"
        ) or ""

    def get_configuration(self, option: str) -> int:
        return self._scalar_int(
            "SELECT CONVERT(INT, value) AS value FROM sys.configurations WHERE name = %s",
            (option,),
        )

    def list_backup_history(
        self, database_name: str, since: datetime
    ) -> list[BackupCatalogEntry]:
        rows = self.execute(
            "SELECT a.database_name, a.type AS backup_type, "
            "a.backup_finish_date, b.software_name, c.physical_device_name\n"
            "FROM msdb.dbo.backupset a\n"
            "INNER JOIN msdb.dbo.backupmediaset b ON a.media_set_id = b.media_set_id\n"
            "INNER JOIN msdb.dbo.backupmediafamily c ON a.media_set_id = c.media_set_id\n"
            "WHERE a.database_name = %s AND a.backup_finish_date >= %s\n"
            "ORDER BY a.backup_finish_date DESC",
            (database_name, since),
        )
        entries = []
        for row in rows:
            try:
                entries.append(
                    BackupCatalogEntry(
                        database_name=row["database_name"],
                        backup_type=row["backup_type"],
                        finished_at=row["backup_finish_date"],
                        software_name=row["software_name"],
                        physical_device_name=row["physical_device_name"],
                    )
                )
            except KeyError as error:
                raise EngineError(None, f"Unexpected backup history row: {row}") from error
        return entries

    def read_file_list(self, path: str) -> list[FileDescriptor]:
        rows = self.execute(tsql.render_file_list(path))
        descriptors = []
        for row in rows:
            try:
                descriptors.append(
                    FileDescriptor(
                        logical_name=row["LogicalName"],
                        kind=FileKind.from_engine_type(row["Type"]),
                        file_id=int(row["FileId"]),
                        size_bytes=int(row["Size"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as error:
                raise EngineError(None, f"Unexpected file list row {row}: {error}") from error
        return descriptors

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_configuration(self, option: str, value: int) -> None:
        self.execute("EXEC sp_configure %s, %s;\nRECONFIGURE;", (option, int(value)))

    def run_shell(self, command: str) -> list[str]:
        rows = self.execute("EXEC xp_cmdshell %s", (command,))
        return [row["output"] for row in rows if row.get("output") is not None]

    def backup_database(self, name: str, path: str) -> None:
        self.execute(tsql.render_backup(name, path))

    def verify_backup(self, path: str) -> None:
        self.execute(tsql.render_verify(path))

    def restore_database(self, plan: RestorePlan, path: str) -> None:
        self.execute(tsql.render_restore(plan, path))
