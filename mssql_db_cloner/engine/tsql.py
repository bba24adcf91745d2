"""Render structured values into T-SQL statements.

Decision logic never builds SQL text itself; it produces a value (a
``RestorePlan``, a backup path) and hands it to a renderer here.
"""

from __future__ import annotations

from mssql_db_cloner.domain.models import RestorePlan

# FILE = 1: the first backup set on the media, which is what both the native
# history lookup and a freshly written NOINIT file point at.
BACKUP_SET_POSITION = 1


def quote_identifier(name: str) -> str:
    """Quote an object name as ``[name]``."""
    return "[" + name.replace("]", "]]") + "]"


def quote_literal(value: str) -> str:
    """Quote a Unicode string literal as ``N'value'``."""
    return "N'" + value.replace("'", "''") + "'"


def render_backup(database_name: str, path: str) -> str:
    return (
        f"BACKUP DATABASE {quote_identifier(database_name)}\n"
        f"TO DISK = {quote_literal(path)}\n"
        "WITH COPY_ONLY, NOFORMAT, NOINIT, SKIP, NOREWIND, NOUNLOAD, COMPRESSION"
    )


def render_verify(path: str) -> str:
    return (
        f"RESTORE VERIFYONLY FROM DISK = {quote_literal(path)} "
        f"WITH FILE = {BACKUP_SET_POSITION}"
    )


def render_file_list(path: str) -> str:
    return (
        f"RESTORE FILELISTONLY FROM DISK = {quote_literal(path)} "
        f"WITH FILE = {BACKUP_SET_POSITION}"
    )


def render_restore(plan: RestorePlan, path: str) -> str:
    """Render a RESTORE DATABASE statement that relocates every planned file."""
    lines = [
        f"RESTORE DATABASE {quote_identifier(plan.target_name)}",
        f"FROM DISK = {quote_literal(path)}",
        f"WITH FILE = {BACKUP_SET_POSITION},",
    ]
    for mapping in plan.mappings:
        lines.append(
            f"MOVE {quote_literal(mapping.logical_name)} "
            f"TO {quote_literal(mapping.physical_path)},"
        )
    lines.append("NOUNLOAD")
    return "\n".join(lines)
