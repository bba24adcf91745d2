"""Preflight validation for clone requests.

Checks run before anything on the instance is changed:
- Source database is registered with the engine
- Explicit target name is not already taken
- Source holds the primary role when the instance runs Always On (HADR)

All validation functions raise specific exceptions from the exceptions module
rather than returning boolean values, making error handling more explicit.
Only read queries are issued.

Example:
    from mssql_db_cloner.clone.validation import validate_clone_request

    try:
        source, target = validate_clone_request(request, engine, now)
    except SecondaryReplicaError:
        # Run the copy on the primary replica instead
        pass
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from mssql_db_cloner.config import settings
from mssql_db_cloner.domain.models import CloneRequest, DatabaseRef, HaRole
from mssql_db_cloner.engine.protocols import EngineAdmin
from mssql_db_cloner.logging import LoggerFactory

from .exceptions import SecondaryReplicaError, SourceNotFoundError, TargetExistsError


log = LoggerFactory.for_clone()

TARGET_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def default_target_name(
    source_name: str, now: datetime, suffix: Optional[str] = None
) -> str:
    """Synthesize ``<source>_COPY_<yyyyMMddHHmmss>``."""
    if suffix is None:
        suffix = settings.get_setting("target_suffix", settings.DEFAULT_TARGET_SUFFIX)
    return f"{source_name}_{suffix}_{now.strftime(TARGET_TIMESTAMP_FORMAT)}"


def validate_source_exists(engine: EngineAdmin, source_name: str) -> None:
    """Validate that the source database is registered with the engine.

    Raises:
        SourceNotFoundError: If no database with that name exists
    """
    if not source_name or not engine.database_exists(source_name):
        raise SourceNotFoundError(source_name)


def validate_target_absent(engine: EngineAdmin, target_name: str) -> None:
    """Validate that the target name is free.

    Raises:
        TargetExistsError: If a database with that name already exists
    """
    if engine.database_exists(target_name):
        raise TargetExistsError(target_name)


def validate_ha_role(engine: EngineAdmin, source_name: str) -> HaRole:
    """Validate that the source can be copied from this replica.

    On instances without HADR the role is never queried.

    Returns:
        Role reported for the source database

    Raises:
        SecondaryReplicaError: If the source is on a secondary replica
    """
    if not engine.is_hadr_enabled():
        return HaRole.NOT_APPLICABLE

    role = engine.replica_role(source_name)
    if role is HaRole.SECONDARY:
        raise SecondaryReplicaError(source_name)
    # NOT_APPLICABLE: database is outside any availability group
    return role


def validate_clone_request(
    request: CloneRequest, engine: EngineAdmin, now: datetime
) -> tuple[DatabaseRef, str]:
    """Run every preflight check for a clone request.

    Args:
        request: Requested copy
        engine: Engine to validate against
        now: Clock reading used for the default target name

    Returns:
        Validated source reference and the target database name

    Raises:
        SourceNotFoundError: Source database missing
        TargetExistsError: Explicit target name already in use
        SecondaryReplicaError: Source on a secondary replica
    """
    source_name = request.source_name
    log.info(f"Checking if database {source_name} exists")
    validate_source_exists(engine, source_name)

    if request.has_explicit_target:
        target_name = request.target_name.strip()
        log.info(f"Checking if target database {target_name} exists")
        validate_target_absent(engine, target_name)
    else:
        target_name = default_target_name(source_name, now)
        log.info(f"No target name given, using {target_name}")

    role = validate_ha_role(engine, source_name)
    log.debug(f"Replica role for {source_name}: {role.value}")

    return DatabaseRef(name=source_name, exists=True, ha_role=role), target_name
