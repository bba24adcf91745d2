"""Issue the restore for a prepared plan."""

from __future__ import annotations

from mssql_db_cloner.domain.models import RestorePlan
from mssql_db_cloner.engine.protocols import EngineAdmin, EngineError
from mssql_db_cloner.logging import LoggerFactory

from .exceptions import RestoreFailedError


log = LoggerFactory.for_clone()


def execute_restore(plan: RestorePlan, artifact_path: str, engine: EngineAdmin) -> None:
    """Restore ``artifact_path`` as ``plan.target_name``.

    The engine either creates the target fully or not at all. Nothing is
    cleaned up on failure, including a backup file taken for this run.

    Raises:
        RestoreFailedError: If the engine rejected the restore
    """
    log.info(
        f"Restoring database {plan.target_name} from {artifact_path} "
        f"({len(plan.data_files)} data, {len(plan.log_files)} log files)"
    )
    try:
        engine.restore_database(plan, artifact_path)
    except EngineError as error:
        raise RestoreFailedError(plan.target_name, error.number, error.message) from error
    log.info(f"Database {plan.target_name} restored")
