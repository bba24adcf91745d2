"""Run a complete database copy.

Stages, in order, each a gate for the next:

    validate -> assess capacity -> select backup -> (fresh backup) ->
    read file list and plan -> restore

Every failure ends the run with a result code; no exception leaves
``clone_database``. Errors without a code of their own take the code of the
stage they were raised in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from mssql_db_cloner.domain.models import CloneRequest, ExecutionResult, ResultCode
from mssql_db_cloner.engine.protocols import EngineAdmin, EngineError, VolumeQuery
from mssql_db_cloner.logging import LoggerFactory, operation_context

from .capacity import assess_capacity
from .exceptions import CloneError, ExecutionError
from .execution import execute_restore
from .restore_plan import build_restore_plan, read_file_manifest, resolve_backup_artifact
from .selection import select_backup_source
from .validation import validate_clone_request


log = LoggerFactory.for_clone()

Clock = Callable[[], datetime]


class CloneRun:
    """One pass through the stages.

    Remembers the current stage and what has been produced so far, so a
    failure can be reported with the right code, target and backup file.
    """

    def __init__(
        self,
        request: CloneRequest,
        engine: EngineAdmin,
        volumes: VolumeQuery,
        clock: Optional[Clock] = None,
    ):
        self.request = request
        self.engine = engine
        self.volumes = volumes
        self.clock = clock or engine.current_time
        self.stage = "validation"
        self.stage_code = ResultCode.SOURCE_NOT_FOUND
        self.target_name: Optional[str] = None
        self.artifact_path: Optional[str] = None

    def _enter(self, stage: str, code: ResultCode) -> None:
        self.stage = stage
        self.stage_code = code
        log.debug(f"Stage: {stage}")

    def execute(self) -> ExecutionResult:
        """Run every stage. Raises on the first failure."""
        request, engine = self.request, self.engine

        self._enter("validation", ResultCode.SOURCE_NOT_FOUND)
        now = self.clock()
        source, self.target_name = validate_clone_request(request, engine, now)

        self._enter("capacity check", ResultCode.INSUFFICIENT_DATA_DISK)
        report = assess_capacity(source, engine, self.volumes)

        self._enter("backup", ResultCode.BACKUP_FAILED)
        candidate = select_backup_source(request, engine, now)
        log.info(f"Copy method: {candidate.method.value}")
        self.artifact_path = resolve_backup_artifact(candidate, request, engine, now)

        self._enter("file list read", ResultCode.FILE_LIST_READ_FAILED)
        descriptors = read_file_manifest(engine, self.artifact_path)
        plan = build_restore_plan(
            self.target_name,
            descriptors,
            report.data_volume.path,
            report.log_volume.path,
        )
        for mapping in plan.mappings:
            log.debug(f"{mapping.logical_name} -> {mapping.physical_path}")

        self._enter("restore", ResultCode.RESTORE_FAILED)
        execute_restore(plan, self.artifact_path, engine)

        return ExecutionResult(
            code=ResultCode.SUCCESS,
            target_name=self.target_name,
            artifact_path=self.artifact_path,
            message=f"Database {request.source_name} copied to {self.target_name}",
        )

    def failure(self, error: Exception) -> ExecutionResult:
        """Turn the exception that stopped the run into its result."""
        code = getattr(error, "result_code", None)
        if code is None:
            code = self.stage_code
        artifact_path = self.artifact_path
        engine_error_number = None
        engine_error_message = None

        if isinstance(error, ExecutionError):
            engine_error_number = error.engine_error_number
            engine_error_message = error.engine_error_message
            # Backup and file list errors name the backup file they were working on
            artifact_path = getattr(error, "path", artifact_path)
            message = str(error)
        elif isinstance(error, CloneError):
            message = str(error)
        elif isinstance(error, EngineError):
            engine_error_number = error.number
            engine_error_message = error.message
            message = f"Engine error during {self.stage}: {error}"
        else:
            message = f"Unexpected error during {self.stage}: {type(error).__name__}: {error}"
            log.opt(exception=error).debug(message)

        log.error(f"Result code {int(code)}: {message}")
        return ExecutionResult(
            code=code,
            target_name=self.target_name,
            artifact_path=artifact_path,
            message=message,
            engine_error_number=engine_error_number,
            engine_error_message=engine_error_message,
        )


def clone_database(
    request: CloneRequest,
    engine: EngineAdmin,
    volumes: VolumeQuery,
    clock: Optional[Clock] = None,
) -> ExecutionResult:
    """Copy ``request.source_name`` to a new database on the same instance.

    Args:
        request: What to copy and where to put the backup
        engine: Engine the source lives on
        volumes: Free space lookup for the default data and log directories
        clock: Returns the current engine-local time (defaults to
            ``engine.current_time``, read once per run)

    Returns:
        Result of the run; ``result.code`` is the exit status for wrappers
    """
    run = CloneRun(request, engine, volumes, clock)
    try:
        with operation_context("clone", database=request.source_name) as op_log:
            result = run.execute()
            op_log.info(result.message)
    except Exception as error:
        result = run.failure(error)
    return result
