import argparse
import sys
from pathlib import Path

from mssql_db_cloner.clone import clone_database
from mssql_db_cloner.config import settings
from mssql_db_cloner.domain.models import CloneRequest, ResultCode
from mssql_db_cloner.engine import EngineShellVolumeQuery, LocalVolumeQuery, SqlServerEngine
from mssql_db_cloner.logging import LoggerFactory, setup_logging


def build_parser():
    parser = argparse.ArgumentParser(
        description="Copy a SQL Server database to a new database on the same instance"
    )
    parser.add_argument("database", help="Name of the database to copy")
    parser.add_argument(
        "--target",
        help="Name of the new database (default: <database>_COPY_<yyyyMMddHHmmss>)",
    )
    parser.add_argument(
        "--dump-dir",
        default=settings.get_setting("dump_dir", settings.DEFAULT_DUMP_DIR),
        help="Directory for the copy-only backup file",
    )
    parser.add_argument(
        "--backup-software",
        default=settings.get_setting("backup_software_name"),
        help="Name of the third-party tool that backs up this database, if any",
    )
    parser.add_argument(
        "--backup-age",
        type=int,
        default=settings.get_int("backup_age_days", settings.DEFAULT_BACKUP_AGE_DAYS),
        help="Maximum age in days of a backup that may be reused",
    )
    parser.add_argument("--server", help="SQL Server instance (default from settings)")
    parser.add_argument(
        "--local-volumes",
        action="store_true",
        default=settings.get_setting("volume_query") == "local",
        help="Read free disk space locally instead of through xp_cmdshell",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Log raw engine output")
    parser.add_argument("--log-dir", type=Path, help="Directory for log files")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug, trace=args.trace, log_dir=args.log_dir)
    log = LoggerFactory.for_system()

    engine = SqlServerEngine.from_settings(server=args.server)
    if args.local_volumes:
        volumes = LocalVolumeQuery()
    else:
        volumes = EngineShellVolumeQuery(engine)
    log.debug(f"Using server {engine.server}, volume query {type(volumes).__name__}")

    request = CloneRequest(
        source_name=args.database,
        dump_dir=args.dump_dir,
        backup_software_name=args.backup_software,
        backup_age_days=args.backup_age,
        target_name=args.target,
    )
    try:
        result = clone_database(request, engine, volumes)
    finally:
        engine.close()

    if result.code is ResultCode.SUCCESS:
        print(result.target_name)
    else:
        print(result.message, file=sys.stderr)
    return int(result.code)


if __name__ == "__main__":
    sys.exit(main())
