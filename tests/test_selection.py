"""Tests for backup source selection."""

from datetime import timedelta

from mssql_db_cloner.clone.selection import (
    backup_window_start,
    find_native_backup,
    find_third_party_backup,
    select_backup_source,
)
from mssql_db_cloner.domain.models import BackupMethod, CloneRequest
from mssql_db_cloner.engine.protocols import EngineError


class TestFindBackups:
    """Test catalog lookups."""

    def test_window_start(self, now):
        assert backup_window_start(now, 2) == now - timedelta(days=2)

    def test_newest_native_backup_wins(self, make_engine, history_entry, now):
        older = history_entry(now - timedelta(hours=10), physical_device_name="B:\\old.bak")
        newer = history_entry(now - timedelta(hours=1), physical_device_name="B:\\new.bak")
        engine = make_engine(history=[older, newer])

        entry = find_native_backup(engine, "Orders", now - timedelta(days=1), now)

        assert entry.physical_device_name == "B:\\new.bak"

    def test_ignores_non_full_backups(self, make_engine, history_entry, now):
        engine = make_engine(
            history=[
                history_entry(now - timedelta(hours=1), backup_type="L"),
                history_entry(now - timedelta(hours=2), backup_type="I"),
            ]
        )
        assert find_native_backup(engine, "Orders", now - timedelta(days=1), now) is None

    def test_ignores_backups_outside_window(self, make_engine, history_entry, now):
        engine = make_engine(
            history=[
                history_entry(now - timedelta(days=2)),
                history_entry(now + timedelta(minutes=5)),
            ]
        )
        assert find_native_backup(engine, "Orders", now - timedelta(days=1), now) is None

    def test_third_party_requires_matching_tool(self, make_engine, history_entry, now):
        engine = make_engine(
            history=[history_entry(now - timedelta(hours=1), software_name="Commvault")]
        )
        since = now - timedelta(days=1)
        assert find_third_party_backup(engine, "Orders", "Commvault", since, now)
        assert find_third_party_backup(engine, "Orders", "Veeam", since, now) is None

    def test_catalog_error_means_no_backup(self, make_engine, now, log_records):
        engine = make_engine(
            errors={"list_backup_history": EngineError(229, "permission denied")}
        )
        assert find_native_backup(engine, "Orders", now - timedelta(days=1), now) is None
        assert any(record["level"].name == "WARNING" for record in log_records)


class TestSelectBackupSource:
    """Test the selection state machine."""

    def test_no_backups_takes_fresh(self, engine, now):
        candidate = select_backup_source(CloneRequest("Orders"), engine, now)
        assert candidate.method is BackupMethod.FRESH_COPY_ONLY
        assert engine.called("verify_backup") == []

    def test_verified_native_backup_is_reused(self, make_engine, history_entry, now):
        finished = now - timedelta(hours=3)
        engine = make_engine(history=[history_entry(finished)])

        candidate = select_backup_source(CloneRequest("Orders"), engine, now)

        assert candidate.method is BackupMethod.REUSE_NATIVE
        assert candidate.verified
        assert candidate.artifact_path == "B:\\Backup\\Orders_FULL.bak"
        assert candidate.finished_at == finished
        assert engine.called("verify_backup") == [
            ("verify_backup", "B:\\Backup\\Orders_FULL.bak")
        ]

    def test_verification_failure_falls_back(self, make_engine, history_entry, now):
        engine = make_engine(
            history=[history_entry(now - timedelta(hours=3))],
            errors={"verify_backup": EngineError(3201, "Cannot open backup device")},
        )

        candidate = select_backup_source(CloneRequest("Orders"), engine, now)

        assert candidate.method is BackupMethod.FRESH_COPY_ONLY
        assert not candidate.verified

    def test_third_party_backup_forces_fresh(self, make_engine, history_entry, now):
        engine = make_engine(
            history=[history_entry(now - timedelta(hours=1), software_name="Commvault")]
        )
        request = CloneRequest("Orders", backup_software_name="Commvault")

        candidate = select_backup_source(request, engine, now)

        assert candidate.method is BackupMethod.FRESH_COPY_ONLY
        assert engine.called("verify_backup") == []

    def test_tool_without_backup_falls_through_to_native(
        self, make_engine, history_entry, now
    ):
        engine = make_engine(history=[history_entry(now - timedelta(hours=1))])
        request = CloneRequest("Orders", backup_software_name="Commvault")

        candidate = select_backup_source(request, engine, now)

        assert candidate.method is BackupMethod.REUSE_NATIVE
        assert len(engine.called("list_backup_history")) == 2

    def test_blank_tool_is_ignored(self, make_engine, history_entry, now):
        engine = make_engine(history=[history_entry(now - timedelta(hours=1))])
        request = CloneRequest("Orders", backup_software_name="   ")

        candidate = select_backup_source(request, engine, now)

        assert candidate.method is BackupMethod.REUSE_NATIVE
        assert len(engine.called("list_backup_history")) == 1

    def test_age_window_from_request(self, make_engine, history_entry, now):
        engine = make_engine(history=[history_entry(now - timedelta(days=3))])

        assert (
            select_backup_source(CloneRequest("Orders"), engine, now).method
            is BackupMethod.FRESH_COPY_ONLY
        )
        assert (
            select_backup_source(CloneRequest("Orders", backup_age_days=7), engine, now).method
            is BackupMethod.REUSE_NATIVE
        )

    def test_never_mutates(self, make_engine, history_entry, now):
        engine = make_engine(history=[history_entry(now - timedelta(hours=1))])
        select_backup_source(CloneRequest("Orders"), engine, now)
        assert engine.mutations == []
