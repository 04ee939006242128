from datetime import datetime, timedelta

from dogwalk.admin import AuditLog
from dogwalk.effects import SyncReport
from dogwalk.ops import HealthMonitor, StructuredLogger


def test_sync_age_uses_the_local_clock() -> None:
    health = HealthMonitor()
    assert health.sync_age_seconds() is None

    health.mark_synced(datetime.now())
    assert 0 <= health.sync_age_seconds() <= 5

    synced = datetime(2024, 3, 4, 7, 0)
    health.mark_synced(synced, pending=2)
    assert health.sync_age_seconds(at=synced + timedelta(seconds=90)) == 90
    assert health.status(at=synced)["pending_effects"] == 2


def test_default_timestamps_are_local() -> None:
    before = datetime.now()
    event = AuditLog().record("alice", "walk_started", "w1")
    entry = StructuredLogger().log("walk_started")
    report = SyncReport()
    after = datetime.now()

    assert before <= event.timestamp <= after
    assert before <= datetime.fromisoformat(entry["timestamp"]) <= after
    assert before <= report.flushed_at <= after
