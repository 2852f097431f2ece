import pytest

from osviz.engine import EventLog, compute_metrics, load_preset, sync_summary
from osviz.engine.models import SyncMetrics


def test_event_log_evicts_oldest():
    log = EventLog(limit=3)
    for i in range(5):
        log.append(i, f"event {i}")
    assert len(log) == 3
    assert log.messages() == ["event 2", "event 3", "event 4"]
    assert str(list(log)[0]) == "t=2: event 2"


def test_event_log_rejects_unknown_kind():
    log = EventLog()
    with pytest.raises(ValueError):
        log.append(0, "boom", "fatal")
    with pytest.raises(ValueError):
        EventLog(limit=0)


def test_metrics_average_only_finished_processes():
    procs = load_preset(1)
    rows, avg_wt, avg_tat = compute_metrics(procs)
    assert len(rows) == 4
    assert avg_wt == 0.0 and avg_tat == 0.0
    assert not any(r["_done"] for r in rows)


def test_sync_summary_handles_zero_elapsed():
    summary = sync_summary(SyncMetrics(), 0)
    assert summary["throughput"] == 0.0
    assert summary["lock_contention"] == 0.0
    assert summary["avg_wait_time"] == 0.0

    summary = sync_summary(SyncMetrics(total_acquisitions=4, total_requests=8, contended_requests=2, total_wait_ticks=10), 20)
    assert summary["throughput"] == 0.2
    assert summary["lock_contention"] == 25.0
    assert summary["avg_wait_time"] == 2.5
