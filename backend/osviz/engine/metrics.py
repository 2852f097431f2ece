from typing import Any, Dict, List

from .models import ProcessState, SimulatedProcess, SyncMetrics


def compute_metrics(processes: List[SimulatedProcess]):
    """Return per-process metric rows.

    - Always returns a row for every process (so the table can list all tasks).
    - Averages are computed only across terminated processes.
    """
    rows = []
    completed_rows = []

    # Stable ordering for display
    for p in sorted(processes, key=lambda x: (x.arrival_time, x.id)):
        done = p.state == ProcessState.TERMINATED
        row = {
            "id": p.id,
            "name": p.name,
            "state": p.state.value,
            "arrival_time": p.arrival_time,
            "burst_time": p.total_burst_time,
            "remaining": p.remaining_burst_time,
            "cpu_time": p.cpu_time,
            "waiting_time": p.waiting_time,
            "completion_time": p.completion_time,
            "turnaround_time": p.turnaround_time,
            "_done": done,
        }
        if done:
            completed_rows.append(row)
        rows.append(row)

    if completed_rows:
        avg_wt = sum(r["waiting_time"] for r in completed_rows) / len(completed_rows)
        avg_tat = sum(r["turnaround_time"] for r in completed_rows) / len(completed_rows)
    else:
        avg_wt = avg_tat = 0.0

    return rows, avg_wt, avg_tat


def lifecycle_summary(scheduler) -> Dict[str, Any]:
    """Aggregate metrics for a LifecycleScheduler at its current tick."""
    rows, avg_wt, avg_tat = compute_metrics(scheduler.processes)
    elapsed = scheduler.time
    completed = sum(1 for r in rows if r["_done"])
    return {
        "time": int(elapsed),
        "avg_wt": float(avg_wt),
        "avg_tat": float(avg_tat),
        "cpu_util": (scheduler.total_cpu_time / elapsed * 100.0) if elapsed > 0 else 0.0,
        "throughput": (completed / elapsed) if elapsed > 0 else 0.0,
        "context_switches": int(scheduler.context_switches),
        "completed": completed,
        "_rows": rows,
    }


def sync_summary(metrics: SyncMetrics, elapsed: int) -> Dict[str, Any]:
    contention = (
        metrics.contended_requests / metrics.total_requests * 100.0
        if metrics.total_requests
        else 0.0
    )
    avg_wait = (
        metrics.total_wait_ticks / metrics.total_acquisitions
        if metrics.total_acquisitions
        else 0.0
    )
    return {
        "avg_wait_time": float(avg_wait),
        "throughput": (metrics.total_acquisitions / elapsed) if elapsed > 0 else 0.0,
        "lock_contention": float(contention),
        "deadlocks": metrics.deadlocks,
        "items_produced": metrics.items_produced,
        "items_consumed": metrics.items_consumed,
        "total_acquisitions": metrics.total_acquisitions,
        "total_waits": metrics.total_waits,
    }
