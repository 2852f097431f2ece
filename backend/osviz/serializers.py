from typing import Any, Dict, List, Optional

from osviz.engine.banker import BankerResult, RequestDecision
from osviz.engine.base import EventLog
from osviz.engine.deadlock import ResourceGraph
from osviz.engine.memory import AllocationResult, MemoryManager
from osviz.engine.metrics import lifecycle_summary
from osviz.engine.models import (
    ForkTable,
    MutexResource,
    ReadersWritersResource,
    SemaphoreResource,
    SimulatedProcess,
    SyncThread,
)
from osviz.engine.scheduler import LifecycleScheduler
from osviz.engine.sync import SyncEngine


def _safe_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def serialize_log(log: EventLog) -> List[Dict[str, Any]]:
    return [{"time": e.time, "message": e.message, "type": e.kind} for e in log]


def _gantt_segments(timeline: List[str]) -> List[Dict[str, Any]]:
    # Collapse the per-tick timeline into (name, start, duration) runs
    segments: List[Dict[str, Any]] = []
    for tick, name in enumerate(timeline):
        if segments and segments[-1]["processName"] == name:
            segments[-1]["duration"] += 1
        else:
            segments.append({"processName": name, "start": tick, "duration": 1})
    return segments


def serialize_process(p: SimulatedProcess) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "state": p.state.value,
        "arrival_time": p.arrival_time,
        "total_burst_time": p.total_burst_time,
        "remaining_burst_time": p.remaining_burst_time,
        "cpu_time": p.cpu_time,
        "waiting_time": p.waiting_time,
        "priority": p.priority,
        "io_frequency": _safe_float(p.io_frequency),
        "io_duration": p.io_duration,
        "io_countdown": p.io_countdown,
        "completion_time": p.completion_time,
        "turnaround_time": p.turnaround_time,
        "pcb": {
            "pc": p.pc,
            "registers": dict(p.registers),
            "memory_address": p.memory_address,
        },
    }


def default_process_state(settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    cfg = settings or {}
    return {
        "time": 0,
        "running": False,
        "tick_ms": int(cfg.get("tick_ms", 500)),
        "context_switch_time": int(cfg.get("context_switch_time", 1)),
        "running_process": None,
        "next_process": None,
        "context_switch_countdown": 0,
        "last_transition": None,
        "processes": [],
        "gantt": [],
        "metrics": {
            "avg_wt": 0.0,
            "avg_tat": 0.0,
            "cpu_util": 0.0,
            "throughput": 0.0,
            "context_switches": 0,
            "completed": 0,
        },
        "event_log": [],
        "done": False,
    }


def serialize_process_state(
    scheduler: Optional[LifecycleScheduler],
    settings: Dict[str, Any],
    is_running: bool = False,
) -> Dict[str, Any]:
    state = default_process_state(settings)
    state["running"] = bool(is_running)
    if scheduler is None:
        return state

    summary = lifecycle_summary(scheduler)
    running = scheduler.running
    pending = scheduler.get(scheduler.next_process_id)
    state.update(
        {
            "time": int(scheduler.time),
            "context_switch_time": int(scheduler.context_switch_time),
            "running_process": running.name if running is not None else None,
            "next_process": pending.name if pending is not None else None,
            "context_switch_countdown": int(scheduler.context_switch_countdown),
            "last_transition": dict(scheduler.last_transition) if scheduler.last_transition else None,
            "processes": [serialize_process(p) for p in scheduler.processes],
            "gantt": list(scheduler.gantt_chart),
            "metrics": {
                "avg_wt": summary["avg_wt"],
                "avg_tat": summary["avg_tat"],
                "cpu_util": summary["cpu_util"],
                "throughput": summary["throughput"],
                "context_switches": summary["context_switches"],
                "completed": summary["completed"],
            },
            "event_log": serialize_log(scheduler.log),
            "done": scheduler.done(),
        }
    )
    return state


def simulation_result(scheduler: LifecycleScheduler) -> Dict[str, Any]:
    """SimulationResult-shaped value handed to history/export collaborators."""
    summary = lifecycle_summary(scheduler)
    return {
        "ganttChart": _gantt_segments(scheduler.gantt_chart),
        "processMetrics": [
            {
                "id": row["id"],
                "name": row["name"],
                "arrivalTime": row["arrival_time"],
                "burstTime": row["burst_time"],
                "completionTime": row["completion_time"],
                "turnaroundTime": row["turnaround_time"],
                "waitingTime": row["waiting_time"],
            }
            for row in summary["_rows"]
        ],
        "totalDuration": int(scheduler.time),
        "metrics": {
            "averageWaitingTime": summary["avg_wt"],
            "averageTurnaroundTime": summary["avg_tat"],
            "cpuUtilization": summary["cpu_util"],
        },
    }


# ------------------------------
# Synchronization
# ------------------------------
def serialize_thread(t: SyncThread) -> Dict[str, Any]:
    out = {
        "id": t.id,
        "name": t.name,
        "role": t.role,
        "state": t.state.value,
        "progress": round(_safe_float(t.progress), 2),
        "action_timer": _safe_float(t.action_timer),
        "message": t.message,
        "wait_ticks": t.wait_ticks,
    }
    if t.left_fork is not None:
        out["left_fork"] = t.left_fork
        out["right_fork"] = t.right_fork
    return out


def _serialize_sync_resources(resources: Any) -> Dict[str, Any]:
    if isinstance(resources, MutexResource):
        return {"locked": resources.locked, "owner": resources.owner_id, "queue": list(resources.queue)}
    if isinstance(resources, SemaphoreResource):
        return {
            "buffer": list(resources.buffer),
            "capacity": resources.capacity,
            "mutex": resources.mutex,
            "empty": resources.empty,
            "full": resources.full,
        }
    if isinstance(resources, ReadersWritersResource):
        return {
            "readers": resources.active_readers,
            "writer_active": resources.writer_active,
            "queue": [{"id": q.thread_id, "type": q.kind} for q in resources.queue],
        }
    if isinstance(resources, ForkTable):
        return {"forks": list(resources.forks)}
    return {}


def serialize_sync_state(engine: Optional[SyncEngine], is_running: bool = False) -> Dict[str, Any]:
    if engine is None:
        return {"mode": None, "time": 0, "running": False, "threads": [], "resources": {}, "metrics": {}, "event_log": []}
    return {
        "mode": engine.mode,
        "time": int(engine.time),
        "running": bool(is_running),
        "deadlocked": bool(engine.frozen),
        "config": dict(vars(engine.config)),
        "threads": [serialize_thread(t) for t in engine.threads],
        "resources": _serialize_sync_resources(engine.resources),
        "metrics": engine.summary(),
        "event_log": serialize_log(engine.log),
    }


# ------------------------------
# Deadlock graph / Banker's
# ------------------------------
def serialize_graph(graph: ResourceGraph) -> Dict[str, Any]:
    report = graph.report
    return {
        "processes": [{"id": p.id, "name": p.name} for p in graph.processes],
        "resources": [
            {
                "id": r.id,
                "name": r.name,
                "total_instances": r.total_instances,
                "free_instances": graph.free_instances(r.id),
            }
            for r in graph.resources
        ],
        "allocations": [
            {"process_id": a.process_id, "resource_id": a.resource_id, "instances": a.instances}
            for a in graph.allocations
        ],
        "requests": [
            {"process_id": r.process_id, "resource_id": r.resource_id, "instances": r.instances}
            for r in graph.requests
        ],
        "deadlocked": report.deadlocked,
        "cycles": [list(c) for c in report.cycles],
        "deadlocked_nodes": sorted(report.deadlocked_nodes),
        "event_log": serialize_log(graph.log),
    }


def serialize_banker(result: BankerResult) -> Dict[str, Any]:
    return {
        "is_safe": result.is_safe,
        "sequence": list(result.sequence),
        "need": [list(row) for row in result.need],
        "steps": [
            {
                "step": s.step,
                "process_index": s.process_index,
                "work": list(s.work),
                "need": list(s.need),
                "is_allocatable": s.is_allocatable,
                "finish": list(s.finish),
                "message": s.message,
            }
            for s in result.steps
        ],
    }


def serialize_request_decision(decision: RequestDecision) -> Dict[str, Any]:
    return {
        "granted": decision.granted,
        "reason": decision.reason,
        "result": serialize_banker(decision.result) if decision.result is not None else None,
    }


# ------------------------------
# Memory allocation
# ------------------------------
def serialize_memory(manager: MemoryManager) -> Dict[str, Any]:
    return {
        "total_memory": manager.config.total_memory,
        "policy": manager.policy,
        "next_fit_pointer": manager.next_fit_pointer,
        "blocks": [
            {
                "id": b.id,
                "start": b.start,
                "size": b.size,
                "is_free": b.is_free,
                "process_id": b.process_id,
            }
            for b in manager.blocks
        ],
        "processes": [
            {"id": p.id, "name": p.name, "size": p.size, "block_id": p.block_id}
            for p in manager.processes
        ],
        "metrics": manager.metrics(),
        "event_log": serialize_log(manager.log),
    }


def serialize_allocation(result: AllocationResult, manager: MemoryManager) -> Dict[str, Any]:
    return {
        "allocated": result.allocated,
        "message": result.message,
        "process_id": result.process.id if result.process is not None else None,
        "block_id": result.block.id if result.block is not None else None,
        "memory": serialize_memory(manager),
    }
