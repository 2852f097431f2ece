import logging
import random
from threading import Lock
from typing import Any, Dict, List, Optional

from osviz.engine import (
    LifecycleConfig,
    LifecycleScheduler,
    MemoryConfig,
    MemoryManager,
    ResourceGraph,
    SimulatedProcess,
    SyncEngine,
    check_safety,
    clone_processes,
    compare_context_switch_costs,
    create_sync_engine,
    evaluate_request,
    load_preset,
    make_next_process,
    normalize_sync_mode,
)
from osviz.serializers import (
    serialize_banker,
    serialize_allocation,
    serialize_graph,
    serialize_memory,
    serialize_process_state,
    serialize_request_decision,
    serialize_sync_state,
    simulation_result,
)

logger = logging.getLogger(__name__)

_session_lock = Lock()

ENGINES = {"process", "sync"}

scheduler: Optional[LifecycleScheduler] = None
base_processes: List[SimulatedProcess] = []
sync_engine: Optional[SyncEngine] = None
graph = ResourceGraph()
memory = MemoryManager()
running: Dict[str, bool] = {"process": False, "sync": False}
settings: Dict[str, Any] = {
    "tick_ms": 500,
    "num_processes": 5,
    "avg_burst_time": 15,
    "arrival_interval": 3,
    "context_switch_time": 1,
    "seed": None,
    "sync_mode": "MUTEX",
    "sync_config": {},
    "sync_seed": None,
    "memory_config": {},
}


def _safe_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def _strict_int(item: Dict[str, Any], key: str, default: Any) -> int:
    value = item.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}")


def _strict_float(item: Dict[str, Any], key: str, default: Any) -> float:
    value = item.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {value!r}")


def _build_process(item: Dict[str, Any], pid: int) -> SimulatedProcess:
    name = str(item.get("name") or f"P{pid}").strip()
    return SimulatedProcess(
        id=pid,
        name=name,
        arrival_time=_strict_int(item, "arrival_time", 0),
        total_burst_time=_strict_int(item, "burst_time", item.get("total_burst_time", 1)),
        priority=_strict_int(item, "priority", 0),
        io_frequency=_strict_float(item, "io_frequency", 0.0),
        io_duration=_strict_int(item, "io_duration", 0),
        memory_address=0x1000 + (pid - 1) * 0x100,
    )


def _rng(seed: Any) -> random.Random:
    return random.Random(seed)


def _process_state() -> Dict[str, Any]:
    return serialize_process_state(scheduler, settings, running["process"])


def _sync_state() -> Dict[str, Any]:
    return serialize_sync_state(sync_engine, running["sync"])


def _new_scheduler() -> LifecycleScheduler:
    config = LifecycleConfig.from_dict(settings)
    if base_processes:
        return LifecycleScheduler(
            clone_processes(base_processes),
            context_switch_time=config.context_switch_time,
            rng=_rng(config.seed),
        )
    return LifecycleScheduler.from_config(config)


# ------------------------------
# Process lifecycle
# ------------------------------
def init_process_session(payload: Dict[str, Any]) -> Dict[str, Any]:
    global scheduler, base_processes
    data = payload or {}
    with _session_lock:
        merged = dict(settings)
        for key in ("num_processes", "avg_burst_time", "arrival_interval", "context_switch_time", "seed"):
            if key in data:
                merged[key] = data[key]
        # Validate before touching the live session
        LifecycleConfig.from_dict(merged)

        processes: List[SimulatedProcess] = []
        payload_processes = data.get("processes")
        if data.get("preset") is not None:
            processes = load_preset(_strict_int(data, "preset", 1))
        elif isinstance(payload_processes, list):
            for idx, item in enumerate(payload_processes):
                if not isinstance(item, dict):
                    raise ValueError("each process must be an object")
                processes.append(_build_process(item, idx + 1))

        settings.update(merged)
        base_processes = processes
        scheduler = _new_scheduler()
        running["process"] = False
        logger.info("process session initialized with %d processes", len(scheduler.processes))
        return _process_state()


def reset_process_session() -> Dict[str, Any]:
    global scheduler
    with _session_lock:
        scheduler = _new_scheduler()
        running["process"] = False
        return _process_state()


def tick_process_session() -> Dict[str, Any]:
    with _session_lock:
        if scheduler is None:
            return _process_state()
        if not scheduler.done():
            scheduler.tick()
        else:
            running["process"] = False
        return _process_state()


def run_process_session(steps: int) -> Dict[str, Any]:
    with _session_lock:
        if scheduler is None:
            return _process_state()
        scheduler.run(max(0, _safe_int(steps, 0)))
        return _process_state()


def add_process(proc: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Add an explicit process, or a random one when `proc` is empty."""
    global scheduler
    with _session_lock:
        if scheduler is None:
            scheduler = _new_scheduler()
        pid = scheduler.next_id()
        if proc:
            new_proc = _build_process(proc, pid)
        else:
            new_proc = make_next_process(
                scheduler.processes,
                scheduler.time,
                _safe_int(settings.get("avg_burst_time"), 15),
                _safe_int(settings.get("arrival_interval"), 3),
                scheduler.rng,
            )
        scheduler.add_process(new_proc)
        return _process_state()


def remove_process(pid: int) -> Dict[str, Any]:
    with _session_lock:
        if scheduler is None or not scheduler.remove_process(int(pid)):
            raise ValueError(f"process {pid} does not exist")
        return _process_state()


def get_process_state() -> Dict[str, Any]:
    with _session_lock:
        return _process_state()


def get_simulation_result() -> Dict[str, Any]:
    with _session_lock:
        if scheduler is None:
            raise ValueError("no process simulation has been initialized")
        return simulation_result(scheduler)


def compare_context_switches(costs: List[int]) -> List[Dict[str, Any]]:
    with _session_lock:
        if scheduler is None:
            raise ValueError("no process simulation has been initialized")
        processes = clone_processes(scheduler.processes)
        seed = settings.get("seed")
    results = compare_context_switch_costs(processes, costs=costs, seed=seed)
    for row in results:
        row.pop("_rows", None)
    return results


# ------------------------------
# Synchronization
# ------------------------------
def init_sync_session(payload: Dict[str, Any]) -> Dict[str, Any]:
    global sync_engine
    data = payload or {}
    with _session_lock:
        mode = normalize_sync_mode(data.get("mode", settings["sync_mode"]))
        config = data.get("config")
        if config is None:
            config = settings["sync_config"] if mode == settings["sync_mode"] else {}
        if not isinstance(config, dict):
            raise ValueError("config must be an object")
        seed = data.get("seed", settings.get("sync_seed"))

        sync_engine = create_sync_engine(mode, config, rng=_rng(seed))
        settings["sync_mode"] = mode
        settings["sync_config"] = dict(config)
        settings["sync_seed"] = seed
        running["sync"] = False
        logger.info("sync session initialized in %s mode", mode)
        return _sync_state()


def reset_sync_session() -> Dict[str, Any]:
    global sync_engine
    with _session_lock:
        sync_engine = create_sync_engine(
            settings["sync_mode"], settings["sync_config"], rng=_rng(settings.get("sync_seed"))
        )
        running["sync"] = False
        return _sync_state()


def tick_sync_session() -> Dict[str, Any]:
    with _session_lock:
        if sync_engine is not None:
            sync_engine.tick()
        return _sync_state()


def run_sync_session(steps: int) -> Dict[str, Any]:
    with _session_lock:
        if sync_engine is not None:
            sync_engine.run(max(0, _safe_int(steps, 0)))
        return _sync_state()


def resolve_sync_deadlock() -> Dict[str, Any]:
    with _session_lock:
        if sync_engine is None or not sync_engine.resolve_deadlock():
            raise ValueError("no deadlock to resolve")
        logger.info("sync deadlock resolved")
        return _sync_state()


def get_sync_state() -> Dict[str, Any]:
    with _session_lock:
        return _sync_state()


# ------------------------------
# Driver controls
# ------------------------------
def set_running(engine: str, flag: bool) -> Dict[str, Any]:
    target = str(engine or "").strip().lower()
    if target not in ENGINES:
        raise ValueError(f"unknown engine '{engine}'")
    with _session_lock:
        running[target] = bool(flag)
        return _process_state() if target == "process" else _sync_state()


def is_running(engine: str) -> bool:
    with _session_lock:
        return bool(running.get(engine, False))


def tick_engine(engine: str) -> Dict[str, Any]:
    if engine == "process":
        return tick_process_session()
    if engine == "sync":
        return tick_sync_session()
    raise ValueError(f"unknown engine '{engine}'")


def get_engine_state(engine: str) -> Dict[str, Any]:
    if engine == "process":
        return get_process_state()
    if engine == "sync":
        return get_sync_state()
    raise ValueError(f"unknown engine '{engine}'")


def set_speed(tick_ms: int) -> int:
    with _session_lock:
        settings["tick_ms"] = max(1, _safe_int(tick_ms, settings.get("tick_ms", 500)))
        return settings["tick_ms"]


def get_settings() -> Dict[str, Any]:
    with _session_lock:
        return dict(settings)


# ------------------------------
# Resource graph
# ------------------------------
def graph_add_process(name: Optional[str] = None) -> Dict[str, Any]:
    with _session_lock:
        graph.add_process(name)
        return serialize_graph(graph)


def graph_add_resource(name: Optional[str], instances: Any) -> Dict[str, Any]:
    with _session_lock:
        graph.add_resource(name, _strict_int({"instances": instances}, "instances", 1))
        return serialize_graph(graph)


def graph_request(pid: Any, rid: Any, instances: Any = 1) -> Dict[str, Any]:
    with _session_lock:
        ids = {"process_id": pid, "resource_id": rid, "instances": instances}
        ok = graph.request(
            _strict_int(ids, "process_id", None),
            _strict_int(ids, "resource_id", None),
            _strict_int(ids, "instances", 1),
        )
        return {"ok": ok, "graph": serialize_graph(graph)}


def graph_release(pid: Any, rid: Any) -> Dict[str, Any]:
    with _session_lock:
        ids = {"process_id": pid, "resource_id": rid}
        ok = graph.release(_strict_int(ids, "process_id", None), _strict_int(ids, "resource_id", None))
        return {"ok": ok, "graph": serialize_graph(graph)}


def graph_terminate(pid: int) -> Dict[str, Any]:
    with _session_lock:
        ok = graph.terminate(int(pid))
        return {"ok": ok, "graph": serialize_graph(graph)}


def graph_remove_resource(rid: int) -> Dict[str, Any]:
    with _session_lock:
        ok = graph.remove_resource(int(rid))
        return {"ok": ok, "graph": serialize_graph(graph)}


def graph_reset() -> Dict[str, Any]:
    with _session_lock:
        graph.reset()
        return serialize_graph(graph)


def get_graph_state() -> Dict[str, Any]:
    with _session_lock:
        return serialize_graph(graph)


# ------------------------------
# Banker's algorithm (stateless)
# ------------------------------
def run_banker(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload or {}
    result = check_safety(data.get("allocation") or [], data.get("max") or [], data.get("available") or [])
    logger.info("banker check: safe=%s sequence=%s", result.is_safe, result.sequence)
    return serialize_banker(result)


def run_banker_request(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload or {}
    decision = evaluate_request(
        data.get("allocation") or [],
        data.get("max") or [],
        data.get("available") or [],
        _strict_int(data, "process_index", 0),
        data.get("request") or [],
    )
    return serialize_request_decision(decision)


# ------------------------------
# Memory allocation
# ------------------------------
def init_memory_session(payload: Dict[str, Any]) -> Dict[str, Any]:
    global memory
    data = payload or {}
    with _session_lock:
        config = MemoryConfig.from_dict(data)
        memory = MemoryManager(config)
        settings["memory_config"] = {
            "total_memory": config.total_memory,
            "initial_partitions": config.initial_partitions,
            "policy": config.policy,
        }
        logger.info("memory session initialized: %d KB, %s", config.total_memory, config.policy)
        return serialize_memory(memory)


def memory_allocate(size: Any, policy: Optional[str] = None) -> Dict[str, Any]:
    with _session_lock:
        result = memory.allocate(size, policy)
        return serialize_allocation(result, memory)


def memory_free(pid: Any) -> Dict[str, Any]:
    with _session_lock:
        if not memory.deallocate(_strict_int({"process_id": pid}, "process_id", None)):
            raise ValueError(f"process {pid} holds no memory")
        return serialize_memory(memory)


def memory_set_policy(policy: Any) -> Dict[str, Any]:
    with _session_lock:
        memory.set_policy(policy)
        return serialize_memory(memory)


def memory_reset() -> Dict[str, Any]:
    with _session_lock:
        memory.reset()
        return serialize_memory(memory)


def get_memory_state() -> Dict[str, Any]:
    with _session_lock:
        return serialize_memory(memory)
