from typing import Any, Callable, Dict, List

from fastapi import APIRouter, Body, HTTPException

from osviz.session import (
    add_process,
    compare_context_switches,
    get_graph_state,
    get_memory_state,
    get_process_state,
    get_simulation_result,
    get_sync_state,
    graph_add_process,
    graph_add_resource,
    graph_release,
    graph_remove_resource,
    graph_request,
    graph_reset,
    graph_terminate,
    init_memory_session,
    init_process_session,
    init_sync_session,
    memory_allocate,
    memory_free,
    memory_reset,
    memory_set_policy,
    remove_process,
    reset_process_session,
    reset_sync_session,
    resolve_sync_deadlock,
    run_banker,
    run_banker_request,
    run_process_session,
    run_sync_session,
    set_running,
    tick_process_session,
    tick_sync_session,
)

router = APIRouter()


def _call(fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _steps(payload: Dict[str, Any]) -> int:
    try:
        return int(payload.get("steps", 1))
    except (TypeError, ValueError):
        raise HTTPException(status_code=422, detail="steps must be an integer")


def _require(payload: Dict[str, Any], *keys: str) -> List[Any]:
    missing = [k for k in keys if payload.get(k) is None]
    if missing:
        raise HTTPException(status_code=422, detail=f"missing field(s): {', '.join(missing)}")
    return [payload[k] for k in keys]


@router.get("/health")
def health() -> Dict[str, bool]:
    return {"ok": True}


# ------------------------------
# Process lifecycle
# ------------------------------
@router.post("/process/init")
def process_init(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return _call(init_process_session, payload)


@router.post("/process/tick")
def process_tick() -> Dict[str, Any]:
    return tick_process_session()


@router.post("/process/run")
def process_run(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return run_process_session(_steps(payload))


@router.post("/process/add")
def process_add(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    process_payload = payload.get("process") if isinstance(payload.get("process"), dict) else payload
    return _call(add_process, process_payload)


@router.post("/process/remove/{pid}")
def process_remove(pid: int) -> Dict[str, Any]:
    return _call(remove_process, pid)


@router.post("/process/start")
def process_start() -> Dict[str, Any]:
    return set_running("process", True)


@router.post("/process/pause")
def process_pause() -> Dict[str, Any]:
    return set_running("process", False)


@router.post("/process/reset")
def process_reset() -> Dict[str, Any]:
    return _call(reset_process_session)


@router.get("/process/state")
def process_state() -> Dict[str, Any]:
    return get_process_state()


@router.get("/process/result")
def process_result() -> Dict[str, Any]:
    return _call(get_simulation_result)


@router.post("/process/compare")
def process_compare(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    costs = payload.get("costs", [0, 1, 2, 3])
    if not isinstance(costs, list):
        raise HTTPException(status_code=422, detail="costs must be an array of integers")
    try:
        costs = [int(c) for c in costs]
    except (TypeError, ValueError):
        raise HTTPException(status_code=422, detail="costs must contain only integers")
    return {"results": _call(compare_context_switches, costs)}


# ------------------------------
# Synchronization
# ------------------------------
@router.post("/sync/init")
def sync_init(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return _call(init_sync_session, payload)


@router.post("/sync/tick")
def sync_tick() -> Dict[str, Any]:
    return tick_sync_session()


@router.post("/sync/run")
def sync_run(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return run_sync_session(_steps(payload))


@router.post("/sync/resolve")
def sync_resolve() -> Dict[str, Any]:
    return _call(resolve_sync_deadlock)


@router.post("/sync/start")
def sync_start() -> Dict[str, Any]:
    return set_running("sync", True)


@router.post("/sync/pause")
def sync_pause() -> Dict[str, Any]:
    return set_running("sync", False)


@router.post("/sync/reset")
def sync_reset() -> Dict[str, Any]:
    return _call(reset_sync_session)


@router.get("/sync/state")
def sync_state() -> Dict[str, Any]:
    return get_sync_state()


# ------------------------------
# Resource-allocation graph
# ------------------------------
@router.get("/deadlock/state")
def deadlock_state() -> Dict[str, Any]:
    return get_graph_state()


@router.post("/deadlock/process")
def deadlock_add_process(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return graph_add_process(payload.get("name"))


@router.post("/deadlock/resource")
def deadlock_add_resource(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return _call(graph_add_resource, payload.get("name"), payload.get("instances", 1))


@router.delete("/deadlock/resource/{rid}")
def deadlock_remove_resource(rid: int) -> Dict[str, Any]:
    return graph_remove_resource(rid)


@router.post("/deadlock/request")
def deadlock_request(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    pid, rid = _require(payload, "process_id", "resource_id")
    return _call(graph_request, pid, rid, payload.get("instances", 1))


@router.post("/deadlock/release")
def deadlock_release(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    pid, rid = _require(payload, "process_id", "resource_id")
    return _call(graph_release, pid, rid)


@router.post("/deadlock/terminate/{pid}")
def deadlock_terminate(pid: int) -> Dict[str, Any]:
    return graph_terminate(pid)


@router.post("/deadlock/reset")
def deadlock_reset() -> Dict[str, Any]:
    return graph_reset()


# ------------------------------
# Banker's algorithm
# ------------------------------
@router.post("/banker/check")
def banker_check(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return _call(run_banker, payload)


@router.post("/banker/request")
def banker_request(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return _call(run_banker_request, payload)


# ------------------------------
# Memory allocation
# ------------------------------
@router.post("/memory/init")
def memory_init(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    return _call(init_memory_session, payload)


@router.post("/memory/allocate")
def memory_alloc(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    (size,) = _require(payload, "size")
    return _call(memory_allocate, size, payload.get("policy"))


@router.post("/memory/free/{pid}")
def memory_dealloc(pid: int) -> Dict[str, Any]:
    return _call(memory_free, pid)


@router.post("/memory/policy")
def memory_policy(payload: Dict[str, Any] = Body(default_factory=dict)) -> Dict[str, Any]:
    (policy,) = _require(payload, "policy")
    return _call(memory_set_policy, policy)


@router.post("/memory/reset")
def memory_clear() -> Dict[str, Any]:
    return memory_reset()


@router.get("/memory/state")
def memory_state() -> Dict[str, Any]:
    return get_memory_state()
